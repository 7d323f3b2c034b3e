import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from dataclasses import dataclass, field  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import inventory_agent.models  # noqa: E402,F401
from inventory_agent.database import Base  # noqa: E402
from inventory_agent.schemas.webhook import InboundEvent  # noqa: E402
from inventory_agent.services.catalog_store import CatalogStore  # noqa: E402
from inventory_agent.services.conversation_router import ConversationRouter  # noqa: E402
from inventory_agent.services.media_gateway import (  # noqa: E402
    DownloadedMedia,
    MediaGatewayError,
    MediaTooLargeError,
    UploadedMedia,
)
from inventory_agent.services.media_service import MediaService  # noqa: E402
from inventory_agent.services.session_store import InMemorySessionStore  # noqa: E402

PHONE = "923001234567"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Collects timers; tests fire them explicitly."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def schedule(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def fire_all(self) -> int:
        fired = 0
        for timer in list(self.pending):
            timer.fired = True
            await timer.callback()
            fired += 1
        return fired


@dataclass
class Sent:
    kind: str
    to: str
    body: str
    ids: list = field(default_factory=list)


class RecordingDispatcher:
    def __init__(self):
        self.sent: list[Sent] = []

    async def send_text(self, to, body):
        self.sent.append(Sent("text", to, body))
        return True

    async def send_buttons(self, to, body, buttons, header=None, footer=None):
        self.sent.append(Sent("buttons", to, body, [b["id"] for b in buttons]))
        return True

    async def send_list(self, to, body, button_text, sections, header=None, footer=None):
        ids = [row["id"] for section in sections for row in section["rows"]]
        self.sent.append(Sent("list", to, body, ids))
        return True

    def texts(self) -> list[str]:
        return [s.body for s in self.sent if s.kind == "text"]

    def all_text(self) -> str:
        return "\n".join(self.texts())

    def last(self, kind: str) -> Sent | None:
        for item in reversed(self.sent):
            if item.kind == kind:
                return item
        return None

    def clear(self):
        self.sent.clear()


class FakeGateway:
    def __init__(self):
        self.size_bytes = 100 * 1024
        self.video_duration = 12.0
        self.downloads: list[str] = []
        self.uploads: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_upload = False
        self.fail_delete = False

    async def download(self, media_id, max_bytes=None):
        self.downloads.append(media_id)
        if max_bytes is not None and self.size_bytes > max_bytes:
            raise MediaTooLargeError(self.size_bytes, max_bytes)
        return DownloadedMedia(content=b"binary", size_bytes=self.size_bytes, mime_type="image/jpeg")

    async def upload(self, content, folder, resource_type="image"):
        if self.fail_upload:
            raise MediaGatewayError("upload failed")
        external_id = f"{folder}/{resource_type}-{len(self.uploads) + 1}"
        self.uploads.append((external_id, resource_type))
        return UploadedMedia(
            url=f"https://cdn.test/{external_id}",
            external_id=external_id,
            duration_seconds=self.video_duration if resource_type == "video" else None,
        )

    async def delete(self, external_id, resource_type="image"):
        self.deleted.append((external_id, resource_type))
        if self.fail_delete:
            raise MediaGatewayError("delete failed")
        return True


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return InMemorySessionStore(state_timeout_seconds=600, media_ttl_seconds=300, clock=clock)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def media(gateway, store):
    return MediaService(gateway, store, image_folder="products", video_folder="videos")


@pytest.fixture
def router(store, sessions, dispatcher, media, scheduler):
    return ConversationRouter(
        store=store,
        sessions=sessions,
        dispatcher=dispatcher,
        media=media,
        scheduler=scheduler,
        debounce_seconds=3.0,
    )


@pytest.fixture
def seller(store):
    return store.create_seller(
        PHONE, name="Ali", store_name="Ali Sports", onboarding_step="complete", status="active"
    )


def text_event(body: str, phone: str = PHONE) -> InboundEvent:
    return InboundEvent(phone=phone, kind="text", body=body)


def button_event(button_id: str, phone: str = PHONE) -> InboundEvent:
    return InboundEvent(phone=phone, kind="interactive", button_id=button_id)


def image_event(media_id: str = "media-1", caption: str | None = None, phone: str = PHONE) -> InboundEvent:
    return InboundEvent(phone=phone, kind="image", media_id=media_id, caption=caption, body=caption)


def video_event(media_id: str = "video-1", phone: str = PHONE) -> InboundEvent:
    return InboundEvent(phone=phone, kind="video", media_id=media_id)
