"""Debounced per-phone buffer that merges a product description with its photos.

WhatsApp delivers a caption and the images that follow it as separate webhook
events. The aggregator holds them for a short quiet window and hands one
FlushedMessage to the handler once nothing new arrives.

A buffer moves EMPTY -> BUFFERING -> FLUSHING and is removed before the handler
runs, so it is consumed exactly once.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from inventory_agent.logging_config import get_logger

logger = get_logger("aggregator")


class InputType(str, Enum):
    IMAGE_WITH_CAPTION = "IMAGE_WITH_CAPTION"
    TEXT_WITH_IMAGE = "TEXT_WITH_IMAGE"
    TEXT_ONLY = "TEXT_ONLY"


class BufferPhase(str, Enum):
    EMPTY = "empty"
    BUFFERING = "buffering"
    FLUSHING = "flushing"


@dataclass(frozen=True)
class MediaRef:
    url: str
    external_id: str

    def to_dict(self) -> dict:
        return {"url": self.url, "external_id": self.external_id}


@dataclass
class PendingBuffer:
    phone: str
    text: str = ""
    images: list[MediaRef] = field(default_factory=list)
    captioned: bool = False
    phase: BufferPhase = BufferPhase.BUFFERING
    started_at: float = 0.0
    timer: Any = None

    @property
    def input_type(self) -> InputType:
        if self.captioned:
            return InputType.IMAGE_WITH_CAPTION
        if self.images:
            return InputType.TEXT_WITH_IMAGE
        return InputType.TEXT_ONLY


@dataclass(frozen=True)
class FlushedMessage:
    phone: str
    text: str
    images: tuple[MediaRef, ...]
    input_type: InputType


FlushHandler = Callable[[FlushedMessage], Awaitable[None]]
ErrorHandler = Callable[[str, Exception], Awaitable[None]]


class AsyncioScheduler:
    """Runs an async callback after a delay on the running event loop."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, delay: float, callback: Callable[[], Awaitable[None]]):
        loop = asyncio.get_running_loop()

        def _fire():
            task = loop.create_task(callback())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return loop.call_later(delay, _fire)


class Aggregator:
    def __init__(
        self,
        handler: FlushHandler,
        on_error: Optional[ErrorHandler] = None,
        scheduler: Optional[Any] = None,
        delay_seconds: float = 3.0,
        clock: Callable[[], float] = time.time,
    ):
        self.handler = handler
        self.on_error = on_error
        self.scheduler = scheduler or AsyncioScheduler()
        self.delay_seconds = delay_seconds
        self._clock = clock
        self._buffers: dict[str, PendingBuffer] = {}

    def phase(self, phone: str) -> BufferPhase:
        buffer = self._buffers.get(phone)
        return buffer.phase if buffer else BufferPhase.EMPTY

    def has_buffer(self, phone: str) -> bool:
        return phone in self._buffers

    @property
    def buffered_count(self) -> int:
        return len(self._buffers)

    def _restart_timer(self, buffer: PendingBuffer) -> None:
        if buffer.timer is not None:
            buffer.timer.cancel()
        phone = buffer.phone
        buffer.timer = self.scheduler.schedule(self.delay_seconds, lambda: self._on_timer(phone))

    def _new_buffer(self, phone: str, **fields) -> PendingBuffer:
        buffer = PendingBuffer(phone=phone, started_at=self._clock(), **fields)
        self._buffers[phone] = buffer
        return buffer

    def buffer_text(self, phone: str, text: str) -> None:
        buffer = self._buffers.get(phone)
        if buffer is None:
            buffer = self._new_buffer(phone, text=text)
        else:
            buffer.text = text
        self._restart_timer(buffer)
        logger.debug(
            "Buffered text",
            extra={"context": {"phone": phone, "images": len(buffer.images)}},
        )

    def buffer_image(self, phone: str, media_ref: MediaRef) -> bool:
        """Append to an open buffer. False means there is none to attach to."""
        buffer = self._buffers.get(phone)
        if buffer is None:
            return False
        buffer.images.append(media_ref)
        self._restart_timer(buffer)
        logger.debug(
            "Buffered image",
            extra={"context": {"phone": phone, "images": len(buffer.images)}},
        )
        return True

    def buffer_captioned_image(self, phone: str, caption: str, media_ref: MediaRef) -> list[MediaRef]:
        """Start a fresh captioned buffer. Returns images of any buffer it replaced."""
        dropped = self.cancel(phone)
        buffer = self._new_buffer(phone, text=caption, images=[media_ref], captioned=True)
        self._restart_timer(buffer)
        return dropped

    def cancel(self, phone: str) -> list[MediaRef]:
        """Drop the phone's buffer and its timer. Returns the images it held."""
        buffer = self._buffers.pop(phone, None)
        if buffer is None:
            return []
        if buffer.timer is not None:
            buffer.timer.cancel()
        return list(buffer.images)

    async def _on_timer(self, phone: str) -> None:
        try:
            await self.flush(phone)
        except Exception as e:
            logger.error(
                "Debounce flush failed",
                extra={"context": {"phone": phone, "error": str(e)}},
                exc_info=True,
            )

    async def flush(self, phone: str) -> bool:
        buffer = self._buffers.get(phone)
        if buffer is None or buffer.phase == BufferPhase.FLUSHING:
            return False
        buffer.phase = BufferPhase.FLUSHING
        if buffer.timer is not None:
            buffer.timer.cancel()
        self._buffers.pop(phone, None)

        message = FlushedMessage(
            phone=phone,
            text=buffer.text,
            images=tuple(buffer.images),
            input_type=buffer.input_type,
        )
        logger.info(
            "Flushing buffer",
            extra={
                "context": {
                    "phone": phone,
                    "input_type": message.input_type.value,
                    "images": len(message.images),
                }
            },
        )

        try:
            await self.handler(message)
        except Exception as e:
            logger.error(
                "Flush handler failed",
                extra={"context": {"phone": phone, "error": str(e)}},
                exc_info=True,
            )
            if self.on_error is not None:
                try:
                    await self.on_error(phone, e)
                except Exception as hook_error:
                    logger.error(
                        "Flush error hook failed",
                        extra={"context": {"phone": phone, "error": str(hook_error)}},
                    )
        return True
