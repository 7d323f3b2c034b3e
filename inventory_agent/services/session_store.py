"""Per-phone ephemeral session state: conversation step and pending media target.

Both backends expose the same async interface so the router never knows where
state lives. The in-memory store is process-local; the Redis store lets several
workers share sessions.
"""

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

from redis import asyncio as redis_asyncio

from inventory_agent.logging_config import get_logger
from inventory_agent.services.state_machine import Step

logger = get_logger("session_store")

MEDIA_TYPES = ("image", "video")


@dataclass
class ConversationState:
    step: Step = Step.IDLE
    intent: Optional[str] = None
    data: dict = field(default_factory=dict)
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_idle(self) -> bool:
        return self.step == Step.IDLE

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["step"] = self.step.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "ConversationState":
        return cls(
            step=Step(payload.get("step", Step.IDLE.value)),
            intent=payload.get("intent"),
            data=payload.get("data") or {},
            created_at=float(payload.get("created_at") or 0.0),
            updated_at=float(payload.get("updated_at") or 0.0),
        )


@dataclass
class MediaTarget:
    media_type: str
    product_id: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "MediaTarget":
        return cls(
            media_type=payload["media_type"],
            product_id=str(payload["product_id"]),
            expires_at=float(payload["expires_at"]),
        )


class SessionStore:
    """Interface shared by the session backends."""

    async def get_state(self, phone: str) -> ConversationState:
        raise NotImplementedError

    async def set_state(
        self, phone: str, step: Step, intent: Optional[str] = None, data: Optional[dict] = None
    ) -> ConversationState:
        raise NotImplementedError

    async def clear_state(self, phone: str) -> None:
        raise NotImplementedError

    async def get_media_target(self, phone: str) -> Optional[MediaTarget]:
        raise NotImplementedError

    async def set_media_target(self, phone: str, media_type: str, product_id: str) -> MediaTarget:
        raise NotImplementedError

    async def clear_media_target(self, phone: str) -> None:
        raise NotImplementedError

    async def sweep_expired(self) -> int:
        raise NotImplementedError

    async def counts(self) -> dict[str, int]:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        state_timeout_seconds: float = 600,
        media_ttl_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.state_timeout_seconds = state_timeout_seconds
        self.media_ttl_seconds = media_ttl_seconds
        self._clock = clock
        self._states: dict[str, ConversationState] = {}
        self._targets: dict[str, MediaTarget] = {}

    def _state_expired(self, state: ConversationState, now: float) -> bool:
        return now - state.updated_at > self.state_timeout_seconds

    async def get_state(self, phone: str) -> ConversationState:
        state = self._states.get(phone)
        if state is None:
            return ConversationState()
        now = self._clock()
        if self._state_expired(state, now):
            logger.info(
                "Conversation state expired",
                extra={"context": {"phone": phone, "step": state.step.value}},
            )
            self._states.pop(phone, None)
            return ConversationState()
        return state

    async def set_state(
        self, phone: str, step: Step, intent: Optional[str] = None, data: Optional[dict] = None
    ) -> ConversationState:
        now = self._clock()
        if step == Step.IDLE:
            self._states.pop(phone, None)
            return ConversationState(created_at=now, updated_at=now)
        previous = self._states.get(phone)
        created_at = previous.created_at if previous else now
        state = ConversationState(
            step=step, intent=intent, data=dict(data or {}), created_at=created_at, updated_at=now
        )
        self._states[phone] = state
        return state

    async def clear_state(self, phone: str) -> None:
        self._states.pop(phone, None)

    async def get_media_target(self, phone: str) -> Optional[MediaTarget]:
        target = self._targets.get(phone)
        if target is None:
            return None
        if target.is_expired(self._clock()):
            self._targets.pop(phone, None)
            return None
        return target

    async def set_media_target(self, phone: str, media_type: str, product_id: str) -> MediaTarget:
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"Invalid media type: {media_type}")
        target = MediaTarget(
            media_type=media_type,
            product_id=str(product_id),
            expires_at=self._clock() + self.media_ttl_seconds,
        )
        self._targets[phone] = target
        return target

    async def clear_media_target(self, phone: str) -> None:
        self._targets.pop(phone, None)

    async def sweep_expired(self) -> int:
        now = self._clock()
        expired_states = [p for p, s in self._states.items() if self._state_expired(s, now)]
        expired_targets = [p for p, t in self._targets.items() if t.is_expired(now)]
        for phone in expired_states:
            self._states.pop(phone, None)
        for phone in expired_targets:
            self._targets.pop(phone, None)
        return len(expired_states) + len(expired_targets)

    async def counts(self) -> dict[str, int]:
        return {"states": len(self._states), "media_targets": len(self._targets)}


class RedisSessionStore(SessionStore):
    """Session store backed by redis.asyncio. Keys expire through Redis TTLs."""

    def __init__(
        self,
        client: Any,
        state_timeout_seconds: float = 600,
        media_ttl_seconds: float = 300,
        prefix: str = "inventory_agent",
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.state_timeout_seconds = state_timeout_seconds
        self.media_ttl_seconds = media_ttl_seconds
        self.prefix = prefix
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSessionStore":
        return cls(redis_asyncio.from_url(url, decode_responses=True), **kwargs)

    def _state_key(self, phone: str) -> str:
        return f"{self.prefix}:state:{phone}"

    def _target_key(self, phone: str) -> str:
        return f"{self.prefix}:media_target:{phone}"

    async def _load(self, key: str) -> Optional[dict]:
        raw = await self.client.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping unreadable session entry", extra={"context": {"key": key}})
            await self.client.delete(key)
            return None

    async def get_state(self, phone: str) -> ConversationState:
        payload = await self._load(self._state_key(phone))
        if payload is None:
            return ConversationState()
        state = ConversationState.from_dict(payload)
        # TTL granularity is seconds; the timestamp check keeps expiry exact.
        if self._clock() - state.updated_at > self.state_timeout_seconds:
            await self.client.delete(self._state_key(phone))
            return ConversationState()
        return state

    async def set_state(
        self, phone: str, step: Step, intent: Optional[str] = None, data: Optional[dict] = None
    ) -> ConversationState:
        now = self._clock()
        if step == Step.IDLE:
            await self.client.delete(self._state_key(phone))
            return ConversationState(created_at=now, updated_at=now)
        previous = await self._load(self._state_key(phone))
        created_at = float(previous.get("created_at") or now) if previous else now
        state = ConversationState(
            step=step, intent=intent, data=dict(data or {}), created_at=created_at, updated_at=now
        )
        await self.client.set(
            self._state_key(phone),
            json.dumps(state.to_dict(), default=str),
            ex=int(self.state_timeout_seconds),
        )
        return state

    async def clear_state(self, phone: str) -> None:
        await self.client.delete(self._state_key(phone))

    async def get_media_target(self, phone: str) -> Optional[MediaTarget]:
        payload = await self._load(self._target_key(phone))
        if payload is None:
            return None
        target = MediaTarget.from_dict(payload)
        if target.is_expired(self._clock()):
            await self.client.delete(self._target_key(phone))
            return None
        return target

    async def set_media_target(self, phone: str, media_type: str, product_id: str) -> MediaTarget:
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"Invalid media type: {media_type}")
        target = MediaTarget(
            media_type=media_type,
            product_id=str(product_id),
            expires_at=self._clock() + self.media_ttl_seconds,
        )
        await self.client.set(
            self._target_key(phone), json.dumps(target.to_dict()), ex=int(self.media_ttl_seconds)
        )
        return target

    async def clear_media_target(self, phone: str) -> None:
        await self.client.delete(self._target_key(phone))

    async def sweep_expired(self) -> int:
        # Redis expires keys on its own.
        return 0

    async def counts(self) -> dict[str, int]:
        states = 0
        targets = 0
        async for _ in self.client.scan_iter(match=f"{self.prefix}:state:*"):
            states += 1
        async for _ in self.client.scan_iter(match=f"{self.prefix}:media_target:*"):
            targets += 1
        return {"states": states, "media_targets": targets}
