import asyncio
from unittest.mock import AsyncMock

from conftest import ManualScheduler

from inventory_agent.services.aggregator import Aggregator, BufferPhase, InputType, MediaRef

PHONE = "923001234567"


def _ref(n: int) -> MediaRef:
    return MediaRef(url=f"https://cdn.test/{n}", external_id=f"img-{n}")


def _aggregator(handler=None, on_error=None):
    scheduler = ManualScheduler()
    handler = handler or AsyncMock()
    return Aggregator(handler=handler, on_error=on_error, scheduler=scheduler, delay_seconds=3.0), scheduler, handler


class TestBuffering:
    def test_text_creates_buffer_and_timer(self):
        aggregator, scheduler, _ = _aggregator()
        aggregator.buffer_text(PHONE, "Yonex racket 5000")
        assert aggregator.has_buffer(PHONE)
        assert aggregator.phase(PHONE) == BufferPhase.BUFFERING
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == 3.0

    def test_latest_text_wins_and_timer_restarts(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "first")
        aggregator.buffer_text(PHONE, "second")
        assert len(scheduler.pending) == 1
        asyncio.run(scheduler.fire_all())
        assert handler.await_args.args[0].text == "second"

    def test_image_without_buffer_is_refused(self):
        aggregator, scheduler, _ = _aggregator()
        assert aggregator.buffer_image(PHONE, _ref(1)) is False
        assert not aggregator.has_buffer(PHONE)
        assert scheduler.pending == []

    def test_images_append_and_restart_timer(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "Victor bag 3500")
        assert aggregator.buffer_image(PHONE, _ref(1))
        assert aggregator.buffer_image(PHONE, _ref(2))
        assert len(scheduler.pending) == 1

        asyncio.run(scheduler.fire_all())
        message = handler.await_args.args[0]
        assert message.input_type == InputType.TEXT_WITH_IMAGE
        assert [ref.external_id for ref in message.images] == ["img-1", "img-2"]

    def test_captioned_image_replaces_buffer(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "old text")
        aggregator.buffer_image(PHONE, _ref(1))
        dropped = aggregator.buffer_captioned_image(PHONE, "Yonex racket 5000", _ref(2))
        assert dropped == [_ref(1)]

        asyncio.run(scheduler.fire_all())
        message = handler.await_args.args[0]
        assert message.input_type == InputType.IMAGE_WITH_CAPTION
        assert message.text == "Yonex racket 5000"
        assert message.images == (_ref(2),)

    def test_text_only(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "add racket")
        asyncio.run(scheduler.fire_all())
        assert handler.await_args.args[0].input_type == InputType.TEXT_ONLY


class TestFlush:
    def test_flush_consumes_buffer_once(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "add racket")

        assert asyncio.run(aggregator.flush(PHONE)) is True
        assert asyncio.run(aggregator.flush(PHONE)) is False
        assert handler.await_count == 1
        assert not aggregator.has_buffer(PHONE)
        assert scheduler.pending == []

    def test_handler_failure_still_removes_buffer_and_calls_error_hook(self):
        handler = AsyncMock(side_effect=RuntimeError("db down"))
        on_error = AsyncMock()
        aggregator, scheduler, _ = _aggregator(handler=handler, on_error=on_error)
        aggregator.buffer_text(PHONE, "add racket")

        asyncio.run(scheduler.fire_all())

        assert not aggregator.has_buffer(PHONE)
        on_error.assert_awaited_once()
        assert on_error.await_args.args[0] == PHONE

    def test_timer_callback_never_raises(self):
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        on_error = AsyncMock(side_effect=RuntimeError("hook boom"))
        aggregator, scheduler, _ = _aggregator(handler=handler, on_error=on_error)
        aggregator.buffer_text(PHONE, "add racket")

        assert asyncio.run(scheduler.fire_all()) == 1

    def test_cancel_drops_buffer_and_timer(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text(PHONE, "add racket")
        aggregator.buffer_image(PHONE, _ref(1))

        assert aggregator.cancel(PHONE) == [_ref(1)]
        assert scheduler.pending == []
        assert aggregator.phase(PHONE) == BufferPhase.EMPTY
        handler.assert_not_awaited()

    def test_phones_are_independent(self):
        aggregator, scheduler, handler = _aggregator()
        aggregator.buffer_text("1", "add racket")
        aggregator.buffer_text("2", "add shoes")
        assert aggregator.buffered_count == 2

        asyncio.run(aggregator.flush("1"))
        assert aggregator.has_buffer("2")


class TestAsyncioScheduler:
    def test_real_timer_flushes(self):
        handler = AsyncMock()
        aggregator = Aggregator(handler=handler, delay_seconds=0.01)

        async def scenario():
            aggregator.buffer_text(PHONE, "add racket")
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        handler.assert_awaited_once()
        assert not aggregator.has_buffer(PHONE)
