# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import anyio
import pytest

from mcpkit.server.transports.channel import BroadcastChannel, ChannelClosedError, CloseSignal


def test_fan_out_preserves_order_per_listener() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel("demo")
    first: list[int] = []
    second: list[int] = []

    channel.listen(first.append)
    channel.listen(second.append)
    for value in (1, 2, 3):
        channel.add(value)

    assert first == [1, 2, 3]
    assert second == [1, 2, 3]


def test_items_before_subscription_are_not_replayed() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel()
    channel.add("early")
    seen: list[str] = []

    channel.listen(seen.append)
    channel.add("late")

    assert seen == ["late"]


def test_cancelled_subscription_stops_receiving() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel()
    seen: list[int] = []
    done: list[bool] = []

    subscription = channel.listen(seen.append, on_done=lambda: done.append(True))
    channel.add(1)
    subscription.cancel()
    channel.add(2)
    channel.close()

    assert seen == [1]
    assert done == []
    assert not channel.has_listeners


def test_close_is_idempotent_and_notifies_once() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel()
    done: list[str] = []
    channel.listen(lambda _: None, on_done=lambda: done.append("done"))

    channel.close()
    channel.close()

    assert channel.is_closed
    assert done == ["done"]


def test_closed_channel_rejects_writes_but_sink_drops_them() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel()
    channel.close()

    with pytest.raises(ChannelClosedError):
        channel.add(1)
    with pytest.raises(ChannelClosedError):
        channel.add_error(RuntimeError("late"))

    channel.sink.add(1)
    channel.sink.add_error(RuntimeError("late"))


def test_listen_on_closed_channel_reports_done_immediately() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel()
    channel.close()
    done: list[bool] = []

    subscription = channel.listen(lambda _: None, on_done=lambda: done.append(True))

    assert done == [True]
    assert not subscription.active


def test_errors_reach_error_listeners() -> None:
    channel: BroadcastChannel[int] = BroadcastChannel()
    errors: list[BaseException] = []
    channel.listen(lambda _: None, on_error=errors.append)
    failure = RuntimeError("fault")

    channel.add_error(failure)

    assert errors == [failure]


@pytest.mark.anyio
async def test_stream_yields_items_until_close() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel()
    stream = channel.reader.stream()

    channel.add("a")
    channel.add("b")
    channel.close()

    assert [item async for item in stream] == ["a", "b"]


@pytest.mark.anyio
async def test_stream_raises_published_error() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel()
    stream = channel.reader.stream()
    channel.add("a")
    channel.add_error(ValueError("bad frame"))

    assert await stream.__anext__() == "a"
    with pytest.raises(ValueError, match="bad frame"):
        await stream.__anext__()


def test_close_signal_first_settlement_wins() -> None:
    signal = CloseSignal()
    seen: list[BaseException | None] = []
    signal.add_done_callback(seen.append)
    failure = RuntimeError("first")

    assert signal.fail(failure) is True
    assert signal.complete() is False
    assert signal.fail(RuntimeError("second")) is False

    assert signal.is_completed
    assert signal.error is failure
    assert seen == [failure]


def test_close_signal_late_callback_runs_immediately() -> None:
    signal = CloseSignal()
    signal.complete()
    seen: list[BaseException | None] = []

    signal.add_done_callback(seen.append)

    assert seen == [None]


@pytest.mark.anyio
async def test_close_signal_wakes_waiters() -> None:
    signal = CloseSignal()
    woke: list[str] = []

    async def waiter() -> None:
        await signal.settled()
        woke.append("settled")

    async with anyio.create_task_group() as tg:
        tg.start_soon(waiter)
        tg.start_soon(waiter)
        await anyio.wait_all_tasks_blocked()
        signal.complete()

    assert woke == ["settled", "settled"]
    await signal


@pytest.mark.anyio
async def test_close_signal_wait_raises_failure() -> None:
    signal = CloseSignal()
    signal.fail(ConnectionResetError("peer reset"))

    await signal.settled()
    with pytest.raises(ConnectionResetError):
        await signal.wait()


def test_nested_publish_is_delivered_after_current_item() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel("reentrant")
    seen: list[str] = []

    def echo(item: str) -> None:
        if item == "hello":
            channel.add("reply")

    channel.listen(echo)
    channel.listen(seen.append)
    channel.add("hello")
    channel.add("bye")

    assert seen == ["hello", "reply", "bye"]


def test_close_from_callback_finishes_after_pending_items() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel("reentrant-close")
    events: list[str] = []

    def closer(item: str) -> None:
        channel.close()

    channel.listen(closer)
    channel.listen(events.append, on_done=lambda: events.append("done"))
    channel.add("last")

    assert channel.is_closed
    assert events == ["last", "done"]


def test_listener_added_during_delivery_misses_earlier_items() -> None:
    channel: BroadcastChannel[str] = BroadcastChannel("late-listener")
    late: list[str] = []

    def subscribe_late(item: str) -> None:
        if item == "first":
            channel.listen(late.append)
            channel.add("second")

    channel.listen(subscribe_late)
    channel.add("first")

    assert late == ["second"]
