import pytest

from imagitales.core.exceptions import GenerationCancelled
from imagitales.core.task_queue import CancellationToken, SerialTaskQueue


def _recording_task(trace, name, result=None, error=None):

    async def run():
        trace.append(name)
        if error is not None:
            raise error
        return result

    return run


@pytest.mark.asyncio
async def test_runs_in_order_with_delay_between_tasks_only(sleeps):
    trace = []
    queue = SerialTaskQueue(inter_task_delay=2.0, sleep=sleeps)
    for name in ("4-6", "7-9", "10-12"):
        queue.enqueue(name, _recording_task(trace, name, result=name.upper()))

    results = await queue.run()

    assert trace == ["4-6", "7-9", "10-12"]
    assert results == ["4-6", "7-9", "10-12"]
    assert sleeps.calls == [2.0, 2.0]


@pytest.mark.asyncio
async def test_single_task_never_waits(sleeps):
    queue = SerialTaskQueue(inter_task_delay=2.0, sleep=sleeps)
    queue.enqueue("only", _recording_task([], "only"))

    await queue.run()

    assert sleeps.calls == []


@pytest.mark.asyncio
async def test_first_error_stops_remaining_tasks(sleeps):
    trace = []
    queue = SerialTaskQueue(inter_task_delay=2.0, sleep=sleeps)
    queue.enqueue("a", _recording_task(trace, "a"))
    queue.enqueue("b", _recording_task(trace, "b", error=RuntimeError("boom")))
    queue.enqueue("c", _recording_task(trace, "c"))

    with pytest.raises(RuntimeError, match="boom"):
        await queue.run()

    assert trace == ["a", "b"]
    assert len(queue) == 3


@pytest.mark.asyncio
async def test_cancelled_token_prevents_any_task(sleeps):
    trace = []
    token = CancellationToken()
    token.cancel()
    queue = SerialTaskQueue(sleep=sleeps)
    queue.enqueue("a", _recording_task(trace, "a"))

    with pytest.raises(GenerationCancelled):
        await queue.run(token)

    assert trace == []


@pytest.mark.asyncio
async def test_cancel_interrupts_inter_task_delay():
    trace = []
    token = CancellationToken()

    async def cancel_after_first():
        trace.append("a")
        token.cancel()

    # 주입된 sleep 없이 토큰 대기를 쓰므로 취소 즉시 깨어난다
    queue = SerialTaskQueue(inter_task_delay=60.0)
    queue.enqueue("a", cancel_after_first)
    queue.enqueue("b", _recording_task(trace, "b"))

    with pytest.raises(GenerationCancelled):
        await queue.run(token)

    assert trace == ["a"]


@pytest.mark.asyncio
async def test_token_wait_reports_timeout():
    token = CancellationToken()
    assert await token.wait(0.01) is False
    token.cancel()
    assert await token.wait(0.01) is True
    assert token.cancelled
