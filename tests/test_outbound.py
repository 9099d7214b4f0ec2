"""Tests for the outbound worker queue."""

import asyncio

import pytest

from app.services.outbound import OutboundQueue


@pytest.mark.asyncio
async def test_jobs_run_in_background_and_are_counted():
    queue = OutboundQueue(workers=2, retry_delay=0)
    queue.start()
    done = []

    async def job(n):
        done.append(n)

    for n in range(5):
        await queue.submit(f"job {n}", lambda n=n: job(n))
    await queue.join()
    await queue.stop()

    assert sorted(done) == [0, 1, 2, 3, 4]
    assert queue.stats.as_dict() == {"submitted": 5, "succeeded": 5, "failed": 0, "retried": 0}


@pytest.mark.asyncio
async def test_failed_job_is_retried_until_it_succeeds():
    queue = OutboundQueue(workers=1, max_attempts=3, retry_delay=0)
    queue.start()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("try again")

    await queue.submit("flaky", flaky)
    await queue.stop()

    assert len(attempts) == 3
    assert queue.stats.succeeded == 1
    assert queue.stats.retried == 2


@pytest.mark.asyncio
async def test_job_gives_up_after_max_attempts(caplog):
    queue = OutboundQueue(workers=1, max_attempts=2, retry_delay=0)
    queue.start()

    async def broken():
        raise RuntimeError("nope")

    await queue.submit("broken", broken)
    await queue.stop()

    assert queue.stats.failed == 1
    assert "broken failed after 2 attempts" in caplog.text


@pytest.mark.asyncio
async def test_submit_requires_running_queue():
    queue = OutboundQueue()

    async def job():
        return None

    with pytest.raises(RuntimeError):
        await queue.submit("x", job)


@pytest.mark.asyncio
async def test_full_queue_applies_backpressure():
    queue = OutboundQueue(maxsize=1, workers=1, retry_delay=0)
    queue.start()
    release = asyncio.Event()

    async def slow():
        await release.wait()

    await queue.submit("first", slow)
    await asyncio.sleep(0.01)  # let the worker pick it up
    await queue.submit("second", slow)
    third = asyncio.create_task(queue.submit("third", slow))
    await asyncio.sleep(0.01)
    assert not third.done()

    release.set()
    await third
    await queue.stop()
    assert queue.stats.succeeded == 3
