import asyncio

import pytest

from stockbridge.core.exceptions import StockStorageError, WorkerPoolFullError
from stockbridge.integrations.worker_pool import WorkerPool


@pytest.fixture
async def pool():
    pool = WorkerPool(name="test-pool", workers=2, queue_size=5, failure_history=3)
    await pool.start()
    yield pool
    await pool.stop(timeout=1)


@pytest.mark.asyncio
async def test_jobs_run_after_submit(pool):
    done = []

    async def job(n):
        done.append(n)

    for n in range(4):
        pool.submit(f"job-{n}", lambda n=n: job(n))
    await pool.join()

    assert sorted(done) == [0, 1, 2, 3]
    assert pool.processed == 4
    assert len(pool.failures) == 0


@pytest.mark.asyncio
async def test_failures_go_to_error_channel(pool):
    seen = []
    pool.add_error_handler(seen.append)

    async def failing():
        raise StockStorageError("database unavailable")

    async def fine():
        return "ok"

    pool.submit("order-1", failing)
    pool.submit("order-2", fine)
    await pool.join()

    assert [f.job_name for f in seen] == ["order-1"]
    recent = pool.recent_failures()
    assert recent[0]["job_name"] == "order-1"
    assert recent[0]["error_type"] == "StockStorageError"
    assert "database unavailable" in recent[0]["error"]
    assert pool.processed == 1


@pytest.mark.asyncio
async def test_failure_history_is_bounded_newest_first(pool):
    async def failing(n):
        raise ValueError(f"boom {n}")

    for n in range(5):
        pool.submit(f"job-{n}", lambda n=n: failing(n))
        await pool.join()

    assert [f["job_name"] for f in pool.recent_failures()] == ["job-4", "job-3", "job-2"]


@pytest.mark.asyncio
async def test_broken_error_handler_does_not_stop_workers(pool):
    def broken(failure):
        raise RuntimeError("handler bug")

    pool.add_error_handler(broken)

    async def failing():
        raise ValueError("boom")

    async def fine():
        return None

    pool.submit("a", failing)
    pool.submit("b", fine)
    await pool.join()

    assert pool.processed == 1
    assert pool.running


@pytest.mark.asyncio
async def test_submit_rejects_when_full():
    pool = WorkerPool(name="full-pool", workers=1, queue_size=1)
    # Not started, so nothing drains the queue
    release = asyncio.Event()

    async def blocked():
        await release.wait()

    pool.submit("first", blocked)
    with pytest.raises(WorkerPoolFullError):
        pool.submit("second", blocked)


@pytest.mark.asyncio
async def test_stop_drains_queue_then_cancels():
    pool = WorkerPool(workers=1, queue_size=10)
    await pool.start()
    done = []

    async def slow(n):
        await asyncio.sleep(0.01)
        done.append(n)

    for n in range(3):
        pool.submit(f"job-{n}", lambda n=n: slow(n))
    await pool.stop(timeout=5)

    assert done == [0, 1, 2]
    assert not pool.running


def test_needs_at_least_one_worker():
    with pytest.raises(ValueError):
        WorkerPool(workers=0)
