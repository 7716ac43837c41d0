"""Tests for the database backed job queue."""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from jobs import JobQueue, CONNECT_TRANSACTIONS
from processor import JobValidationError


def job(attempts=1, data=None):
    return {
        'id': uuid4(),
        'type': CONNECT_TRANSACTIONS,
        'data': data or {'addresses': ['A'], 'userId': 'user-1', 'walletId': 'w1'},
        'attempts': attempts
    }


@pytest.mark.asyncio
async def test_add_inserts_pending_job(fake_pool):
    job_id = uuid4()
    fake_pool.conn.fetchval.return_value = job_id
    queue = JobQueue(fake_pool)

    assert await queue.add('wallet.update', {'walletId': 'w1'}) == job_id

    args = fake_pool.conn.fetchval.call_args.args
    assert 'INSERT INTO jobs' in args[0]
    assert args[1:] == ('wallet.update', {'walletId': 'w1'})


@pytest.mark.asyncio
async def test_claim_returns_job_or_none(fake_pool):
    queue = JobQueue(fake_pool)
    assert await queue.claim(CONNECT_TRANSACTIONS) is None

    fake_pool.conn.fetchrow.return_value = job()
    claimed = await queue.claim(CONNECT_TRANSACTIONS)
    assert claimed['type'] == CONNECT_TRANSACTIONS
    assert 'SKIP LOCKED' in fake_pool.conn.fetchrow.call_args.args[0]


@pytest.mark.asyncio
async def test_claim_takes_back_stale_active_jobs(fake_pool):
    queue = JobQueue(fake_pool, visibility_timeout=120)
    fake_pool.conn.fetchrow.return_value = job(attempts=2)

    claimed = await queue.claim(CONNECT_TRANSACTIONS)

    sql, job_type, timeout = fake_pool.conn.fetchrow.call_args.args
    assert "status = 'active' AND updated_at < now() - $2::INTERVAL" in sql
    assert job_type == CONNECT_TRANSACTIONS
    assert timeout == timedelta(seconds=120)
    assert claimed['attempts'] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts, retry, expected", [
    (1, True, 'pending'),
    (2, True, 'pending'),
    (3, True, 'failed'),
    (1, False, 'failed'),
])
async def test_fail_redelivers_until_attempts_run_out(fake_pool, attempts, retry, expected):
    queue = JobQueue(fake_pool, max_attempts=3)

    status = await queue.fail(uuid4(), 'boom', attempts, retry=retry)

    assert status == expected
    assert fake_pool.conn.execute.call_args.args[2:] == (expected, 'boom')


@pytest.mark.asyncio
async def test_run_job_completes_on_success(fake_pool):
    queue = JobQueue(fake_pool)
    handler = AsyncMock()
    claimed = job()

    assert await queue.run_job(claimed, handler) is True

    handler.assert_awaited_once_with(claimed['data'])
    sql, job_id = fake_pool.conn.execute.call_args.args
    assert "status = 'complete'" in sql
    assert job_id == claimed['id']


@pytest.mark.asyncio
async def test_run_job_records_error_message(fake_pool):
    queue = JobQueue(fake_pool)
    handler = AsyncMock(side_effect=RuntimeError('store unavailable'))

    assert await queue.run_job(job(), handler) is False

    assert fake_pool.conn.execute.call_args.args[2:] == ('pending', 'store unavailable')


@pytest.mark.asyncio
async def test_permanent_errors_are_not_redelivered(fake_pool):
    queue = JobQueue(fake_pool, max_attempts=5)
    handler = AsyncMock(side_effect=JobValidationError('No addresses to work on.', 'addresses'))

    await queue.run_job(job(), handler, permanent_errors=(JobValidationError,))

    assert fake_pool.conn.execute.call_args.args[2:] == ('failed', 'No addresses to work on.')


@pytest.mark.asyncio
async def test_process_runs_until_stopped(fake_pool):
    queue = JobQueue(fake_pool)
    fake_pool.conn.fetchrow.return_value = job()
    seen = []

    async def handler(data):
        seen.append(data)
        queue.stop()

    await queue.process(CONNECT_TRANSACTIONS, handler, poll_interval=0)

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_error_recording_failure_propagates(fake_pool):
    queue = JobQueue(fake_pool)
    queue.fail = AsyncMock(side_effect=ConnectionError('db down'))
    handler = AsyncMock(side_effect=RuntimeError('store unavailable'))

    # The job stays active and is claimed again once the visibility timeout passes
    with pytest.raises(ConnectionError):
        await queue.run_job(job(), handler)


@pytest.mark.asyncio
async def test_process_survives_settle_errors(fake_pool):
    queue = JobQueue(fake_pool)
    fake_pool.conn.fetchrow.return_value = job()
    fake_pool.conn.execute.side_effect = ConnectionError('db down')
    calls = []

    async def handler(data):
        calls.append(data)
        if len(calls) == 2:
            queue.stop()

    await queue.process(CONNECT_TRANSACTIONS, handler, poll_interval=0)

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_job_delivered_too_often_is_failed_without_running(fake_pool):
    queue = JobQueue(fake_pool, max_attempts=3)
    handler = AsyncMock()

    assert await queue.run_job(job(attempts=4), handler) is False

    handler.assert_not_called()
    assert fake_pool.conn.execute.call_args.args[2:] == ('failed', 'Job timed out too often')
