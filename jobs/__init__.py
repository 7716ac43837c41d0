"""Jobs module for the database backed work queue.

Jobs are rows of the ``jobs`` table keyed by type. A worker claims the oldest
pending job of its type, runs it and marks it complete or failed. Failed jobs
go back to pending until they ran out of attempts. A job left active longer
than the visibility timeout, because its worker died or could not record the
outcome, is claimed again. Delivery is at least once.
"""
import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type
from uuid import UUID

from asyncpg.pool import Pool

from database import get_pool

logger = logging.getLogger(__name__)

CONNECT_TRANSACTIONS = 'addresses.connectTransactions'
ADDRESSES_UPDATE = 'addresses.update'
WALLET_UPDATE = 'wallet.update'

JobHandler = Callable[[Dict[str, Any]], Awaitable[None]]

class JobQueue:
    """Enqueues, claims and settles jobs."""

    def __init__(self, pool: Optional[Pool] = None, max_attempts: int = 3,
                 visibility_timeout: float = 300) -> None:
        """Initialize the queue.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
            max_attempts: Deliveries of a job before it is left failed
            visibility_timeout: Seconds an active job may go without being settled
                before it is claimed again. Must exceed the longest job.
        """
        self.pool = pool
        self.max_attempts = max_attempts
        self.visibility_timeout = timedelta(seconds=visibility_timeout)
        self.running = True

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def add(self, job_type: str, data: Dict[str, Any]) -> UUID:
        """Queue a new pending job and return its id."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            job_id = await conn.fetchval(
                '''
                INSERT INTO jobs (type, data)
                VALUES ($1, $2::JSONB)
                RETURNING id
                ''',
                job_type,
                data
            )
        logger.debug(f"Queued {job_type} job {job_id}")
        return job_id

    async def claim(self, job_type: str) -> Optional[Dict[str, Any]]:
        """Mark the oldest pending or stale active job of a type active and return it."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                UPDATE jobs
                SET status = 'active',
                    attempts = attempts + 1,
                    updated_at = now()
                WHERE id = (
                    SELECT id FROM jobs
                    WHERE type = $1
                    AND (
                        status = 'pending'
                        OR (status = 'active' AND updated_at < now() - $2::INTERVAL)
                    )
                    ORDER BY created_at
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING id, type, data, attempts
                ''',
                job_type,
                self.visibility_timeout
            )
        return dict(row) if row else None

    async def complete(self, job_id: UUID) -> None:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE jobs
                SET status = 'complete', error = NULL, updated_at = now()
                WHERE id = $1
                ''',
                job_id
            )

    async def fail(self, job_id: UUID, error: str, attempts: int, retry: bool = True) -> str:
        """Record a failed delivery.

        Returns:
            The new job status, 'pending' when it will be delivered again
        """
        await self.ensure_pool()
        status = 'pending' if retry and attempts < self.max_attempts else 'failed'
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE jobs
                SET status = $2, error = $3, updated_at = now()
                WHERE id = $1
                ''',
                job_id,
                status,
                error
            )
        return status

    async def run_job(self, job: Dict[str, Any], handler: JobHandler,
                      permanent_errors: Tuple[Type[BaseException], ...] = ()) -> bool:
        """Run one claimed job and settle it. Returns True when it completed.

        A job claimed more often than ``max_attempts`` only got here by going stale,
        so it is failed without running the handler again.
        """
        if job['attempts'] > self.max_attempts:
            await self.fail(job['id'], "Job timed out too often", job['attempts'], retry=False)
            logger.error(f"{job['type']} job {job['id']} abandoned after {job['attempts']} deliveries")
            return False

        try:
            await handler(job['data'])
        except Exception as e:
            retry = not isinstance(e, permanent_errors)
            status = await self.fail(job['id'], str(e), job['attempts'], retry=retry)
            logger.error(f"{job['type']} job {job['id']} failed ({status}): {e}")
            return False

        await self.complete(job['id'])
        logger.info(f"{job['type']} job {job['id']} complete")
        return True

    async def process(self, job_type: str, handler: JobHandler, poll_interval: float = 5,
                      permanent_errors: Tuple[Type[BaseException], ...] = ()) -> None:
        """Run jobs of a type one at a time until stopped."""
        logger.info(f"Processing {job_type} jobs")
        while self.running:
            try:
                job = await self.claim(job_type)
                if not job:
                    await asyncio.sleep(poll_interval)
                    continue
                await self.run_job(job, handler, permanent_errors)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error processing {job_type} jobs: {e}")
                await asyncio.sleep(1)

    def stop(self) -> None:
        self.running = False

__all__ = ['JobQueue', 'CONNECT_TRANSACTIONS', 'ADDRESSES_UPDATE', 'WALLET_UPDATE']
