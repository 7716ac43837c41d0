"""Commit a processed batch to the store.

Transactions and wallets are written by two independent operations that run
concurrently. Both are awaited before the batch is settled; the first failure
is raised. There is no cross-table transaction: a wallet write failure leaves
already written transactions in place and the job is redelivered.
"""
import asyncio
import logging
from typing import List, Optional

from jobs import JobQueue, WALLET_UPDATE
from .exceptions import InvariantError
from .models import Chain, Transaction, Wallet

logger = logging.getLogger(__name__)


class PersistenceCoordinator:
    """Writes transactions and wallets, then queues wallet update jobs."""

    def __init__(self, store, jobs: Optional[JobQueue] = None) -> None:
        self.store = store
        self.jobs = jobs

    async def save_transactions(self, transactions: List[Transaction]) -> int:
        logger.debug(f"Saving {len(transactions)} transactions to database")
        return await self.store.update_transactions(transactions)

    async def save_wallets(self, wallets: List[Wallet]) -> None:
        """Write ``lastUsed`` of both chains for every wallet and notify dependants.

        Raises:
            InvariantError: If there is no wallet to save
        """
        if not wallets:
            raise InvariantError("No wallets affected")

        results = await asyncio.gather(
            *(
                self.store.set_wallet_last_used(
                    wallet.id, chain, wallet.derivation_params.for_chain(chain).last_used
                )
                for wallet in wallets
                for chain in Chain
            ),
            return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            logger.error(f"Wallet save failed: {errors[0]}")
            raise errors[0]

        if self.jobs is None:
            logger.warning("No job queue defined. Not triggering further wallet update jobs.")
            return

        for wallet in wallets:
            await self.jobs.add(WALLET_UPDATE, {'walletId': wallet.id, 'userId': wallet.user_id})

    async def commit(self, transactions: List[Transaction], wallets: List[Wallet]) -> None:
        """Save transactions and wallets, waiting for both before reporting."""
        results = await asyncio.gather(
            self.save_transactions(transactions),
            self.save_wallets(wallets),
            return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        for error in errors:
            logger.error(f"Saving batch failed: {error}")
        if errors:
            raise errors[0]
        logger.info(f"Saved {len(transactions)} transactions and {len(wallets)} wallets")
