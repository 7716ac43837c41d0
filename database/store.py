"""Store access for transfers, addresses and wallets.

TransferStore is the only place the pipeline touches SQL. Rows are turned
into the typed records of ``processor.models`` as soon as they are read.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from asyncpg.pool import Pool

from processor.models import Address, Chain, Transaction, Wallet
from . import get_pool
from .exceptions import BulkWriteError

logger = logging.getLogger(__name__)


class TransferStore:
    """Reads and writes the transfers, bitcoinaddresses and bitcoinwallets tables."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        """Initialize the store.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def find_transactions(self, user_id: str, addresses: Iterable[str]) -> List[Transaction]:
        """Get the user's transactions with an input or output on any of the addresses."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT id, user_id, date, details, representation, base_volume, updated_at
                FROM transfers t
                WHERE t.user_id = $1
                AND EXISTS (
                    SELECT 1
                    FROM jsonb_array_elements(
                        COALESCE(t.details->'inputs', '[]'::JSONB) ||
                        COALESCE(t.details->'outputs', '[]'::JSONB)
                    ) AS io
                    WHERE io->>'note' = ANY($2::TEXT[])
                )
                ORDER BY t.date, t.id
                ''',
                user_id,
                list(addresses)
            )
        return [Transaction.model_validate(dict(row)) for row in rows]

    async def find_addresses(self, user_id: str, addresses: Iterable[str]) -> List[Address]:
        """Get the user's address records matching the address strings."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT id, address, user_id, wallet_id, derivation_params
                FROM bitcoinaddresses
                WHERE user_id = $1
                AND address = ANY($2::TEXT[])
                ''',
                user_id,
                list(addresses)
            )
        return [Address.model_validate(dict(row)) for row in rows]

    async def find_address_ids(self, user_id: str, addresses: Iterable[str]) -> Dict[str, str]:
        """Map the user's known address strings to their address ids."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT id, address
                FROM bitcoinaddresses
                WHERE user_id = $1
                AND address = ANY($2::TEXT[])
                ''',
                user_id,
                list(addresses)
            )
        return {row['address']: row['id'] for row in rows}

    async def find_wallets(self, user_id: str, wallet_ids: Iterable[str]) -> List[Wallet]:
        """Get the user's wallets with the given ids."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT id, user_id, label, derivation_params
                FROM bitcoinwallets
                WHERE user_id = $1
                AND id = ANY($2::TEXT[])
                ''',
                user_id,
                list(wallet_ids)
            )
        return [Wallet.model_validate(dict(row)) for row in rows]

    async def get_address(self, address_id: str) -> Optional[Address]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT id, address, user_id, wallet_id, derivation_params
                FROM bitcoinaddresses
                WHERE id = $1
                ''',
                address_id
            )
        return Address.model_validate(dict(row)) if row else None

    async def get_wallet(self, wallet_id: str) -> Optional[Wallet]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT id, user_id, label, derivation_params
                FROM bitcoinwallets
                WHERE id = $1
                ''',
                wallet_id
            )
        return Wallet.model_validate(dict(row)) if row else None

    async def _update_transaction(self, transaction: Transaction) -> None:
        details = transaction.details.model_dump(by_alias=True, mode='json')
        representation = (
            transaction.representation.model_dump(by_alias=True, mode='json')
            if transaction.representation else None
        )
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE transfers
                SET details = jsonb_set(
                        jsonb_set(details, '{inputs}', $2::JSONB),
                        '{outputs}', $3::JSONB
                    ),
                    updated_at = $4,
                    representation = $5::JSONB,
                    base_volume = $6::JSONB,
                    hidden = false
                WHERE id = $1
                ''',
                transaction.id,
                details['inputs'],
                details['outputs'],
                transaction.updated_at,
                representation,
                transaction.base_volume
            )

    async def update_transactions(self, transactions: List[Transaction]) -> int:
        """Write the enrichment fields of every transaction, unordered.

        Each document is updated on its own; a failing document does not stop
        the others from being written.

        Returns:
            Number of documents written

        Raises:
            BulkWriteError: If at least one document failed
        """
        await self.ensure_pool()
        results = await asyncio.gather(
            *(self._update_transaction(transaction) for transaction in transactions),
            return_exceptions=True
        )
        failures = [
            (transaction.id, result)
            for transaction, result in zip(transactions, results)
            if isinstance(result, BaseException)
        ]
        if failures:
            for doc_id, error in failures:
                logger.error(f"Failed to update transaction {doc_id}: {error}")
            raise BulkWriteError(failures, len(transactions))
        return len(transactions)

    async def set_wallet_last_used(self, wallet_id: str, chain: Chain, last_used: int) -> None:
        """Set ``derivationParams.<chain>.lastUsed`` of a wallet."""
        await self.ensure_pool()
        chain_key = Chain(chain).value
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE bitcoinwallets
                SET derivation_params = jsonb_set(
                    derivation_params || jsonb_build_object(
                        $2::TEXT, COALESCE(derivation_params->$2::TEXT, '{}'::JSONB)
                    ),
                    ARRAY[$2::TEXT, 'lastUsed'],
                    to_jsonb($3::INT8)
                )
                WHERE id = $1
                ''',
                wallet_id,
                chain_key,
                last_used
            )
