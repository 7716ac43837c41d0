"""Shared fixtures: in-memory stand-ins for the store, job queue, price service and pool."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from database.exceptions import BulkWriteError
from prices import PriceNotFoundError
from processor.models import (
    Address,
    AddressDerivationParams,
    Chain,
    ChainState,
    InOutput,
    Transaction,
    TransactionDetails,
    Wallet,
    WalletDerivationParams,
)

USER_ID = "user-1"
TX_DATE = datetime(2016, 3, 1, 12, 0, tzinfo=timezone.utc)
NOW = datetime(2016, 3, 2, 8, 30, tzinfo=timezone.utc)


class FakeStore:
    """Dictionary backed TransferStore."""

    def __init__(self):
        self.addresses: Dict[str, Address] = {}
        self.wallets: Dict[str, Wallet] = {}
        self.transactions: Dict[str, Transaction] = {}
        self.wallet_writes: List[tuple] = []
        self.failing_transactions = set()
        self.wallet_write_error: Optional[Exception] = None
        self.lookup_error: Optional[Exception] = None

    def add_wallet(self, wallet_id: str, label: Optional[str] = None, user_id: str = USER_ID,
                   main: int = -1, change: int = -1) -> Wallet:
        wallet = Wallet(
            id=wallet_id,
            user_id=user_id,
            label=label,
            derivation_params=WalletDerivationParams(
                main=ChainState(last_used=main),
                change=ChainState(last_used=change)
            )
        )
        self.wallets[wallet_id] = wallet
        return wallet

    def add_address(self, address: str, wallet_id: Optional[str], chain: Optional[str] = "main",
                    order: Optional[int] = 0, user_id: str = USER_ID,
                    derivation: bool = True) -> Address:
        record = Address(
            id=f"addr-{address}",
            address=address,
            user_id=user_id,
            wallet_id=wallet_id,
            derivation_params=AddressDerivationParams(chain=chain, order=order) if derivation else None
        )
        self.addresses[record.id] = record
        return record

    def add_transaction(self, tx_id: str, inputs: List[tuple], outputs: List[tuple],
                        user_id: str = USER_ID, date: Optional[datetime] = TX_DATE) -> Transaction:
        transaction = Transaction(
            id=tx_id,
            user_id=user_id,
            date=date,
            details=TransactionDetails(
                inputs=[InOutput(note=note, amount=amount) for note, amount in inputs],
                outputs=[InOutput(note=note, amount=amount) for note, amount in outputs]
            )
        )
        self.transactions[tx_id] = transaction
        return transaction

    async def find_transactions(self, user_id, addresses):
        wanted = set(addresses)
        return [
            transaction.model_copy(deep=True)
            for transaction in self.transactions.values()
            if transaction.user_id == user_id
            and any(entry.note in wanted for entry in transaction.details.entries())
        ]

    async def find_addresses(self, user_id, addresses):
        wanted = set(addresses)
        return [
            record.model_copy(deep=True)
            for record in self.addresses.values()
            if record.user_id == user_id and record.address in wanted
        ]

    async def find_address_ids(self, user_id, addresses):
        return {record.address: record.id for record in await self.find_addresses(user_id, addresses)}

    async def find_wallets(self, user_id, wallet_ids):
        wanted = set(wallet_ids)
        return [
            wallet.model_copy(deep=True)
            for wallet in self.wallets.values()
            if wallet.user_id == user_id and wallet.id in wanted
        ]

    async def get_address(self, address_id):
        if self.lookup_error:
            raise self.lookup_error
        record = self.addresses.get(address_id)
        return record.model_copy(deep=True) if record else None

    async def get_wallet(self, wallet_id):
        wallet = self.wallets.get(wallet_id)
        return wallet.model_copy(deep=True) if wallet else None

    async def update_transactions(self, transactions):
        failures = []
        for transaction in transactions:
            if transaction.id in self.failing_transactions:
                failures.append((transaction.id, RuntimeError("write conflict")))
                continue
            self.transactions[transaction.id] = transaction.model_copy(deep=True)
        if failures:
            raise BulkWriteError(failures, len(transactions))
        return len(transactions)

    async def set_wallet_last_used(self, wallet_id, chain, last_used):
        if self.wallet_write_error:
            raise self.wallet_write_error
        self.wallet_writes.append((wallet_id, Chain(chain), last_used))
        self.wallets[wallet_id].derivation_params.for_chain(chain).last_used = last_used


class FakeJobQueue:
    """Records queued jobs."""

    def __init__(self):
        self.added: List[tuple] = []
        self.running = True

    async def add(self, job_type: str, data: Dict[str, Any]):
        self.added.append((job_type, data))
        return len(self.added)

    def stop(self):
        self.running = False

    def of_type(self, job_type: str) -> List[Dict[str, Any]]:
        return [data for added_type, data in self.added if added_type == job_type]


class FakePriceClient:
    """Price client with fixed prices per currency."""

    def __init__(self, prices: Dict[str, str]):
        self.prices = {currency: Decimal(price) for currency, price in prices.items()}
        self.calls: List[tuple] = []

    def convert(self, amount, currency, on):
        self.calls.append((currency, on))
        if currency not in self.prices:
            raise PriceNotFoundError(f"No XBT price in {currency} response", currency)
        return Decimal(str(amount)) * self.prices[currency]


class FakeConnection:
    def __init__(self):
        self.execute = AsyncMock(return_value="UPDATE 1")
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)


class _Acquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class FakePool:
    """asyncpg pool handing out a single mocked connection."""

    def __init__(self):
        self.conn = FakeConnection()

    def acquire(self):
        return _Acquire(self.conn)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def price_client():
    return FakePriceClient({"EUR": "400.50", "USD": "435.25"})


@pytest.fixture
def fake_pool():
    return FakePool()
