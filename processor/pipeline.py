"""The transaction enrichment pipeline.

A batch of one user's transactions goes through five stages:

1. resolve the batch's addresses to address and wallet records
2. advance the wallets' derivation bookkeeping
3. annotate and classify every transaction
4. value the transactions in the reporting currencies
5. persist transactions and wallets

Each stage takes a ``BatchContext`` and returns an updated copy. An exception
in any stage stops the batch before anything is written.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobs import JobQueue
from .classifier import TransactionClassifier
from .ledger import WalletLedgerUpdater
from .models import Address, Transaction, Wallet
from .persistence import PersistenceCoordinator
from .resolver import AddressResolver, collect_addresses
from .valuation import CurrencyValuation

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchContext(BaseModel):
    """State of one batch as it moves through the stages."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    transactions: List[Transaction]
    affected_addresses: List[str] = Field(default_factory=list)
    addresses: List[Address] = Field(default_factory=list)
    address_ids: Dict[str, str] = Field(default_factory=dict)
    wallets: Dict[str, Wallet] = Field(default_factory=dict)


class TransactionPipeline:
    """Runs batches of transactions through the enrichment stages."""

    def __init__(self, store, valuation: Optional[CurrencyValuation] = None,
                 jobs: Optional[JobQueue] = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        """Initialize the pipeline.

        Args:
            store: TransferStore used for all reads and writes
            valuation: Currency valuation, leave out to skip base volumes
            jobs: Queue for wallet update notifications
            clock: Source of the ``updatedAt`` timestamp
        """
        self.resolver = AddressResolver(store)
        self.classifier = TransactionClassifier(store)
        self.valuation = valuation or CurrencyValuation()
        self.persistence = PersistenceCoordinator(store, jobs)
        self.clock = clock

    async def resolve(self, context: BatchContext) -> BatchContext:
        addresses, wallets = await self.resolver.resolve(
            context.user_id, context.affected_addresses
        )
        address_ids = await self.resolver.address_ids(
            context.user_id, context.affected_addresses
        )
        return context.model_copy(update={
            'addresses': addresses,
            'address_ids': address_ids,
            'wallets': {wallet.id: wallet for wallet in wallets}
        })

    def advance_ledger(self, context: BatchContext) -> BatchContext:
        updater = WalletLedgerUpdater(context.addresses, context.wallets.values())
        updater.update_transactions(context.transactions, context.address_ids)
        return context.model_copy(update={'wallets': updater.wallets})

    async def classify(self, context: BatchContext) -> BatchContext:
        transactions = await self.classifier.classify(
            context.transactions, context.address_ids, self.clock()
        )
        return context.model_copy(update={'transactions': transactions})

    def value(self, context: BatchContext) -> BatchContext:
        return context.model_copy(update={
            'transactions': self.valuation.apply(context.transactions)
        })

    async def persist(self, context: BatchContext) -> BatchContext:
        await self.persistence.commit(context.transactions, list(context.wallets.values()))
        return context

    async def process(self, user_id: str, transactions: List[Transaction]) -> BatchContext:
        """Enrich and save a batch of one user's transactions.

        Returns:
            The final batch context

        Raises:
            NotFoundError: If the batch touches none of the user's wallets
            InvariantError: If stored documents are inconsistent
            ValuationError: If a price lookup failed
        """
        context = BatchContext(
            user_id=user_id,
            transactions=transactions,
            affected_addresses=collect_addresses(transactions)
        )
        logger.info(
            f"Processing {len(transactions)} transactions touching "
            f"{len(context.affected_addresses)} addresses for user {user_id}"
        )

        context = await self.resolve(context)
        context = self.advance_ledger(context)
        context = await self.classify(context)
        context = self.value(context)
        return await self.persist(context)
