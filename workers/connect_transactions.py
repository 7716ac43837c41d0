"""Worker connecting transfers to wallets for addresses whose ledger changed."""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from database.store import TransferStore
from jobs import JobQueue, CONNECT_TRANSACTIONS, ADDRESSES_UPDATE
from processor import TransactionPipeline, JobValidationError, InvariantError
from processor.models import ConnectTransactionsJob

logger = logging.getLogger(__name__)

# Errors that will not go away by delivering the job again
PERMANENT_ERRORS = (JobValidationError, InvariantError)

def validate_job_data(data: Any) -> ConnectTransactionsJob:
    """Check an ``addresses.connectTransactions`` payload.

    Raises:
        JobValidationError: Naming the first missing or malformed field
    """
    if not isinstance(data, dict):
        logger.error("Got job without data")
        raise JobValidationError("Job data must be an object.")
    if data.get('addresses') is None:
        logger.error("Got job without addresses")
        raise JobValidationError("No addresses to work on.", 'addresses')
    if not data.get('userId'):
        logger.error("Job without user id.")
        raise JobValidationError("Invalid User Id.", 'userId')
    if not data.get('walletId'):
        logger.error("Job without wallet id.")
        raise JobValidationError("No Wallet Id provided.", 'walletId')

    try:
        return ConnectTransactionsJob.model_validate(data)
    except ValidationError as e:
        field = '.'.join(str(part) for part in e.errors()[0]['loc'])
        raise JobValidationError(f"Invalid job data: {field}", field) from e

class ConnectTransactionsWorker:
    """Consumes ``addresses.connectTransactions`` jobs one at a time."""

    def __init__(self, store: TransferStore, pipeline: TransactionPipeline, jobs: JobQueue):
        self.store = store
        self.pipeline = pipeline
        self.jobs = jobs

    async def handle(self, data: Dict[str, Any]) -> None:
        """Process one job payload. Raises on failure so the job is marked failed."""
        job = validate_job_data(data)
        logger.info(f"Processing transactions for {len(job.addresses)} addresses")

        transactions = await self.store.find_transactions(job.user_id, job.addresses)
        if not transactions:
            logger.warning("No transactions found for addresses")
            return

        await self.pipeline.process(job.user_id, transactions)
        await self.jobs.add(ADDRESSES_UPDATE, {'addresses': job.addresses, 'userId': job.user_id})

    async def run(self, poll_interval: float = 5) -> None:
        """Main worker loop."""
        logger.info("Connect transactions worker starting up")
        await self.jobs.process(
            CONNECT_TRANSACTIONS,
            self.handle,
            poll_interval=poll_interval,
            permanent_errors=PERMANENT_ERRORS
        )

    def stop(self) -> None:
        self.jobs.stop()

