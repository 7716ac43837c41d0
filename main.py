import asyncio
import signal
import sys
import logging
from typing import Any, Dict, Optional

from config import load_config, SettingsError
from database import init_db, get_pool, close as db_close
from database.store import TransferStore
from jobs import JobQueue
from prices import PriceClient
from processor import CurrencyValuation, TransactionPipeline
from workers.connect_transactions import ConnectTransactionsWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def build_worker(settings: Dict[str, Any], pool) -> ConnectTransactionsWorker:
    """Wire store, price client, pipeline and job queue for one process."""
    store = TransferStore(pool)
    jobs = JobQueue(
        pool,
        max_attempts=settings['max_job_attempts'],
        visibility_timeout=settings['job_timeout']
    )

    client: Optional[PriceClient] = None
    if settings['price_api_url']:
        client = PriceClient(
            settings['price_api_url'],
            asset=settings['price_asset'],
            timeout=settings['price_timeout']
        )
        logger.info(f"Valuing transactions in {', '.join(settings['base_currencies'])}")
    else:
        logger.warning("No price_api_url configured. Transactions are stored without base volume.")

    pipeline = TransactionPipeline(
        store,
        valuation=CurrencyValuation(client, settings['base_currencies']),
        jobs=jobs
    )
    return ConnectTransactionsWorker(store, pipeline, jobs)

async def main(config_path: Optional[str] = None):
    """Main application entry point."""
    settings = load_config(config_path)

    try:
        logger.info("Initializing database...")
        await init_db(
            settings['db_url'],
            min_size=settings['db_pool_min_size'],
            max_size=settings['db_pool_max_size']
        )
        pool = await get_pool()

        worker = build_worker(settings, pool)

        def handle_shutdown(signum, frame):
            """Handle shutdown signals gracefully."""
            logger.info("Shutdown signal received. Finishing current job...")
            worker.stop()

        signal.signal(signal.SIGINT, handle_shutdown)
        signal.signal(signal.SIGTERM, handle_shutdown)

        logger.info("Transaction processor started.")
        await worker.run(settings['poll_interval'])

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await db_close()

if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
    except SettingsError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass
