"""Database module for the worker's CockroachDB/PostgreSQL connection.

One asyncpg pool per process. Every pooled connection decodes json and jsonb
columns into Python objects, so transfer details, derivation params and job
data come back as dicts. The schema is brought up to date when the pool is
created.
"""

import json
import logging
import ssl
from typing import Optional, Dict, Any
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs

from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_db_url: Optional[str] = None

# Query parameters consumed here rather than passed on to asyncpg
_LOCAL_PARAMS = ('sslmode', 'ssl')

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for CockroachDB Cloud connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Build asyncpg connect arguments from the query string of the URL."""
    params = parse_qs(urlparse(db_url).query)

    kwargs: Dict[str, Any] = {
        'server_settings': {'statement_timeout': '300000'}
    }
    if params.get('sslmode', [''])[0] != 'disable':
        kwargs['ssl'] = _get_ssl_context()

    kwargs.update(
        (key, values[0]) for key, values in params.items() if key not in _LOCAL_PARAMS
    )
    return kwargs

async def _init_connection(conn: asyncpg.Connection) -> None:
    for type_name in ('json', 'jsonb'):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema='pg_catalog'
        )

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(db_url: Optional[str] = None, min_size: int = 1, max_size: int = 10) -> None:
    """Create the connection pool and apply pending schema versions.

    Args:
        db_url: Database URL. Falls back to the URL of the previous call.
        min_size: Minimum number of pooled connections
        max_size: Maximum number of pooled connections

    Raises:
        ValueError: If no database URL is known
        DatabaseSchemaError: If the schema could not be applied
    """
    global _pool, _db_url

    url = db_url or _db_url
    if not url:
        raise ValueError("Database URL not provided")
    _db_url = url

    logger.info(f"Connecting to {urlparse(url).hostname} (pool {min_size}-{max_size})")
    pool = await asyncpg.create_pool(
        url,
        min_size=min_size,
        max_size=max_size,
        max_inactive_connection_lifetime=300.0,
        command_timeout=60.0,
        init=_init_connection,
        **_get_connection_kwargs(url)
    )

    try:
        await SchemaManager(pool).initialize()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        await pool.close()
        raise

    _pool = pool

async def get_pool() -> asyncpg.Pool:
    """Get the connection pool, creating it from the last known URL if needed."""
    if not _pool:
        await init_db()
    if not _pool:
        raise RuntimeError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")

__all__ = ['init_db', 'get_pool', 'close']
