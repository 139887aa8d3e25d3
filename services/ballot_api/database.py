"""PostgreSQL ballot store: connection pool, scoped transactions and read queries."""
import asyncio
import logging
from contextlib import asynccontextmanager
from importlib import resources
from typing import AsyncIterator, Dict, List, Optional, Sequence

import asyncpg

from .config import Settings
from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Failures that say nothing about the vote itself: the work was rolled back
# (or never started) and the whole operation may be retried.
TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    OSError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.QueryCanceledError,
    asyncpg.exceptions.LockNotAvailableError,
    asyncpg.exceptions.TransactionRollbackError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)

_TABLES = ("ballots", "position_catalog", "candidates", "voters")


def load_schema() -> str:
    """Return the DDL shipped with the package."""
    return resources.files(__package__).joinpath("schema.sql").read_text(encoding="utf-8")


class Database:
    """Async PostgreSQL ballot store.

    The instance owns its pool. Callers borrow connections only through
    ``transaction()`` and ``connection()``, which always hand the connection
    back and end every transaction in either COMMIT or ROLLBACK.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize database connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.settings.postgres_dsn,
                min_size=self.settings.POSTGRES_POOL_MIN_SIZE,
                max_size=self.settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=self.settings.POSTGRES_COMMAND_TIMEOUT,
                server_settings={
                    "application_name": self.settings.SERVICE_NAME,
                    "statement_timeout": str(self.settings.POSTGRES_STATEMENT_TIMEOUT_MS),
                    "lock_timeout": str(self.settings.POSTGRES_LOCK_TIMEOUT_MS),
                },
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            # Verify connection
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                logger.info("PostgreSQL connection verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Borrow a connection and run the block in one transaction.

        Leaving the block normally commits. Any exception rolls back and is
        re-raised; transient store failures are re-raised as
        StoreUnavailableError.
        """
        if self.pool is None:
            raise StoreUnavailableError("Database pool is not initialized")
        try:
            async with self.pool.acquire(timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT) as conn:
                async with conn.transaction():
                    yield conn
        except TRANSIENT_ERRORS as e:
            logger.error(f"Transaction aborted by store failure: {e!r}")
            raise StoreUnavailableError() from e

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection for read-only, autocommit queries."""
        if self.pool is None:
            raise StoreUnavailableError("Database pool is not initialized")
        try:
            async with self.pool.acquire(timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT) as conn:
                yield conn
        except TRANSIENT_ERRORS as e:
            logger.error(f"Read aborted by store failure: {e!r}")
            raise StoreUnavailableError() from e

    async def create_schema(self):
        """Apply schema.sql (idempotent)."""
        async with self.transaction() as conn:
            await conn.execute(load_schema())
        logger.info("Ballot schema applied")

    async def drop_schema(self):
        """Drop every ballot table. Used by the bootstrap script and tests."""
        async with self.transaction() as conn:
            for table in _TABLES:
                await conn.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
        logger.warning("Ballot schema dropped")

    async def get_candidates(self, position: Optional[str] = None) -> List[Dict]:
        """Get candidates with their tallies, most votes first."""
        async with self.connection() as conn:
            if position is None:
                query = """
                    SELECT id, name, position, description, vote_count
                    FROM candidates
                    ORDER BY vote_count DESC, id
                """
                rows = await conn.fetch(query)
            else:
                query = """
                    SELECT id, name, position, description, vote_count
                    FROM candidates
                    WHERE position = $1
                    ORDER BY vote_count DESC, id
                """
                rows = await conn.fetch(query, position)
            return [dict(row) for row in rows]

    async def get_candidate(self, candidate_id: int) -> Optional[Dict]:
        """Get a single candidate or None."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, name, position, description, vote_count
                FROM candidates
                WHERE id = $1
                """,
                candidate_id
            )
            return dict(row) if row else None

    async def get_results(self, positions: Sequence[str]) -> Dict:
        """
        Get tallies grouped by position, in catalog order.

        Args:
            positions: Catalog positions to report on

        Returns:
            Dictionary with per-position candidate tallies and percentages
        """
        candidates = await self.get_candidates()

        by_position = {position: [] for position in positions}
        for candidate in candidates:
            if candidate["position"] in by_position:
                by_position[candidate["position"]].append(candidate)

        report = []
        for position in positions:
            rows = by_position[position]
            total_votes = sum(row["vote_count"] for row in rows)
            report.append({
                "position": position,
                "total_votes": total_votes,
                "candidates": [
                    {
                        "candidate_id": row["id"],
                        "name": row["name"],
                        "votes": row["vote_count"],
                        "percentage": round(row["vote_count"] / total_votes * 100, 2)
                        if total_votes > 0 else 0.0
                    }
                    for row in rows
                ]
            })

        return {
            "positions": report,
            "total_ballots": sum(entry["total_votes"] for entry in report)
        }

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire(timeout=self.settings.POSTGRES_ACQUIRE_TIMEOUT) as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                self.pool = None
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")
