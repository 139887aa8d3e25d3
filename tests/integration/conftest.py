"""Pytest fixtures for integration tests.

These tests run against a real PostgreSQL server; the row locks, unique
constraints and triggers under test only exist there. Connection details
come from the usual POSTGRES_* environment variables. If the server cannot
be reached the tests are skipped.

Every test starts from a freshly created schema seeded with the demo roster.
"""

import asyncio
import os
from typing import AsyncGenerator, Dict, List

import asyncpg
import psycopg2
import pytest
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from ballot_api.catalog import PositionCatalog, resolve_catalog
from ballot_api.config import Settings
from ballot_api.database import Database
from ballot_api.recorder import VoteRecorder
from ballot_api.seed import reset_schema, seed_demo_election
from ballot_api.status import VoterStatusReader

POSITIONS = ["President", "Vice President", "Secretary", "Treasurer"]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: requires a running PostgreSQL server")
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Settings pointed at the test database with small pools and short timeouts."""
    return Settings(
        POSTGRES_HOST=os.getenv("POSTGRES_HOST", "localhost"),
        POSTGRES_PORT=int(os.getenv("POSTGRES_PORT", "5432")),
        POSTGRES_DB=os.getenv("POSTGRES_DB", "voting_system"),
        POSTGRES_USER=os.getenv("POSTGRES_USER", "election_user"),
        POSTGRES_PASSWORD=os.getenv("POSTGRES_PASSWORD", "election_pass"),
        POSTGRES_POOL_MIN_SIZE=1,
        POSTGRES_POOL_MAX_SIZE=10,
        POSTGRES_ACQUIRE_TIMEOUT=5.0,
        POSTGRES_LOCK_TIMEOUT_MS=2000,
        POSTGRES_STATEMENT_TIMEOUT_MS=5000,
        POSITION_CATALOG=POSITIONS,
    )


async def open_database(settings: Settings) -> Database:
    """Initialize a Database, skipping the test when PostgreSQL is unreachable."""
    database = Database(settings)
    try:
        await database.initialize()
    except (OSError, asyncio.TimeoutError, asyncpg.exceptions.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    return database


@pytest.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """Ballot store on a clean schema."""
    db = await open_database(test_settings)
    await reset_schema(db)

    yield db

    await db.close()


@pytest.fixture
async def election(database: Database) -> Dict[str, List[int]]:
    """Demo roster: ten voters, one admin, two candidates per office.

    Candidates are returned in DEMO_CANDIDATES order, so
    ``candidates[0:2]`` contest President, ``[2:4]`` Vice President,
    ``[4:6]`` Secretary and ``[6:8]`` Treasurer.
    """
    return await seed_demo_election(database, voter_count=10)


@pytest.fixture
async def catalog(database: Database, test_settings: Settings, election) -> PositionCatalog:
    """Snapshot of the configured catalog."""
    return await resolve_catalog(database, "static", test_settings.POSITION_CATALOG)


@pytest.fixture
def recorder(database: Database, catalog: PositionCatalog) -> VoteRecorder:
    """Recorder without retries, so every store failure is observable."""
    return VoteRecorder(database, catalog, max_retries=0)


@pytest.fixture
def status_reader(database: Database, catalog: PositionCatalog) -> VoterStatusReader:
    return VoterStatusReader(database, catalog)


@pytest.fixture
def postgres_connection(test_settings: Settings, database):
    """PostgreSQL connection for direct database operations.

    Yields a psycopg2 connection for test assertions and setup. It runs in
    autocommit mode so it always sees the latest committed state.
    """
    conn = psycopg2.connect(
        host=test_settings.POSTGRES_HOST,
        port=test_settings.POSTGRES_PORT,
        dbname=test_settings.POSTGRES_DB,
        user=test_settings.POSTGRES_USER,
        password=test_settings.POSTGRES_PASSWORD
    )
    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)

    yield conn

    conn.close()


@pytest.fixture
def postgres_client(postgres_connection):
    """PostgreSQL cursor for executing queries."""
    cursor = postgres_connection.cursor()
    yield cursor
    cursor.close()


@pytest.fixture
def vote_count(postgres_client):
    """Read a candidate's committed tally."""
    def _vote_count(candidate_id: int) -> int:
        postgres_client.execute("SELECT vote_count FROM candidates WHERE id = %s", (candidate_id,))
        return postgres_client.fetchone()[0]
    return _vote_count


@pytest.fixture
def ballot_count(postgres_client):
    """Count committed ballots for a voter, optionally for one position."""
    def _ballot_count(voter_id: int, position: str = None) -> int:
        if position is None:
            postgres_client.execute("SELECT COUNT(*) FROM ballots WHERE voter_id = %s", (voter_id,))
        else:
            postgres_client.execute(
                "SELECT COUNT(*) FROM ballots WHERE voter_id = %s AND position = %s",
                (voter_id, position)
            )
        return postgres_client.fetchone()[0]
    return _ballot_count


@pytest.fixture
async def impatient_database(test_settings: Settings, database) -> AsyncGenerator[Database, None]:
    """Second ballot store on the same schema that gives up on row locks after 200ms."""
    db = await open_database(test_settings.model_copy(update={"POSTGRES_LOCK_TIMEOUT_MS": 200}))

    yield db

    await db.close()
