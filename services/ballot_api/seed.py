"""
Schema bootstrap and demo roster for local runs and tests.

Account registration and credential policy belong to the surrounding
application; the credentials written here are placeholders so the voters
table can be populated.
"""
import hashlib
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .database import Database

logger = logging.getLogger(__name__)

DEMO_CANDIDATES = [
    ("Alice Moreau", "President", "Platform: transparent budgets"),
    ("Bruno Tremblay", "President", "Platform: campus housing"),
    ("Chloe Nguyen", "Vice President", "Platform: student clubs"),
    ("Daniel Okafor", "Vice President", "Platform: mental health services"),
    ("Emma Rossi", "Secretary", "Platform: open meeting minutes"),
    ("Farid Haddad", "Secretary", "Platform: digital records"),
    ("Grace Liu", "Treasurer", "Platform: audited spending"),
    ("Hugo Schmidt", "Treasurer", "Platform: lower fees"),
]


def hash_credential(name: str, secret: str) -> str:
    """
    Derive an opaque credential value for a seeded account.

    Args:
        name: Account name
        secret: Plain secret

    Returns:
        str: Hexadecimal SHA-256 digest
    """
    return hashlib.sha256(f"{name}|{secret}".encode("utf-8")).hexdigest()


async def reset_schema(database: Database):
    """Drop and recreate every ballot table."""
    await database.drop_schema()
    await database.create_schema()


async def add_voters(
    database: Database,
    names: Iterable[str],
    role: str = "voter",
    secret: str = "changeme"
) -> List[int]:
    """Insert accounts and return their ids in input order."""
    ids = []
    async with database.transaction() as conn:
        for name in names:
            voter_id = await conn.fetchval(
                """
                INSERT INTO voters (name, credential, role)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                name, hash_credential(name, secret), role
            )
            ids.append(voter_id)
    logger.info(f"Added {len(ids)} {role} account(s)")
    return ids


async def add_candidates(
    database: Database,
    candidates: Iterable[Tuple[str, str, str]]
) -> List[int]:
    """Insert (name, position, description) rows and return their ids."""
    ids = []
    async with database.transaction() as conn:
        for name, position, description in candidates:
            candidate_id = await conn.fetchval(
                """
                INSERT INTO candidates (name, position, description)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                name, position, description
            )
            ids.append(candidate_id)
    logger.info(f"Added {len(ids)} candidate(s)")
    return ids


async def seed_demo_election(
    database: Database,
    voter_count: int = 10,
    candidates: Optional[List[Tuple[str, str, str]]] = None
) -> Dict[str, List[int]]:
    """
    Populate an empty schema with a demo roster.

    Returns:
        dict: {"voters": [...], "admins": [...], "candidates": [...]} ids
    """
    voters = await add_voters(database, [f"voter{i:03d}" for i in range(1, voter_count + 1)])
    admins = await add_voters(database, ["admin"], role="admin")
    candidate_ids = await add_candidates(database, candidates or DEMO_CANDIDATES)
    return {"voters": voters, "admins": admins, "candidates": candidate_ids}
