"""Read-only projections of a voter's progress through the position catalog."""
import logging
from typing import Dict, List, Set

import asyncpg

from .catalog import PositionCatalog
from .errors import NotFoundError
from .models import VotingProgress

logger = logging.getLogger(__name__)


class VoterStatusReader:
    """Answers "what has this voter already voted for?" from committed ballots."""

    def __init__(self, database, catalog: PositionCatalog):
        self.database = database
        self.catalog = catalog

    async def get_voted_positions(self, voter_id: int) -> Set[str]:
        """
        Get the distinct positions this voter holds a ballot for.

        Raises:
            NotFoundError: If the voter does not exist
        """
        try:
            async with self.database.connection() as conn:
                # One statement, one snapshot: existence and ballots agree.
                rows = await conn.fetch(
                    """
                    SELECT v.id, b.position
                    FROM voters v
                    LEFT JOIN ballots b ON b.voter_id = v.id
                    WHERE v.id = $1
                    """,
                    voter_id
                )
        except asyncpg.exceptions.DataError as e:
            # Ids outside the int4 range name no voter.
            raise NotFoundError("voter", voter_id) from e

        if not rows:
            logger.debug(f"Status requested for unknown voter {voter_id}")
            raise NotFoundError("voter", voter_id)
        return {row["position"] for row in rows if row["position"] is not None}

    async def get_voting_progress(self, voter_id: int) -> VotingProgress:
        """Derive progress from the voted positions and the catalog."""
        voted = await self.get_voted_positions(voter_id)
        remaining = self.catalog.remaining(voted)
        return VotingProgress(
            voted_count=len(self.catalog) - len(remaining),
            total_count=len(self.catalog),
            remaining_positions=remaining
        )

    async def get_ballots(self, voter_id: int) -> List[Dict]:
        """Get the voter's ballots with candidate details, newest first."""
        try:
            async with self.database.connection() as conn:
                exists = await conn.fetchval("SELECT 1 FROM voters WHERE id = $1", voter_id)
                if not exists:
                    raise NotFoundError("voter", voter_id)

                rows = await conn.fetch(
                    """
                    SELECT b.id AS ballot_id, b.candidate_id, b.position, b.cast_at,
                           c.name AS candidate_name
                    FROM ballots b
                    JOIN candidates c ON c.id = b.candidate_id
                    WHERE b.voter_id = $1
                    ORDER BY b.cast_at DESC, b.id DESC
                    """,
                    voter_id
                )
                return [dict(row) for row in rows]
        except asyncpg.exceptions.DataError as e:
            raise NotFoundError("voter", voter_id) from e
