"""
Vote recorder: decides and commits one ballot as a single transaction.

Within one transaction the recorder:
1. Locks the voter row (FOR UPDATE). All transactions of one voter
   serialize here.
2. Resolves the candidate and the position they contest.
3. Rejects a second ballot for the same (voter, position).
4. Inserts the ballot, bumps the candidate tally and refreshes the voter's
   completion flag.

The UNIQUE (voter_id, position) constraint on ballots backs up step 3. If it
ever fires, the insert is reported as AlreadyVoted, never as a generic
failure.
"""
import asyncio
import logging
import time
from typing import Optional

import asyncpg
from prometheus_client import Counter, Histogram

from .catalog import PositionCatalog
from .errors import (
    AlreadyVotedError,
    NotEligibleError,
    NotFoundError,
    StoreUnavailableError,
    VoteError,
)
from .models import MAX_ROW_ID, ErrorKind, Role, VoteResult

logger = logging.getLogger(__name__)

# Prometheus metrics
ballots_cast = Counter(
    "ballots_cast_total",
    "Total number of ballots committed",
    ["position"]
)
vote_rejections = Counter(
    "vote_rejections_total",
    "Total number of votes rejected",
    ["error"]
)
transaction_duration = Histogram(
    "vote_transaction_duration_seconds",
    "Time spent in the vote-recording transaction",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)


class VoteRecorder:
    """Records position-scoped ballots atomically."""

    def __init__(
        self,
        database,
        catalog: PositionCatalog,
        max_retries: int = 0,
        retry_delay: float = 0.1
    ):
        self.database = database
        self.catalog = catalog
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def cast_vote(self, voter_id: int, candidate_id: int) -> VoteResult:
        """
        Cast ``voter_id``'s ballot for ``candidate_id``.

        Never raises for classified failures: the result carries either the
        committed ballot or the reason it was rejected. Store outages are
        retried up to ``max_retries`` times; a retry after an ambiguous
        commit observes AlreadyVoted.

        Args:
            voter_id: Voter account id
            candidate_id: Candidate id

        Returns:
            VoteResult: success with the completion state, or a typed failure
        """
        attempt = 0
        while True:
            started = time.perf_counter()
            result = await self._cast_vote_once(voter_id, candidate_id)
            transaction_duration.observe(time.perf_counter() - started)

            if result.error != ErrorKind.STORE_UNAVAILABLE or attempt >= self.max_retries:
                break

            attempt += 1
            logger.warning(
                f"Retrying vote voter={voter_id} candidate={candidate_id} "
                f"after store failure (attempt {attempt}/{self.max_retries})"
            )
            await asyncio.sleep(self.retry_delay)

        if result.success:
            ballots_cast.labels(position=result.position).inc()
        else:
            vote_rejections.labels(error=result.error.value).inc()
        return result

    async def _cast_vote_once(self, voter_id: int, candidate_id: int) -> VoteResult:
        position: Optional[str] = None
        try:
            async with self.database.transaction() as conn:
                await self._lock_voter(conn, voter_id)
                position = await self._resolve_position(conn, candidate_id)

                if await self._has_ballot(conn, voter_id, position):
                    raise AlreadyVotedError(position)

                ballot_id = await self._insert_ballot(conn, voter_id, candidate_id, position)
                await self._increment_tally(conn, candidate_id)
                completed = await self._refresh_completion(conn, voter_id)

        except VoteError as e:
            log = logger.error if isinstance(e, StoreUnavailableError) else logger.info
            log(f"Vote rejected: voter={voter_id} candidate={candidate_id}: {e.message}")
            return VoteResult.rejected(e, position)

        except asyncpg.exceptions.UniqueViolationError:
            # Lost a race the row lock should have prevented; the store's
            # constraint is authoritative.
            logger.warning(
                f"Ballot uniqueness constraint rejected voter={voter_id} position={position}"
            )
            return VoteResult.rejected(AlreadyVotedError(position), position)

        except asyncpg.exceptions.DataError as e:
            # An id outside the int4 column range cannot name any row.
            entity = "voter" if not 0 < voter_id <= MAX_ROW_ID else "candidate"
            ident = voter_id if entity == "voter" else candidate_id
            logger.info(f"Vote rejected: voter={voter_id} candidate={candidate_id}: {e}")
            return VoteResult.rejected(NotFoundError(entity, ident), position)

        except asyncpg.exceptions.ForeignKeyViolationError as e:
            entity = "voter" if e.constraint_name == "ballots_voter_id_fkey" else "candidate"
            ident = voter_id if entity == "voter" else candidate_id
            logger.warning(f"Ballot reference vanished mid-transaction: {e}")
            return VoteResult.rejected(NotFoundError(entity, ident), position)

        logger.info(
            f"Vote recorded: voter={voter_id} candidate={candidate_id} "
            f"position={position} ballot={ballot_id} completed={completed}"
        )
        return VoteResult.committed(position, ballot_id, completed)

    async def _lock_voter(self, conn, voter_id: int):
        voter = await conn.fetchrow(
            "SELECT id, role FROM voters WHERE id = $1 FOR UPDATE",
            voter_id
        )
        if voter is None:
            raise NotFoundError("voter", voter_id)
        if voter["role"] != Role.VOTER.value:
            raise NotEligibleError(voter_id, voter["role"])

    async def _resolve_position(self, conn, candidate_id: int) -> str:
        # FOR KEY SHARE blocks deleting the candidate or changing its position.
        candidate = await conn.fetchrow(
            "SELECT id, position FROM candidates WHERE id = $1 FOR KEY SHARE",
            candidate_id
        )
        if candidate is None:
            raise NotFoundError("candidate", candidate_id)

        position = candidate["position"]
        if position not in self.catalog:
            raise NotFoundError("position", position)
        return position

    async def _has_ballot(self, conn, voter_id: int, position: str) -> bool:
        existing = await conn.fetchval(
            "SELECT id FROM ballots WHERE voter_id = $1 AND position = $2",
            voter_id, position
        )
        return existing is not None

    async def _insert_ballot(self, conn, voter_id: int, candidate_id: int, position: str) -> int:
        return await conn.fetchval(
            """
            INSERT INTO ballots (voter_id, candidate_id, position, cast_at)
            VALUES ($1, $2, $3, NOW())
            RETURNING id
            """,
            voter_id, candidate_id, position
        )

    async def _increment_tally(self, conn, candidate_id: int):
        status = await conn.execute(
            "UPDATE candidates SET vote_count = vote_count + 1 WHERE id = $1",
            candidate_id
        )
        if status != "UPDATE 1":
            raise NotFoundError("candidate", candidate_id)

    async def _refresh_completion(self, conn, voter_id: int) -> bool:
        rows = await conn.fetch(
            "SELECT DISTINCT position FROM ballots WHERE voter_id = $1",
            voter_id
        )
        completed = self.catalog.is_complete(row["position"] for row in rows)
        if completed:
            await conn.execute(
                "UPDATE voters SET has_voted = TRUE WHERE id = $1 AND NOT has_voted",
                voter_id
            )
        return completed
