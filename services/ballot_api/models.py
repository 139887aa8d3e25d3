"""
Domain data structures shared by the recorder, the status reader and the API.

This module contains:
- ErrorKind / Role: string enums used in results and persisted rows
- VoteResult: typed outcome of a single cast_vote call
- VotingProgress: projection of a voter's progress through the catalog
"""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Optional, Dict, Any, List

# Upper bound of the INTEGER (int4) id columns.
MAX_ROW_ID = 2_147_483_647


class ErrorKind(str, Enum):
    """Classified reasons a vote was not recorded."""
    NOT_FOUND = "not_found"
    ALREADY_VOTED = "already_voted"
    NOT_ELIGIBLE = "not_eligible"
    STORE_UNAVAILABLE = "store_unavailable"


class Role(str, Enum):
    """Account roles stored in voters.role."""
    VOTER = "voter"
    ADMIN = "admin"


@dataclass
class VoteResult:
    """
    Outcome of VoteRecorder.cast_vote.

    Attributes:
        success: True when the ballot was committed
        position: Office the candidate contests (None if it never resolved)
        error: Failure classification, None on success
        entity: For NOT_FOUND, which record was missing (voter/candidate/position)
        completed: Voter's completion flag after the transaction
        ballot_id: Id of the committed ballot
        message: Human readable summary
    """
    success: bool
    position: Optional[str] = None
    error: Optional[ErrorKind] = None
    entity: Optional[str] = None
    completed: bool = False
    ballot_id: Optional[int] = None
    message: str = ""

    @classmethod
    def committed(cls, position: str, ballot_id: int, completed: bool) -> 'VoteResult':
        """Build a success result."""
        return cls(
            success=True,
            position=position,
            completed=completed,
            ballot_id=ballot_id,
            message=f"Vote recorded for {position}"
        )

    @classmethod
    def rejected(cls, error: 'VoteError', position: Optional[str] = None) -> 'VoteResult':
        """Build a failure result from a classified exception."""
        return cls(
            success=False,
            position=getattr(error, "position", None) or position,
            error=error.kind,
            entity=getattr(error, "entity", None),
            message=error.message
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        if self.error is not None:
            data["error"] = self.error.value
        return data


@dataclass
class VotingProgress:
    """How far a voter has got through the position catalog."""
    voted_count: int
    total_count: int
    remaining_positions: List[str] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        if self.total_count == 0:
            return 0.0
        return round(self.voted_count / self.total_count * 100, 2)

    @property
    def completed(self) -> bool:
        return self.total_count > 0 and not self.remaining_positions

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["percentage"] = self.percentage
        data["completed"] = self.completed
        return data
