"""Pydantic models for request/response validation."""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from .models import MAX_ROW_ID


class CastVoteRequest(BaseModel):
    """Ballot submission request model."""

    voter_id: int = Field(..., gt=0, le=MAX_ROW_ID, description="Voter account ID")
    candidate_id: int = Field(..., gt=0, le=MAX_ROW_ID, description="Candidate ID")

    class Config:
        json_schema_extra = {
            "example": {
                "voter_id": 1,
                "candidate_id": 10
            }
        }


class CastVoteResponse(BaseModel):
    """Ballot submission response model, returned for success and rejection alike."""

    success: bool = Field(..., description="True when the ballot was recorded")
    position: Optional[str] = Field(default=None, description="Position the ballot counts toward")
    error: Optional[str] = Field(default=None, description="not_found, already_voted, not_eligible or store_unavailable")
    entity: Optional[str] = Field(default=None, description="Missing record for not_found errors")
    completed: bool = Field(default=False, description="Voter has voted for every position")
    ballot_id: Optional[int] = Field(default=None, description="Committed ballot ID")
    message: str = Field(default="", description="Response message")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "position": "President",
                "error": "already_voted",
                "entity": None,
                "completed": False,
                "ballot_id": None,
                "message": "You have already voted for President"
            }
        }


class VotedPositionsResponse(BaseModel):
    """Positions a voter has already voted for."""

    voter_id: int
    positions: list[str] = Field(..., description="Voted positions in catalog order")


class VotingProgressResponse(BaseModel):
    """Voter progress through the position catalog."""

    voter_id: int
    voted_count: int
    total_count: int
    remaining_positions: list[str]
    percentage: float
    completed: bool

    class Config:
        json_schema_extra = {
            "example": {
                "voter_id": 1,
                "voted_count": 1,
                "total_count": 4,
                "remaining_positions": ["Vice President", "Secretary", "Treasurer"],
                "percentage": 25.0,
                "completed": False
            }
        }


class BallotInfo(BaseModel):
    """A committed ballot with candidate details."""

    ballot_id: int
    candidate_id: int
    candidate_name: str
    position: str
    cast_at: datetime


class CandidateInfo(BaseModel):
    """Candidate information model."""

    id: int
    name: str
    position: str
    description: str = ""
    vote_count: int


class PositionsResponse(BaseModel):
    """The position catalog in play."""

    positions: list[str]


class ElectionResultsResponse(BaseModel):
    """Tallies grouped by position."""

    positions: list[dict]  # List of {position, total_votes, candidates}
    total_ballots: int


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "services": {
                    "postgresql": "connected"
                },
                "timestamp": "2024-01-15T10:30:00"
            }
        }


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")
