"""
Position-scoped ballot service.

This package contains:
- VoteRecorder: atomic, race-safe recording of one ballot per voter per position
- VoterStatusReader: read-only projections of a voter's progress
- PositionCatalog: the frozen set of offices in play
- Database: the asyncpg-backed ballot store
"""

from .catalog import PositionCatalog, resolve_catalog
from .database import Database
from .errors import (
    AlreadyVotedError,
    CatalogError,
    NotEligibleError,
    NotFoundError,
    StoreUnavailableError,
    VoteError,
)
from .models import ErrorKind, Role, VoteResult, VotingProgress
from .recorder import VoteRecorder
from .status import VoterStatusReader

__all__ = [
    'PositionCatalog',
    'resolve_catalog',
    'Database',
    'AlreadyVotedError',
    'CatalogError',
    'NotEligibleError',
    'NotFoundError',
    'StoreUnavailableError',
    'VoteError',
    'ErrorKind',
    'Role',
    'VoteResult',
    'VotingProgress',
    'VoteRecorder',
    'VoterStatusReader',
]

__version__ = '1.0.0'
