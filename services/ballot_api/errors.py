"""
Exceptions raised by the ballot store, the vote recorder and the status reader.

The recorder never lets these escape: it turns them into a VoteResult at the
transaction boundary. The status reader and the catalog resolver propagate
them to the API layer, which maps them to HTTP status codes.
"""
from typing import Optional

from .models import ErrorKind


class VoteError(Exception):
    """Base class for classified ballot failures."""

    kind: ErrorKind = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(VoteError):
    """A voter, candidate or position did not resolve at transaction time."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, ident=None):
        if ident is None:
            message = f"{entity.capitalize()} not found"
        else:
            message = f"{entity.capitalize()} {ident} not found"
        super().__init__(message)
        self.entity = entity
        self.ident = ident


class AlreadyVotedError(VoteError):
    """A ballot already exists for this voter and position."""

    kind = ErrorKind.ALREADY_VOTED

    def __init__(self, position: Optional[str]):
        if position:
            message = f"You have already voted for {position}"
        else:
            message = "You have already voted for this position"
        super().__init__(message)
        self.position = position


class NotEligibleError(VoteError):
    """The account exists but its role may not cast ballots."""

    kind = ErrorKind.NOT_ELIGIBLE

    def __init__(self, voter_id: int, role: str):
        super().__init__(f"Account {voter_id} has role '{role}' and cannot vote")
        self.voter_id = voter_id
        self.role = role


class StoreUnavailableError(VoteError):
    """The transaction could not start, commit, or finish in time."""

    kind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, message: str = "Ballot store unavailable, please retry"):
        super().__init__(message)


class CatalogError(Exception):
    """The position catalog could not be resolved."""
    pass
