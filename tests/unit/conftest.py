"""Pytest fixtures for unit tests."""

import pytest

from ballot_api.catalog import PositionCatalog

from .fakes import POSITIONS


@pytest.fixture
def catalog() -> PositionCatalog:
    """The four-office catalog used throughout the tests."""
    return PositionCatalog(POSITIONS)
