"""Unit tests for the position catalog and its snapshot resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ballot_api.catalog import PositionCatalog, resolve_catalog
from ballot_api.errors import CatalogError

from .fakes import FakeDatabase, POSITIONS


def catalog_connection(snapshot=(), candidate_positions=()):
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="LOCK TABLE")
    conn.executemany = AsyncMock()
    conn.fetch = AsyncMock(side_effect=[
        [{"position": p} for p in snapshot],
        [{"position": p} for p in candidate_positions],
    ])
    return conn


class TestPositionCatalog:
    """Set operations over the catalog."""

    def test_membership_and_order(self, catalog):
        assert "Secretary" in catalog
        assert "Social Chair" not in catalog
        assert list(catalog) == list(POSITIONS)
        assert len(catalog) == 4

    def test_duplicate_positions_rejected(self):
        with pytest.raises(CatalogError):
            PositionCatalog(("President", "President"))

    def test_complete_only_when_every_position_voted(self, catalog):
        assert not catalog.is_complete(["President", "Secretary"])
        assert catalog.is_complete(POSITIONS)
        # Extra positions do not matter.
        assert catalog.is_complete(list(POSITIONS) + ["Social Chair"])

    def test_empty_catalog_is_never_complete(self):
        assert PositionCatalog(()).is_complete([]) is False

    def test_remaining_keeps_catalog_order(self, catalog):
        assert catalog.remaining({"Secretary", "President"}) == ["Vice President", "Treasurer"]
        assert catalog.remaining(POSITIONS) == []

    def test_ordered_filters_to_catalog(self, catalog):
        voted = {"Treasurer", "President", "Social Chair"}
        assert catalog.ordered(voted) == ["President", "Treasurer"]


@pytest.mark.asyncio
class TestResolveCatalog:
    """First-use snapshotting and later reloads."""

    async def test_existing_snapshot_wins(self):
        conn = catalog_connection(snapshot=("President", "Secretary"))
        database = FakeDatabase(conn)

        catalog = await resolve_catalog(database, "static", POSITIONS)

        assert catalog.positions == ("President", "Secretary")
        conn.executemany.assert_not_awaited()
        assert database.commits == 1

    async def test_table_is_locked_before_reading(self):
        conn = catalog_connection(snapshot=POSITIONS)

        await resolve_catalog(FakeDatabase(conn), "static", POSITIONS)

        assert conn.execute.await_args_list[0].args[0] == (
            "LOCK TABLE position_catalog IN EXCLUSIVE MODE"
        )

    async def test_static_source_seeds_snapshot(self):
        conn = catalog_connection()

        catalog = await resolve_catalog(
            FakeDatabase(conn), "static", [" President ", "Treasurer", "", "President"]
        )

        assert catalog.positions == ("President", "Treasurer")
        rows = conn.executemany.await_args.args[1]
        assert rows == [("President", 0), ("Treasurer", 1)]

    async def test_candidates_source_derives_positions(self):
        conn = catalog_connection(candidate_positions=("Secretary", "President"))

        catalog = await resolve_catalog(FakeDatabase(conn), "candidates", POSITIONS)

        assert catalog.positions == ("Secretary", "President")
        assert conn.fetch.await_count == 2

    async def test_empty_source_is_an_error(self):
        database = FakeDatabase(catalog_connection())

        with pytest.raises(CatalogError):
            await resolve_catalog(database, "candidates", [])

        assert database.commits == 0
        assert database.rollbacks == 1

    async def test_unknown_source_is_an_error(self):
        database = FakeDatabase(catalog_connection())

        with pytest.raises(CatalogError, match="Unknown catalog source"):
            await resolve_catalog(database, "ldap", POSITIONS)

        assert database.transactions == 0
