"""
Position catalog: the fixed set of offices in play for the current election.

The catalog is resolved once, persisted in ``position_catalog`` and then
treated as immutable. Every process serving the same election reads the same
snapshot, so completion flags cannot flip because the candidate roster
changed mid-election.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple

from .errors import CatalogError

logger = logging.getLogger(__name__)

CATALOG_SOURCES = ("static", "candidates")


@dataclass(frozen=True)
class PositionCatalog:
    """Ordered, immutable set of position names."""

    positions: Tuple[str, ...]

    def __post_init__(self):
        if len(set(self.positions)) != len(self.positions):
            raise CatalogError(f"Duplicate positions in catalog: {list(self.positions)}")

    def __contains__(self, position) -> bool:
        return position in self.positions

    def __iter__(self) -> Iterator[str]:
        return iter(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    def is_complete(self, voted: Iterable[str]) -> bool:
        """True when ``voted`` covers every catalog position."""
        return bool(self.positions) and set(self.positions) <= set(voted)

    def remaining(self, voted: Iterable[str]) -> List[str]:
        """Catalog positions not yet in ``voted``, in catalog order."""
        done = set(voted)
        return [position for position in self.positions if position not in done]

    def ordered(self, voted: Iterable[str]) -> List[str]:
        """Catalog positions present in ``voted``, in catalog order."""
        done = set(voted)
        return [position for position in self.positions if position in done]


def _normalize(positions: Sequence[str]) -> Tuple[str, ...]:
    cleaned = []
    for position in positions:
        name = position.strip()
        if name and name not in cleaned:
            cleaned.append(name)
    return tuple(cleaned)


async def resolve_catalog(database, source: str, configured: Sequence[str]) -> PositionCatalog:
    """
    Return the election's position catalog, snapshotting it on first use.

    Args:
        database: Ballot store
        source: "static" to seed from ``configured``, "candidates" to seed
            from the distinct candidate positions
        configured: Positions from configuration (static source)

    Returns:
        PositionCatalog: The persisted snapshot

    Raises:
        CatalogError: If the source is unknown or yields no positions
    """
    if source not in CATALOG_SOURCES:
        raise CatalogError(f"Unknown catalog source '{source}'")

    async with database.transaction() as conn:
        # Serializes concurrent first-time seeding from several workers.
        await conn.execute("LOCK TABLE position_catalog IN EXCLUSIVE MODE")

        rows = await conn.fetch(
            "SELECT position FROM position_catalog ORDER BY sort_order, position"
        )
        if rows:
            catalog = PositionCatalog(tuple(row["position"] for row in rows))
            if source == "static" and _normalize(configured) != catalog.positions:
                logger.warning(
                    f"Configured positions {list(configured)} differ from the persisted "
                    f"snapshot {list(catalog.positions)}; using the snapshot"
                )
            logger.info(f"Loaded position catalog snapshot: {list(catalog.positions)}")
            return catalog

        if source == "static":
            positions = _normalize(configured)
        else:
            derived = await conn.fetch(
                """
                SELECT position
                FROM candidates
                GROUP BY position
                ORDER BY MIN(id)
                """
            )
            positions = _normalize([row["position"] for row in derived])

        if not positions:
            raise CatalogError(f"Position catalog from source '{source}' is empty")

        await conn.executemany(
            "INSERT INTO position_catalog (position, sort_order) VALUES ($1, $2)",
            [(position, index) for index, position in enumerate(positions)]
        )

    catalog = PositionCatalog(positions)
    logger.info(f"Snapshotted position catalog from {source}: {list(catalog.positions)}")
    return catalog
