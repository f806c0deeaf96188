"""Per-frame driver: propagate the catalog, index it, flag close approaches.

Every tick builds its states, index and result from scratch. Nothing is
carried from one tick to the next, so a tick can be abandoned at any
point without leaving stale state behind.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from debrisfield.core.collision import DEFAULT_BOUNDARY, CollisionPair, detect
from debrisfield.core.propagation import PropagatedState, propagate_catalog
from debrisfield.core.quadtree import Rectangle
from debrisfield.core.tle import Catalog, OrbitalRecord
from debrisfield.utils.constants import (
    DEFAULT_CATALOG_MAX_AGE,
    DEFAULT_COLLISION_THRESHOLD,
    DEFAULT_QUADTREE_CAPACITY,
    DEFAULT_QUADTREE_MAX_DEPTH,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationConfig:
    """Tunables for a tick.

    Attributes:
        threshold: Close-approach distance in Earth radii.
        boundary: Root boundary of the spatial index, in Earth radii.
        capacity: Quadtree node capacity.
        max_depth: Quadtree subdivision limit.
        max_workers: Propagation thread pool size; None propagates serially.
        redistribute: Push held points down when a quadtree node subdivides.
    """

    threshold: float = DEFAULT_COLLISION_THRESHOLD
    boundary: Rectangle = DEFAULT_BOUNDARY
    capacity: int = DEFAULT_QUADTREE_CAPACITY
    max_depth: int = DEFAULT_QUADTREE_MAX_DEPTH
    max_workers: int | None = None
    redistribute: bool = False

    def __post_init__(self) -> None:
        if not math.isfinite(self.threshold) or self.threshold < 0:
            raise ValueError(f"threshold must be a finite non-negative distance, got {self.threshold}")
        if not isinstance(self.boundary, Rectangle):
            raise TypeError(f"boundary must be a Rectangle, got {type(self.boundary).__name__}")
        if self.capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {self.capacity}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")


@dataclass
class FrameResult:
    """Everything one tick produced. Owned by the caller for that frame only.

    Attributes:
        at: Frame time.
        positions: Propagated states keyed by record id.
        collisions: Close-approach pairs found in this frame.
        failed: Ids of records that could not be propagated.
    """

    at: datetime
    positions: dict[str, PropagatedState] = field(default_factory=dict)
    collisions: set[CollisionPair] = field(default_factory=set)
    failed: tuple[str, ...] = ()

    def colliding_ids(self) -> set[str]:
        """Ids taking part in at least one close approach."""
        ids: set[str] = set()
        for pair in self.collisions:
            ids.update(pair.ids)
        return ids

    def sorted_collisions(self) -> list[CollisionPair]:
        """Collisions ordered by distance, closest first."""
        return sorted(self.collisions, key=lambda p: (p.distance, p.ids))

    def to_dict(self) -> dict:
        """Plain-data view for a renderer."""
        return {
            "at": self.at.isoformat(),
            "positions": {
                record_id: dict(zip("xyz", (float(v) for v in state.position)))
                for record_id, state in self.positions.items()
            },
            "collisions": [
                {"id_a": p.first_id, "id_b": p.second_id, "distance": p.distance}
                for p in self.sorted_collisions()
            ],
        }


def tick(
    catalog: Catalog | Iterable[OrbitalRecord],
    at: datetime,
    threshold: float | None = None,
    config: SimulationConfig | None = None,
) -> FrameResult:
    """Run one frame.

    Args:
        catalog: Records to simulate.
        at: Frame time.
        threshold: Close-approach distance; overrides ``config.threshold``.
        config: Index and propagation settings. Defaults to SimulationConfig().

    Returns:
        The frame's positions and collisions. Records that fail to
        propagate are listed in ``failed`` and take no part in detection.

    Raises:
        ValueError: If ``threshold`` or ``config`` is invalid.
    """
    if config is None:
        config = SimulationConfig()
    if threshold is None:
        threshold = config.threshold
    elif not math.isfinite(threshold) or threshold < 0:
        raise ValueError(f"threshold must be a finite non-negative distance, got {threshold}")

    records = list(catalog)
    states, failed = propagate_catalog(records, at, max_workers=config.max_workers)
    collisions = detect(
        states,
        threshold,
        boundary=config.boundary,
        capacity=config.capacity,
        max_depth=config.max_depth,
        redistribute=config.redistribute,
    )

    logger.info(
        "tick %s: %d propagated, %d failed, %d close approaches",
        at.isoformat(), len(states), len(failed), len(collisions),
    )
    return FrameResult(at=at, positions=states, collisions=collisions, failed=tuple(failed))


class Simulation:
    """Holds the current catalog and runs ticks against it.

    The catalog is replaced wholesale with :meth:`swap_catalog`. A tick
    reads the reference once at its start, so a swap never affects a tick
    already in progress.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: SimulationConfig | None = None,
        loaded_at: datetime | None = None,
    ) -> None:
        self.config = config if config is not None else SimulationConfig()
        self._catalog = catalog
        self._loaded_at = loaded_at if loaded_at is not None else datetime.now(timezone.utc)

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def loaded_at(self) -> datetime:
        return self._loaded_at

    def swap_catalog(self, catalog: Catalog, loaded_at: datetime | None = None) -> Catalog:
        """Replace the catalog used by subsequent ticks. Returns the previous one."""
        previous = self._catalog
        self._catalog = catalog
        self._loaded_at = loaded_at if loaded_at is not None else datetime.now(timezone.utc)
        logger.info("Catalog swapped: %d -> %d records", len(previous), len(catalog))
        return previous

    def catalog_is_stale(
        self,
        now: datetime | None = None,
        max_age: timedelta = DEFAULT_CATALOG_MAX_AGE,
    ) -> bool:
        """Whether the catalog is older than ``max_age`` and should be re-sourced."""
        if now is None:
            now = datetime.now(timezone.utc)
        loaded_at = self._loaded_at
        if loaded_at.tzinfo is None:
            loaded_at = loaded_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now - loaded_at > max_age

    def tick(self, at: datetime | None = None, threshold: float | None = None) -> FrameResult:
        """Run one frame at ``at`` (default: now, UTC)."""
        if at is None:
            at = datetime.now(timezone.utc)
        catalog = self._catalog
        return tick(catalog, at, threshold=threshold, config=self.config)
