"""Close-approach detection over one frame's positions.

The index is two-dimensional: positions are projected on the renderer
frame's x/y axes and the z axis is ignored when building and querying the
quadtree. Candidates surfaced by the index are then confirmed with the
full 3D Euclidean distance, so a reported pair is always a true
close approach. Missed pairs are possible only for objects outside the
index boundary.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from itertools import combinations
from typing import Union

import numpy as np
from numpy.typing import NDArray

from debrisfield.core.propagation import PropagatedState
from debrisfield.core.quadtree import Point, QuadTree, Rectangle
from debrisfield.utils.constants import (
    DEFAULT_INDEX_HALF_EXTENT,
    DEFAULT_QUADTREE_CAPACITY,
    DEFAULT_QUADTREE_MAX_DEPTH,
)

logger = logging.getLogger(__name__)

PositionLike = Union[PropagatedState, Sequence[float], NDArray[np.float64]]

DEFAULT_BOUNDARY = Rectangle(0.0, 0.0, DEFAULT_INDEX_HALF_EXTENT, DEFAULT_INDEX_HALF_EXTENT)
"""Index boundary centred on the Earth, in Earth radii."""


@dataclass(frozen=True)
class CollisionPair:
    """Two distinct objects closer than the threshold in the same frame.

    The ids are stored in sorted order and ``distance`` takes no part in
    equality, so ``CollisionPair("b", "a", d)`` equals
    ``CollisionPair("a", "b", d)`` and a set keeps one of them.

    Attributes:
        first_id: Lower of the two record ids.
        second_id: Higher of the two record ids.
        distance: 3D separation in Earth radii.
    """

    first_id: str
    second_id: str
    distance: float = field(compare=False)

    def __post_init__(self) -> None:
        if self.first_id == self.second_id:
            raise ValueError(f"An object cannot be paired with itself: {self.first_id!r}")
        if self.second_id < self.first_id:
            first, second = self.second_id, self.first_id
            object.__setattr__(self, "first_id", first)
            object.__setattr__(self, "second_id", second)

    @property
    def ids(self) -> tuple[str, str]:
        return self.first_id, self.second_id


def _position(value: PositionLike) -> NDArray[np.float64]:
    if isinstance(value, PropagatedState):
        value = value.position
    return np.asarray(value, dtype=np.float64)


def _check_threshold(threshold: float) -> None:
    if not math.isfinite(threshold) or threshold < 0:
        raise ValueError(f"threshold must be a finite non-negative distance, got {threshold}")


def _finite_positions(positions: Mapping[str, PositionLike]) -> dict[str, NDArray[np.float64]]:
    coords: dict[str, NDArray[np.float64]] = {}
    for record_id, value in positions.items():
        pos = _position(value)
        if pos.shape != (3,) or not np.all(np.isfinite(pos)):
            logger.warning("Ignoring object %s with invalid position %r", record_id, pos)
            continue
        coords[record_id] = pos
    return coords


def build_index(
    coords: Mapping[str, NDArray[np.float64]],
    boundary: Rectangle = DEFAULT_BOUNDARY,
    capacity: int = DEFAULT_QUADTREE_CAPACITY,
    max_depth: int = DEFAULT_QUADTREE_MAX_DEPTH,
    redistribute: bool = False,
) -> tuple[QuadTree, int]:
    """Index the x/y projection of every position.

    Returns:
        Tuple of (index, number of positions that fell outside ``boundary``).
    """
    tree = QuadTree(boundary, capacity=capacity, max_depth=max_depth, redistribute=redistribute)
    inserted = tree.insert_all(
        Point(float(p[0]), float(p[1]), key=record_id) for record_id, p in coords.items()
    )
    return tree, len(coords) - inserted


def detect(
    positions: Mapping[str, PositionLike],
    threshold: float,
    *,
    boundary: Rectangle = DEFAULT_BOUNDARY,
    capacity: int = DEFAULT_QUADTREE_CAPACITY,
    max_depth: int = DEFAULT_QUADTREE_MAX_DEPTH,
    redistribute: bool = False,
) -> set[CollisionPair]:
    """Find every pair of objects closer than ``threshold``.

    Builds one quadtree over the frame, then queries a square of
    half-extent ``threshold`` around each object and keeps candidates
    whose true distance is strictly below ``threshold``.

    Args:
        positions: Positions keyed by record id, as PropagatedState or raw [x, y, z].
        threshold: Distance in the positions' units (Earth radii for frames).
        boundary: Root boundary of the index. Objects outside it are not
            indexed and can only be found by their own query.
        capacity: Quadtree node capacity.
        max_depth: Quadtree subdivision limit.
        redistribute: Push held points down on subdivision.

    Returns:
        Set of unordered pairs, one per close approach.

    Raises:
        ValueError: If ``threshold`` is negative or not finite.
    """
    _check_threshold(threshold)
    coords = _finite_positions(positions)
    if threshold == 0 or len(coords) < 2:
        return set()

    tree, unindexed = build_index(coords, boundary, capacity, max_depth, redistribute)
    if unindexed:
        logger.warning(
            "%d of %d objects outside index boundary %s; their close approaches may be missed",
            unindexed, len(coords), boundary,
        )

    pairs: set[CollisionPair] = set()
    for record_id, pos in coords.items():
        area = Rectangle(float(pos[0]), float(pos[1]), threshold, threshold)
        for point in tree.query(area):
            if point.key == record_id:
                continue
            distance = float(np.linalg.norm(pos - coords[point.key]))
            if distance < threshold:
                pairs.add(CollisionPair(record_id, point.key, distance))

    logger.debug("detect: %d objects, %d indexed, %d pairs", len(coords), len(coords) - unindexed, len(pairs))
    return pairs


def detect_brute_force(
    positions: Mapping[str, PositionLike],
    threshold: float,
) -> set[CollisionPair]:
    """All-pairs O(n²) close-approach check in full 3D.

    Slower than :func:`detect` but independent of any index boundary.
    """
    _check_threshold(threshold)
    coords = _finite_positions(positions)

    pairs: set[CollisionPair] = set()
    for (id_a, pos_a), (id_b, pos_b) in combinations(coords.items(), 2):
        distance = float(np.linalg.norm(pos_a - pos_b))
        if distance < threshold:
            pairs.add(CollisionPair(id_a, id_b, distance))
    return pairs
