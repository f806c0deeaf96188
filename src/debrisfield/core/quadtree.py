"""Point quadtree used as the per-frame spatial index.

Rectangles use a centre/half-extent convention. Containment is half-open
(``[x - w, x + w)`` on each axis) so that the four quadrants of a node
partition it exactly and a point on a shared edge belongs to one child.

A node that overflows subdivides once. Points it already holds stay where
they were inserted; only later inserts go to the children. Queries visit
both the node's own points and its children, so every accepted point is
still found. Pass ``redistribute=True`` to push held points down instead.
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field

from debrisfield.utils.constants import DEFAULT_QUADTREE_CAPACITY, DEFAULT_QUADTREE_MAX_DEPTH


@dataclass(frozen=True)
class Point:
    """A planar index key. ``key`` identifies the object and is not part of the location."""

    x: float
    y: float
    key: Hashable = field(default=None, compare=False)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box given by its centre and half extents."""

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self) -> None:
        if not all(math.isfinite(v) for v in (self.x, self.y, self.w, self.h)):
            raise ValueError(f"Rectangle values must be finite: {self}")
        if self.w <= 0 or self.h <= 0:
            raise ValueError(f"Rectangle half extents must be positive: w={self.w}, h={self.h}")

    @property
    def left(self) -> float:
        return self.x - self.w

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def top(self) -> float:
        return self.y - self.h

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def contains(self, point: Point) -> bool:
        return (self.left <= point.x < self.right
                and self.top <= point.y < self.bottom)

    def intersects(self, other: Rectangle) -> bool:
        # Touching edges count as intersecting.
        return not (other.left > self.right
                    or other.right < self.left
                    or other.top > self.bottom
                    or other.bottom < self.top)

    def quadrants(self) -> tuple[Rectangle, Rectangle, Rectangle, Rectangle]:
        """NW, NE, SW, SE children. North is -y."""
        w, h = self.w / 2, self.h / 2
        return (
            Rectangle(self.x - w, self.y - h, w, h),
            Rectangle(self.x + w, self.y - h, w, h),
            Rectangle(self.x - w, self.y + h, w, h),
            Rectangle(self.x + w, self.y + h, w, h),
        )


class QuadTree:
    """A quadtree node; the root node is the whole index.

    Args:
        boundary: Region covered by this node, in the same units as the points.
        capacity: Points a node holds before subdividing. Must be at least 1.
        max_depth: Deepest level that may be created. A full node at this
            depth keeps accepting points instead of subdividing.
        redistribute: Move held points into the children on subdivision.
    """

    def __init__(
        self,
        boundary: Rectangle,
        capacity: int = DEFAULT_QUADTREE_CAPACITY,
        max_depth: int = DEFAULT_QUADTREE_MAX_DEPTH,
        redistribute: bool = False,
        _depth: int = 0,
    ) -> None:
        if not isinstance(boundary, Rectangle):
            raise TypeError(f"boundary must be a Rectangle, got {type(boundary).__name__}")
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")

        self.boundary = boundary
        self.capacity = capacity
        self.max_depth = max_depth
        self.redistribute = redistribute
        self.depth = _depth
        self.points: list[Point] = []
        self.children: tuple[QuadTree, QuadTree, QuadTree, QuadTree] | None = None

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    def subdivide(self) -> None:
        if self.children is not None:
            return
        self.children = tuple(
            QuadTree(quadrant, self.capacity, self.max_depth, self.redistribute, _depth=self.depth + 1)
            for quadrant in self.boundary.quadrants()
        )
        if self.redistribute:
            held, self.points = self.points, []
            for point in held:
                if not self._insert_into_children(point):
                    # float rounding left the point on no child; keep it here
                    self.points.append(point)

    def _insert_into_children(self, point: Point) -> bool:
        return any(child.insert(point) for child in self.children)

    def insert(self, point: Point) -> bool:
        """Insert ``point``; returns False if it lies outside this node's boundary."""
        if not self.boundary.contains(point):
            return False

        if self.children is None:
            if len(self.points) < self.capacity or self.depth >= self.max_depth:
                self.points.append(point)
                return True
            self.subdivide()

        if self._insert_into_children(point):
            return True
        # Contained by the parent but by no child: only possible through rounding.
        self.points.append(point)
        return True

    def insert_all(self, points: Iterable[Point]) -> int:
        """Insert every point, returning how many were accepted."""
        return sum(1 for point in points if self.insert(point))

    def query(self, area: Rectangle, found: list[Point] | None = None) -> list[Point]:
        """All points lying within ``area``, in no particular order."""
        if found is None:
            found = []
        if not self.boundary.intersects(area):
            return found

        found.extend(p for p in self.points if area.contains(p))
        if self.children is not None:
            for child in self.children:
                child.query(area, found)
        return found

    def height(self) -> int:
        """Deepest level present below (and including) this node."""
        if self.children is None:
            return self.depth
        return max(child.height() for child in self.children)

    def __iter__(self) -> Iterator[Point]:
        yield from self.points
        if self.children is not None:
            for child in self.children:
                yield from child

    def __len__(self) -> int:
        count = len(self.points)
        if self.children is not None:
            count += sum(len(child) for child in self.children)
        return count

    def __repr__(self) -> str:
        return (
            f"QuadTree(boundary={self.boundary}, capacity={self.capacity}, "
            f"points={len(self)}, height={self.height()})"
        )
