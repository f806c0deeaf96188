"""
debrisfield — real-time orbital debris simulation core.

Propagates a catalog of tracked objects from two-line element sets,
indexes each frame's positions in a quadtree and flags close approaches.
Rendering and element-set fetching are left to the host application.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from debrisfield.core.tle import (
    Catalog,
    CatalogLoad,
    GroupKind,
    MalformedElementSet,
    ObjectGroup,
    OrbitalRecord,
    parse_catalog,
    rgb,
)
from debrisfield.core.sources import CatalogSource, DEFAULT_SOURCES, celestrak_url, load_sources
from debrisfield.core.propagation import (
    PropagatedState,
    PropagationError,
    propagate,
    propagate_batch,
    propagate_catalog,
    propagate_state,
    to_render_frame,
)
from debrisfield.core.quadtree import Point, QuadTree, Rectangle
from debrisfield.core.collision import CollisionPair, detect, detect_brute_force
from debrisfield.core.simulation import FrameResult, Simulation, SimulationConfig, tick

__all__ = [
    "__version__",
    "Catalog",
    "CatalogLoad",
    "GroupKind",
    "MalformedElementSet",
    "ObjectGroup",
    "OrbitalRecord",
    "parse_catalog",
    "rgb",
    "CatalogSource",
    "DEFAULT_SOURCES",
    "celestrak_url",
    "load_sources",
    "PropagatedState",
    "PropagationError",
    "propagate",
    "propagate_batch",
    "propagate_catalog",
    "propagate_state",
    "to_render_frame",
    "Point",
    "QuadTree",
    "Rectangle",
    "CollisionPair",
    "detect",
    "detect_brute_force",
    "FrameResult",
    "Simulation",
    "SimulationConfig",
    "tick",
]
