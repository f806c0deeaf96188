"""Physical constants and simulation defaults.

Distances in the simulation frame are expressed in Earth radii unless the
name says otherwise.
"""

from __future__ import annotations

from datetime import timedelta

# --- Earth parameters ---
EARTH_MEAN_RADIUS_KM: float = 6371.0
"""Mean radius of Earth in km. Positions are divided by this to land on the unit sphere."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

# --- TLE format ---
TLE_LINE_LENGTH: int = 69
"""Fixed width of a two-line element set line."""

# --- Collision detection defaults ---
DEFAULT_COLLISION_THRESHOLD: float = 0.01
"""Close-approach threshold in Earth radii (~64 km)."""

DEFAULT_QUADTREE_CAPACITY: int = 4
"""Points held by a quadtree node before it subdivides."""

DEFAULT_QUADTREE_MAX_DEPTH: int = 16
"""Deepest subdivision level; overflow beyond it stays in the deepest node."""

DEFAULT_INDEX_HALF_EXTENT: float = 8.0
"""Half-extent of the default index boundary in Earth radii (covers GEO at ~6.6)."""

# --- Catalog refresh ---
DEFAULT_CATALOG_MAX_AGE: timedelta = timedelta(hours=24)
"""How long a loaded catalog is considered current before re-sourcing."""

# --- Source group colors (0xRRGGBB) ---
DEBRIS_COLOR: int = 0xFF183F
"""Shared display color for every debris group."""

ACTIVE_COLOR: int = 0x16C1FF
"""Display color for active satellites."""
