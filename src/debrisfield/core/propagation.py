"""Orbital propagation via SGP4, projected into the renderer's frame.

SGP4 returns TEME positions in km. The simulation frame divides by the
Earth's mean radius and swaps axes so that the inertial Z axis becomes
the renderer's up axis: ``(x, y, z) -> (x, z, -y) / R_earth``.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from numpy.typing import NDArray
from sgp4.api import SatrecArray, jday

from debrisfield.core.tle import OrbitalRecord
from debrisfield.utils.constants import EARTH_MEAN_RADIUS_KM

logger = logging.getLogger(__name__)


class PropagationError(ValueError):
    """SGP4 could not produce a position for a record."""


@dataclass(frozen=True)
class PropagatedState:
    """Position of one record for a single frame.

    Attributes:
        record: The record this state was computed from.
        position: [x, y, z] in Earth radii, renderer frame (Y up).
        at: Time of this state.
    """

    record: OrbitalRecord
    position: NDArray[np.float64]  # shape (3,)
    at: datetime

    @property
    def record_id(self) -> str:
        return self.record.record_id


def _julian(at: datetime) -> tuple[float, float]:
    if at.tzinfo is not None:
        at = at.astimezone(timezone.utc)
    return jday(at.year, at.month, at.day, at.hour, at.minute, at.second + at.microsecond / 1e6)


def to_render_frame(position_km: Sequence[float] | NDArray[np.float64]) -> NDArray[np.float64]:
    """Rescale a TEME position (km) to Earth radii with the Y/Z swap applied.

    Works on a single (3,) vector or an (n, 3) array.
    """
    pos = np.asarray(position_km, dtype=np.float64)
    out = np.empty_like(pos)
    out[..., 0] = pos[..., 0]
    out[..., 1] = pos[..., 2]
    out[..., 2] = -pos[..., 1]
    return out / EARTH_MEAN_RADIUS_KM


def propagate(record: OrbitalRecord, at: datetime) -> NDArray[np.float64]:
    """Propagate a single record to one time.

    Args:
        record: A parsed OrbitalRecord.
        at: Target time. Naive datetimes are taken as UTC.

    Returns:
        Position in Earth radii, renderer frame.

    Raises:
        PropagationError: If SGP4 reports an error or returns a non-finite position.
    """
    jd, fr = _julian(at)
    error_code, pos, _vel = record.satrec.sgp4(jd, fr)

    if error_code != 0:
        raise PropagationError(
            f"SGP4 propagation failed for NORAD {record.norad_id} at {at}: error code {error_code}"
        )
    position = to_render_frame(pos)
    if not np.all(np.isfinite(position)):
        raise PropagationError(f"SGP4 returned a non-finite position for NORAD {record.norad_id} at {at}")
    return position


def propagate_state(record: OrbitalRecord, at: datetime) -> PropagatedState:
    return PropagatedState(record=record, position=propagate(record, at), at=at)


def propagate_batch(
    records: Sequence[OrbitalRecord], at: datetime
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Propagate many records to a single time using vectorized SGP4.

    Uses SatrecArray for C-level batch propagation (fast path for large catalogs).

    Args:
        records: Records to propagate.
        at: Single time to propagate all objects to.

    Returns:
        Tuple of:
            - positions: Array of shape (n, 3) in Earth radii, renderer frame
            - valid_mask: Boolean array of shape (n,) indicating which propagations succeeded
    """
    if not records:
        return np.empty((0, 3), dtype=np.float64), np.empty(0, dtype=np.bool_)

    satrec_array = SatrecArray([record.satrec for record in records])

    jd, fr = _julian(at)
    # SatrecArray requires arrays, not scalars
    jd_array = np.array([jd], dtype=np.float64)
    fr_array = np.array([fr], dtype=np.float64)

    # Output shape: errors (n,1), positions (n,1,3), velocities (n,1,3)
    errors, positions, _velocities = satrec_array.sgp4(jd_array, fr_array)

    result = to_render_frame(positions[:, 0, :])
    valid_mask = (errors[:, 0] == 0) & np.all(np.isfinite(result), axis=1)

    return result, valid_mask


def _propagate_chunk(
    records: Sequence[OrbitalRecord], at: datetime
) -> tuple[dict[str, PropagatedState], list[str]]:
    positions, valid = propagate_batch(records, at)
    states: dict[str, PropagatedState] = {}
    failed: list[str] = []
    for record, position, ok in zip(records, positions, valid):
        if ok:
            states[record.record_id] = PropagatedState(record=record, position=position, at=at)
        else:
            logger.debug("Propagation failed for NORAD %d at %s", record.norad_id, at)
            failed.append(record.record_id)
    return states, failed


def propagate_catalog(
    records: Sequence[OrbitalRecord],
    at: datetime,
    max_workers: int | None = None,
) -> tuple[dict[str, PropagatedState], list[str]]:
    """Propagate every record to ``at``, collecting failures instead of raising.

    With ``max_workers`` above 1 the records are split into one chunk per
    worker and propagated on a thread pool. All chunks are gathered before
    returning, so callers always receive a complete position set.

    Args:
        records: Records to propagate, in catalog order.
        at: Frame time.
        max_workers: Thread pool size. None or 1 propagates serially.

    Returns:
        Tuple of (states keyed by record id in catalog order, ids that failed).
    """
    records = list(records)
    if max_workers is None or max_workers <= 1 or len(records) < 2:
        states, failed = _propagate_chunk(records, at)
    else:
        size = -(-len(records) // max_workers)
        chunks = [records[i:i + size] for i in range(0, len(records), size)]
        states, failed = {}, []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # map preserves chunk order, keeping catalog order in the result
            for chunk_states, chunk_failed in pool.map(lambda c: _propagate_chunk(c, at), chunks):
                states.update(chunk_states)
                failed.extend(chunk_failed)

    if failed:
        logger.debug("%d of %d records failed to propagate at %s", len(failed), len(records), at)
    return states, failed
