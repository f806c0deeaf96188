"""Orbital records and catalog loading.

An :class:`OrbitalRecord` is one tracked object's element set together
with its group and display color. Records are parsed once when a catalog
is loaded and never change afterwards.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from sgp4.api import Satrec, WGS72

from debrisfield.utils.constants import ACTIVE_COLOR, TLE_LINE_LENGTH

logger = logging.getLogger(__name__)

Color = tuple[int, int, int]


class MalformedElementSet(ValueError):
    """Element set lines could not be parsed."""


class GroupKind(Enum):
    ACTIVE = "active"
    DEBRIS = "debris"


@dataclass(frozen=True)
class ObjectGroup:
    """Classification tag of a record: active, or a named debris group."""

    kind: GroupKind
    name: str | None = None

    @classmethod
    def active(cls) -> ObjectGroup:
        return cls(GroupKind.ACTIVE)

    @classmethod
    def debris(cls, name: str) -> ObjectGroup:
        return cls(GroupKind.DEBRIS, name)

    @property
    def is_debris(self) -> bool:
        return self.kind is GroupKind.DEBRIS

    def __str__(self) -> str:
        if self.name:
            return f"{self.kind.value}:{self.name}"
        return self.kind.value


def rgb(value: int) -> Color:
    """Split a packed ``0xRRGGBB`` integer into an RGB triple."""
    if not 0 <= value <= 0xFFFFFF:
        raise ValueError(f"Color out of range: {value:#x}")
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


@dataclass(frozen=True)
class OrbitalRecord:
    """A parsed element set for one tracked object.

    Attributes:
        name: Object name (line 0 of the three-line group).
        line1: Raw TLE line 1.
        line2: Raw TLE line 2.
        norad_id: NORAD catalog number.
        epoch: Epoch as a UTC datetime.
        group: Active satellite or named debris group.
        color: Display color as an RGB triple.
        inclination_deg: Orbital inclination in degrees.
        raan_deg: Right ascension of ascending node in degrees.
        eccentricity: Orbital eccentricity (dimensionless).
        arg_perigee_deg: Argument of perigee in degrees.
        mean_anomaly_deg: Mean anomaly in degrees.
        mean_motion_rev_per_day: Mean motion in revolutions per day.
        bstar: BSTAR drag term.
        satrec: Underlying sgp4 Satrec object for propagation.
    """

    name: str
    line1: str
    line2: str
    norad_id: int
    epoch: datetime
    group: ObjectGroup
    color: Color
    inclination_deg: float
    raan_deg: float
    eccentricity: float
    arg_perigee_deg: float
    mean_anomaly_deg: float
    mean_motion_rev_per_day: float
    bstar: float
    satrec: Satrec = field(repr=False, compare=False)

    @property
    def record_id(self) -> str:
        """Stable catalog-wide id of this object."""
        return str(self.norad_id)

    @classmethod
    def from_lines(
        cls,
        line1: str,
        line2: str,
        name: str = "",
        group: ObjectGroup | None = None,
        color: Color = rgb(ACTIVE_COLOR),
    ) -> OrbitalRecord:
        """Parse a record from its two element lines.

        Args:
            line1: TLE line 1 (69 characters).
            line2: TLE line 2 (69 characters).
            name: Optional object name (line 0).
            group: Classification tag. Defaults to active.
            color: Display color.

        Returns:
            A parsed OrbitalRecord.

        Raises:
            MalformedElementSet: If the lines are not well-formed element set lines.
        """
        line1 = line1.strip()
        line2 = line2.strip()

        if len(line1) != TLE_LINE_LENGTH or not line1.startswith("1 "):
            raise MalformedElementSet(f"Invalid TLE line 1: {line1!r}")
        if len(line2) != TLE_LINE_LENGTH or not line2.startswith("2 "):
            raise MalformedElementSet(f"Invalid TLE line 2: {line2!r}")
        if line1[2:7] != line2[2:7]:
            raise MalformedElementSet(
                f"Catalog number mismatch: {line1[2:7]!r} vs {line2[2:7]!r}"
            )

        try:
            norad_id = int(line1[2:7])
            year = int(line1[18:20])
            day_of_year = float(line1[20:32])
            sat = Satrec.twoline2rv(line1, line2, WGS72)
        except ValueError as exc:
            raise MalformedElementSet(f"Unparsable element set for {name.strip()!r}: {exc}") from exc

        if sat.error != 0:
            raise MalformedElementSet(
                f"SGP4 rejected element set for NORAD {norad_id}: error code {sat.error}"
            )

        year = year + 2000 if year < 57 else year + 1900
        epoch = datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(
            days=day_of_year - 1
        )

        logger.debug("Parsed TLE for NORAD %d (epoch %s)", norad_id, epoch.isoformat())

        return cls(
            name=name.strip(),
            line1=line1,
            line2=line2,
            norad_id=norad_id,
            epoch=epoch,
            group=group if group is not None else ObjectGroup.active(),
            color=color,
            inclination_deg=math.degrees(sat.inclo),
            raan_deg=math.degrees(sat.nodeo),
            eccentricity=sat.ecco,
            arg_perigee_deg=math.degrees(sat.argpo),
            mean_anomaly_deg=math.degrees(sat.mo),
            mean_motion_rev_per_day=sat.no_kozai * 1440 / (2 * math.pi),
            bstar=sat.bstar,
            satrec=sat,
        )

    def __str__(self) -> str:
        return f"{self.name}\n{self.line1}\n{self.line2}"


@dataclass(frozen=True)
class CatalogLoad:
    """Records parsed from one element-set text, plus how many groups were skipped."""

    records: tuple[OrbitalRecord, ...]
    skipped: int = 0


def parse_catalog(
    text: str,
    group: ObjectGroup | None = None,
    color: Color = rgb(ACTIVE_COLOR),
) -> CatalogLoad:
    """Parse three-line groups (name, line 1, line 2) from text.

    Groups are read strictly by position, so a blank line inside a group
    makes that whole group malformed rather than shifting the following
    groups. Malformed or truncated groups are skipped and counted.

    Args:
        text: Raw element-set text.
        group: Classification tag applied to every record.
        color: Display color applied to every record.

    Returns:
        A CatalogLoad with the parsed records and the skip count.
    """
    lines = text.strip().splitlines()
    records: list[OrbitalRecord] = []
    skipped = 0

    for i in range(0, len(lines), 3):
        chunk = lines[i:i + 3]
        name = chunk[0].strip()
        if len(chunk) < 3 or not chunk[1].strip() or not chunk[2].strip():
            logger.warning("Skipping incomplete element set %r at line %d", name, i + 1)
            skipped += 1
            continue
        try:
            records.append(
                OrbitalRecord.from_lines(chunk[1], chunk[2], name=name, group=group, color=color)
            )
        except MalformedElementSet as exc:
            logger.warning("Skipping malformed element set %r at line %d: %s", name, i + 1, exc)
            skipped += 1

    logger.debug("Parsed %d records from text (%d skipped)", len(records), skipped)
    return CatalogLoad(records=tuple(records), skipped=skipped)


class Catalog:
    """Immutable, ordered collection of records with unique ids.

    A catalog is never mutated once built; hot reloads replace the whole
    object (see :meth:`debrisfield.core.simulation.Simulation.swap_catalog`).
    """

    def __init__(
        self,
        records: Iterable[OrbitalRecord] = (),
        skipped: int = 0,
    ) -> None:
        by_id: dict[str, OrbitalRecord] = {}
        duplicates = 0
        for record in records:
            if record.record_id in by_id:
                logger.warning(
                    "Dropping duplicate record %s (%r); keeping %r",
                    record.record_id, record.name, by_id[record.record_id].name,
                )
                duplicates += 1
                continue
            by_id[record.record_id] = record

        self._by_id = by_id
        self._records = tuple(by_id.values())
        self.skipped = skipped
        self.duplicates = duplicates

    @classmethod
    def from_loads(cls, loads: Iterable[CatalogLoad]) -> Catalog:
        """Merge several loads in order into one catalog."""
        records: list[OrbitalRecord] = []
        skipped = 0
        for load in loads:
            records.extend(load.records)
            skipped += load.skipped
        return cls(records, skipped=skipped)

    @classmethod
    def from_text(
        cls,
        text: str,
        group: ObjectGroup | None = None,
        color: Color = rgb(ACTIVE_COLOR),
    ) -> Catalog:
        return cls.from_loads([parse_catalog(text, group=group, color=color)])

    @property
    def records(self) -> tuple[OrbitalRecord, ...]:
        return self._records

    def get(self, record_id: str) -> OrbitalRecord | None:
        return self._by_id.get(record_id)

    def __getitem__(self, record_id: str) -> OrbitalRecord:
        return self._by_id[record_id]

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._by_id

    def __iter__(self) -> Iterator[OrbitalRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return (
            f"Catalog({len(self._records)} records, "
            f"skipped={self.skipped}, duplicates={self.duplicates})"
        )
