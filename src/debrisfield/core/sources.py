"""Element-set source groups and how their text becomes a catalog.

Nothing here performs I/O: the host application fetches or reads the
text for each source and hands it to :func:`load_sources`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from debrisfield.core.tle import Catalog, CatalogLoad, Color, ObjectGroup, parse_catalog, rgb
from debrisfield.utils.constants import ACTIVE_COLOR, DEBRIS_COLOR

logger = logging.getLogger(__name__)

CELESTRAK_GP_URL = "https://celestrak.org/NORAD/elements/gp.php"


@dataclass(frozen=True)
class CatalogSource:
    """One named element-set group and the tag/color its records receive."""

    name: str
    group: ObjectGroup
    color: Color


def _debris(name: str) -> CatalogSource:
    return CatalogSource(name=name, group=ObjectGroup.debris(name), color=rgb(DEBRIS_COLOR))


DEFAULT_SOURCES: tuple[CatalogSource, ...] = (
    _debris("cosmos-1408-debris"),
    _debris("fengyun-1c-debris"),
    _debris("iridium-33-debris"),
    _debris("cosmos-2251-debris"),
    CatalogSource(name="active", group=ObjectGroup.active(), color=rgb(ACTIVE_COLOR)),
)


def celestrak_url(source: CatalogSource) -> str:
    """GP query URL serving ``source`` in three-line TLE format."""
    return f"{CELESTRAK_GP_URL}?GROUP={source.name}&FORMAT=tle"


def load_sources(
    texts: Mapping[str, str],
    sources: Iterable[CatalogSource] = DEFAULT_SOURCES,
) -> Catalog:
    """Build a catalog from the element-set text of each source.

    Args:
        texts: Raw text keyed by source name.
        sources: Sources to load, in catalog order.

    Returns:
        A Catalog holding every record that parsed. ``Catalog.skipped``
        counts malformed groups across all sources.
    """
    loads: list[CatalogLoad] = []
    for source in sources:
        text = texts.get(source.name)
        if text is None:
            logger.debug("No element-set text for source %s", source.name)
            continue
        load = parse_catalog(text, group=source.group, color=source.color)
        logger.debug(
            "Source %s: %d records, %d skipped", source.name, len(load.records), load.skipped
        )
        loads.append(load)

    catalog = Catalog.from_loads(loads)
    logger.info(
        "Loaded catalog: %d records from %d sources (%d skipped, %d duplicates)",
        len(catalog), len(loads), catalog.skipped, catalog.duplicates,
    )
    return catalog
