"""
Source Augmentation — Attach source companions to a closure.

For every component ``foo.bar`` the companion is ``foo.bar.source``; for a
group ``foo.feature.group`` the group suffix is stripped first, giving
``foo.source``. Only a companion with exactly the same version is added.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set

from ..models.component import GROUP_SUFFIX, SOURCE_SUFFIX, Component

logger = logging.getLogger(__name__)


def source_id_for(component_id: str) -> str:
    if component_id.endswith(GROUP_SUFFIX):
        return component_id[: -len(GROUP_SUFFIX)] + SOURCE_SUFFIX
    return component_id + SOURCE_SUFFIX


def augment_with_sources(
    components: Iterable[Component],
    target_components: Iterable[Component],
) -> Set[Component]:
    """
    Return ``components`` plus their source companions from the target.

    Never removes anything. ``target_components`` order decides which
    companion wins when several share an id and version.
    """
    collected = set(components)
    result = set(collected)

    source_units: Dict[str, List[Component]] = {}
    for unit in target_components:
        if unit.id.endswith(SOURCE_SUFFIX):
            source_units.setdefault(unit.id, []).append(unit)

    added = 0
    for component in collected:
        for unit in source_units.get(source_id_for(component.id), ()):
            if unit.version == component.version:
                if unit not in result:
                    result.add(unit)
                    added += 1
                break

    logger.info(f"Source augmentation: {added} source component(s) added")
    return result
