"""
Location tree helpers.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, NamedTuple

import structlog

from ..models import Location

logger = structlog.get_logger()


class LocationPath(NamedTuple):
    path: str
    cyclic: bool


def resolve_location_paths(
    locations: Iterable[Location], separator: str = " > "
) -> Dict[str, LocationPath]:
    """Full display path of every location, root first.

    The walk up the parent chain keeps a visited set. The remote tree is not
    guaranteed to be acyclic, so a repeated node ends the walk and the result
    is flagged as cyclic instead of looping.
    """
    by_id = {location.id: location for location in locations}
    paths: Dict[str, LocationPath] = {}
    for location in by_id.values():
        names: List[str] = []
        visited = set()
        node = location
        cyclic = False
        while node is not None:
            if node.id in visited:
                cyclic = True
                break
            visited.add(node.id)
            names.append(node.name)
            node = by_id.get(node.parent_id) if node.parent_id else None
        if cyclic:
            logger.warning("location_cycle_detected", location_id=location.id)
        paths[location.id] = LocationPath(separator.join(reversed(names)), cyclic)
    return paths
