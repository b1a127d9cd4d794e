"""
url_builder.py - URL construction
--------------------------------
Search URLs, radius-to-zoom lookup and search location resolution.
"""
from typing import List, Optional, Sequence, Union
from urllib.parse import quote, urlencode

from maps_business_finder.models import Coordinate, SearchLocation
from maps_business_finder.utils.config import (
    DEFAULT_ZOOM_LEVELS, MAPS_BASE_URL, ZOOM_LEVELS_BY_RADIUS
)

DEFAULT_LOCATION_NAME = "Default"
SELECTED_LOCATION_NAME = "Selected location"


def build_search_url(search_term: str, coordinates: Optional[Coordinate] = None,
                     zoom: Optional[int] = None) -> str:
    """
    Build a Maps search URL.

    Args:
        search_term: Phrase to search for
        coordinates: Optional map centre
        zoom: Zoom level, used only with coordinates

    Returns:
        URL with the phrase percent-encoded and, when coordinates are given,
        a single ``@lat,lon,zoomz`` viewport segment
    """
    if coordinates is None:
        return f"{MAPS_BASE_URL}/search/?{urlencode({'api': 1, 'query': search_term}, quote_via=quote)}"

    if zoom is None:
        zoom = DEFAULT_ZOOM_LEVELS[0]
    term = quote(search_term, safe="")
    return f"{MAPS_BASE_URL}/search/{term}/@{coordinates.lat},{coordinates.lon},{zoom}z"


def get_zoom_levels_for_radius(radius) -> List[int]:
    """Zoom levels for a search radius in km, tightest first; unknown radii get the default set."""
    try:
        key = int(radius)
    except (TypeError, ValueError):
        return list(DEFAULT_ZOOM_LEVELS)
    if key != radius:
        return list(DEFAULT_ZOOM_LEVELS)
    return list(ZOOM_LEVELS_BY_RADIUS.get(key, DEFAULT_ZOOM_LEVELS))


def resolve_search_locations(coordinates: Union[None, Coordinate, dict, Sequence]) -> List[SearchLocation]:
    """
    Turn the ``coordinates`` option into a list of named search locations.

    No coordinates gives one unnamed default location; a single coordinate
    gives one location; a list gives one location per entry.
    """
    if coordinates is None:
        return [SearchLocation(DEFAULT_LOCATION_NAME)]

    if isinstance(coordinates, (Coordinate, dict)):
        coord = Coordinate.from_value(coordinates)
        return [SearchLocation(coord.address or SELECTED_LOCATION_NAME, coord)]

    locations = []
    for index, value in enumerate(coordinates, start=1):
        coord = Coordinate.from_value(value)
        locations.append(SearchLocation(coord.address or f"Location {index}", coord))
    return locations or [SearchLocation(DEFAULT_LOCATION_NAME)]
