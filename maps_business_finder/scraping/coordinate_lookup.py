"""
coordinate_lookup.py - Address to coordinate lookup
--------------------------------------------------
Resolves free-text addresses to candidate coordinates through the Photon
geocoder. Used by the web front end; the scraper itself only consumes
already-resolved coordinates.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from maps_business_finder.utils.config import GEOCODER_LIMIT, GEOCODER_TIMEOUT, GEOCODER_URL
from maps_business_finder.utils.logging_config import get_logger


def _label(properties: Dict[str, Any]) -> str:
    parts = [properties.get("name"), properties.get("street"), properties.get("city"),
             properties.get("state"), properties.get("country")]
    seen, label = set(), []
    for part in parts:
        if part and part not in seen:
            seen.add(part)
            label.append(part)
    return ", ".join(label)


class CoordinateLookup:
    def __init__(self, url: str = GEOCODER_URL, timeout: float = GEOCODER_TIMEOUT,
                 session: Optional[requests.Session] = None, logger: Optional[logging.Logger] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.log = get_logger(logger)

    def search(self, query: str, limit: int = GEOCODER_LIMIT) -> List[Dict[str, Any]]:
        """
        Look up ``query``.

        Args:
            query: Free-text address
            limit: Maximum number of candidates

        Returns:
            List of ``{label, lat, lon, city, state, country}``; empty on any
            network or decoding error
        """
        query = (query or "").strip()
        if len(query) < 3:
            return []
        try:
            response = self.session.get(self.url, params={"q": query, "limit": limit}, timeout=self.timeout)
            response.raise_for_status()
            features = response.json().get("features", [])
        except (requests.RequestException, ValueError) as e:
            self.log.warning("Coordinate lookup failed for %r: %s", query, e)
            return []

        results = []
        for feature in features:
            coords = (feature.get("geometry") or {}).get("coordinates") or []
            if len(coords) < 2:
                continue
            props = feature.get("properties") or {}
            results.append({
                "label": _label(props),
                "lat": coords[1],
                "lon": coords[0],
                "city": props.get("city"),
                "state": props.get("state"),
                "country": props.get("country"),
            })
        return results
