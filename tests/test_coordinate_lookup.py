"""Tests for the address lookup client."""
from unittest.mock import Mock

import requests

from maps_business_finder.scraping.coordinate_lookup import CoordinateLookup

PHOTON_RESPONSE = {
    "features": [
        {
            "geometry": {"coordinates": [-46.6333, -23.5505]},
            "properties": {"name": "Praça da Sé", "city": "São Paulo", "state": "São Paulo", "country": "Brasil"},
        },
        {"geometry": {"coordinates": []}, "properties": {"name": "broken"}},
    ]
}


def make_session(payload=None, error=None):
    session = Mock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value.json.return_value = payload
    return session


def test_search_maps_features():
    session = make_session(PHOTON_RESPONSE)
    lookup = CoordinateLookup(url="https://photon.test/api", session=session)

    results = lookup.search("praça da sé", limit=3)

    assert results == [{
        "label": "Praça da Sé, São Paulo, Brasil",
        "lat": -23.5505,
        "lon": -46.6333,
        "city": "São Paulo",
        "state": "São Paulo",
        "country": "Brasil",
    }]
    session.get.assert_called_once_with("https://photon.test/api", params={"q": "praça da sé", "limit": 3},
                                        timeout=lookup.timeout)


def test_short_query_is_not_sent():
    session = make_session(PHOTON_RESPONSE)
    assert CoordinateLookup(session=session).search(" ab ") == []
    session.get.assert_not_called()


def test_network_error_gives_no_results():
    session = make_session(error=requests.ConnectionError("offline"))
    assert CoordinateLookup(session=session).search("avenida paulista") == []


def test_bad_json_gives_no_results():
    session = make_session()
    session.get.return_value.json.side_effect = ValueError("not json")
    assert CoordinateLookup(session=session).search("avenida paulista") == []
