"""Tests for shared data types."""
import pytest

from maps_business_finder.models import (
    BusinessRecord, Coordinate, ProgressEvent, ScrapeOptions, ScrollOutcome,
    ScrollResult, Stage, Tier
)


def test_coordinate_from_value():
    assert Coordinate.from_value({"lat": "1.5", "lng": 2}) == Coordinate(1.5, 2.0)
    assert Coordinate.from_value({"lat": 1, "lon": 2, "address": "X"}).address == "X"
    for bad in ({"lat": 1}, {"lat": "a", "lon": 2}, {"lat": 91, "lon": 0}, "1,2"):
        with pytest.raises(ValueError):
            Coordinate.from_value(bad)


def test_scrape_options_accepts_camel_case():
    options = ScrapeOptions.from_dict({
        "minRating": "4.0",
        "minReviews": 10,
        "minTier": "Good",
        "exportFormats": ["json"],
        "searchRadius": 20,
        "coordinates": [{"lat": 1, "lon": 2}, {"lat": 3, "lon": 4}],
        "removeDuplicates": False,
        "scoringStrategy": "log_plus_one",
    })
    assert options.min_rating == 4.0
    assert options.min_reviews == 10
    assert options.min_tier == "Good"
    assert options.export_formats == ["json"]
    assert options.search_radius == 20
    assert options.coordinates == [Coordinate(1, 2), Coordinate(3, 4)]
    assert options.remove_duplicates is False
    assert options.scoring_strategy == "log_plus_one"


def test_scrape_options_defaults():
    options = ScrapeOptions.from_dict(None)
    assert options.export_formats == ["json", "csv"]
    assert options.search_radius == 10
    assert options.coordinates is None
    assert options.remove_duplicates is True
    assert options.scoring_strategy == "log_tenth"
    assert options.to_dict()["coordinates"] is None


def test_scrape_options_normalises_tier_and_string_formats():
    options = ScrapeOptions.from_dict({"minTier": " excellent ", "exportFormats": "json, csv"})
    assert options.min_tier == "Excellent"
    assert options.export_formats == ["json", "csv"]
    assert ScrapeOptions.from_dict({"exportFormats": "json"}).export_formats == ["json"]


@pytest.mark.parametrize("data", [
    {"min_tier": "Gold"},
    {"scoring_strategy": "sqrt"},
    {"export_formats": 5},
    {"exportFormats": {"json": True}},
])
def test_scrape_options_rejects_bad_values(data):
    with pytest.raises(ValueError):
        ScrapeOptions.from_dict(data)


def test_scrape_options_single_coordinate_round_trips():
    options = ScrapeOptions.from_dict({"coordinates": {"lat": 1, "lon": 2}})
    assert options.to_dict()["coordinates"] == {"lat": 1.0, "lon": 2.0, "address": None}


def test_business_record_to_dict():
    data = BusinessRecord(name="Loja", tier=Tier.GOOD).to_dict()
    assert data["tier"] == "Good"
    assert data["source"] == "Google Maps"
    assert data["address"] == "unavailable"


def test_progress_event_to_dict():
    event = ProgressEvent(Stage.NAVIGATING, 15.0, {"zoom": 15}, session_id="s1")
    data = event.to_dict()
    assert data["stage"] == "navigating"
    assert data["progress"] == 15.0
    assert data["session_id"] == "s1"


def test_scroll_result_flags():
    assert ScrollResult(ScrollOutcome.END_DETECTED).end_detected
    assert ScrollResult(ScrollOutcome.EXHAUSTED_WITHOUT_SIGNAL).success
    assert ScrollResult(ScrollOutcome.MAX_ATTEMPTS_REACHED).max_attempts_reached
    assert not ScrollResult(ScrollOutcome.CONTAINER_NOT_FOUND).success
