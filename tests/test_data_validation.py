"""Tests for listing validation and sanitisation."""
import logging

import pytest

from maps_business_finder.data_processing.data_validation import (
    extract_review_count, parse_rating, parse_review_count, sanitize_address,
    sanitize_name, validate_business_data, validate_search_term
)
from maps_business_finder.models import BusinessRecord, RawCandidate


@pytest.mark.parametrize("raw", [
    "12345678",
    "(21) 91234-5678",
    "(11) 3456-7890",
    "11 98765-4321",
    "01310-100",
    "01310100",
    "123",
    "· · ·",
    "---",
    "Rua",
    "",
    "   ",
    None,
])
def test_placeholder_addresses_become_unavailable(raw):
    assert sanitize_address(raw) == "unavailable"


@pytest.mark.parametrize("raw,expected", [
    ("Rua das Flores, 123", "Rua das Flores, 123"),
    ("· Rua das Flores, 123", "Rua das Flores, 123"),
    ("Av. Paulista, 1578 ·", "Av. Paulista, 1578"),
    ("  Rua   Augusta,   1500  ", "Rua Augusta, 1500"),
    ("Rua Oscar Freire #900", "Rua Oscar Freire 900"),
])
def test_real_addresses_are_cleaned(raw, expected):
    assert sanitize_address(raw) == expected


def test_search_term_trimmed():
    valid, errors, term = validate_search_term("  pizzaria  ")
    assert valid
    assert errors == []
    assert term == "pizzaria"


@pytest.mark.parametrize("term", ["", "   ", None, 42, "x" * 201])
def test_search_term_rejected(term):
    valid, errors, _ = validate_search_term(term)
    assert not valid
    assert errors


def test_search_term_with_special_characters_is_only_a_warning(caplog):
    log = logging.getLogger("search_term_check")
    with caplog.at_level(logging.WARNING, logger="search_term_check"):
        valid, _, term = validate_search_term("café & bar", logger=log)
    assert valid
    assert term == "café & bar"
    assert "special characters" in caplog.text


@pytest.mark.parametrize("raw,expected", [
    ("4,5", 4.5),
    ("4.7", 4.7),
    (4, 4.0),
    ("", None),
    ("n/a", None),
    (None, None),
])
def test_parse_rating(raw, expected):
    assert parse_rating(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("(85)", 85),
    ("(1.234)", 1234),
    ("1,234 reviews", 1234),
    ("(12\u00a0345)", 12345),
    ("no reviews", None),
    (None, None),
])
def test_parse_review_count(raw, expected):
    assert parse_review_count(raw) == expected


def test_extract_review_count_prefers_integer_field():
    record = BusinessRecord(name="A", review_count=40, reviews_text="(99)")
    assert extract_review_count(record) == 40
    assert extract_review_count({"review_count": 0, "reviews_text": "(99)"}) == 99
    assert extract_review_count({"name": "A"}) == 0


def test_sanitize_name_keeps_accents_and_ampersand():
    assert sanitize_name("  Bar   do João & Cia!  ") == "Bar do João & Cia"


def test_candidate_with_rating_only_is_valid():
    result = validate_business_data(RawCandidate(name="Café Central", rating="4,0"))
    assert result.is_valid
    assert result.record.rating == 4.0
    assert result.record.review_count == 0
    assert result.record.address == "unavailable"


def test_candidate_with_reviews_only_is_valid():
    result = validate_business_data(RawCandidate(name="Loja", reviews="(12)"))
    assert result.is_valid
    assert result.record.review_count == 12


def test_candidate_without_rating_or_reviews_is_rejected():
    result = validate_business_data(RawCandidate(name="Loja", rating="", reviews=""))
    assert not result.is_valid
    assert result.record is None
    assert "Business must have either rating or reviews to be included" in result.errors


def test_candidate_without_name_is_rejected():
    result = validate_business_data(RawCandidate(name="  ", rating="4,5"))
    assert not result.is_valid
    assert "Business name is required" in result.errors


def test_out_of_range_rating_is_zeroed_with_warning():
    result = validate_business_data(RawCandidate(name="Loja", rating="7,5", reviews="(10)"))
    assert result.is_valid
    assert result.record.rating == 0.0
    assert any("outside expected range" in w for w in result.warnings)


def test_relative_link_is_only_a_warning():
    result = validate_business_data(RawCandidate(name="Loja", rating="4,1", link="/maps/place/Loja"))
    assert result.is_valid
    assert "Link is not a valid URL" in result.warnings


def test_invalid_coordinates_are_dropped():
    result = validate_business_data(RawCandidate(name="Loja", rating="4,1", lat=123.0, lng=10.0))
    assert result.record.lat is None
    assert result.record.lng is None


def test_business_record_keeps_its_extra_fields():
    record = BusinessRecord(name="Loja", rating=4.2, reviews_text="(30)", search_location="Centro")
    result = validate_business_data(record)
    assert result.is_valid
    assert result.record.review_count == 30
    assert result.record.search_location == "Centro"
