"""
data_validation.py - Data validation
----------------------------------
Validation and sanitization of scraped listings, shared by the extraction
engine and the result processor.
"""
import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union
from urllib.parse import urlparse

from maps_business_finder.models import BusinessRecord, RawCandidate
from maps_business_finder.utils.config import (
    ADDRESS_UNAVAILABLE, LIST_SEPARATOR, MAX_SEARCH_TERM_LENGTH
)
from maps_business_finder.utils.geo_utils import is_valid_coordinate
from maps_business_finder.utils.logging_config import get_logger

# A digit run that may contain thousands separators: "1.234", "1,234"
_REVIEW_COUNT_RE = re.compile(r"\d(?:[.,\u00a0\u202f]?\d)*")
_NAME_STRIP_RE = re.compile(r"[^\w\s\-'&]")
_ADDRESS_STRIP_RE = re.compile(r"[^\w\s\-,.]")
_SEARCH_TERM_RE = re.compile(r"^[\w\s\-]+$")

_PLACEHOLDER_ADDRESS_PATTERNS = [
    re.compile(r"^\d+$"),                              # house number only
    re.compile(r"^\(?\d{2}\)?\s*\d{4,5}-?\d{4}$"),     # phone number
    re.compile(r"^\d{5}-?\d{3}$"),                     # postal code
    re.compile(r"^[^\w]+$"),                           # punctuation only
]


@dataclass
class ValidationResult:
    is_valid: bool
    record: Optional[BusinessRecord]
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_search_term(search_term: Any, logger: Optional[logging.Logger] = None) -> Tuple[bool, List[str], str]:
    """
    Validate a search phrase.

    Args:
        search_term: Raw phrase from the caller
        logger: Optional logger for the special-character warning

    Returns:
        Tuple of (is_valid, errors, sanitized phrase)
    """
    log = get_logger(logger)
    errors = []

    if not isinstance(search_term, str):
        return False, ["Search term must be a non-empty string"], ""

    trimmed = search_term.strip()
    if not trimmed:
        errors.append("Search term cannot be empty or only whitespace")
    elif len(trimmed) > MAX_SEARCH_TERM_LENGTH:
        errors.append(f"Search term is too long (max {MAX_SEARCH_TERM_LENGTH} characters)")
    elif not _SEARCH_TERM_RE.match(trimmed):
        log.warning("Search term contains special characters that may affect results: %s", trimmed)

    return not errors, errors, trimmed


def parse_rating(value: Any) -> Optional[float]:
    """Parse ``"4,5"``, ``"4.5"`` or a number into a one-decimal float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return round(float(value), 1)
    text = str(value).strip().replace(",", ".")
    match = re.search(r"\d+(?:\.\d+)?", text)
    if not match:
        return None
    return round(float(match.group()), 1)


def parse_review_count(text: Any) -> Optional[int]:
    """
    Extract the first digit run from review text.

    ``"(1.234)"`` gives 1234. Returns None when there are no digits.
    """
    if text is None:
        return None
    match = _REVIEW_COUNT_RE.search(str(text))
    if not match:
        return None
    return int(re.sub(r"\D", "", match.group()))


def extract_review_count(business: Union[BusinessRecord, dict]) -> int:
    """
    Review count of a record: the parsed integer field if present, else the
    first digit run of the review text, else 0.
    """
    if isinstance(business, dict):
        count = business.get("review_count")
        text = business.get("reviews_text") or business.get("reviews")
    else:
        count = business.review_count
        text = business.reviews_text

    if isinstance(count, int) and not isinstance(count, bool) and count > 0:
        return count
    parsed = parse_review_count(text)
    if parsed is not None:
        return parsed
    return count if isinstance(count, int) and count > 0 else 0


def sanitize_name(name: str) -> str:
    name = re.sub(r"\s+", " ", (name or "").strip())
    return _NAME_STRIP_RE.sub("", name).strip()


def _is_placeholder_address(text: str) -> bool:
    if len(text) < 5:
        return True
    return any(p.match(text) for p in _PLACEHOLDER_ADDRESS_PATTERNS)


def sanitize_address(address: Optional[str]) -> str:
    """
    Clean an address block, or return the unavailable sentinel when the text
    is a phone number, a postal code, a bare number or punctuation.
    """
    if not address or not address.strip():
        return ADDRESS_UNAVAILABLE

    glyphs = re.escape(LIST_SEPARATOR)
    trimmed = re.sub(rf"^[{glyphs}\s]+|[{glyphs}\s]+$", "", address.strip())
    trimmed = re.sub(r"\s+", " ", trimmed)
    if _is_placeholder_address(trimmed):
        return ADDRESS_UNAVAILABLE

    cleaned = re.sub(r"\s+", " ", _ADDRESS_STRIP_RE.sub("", trimmed)).strip()
    if _is_placeholder_address(cleaned):
        return ADDRESS_UNAVAILABLE
    return cleaned


def _is_absolute_url(link: str) -> bool:
    parsed = urlparse(link)
    return bool(parsed.scheme in ("http", "https") and parsed.netloc)


def _sanitize(item: Union[RawCandidate, BusinessRecord], warnings: List[str]) -> BusinessRecord:
    if isinstance(item, BusinessRecord):
        rating = item.rating
        reviews_text = item.reviews_text or ""
        review_count = extract_review_count(item)
        address = item.address if item.address == ADDRESS_UNAVAILABLE else sanitize_address(item.address)
    else:
        rating = parse_rating(item.rating)
        if item.rating and rating is None:
            warnings.append("Rating is not a valid number")
        reviews_text = (item.reviews or "").strip()
        review_count = parse_review_count(reviews_text) or 0
        address = sanitize_address(item.address)

    if rating is None:
        rating = 0.0
    elif not 0 <= rating <= 5:
        warnings.append(f"Rating outside expected range (0-5): {rating}")
        rating = 0.0

    link = (item.link or "").strip()
    if link and not _is_absolute_url(link):
        warnings.append("Link is not a valid URL")

    lat, lng = item.lat, item.lng
    if lat is not None and not is_valid_coordinate(lat, lng):
        lat = lng = None

    updates = dict(
        name=sanitize_name(item.name),
        rating=rating,
        review_count=review_count,
        reviews_text=reviews_text,
        address=address,
        link=link,
        lat=lat,
        lng=lng,
    )
    if isinstance(item, BusinessRecord):
        return dataclasses.replace(item, **updates)
    return BusinessRecord(**updates)


def validate_business_data(item: Union[RawCandidate, BusinessRecord],
                           logger: Optional[logging.Logger] = None) -> ValidationResult:
    """
    Validate and sanitize one listing.

    A listing must have a name and at least one of: a positive rating, a
    positive review count, or non-empty review text.

    Args:
        item: Raw candidate from the page or an already built record
        logger: Optional logger for non-fatal warnings

    Returns:
        ValidationResult with the sanitized record (None when invalid)
    """
    log = get_logger(logger)
    errors, warnings = [], []
    record = _sanitize(item, warnings)

    if not record.name:
        errors.append("Business name is required")

    has_rating = record.rating > 0
    has_reviews = record.review_count > 0
    has_reviews_text = bool(record.reviews_text.strip())
    if not (has_rating or has_reviews or has_reviews_text):
        errors.append("Business must have either rating or reviews to be included")

    if warnings:
        log.debug("Business warnings for %s: %s", record.name or "unnamed", ", ".join(warnings))

    if errors:
        return ValidationResult(False, None, errors, warnings)
    return ValidationResult(True, record, errors, warnings)
