"""
data_extractor.py - Listing extraction
-------------------------------------
Reads business candidates off the rendered result list and validates them.

How candidates are found in the page is a strategy (``extract_candidates``)
so the markup-dependent part can be swapped without touching the
orchestration. Both strategies take each link that carries an
``aria-label`` and an absolute ``href`` and use its nearest ``div``
ancestor as the listing container.
"""
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from selenium.common.exceptions import WebDriverException

from maps_business_finder.data_processing.data_validation import validate_business_data
from maps_business_finder.models import BusinessRecord, RawCandidate
from maps_business_finder.utils.config import HOURS_MARKERS, LIST_SEPARATOR, RESULT_LINK_XPATH
from maps_business_finder.utils.geo_utils import is_valid_coordinate
from maps_business_finder.utils.logging_config import get_logger

_NUM = r"(-?\d+(?:\.\d+)?)"

# Tried in order; the first one giving a valid pair wins
COORDINATE_PATTERNS: List[Tuple[re.Pattern, Optional[re.Pattern]]] = [
    (re.compile(rf"!3d{_NUM}!4d{_NUM}"), None),
    (re.compile(rf"3d{_NUM}"), re.compile(rf"4d{_NUM}")),
    (re.compile(rf"@{_NUM},{_NUM}(?:,[\d.]+z)?"), None),
]


def extract_coordinates_from_url(url: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Pull a ``(lat, lng)`` pair out of a Maps place link.

    Args:
        url: Place link

    Returns:
        Tuple of floats, or None when no pattern yields a valid pair
    """
    if not url:
        return None
    for pair_re, lng_re in COORDINATE_PATTERNS:
        if lng_re is None:
            match = pair_re.search(url)
            if not match:
                continue
            lat, lng = float(match.group(1)), float(match.group(2))
        else:
            lat_match, lng_match = pair_re.search(url), lng_re.search(url)
            if not (lat_match and lng_match):
                continue
            lat, lng = float(lat_match.group(1)), float(lng_match.group(1))
        if is_valid_coordinate(lat, lng):
            return lat, lng
    return None


def build_address_xpath(hours_markers: Sequence[str] = HOURS_MARKERS,
                        separator: str = LIST_SEPARATOR) -> str:
    """XPath (relative to a container) of the last span in a separator-bearing, non-hours text block."""
    excluded = " and ".join(f"not(contains(., '{m}'))" for m in hours_markers)
    return (f"(.//div[count(.//span[contains(text(),'{separator}')])>0 and {excluded}]/span)[last()]")


def has_rating_or_reviews(candidate: RawCandidate) -> bool:
    return bool((candidate.rating or "").strip() or (candidate.reviews or "").strip())


def _with_coordinates(candidate: RawCandidate) -> RawCandidate:
    coords = extract_coordinates_from_url(candidate.link)
    if coords:
        candidate.lat, candidate.lng = coords
    return candidate


class CandidateStrategy:
    """Finds raw listing candidates in a page."""
    name = "base"

    def extract_candidates(self, page) -> List[RawCandidate]:
        raise NotImplementedError


EXTRACT_CANDIDATES_SCRIPT = """
const baseXPath = arguments[0];
const addressXPath = arguments[1];
const str = function (xpath, ctx) {
    return document.evaluate(xpath, ctx, null, XPathResult.STRING_TYPE, null).stringValue.trim();
};
const num = function (xpath, ctx) {
    return document.evaluate(xpath, ctx, null, XPathResult.NUMBER_TYPE, null).numberValue;
};
const snapshot = document.evaluate(baseXPath, document, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
const results = [];
for (let i = 0; i < snapshot.snapshotLength; i++) {
    const node = snapshot.snapshotItem(i);
    try {
        const glyphs = num("count(.//span[@role='img']/span)", node);
        results.push({
            name: str(".//a[@aria-label][1]/@aria-label", node),
            rating: str("string(.//span[@role='img']/span[1])", node),
            reviews: glyphs > 1 ? str("string(.//span[@role='img']/span[last()])", node) : "",
            link: str(".//a[@aria-label][1]/@href", node),
            address: str("string(" + addressXPath + ")", node)
        });
    } catch (e) {
        // skip this container
    }
}
return results;
"""


class ScriptCandidateStrategy(CandidateStrategy):
    """Evaluates XPath queries inside the page (one round trip per snapshot)."""
    name = "script"

    def __init__(self, base_xpath: str = RESULT_LINK_XPATH, address_xpath: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        self.base_xpath = base_xpath
        self.address_xpath = address_xpath or build_address_xpath()
        self.log = get_logger(logger)

    def extract_candidates(self, page) -> List[RawCandidate]:
        rows = page.evaluate(EXTRACT_CANDIDATES_SCRIPT, self.base_xpath, self.address_xpath) or []
        candidates = []
        for row in rows:
            try:
                candidate = RawCandidate(
                    name=(row.get("name") or "").strip(),
                    rating=(row.get("rating") or "").strip(),
                    reviews=(row.get("reviews") or "").strip(),
                    link=(row.get("link") or "").strip(),
                    address=(row.get("address") or "").strip(),
                )
            except AttributeError as e:
                self.log.debug("Skipping malformed container row %r: %s", row, e)
                continue
            if has_rating_or_reviews(candidate):
                candidates.append(_with_coordinates(candidate))
        return candidates


class SoupCandidateStrategy(CandidateStrategy):
    """Parses ``page.page_source`` with BeautifulSoup; no script evaluation needed."""
    name = "soup"

    def __init__(self, hours_markers: Sequence[str] = HOURS_MARKERS, separator: str = LIST_SEPARATOR,
                 logger: Optional[logging.Logger] = None):
        self.hours_markers = list(hours_markers)
        self.separator = separator
        self.log = get_logger(logger)

    def extract_candidates(self, page) -> List[RawCandidate]:
        soup = BeautifulSoup(page.page_source, "html.parser")
        candidates = []
        seen_containers = set()
        for link in soup.select('a[aria-label][href^="http"]'):
            container = link.find_parent("div")
            if container is None or id(container) in seen_containers:
                continue
            seen_containers.add(id(container))
            try:
                candidate = self._parse_container(container)
            except (AttributeError, KeyError, IndexError) as e:
                self.log.debug("Skipping container: %s", e)
                continue
            if has_rating_or_reviews(candidate):
                candidates.append(_with_coordinates(candidate))
        return candidates

    def _parse_container(self, container) -> RawCandidate:
        link = container.select_one('a[aria-label]')
        rating = reviews = ""
        glyph_group = container.select_one('span[role="img"]')
        if glyph_group is not None:
            spans = glyph_group.find_all("span", recursive=False)
            if spans:
                rating = spans[0].get_text(strip=True)
            if len(spans) > 1:
                reviews = spans[-1].get_text(strip=True)

        return RawCandidate(
            name=link["aria-label"].strip(),
            rating=rating,
            reviews=reviews,
            link=(link.get("href") or "").strip(),
            address=self._find_address(container),
        )

    def _find_address(self, container) -> str:
        spans = []
        for block in container.find_all("div"):
            block_text = block.get_text(" ", strip=True)
            if any(marker in block_text for marker in self.hours_markers):
                continue
            has_separator = any(
                self.separator in (text or "")
                for span in block.find_all("span")
                for text in span.find_all(string=True, recursive=False)
            )
            if has_separator:
                spans.extend(block.find_all("span", recursive=False))
        return spans[-1].get_text(" ", strip=True) if spans else ""


class DataExtractor:
    """
    Extraction engine: candidates from the configured strategy, then validation.

    Args:
        strategy: CandidateStrategy to use (defaults to ``ScriptCandidateStrategy``)
        logger: Logger to use
    """

    def __init__(self, strategy: Optional[CandidateStrategy] = None, logger: Optional[logging.Logger] = None):
        self.log = get_logger(logger)
        self.strategy = strategy or ScriptCandidateStrategy(logger=self.log)
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {"total_attempts": 0, "successful_extractions": 0, "validation_failures": 0}

    def extract_candidates(self, page) -> List[RawCandidate]:
        try:
            return self.strategy.extract_candidates(page)
        except WebDriverException as e:
            self.log.warning("Page extraction failed (%s): %s", self.strategy.name, e)
            return []

    def extract_business_data(self, page) -> List[BusinessRecord]:
        """
        Read the current page into validated business records.

        Returns:
            Records in page order; an empty list if the page could not be read
        """
        self.stats["total_attempts"] += 1
        records = []
        for candidate in self.extract_candidates(page):
            result = validate_business_data(candidate, logger=self.log)
            if result.is_valid:
                records.append(result.record)
            else:
                self.stats["validation_failures"] += 1
        self.stats["successful_extractions"] += len(records)
        self.log.info("Extracted %d businesses", len(records))
        return records

    def get_stats(self) -> Dict[str, float]:
        processed = self.stats["successful_extractions"] + self.stats["validation_failures"]
        rate = round(self.stats["successful_extractions"] / processed * 100, 2) if processed else 0
        return dict(self.stats, success_rate=rate, strategy=self.strategy.name)

    def reset_stats(self):
        self.stats = self._empty_stats()
