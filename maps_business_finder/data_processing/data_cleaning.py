"""
data_cleaning.py - Data cleaning
------------------------------
Name normalisation and de-duplication of scraped listings.

Deduplication runs twice per scrape, on purpose:

* a coarse pass with ``name_address_key`` over the concatenated results of
  every (location, zoom) cell, which removes the exact repeats that
  overlapping zoom levels produce;
* a fine pass with ``normalized_name_key`` inside the result processor,
  which also folds spelling variants such as ``"Bar do João Ltda"`` and
  ``"bar do joão"``.
"""
import re
from typing import Callable, Hashable, Iterable, List, Union

from maps_business_finder.models import BusinessRecord

# Legal-form and business-type words ignored when comparing names
NAME_SUFFIX_WORDS = ["ltda", "me", "eireli", "s.a", "restaurante", "lanchonete", "bar", "oficina"]

_SUFFIX_RE = re.compile(r"\b(?:" + "|".join(re.escape(w) for w in NAME_SUFFIX_WORDS) + r")\b")

KeyFunc = Callable[[Union[BusinessRecord, dict]], Hashable]


def normalize_name(name: str) -> str:
    """
    Normalise a business name for comparison.

    Args:
        name: Business name as displayed

    Returns:
        Lower-cased name without punctuation, suffix words or extra spaces
    """
    text = (name or "").lower().strip()
    text = re.sub(r"[^\w\s]", "", text)
    text = re.sub(r"\s+", " ", text)
    text = _SUFFIX_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def _field(business, name):
    if isinstance(business, dict):
        return business.get(name) or ""
    return getattr(business, name, "") or ""


def name_address_key(business) -> str:
    """Coarse key: raw ``name-address`` string, lower-cased."""
    return f"{_field(business, 'name')}-{_field(business, 'address')}".lower().strip()


def normalized_name_key(business) -> str:
    """Fine key: the normalised name only."""
    return normalize_name(_field(business, "name"))


def deduplicate(records: Iterable, key: KeyFunc = normalized_name_key) -> List:
    """
    Drop records whose key was already seen, keeping the first occurrence.

    Args:
        records: Records in priority order
        key: Function computing the comparison key of a record

    Returns:
        New list with duplicates removed, order preserved
    """
    seen = set()
    unique = []
    for record in records:
        k = key(record)
        if k in seen:
            continue
        seen.add(k)
        unique.append(record)
    return unique
