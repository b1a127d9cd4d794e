"""
scoring.py - Composite score, tiers and quality indicators
---------------------------------------------------------
Two review-volume formulas have been used for the composite score:

* ``log_tenth``    (rating^4 * 0.1) * ln(reviews * 0.1)
* ``log_plus_one`` (rating^4 * 0.1) * ln(reviews + 1)

``log_tenth`` ranks results by default. It is undefined at zero reviews and
negative below ten, so its log factor is clamped at zero. Which formula the
product should keep is still an open decision; both are selectable by name.
"""
import math
from dataclasses import dataclass
from typing import Callable, Dict, List

from maps_business_finder.models import Tier
from maps_business_finder.utils.config import DEFAULT_SCORING_STRATEGY

# (threshold, tier), checked top-down with >=
TIER_THRESHOLDS = [
    (15, Tier.EXCELLENT),
    (10, Tier.VERY_GOOD),
    (7, Tier.GOOD),
    (4, Tier.AVERAGE),
]

TIER_ORDER = [Tier.UNRATED, Tier.BASIC, Tier.AVERAGE, Tier.GOOD, Tier.VERY_GOOD, Tier.EXCELLENT]


@dataclass(frozen=True)
class ScoringStrategy:
    name: str
    formula: str
    review_factor: Callable[[int], float]

    def log_factor(self, review_count: int) -> float:
        if review_count <= 0:
            return 0.0
        return max(self.review_factor(review_count), 0.0)

    def score(self, rating: float, review_count: int) -> float:
        if rating is None or rating <= 0:
            return 0.0
        return round((rating ** 4 * 0.1) * self.log_factor(review_count), 2)

    def breakdown(self, rating: float, review_count: int) -> Dict:
        return {
            "rating": rating,
            "review_count": review_count,
            "log_factor": round(self.log_factor(review_count), 4),
            "formula": self.formula,
            "strategy": self.name,
            "has_rating": rating > 0,
            "has_reviews": review_count > 0,
        }


def _log_tenth(n: int) -> float:
    scaled = n * 0.1
    return math.log(scaled) if scaled > 1 else 0.0


SCORING_STRATEGIES: Dict[str, ScoringStrategy] = {
    "log_tenth": ScoringStrategy(
        name="log_tenth",
        formula="(rating^4 x 0.1) x ln(reviews x 0.1)",
        review_factor=_log_tenth,
    ),
    "log_plus_one": ScoringStrategy(
        name="log_plus_one",
        formula="(rating^4 x 0.1) x ln(reviews + 1)",
        review_factor=lambda n: math.log(n + 1),
    ),
}


def get_scoring_strategy(name: str = DEFAULT_SCORING_STRATEGY) -> ScoringStrategy:
    """
    Look up a scoring strategy by name.

    Raises:
        ValueError: for an unknown name
    """
    try:
        return SCORING_STRATEGIES[name]
    except KeyError:
        known = ", ".join(sorted(SCORING_STRATEGIES))
        raise ValueError(f"Unknown scoring strategy '{name}' (known: {known})") from None


def score_to_tier(score: float) -> Tier:
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.BASIC if score > 0 else Tier.UNRATED


def parse_tier(value) -> Tier:
    """Accept a Tier or its display value (case-insensitive)."""
    if isinstance(value, Tier):
        return value
    for tier in Tier:
        if tier.value.lower() == str(value).strip().lower():
            return tier
    raise ValueError(f"Unknown tier '{value}'")


def tier_rank(tier: Tier) -> int:
    return TIER_ORDER.index(tier)


def quality_indicators(rating: float, review_count: int) -> List[str]:
    indicators = []
    if rating >= 4.5:
        indicators.append("high rating")
    if review_count >= 100:
        indicators.append("many reviews")
    if review_count == 0:
        indicators.append("no reviews")
    if rating == 0:
        indicators.append("no rating")
    return indicators
