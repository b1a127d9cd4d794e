"""Tests for composite scores, tiers and quality indicators."""
import math

import pytest

from maps_business_finder.data_processing.scoring import (
    SCORING_STRATEGIES, get_scoring_strategy, parse_tier, quality_indicators,
    score_to_tier, tier_rank
)
from maps_business_finder.models import Tier


@pytest.mark.parametrize("name", sorted(SCORING_STRATEGIES))
def test_zero_reviews_gives_zero_score(name):
    strategy = get_scoring_strategy(name)
    assert strategy.score(4.9, 0) == 0.0
    assert strategy.breakdown(4.9, 0)["log_factor"] == 0.0
    assert strategy.breakdown(4.9, 0)["has_reviews"] is False


@pytest.mark.parametrize("name", sorted(SCORING_STRATEGIES))
@pytest.mark.parametrize("reviews", [0, 1, 5, 10, 11, 50, 1000])
def test_score_is_monotone_in_rating(name, reviews):
    strategy = get_scoring_strategy(name)
    scores = [strategy.score(r / 10, reviews) for r in range(0, 51)]
    assert all(a <= b for a, b in zip(scores, scores[1:]))
    assert all(s >= 0 for s in scores)


def test_log_tenth_values():
    strategy = get_scoring_strategy("log_tenth")
    assert strategy.score(4.0, 100) == round(25.6 * math.log(10), 2)
    assert strategy.score(4.0, 100) == 58.95
    assert strategy.score(4.0, 5) == 0.0
    assert strategy.score(4.0, 10) == 0.0


def test_log_plus_one_values():
    strategy = get_scoring_strategy("log_plus_one")
    assert strategy.score(4.0, 100) == 118.15
    assert strategy.score(4.0, 5) > 0


def test_unrated_scores_zero():
    for strategy in SCORING_STRATEGIES.values():
        assert strategy.score(0, 500) == 0.0


def test_default_strategy_is_log_tenth():
    assert get_scoring_strategy().name == "log_tenth"


def test_unknown_strategy_raises():
    with pytest.raises(ValueError, match="Unknown scoring strategy"):
        get_scoring_strategy("sqrt")


@pytest.mark.parametrize("score,tier", [
    (0, Tier.UNRATED),
    (0.01, Tier.BASIC),
    (3.99, Tier.BASIC),
    (4, Tier.AVERAGE),
    (6.99, Tier.AVERAGE),
    (7, Tier.GOOD),
    (9.99, Tier.GOOD),
    (10, Tier.VERY_GOOD),
    (14.99, Tier.VERY_GOOD),
    (15, Tier.EXCELLENT),
    (250, Tier.EXCELLENT),
])
def test_tier_boundaries(score, tier):
    assert score_to_tier(score) is tier


def test_parse_tier_and_ordering():
    assert parse_tier("very good") is Tier.VERY_GOOD
    assert parse_tier(Tier.GOOD) is Tier.GOOD
    assert tier_rank(Tier.EXCELLENT) > tier_rank(Tier.GOOD) > tier_rank(Tier.UNRATED)
    with pytest.raises(ValueError):
        parse_tier("Legendary")


def test_quality_indicators():
    assert quality_indicators(4.8, 250) == ["high rating", "many reviews"]
    assert quality_indicators(4.5, 0) == ["high rating", "no reviews"]
    assert quality_indicators(0, 12) == ["no rating"]
    assert quality_indicators(3.9, 50) == []
