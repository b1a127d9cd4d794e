"""
result_processor.py - Ranking engine
-----------------------------------
Validate, de-duplicate, score, rank, filter and summarise the listings
collected by one scrape.
"""
import dataclasses
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from maps_business_finder.data_processing.data_cleaning import deduplicate, normalized_name_key
from maps_business_finder.data_processing.data_validation import (
    extract_review_count, validate_business_data
)
from maps_business_finder.data_processing.scoring import (
    ScoringStrategy, get_scoring_strategy, parse_tier, quality_indicators,
    score_to_tier, tier_rank
)
from maps_business_finder.models import BusinessRecord, Tier
from maps_business_finder.utils.config import DEFAULT_SCORING_STRATEGY
from maps_business_finder.utils.geo_utils import haversine_km
from maps_business_finder.utils.logging_config import get_logger


class ResultProcessor:
    """
    Turns accumulated records into the ranked output set.

    Args:
        scoring_strategy: Strategy name or instance used for the composite score
        logger: Logger to use (defaults to the package logger)
    """

    def __init__(self, scoring_strategy=DEFAULT_SCORING_STRATEGY, logger: Optional[logging.Logger] = None):
        self.log = get_logger(logger)
        self.strategy = self._resolve(scoring_strategy)
        self.stats = self._empty_stats()

    @staticmethod
    def _resolve(strategy) -> ScoringStrategy:
        if isinstance(strategy, ScoringStrategy):
            return strategy
        return get_scoring_strategy(strategy)

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "total_processed": 0,
            "rejected": 0,
            "deduplicated": 0,
            "enriched": 0,
            "sorted": 0,
            "filtered": 0,
        }

    def set_scoring_strategy(self, strategy):
        self.strategy = self._resolve(strategy)

    def process_results(self, records: Iterable, min_rating: Optional[float] = None,
                        min_reviews: Optional[int] = None, min_tier=None,
                        limit: Optional[int] = None, remove_duplicates: bool = True) -> List[BusinessRecord]:
        """
        Run the full pipeline: validate, dedup, enrich, sort/rank, filter, limit.

        Args:
            records: Raw candidates or business records
            min_rating: Drop records rated below this
            min_reviews: Drop records with fewer reviews than this
            min_tier: Drop records whose tier is below this one
            limit: Keep at most this many records
            remove_duplicates: Run the normalised-name dedup pass

        Returns:
            Ranked list of business records
        """
        records = list(records)
        self.stats["total_processed"] += len(records)
        self.log.info("Processing %d results (strategy=%s)", len(records), self.strategy.name)

        valid = []
        for item in records:
            result = validate_business_data(item, logger=self.log)
            if result.is_valid:
                valid.append(result.record)
            else:
                self.stats["rejected"] += 1
                self.log.debug("Rejected %s: %s", getattr(item, "name", "unnamed"), "; ".join(result.errors))

        if remove_duplicates:
            unique = deduplicate(valid, key=normalized_name_key)
            self.stats["deduplicated"] += len(valid) - len(unique)
            if len(unique) != len(valid):
                self.log.info("Removed %d duplicate businesses", len(valid) - len(unique))
        else:
            unique = valid

        enriched = [self.enrich(r) for r in unique]
        self.stats["enriched"] += len(enriched)

        ranked = self.rank(enriched)
        self.stats["sorted"] += len(ranked)

        filtered = self.apply_filters(ranked, min_rating=min_rating, min_reviews=min_reviews, min_tier=min_tier)
        self.stats["filtered"] += len(ranked) - len(filtered)

        if limit is not None and limit > 0:
            filtered = filtered[:limit]

        self.log.info("Processing complete: %d businesses after filters", len(filtered))
        return filtered

    def enrich(self, record: BusinessRecord) -> BusinessRecord:
        review_count = extract_review_count(record)
        score = self.strategy.score(record.rating, review_count)

        distance = record.distance_km
        origin = record.location_coordinates
        if distance is None and origin is not None and record.lat is not None:
            distance = haversine_km(origin.lat, origin.lon, record.lat, record.lng)

        return dataclasses.replace(
            record,
            review_count=review_count,
            composite_score=score,
            score_breakdown=self.strategy.breakdown(record.rating, review_count),
            tier=score_to_tier(score),
            quality_indicators=quality_indicators(record.rating, review_count),
            distance_km=distance,
        )

    @staticmethod
    def rank(records: List[BusinessRecord]) -> List[BusinessRecord]:
        """Sort by score, rating, then review count (all descending) and number the ranks."""
        ordered = sorted(records, key=lambda r: (-r.composite_score, -r.rating, -r.review_count))
        return [dataclasses.replace(r, rank=i) for i, r in enumerate(ordered, start=1)]

    @staticmethod
    def apply_filters(records: List[BusinessRecord], min_rating=None, min_reviews=None,
                      min_tier=None) -> List[BusinessRecord]:
        result = records
        if min_rating is not None:
            result = [r for r in result if r.rating >= min_rating]
        if min_reviews is not None:
            result = [r for r in result if r.review_count >= min_reviews]
        if min_tier:
            floor = tier_rank(parse_tier(min_tier))
            result = [r for r in result if tier_rank(r.tier) >= floor]
        return result

    def generate_summary(self, results: List[BusinessRecord]) -> Dict[str, Any]:
        """
        Summary statistics over a result set.

        Means only count records with a positive value for the measured field.
        """
        rated = [r.rating for r in results if r.rating > 0]
        reviewed = [r.review_count for r in results if r.review_count > 0]
        scored = [r.composite_score for r in results if r.composite_score > 0]
        tiers = Counter(r.tier.value for r in results)

        return {
            "total": len(results),
            "avg_rating": round(sum(rated) / len(rated), 1) if rated else 0,
            "avg_reviews": round(sum(reviewed) / len(reviewed)) if reviewed else 0,
            "avg_composite_score": round(sum(scored) / len(scored), 2) if scored else 0,
            "tier_distribution": {t.value: tiers[t.value] for t in Tier if tiers[t.value]},
            "quality_metrics": {
                "with_ratings": len(rated),
                "with_reviews": len(reviewed),
                "high_rated": sum(1 for r in results if r.rating >= 4.0),
                "well_reviewed": sum(1 for r in results if r.review_count >= 20),
            },
            "scoring_strategy": self.strategy.name,
        }

    @staticmethod
    def prepare_for_export(results: List[BusinessRecord], fmt: str = "detailed") -> List[Dict[str, Any]]:
        """Shape records as ``simple``, ``analysis`` or ``detailed`` (default) dicts."""
        if fmt == "simple":
            return [
                {
                    "name": r.name,
                    "rating": r.rating,
                    "reviews": r.review_count,
                    "reviews_text": r.reviews_text,
                    "score": r.composite_score,
                    "rank": r.rank,
                }
                for r in results
            ]
        if fmt == "analysis":
            return [
                {
                    "name": r.name,
                    "rank": r.rank,
                    "composite_score": r.composite_score,
                    "tier": r.tier.value,
                    "score_breakdown": dict(r.score_breakdown),
                    "quality_indicators": list(r.quality_indicators),
                }
                for r in results
            ]
        return [r.to_dict() for r in results]

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats, scoring_strategy=self.strategy.name)

    def reset_stats(self):
        self.stats = self._empty_stats()
