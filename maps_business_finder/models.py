"""
models.py - Shared data types
-----------------------------
Dataclasses and enums passed between the browser, extraction, scrolling,
ranking and orchestration layers.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from maps_business_finder.utils.config import (
    ADDRESS_UNAVAILABLE,
    DEFAULT_EXPORT_FORMATS,
    DEFAULT_SCORING_STRATEGY,
    DEFAULT_SEARCH_RADIUS,
    SOURCE_NAME,
)
from maps_business_finder.utils.geo_utils import is_valid_coordinate


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Stage(str, Enum):
    """Orchestrator stages, in emission order (``ERROR`` can follow any of them)."""
    SESSION_STARTED = "session_started"
    INITIALIZING_BROWSER = "initializing_browser"
    NAVIGATING = "navigating"
    EXTRACTING_INITIAL_DATA = "extracting_initial_data"
    SMART_SCROLLING = "smart_scrolling"
    EXTRACTING_FINAL_DATA = "extracting_final_data"
    PROCESSING_RESULTS = "processing_results"
    EXPORTING_RESULTS = "exporting_results"
    COMPLETED = "completed"
    ERROR = "error"


class ScrollOutcome(str, Enum):
    END_DETECTED = "end_detected"
    EXHAUSTED_WITHOUT_SIGNAL = "exhausted_without_signal"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"
    CONTAINER_NOT_FOUND = "container_not_found"


class Tier(str, Enum):
    EXCELLENT = "Excellent"
    VERY_GOOD = "Very Good"
    GOOD = "Good"
    AVERAGE = "Average"
    BASIC = "Basic"
    UNRATED = "Unrated"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float
    address: Optional[str] = None

    @classmethod
    def from_value(cls, value: Union["Coordinate", Dict[str, Any]]) -> "Coordinate":
        """
        Build a coordinate from a mapping (``lat`` plus ``lon`` or ``lng``).

        Raises:
            ValueError: if the values are missing or out of range
        """
        if isinstance(value, Coordinate):
            return value
        if not isinstance(value, dict):
            raise ValueError(f"Unsupported coordinate value: {value!r}")
        try:
            lat = float(value["lat"])
            lon = float(value["lon"] if "lon" in value else value["lng"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid coordinate {value!r}: {e}") from e
        if not is_valid_coordinate(lat, lon):
            raise ValueError(f"Coordinate out of range: {lat}, {lon}")
        return cls(lat=lat, lon=lon, address=value.get("address"))

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "address": self.address}


@dataclass(frozen=True)
class SearchLocation:
    name: str
    coordinates: Optional[Coordinate] = None


@dataclass
class RawCandidate:
    """Unvalidated listing as read from the page."""
    name: str
    rating: str = ""
    reviews: str = ""
    link: str = ""
    address: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass
class BusinessRecord:
    name: str
    rating: float = 0.0
    review_count: int = 0
    reviews_text: str = ""
    address: str = ADDRESS_UNAVAILABLE
    link: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    search_location: Optional[str] = None
    location_coordinates: Optional[Coordinate] = None
    distance_km: Optional[float] = None
    composite_score: float = 0.0
    score_breakdown: Dict[str, Any] = field(default_factory=dict)
    tier: Tier = Tier.UNRATED
    quality_indicators: List[str] = field(default_factory=list)
    rank: Optional[int] = None
    extracted_at: str = field(default_factory=utc_now_iso)
    source: str = SOURCE_NAME

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tier"] = self.tier.value
        return data


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage
    progress: Optional[float] = None
    data: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "progress": self.progress,
            "data": self.data,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
        }


@dataclass
class InitResult:
    success: bool
    stealth: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class NavigationResult:
    success: bool
    title: str = ""
    url: str = ""
    error: Optional[str] = None


@dataclass
class ScrollResult:
    outcome: ScrollOutcome
    attempts: int = 0
    max_attempts: int = 0
    end_message: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.outcome is not ScrollOutcome.CONTAINER_NOT_FOUND

    @property
    def end_detected(self) -> bool:
        return self.outcome is ScrollOutcome.END_DETECTED

    @property
    def max_attempts_reached(self) -> bool:
        return self.outcome is ScrollOutcome.MAX_ATTEMPTS_REACHED


def _export_formats(value) -> List[str]:
    """A comma separated string or a list of format names."""
    if isinstance(value, str):
        return [f.strip() for f in value.split(",") if f.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(f).strip() for f in value if str(f).strip()]
    raise ValueError(f"export formats must be a list or a comma separated string, not {type(value).__name__}")


def _pick(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass
class ScrapeOptions:
    min_rating: Optional[float] = None
    min_reviews: Optional[int] = None
    min_tier: Optional[str] = None
    limit: Optional[int] = None
    export_formats: List[str] = field(default_factory=lambda: list(DEFAULT_EXPORT_FORMATS))
    search_radius: int = DEFAULT_SEARCH_RADIUS
    coordinates: Union[None, Coordinate, List[Coordinate]] = None
    remove_duplicates: bool = True
    scoring_strategy: str = DEFAULT_SCORING_STRATEGY

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ScrapeOptions":
        """
        Normalise run options coming from the CLI or an HTTP body.

        Both ``snake_case`` and ``camelCase`` keys are accepted.
        """
        data = dict(data or {})
        coords = data.get("coordinates")
        if isinstance(coords, Sequence) and not isinstance(coords, (str, bytes)):
            coords = [Coordinate.from_value(c) for c in coords]
        elif coords is not None:
            coords = Coordinate.from_value(coords)

        min_rating = _pick(data, "min_rating", "minRating")
        min_reviews = _pick(data, "min_reviews", "minReviews")
        limit = _pick(data, "limit")
        options = cls(
            min_rating=float(min_rating) if min_rating is not None else None,
            min_reviews=int(min_reviews) if min_reviews is not None else None,
            min_tier=_pick(data, "min_tier", "minTier"),
            limit=int(limit) if limit is not None else None,
            export_formats=_export_formats(_pick(data, "export_formats", "exportFormats",
                                                 default=DEFAULT_EXPORT_FORMATS)),
            search_radius=int(_pick(data, "search_radius", "searchRadius",
                                    default=DEFAULT_SEARCH_RADIUS)),
            coordinates=coords,
            remove_duplicates=bool(_pick(data, "remove_duplicates", "removeDuplicates", default=True)),
            scoring_strategy=_pick(data, "scoring_strategy", "scoringStrategy",
                                   default=DEFAULT_SCORING_STRATEGY),
        )
        return options.validate()

    def validate(self) -> "ScrapeOptions":
        """
        Check the tier and scoring strategy names; a known tier is stored
        under its display name.

        Raises:
            ValueError: for an unknown tier or scoring strategy
        """
        from maps_business_finder.data_processing.scoring import get_scoring_strategy, parse_tier

        if self.min_tier is not None:
            self.min_tier = parse_tier(self.min_tier).value
        get_scoring_strategy(self.scoring_strategy)
        return self

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.coordinates, list):
            coords = [c.to_dict() for c in self.coordinates]
        elif self.coordinates is not None:
            coords = self.coordinates.to_dict()
        else:
            coords = None
        return {
            "min_rating": self.min_rating,
            "min_reviews": self.min_reviews,
            "min_tier": self.min_tier,
            "limit": self.limit,
            "export_formats": list(self.export_formats),
            "search_radius": self.search_radius,
            "coordinates": coords,
            "remove_duplicates": self.remove_duplicates,
            "scoring_strategy": self.scoring_strategy,
        }


@dataclass
class Session:
    """One orchestrated run; owned by the engine that created it."""
    id: str
    search_term: str
    options: ScrapeOptions
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    running: bool = True

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()
