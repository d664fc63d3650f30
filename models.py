# models.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

IMAGE_FIELDS = [
    ("Box Art", "boxart"),
    ("Box Art HD", "boxartHighRes"),
    ("Story Art", "storyArt"),
    ("Logo Branded", "titleLogoBranded"),
    ("Logo Unbranded", "titleLogoUnbranded"),
]

@dataclass(frozen=True)
class TitleEntity:
    """Read-only view over one entity record returned by the metadata endpoint."""
    raw: Dict[str, Any]

    @property
    def video_id(self) -> str:
        return str(self.raw.get("videoId", ""))

    @property
    def title(self) -> str:
        return self.raw.get("title") or "N/A"

    @property
    def typename(self) -> str:
        return self.raw.get("__typename") or "Title"

    @property
    def latest_year(self) -> Optional[int]:
        return self.raw.get("latestYear")

    @property
    def runtime_sec(self) -> int:
        return int(self.raw.get("runtimeSec") or 0)

    @property
    def is_available(self) -> bool:
        return bool(self.raw.get("isAvailable"))

    @property
    def availability_start_time(self) -> Optional[str]:
        return self.raw.get("availabilityStartTime")

    @property
    def content_advisory(self) -> Dict[str, Any]:
        return self.raw.get("contentAdvisory") or {}

    @property
    def certification(self) -> Optional[str]:
        return self.content_advisory.get("certificationValue") or None

    @property
    def advisory_reasons(self) -> List[str]:
        return [r.get("text", "") for r in self.content_advisory.get("reasons") or [] if isinstance(r, dict)]

    @property
    def playback_badges(self) -> List[str]:
        return list(self.raw.get("playbackBadges") or [])

    @property
    def text_evidence(self) -> List[Dict[str, Any]]:
        return [e for e in self.raw.get("textEvidence") or [] if isinstance(e, dict)]

    @property
    def tagline(self) -> Optional[str]:
        messages = self.raw.get("taglineMessages") or []
        return messages[0].get("tagline") if messages else None

    @property
    def unified_entity_id(self) -> str:
        return self.raw.get("unifiedEntityId") or ""

    @property
    def watch_status(self) -> str:
        return self.raw.get("watchStatus") or ""

    @property
    def is_in_playlist(self) -> bool:
        return bool(self.raw.get("isInPlaylist"))

    @property
    def promo_video_id(self) -> Optional[int]:
        promo = self.raw.get("promoVideo")
        return promo.get("id") if promo else None

    def image(self, key: str) -> Optional[Dict[str, Any]]:
        return self.raw.get(key)

    @property
    def poster_url(self) -> Optional[str]:
        for key in ("boxartHighRes", "boxart"):
            image = self.image(key)
            if image and image.get("url"):
                return image["url"]
        return None


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    title: str
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "timestamp": self.timestamp}


@dataclass(frozen=True)
class RecentSearch:
    id: str
    time: int


@dataclass(frozen=True)
class AnalyticsSnapshot:
    total_searches: int = 0
    avg_response_time: float = 0
    search_times: List[int] = field(default_factory=list)
    recent_searches: List[RecentSearch] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSearches": self.total_searches,
            "avgResponseTime": self.avg_response_time,
            "searchTimes": list(self.search_times),
            "recentSearches": [{"id": r.id, "time": r.time} for r in self.recent_searches],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyticsSnapshot":
        return cls(
            total_searches=int(data.get("totalSearches", 0)),
            avg_response_time=float(data.get("avgResponseTime", 0)),
            search_times=[int(t) for t in data.get("searchTimes", [])],
            recent_searches=[
                RecentSearch(id=str(r["id"]), time=int(r["time"]))
                for r in data.get("recentSearches", [])
            ],
        )


@dataclass(frozen=True)
class RateLimit:
    remaining: int = 100
    limit: int = 100

    @property
    def percentage(self) -> float:
        return (self.remaining / self.limit) * 100 if self.limit else 0.0

    @property
    def is_low(self) -> bool:
        return self.percentage < 20


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one single or batch search, tagged with its request generation."""
    token: int
    identifiers: List[str]
    entities: List[TitleEntity] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_ms: int = 0
    is_batch: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Countdown:
    days: int
    hours: int
    minutes: int
    seconds: int

    def __str__(self) -> str:
        return (f"{self.days:02d} days : {self.hours:02d} hrs : "
                f"{self.minutes:02d} min : {self.seconds:02d} sec")


@dataclass
class AppState:
    """A single object to hold the entire application state."""
    entity: Optional[TitleEntity] = None
    comparison: List[TitleEntity] = field(default_factory=list)
    error: Optional[str] = None
    is_loading: bool = False
