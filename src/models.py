"""
Data models for the PakWheels crawler.
"""
import math
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, List, Optional, Union

from config.config import DEFAULT_MAX_PAGES, DEFAULT_RESULTS_WANTED
from src.errors import ConfigError


def _coerce_count(raw: Any, default: int) -> int:
    """Coerce a count the way the search form does: non-numeric falls back to the default, then >= 1."""
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return max(1, int(value))


def _optional_bound(name: str, raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class FilterSpec:
    """Search filters for one crawl run."""

    city: str = ""
    make: str = ""
    model: str = ""
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    results_wanted: int = DEFAULT_RESULTS_WANTED
    max_pages: int = DEFAULT_MAX_PAGES
    start_url: Optional[str] = None
    proxy_configuration: Optional[Dict[str, Any]] = field(default=None, compare=False, hash=False)

    def __post_init__(self):
        for name in ("min_price", "max_price", "min_year", "max_year"):
            object.__setattr__(self, name, _optional_bound(name, getattr(self, name)))
        object.__setattr__(self, "results_wanted", _coerce_count(self.results_wanted, DEFAULT_RESULTS_WANTED))
        object.__setattr__(self, "max_pages", _coerce_count(self.max_pages, DEFAULT_MAX_PAGES))
        for name in ("city", "make", "model"):
            object.__setattr__(self, name, getattr(self, name) or "")

    @classmethod
    def from_input(cls, data: Dict[str, Any]) -> "FilterSpec":
        """
        Build a FilterSpec from an input document.

        Accepts both the marketplace input key names (``results_wanted``,
        ``startUrl``, ``minPrice`` ...) and the snake_case field names.
        """
        if not isinstance(data, dict):
            raise ConfigError("Input must be a JSON object")

        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        return cls(
            city=str(pick("city", default="")),
            make=str(pick("make", default="")),
            model=str(pick("model", default="")),
            min_price=pick("minPrice", "min_price"),
            max_price=pick("maxPrice", "max_price"),
            min_year=pick("minYear", "min_year"),
            max_year=pick("maxYear", "max_year"),
            results_wanted=pick("results_wanted", "resultsWanted", default=DEFAULT_RESULTS_WANTED),
            max_pages=pick("max_pages", "maxPages", default=DEFAULT_MAX_PAGES),
            start_url=pick("startUrl", "start_url"),
            proxy_configuration=pick("proxyConfiguration", "proxy_configuration"),
        )


@dataclass
class PartialRecord:
    """Fields one extractor managed to read from a listing node; anything missing stays None."""

    title: Optional[str] = None
    url: Optional[str] = None
    price: Optional[int] = None
    currency: Optional[str] = None
    year: Optional[int] = None
    mileage: Optional[Union[str, int, float]] = None
    fuel_type: Optional[str] = None
    brand: Optional[str] = None
    engine_capacity: Optional[str] = None
    transmission: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    updated_at: Optional[str] = None


@dataclass
class ListingRecord:
    """A merged, validated used-car listing ready to be stored."""

    title: str
    url: str
    price: Optional[int]
    currency: str
    year: Optional[int] = None
    mileage: Optional[Union[str, int, float]] = None
    fuel_type: Optional[str] = None
    engine_capacity: Optional[str] = None
    transmission: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: bool = False
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass
class PageRequest:
    """One frontier entry."""
    url: str
    page_no: int = 1
    attempt: int = 0
    referer: Optional[str] = None

    def __str__(self):
        return f"page {self.page_no} ({self.url})"


@dataclass
class CrawlSummary:
    """Outcome of a crawl run."""
    saved: int = 0
    skipped: int = 0
    pages_visited: int = 0
    abandoned_urls: List[str] = field(default_factory=list)
    batches_flushed: int = 0
    stop_reason: str = ""
    seed_failed: bool = False
    unflushed_records: int = 0
