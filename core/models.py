# Domain objects that flow through one price lookup request.
# All of them are immutable and none outlives the request that created it.

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.errors import InvalidInput


class Strategy(str, enum.Enum):
    """Extraction strategies, in order of increasing cost."""

    STRUCTURED = "STRUCTURED"
    MARKUP_SCAN = "MARKUP_SCAN"
    OCR = "OCR"


@dataclass(frozen=True)
class SearchQuery:
    """A validated search request. The term is stored stripped."""

    term: str
    debug: bool = False

    def __post_init__(self):
        term = self.term.strip() if isinstance(self.term, str) else ""
        if not term:
            raise InvalidInput("Search term must be a non-empty string")
        object.__setattr__(self, "term", term)


@dataclass(frozen=True)
class PageArtifact:
    """Rendered markup of a page and, when requested, a full-page PNG."""

    markup: str
    image: Optional[bytes] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image)


@dataclass(frozen=True)
class PriceToken:
    raw_match: str
    value: float


@dataclass(frozen=True)
class StrategyAttempt:
    strategy: Strategy
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"strategy": self.strategy.value, "count": self.count}


@dataclass(frozen=True)
class ExtractionResult:
    """The adopted set of prices and the strategy that produced them.

    ``attempts`` lists every strategy that actually ran, in order, so that
    debug output can show why a more expensive strategy was or wasn't used.
    """

    strategy: Strategy
    values: Tuple[float, ...]
    tokens: Tuple[PriceToken, ...] = ()
    attempts: Tuple[StrategyAttempt, ...] = ()

    @classmethod
    def from_tokens(
        cls,
        strategy: Strategy,
        tokens: List[PriceToken],
        attempts: List[StrategyAttempt],
    ) -> "ExtractionResult":
        return cls(
            strategy=strategy,
            values=tuple(token.value for token in tokens),
            tokens=tuple(tokens),
            attempts=tuple(attempts),
        )


@dataclass(frozen=True)
class PriceStatistics:
    count: int = 0
    min: float = 0
    max: float = 0
    average: float = 0
    median: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average": self.average,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "count": self.count,
        }


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(frozen=True)
class SearchResult:
    search_term: str
    extraction: ExtractionResult
    stats: PriceStatistics
    timestamp: str = field(default_factory=utc_timestamp)
    warnings: Tuple[str, ...] = ()

    def to_dict(self, debug: bool = False) -> Dict[str, Any]:
        """Serialize into the public response body."""
        body = {
            "searchTerm": self.search_term,
            "timestamp": self.timestamp,
            "results": {
                "totalPricesFound": len(self.extraction.values),
                "prices": list(self.extraction.values),
                "stats": self.stats.to_dict(),
            },
        }
        if debug:
            body["debug"] = {
                "strategy": self.extraction.strategy.value,
                "attempts": [a.to_dict() for a in self.extraction.attempts],
                "warnings": list(self.warnings),
            }
        return body
