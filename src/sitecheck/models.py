"""
Data structures shared by the crawl engine, the header verifier and the report.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RecordState(str, Enum):
    """Lifecycle of a crawl record."""
    QUEUED = "queued"
    FETCHING = "fetching"
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass(frozen=True)
class HeaderRule:
    """Expectation about a response header: presence only, or a regex to search for."""
    name: str
    pattern: Optional[str] = None
    regex: Optional[re.Pattern[str]] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.strip().lower())
        if self.pattern is not None and self.regex is None:
            object.__setattr__(self, "regex", re.compile(self.pattern))

    def matches(self, value: Optional[str]) -> bool:
        if self.regex is None:
            return True
        if not value:
            return False
        return self.regex.search(value) is not None


@dataclass(slots=True)
class FetchResponse:
    """What the transport hands back for a completed request."""
    status_code: int
    status_description: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


@dataclass(slots=True)
class CrawlRecord:
    """Crawl state and outcome for one in-origin URI."""
    id: int
    uri: str
    state: RecordState = RecordState.QUEUED
    request_started_at: Optional[datetime] = None
    request_finished_at: Optional[datetime] = None
    status_code: Optional[int] = None
    status_description: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    headers_verified: Dict[str, Optional[str]] = field(default_factory=dict)
    headers_not_verified: Dict[str, Optional[str]] = field(default_factory=dict)
    failure_reasons: List[str] = field(default_factory=list)
    links_to: List[int] = field(default_factory=list)

    @property
    def request_duration(self) -> Optional[timedelta]:
        if self.request_started_at is None or self.request_finished_at is None:
            return None
        return self.request_finished_at - self.request_started_at

    @property
    def duration_ms(self) -> Optional[int]:
        duration = self.request_duration
        if duration is None:
            return None
        return int(duration.total_seconds() * 1000)

    @property
    def completed(self) -> bool:
        return self.state is RecordState.FETCHED

    @property
    def passed(self) -> bool:
        """True when the fetch completed and every header rule was satisfied."""
        return self.completed and not self.headers_not_verified

    def to_dict(self) -> Dict[str, object]:
        """JSON-friendly view of every field, timestamps in ISO 8601."""
        return {
            "id": self.id,
            "uri": self.uri,
            "state": self.state.value,
            "request_started_at": _iso(self.request_started_at),
            "request_finished_at": _iso(self.request_finished_at),
            "request_duration_ms": self.duration_ms,
            "status_code": self.status_code,
            "status_description": self.status_description,
            "headers": dict(self.headers),
            "headers_verified": dict(self.headers_verified),
            "headers_not_verified": dict(self.headers_not_verified),
            "failure_reasons": list(self.failure_reasons),
            "links_to": list(self.links_to),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
