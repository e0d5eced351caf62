"""Shared fixtures: an in-memory fetcher and a ticking clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple, Union

import pytest

from sitecheck.config import CrawlConfig
from sitecheck.fetch import FetchError
from sitecheck.models import FetchResponse

SEED = "http://example.test/"


def html_page(
    body: str = "",
    status: int = 200,
    headers: Optional[List[Tuple[str, str]]] = None,
) -> FetchResponse:
    return FetchResponse(
        status_code=status,
        status_description="OK" if status == 200 else "",
        headers=headers if headers is not None else [("Content-Type", "text/html")],
        body=body.encode("utf-8"),
    )


class FakeFetcher:
    """Serves canned responses; unknown URIs fail like a refused connection."""

    def __init__(self, pages: Dict[str, Union[FetchResponse, Exception]]):
        self.pages = pages
        self.calls: List[str] = []
        self.timeouts: List[float] = []

    def __call__(self, uri: str, timeout_s: float) -> FetchResponse:
        self.calls.append(uri)
        self.timeouts.append(timeout_s)
        page = self.pages.get(uri)
        if page is None:
            raise FetchError(f"ConnectionError: no route to {uri}")
        if isinstance(page, Exception):
            raise page
        return page


class TickingClock:
    """Each call returns a time 10ms after the previous one."""

    def __init__(self, start: Optional[datetime] = None, step_ms: int = 10):
        self.now = start or datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.origin = self.now
        self.step = timedelta(milliseconds=step_ms)

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current

    def monotonic(self) -> float:
        """Seconds since the first reading, on the same ticking timeline."""
        current = self.now
        self.now += self.step
        return (current - self.origin).total_seconds()


@pytest.fixture
def config(tmp_path):
    return CrawlConfig(seed_url=SEED, output_dir=tmp_path)


@pytest.fixture
def clock():
    return TickingClock()
