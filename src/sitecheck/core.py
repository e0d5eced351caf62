"""
Crawl engine: breadth-first traversal of one site in discovery order.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sitecheck.config import CrawlConfig
from sitecheck.fetch import FetchError, RequestsFetcher, collect_headers
from sitecheck.headers import verify_headers
from sitecheck.links import LinkExtractor
from sitecheck.models import CrawlRecord, FetchResponse, RecordState

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[str, float], FetchResponse]
RecordCallback = Callable[[int, int, CrawlRecord], None]


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class CrawlResult:
    """Outcome of a finished run."""
    started_at: datetime
    finished_at: datetime
    records: List[CrawlRecord] = field(default_factory=list)

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at


class CrawlSession:
    """
    Owns the record collection for one run and drives the crawl.

    The collection is append-only. ``run`` walks it with an index and
    re-reads its length on every pass, so records discovered while a
    page is processed are visited after everything found before them.
    Only one record is in flight at a time.

    A site that keeps producing new in-origin addresses (query string
    permutations, session ids in paths) will not terminate.
    """

    def __init__(
        self,
        config: CrawlConfig,
        fetcher: Optional[Fetcher] = None,
        extractor: Optional[LinkExtractor] = None,
        on_record: Optional[RecordCallback] = None,
        clock: Callable[[], datetime] = utc_now,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.base_url = config.seed_url
        self.fetcher = fetcher or RequestsFetcher(user_agent=config.user_agent)
        self.extractor = extractor or LinkExtractor()
        self.on_record = on_record
        self.clock = clock
        self.timer = timer

        self.records: List[CrawlRecord] = []
        self._by_uri: Dict[str, CrawlRecord] = {}
        self.enqueue(self.base_url)

    def __len__(self) -> int:
        return len(self.records)

    def find(self, uri: str) -> Optional[CrawlRecord]:
        """Record for an already normalized URI, if one exists."""
        return self._by_uri.get(uri)

    def enqueue(self, uri: str) -> CrawlRecord:
        """Create a record for a normalized URI not seen before."""
        if uri in self._by_uri:
            raise ValueError(f"URI already queued: {uri}")

        record = CrawlRecord(id=len(self.records), uri=uri)
        self.records.append(record)
        self._by_uri[uri] = record
        return record

    def run(self) -> CrawlResult:
        """Process every record, including those discovered along the way."""
        started_at = self.clock()

        index = 0
        while index < len(self.records):
            self.process(index)
            index += 1

        finished_at = self.clock()
        LOGGER.debug("Crawl of %s finished with %d records", self.base_url, len(self.records))
        return CrawlResult(started_at=started_at, finished_at=finished_at, records=self.records)

    def process(self, index: int) -> None:
        """Fetch one record, verify its headers and collect its links."""
        record = self.records[index]
        record.state = RecordState.FETCHING
        record.request_started_at = self.clock()
        started = self.timer()

        try:
            response = self.fetcher(record.uri, self.config.timeout_s)
        except FetchError as exc:
            record.state = RecordState.FAILED
            record.failure_reasons.append(str(exc))
            LOGGER.warning("Fetch failed for %s: %s", record.uri, exc)
            self._notify(index, record)
            return

        # Timing covers the network only, not parsing or verification. The
        # finish stamp is the start stamp plus a monotonic reading, never
        # earlier than the start stamp.
        elapsed = timedelta(seconds=max(self.timer() - started, 0.0))
        record.request_finished_at = record.request_started_at + elapsed
        record.state = RecordState.FETCHED
        record.status_code = response.status_code
        record.status_description = response.status_description
        record.headers = collect_headers(response.headers)

        if self.config.header_rules:
            verify_headers(record, self.config.header_rules)

        created = self.extractor(self, record, response.body)
        LOGGER.debug("%s: %d links, %d new", record.uri, len(record.links_to), created)
        self._notify(index, record)

    def _notify(self, index: int, record: CrawlRecord) -> None:
        if self.on_record is not None:
            self.on_record(index, len(self.records), record)


def crawl(
    config: CrawlConfig,
    fetcher: Optional[Fetcher] = None,
    on_record: Optional[RecordCallback] = None,
) -> CrawlResult:
    """
    Crawl all in-origin links starting from ``config.seed_url``.

    Returns the finished records in discovery order along with the run
    start and end times.
    """
    owned = fetcher is None
    session = CrawlSession(config, fetcher=fetcher, on_record=on_record)
    try:
        return session.run()
    finally:
        if owned and isinstance(session.fetcher, RequestsFetcher):
            session.fetcher.close()
