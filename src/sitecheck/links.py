"""
Link discovery: pull anchors out of a fetched page and feed new in-origin
targets back into the crawl.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List

from bs4 import BeautifulSoup, SoupStrainer
from bs4.builder import ParserRejectedMarkup

from sitecheck.models import CrawlRecord
from sitecheck.urls import is_in_origin, normalize_url

if TYPE_CHECKING:
    from sitecheck.core import CrawlSession

LOGGER = logging.getLogger(__name__)

# SoupStrainer to parse only <a> tags (faster link extraction)
LINK_STRAINER = SoupStrainer("a", href=True)

PAGE_ENCODING = "utf-8"


def extract_hrefs(body: bytes) -> List[str]:
    """
    Raw href values of every anchor in ``body``, in document order.

    An empty body or markup the parser rejects yields no links.
    """
    if not body:
        return []

    try:
        html = body.decode(PAGE_ENCODING, errors="replace")
        soup = BeautifulSoup(html, "lxml", parse_only=LINK_STRAINER)
    except (ParserRejectedMarkup, ValueError) as exc:
        LOGGER.debug("Unparsable document, no links extracted: %s", exc)
        return []

    return [a["href"] for a in soup.find_all("a", href=True)]


class LinkExtractor:
    """
    Resolve the anchors of a page and wire them into the session.

    Each href is resolved against the page it was found on. Targets
    outside the session origin, or that do not resolve at all, are
    dropped. Known targets only get an edge; unknown ones are enqueued.
    """

    def __init__(self, parse: Callable[[bytes], List[str]] = extract_hrefs) -> None:
        self.parse = parse

    def __call__(self, session: CrawlSession, record: CrawlRecord, body: bytes) -> int:
        """Populate ``record.links_to``; returns how many records were created."""
        record.links_to.clear()
        created = 0

        for href in self.parse(body):
            target = normalize_url(href, base=record.uri)
            if target is None:
                LOGGER.debug("Skipping unresolvable href %r on %s", href, record.uri)
                continue
            if not is_in_origin(session.base_url, target):
                continue

            existing = session.find(target)
            if existing is None:
                existing = session.enqueue(target)
                created += 1
            record.links_to.append(existing.id)

        return created
