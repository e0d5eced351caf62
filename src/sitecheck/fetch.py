"""
HTTP transport built on requests.
"""
from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from sitecheck.config import DEFAULT_USER_AGENT
from sitecheck.models import FetchResponse

LOGGER = logging.getLogger(__name__)


class FetchError(Exception):
    """The request never produced a response (timeout, DNS, connection reset...)."""


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def collect_headers(pairs: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Lower-case header names and join repeated values with a space."""
    headers: Dict[str, str] = {}
    for name, value in pairs:
        key = name.lower()
        if key in headers:
            headers[key] = f"{headers[key]} {value}"
        else:
            headers[key] = value
    return headers


def _header_pairs(response: requests.Response) -> List[Tuple[str, str]]:
    # urllib3 keeps repeated headers apart; requests folds them with commas.
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return [(name, value) for name in raw_headers.keys() for value in raw_headers.getlist(name)]
    return list(response.headers.items())


class RequestsFetcher:
    """Single-attempt GET of a URI, following redirects."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def __call__(self, uri: str, timeout_s: float) -> FetchResponse:
        try:
            resp = self.session.get(uri, timeout=timeout_s, allow_redirects=True)
            body = resp.content
        except requests.Timeout as exc:
            LOGGER.debug("Timeout fetching %s: %s", uri, exc)
            raise FetchError(f"Request timed out after {int(timeout_s * 1000)}ms") from exc
        except requests.RequestException as exc:
            raise FetchError(f"{type(exc).__name__}: {exc}") from exc

        return FetchResponse(
            status_code=resp.status_code,
            status_description=resp.reason or reason_phrase(resp.status_code),
            headers=_header_pairs(resp),
            body=body,
        )

    def close(self) -> None:
        self.session.close()
