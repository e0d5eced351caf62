"""
Response header verification.
"""
from __future__ import annotations

import re
from typing import Iterable

from sitecheck.models import CrawlRecord, HeaderRule


def parse_header_rule(spec: str) -> HeaderRule:
    """
    Build a rule from ``name`` or ``name:pattern``.

    Only the first colon separates the two, so patterns may contain
    colons themselves. Whitespace after the colon is dropped, as in
    ``Server: nginx``. Raises ValueError for an empty name or a pattern
    that is not a valid regular expression.
    """
    name, sep, pattern = spec.partition(":")
    name = name.strip()
    if not name:
        raise ValueError(f"Header rule has no header name: {spec!r}")

    if not sep:
        return HeaderRule(name=name)

    try:
        return HeaderRule(name=name, pattern=pattern.lstrip())
    except re.error as exc:
        raise ValueError(f"Invalid pattern for header {name!r}: {exc}") from exc


def verify_headers(record: CrawlRecord, rules: Iterable[HeaderRule]) -> None:
    """
    Sort every rule into ``headers_verified`` or ``headers_not_verified``.

    A rule is verified when the header is present and, for pattern
    rules, its value contains a match for the pattern. Nothing is raised
    and ``failure_reasons`` is left alone; callers decide pass/fail from
    ``headers_not_verified``.
    """
    for rule in rules:
        value = record.headers.get(rule.name)
        ok = rule.name in record.headers and rule.matches(value)

        # Re-verification must not leave a rule in both partitions.
        record.headers_verified.pop(rule.name, None)
        record.headers_not_verified.pop(rule.name, None)

        if ok:
            record.headers_verified[rule.name] = rule.pattern
        else:
            record.headers_not_verified[rule.name] = rule.pattern
