"""
Report assembly and output: an HTML page for people, a JSON dump for tools.
"""
from __future__ import annotations

import json
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from html import escape
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from sitecheck import __version__
from sitecheck.core import CrawlResult
from sitecheck.models import CrawlRecord, HeaderRule

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReportStats:
    """Aggregate numbers for a finished run."""
    total: int = 0
    completed: int = 0
    failed: int = 0
    status_2xx: int = 0
    status_3xx: int = 0
    status_other: int = 0
    status_hits: Dict[int, int] = field(default_factory=dict)
    average_response_ms: Optional[int] = None
    header_failures: int = 0


@dataclass
class CrawlReport:
    """Read-only view of a run, ready to be rendered."""
    seed_url: str
    started_at: datetime
    finished_at: datetime
    header_rules: Dict[str, Optional[str]]
    stats: ReportStats
    records: List[Dict[str, object]] = field(default_factory=list)

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at


def status_class(status_code: int) -> str:
    """Bucket a status code as ``2xx``, ``3xx`` or ``other``."""
    if 200 <= status_code < 300:
        return "2xx"
    if 300 <= status_code < 400:
        return "3xx"
    return "other"


def compute_stats(records: Sequence[CrawlRecord]) -> ReportStats:
    """Count status classes and average the response time of completed fetches."""
    stats = ReportStats(total=len(records))
    hits: Counter[int] = Counter()
    durations: List[int] = []

    for record in records:
        if record.status_code is None:
            stats.failed += 1
            continue

        stats.completed += 1
        hits[record.status_code] += 1
        bucket = status_class(record.status_code)
        if bucket == "2xx":
            stats.status_2xx += 1
        elif bucket == "3xx":
            stats.status_3xx += 1
        else:
            stats.status_other += 1

        if record.duration_ms is not None:
            durations.append(record.duration_ms)
        if record.headers_not_verified:
            stats.header_failures += 1

    stats.status_hits = dict(sorted(hits.items()))
    if durations:
        stats.average_response_ms = int(sum(durations) / len(durations))
    return stats


def assemble_report(result: CrawlResult, seed_url: str, rules: Sequence[HeaderRule]) -> CrawlReport:
    """
    Build the report for a finished crawl.

    Records are not modified. Each row carries every record field plus
    ``linked_from``, the ids of the records that link to it.
    """
    inlinks: Dict[int, List[int]] = defaultdict(list)
    for record in result.records:
        for target in dict.fromkeys(record.links_to):
            inlinks[target].append(record.id)

    rows = []
    for record in result.records:
        row = record.to_dict()
        row["linked_from"] = inlinks.get(record.id, [])
        row["passed"] = record.passed
        rows.append(row)

    return CrawlReport(
        seed_url=seed_url,
        started_at=result.started_at,
        finished_at=result.finished_at,
        header_rules={rule.name: rule.pattern for rule in rules},
        stats=compute_stats(result.records),
        records=rows,
    )


def render_json(report: CrawlReport, pretty: bool = True) -> str:
    payload = {
        "run": {
            "started_at": report.started_at.isoformat(),
            "finished_at": report.finished_at.isoformat(),
            "duration_ms": int(report.duration.total_seconds() * 1000),
        },
        "config": {
            "seed_url": report.seed_url,
            "header_rules": report.header_rules,
        },
        "stats": {
            "total": report.stats.total,
            "completed": report.stats.completed,
            "failed": report.stats.failed,
            "status_classes": {
                "2xx": report.stats.status_2xx,
                "3xx": report.stats.status_3xx,
                "other": report.stats.status_other,
            },
            "status_hits": {str(code): count for code, count in report.stats.status_hits.items()},
            "average_response_ms": report.stats.average_response_ms,
            "header_failures": report.stats.header_failures,
        },
        "records": report.records,
    }
    return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)


def _rule_list(rules: Dict[str, Optional[str]]) -> str:
    if not rules:
        return ""
    return "<ul>" + "".join(
        f"<li><code>{escape(name)}</code>"
        + (f": <code>{escape(pattern)}</code>" if pattern is not None else "")
        + "</li>"
        for name, pattern in rules.items()
    ) + "</ul>"


def _cell(value: object) -> str:
    return f"<td>{escape('' if value is None else str(value))}</td>"


def render_html(report: CrawlReport) -> str:
    """Stand-alone HTML page with the run stats and one table row per record."""
    stats = report.stats
    title = escape(f"SiteCheck: {report.seed_url}")
    average = f"{stats.average_response_ms}ms" if stats.average_response_ms is not None else "n/a"
    show_headers = bool(report.header_rules)

    parts = [
        "<!doctype html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<title>{title}</title>",
        "</head>",
        "<body>",
        f"<h1>{title}</h1>",
        "<h2>Stats</h2>",
        "<ul>",
        f"<li>Run started: <strong>{escape(report.started_at.isoformat())}</strong></li>",
        f"<li>Run ended: <strong>{escape(report.finished_at.isoformat())}</strong></li>",
        f"<li>Run took: <strong>{escape(str(report.duration))}</strong></li>",
        f"<li>Total URLs scanned: <strong>{stats.total}</strong></li>",
        f"<li>Failed requests: <strong>{stats.failed}</strong></li>",
        f"<li>Average response time: <strong>{average}</strong></li>",
        f"<li>2xx / 3xx / other: <strong>{stats.status_2xx} / {stats.status_3xx} / {stats.status_other}</strong></li>",
        "</ul>",
        "<h2>HTTP Response Codes Hits</h2>",
        "<ul>",
    ]
    parts.extend(f"<li>{code}: {count}</li>" for code, count in stats.status_hits.items())
    parts.append("</ul>")

    if show_headers:
        parts.append("<h2>Header Rules</h2>")
        parts.append(_rule_list(report.header_rules))
        parts.append(f"<p>Pages failing header rules: <strong>{stats.header_failures}</strong></p>")

    parts.append("<table border=1>")
    parts.append("<thead><tr>")
    columns = ["URL", "Request Started", "Request Finished", "Response Time", "HTTP Status"]
    if show_headers:
        columns += ["Headers Verified", "Headers Not Verified"]
    columns.append("Failures")
    parts.extend(f"<th>{name}</th>" for name in columns)
    parts.append("</tr></thead>")
    parts.append("<tbody>")

    for row in report.records:
        status = ""
        if row["status_code"] is not None:
            status = f"{row['status_code']} {row['status_description'] or ''}".strip()
        duration = f"{row['request_duration_ms']}ms" if row["request_duration_ms"] is not None else None

        parts.append("<tr>")
        parts.append(_cell(row["uri"]))
        parts.append(_cell(row["request_started_at"]))
        parts.append(_cell(row["request_finished_at"]))
        parts.append(_cell(duration))
        parts.append(_cell(status))
        if show_headers:
            parts.append(f"<td>{_rule_list(row['headers_verified'])}</td>")
            parts.append(f"<td>{_rule_list(row['headers_not_verified'])}</td>")
        parts.append(_cell("; ".join(row["failure_reasons"])))
        parts.append("</tr>")

    parts.extend(["</tbody>", "</table>", f"<p>SiteCheck v{__version__}</p>", "</body>", "</html>"])
    return "\n".join(parts)


def report_basename(seed_url: str, now: datetime) -> str:
    """``report-<YYYY-MM-DD-HH-mm-ss>-<host>``"""
    host = urlparse(seed_url).hostname or "unknown"
    return f"report-{now:%Y-%m-%d-%H-%M-%S}-{host}"


def write_reports(report: CrawlReport, output_dir: Path, now: Optional[datetime] = None) -> List[Path]:
    """
    Write the HTML and JSON reports into ``output_dir``.

    A file that cannot be written is logged and skipped. Returns the
    paths that were written.
    """
    basename = report_basename(report.seed_url, now or datetime.now())
    outputs = (
        (output_dir / f"{basename}.html", render_html(report)),
        (output_dir / f"{basename}.json", render_json(report)),
    )

    written: List[Path] = []
    for path, text in outputs:
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            LOGGER.error("Could not write report to %s: %s", path, exc)
            continue
        written.append(path)
    return written
