"""
Command-line interface for SiteCheck.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from sitecheck import __version__
from sitecheck.config import DEFAULT_TIMEOUT_MS, DEFAULT_USER_AGENT, ConfigError, CrawlConfig
from sitecheck.core import crawl
from sitecheck.models import CrawlRecord
from sitecheck.report import CrawlReport, assemble_report, write_reports

GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
BLUE = "\033[34m"
RESET = "\033[0m"


def _colour(text: str, colour: str) -> str:
    if not sys.stderr.isatty():
        return text
    return f"{colour}{text}{RESET}"


def status_colour(status_code: Optional[int]) -> str:
    if status_code is None:
        return RED
    if 200 <= status_code < 300:
        return GREEN
    if 300 <= status_code < 400:
        return YELLOW
    return RED


def print_scan_line(index: int, total: int, record: CrawlRecord) -> None:
    """Print single scan result line."""
    status = str(record.status_code) if record.status_code is not None else "ERR"
    took = f"{record.duration_ms}ms " if record.duration_ms is not None else ""
    sys.stderr.write(
        f"  [{_colour(str(index + 1), BLUE)}/{_colour(str(total), BLUE)}] "
        f"[{_colour(status, status_colour(record.status_code))}] {took}{record.uri}\n"
    )
    sys.stderr.flush()


def print_summary(report: CrawlReport) -> None:
    """Print crawl summary to stderr."""
    stats = report.stats
    average = f"{stats.average_response_ms}" if stats.average_response_ms is not None else "n/a"

    sys.stderr.write("\n" + "=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Run started:                 {report.started_at.isoformat()}\n")
    sys.stderr.write(f"Run ended:                   {report.finished_at.isoformat()}\n")
    sys.stderr.write(f"Run took:                    {report.duration}\n\n")

    sys.stderr.write(f"Total URLs scanned:          {stats.total}\n")
    sys.stderr.write(f"Average response time (ms):  {average}\n\n")

    if stats.status_hits:
        sys.stderr.write("Status code hits:\n")
        for code, count in stats.status_hits.items():
            sys.stderr.write(f"  HTTP {code}: {count}\n")
    if stats.failed:
        sys.stderr.write(f"  Connection errors: {stats.failed}\n")

    if report.header_rules:
        sys.stderr.write(f"\nPages failing header rules:  {stats.header_failures}\n")

    sys.stderr.write("\n")


def build_parser() -> argparse.ArgumentParser:
    # -h is taken by --header, so help is only available as --help.
    parser = argparse.ArgumentParser(
        prog="sitecheck",
        description="Crawl a site from a start URL, check response headers and write an HTML and JSON report.",
        add_help=False,
    )
    parser.add_argument("start_url", nargs="?", help="Start URL (e.g. https://example.com/)")
    parser.add_argument(
        "-t", "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        metavar="MS",
        help=f"Request timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "-h", "--header",
        action="append",
        default=[],
        dest="headers",
        metavar="HEADER[:PATTERN]",
        help="Header that must be present, optionally with a regex its value must contain. Repeatable.",
    )
    parser.add_argument(
        "-p", "--path",
        dest="output_dir",
        metavar="DIR",
        help="Existing directory to write reports to (default: current directory)",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the SiteCheck CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.start_url:
        parser.error("requires a URL to start scanning from")

    try:
        config = CrawlConfig.build(
            seed_url=args.start_url,
            timeout_ms=args.timeout,
            header_specs=args.headers,
            output_dir=args.output_dir,
            user_agent=args.user_agent,
            verbose=args.verbose,
        )
    except ConfigError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    sys.stderr.write(f"SiteCheck v{__version__}\n")
    sys.stderr.write(f"Scanning: {_colour(config.seed_url, BLUE)}\n\n")

    result = crawl(config, on_record=print_scan_line)
    report = assemble_report(result, config.seed_url, config.header_rules)

    for path in write_reports(report, config.output_dir):
        sys.stderr.write(f"Wrote report to {path}\n")

    print_summary(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
