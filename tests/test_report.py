"""Tests for sitecheck.report module."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from sitecheck.core import CrawlResult
from sitecheck.models import CrawlRecord, HeaderRule, RecordState
from sitecheck.report import (
    assemble_report,
    compute_stats,
    render_html,
    render_json,
    report_basename,
    status_class,
    write_reports,
)

T0 = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
SEED = "http://example.test/"


def _fetched(id, uri, status, ms, links_to=(), not_verified=None):
    return CrawlRecord(
        id=id,
        uri=uri,
        state=RecordState.FETCHED,
        request_started_at=T0,
        request_finished_at=T0 + timedelta(milliseconds=ms),
        status_code=status,
        status_description="",
        links_to=list(links_to),
        headers_not_verified=not_verified or {},
    )


@pytest.fixture
def result():
    failed = CrawlRecord(
        id=4,
        uri="http://example.test/down",
        state=RecordState.FAILED,
        request_started_at=T0,
        failure_reasons=["Request timed out after 10000ms"],
    )
    records = [
        _fetched(0, SEED, 200, 100, links_to=[1, 1, 2, 3, 4, 0]),
        _fetched(1, "http://example.test/a?x=1&y=<2>", 301, 50, links_to=[0]),
        _fetched(2, "http://example.test/b", 404, 30, not_verified={"server": "nginx"}),
        _fetched(3, "http://example.test/c", 200, 20),
        failed,
    ]
    return CrawlResult(started_at=T0, finished_at=T0 + timedelta(seconds=2), records=records)


class TestStatusClass:
    @pytest.mark.parametrize("code,expected", [
        (200, "2xx"), (204, "2xx"), (301, "3xx"), (399, "3xx"), (404, "other"), (500, "other"), (101, "other"),
    ])
    def test_buckets(self, code, expected):
        assert status_class(code) == expected


class TestComputeStats:
    def test_counts(self, result):
        stats = compute_stats(result.records)
        assert stats.total == 5
        assert stats.completed == 4
        assert stats.failed == 1
        assert (stats.status_2xx, stats.status_3xx, stats.status_other) == (2, 1, 1)
        assert stats.status_hits == {200: 2, 301: 1, 404: 1}
        assert list(stats.status_hits) == [200, 301, 404]
        assert stats.header_failures == 1

    def test_average_over_completed_only(self, result):
        assert compute_stats(result.records).average_response_ms == 50

    def test_empty(self):
        stats = compute_stats([])
        assert stats.total == 0
        assert stats.average_response_ms is None


class TestAssembleReport:
    def test_rows_and_rules(self, result):
        report = assemble_report(result, SEED, [HeaderRule(name="server", pattern="nginx")])

        assert report.seed_url == SEED
        assert report.duration == timedelta(seconds=2)
        assert report.header_rules == {"server": "nginx"}
        assert [row["id"] for row in report.records] == [0, 1, 2, 3, 4]
        assert report.records[2]["passed"] is False
        assert report.records[3]["passed"] is True
        assert report.records[4]["passed"] is False

    def test_linked_from(self, result):
        report = assemble_report(result, SEED, [])
        assert report.records[0]["linked_from"] == [0, 1]
        assert report.records[1]["linked_from"] == [0]
        assert report.records[3]["linked_from"] == [0]

    def test_records_untouched(self, result):
        before = [r.to_dict() for r in result.records]
        assemble_report(result, SEED, [])
        assert [r.to_dict() for r in result.records] == before


class TestRender:
    def test_json(self, result):
        report = assemble_report(result, SEED, [HeaderRule(name="content-type")])
        data = json.loads(render_json(report))

        assert data["run"]["duration_ms"] == 2000
        assert data["run"]["started_at"] == "2024-01-02T03:04:05+00:00"
        assert data["config"] == {"seed_url": SEED, "header_rules": {"content-type": None}}
        assert data["stats"]["status_classes"] == {"2xx": 2, "3xx": 1, "other": 1}
        assert data["stats"]["status_hits"] == {"200": 2, "301": 1, "404": 1}
        assert len(data["records"]) == 5
        assert data["records"][4]["failure_reasons"] == ["Request timed out after 10000ms"]
        assert data["records"][4]["status_code"] is None

    def test_html(self, result):
        html = render_html(assemble_report(result, SEED, [HeaderRule(name="server", pattern="nginx")]))

        assert html.startswith("<!doctype html>")
        assert "<title>SiteCheck: http://example.test/</title>" in html
        assert "http://example.test/a?x=1&amp;y=&lt;2&gt;" in html
        assert "<li>404: 1</li>" in html
        assert "Headers Not Verified" in html
        assert "Request timed out after 10000ms" in html
        assert "Average response time: <strong>50ms</strong>" in html

    def test_html_without_rules_has_no_header_columns(self, result):
        html = render_html(assemble_report(result, SEED, []))
        assert "Headers Verified" not in html


class TestWriteReports:
    def test_basename(self):
        assert report_basename("https://www.example.test/docs/", datetime(2024, 1, 2, 3, 4, 5)) == (
            "report-2024-01-02-03-04-05-www.example.test"
        )

    def test_writes_html_and_json(self, result, tmp_path):
        report = assemble_report(result, SEED, [])
        paths = write_reports(report, tmp_path, now=datetime(2024, 1, 2, 3, 4, 5))

        assert [p.name for p in paths] == [
            "report-2024-01-02-03-04-05-example.test.html",
            "report-2024-01-02-03-04-05-example.test.json",
        ]
        assert json.loads(paths[1].read_text(encoding="utf-8"))["config"]["seed_url"] == SEED

    def test_write_failure_logged(self, result, tmp_path, caplog):
        report = assemble_report(result, SEED, [])
        paths = write_reports(report, tmp_path / "missing")

        assert paths == []
        assert "Could not write report" in caplog.text
