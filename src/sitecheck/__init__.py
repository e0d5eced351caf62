"""
Single-site crawler that records per-page HTTP outcomes, checks response
headers against operator rules and writes an HTML and JSON report.
"""
__version__ = "0.1.0"

from sitecheck.core import CrawlResult, CrawlSession, crawl
from sitecheck.models import CrawlRecord, HeaderRule, RecordState

__all__ = [
    "__version__",
    "crawl",
    "CrawlSession",
    "CrawlResult",
    "CrawlRecord",
    "HeaderRule",
    "RecordState",
]
