"""
Run configuration, built once from the command line.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sitecheck import __version__
from sitecheck.headers import parse_header_rule
from sitecheck.models import HeaderRule
from sitecheck.urls import normalize_url

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_USER_AGENT = f"SiteCheck/{__version__}"


class ConfigError(ValueError):
    """Invalid startup configuration; nothing has been crawled yet."""


@dataclass
class CrawlConfig:
    """Everything a crawl run needs to know up front."""
    seed_url: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    header_rules: List[HeaderRule] = field(default_factory=list)
    output_dir: Path = field(default_factory=Path.cwd)
    user_agent: str = DEFAULT_USER_AGENT
    verbose: bool = False

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def build(
        cls,
        seed_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        header_specs: Iterable[str] = (),
        output_dir: Optional[str] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        verbose: bool = False,
    ) -> "CrawlConfig":
        """
        Validate raw option values and build a config.

        Raises ConfigError for a seed that is not an absolute http(s)
        address, a non-positive timeout, a bad header rule or an output
        directory that does not exist.
        """
        seed = normalize_url(seed_url, base=seed_url) if seed_url else None
        if seed is None:
            raise ConfigError(f"Not an absolute http(s) URL: {seed_url!r}")

        if timeout_ms <= 0:
            raise ConfigError(f"Timeout must be a positive number of milliseconds, got {timeout_ms}")

        # A later rule for the same header replaces an earlier one.
        rules: Dict[str, HeaderRule] = {}
        for spec in header_specs:
            try:
                rule = parse_header_rule(spec)
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
            rules[rule.name] = rule

        path = Path(output_dir) if output_dir else Path.cwd()
        if not path.is_dir():
            raise ConfigError(f"Output directory does not exist: {path}")

        return cls(
            seed_url=seed,
            timeout_ms=timeout_ms,
            header_rules=list(rules.values()),
            output_dir=path,
            user_agent=user_agent,
            verbose=verbose,
        )
