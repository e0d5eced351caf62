"""
URL normalization and origin confinement.
"""
from __future__ import annotations

from typing import List, Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

DEFAULT_PORTS = {"http": 80, "https": 443}


def remove_dot_segments(path: str) -> str:
    """
    Collapse ``.`` and ``..`` path segments (RFC 3986, section 5.2.4).

    ``urljoin`` only does this for relative references; absolute hrefs
    come back with their dot segments intact.
    """
    segments = path.split("/")
    output: List[str] = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            # Never pop the leading empty segment of an absolute path.
            if len(output) > 1:
                output.pop()
            continue
        output.append(segment)

    if segments[-1] in (".", ".."):
        output.append("")
    return "/".join(output) or "/"


def normalize_url(url: Optional[str], base: str) -> Optional[str]:
    """
    Resolve ``url`` against ``base`` and normalize it for deduplication.

    - Joins relative URLs against base
    - Drops fragments (#...)
    - Removes dot segments (/./, /../)
    - Lower-cases scheme and host
    - Removes default ports (:80, :443)
    - Keeps querystrings (they matter for uniqueness)

    Returns None for anything that does not resolve to an absolute
    http(s) address.
    """
    if url is None:
        return None

    try:
        joined, _ = urldefrag(urljoin(base, url.strip()))
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        return None

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return None
    if ":" in hostname:
        hostname = f"[{hostname}]"

    if port is None or port == DEFAULT_PORTS[scheme]:
        netloc = hostname
    else:
        netloc = f"{hostname}:{port}"

    return urlunparse((
        scheme,
        netloc,
        remove_dot_segments(parsed.path),
        parsed.params,
        parsed.query,
        "",  # No fragment
    ))


def origin_of(url: str) -> Tuple[str, str, int]:
    """Scheme, host and effective port of an absolute URL."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    port = parsed.port if parsed.port is not None else DEFAULT_PORTS.get(scheme, 0)
    return scheme, (parsed.hostname or "").lower(), port


def base_directory(path: str) -> str:
    """Path up to and including its last slash."""
    if not path:
        return "/"
    return path[: path.rfind("/") + 1] or "/"


def is_in_origin(base: str, candidate: str) -> bool:
    """
    Check whether ``candidate`` lives under ``base``.

    Both must be absolute, already resolved URLs. The origins (scheme,
    host, port) have to match and the candidate path has to sit inside
    the directory of the base path. Query strings and fragments are
    ignored.
    """
    try:
        if origin_of(base) != origin_of(candidate):
            return False
    except ValueError:
        return False

    base_dir = base_directory(remove_dot_segments(urlparse(base).path))
    candidate_path = remove_dot_segments(urlparse(candidate).path)
    return candidate_path.startswith(base_dir)
