from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern, Set
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from ..config import DEFAULT_PRODUCT_PATTERNS

logger = logging.getLogger(__name__)

_CRAWLABLE_SCHEMES = ("http", "https")


@dataclass
class LinkResult:
    """Outcome of link extraction for one page. ``error`` is set when the document could not be parsed."""
    links: Set[str] = field(default_factory=set)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing the fragment and giving a bare host the "/" path.
    """
    parts = list(urlparse(url))
    if parts[1] and not parts[2]:
        parts[2] = "/"
    parts[5] = ""  # strip fragment
    return urlunparse(parts)


def normalize_domain(domain: str) -> str:
    """Prefix a bare hostname with the https scheme (``example.com`` -> ``https://example.com``)."""
    domain = domain.strip()
    if not domain.lower().startswith(("http://", "https://")):
        domain = f"https://{domain}"
    return domain


def extract_links(html: str, base_url: str) -> LinkResult:
    """
    Extract absolute, same-host links from an HTML string.

    Hrefs that cannot be resolved into an http(s) URL are dropped silently.
    A document that cannot be parsed at all yields an empty result with ``error`` set.
    """
    out: Set[str] = set()
    try:
        base_host = urlparse(base_url).hostname
        soup = BeautifulSoup(html, "html.parser")
        anchors = soup.select("a[href]")
    except Exception as exc:  # parser failures must not stop the crawl
        logger.warning("Error parsing HTML from %s: %r", base_url, exc)
        return LinkResult(error=repr(exc))

    for a in anchors:
        href = a.get("href")
        if not href:
            continue
        try:
            absolute = urlparse(urljoin(base_url, href.strip()))
            host = absolute.hostname
        except ValueError:
            continue
        if absolute.scheme not in _CRAWLABLE_SCHEMES or host is None or host != base_host:
            continue
        out.add(normalize_url(absolute.geturl()))
    return LinkResult(links=out)


def is_product_url(url: str, patterns: Iterable[Pattern[str]] = DEFAULT_PRODUCT_PATTERNS) -> bool:
    """
    True if the URL matches any of the product patterns.
    Patterns are tried in order and the first hit wins.
    """
    return any(p.search(url) for p in patterns)
