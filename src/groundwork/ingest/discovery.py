"""Website URL discovery: single page, one-level link crawl, or sitemap."""

from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass, field, replace

from bs4 import BeautifulSoup

from groundwork.ingest.scraper import FetchError, FetchOptions, static_fetch

logger = logging.getLogger(__name__)

MAX_DISCOVERED_URLS = 100
DISCOVERY_MODES = ("single", "crawl", "sitemap")


@dataclass
class DiscoveredUrl:
    url: str
    title: str | None = None
    depth: int = 0


@dataclass
class DiscoveryResult:
    """URLs found under *domain*; ``errors`` lists non-fatal fetch failures."""

    domain: str
    base_url: str
    urls: list[DiscoveredUrl] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def normalize_start_url(url: str) -> str:
    """Prefix a bare host with ``https://``."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


def discover_urls(
    url: str,
    mode: str = "single",
    options: FetchOptions | None = None,
    limit: int = MAX_DISCOVERED_URLS,
) -> DiscoveryResult:
    """Discover crawlable URLs starting from *url*.

    ``single`` returns the URL itself. ``crawl`` returns the page plus the
    same-host links on it (depth 1). ``sitemap`` reads ``<loc>`` entries from
    the sitemap (the URL itself if it ends in ``.xml``, else ``/sitemap.xml``).

    Raises:
        ValueError: If *mode* is unknown or *url* has no host.
    """
    if mode not in DISCOVERY_MODES:
        raise ValueError(f"Invalid mode '{mode}'. Must be single, crawl, or sitemap")

    start = normalize_start_url(url)
    parsed = urllib.parse.urlsplit(start)
    if not parsed.hostname:
        raise ValueError(f"Invalid URL format: {url}")

    result = DiscoveryResult(
        domain=parsed.hostname,
        base_url=f"{parsed.scheme}://{parsed.hostname}",
    )

    if mode == "single":
        result.urls.append(DiscoveredUrl(url=start, title=start, depth=0))
        return result

    opts = replace(options or FetchOptions(), force_static=True)
    try:
        if mode == "sitemap":
            _discover_sitemap(start, result, opts, limit)
        else:
            _discover_links(start, result, opts, limit)
    except (FetchError, ValueError) as exc:
        logger.warning("Discovery failed for %s: %s", start, exc)
        result.errors.append(str(exc))

    return result


def _discover_sitemap(start: str, result: DiscoveryResult, opts: FetchOptions, limit: int) -> None:
    sitemap_url = start if start.endswith(".xml") else f"{result.base_url}/sitemap.xml"
    page = static_fetch(sitemap_url, opts)
    soup = BeautifulSoup(page.html or "", "html.parser")

    seen: set[str] = set()
    # <url><loc> page entries first, then <sitemap><loc> entries of a sitemap index
    for parent in ("url", "sitemap"):
        for loc in soup.select(f"{parent} > loc"):
            if len(result.urls) >= limit:
                return
            value = loc.get_text(strip=True)
            if value and value not in seen:
                seen.add(value)
                result.urls.append(DiscoveredUrl(url=value, depth=0))

    if not result.urls:
        result.errors.append(f"No URLs found in sitemap at {sitemap_url}")


def _discover_links(start: str, result: DiscoveryResult, opts: FetchOptions, limit: int) -> None:
    page = static_fetch(start, opts)
    soup = BeautifulSoup(page.html or "", "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    result.urls.append(DiscoveredUrl(url=start, title=title or start, depth=0))
    seen = {start}

    for anchor in soup.find_all("a", href=True):
        if len(result.urls) >= limit:
            break
        link = urllib.parse.urlsplit(urllib.parse.urljoin(start, anchor["href"]))
        if link.scheme not in ("http", "https") or link.hostname != result.domain:
            continue
        normalized = f"{link.scheme}://{link.hostname}{link.path or '/'}"
        if normalized in seen:
            continue
        seen.add(normalized)
        result.urls.append(
            DiscoveredUrl(url=normalized, title=anchor.get_text(strip=True) or normalized, depth=1)
        )
