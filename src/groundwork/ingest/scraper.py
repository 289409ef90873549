"""Tiered page fetching with JS-rendering support.

A static fetch cannot see content rendered client-side (React/Vue/Angular
listing pages), so pages are fetched through an ordered list of providers:

  1. Firecrawl API   (FIRECRAWL_API_KEY) — JS-rendered, returns Markdown
  2. Jina Reader API (JINA_API_KEY)      — JS-rendered, returns Markdown
  3. Static fetch                        — raw HTML, always available

A rendering provider returns ``None`` on any failure and the next one is
tried. Only a failure of the static fetch is raised to the caller.

Static fetch security:
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: the hostname (and every redirect target) is resolved and
  private/loopback/link-local/reserved addresses are rejected before
  a connection is made.
- Content-Type whitelist, response size cap, timeout, redirect limit.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from http.client import HTTPResponse
from typing import Callable

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; groundwork/0.1)"
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {
    "text/html",
    "text/plain",
    "application/xhtml+xml",
    "application/xml",
    "text/xml",
}
_JINA_ENDPOINT = "https://r.jina.ai/"
_JINA_MIN_CONTENT = 50

# Hint for rendering providers: wait for listing items to appear.
DEFAULT_WAIT_FOR_SELECTOR = ".listing-item, .property-card, [data-listing], article"


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


class FetchError(RuntimeError):
    """Raised when the final (static) fetch tier fails."""


@dataclass
class FetchOptions:
    """Options for ``fetch_page``.

    Attributes:
        timeout: Per-request timeout in seconds.
        force_static: Skip the rendering providers (sitemaps and other XML).
        wait_for_selector: CSS selector rendering providers should wait for.
        max_bytes: Static fetch response size cap.
        max_redirects: Static fetch redirect limit.
        firecrawl_url: Firecrawl API base URL.
    """

    timeout: int = 30
    force_static: bool = False
    wait_for_selector: str | None = None
    max_bytes: int = 5 * 1024 * 1024
    max_redirects: int = 3
    firecrawl_url: str = "https://api.firecrawl.dev"

    @classmethod
    def from_config(cls, cfg, **overrides) -> FetchOptions:
        """Build options from a ``ScraperCfg`` section."""
        values = {
            "timeout": cfg.timeout,
            "wait_for_selector": cfg.wait_for_selector,
            "max_bytes": cfg.max_bytes,
            "max_redirects": cfg.max_redirects,
            "firecrawl_url": cfg.firecrawl_url,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class FetchResult:
    """A fetched page: ``markdown`` from a rendering provider, else raw ``html``."""

    url: str
    provider: str  # firecrawl | jina | fetch
    html: str | None = None
    markdown: str | None = None
    title: str | None = None


Provider = Callable[[str, FetchOptions], "FetchResult | None"]


# ---------------------------------------------------------------------------
# URL validation
# ---------------------------------------------------------------------------


def validate_url(url: str) -> None:
    """Raise ValueError unless *url* is an http(s) URL with a hostname."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )
    if not parsed.hostname:
        raise ValueError(f"URL has no hostname: {url}")


def check_ssrf(url: str) -> None:
    """Resolve the hostname and block private/reserved IP ranges.

    Raises:
        SsrfError: If any resolved address is private, loopback, link-local,
            or otherwise reserved.
        ValueError: If the URL has no hostname or DNS resolution fails.
    """
    hostname = urllib.parse.urlparse(url).hostname
    if not hostname:
        raise ValueError(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise ValueError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


# ---------------------------------------------------------------------------
# Tier 1: Firecrawl
# ---------------------------------------------------------------------------


def try_firecrawl(url: str, opts: FetchOptions) -> FetchResult | None:
    api_key = os.environ.get("FIRECRAWL_API_KEY")
    if not api_key:
        return None

    base_url = os.environ.get("FIRECRAWL_API_URL") or opts.firecrawl_url
    body: dict = {
        "url": url,
        "formats": ["markdown"],
        "onlyMainContent": True,
        "timeout": opts.timeout * 1000,
    }
    if opts.wait_for_selector:
        body["waitFor"] = opts.wait_for_selector

    request = urllib.request.Request(
        f"{base_url.rstrip('/')}/v1/scrape",
        data=json.dumps(body).encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
        method="POST",
    )
    payload = _request_json(request, opts.timeout, "Firecrawl", url)
    if payload is None:
        return None

    data = payload.get("data") or {}
    markdown = data.get("markdown")
    if not payload.get("success") or not markdown:
        logger.warning("Firecrawl returned no markdown for %s", url)
        return None

    logger.info("Firecrawl OK: %s (%d chars)", url, len(markdown))
    return FetchResult(
        url=url,
        provider="firecrawl",
        markdown=markdown,
        title=(data.get("metadata") or {}).get("title") or None,
    )


# ---------------------------------------------------------------------------
# Tier 2: Jina Reader
# ---------------------------------------------------------------------------


def try_jina(url: str, opts: FetchOptions) -> FetchResult | None:
    api_key = os.environ.get("JINA_API_KEY")
    if not api_key:
        return None

    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {api_key}",
        "X-Return-Format": "markdown",
        "X-With-Links": "true",
    }
    if opts.wait_for_selector:
        headers["X-Wait-For"] = opts.wait_for_selector

    request = urllib.request.Request(f"{_JINA_ENDPOINT}{url}", headers=headers, method="GET")
    payload = _request_json(request, opts.timeout, "Jina", url)
    if payload is None:
        return None

    data = payload.get("data") or {}
    markdown = data.get("content")
    if not markdown or len(markdown) < _JINA_MIN_CONTENT:
        logger.warning("Jina returned insufficient content for %s", url)
        return None

    logger.info("Jina OK: %s (%d chars)", url, len(markdown))
    return FetchResult(url=url, provider="jina", markdown=markdown, title=data.get("title") or None)


def _request_json(
    request: urllib.request.Request, timeout: int, provider: str, url: str
) -> dict | None:
    """Send *request* and decode a JSON object body; None on any failure."""
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        logger.warning("%s returned %s for %s", provider, exc.code, url)
        return None
    except (urllib.error.URLError, TimeoutError, OSError, ValueError) as exc:
        logger.warning("%s failed for %s: %s", provider, url, exc)
        return None
    if not isinstance(payload, dict):
        logger.warning("%s returned an unexpected payload for %s", provider, url)
        return None
    return payload


RENDERING_PROVIDERS: list[Provider] = [try_firecrawl, try_jina]


# ---------------------------------------------------------------------------
# Tier 3: Static fetch
# ---------------------------------------------------------------------------


def static_fetch(url: str, opts: FetchOptions) -> FetchResult:
    """Fetch *url* directly with the SSRF guard, size cap and redirect limit.

    Raises:
        SsrfError: If the URL (or a redirect target) resolves to a private address.
        FetchError: On non-2xx status, timeout, oversize body, too many
            redirects, or an unsupported Content-Type.
    """
    validate_url(url)
    check_ssrf(url)

    request = urllib.request.Request(
        url, headers={"User-Agent": _USER_AGENT, "Accept": _ACCEPT}
    )
    opener = urllib.request.build_opener(_LimitedRedirectHandler(opts.max_redirects))

    try:
        response: HTTPResponse = opener.open(request, timeout=opts.timeout)
    except urllib.error.HTTPError as exc:
        raise FetchError(f"Failed to fetch URL: {exc.code} {exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise FetchError(f"Failed to fetch URL '{url}': {exc.reason}") from exc
    except TimeoutError as exc:
        raise FetchError(f"Timed out fetching URL '{url}'") from exc

    with response:
        raw_ct = response.headers.get("Content-Type", "text/html")
        ct = raw_ct.split(";")[0].strip().lower()
        if ct not in _ALLOWED_CONTENT_TYPES:
            raise FetchError(
                f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
            )

        try:
            body = response.read(opts.max_bytes + 1)
        except TimeoutError as exc:
            raise FetchError(f"Timed out reading URL '{url}'") from exc
        if len(body) > opts.max_bytes:
            raise FetchError(
                f"Response body exceeds {opts.max_bytes // (1024 * 1024)} MB limit for URL '{url}'."
            )
        charset = response.headers.get_content_charset() or "utf-8"

    try:
        html = body.decode(charset, errors="replace")
    except LookupError:
        html = body.decode("utf-8", errors="replace")
    return FetchResult(url=url, provider="fetch", html=html)


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise after more than *max_redirects* redirects; SSRF-check every target."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise FetchError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        validate_url(newurl)
        check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


# ---------------------------------------------------------------------------
# Ghost content detection
# ---------------------------------------------------------------------------

_JS_APP_SIGNATURES = [
    re.compile(r"<div\s+id=[\"'](?:root|__next|app)[\"'][^>]*>\s*</div>", re.IGNORECASE),
    re.compile(r"<div\s+id=[\"'](?:app|__nuxt)[\"'][^>]*>\s*</div>", re.IGNORECASE),
    re.compile(r"<app-root[^>]*>\s*</app-root>", re.IGNORECASE),
    re.compile(r"<main[^>]*>\s*</main>\s*<script", re.IGNORECASE),
]

_LISTING_HEADING = re.compile(
    r"<h[1-3][^>]*>.*(?:listings?|properties|available|homes|rentals|catalog|products)",
    re.IGNORECASE,
)
_LIST_ROW = re.compile(
    r"<(?:li|tr|article|div[^>]+class=\"[^\"]*(?:card|item|listing|property)[^\"]*\")[^>]*>",
    re.IGNORECASE,
)


def looks_like_empty_spa_shell(html: str) -> bool:
    """True if *html* looks like an SPA shell with no server-rendered content."""
    return any(p.search(html) for p in _JS_APP_SIGNATURES)


def has_ghost_listings(html: str) -> bool:
    """True if a listing-style heading is present but fewer than 2 data rows are."""
    if not _LISTING_HEADING.search(html):
        return False
    return len(_LIST_ROW.findall(html)) < 2


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def fetch_page(
    url: str,
    options: FetchOptions | None = None,
    providers: list[Provider] | None = None,
) -> FetchResult:
    """Fetch *url* with the first provider that succeeds.

    Rendering providers are skipped when ``options.force_static`` is set.
    The static fetch is always the last resort and its errors propagate.
    """
    opts = options or FetchOptions()
    validate_url(url)

    if not opts.force_static:
        for provider in RENDERING_PROVIDERS if providers is None else providers:
            result = provider(url, opts)
            if result is not None:
                return result

    result = static_fetch(url, opts)
    if result.html and (looks_like_empty_spa_shell(result.html) or has_ghost_listings(result.html)):
        logger.warning(
            "%s appears to have JS-rendered content that static fetch cannot capture. "
            "Set FIRECRAWL_API_KEY or JINA_API_KEY to enable JavaScript rendering.",
            url,
        )
    return result
