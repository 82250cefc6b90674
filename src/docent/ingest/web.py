"""Web page extraction with SSRF protection.

Security requirements:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established.
- Allowed URL schemes: https:// and http:// only.
- Content-Type whitelist: HTML and plain text only.
- Max response body: 5 MB.
- Timeout: 30 seconds (connect + read).
- Max redirects: 5.

Content selection: boilerplate elements are dropped, then the first main
content container wins; the whole body is used when no container is found or
the container holds fewer than 100 characters of text.
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse

import html2text
from bs4 import BeautifulSoup

from docent.db.models import SourceType
from docent.errors import ExtractionError, SsrfError
from docent.ingest.base import BaseExtractor, SourceRequest
from docent.log import get_logger

logger = get_logger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; docent/0.1; +knowledge-base-ingest)"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 5
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "application/xhtml+xml", "text/plain"}

MIN_PAGE_CHARS = 50
_MIN_CONTAINER_CHARS = 100

_BOILERPLATE = (
    "script, style, noscript, nav, footer, header, aside, "
    ".navigation, .sidebar, .menu, .ads, .advertisement"
)
_CONTENT_SELECTORS = (
    "main",
    "article",
    '[role="main"]',
    ".main-content",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".page-content",
    "#content",
    "#main",
    ".post",
    ".entry",
)


def _converter() -> html2text.HTML2Text:
    # HTML2Text keeps its output buffer between handle() calls
    h2t = html2text.HTML2Text()
    h2t.ignore_links = True
    h2t.ignore_images = True
    h2t.ignore_emphasis = True
    h2t.body_width = 0
    return h2t


class WebExtractor(BaseExtractor):
    """Fetch a URL and convert the page's main content to plain text."""

    source_type = SourceType.REMOTE_PAGE

    def extract(self, request: SourceRequest) -> str:
        if not request.url:
            raise ExtractionError("URL is required for remote-page sources.")
        url = request.url
        self._validate_scheme(url)
        self._check_ssrf(url)
        raw, content_type = self._fetch(url)
        text = self._to_plain_text(raw, content_type)

        if len(text.strip()) < MIN_PAGE_CHARS:
            raise ExtractionError(
                "Insufficient content extracted from website. "
                f"Only {len(text.strip())} characters found."
            )
        logger.info("page_extracted", url=url, chars=len(text))
        return text

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise ExtractionError(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges.

        Raises SsrfError if any resolved address is private, loopback,
        link-local, or otherwise reserved.
        """
        hostname = urllib.parse.urlparse(url).hostname
        if not hostname:
            raise ExtractionError(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise ExtractionError(
                f"Website not found: {url}. Please check if the URL is correct."
            ) from exc

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

    @staticmethod
    def _fetch(url: str) -> tuple[bytes, str]:
        """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

        Returns (body_bytes, content_type_without_params).
        """
        request = urllib.request.Request(
            url,
            headers={
                "User-Agent": _USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.5",
                "Accept-Language": "en-US,en;q=0.5",
            },
        )
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=_TIMEOUT)
        except urllib.error.HTTPError as exc:
            raise ExtractionError(f"HTTP {exc.code}: {exc.reason} for {url}") from exc
        except urllib.error.URLError as exc:
            raise ExtractionError(f"Failed to fetch URL '{url}': {exc.reason}") from exc
        except TimeoutError as exc:
            raise ExtractionError(
                f"Request timeout: {url}. The website took too long to respond."
            ) from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise ExtractionError(
                    f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )

            body = response.read(_MAX_BYTES + 1)
        if len(body) > _MAX_BYTES:
            raise ExtractionError(
                f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
            )

        return body, ct

    @staticmethod
    def _to_plain_text(body: bytes, content_type: str) -> str:
        """Convert *body* to plain text based on *content_type*."""
        text = body.decode("utf-8", errors="replace")
        if content_type == "text/plain":
            return text
        return html_to_text(text)


def html_to_text(html: str) -> str:
    """Return the readable text of an HTML document, main content preferred."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.select(_BOILERPLATE):
        tag.decompose()

    fragment = None
    for selector in _CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            fragment = element
            break

    if fragment is None or len(fragment.get_text(" ", strip=True)) < _MIN_CONTAINER_CHARS:
        fragment = soup.body or soup

    return _converter().handle(str(fragment)).strip()


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise ExtractionError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        WebExtractor._check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
