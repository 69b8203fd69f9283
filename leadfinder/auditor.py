"""
Website auditing.

Fetches a business homepage and extracts the technical signals scoring
relies on. audit() never raises: timeouts and fetch failures come back as a
default AuditResult whose cms_hint is "timeout" or "error".
"""

import time
from typing import Optional, Tuple

import requests
from bs4 import BeautifulSoup
from urllib3.exceptions import ReadTimeoutError

from .errors import AuditError
from .logger import get_logger
from .models import AUDIT_ERROR, AUDIT_TIMEOUT, AuditResult

logger = get_logger()

USER_AGENT = "Mozilla/5.0 (compatible; LeadFinderBot/1.0)"
MAX_BODY_BYTES = 2 * 1024 * 1024

BOOKING_KEYWORDS = ("book", "appointment", "schedule", "reserve", "booking")

CMS_SIGNATURES = {
    "wordpress": ("/wp-content/", "/wp-includes/", "wp-json"),
    "wix": ("wix.com", "static.parastorage.com"),
    "squarespace": ("squarespace", "sqsp.net"),
    "webflow": ("webflow.io", "webflow.com"),
    "shopify": ("shopify.com", "cdn.shopify.com"),
}


def _ensure_scheme(url: str) -> str:
    url = url.strip()
    return url if url.lower().startswith("http") else f"https://{url}"


def _has_booking(soup: BeautifulSoup, html_lower: str) -> bool:
    for a in soup.find_all("a", href=True):
        href = a["href"].lower()
        if any(kw in href for kw in BOOKING_KEYWORDS):
            return True
    for button in soup.find_all("button"):
        text = button.get_text(" ", strip=True).lower()
        if any(kw in text for kw in BOOKING_KEYWORDS):
            return True
    return any(kw in html_lower for kw in BOOKING_KEYWORDS)


def _is_read_timeout(error: Exception) -> bool:
    cause = error.args[0] if error.args else None
    return isinstance(cause, ReadTimeoutError) or isinstance(error.__context__, ReadTimeoutError)


def _detect_cms(html: str) -> str:
    for cms, hints in CMS_SIGNATURES.items():
        if any(hint in html for hint in hints):
            return cms
    return "unknown"


def _detect_pixels(html: str) -> list:
    pixels = []
    if "google-analytics.com" in html or "gtag" in html:
        pixels.append("google_analytics")
    if "facebook.com" in html or "fbq" in html:
        pixels.append("facebook_pixel")
    return pixels


def inspect_html(html: str, requested_url: str, final_url: Optional[str] = None, lcp_ms: Optional[int] = None) -> AuditResult:
    """Extract audit signals from a fetched page."""
    soup = BeautifulSoup(html, "html.parser")

    https_ok = requested_url.lower().startswith("https://") or (
        final_url is not None and final_url.lower().startswith("https://")
    )

    viewport = soup.find("meta", attrs={"name": "viewport"})
    content = viewport.get("content", "") if viewport else ""
    mobile_ok = "width=device-width" in content

    schema_ok = soup.find("script", attrs={"type": "application/ld+json"}) is not None

    return AuditResult(
        https_ok=https_ok,
        mobile_ok=mobile_ok,
        has_booking=_has_booking(soup, html.lower()),
        schema_ok=schema_ok,
        cms_hint=_detect_cms(html),
        lcp_ms=lcp_ms,
        analytics_pixels=_detect_pixels(html),
    )


class SiteAuditor:
    """Audits websites under a fetch deadline and a nested body-read deadline."""

    def __init__(self, timeout: float = 8.0, body_timeout: float = 5.0):
        self.timeout = timeout
        self.body_timeout = body_timeout

    def _fetch(self, url: str) -> Tuple[str, str, int]:
        """Return (final_url, html, elapsed_ms); raises AuditError."""
        start = time.monotonic()
        # every socket read is bounded by the body timeout
        read_timeout = min(self.body_timeout, self.timeout)
        try:
            resp = requests.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=(self.timeout, read_timeout),
                stream=True,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            raise AuditError(f"Timed out fetching {url}", kind=AUDIT_TIMEOUT) from e
        except requests.exceptions.RequestException as e:
            raise AuditError(f"Could not fetch {url}: {e}", kind=AUDIT_ERROR) from e

        try:
            fetch_deadline = start + self.timeout
            body_deadline = min(time.monotonic() + self.body_timeout, fetch_deadline)
            chunks = []
            size = 0
            for chunk in resp.iter_content(chunk_size=16384):
                if time.monotonic() > body_deadline:
                    raise AuditError("Timeout reading response body", kind=AUDIT_TIMEOUT)
                chunks.append(chunk)
                size += len(chunk)
                if size >= MAX_BODY_BYTES:
                    break
        except requests.exceptions.Timeout as e:
            raise AuditError("Timeout reading response body", kind=AUDIT_TIMEOUT) from e
        except requests.exceptions.ConnectionError as e:
            # requests reports a read timeout mid-body as ConnectionError(ReadTimeoutError)
            kind = AUDIT_TIMEOUT if _is_read_timeout(e) else AUDIT_ERROR
            raise AuditError(f"Error reading response body: {e}", kind=kind) from e
        except requests.exceptions.RequestException as e:
            raise AuditError(f"Error reading response body: {e}", kind=AUDIT_ERROR) from e
        finally:
            resp.close()

        body = b"".join(chunks)
        try:
            html = body.decode(resp.encoding or "utf-8", errors="replace")
        except LookupError:
            html = body.decode("utf-8", errors="replace")
        elapsed_ms = int((time.monotonic() - start) * 1000)
        return resp.url or url, html, elapsed_ms

    def audit(self, url: str) -> AuditResult:
        target = _ensure_scheme(url)
        logger.record_audit_attempt()
        try:
            final_url, html, elapsed_ms = self._fetch(target)
        except AuditError as e:
            logger.record_audit_failure(e.kind)
            logger.warning("Website audit failed", url=target, kind=e.kind, error=str(e))
            return AuditResult.default(e.kind)

        logger.record_audit_success()
        return inspect_html(html, target, final_url, elapsed_ms)
