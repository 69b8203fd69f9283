"""
Identity normalization for business records.

Canonical keys (domain, phone) are what de-duplication matches on, so every
function here must be deterministic and idempotent on its own output.
"""

import re
from typing import Any, Optional
from urllib.parse import urlparse

from rapidfuzz.distance import Levenshtein

FUZZY_THRESHOLD = 0.85

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_HOSTNAME_RE = re.compile(r"^[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?(\.[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?)*$")
_HOST_FALLBACK_RE = re.compile(
    r"(?:https?://)?(?:www\.)?([a-zA-Z0-9][-a-zA-Z0-9]*(?:\.[a-zA-Z0-9][-a-zA-Z0-9]*)+)",
    re.IGNORECASE,
)
_NON_DIGIT_RE = re.compile(r"\D")
_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def _strip_www(hostname: str) -> str:
    while hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def normalize_domain(raw: Optional[str]) -> Optional[str]:
    """Return the lower-cased, www-stripped hostname of a URL-like string."""
    if raw is None or not raw.strip():
        return None

    url = raw.strip()
    if not _SCHEME_RE.match(url):
        url = "https://" + url

    try:
        hostname = (urlparse(url).hostname or "").rstrip(".")
    except ValueError:
        hostname = ""

    if hostname and _HOSTNAME_RE.match(hostname):
        hostname = _strip_www(hostname)
        if not hostname or hostname == "localhost":
            return None
        return hostname

    # Not a parseable URL; pull the first thing that looks like a hostname
    match = _HOST_FALLBACK_RE.search(raw)
    if match:
        return _strip_www(match.group(1).lower())
    return None


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """Return a +-prefixed digit string, or None if it can't be a phone number."""
    if raw is None or not raw.strip():
        return None

    digits = _NON_DIGIT_RE.sub("", raw)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if 10 <= len(digits) <= 15:
        return f"+{digits}"
    return None


def normalize_name(raw: Optional[str]) -> str:
    if not raw:
        return ""
    name = _PUNCT_RE.sub("", raw.lower())
    return _WS_RE.sub(" ", name).strip()


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """Edit-distance similarity of two business names in [0, 1]."""
    n1 = normalize_name(a)
    n2 = normalize_name(b)
    if n1 == n2:
        return 1.0

    max_len = max(len(n1), len(n2))
    if max_len == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(n1, n2) / max_len


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def is_fuzzy_match(a: Any, b: Any, threshold: float = FUZZY_THRESHOLD) -> bool:
    """
    Decide whether two records describe the same business.

    Records are dicts or objects exposing ``name``, ``city`` and
    ``normalized_phone``. Precedence is fixed: an identical phone matches
    outright, then differing cities rule a match out, then names decide.
    """
    phone_a = _field(a, "normalized_phone")
    phone_b = _field(b, "normalized_phone")
    if phone_a and phone_b and phone_a == phone_b:
        return True

    city_a = _field(a, "city")
    city_b = _field(b, "city")
    if city_a and city_b and city_a.lower() != city_b.lower():
        return False

    return similarity(_field(a, "name"), _field(b, "name")) >= threshold
