"""
In-memory shapes passed between pipeline stages.

These are transient; the durable records live in database.py.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from .config import QUALIFIED_SCORE
from .normalize import normalize_domain, normalize_phone

# cms_hint markers for audits that produced no page
AUDIT_TIMEOUT = "timeout"
AUDIT_ERROR = "error"
NO_WEBSITE = "none"


@dataclass
class Candidate:
    """
    A business as returned by a search provider.

    Discarded once the entity resolver has matched or stored it.
    """
    name: str
    category: str = "business"
    address: Optional[str] = None
    source: str = "unknown"
    source_id: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def canonical_domain(self) -> Optional[str]:
        return normalize_domain(self.website)

    @property
    def normalized_phone(self) -> Optional[str]:
        return normalize_phone(self.phone)

    def with_details(self, details: Dict[str, Optional[str]]) -> "Candidate":
        """Return a copy with non-empty contact details filled in."""
        updates = {k: v for k, v in details.items() if v and k in ("phone", "website", "email")}
        return replace(self, **updates) if updates else self


@dataclass
class ContactInfo:
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "ContactInfo":
        return cls(phone=candidate.phone, email=candidate.email, website=candidate.website)


@dataclass
class AuditResult:
    """Technical snapshot of a website."""
    https_ok: bool = False
    mobile_ok: bool = False
    has_booking: bool = False
    schema_ok: bool = False
    cms_hint: Optional[str] = None
    lcp_ms: Optional[int] = None
    analytics_pixels: List[str] = field(default_factory=list)

    @classmethod
    def default(cls, marker: str) -> "AuditResult":
        """Conservative result used when no page could be inspected."""
        return cls(cms_hint=marker)

    @property
    def failed(self) -> bool:
        return self.cms_hint in (AUDIT_TIMEOUT, AUDIT_ERROR)

    def issues(self) -> List[str]:
        found = []
        if not self.https_ok:
            found.append("No HTTPS")
        if not self.mobile_ok:
            found.append("Not mobile-friendly")
        if not self.has_booking:
            found.append("No booking system")
        if not self.schema_ok:
            found.append("Missing SEO schema")
        return found


@dataclass
class ScoreResult:
    need: int
    value: int
    reachability: int
    total: int
    reasons: List[str] = field(default_factory=list)

    @property
    def is_qualified(self) -> bool:
        return self.total >= QUALIFIED_SCORE

    @property
    def status(self) -> str:
        return "qualified" if self.is_qualified else "junk"
