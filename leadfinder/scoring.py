"""
Lead scoring.

Pure and deterministic: the same audit, contact info and category always
produce the same score. Three independent dimensions:

- need: how much the website is lacking (technical deficiency)
- value: business potential of the category and platform
- reachability: how many ways there are to contact the business

total is the mean of the three, rounded half up.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from .models import AuditResult, ContactInfo, ScoreResult


@dataclass(frozen=True)
class ScoringTables:
    """Versioned lookup tables; pass a new instance to adjust without a release."""
    version: str
    high_value_categories: Tuple[str, ...]
    cms_hints: Tuple[str, ...]


DEFAULT_TABLES = ScoringTables(
    version="v1",
    high_value_categories=("dentist", "doctor", "lawyer", "chiropractor", "medical", "health"),
    cms_hints=("wordpress", "wix", "squarespace", "webflow", "shopify"),
)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score_lead(
    audit: AuditResult,
    contact: ContactInfo,
    category: Optional[str],
    tables: ScoringTables = DEFAULT_TABLES,
) -> ScoreResult:
    reasons = []

    need = 0
    if not audit.https_ok:
        need += 25
        reasons.append("Missing HTTPS security")
    if not audit.mobile_ok:
        need += 25
        reasons.append("Not mobile optimized")
    if not audit.has_booking:
        need += 30
        reasons.append("No online booking system")
    if not audit.schema_ok:
        need += 10
        reasons.append("Missing structured data")
    if not audit.analytics_pixels:
        need += 10
        reasons.append("No analytics tracking")

    value = 50
    category_lower = (category or "").lower()
    if any(term in category_lower for term in tables.high_value_categories):
        value += 30
        reasons.append("High-value industry")
    if audit.cms_hint and audit.cms_hint in tables.cms_hints:
        value += 20
        reasons.append(f"Uses {audit.cms_hint} (easy to upgrade)")

    reachability = 0
    if contact.phone:
        reachability += 40
        reasons.append("Phone number available")
    if contact.email:
        reachability += 30
        reasons.append("Email address available")
    if contact.website:
        reachability += 30
        reasons.append("Website available")

    total = _round_half_up(Decimal(need + value + reachability) / Decimal(3))

    return ScoreResult(
        need=need,
        value=value,
        reachability=reachability,
        total=total,
        reasons=reasons,
    )
