"""
Entity resolution for incoming candidates.

Decides whether a candidate is a business already stored as a Lead and
performs an idempotent, non-destructive upsert.

Lookup order (first match wins):
1. provider source id
2. canonical domain
3. normalized phone, confirmed by fuzzy match
4. city + name fragment, confirmed by fuzzy match
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from .database import Lead
from .errors import LeadConflictError
from .logger import get_logger
from .models import Candidate
from .normalize import FUZZY_THRESHOLD, is_fuzzy_match, normalize_domain, normalize_phone
from .storage import LeadStore

logger = get_logger()

PHONE_CANDIDATE_LIMIT = 10
CITY_CANDIDATE_LIMIT = 20
NAME_PREFIX_LENGTH = 10
MAX_WRITE_ATTEMPTS = 3

# Lead columns that take the incoming value when one is present
MERGE_FIELDS = (
    "name",
    "domain",
    "phone",
    "email",
    "address",
    "city",
    "state",
    "postal_code",
    "latitude",
    "longitude",
    "category",
    "source",
    "source_id",
    "status",
)


@dataclass
class UpsertResult:
    lead: Lead
    is_new: bool
    was_updated: bool

    @property
    def lead_id(self) -> str:
        return self.lead.id


@dataclass
class KnownIdentities:
    """
    Identity keys already accounted for within one mission.

    Created per mission and never shared, so it needs no locking.
    """
    source_ids: Set[str] = field(default_factory=set)
    domains: Set[str] = field(default_factory=set)
    phones: Set[str] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.source_ids) + len(self.domains) + len(self.phones)

    def contains(self, candidate: Candidate) -> bool:
        if candidate.source_id and candidate.source_id in self.source_ids:
            return True
        domain = candidate.canonical_domain
        if domain and domain in self.domains:
            return True
        phone = candidate.normalized_phone
        return bool(phone and phone in self.phones)

    def add(
        self,
        source_id: Optional[str] = None,
        domain: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> None:
        if source_id:
            self.source_ids.add(source_id)
        if domain:
            self.domains.add(domain)
        if phone:
            self.phones.add(phone)

    def add_lead(self, lead: Lead) -> None:
        self.add(lead.source_id, lead.canonical_domain, lead.normalized_phone)

    def add_candidate(self, candidate: Candidate) -> None:
        self.add(candidate.source_id, candidate.canonical_domain, candidate.normalized_phone)


def _candidate_identity(candidate: Candidate) -> Dict[str, Any]:
    return {
        "name": candidate.name,
        "city": candidate.city,
        "normalized_phone": candidate.normalized_phone,
    }


def merge_fields(candidate: Candidate, existing: Optional[Lead] = None, status: Optional[str] = None) -> Dict[str, Any]:
    """
    Coalesce incoming candidate values over stored ones.

    Absent incoming values keep the stored value; canonical keys are derived
    from whichever domain and phone survive the merge.
    """
    incoming = {
        "name": candidate.name,
        "domain": candidate.website,
        "phone": candidate.phone,
        "email": candidate.email,
        "address": candidate.address,
        "city": candidate.city,
        "state": candidate.state,
        "postal_code": candidate.postal_code,
        "latitude": candidate.latitude,
        "longitude": candidate.longitude,
        "category": candidate.category,
        "source": candidate.source,
        "source_id": candidate.source_id,
        "status": status,
    }

    merged = {}
    for key in MERGE_FIELDS:
        value = incoming.get(key)
        if value is None or value == "":
            value = getattr(existing, key, None) if existing is not None else None
        merged[key] = value

    if merged["status"] is None:
        merged["status"] = "new"
    merged["canonical_domain"] = normalize_domain(merged["domain"])
    merged["normalized_phone"] = normalize_phone(merged["phone"])
    return merged


class EntityResolver:
    """Matches candidates against stored leads and writes them."""

    def __init__(self, store: LeadStore, threshold: float = FUZZY_THRESHOLD):
        self.store = store
        self.threshold = threshold

    def resolve(self, candidate: Candidate) -> Optional[Lead]:
        """Return the stored lead this candidate identifies, if any."""
        if candidate.source_id:
            lead = self.store.get_lead_by_source_id(candidate.source_id)
            if lead is not None:
                return lead

        domain = candidate.canonical_domain
        if domain:
            lead = self.store.get_lead_by_domain(domain)
            if lead is not None:
                return lead

        identity = _candidate_identity(candidate)
        phone = identity["normalized_phone"]

        if phone and candidate.name:
            for lead in self.store.get_leads_by_phone(phone, limit=PHONE_CANDIDATE_LIMIT):
                if is_fuzzy_match(identity, lead, self.threshold):
                    return lead

        if candidate.name and candidate.city:
            fragment = candidate.name[:NAME_PREFIX_LENGTH]
            for lead in self.store.get_leads_by_city_and_name(
                candidate.city, fragment, limit=CITY_CANDIDATE_LIMIT
            ):
                if is_fuzzy_match(identity, lead, self.threshold):
                    return lead

        return None

    def upsert(self, candidate: Candidate, status: Optional[str] = None) -> UpsertResult:
        """
        Insert the candidate as a new lead or merge it into its match.

        A concurrent writer claiming the same identity between our lookup and
        our write surfaces as LeadConflictError; resolution is then repeated
        so the write lands on the row that won.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            existing = self.resolve(candidate)
            try:
                if existing is None:
                    lead = self.store.insert_lead(merge_fields(candidate, status=status))
                    return UpsertResult(lead=lead, is_new=True, was_updated=False)

                fields = merge_fields(candidate, existing, status=status)
                lead, changed = self.store.update_lead(existing.id, fields)
                return UpsertResult(lead=lead, is_new=False, was_updated=changed)
            except LeadConflictError as e:
                if attempt >= MAX_WRITE_ATTEMPTS:
                    raise
                logger.warning(
                    "Lead write conflicted, re-resolving",
                    name=candidate.name,
                    attempt=attempt,
                    error=str(e),
                )

    def resolve_batch(self, candidates: Iterable[Candidate]) -> KnownIdentities:
        """
        Collect identities of candidates that are already stored.

        Two bulk lookups cover the whole candidate list; the result seeds the
        mission's duplicate set before any per-candidate work.
        """
        source_ids = set()
        domains = set()
        phones = set()
        for candidate in candidates:
            if candidate.source_id:
                source_ids.add(candidate.source_id)
            if candidate.canonical_domain:
                domains.add(candidate.canonical_domain)
            if candidate.normalized_phone:
                phones.add(candidate.normalized_phone)

        known = KnownIdentities()
        existing = self.store.get_leads_by_source_ids(source_ids)
        existing += self.store.get_leads_by_domains_or_phones(domains, phones)
        for lead in existing:
            known.add_lead(lead)
        return known
