"""
Error taxonomy for lead discovery missions.

Fatal errors (configuration, source, persistence) abort a mission and mark it
failed. Soft errors (enrichment, audit) are absorbed by the caller, which
falls back to degraded defaults for the affected candidate.
"""

from typing import List, Optional


class LeadFinderError(Exception):
    """Base class for all leadfinder errors."""
    pass


class ConfigurationError(LeadFinderError):
    """Missing or invalid mission configuration (e.g. search credential)."""
    pass


class SourceError(LeadFinderError):
    """The business search provider rejected or failed a request."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        status: Optional[str] = None,
        remediation: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.remediation = list(remediation or [])


class AuthorizationError(SourceError):
    """Bad or missing credential for the search provider."""
    pass


class QuotaOrDeniedError(SourceError):
    """Provider denied the request or the quota is exhausted."""
    pass


class InvalidRequestError(SourceError):
    """Provider considers the request malformed."""
    pass


class EnrichmentError(LeadFinderError):
    """Contact detail lookup failed for one candidate."""
    pass


class AuditError(LeadFinderError):
    """Website fetch failed or timed out.

    ``kind`` is either ``"timeout"`` or ``"error"``.
    """

    def __init__(self, message: str, kind: str = "error"):
        super().__init__(message)
        self.kind = kind


class PersistenceError(LeadFinderError):
    """A write to the persistent store failed."""
    pass


class LeadConflictError(PersistenceError):
    """A lead write violated a uniqueness constraint (concurrent writer)."""
    pass
