"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Dict, List, Optional

from leadfinder.config import MissionConfig
from leadfinder.models import AuditResult, Candidate
from leadfinder.sources.base import BusinessSource
from leadfinder.storage import LeadStore


class FakeSource(BusinessSource):
    """In-memory business source; records calls."""

    name = "fake"

    def __init__(self, candidates: List[Candidate], details: Optional[Dict[str, Dict]] = None, error=None):
        self.candidates = candidates
        self.details = details or {}
        self.error = error
        self.search_calls = []
        self.enrich_calls = []

    def search(self, query, location, radius=5000):
        self.search_calls.append((query, location, radius))
        if self.error is not None:
            raise self.error
        return list(self.candidates)

    def fetch_details(self, source_id):
        self.enrich_calls.append(source_id)
        detail = self.details.get(source_id, {})
        if isinstance(detail, Exception):
            raise detail
        return detail


class StubAuditor:
    """Returns canned audit results keyed by website."""

    def __init__(self, results: Optional[Dict[str, AuditResult]] = None):
        self.results = results or {}
        self.audited = []

    def audit(self, url):
        self.audited.append(url)
        return self.results.get(url, AuditResult(cms_hint="unknown"))


@pytest.fixture
def store(tmp_path) -> LeadStore:
    """Fresh SQLite store in a temp directory."""
    return LeadStore(tmp_path / "leads.db")


@pytest.fixture
def config(tmp_path) -> MissionConfig:
    """Valid relaxed-mode config for a credential-based provider."""
    return MissionConfig(
        places_api_key="test-key-1234567890",
        database_path=tmp_path / "leads.db",
        enrich_workers=2,
    )


@pytest.fixture
def acme_candidate() -> Candidate:
    return Candidate(
        name="Acme Dental",
        category="dentist",
        address="123 Main St, San Diego, CA 92101, USA",
        city="San Diego",
        source="google_places",
        source_id="place-acme",
        phone="(619) 555-0100",
        website="https://www.acme.com/",
    )


@pytest.fixture
def sample_homepage_html() -> str:
    """Homepage with viewport, booking link, JSON-LD, WordPress assets and GA."""
    return """
    <html>
    <head>
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <link rel="stylesheet" href="/wp-content/themes/smile/style.css">
        <script type="application/ld+json">{"@type": "Dentist"}</script>
        <script src="https://www.googletagmanager.com/gtag/js?id=G-1"></script>
    </head>
    <body>
        <h1>Acme Dental</h1>
        <a href="/appointments">Request a visit</a>
    </body>
    </html>
    """


@pytest.fixture
def bare_homepage_html() -> str:
    """Homepage with none of the signals the auditor looks for."""
    return """
    <html>
    <head><title>Joe's Diner</title></head>
    <body><h1>Joe's Diner</h1><p>Open daily 7-3.</p></body>
    </html>
    """
