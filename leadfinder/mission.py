"""
Mission orchestration.

A mission runs search -> enrich -> de-duplicate -> audit -> score -> save for
one goal ("dentists in San Diego") and reports progress to the mission event
log. Per-candidate enrichment and audit failures are absorbed with degraded
defaults; search, configuration and persistence failures end the mission as
failed and are re-raised to the caller.

Mission state: running -> completed | failed. A failed mission is never
resumed.
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .auditor import SiteAuditor
from .config import MissionConfig
from .errors import ConfigurationError, SourceError
from .events import MissionEventLog
from .logger import get_logger
from .models import NO_WEBSITE, AUDIT_ERROR, AUDIT_TIMEOUT, AuditResult, Candidate, ContactInfo
from .resolver import EntityResolver, KnownIdentities
from .scoring import DEFAULT_TABLES, ScoringTables, score_lead
from .sources import BusinessSource, get_source
from .storage import LeadStore

logger = get_logger()

DEFAULT_LOCATION = "San Diego"

_GOAL_PATTERNS = [
    re.compile(r"(?:find|search|look for|get me|discover)\s+(.+?)\s+(?:in|near|around)\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+(?:in|near|around)\s+(.+)", re.IGNORECASE),
]

_ACTION_RE = re.compile(r"\b(find|search|look for|get|discover|show|list|pull)\b", re.IGNORECASE)
_LOCATION_RE = re.compile(r"\b(in|near|around|at)\s+[a-z]", re.IGNORECASE)
_CITY_RE = re.compile(
    r"\b(san diego|los angeles|new york|chicago|houston|phoenix|philadelphia|san antonio|dallas|"
    r"austin|san jose|seattle|denver|boston|nashville|portland|las vegas|atlanta|miami|"
    r"minneapolis|tampa|orlando|sacramento|san francisco)\b",
    re.IGNORECASE,
)
_BUSINESS_RE = re.compile(
    r"\b(leads?|business(es)?|companies|dentists?|doctors?|lawyers?|restaurants?|plumbers?|"
    r"contractors?|realtors?|agency|agencies|clinics?|salons?|spas?|gyms?|studios?|shops?|"
    r"stores?|services?)\b",
    re.IGNORECASE,
)
_COUNT_RE = re.compile(r"\b(\d+)\s*(leads?|business(es)?|results?)\b|\bget\s+me\s+\d+\b", re.IGNORECASE)


@dataclass
class MissionGoal:
    query: str
    location: str
    goal_text: str = ""
    max_leads: int = 10
    min_score: int = 0


def parse_goal(text: str, strict: bool = False, max_leads: int = 10) -> MissionGoal:
    """Turn "find dentists in San Diego" into a query and a location."""
    text = text.strip()
    min_score = 75 if strict else 0
    for pattern in _GOAL_PATTERNS:
        match = pattern.match(text)
        if match:
            return MissionGoal(
                query=match.group(1).strip(),
                location=match.group(2).strip(),
                goal_text=text,
                max_leads=max_leads,
                min_score=min_score,
            )
    return MissionGoal(query=text, location=DEFAULT_LOCATION, goal_text=text, max_leads=max_leads, min_score=min_score)


def is_mission_request(text: str) -> bool:
    """True if free text asks for a lead search rather than a question."""
    has_action = bool(_ACTION_RE.search(text))
    has_location = bool(_LOCATION_RE.search(text) or _CITY_RE.search(text))
    has_business = bool(_BUSINESS_RE.search(text))
    has_count = bool(_COUNT_RE.search(text))

    if has_action and has_location:
        return True
    if has_location and has_business:
        return True
    return has_count and (has_location or has_business)


@dataclass
class SavedLead:
    id: str
    name: str
    score: int
    status: str


@dataclass
class MissionSummary:
    considered: int = 0
    saved: int = 0
    qualified: int = 0
    junk: int = 0
    updated: int = 0
    skipped_duplicates: int = 0
    rejected: int = 0
    top_leads: List[SavedLead] = field(default_factory=list)
    message: str = ""
    completed: bool = False


class MissionOrchestrator:
    """Runs one mission at a time against a shared store."""

    def __init__(
        self,
        store: LeadStore,
        config: MissionConfig,
        source: Optional[BusinessSource] = None,
        auditor: Optional[SiteAuditor] = None,
        tables: ScoringTables = DEFAULT_TABLES,
    ):
        self.store = store
        self.config = config
        self._source = source
        self.auditor = auditor or SiteAuditor(config.audit_timeout, config.body_timeout)
        self.resolver = EntityResolver(store)
        self.tables = tables

    @property
    def source(self) -> BusinessSource:
        if self._source is None:
            self._source = get_source(self.config)
        return self._source

    def run(self, mission_id: str, goal: MissionGoal) -> MissionSummary:
        """Run a mission to completion. Raises on fatal errors after marking it failed."""
        events = MissionEventLog(self.store, mission_id)

        try:
            self.config.validate()
        except ConfigurationError as e:
            try:
                events.error(f"Mission failed: {e}")
            finally:
                self._finish(mission_id, "failed")
            raise

        try:
            summary = self._execute(goal, events)
        except Exception as e:
            try:
                self._report_failure(e, events)
            finally:
                self._finish(mission_id, "failed")
            raise

        self._finish(mission_id, "completed")
        logger.log_metrics_summary()
        return summary

    def _finish(self, mission_id: str, status: str) -> None:
        completed_at = datetime.now() if status == "completed" else None
        self.store.update_mission_status(mission_id, status, completed_at)

    def _report_failure(self, error: Exception, events: MissionEventLog) -> None:
        events.error(f"Mission failed: {error}")
        if isinstance(error, SourceError):
            for line in error.remediation:
                events.error(line)

    def _execute(self, goal: MissionGoal, events: MissionEventLog) -> MissionSummary:
        summary = MissionSummary()
        saved: List[SavedLead] = []

        events.info(f"Starting mission: {goal.query} in {goal.location}")
        events.info(f"Target: Find {goal.max_leads} leads with score >= {goal.min_score}")

        events.tool("Searching for businesses...", "search_places")
        candidates = self.source.search(goal.query, goal.location, self.config.search_radius)
        if not candidates:
            events.warning("No businesses found matching your criteria")
            summary.message = "No businesses found"
            summary.completed = True
            return summary

        events.success(f"Found {len(candidates)} potential businesses")

        enriched = self._enrich(candidates[: self.config.enrich_limit])
        summary.considered = len(enriched)
        events.info(f"Retrieved contact details for {len(enriched)} businesses")

        known = self.resolver.resolve_batch(enriched)
        if len(known) > 0:
            events.info("Some of these businesses are already in the database - will skip duplicates")

        for candidate in enriched:
            if summary.qualified >= goal.max_leads:
                events.success(f"Reached target of {goal.max_leads} qualified leads!")
                break

            if known.contains(candidate):
                summary.skipped_duplicates += 1
                continue

            logger.record_candidate()
            lead = self._process_candidate(candidate, goal, known, events, summary)
            if lead is not None:
                saved.append(lead)

        summary.saved = len(saved)
        summary.junk = summary.saved - summary.qualified
        summary.top_leads = [lead for lead in saved if lead.status == "qualified"][:5]
        summary.message = self._summary_message(summary, goal.min_score)
        summary.completed = True

        events.success(summary.message)
        self._log_closing_lists(saved, goal.min_score, events)
        return summary

    def _enrich(self, candidates: List[Candidate]) -> List[Candidate]:
        """Fetch contact details in parallel; a failed lookup keeps the original."""
        def enrich_one(candidate: Candidate) -> Candidate:
            if not candidate.source_id:
                return candidate
            details = self.source.enrich_details(candidate.source_id)
            return candidate.with_details(details or {})

        with ThreadPoolExecutor(max_workers=self.config.enrich_workers) as pool:
            return list(pool.map(enrich_one, candidates))

    def _audit(self, candidate: Candidate, events: MissionEventLog) -> AuditResult:
        if not candidate.website:
            events.warning(f"{candidate.name} has no website - using default audit")
            return AuditResult.default(NO_WEBSITE)

        events.tool(f"Auditing website: {candidate.website}", "audit_site")
        audit = self.auditor.audit(candidate.website)

        if audit.cms_hint == AUDIT_TIMEOUT:
            events.warning("Website audit timed out - site may be slow")
        elif audit.cms_hint == AUDIT_ERROR:
            events.warning("Website audit failed - site may be unreachable")
        else:
            issues = audit.issues()
            if issues:
                events.info(f"Issues found: {', '.join(issues)}")
            else:
                events.info("Website looks well-optimized")
        return audit

    def _process_candidate(
        self,
        candidate: Candidate,
        goal: MissionGoal,
        known: KnownIdentities,
        events: MissionEventLog,
        summary: MissionSummary,
    ) -> Optional[SavedLead]:
        events.info(f"Analyzing: {candidate.name}")

        audit = self._audit(candidate, events)
        score = score_lead(audit, ContactInfo.from_candidate(candidate), candidate.category, self.tables)

        meets_threshold = goal.min_score == 0 or score.total >= goal.min_score
        if not meets_threshold:
            summary.rejected += 1
            events.info(f"Skipped: {candidate.name} - Score {score.total} below threshold {goal.min_score}")
            return None

        status = score.status
        label = "QUALIFIED" if score.is_qualified else "SAVED (low score)"
        events.append(
            "success" if score.is_qualified else "info",
            f"{label}: {candidate.name} - Score: {score.total}/100",
        )
        events.info(f"  Need: {score.need} | Value: {score.value} | Reachability: {score.reachability}")
        for reason in score.reasons[:3]:
            events.info(f"  • {reason}")

        result = self.resolver.upsert(candidate, status=status)
        self.store.upsert_audit_result(result.lead_id, audit, candidate.rating, candidate.review_count)
        self.store.upsert_score(result.lead_id, score)

        known.add_lead(result.lead)
        known.add_candidate(candidate)

        if not result.is_new:
            events.info("  (Updated existing lead)")
        if result.was_updated:
            summary.updated += 1
        if score.is_qualified:
            summary.qualified += 1

        return SavedLead(id=result.lead_id, name=candidate.name, score=score.total, status=status)

    @staticmethod
    def _summary_message(summary: MissionSummary, min_score: int) -> str:
        dedupe_info = f", {summary.updated} updated" if summary.updated > 0 else ""
        skip_info = (
            f" ({summary.skipped_duplicates} duplicates skipped)" if summary.skipped_duplicates > 0 else ""
        )

        if summary.saved == 0:
            if min_score > 0:
                return f"Mission complete. No leads met the qualification threshold of {min_score}.{skip_info}"
            return f"Mission complete. No businesses found to save.{skip_info}"
        if min_score == 0:
            return (
                f"Mission complete! Saved {summary.saved} leads ({summary.qualified} qualified, "
                f"{summary.junk} low-score{dedupe_info}).{skip_info}"
            )
        return f"Mission complete! Found {summary.qualified} qualified leads{dedupe_info}.{skip_info}"

    @staticmethod
    def _log_closing_lists(saved: List[SavedLead], min_score: int, events: MissionEventLog) -> None:
        qualified = [lead for lead in saved if lead.status == "qualified"]
        junk = [lead for lead in saved if lead.status == "junk"]

        if qualified:
            events.info("Qualified leads:")
            for lead in qualified[:5]:
                events.info(f"  • {lead.name} (Score: {lead.score})")

        if junk and min_score == 0:
            events.info("Low-score leads (for review):")
            for lead in junk[:3]:
                events.info(f"  • {lead.name} (Score: {lead.score})")


class MissionHandle:
    """Acknowledgment for a mission running in the background."""

    def __init__(self, mission_id: str, thread: threading.Thread):
        self.mission_id = mission_id
        self.status = "running"
        self._thread = thread
        self.summary: Optional[MissionSummary] = None
        self.error: Optional[BaseException] = None

    def wait(self, timeout: Optional[float] = None) -> Optional[MissionSummary]:
        """Block until the mission ends; re-raises the mission's fatal error."""
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError(f"Mission {self.mission_id} still running after {timeout}s")
        if self.error is not None:
            raise self.error
        return self.summary


def create_mission(store: LeadStore, goal: MissionGoal):
    return store.create_mission(
        goal_text=goal.goal_text or f"{goal.query} in {goal.location}",
        query=goal.query,
        location=goal.location,
        max_leads=goal.max_leads,
        min_score=goal.min_score,
    )


def run_mission(orchestrator: MissionOrchestrator, goal: MissionGoal):
    """Create a mission and run it in the calling thread. Returns (mission_id, summary)."""
    mission = create_mission(orchestrator.store, goal)
    return mission.id, orchestrator.run(mission.id, goal)


def start_mission(orchestrator: MissionOrchestrator, goal: MissionGoal) -> MissionHandle:
    """
    Create a mission and run it on a background thread.

    Returns immediately; observers follow progress through the event log.
    """
    mission = create_mission(orchestrator.store, goal)

    def target():
        try:
            handle.summary = orchestrator.run(mission.id, goal)
            handle.status = "completed"
        except Exception as e:
            handle.error = e
            handle.status = "failed"
            logger.error("Mission failed", mission_id=mission.id, error=str(e))

    thread = threading.Thread(target=target, name=f"mission-{mission.id[:8]}", daemon=True)
    handle = MissionHandle(mission.id, thread)
    thread.start()
    return handle
