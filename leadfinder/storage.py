"""
Persistent store for leads, audits, scores and missions.

Every public method runs in its own short transaction. Returned ORM objects
are detached and safe to read after the session closes.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import Lead, LeadMetrics, Mission, MissionEvent, Score, init_database
from .errors import LeadConflictError, PersistenceError
from .models import AuditResult, ScoreResult


def diff_dict(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    changed = {}
    keys = set(old.keys()) | set(new.keys())
    for k in keys:
        ov = old.get(k)
        nv = new.get(k)
        if ov != nv:
            changed[k] = {"old": ov, "new": nv}
    return changed


class LeadStore:
    """SQLite-backed store used by the resolver and mission orchestrator."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.engine = init_database(db_path)
        self._Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def _session(self):
        session = self._Session()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise LeadConflictError(f"Uniqueness constraint violated: {e.orig}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Database error: {e}") from e
        finally:
            session.close()

    # Leads

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        with self._session() as session:
            return session.get(Lead, lead_id)

    def get_lead_by_source_id(self, source_id: str) -> Optional[Lead]:
        with self._session() as session:
            return session.query(Lead).filter(Lead.source_id == source_id).first()

    def get_lead_by_domain(self, canonical_domain: str) -> Optional[Lead]:
        with self._session() as session:
            return session.query(Lead).filter(Lead.canonical_domain == canonical_domain).first()

    def get_leads_by_phone(self, normalized_phone: str, limit: int = 10) -> List[Lead]:
        with self._session() as session:
            return (
                session.query(Lead)
                .filter(Lead.normalized_phone == normalized_phone)
                .order_by(Lead.created_at)
                .limit(limit)
                .all()
            )

    def get_leads_by_city_and_name(self, city: str, name_fragment: str, limit: int = 20) -> List[Lead]:
        """Leads whose city and name contain the given fragments (case-insensitive)."""
        with self._session() as session:
            return (
                session.query(Lead)
                .filter(func.lower(Lead.city).contains(city.lower(), autoescape=True))
                .filter(func.lower(Lead.name).contains(name_fragment.lower(), autoescape=True))
                .order_by(Lead.created_at)
                .limit(limit)
                .all()
            )

    def get_leads_by_source_ids(self, source_ids: Iterable[str]) -> List[Lead]:
        ids = sorted(set(source_ids))
        if not ids:
            return []
        with self._session() as session:
            return session.query(Lead).filter(Lead.source_id.in_(ids)).all()

    def get_leads_by_domains_or_phones(self, domains: Iterable[str], phones: Iterable[str]) -> List[Lead]:
        domains = sorted(set(domains))
        phones = sorted(set(phones))
        conditions = []
        if domains:
            conditions.append(Lead.canonical_domain.in_(domains))
        if phones:
            conditions.append(Lead.normalized_phone.in_(phones))
        if not conditions:
            return []
        with self._session() as session:
            return session.query(Lead).filter(or_(*conditions)).all()

    def insert_lead(self, fields: Dict[str, Any]) -> Lead:
        """Insert a lead; raises LeadConflictError if its identity is taken."""
        with self._session() as session:
            lead = Lead(**fields)
            session.add(lead)
            session.flush()
            return lead

    def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> Tuple[Lead, bool]:
        """
        Apply field values to an existing lead.

        Returns the lead and whether any stored value actually changed.
        """
        with self._session() as session:
            lead = session.get(Lead, lead_id)
            if lead is None:
                raise PersistenceError(f"Lead not found: {lead_id}")

            current = {k: getattr(lead, k) for k in fields}
            changed = diff_dict(current, fields)
            for k in changed:
                setattr(lead, k, fields[k])
            if changed:
                session.flush()
            return lead, bool(changed)

    def get_leads_with_scores(
        self,
        limit: int = 100,
        offset: int = 0,
        min_score: Optional[int] = None,
    ) -> List[Tuple[Lead, Optional[Score]]]:
        with self._session() as session:
            q = session.query(Lead, Score).outerjoin(Score, Score.lead_id == Lead.id)
            if min_score is not None:
                q = q.filter(Score.total >= min_score)
            q = q.order_by(Lead.created_at.desc()).limit(limit).offset(offset)
            return [(lead, score) for lead, score in q.all()]

    def get_lead_with_details(self, lead_id: str) -> Optional[Dict[str, Any]]:
        with self._session() as session:
            lead = session.get(Lead, lead_id)
            if lead is None:
                return None
            metrics = session.query(LeadMetrics).filter(LeadMetrics.lead_id == lead_id).first()
            score = session.query(Score).filter(Score.lead_id == lead_id).first()
            return {"lead": lead, "metrics": metrics, "score": score}

    # Audit snapshots and scores

    def upsert_audit_result(
        self,
        lead_id: str,
        audit: AuditResult,
        rating: Optional[float] = None,
        review_count: Optional[int] = None,
    ) -> LeadMetrics:
        with self._session() as session:
            metrics = session.query(LeadMetrics).filter(LeadMetrics.lead_id == lead_id).first()
            if metrics is None:
                metrics = LeadMetrics(lead_id=lead_id)
                session.add(metrics)
            metrics.https_ok = audit.https_ok
            metrics.mobile_ok = audit.mobile_ok
            metrics.has_booking = audit.has_booking
            metrics.schema_ok = audit.schema_ok
            metrics.cms_hint = audit.cms_hint
            metrics.lcp_ms = audit.lcp_ms
            metrics.analytics_pixels = list(audit.analytics_pixels)
            if rating is not None:
                metrics.rating = rating
            if review_count is not None:
                metrics.review_count = review_count
            session.flush()
            return metrics

    def upsert_score(self, lead_id: str, result: ScoreResult) -> Score:
        with self._session() as session:
            score = session.query(Score).filter(Score.lead_id == lead_id).first()
            if score is None:
                score = Score(lead_id=lead_id)
                session.add(score)
            score.need = result.need
            score.value = result.value
            score.reachability = result.reachability
            score.total = result.total
            score.reasons = list(result.reasons)
            session.flush()
            return score

    # Missions

    def create_mission(
        self,
        goal_text: str,
        query: Optional[str] = None,
        location: Optional[str] = None,
        max_leads: Optional[int] = None,
        min_score: Optional[int] = None,
    ) -> Mission:
        with self._session() as session:
            mission = Mission(
                title=goal_text[:50],
                goal_text=goal_text,
                query=query,
                location=location,
                max_leads=max_leads,
                min_score=min_score,
                status="running",
            )
            session.add(mission)
            session.flush()
            return mission

    def get_mission(self, mission_id: str) -> Optional[Mission]:
        with self._session() as session:
            return session.get(Mission, mission_id)

    def update_mission_status(
        self,
        mission_id: str,
        status: str,
        completed_at: Optional[datetime] = None,
    ) -> Optional[Mission]:
        with self._session() as session:
            mission = session.get(Mission, mission_id)
            if mission is None:
                return None
            mission.status = status
            mission.completed_at = completed_at
            return mission

    def append_mission_event(
        self,
        mission_id: str,
        event_type: str,
        message: str,
        tool_name: Optional[str] = None,
    ) -> MissionEvent:
        with self._session() as session:
            event = MissionEvent(
                mission_id=mission_id,
                event_type=event_type,
                tool_name=tool_name,
                payload={"message": message},
            )
            session.add(event)
            session.flush()
            return event

    def get_mission_events(self, mission_id: str, limit: int = 50) -> List[MissionEvent]:
        """Most recent events first."""
        with self._session() as session:
            return (
                session.query(MissionEvent)
                .filter(MissionEvent.mission_id == mission_id)
                .order_by(MissionEvent.id.desc())
                .limit(limit)
                .all()
            )
