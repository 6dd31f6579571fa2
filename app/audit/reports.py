import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.audit import occurrences as occurrence_tracker
from app.audit import scoring
from app.audit.schemas import AuditReportData, OccurrenceSummary, ScoringResultData, SessionProgress
from app.audit.service import get_audit_or_404, serialize_audit
from app.db import models


logger = logging.getLogger("eagl.audit.reports")


def _progress(responded: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(responded / total * 100, 2)


def _session_progress(db: Session, audit_id: str) -> list[SessionProgress]:
    sessions = (
        db.query(models.AuditSession)
        .filter(models.AuditSession.audit_id == audit_id)
        .order_by(models.AuditSession.display_order.asc())
        .all()
    )
    totals = dict(
        db.query(models.SessionItem.session_id, func.count(models.SessionItem.id))
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(models.AuditSession.audit_id == audit_id)
        .group_by(models.SessionItem.session_id)
        .all()
    )
    responded = dict(
        db.query(models.SessionItem.session_id, func.count(models.AuditResponse.id))
        .join(models.AuditResponse, models.AuditResponse.session_item_id == models.SessionItem.id)
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(
            models.AuditSession.audit_id == audit_id,
            models.AuditResponse.response_option_id.isnot(None),
        )
        .group_by(models.SessionItem.session_id)
        .all()
    )
    return [
        SessionProgress(
            id=session.id,
            name=session.name,
            display_order=session.display_order,
            status=session.status,
            session_date=session.session_date,
            location=session.location,
            total_items=totals.get(session.id, 0),
            responded_items=responded.get(session.id, 0),
            progress=_progress(responded.get(session.id, 0), totals.get(session.id, 0)),
        )
        for session in sessions
    ]


def _latest_change(db: Session, audit_id: str) -> Optional[datetime]:
    last_response = (
        db.query(func.max(models.AuditResponse.updated_at))
        .join(models.SessionItem, models.SessionItem.id == models.AuditResponse.session_item_id)
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(models.AuditSession.audit_id == audit_id)
        .scalar()
    )
    last_occurrence = (
        db.query(func.max(models.AuditOccurrence.updated_at))
        .filter(models.AuditOccurrence.audit_id == audit_id)
        .scalar()
    )
    last_item = (
        db.query(func.max(models.SessionItem.created_at))
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(models.AuditSession.audit_id == audit_id)
        .scalar()
    )
    last_config = (
        db.query(models.ScoringConfig.updated_at)
        .filter(models.ScoringConfig.audit_id == audit_id)
        .scalar()
    )
    # Occurrence deletes leave no row behind; they stamp the audit instead.
    audit_touched = db.query(models.Audit.updated_at).filter(models.Audit.id == audit_id).scalar()
    candidates = [
        value
        for value in (last_response, last_occurrence, last_item, last_config, audit_touched)
        if value is not None
    ]
    return max(candidates) if candidates else None


def _standards(db: Session, audit_id: str) -> list[dict]:
    links = (
        db.query(models.AuditStandardLink)
        .filter(models.AuditStandardLink.audit_id == audit_id)
        .order_by(models.AuditStandardLink.created_at.asc())
        .all()
    )
    return [
        {
            "id": link.standard.id,
            "code": link.standard.code,
            "name": link.standard.name,
            "version": link.standard.version,
        }
        for link in links
        if link.standard
    ]


def build_report(
    db: Session,
    audit_id: str,
    recalculate: bool = False,
    today: Optional[date] = None,
) -> AuditReportData:
    """Compose the read-only report snapshot of an audit.

    With ``recalculate`` the score is computed in memory for the report and is
    not stored; otherwise the stored result is used as is.
    """
    audit = get_audit_or_404(db, audit_id)
    sessions = _session_progress(db, audit_id)
    total_items = sum(session.total_items for session in sessions)
    responded_items = sum(session.responded_items for session in sessions)

    scoring_result: Optional[ScoringResultData]
    if recalculate:
        scoring_result = scoring.compute_live(db, audit_id)
        scoring_source = "live"
        scoring_stale = False
    else:
        scoring_result = scoring.get_scoring_result(db, audit_id)
        scoring_source = "stored" if scoring_result else "none"
        latest_change = _latest_change(db, audit_id)
        scoring_stale = bool(
            scoring_result and latest_change and latest_change > scoring_result.calculated_at
        )

    occurrence_rows = occurrence_tracker.list_occurrences(db, audit_id)
    report = AuditReportData(
        audit=serialize_audit(audit),
        sessions=sessions,
        total_items=total_items,
        responded_items=responded_items,
        overall_progress=_progress(responded_items, total_items),
        scoring=scoring_result,
        scoring_source=scoring_source,
        scoring_stale=scoring_stale,
        occurrences=[occurrence_tracker.serialize_occurrence(row) for row in occurrence_rows],
        occurrence_summary=OccurrenceSummary(**occurrence_tracker.summarize(occurrence_rows, today)),
        standards=_standards(db, audit_id),
        generated_at=datetime.utcnow(),
    )
    logger.info(
        "report built audit=%s sessions=%s occurrences=%s scoring=%s stale=%s",
        audit_id,
        len(sessions),
        len(occurrence_rows),
        scoring_source,
        scoring_stale,
    )
    return report
