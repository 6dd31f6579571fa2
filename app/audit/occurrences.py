import logging
import uuid
from collections import Counter
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.audit.schemas import OccurrenceCreate, OccurrenceUpdate
from app.audit.service import ensure_not_cancelled, get_audit_or_404
from app.core.config import settings
from app.core.errors import ConcurrencyConflictError, InvalidStateError, NotFoundError, ValidationError
from app.db import models


logger = logging.getLogger("eagl.audit.occurrences")

ACTIVE_STATUSES = {"Open", "In_Treatment", "Awaiting_Verification"}
TERMINAL_STATUSES = {"Closed", "Cancelled"}
EDITABLE_FIELDS = {
    "occurrence_type",
    "title",
    "description",
    "status",
    "priority",
    "due_date",
    "responsible",
    "corrective_action",
}


def get_occurrence_or_404(db: Session, occurrence_id: str) -> models.AuditOccurrence:
    occurrence = db.query(models.AuditOccurrence).filter(models.AuditOccurrence.id == occurrence_id).first()
    if not occurrence:
        raise NotFoundError("Ocorrencia", occurrence_id)
    return occurrence


def _next_occurrence_number(db: Session, audit_id: str) -> int:
    # Single-statement increment; the row lock serializes concurrent creators.
    result = db.execute(
        update(models.OccurrenceSequence)
        .where(models.OccurrenceSequence.audit_id == audit_id)
        .values(last_value=models.OccurrenceSequence.last_value + 1)
    )
    if result.rowcount == 0:
        db.add(models.OccurrenceSequence(audit_id=audit_id, last_value=1))
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise ConcurrencyConflictError(
                "Sequencia de ocorrencias em conflito, tente novamente",
                details={"audit_id": audit_id},
            ) from exc
        return 1
    return db.execute(
        select(models.OccurrenceSequence.last_value).where(models.OccurrenceSequence.audit_id == audit_id)
    ).scalar_one()


def _require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"Campo {field} obrigatorio", field=field)
    return text


def _validate_links(db: Session, audit_id: str, payload: OccurrenceCreate) -> None:
    if payload.session_id:
        session = (
            db.query(models.AuditSession)
            .filter(models.AuditSession.id == payload.session_id, models.AuditSession.audit_id == audit_id)
            .first()
        )
        if not session:
            raise NotFoundError("Sessao", payload.session_id)
    if payload.session_item_id:
        item = (
            db.query(models.SessionItem)
            .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
            .filter(models.SessionItem.id == payload.session_item_id, models.AuditSession.audit_id == audit_id)
            .first()
        )
        if not item:
            raise NotFoundError("Item da sessao", payload.session_item_id)
        if payload.session_id and item.session_id != payload.session_id:
            raise ValidationError(
                "Item nao pertence a sessao informada",
                field="session_item_id",
                value=payload.session_item_id,
            )
    if payload.response_id:
        response = (
            db.query(models.AuditResponse)
            .join(models.SessionItem, models.SessionItem.id == models.AuditResponse.session_item_id)
            .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
            .filter(models.AuditResponse.id == payload.response_id, models.AuditSession.audit_id == audit_id)
            .first()
        )
        if not response:
            raise NotFoundError("Resposta", payload.response_id)
        if payload.session_item_id and response.session_item_id != payload.session_item_id:
            raise ValidationError(
                "Resposta nao pertence ao item informado",
                field="response_id",
                value=payload.response_id,
            )


def create_occurrence(
    db: Session,
    audit_id: str,
    payload: OccurrenceCreate,
    actor_id: Optional[str] = None,
    commit: bool = True,
) -> models.AuditOccurrence:
    audit = get_audit_or_404(db, audit_id)
    ensure_not_cancelled(audit)
    title = _require_text(payload.title, "title")
    description = _require_text(payload.description, "description")
    _validate_links(db, audit_id, payload)

    occurrence = models.AuditOccurrence(
        id=str(uuid.uuid4()),
        audit_id=audit_id,
        session_id=payload.session_id,
        session_item_id=payload.session_item_id,
        response_id=payload.response_id,
        occurrence_number=_next_occurrence_number(db, audit_id),
        occurrence_type=payload.occurrence_type,
        title=title,
        description=description,
        status="Open",
        priority=payload.priority,
        due_date=payload.due_date,
        responsible=payload.responsible,
        corrective_action=payload.corrective_action,
        created_by=actor_id,
    )
    db.add(occurrence)
    try:
        if commit:
            db.commit()
        else:
            db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError(
            "Numero de ocorrencia em conflito, tente novamente",
            details={"audit_id": audit_id},
        ) from exc
    if commit:
        db.refresh(occurrence)
    logger.info(
        "occurrence created id=%s audit=%s number=%s type=%s",
        occurrence.id,
        audit_id,
        occurrence.occurrence_number,
        occurrence.occurrence_type,
    )
    return occurrence


def update_occurrence(db: Session, occurrence_id: str, patch: OccurrenceUpdate) -> models.AuditOccurrence:
    occurrence = get_occurrence_or_404(db, occurrence_id)
    if occurrence.status in TERMINAL_STATUSES:
        raise InvalidStateError(
            f"Ocorrencia {occurrence.status} nao pode ser editada", current_state=occurrence.status
        )
    updates = patch.model_dump(exclude_unset=True)
    if updates.get("status") == "Closed":
        raise InvalidStateError("Use a acao de encerramento para fechar a ocorrencia", current_state=occurrence.status)
    for field in ("title", "description"):
        if field in updates:
            updates[field] = _require_text(updates[field], field)
    for field, value in updates.items():
        if field not in EDITABLE_FIELDS:
            continue
        if field in {"occurrence_type", "status", "priority"} and value is None:
            continue
        setattr(occurrence, field, value)
    db.commit()
    db.refresh(occurrence)
    return occurrence


def close_occurrence(db: Session, occurrence_id: str, closed_by: Optional[str]) -> models.AuditOccurrence:
    occurrence = get_occurrence_or_404(db, occurrence_id)
    if occurrence.status in TERMINAL_STATUSES:
        return occurrence
    occurrence.status = "Closed"
    occurrence.closed_at = datetime.utcnow()
    occurrence.closed_by = closed_by
    db.commit()
    db.refresh(occurrence)
    logger.info("occurrence closed id=%s by=%s", occurrence.id, closed_by)
    return occurrence


def cancel_occurrence(db: Session, occurrence_id: str) -> models.AuditOccurrence:
    occurrence = get_occurrence_or_404(db, occurrence_id)
    if occurrence.status == "Cancelled":
        return occurrence
    if occurrence.status == "Closed":
        raise InvalidStateError("Ocorrencia encerrada nao pode ser cancelada", current_state=occurrence.status)
    occurrence.status = "Cancelled"
    db.commit()
    db.refresh(occurrence)
    return occurrence


def reopen_occurrence(db: Session, occurrence_id: str, actor_id: Optional[str]) -> models.AuditOccurrence:
    occurrence = get_occurrence_or_404(db, occurrence_id)
    if not settings.ALLOW_OCCURRENCE_REOPEN:
        raise InvalidStateError("Reabertura de ocorrencias desabilitada", current_state=occurrence.status)
    if occurrence.status != "Closed":
        raise InvalidStateError("Apenas ocorrencias encerradas podem ser reabertas", current_state=occurrence.status)
    occurrence.status = "Open"
    occurrence.closed_at = None
    occurrence.closed_by = None
    db.commit()
    db.refresh(occurrence)
    logger.warning("occurrence reopened id=%s by=%s", occurrence.id, actor_id)
    return occurrence


def delete_occurrence(db: Session, occurrence_id: str) -> None:
    occurrence = get_occurrence_or_404(db, occurrence_id)
    occurrence.audit.updated_at = datetime.utcnow()
    db.delete(occurrence)
    db.commit()
    logger.info("occurrence deleted id=%s", occurrence_id)


def list_occurrences(
    db: Session,
    audit_id: str,
    status: Optional[str] = None,
    occurrence_type: Optional[str] = None,
) -> list[models.AuditOccurrence]:
    get_audit_or_404(db, audit_id)
    query = db.query(models.AuditOccurrence).filter(models.AuditOccurrence.audit_id == audit_id)
    if status:
        query = query.filter(models.AuditOccurrence.status == status)
    if occurrence_type:
        query = query.filter(models.AuditOccurrence.occurrence_type == occurrence_type)
    return query.order_by(models.AuditOccurrence.occurrence_number.asc()).all()


def summarize(occurrences: list[models.AuditOccurrence], today: Optional[date] = None) -> dict:
    today = today or date.today()
    by_status = Counter(occurrence.status for occurrence in occurrences)
    by_type = Counter(occurrence.occurrence_type for occurrence in occurrences)
    open_count = sum(1 for occurrence in occurrences if occurrence.status in ACTIVE_STATUSES)
    overdue = sum(
        1
        for occurrence in occurrences
        if occurrence.status in ACTIVE_STATUSES and occurrence.due_date and occurrence.due_date < today
    )
    return {
        "total": len(occurrences),
        "open": open_count,
        "overdue": overdue,
        "by_status": dict(by_status),
        "by_type": dict(by_type),
    }


def serialize_occurrence(occurrence: models.AuditOccurrence) -> dict:
    return {
        "id": occurrence.id,
        "audit_id": occurrence.audit_id,
        "session_id": occurrence.session_id,
        "session_item_id": occurrence.session_item_id,
        "response_id": occurrence.response_id,
        "occurrence_number": occurrence.occurrence_number,
        "occurrence_code": occurrence.occurrence_code,
        "occurrence_type": occurrence.occurrence_type,
        "title": occurrence.title,
        "description": occurrence.description,
        "status": occurrence.status,
        "priority": occurrence.priority,
        "responsible": occurrence.responsible,
        "corrective_action": occurrence.corrective_action,
        "due_date": occurrence.due_date.isoformat() if occurrence.due_date else None,
        "closed_at": occurrence.closed_at.isoformat() if occurrence.closed_at else None,
        "closed_by": occurrence.closed_by,
        "created_by": occurrence.created_by,
        "created_at": occurrence.created_at.isoformat() if occurrence.created_at else None,
        "updated_at": occurrence.updated_at.isoformat() if occurrence.updated_at else None,
    }
