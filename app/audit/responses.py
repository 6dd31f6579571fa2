import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.audit import occurrences
from app.audit.schemas import OccurrenceCreate, ResponseSave
from app.audit.service import ensure_not_cancelled
from app.core.errors import AuditEngineError, ConcurrencyConflictError, NotFoundError, ValidationError
from app.db import models


logger = logging.getLogger("eagl.audit.responses")

DEFAULT_TRIGGERED_TYPE = "NC_minor"


def _get_item_or_404(db: Session, session_item_id: str) -> models.SessionItem:
    item = db.query(models.SessionItem).filter(models.SessionItem.id == session_item_id).first()
    if not item:
        raise NotFoundError("Item da sessao", session_item_id)
    return item


def _get_option(db: Session, item: models.SessionItem, option_id: Optional[str]) -> Optional[models.ResponseOption]:
    if not option_id:
        return None
    option = db.query(models.ResponseOption).filter(models.ResponseOption.id == option_id).first()
    if not option:
        raise NotFoundError("Opcao de resposta", option_id)
    if item.response_type_id and option.response_type_id != item.response_type_id:
        raise ValidationError(
            "Opcao nao pertence ao tipo de resposta do item",
            field="response_option_id",
            value=option_id,
        )
    return option


def _apply(response: models.AuditResponse, payload: ResponseSave, actor_id: Optional[str]) -> None:
    response.response_option_id = payload.response_option_id
    response.justification = payload.justification
    response.strengths = payload.strengths
    response.weaknesses = payload.weaknesses
    response.observations = payload.observations
    response.attachments = list(payload.attachments or [])
    response.responded_by = actor_id
    response.responded_at = datetime.utcnow()


def _find_response(db: Session, session_item_id: str) -> Optional[models.AuditResponse]:
    return (
        db.query(models.AuditResponse)
        .filter(models.AuditResponse.session_item_id == session_item_id)
        .first()
    )


def _upsert(db: Session, item: models.SessionItem, payload: ResponseSave, actor_id: Optional[str]) -> models.AuditResponse:
    response = _find_response(db, item.id)
    created = response is None
    if created:
        response = models.AuditResponse(id=str(uuid.uuid4()), session_item_id=item.id)
        db.add(response)
    _apply(response, payload, actor_id)
    try:
        db.flush()
    except IntegrityError:
        # Another auditor inserted the row first; the unique key decides, the later save wins.
        db.rollback()
        response = _find_response(db, item.id)
        if response is None:
            raise ConcurrencyConflictError(
                "Conflito ao salvar resposta, tente novamente",
                details={"session_item_id": item.id},
            )
        _apply(response, payload, actor_id)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise ConcurrencyConflictError(
                "Conflito ao salvar resposta, tente novamente",
                details={"session_item_id": item.id},
            ) from exc
        created = False
    logger.info(
        "response saved id=%s item=%s option=%s created=%s",
        response.id,
        item.id,
        response.response_option_id,
        created,
    )
    return response


def _raise_triggered_occurrence(
    db: Session,
    item: models.SessionItem,
    response: models.AuditResponse,
    option: models.ResponseOption,
    actor_id: Optional[str],
) -> Optional[models.AuditOccurrence]:
    existing = (
        db.query(models.AuditOccurrence)
        .filter(
            models.AuditOccurrence.response_id == response.id,
            models.AuditOccurrence.status != "Cancelled",
        )
        .first()
    )
    if existing:
        return None
    occurrence_type = option.occurrence_type or DEFAULT_TRIGGERED_TYPE
    snapshot = item.item_snapshot or {}
    title = " - ".join(part for part in [snapshot.get("code"), item.title] if part) or option.label
    description = (response.justification or "").strip() or (
        f"Resposta '{option.label}' registrada para o item '{item.title}'"
    )
    return occurrences.create_occurrence(
        db,
        item.session.audit_id,
        OccurrenceCreate(
            occurrence_type=occurrence_type,
            title=title,
            description=description,
            priority="high" if occurrence_type == "NC_major" else "medium",
            session_id=item.session_id,
            session_item_id=item.id,
            response_id=response.id,
        ),
        actor_id=actor_id,
        commit=False,
    )


def save_response(
    db: Session,
    session_item_id: str,
    payload: ResponseSave,
    actor_id: Optional[str],
) -> models.AuditResponse:
    """Record the answer to one checklist item.

    Re-saving overwrites the single response of the item in place. The response
    and the occurrence its option may raise commit together. Scores are not
    recalculated here; that is an explicit, separate command.
    """
    item = _get_item_or_404(db, session_item_id)
    ensure_not_cancelled(item.session.audit)
    option = _get_option(db, item, payload.response_option_id)

    response = _upsert(db, item, payload, actor_id)
    try:
        if option is not None and option.triggers_occurrence:
            _raise_triggered_occurrence(db, item, response, option, actor_id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError(
            "Conflito ao salvar resposta, tente novamente",
            details={"session_item_id": session_item_id},
        ) from exc
    except AuditEngineError:
        db.rollback()
        raise
    db.refresh(response)
    return response


def serialize_response(response: models.AuditResponse) -> dict:
    return {
        "id": response.id,
        "session_item_id": response.session_item_id,
        "response_option_id": response.response_option_id,
        "justification": response.justification,
        "strengths": response.strengths,
        "weaknesses": response.weaknesses,
        "observations": response.observations,
        "attachments": response.attachments or [],
        "responded_by": response.responded_by,
        "responded_at": response.responded_at.isoformat() if response.responded_at else None,
    }
