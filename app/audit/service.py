import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.audit.schemas import AuditCreate, ItemSnapshotIn, SessionCreate
from app.core.errors import ConcurrencyConflictError, InvalidStateError, NotFoundError, ValidationError
from app.db import models


logger = logging.getLogger("eagl.audit")

AUDIT_STATUS_RANK = {"planned": 0, "in_progress": 1, "completed": 2}
SESSION_STATUS_RANK = {"pending": 0, "in_progress": 1, "completed": 2}
TERMINAL_AUDIT_STATUSES = {"completed", "cancelled"}


def get_audit_or_404(db: Session, audit_id: str) -> models.Audit:
    audit = db.query(models.Audit).filter(models.Audit.id == audit_id).first()
    if not audit:
        raise NotFoundError("Auditoria", audit_id)
    return audit


def get_session_or_404(db: Session, audit_id: str, session_id: str) -> models.AuditSession:
    session = (
        db.query(models.AuditSession)
        .filter(models.AuditSession.id == session_id, models.AuditSession.audit_id == audit_id)
        .first()
    )
    if not session:
        raise NotFoundError("Sessao", session_id)
    return session


def ensure_not_cancelled(audit: models.Audit) -> None:
    if audit.status == "cancelled":
        raise InvalidStateError("Auditoria cancelada nao aceita alteracoes", current_state=audit.status)


def list_audits(db: Session) -> list[models.Audit]:
    return db.query(models.Audit).order_by(models.Audit.created_at.desc()).all()


def create_audit(db: Session, payload: AuditCreate) -> models.Audit:
    if not payload.title.strip():
        raise ValidationError("Titulo obrigatorio", field="title")
    audit = models.Audit(
        id=str(uuid.uuid4()),
        title=payload.title.strip(),
        description=payload.description,
        audit_type=payload.audit_type,
        scope=payload.scope,
        lead_auditor=payload.lead_auditor,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status="planned",
    )
    db.add(audit)
    db.add(models.OccurrenceSequence(audit_id=audit.id, last_value=0))
    db.commit()
    db.refresh(audit)
    logger.info("audit created id=%s", audit.id)
    return audit


def change_audit_status(db: Session, audit_id: str, new_status: str) -> models.Audit:
    audit = get_audit_or_404(db, audit_id)
    current = audit.status
    if new_status not in AUDIT_STATUS_RANK and new_status != "cancelled":
        raise ValidationError("Status de auditoria invalido", field="status", value=new_status)
    if current == new_status:
        return audit
    if current in TERMINAL_AUDIT_STATUSES:
        raise InvalidStateError(f"Auditoria {current} nao pode mudar de status", current_state=current)
    if new_status != "cancelled" and AUDIT_STATUS_RANK[new_status] < AUDIT_STATUS_RANK[current]:
        raise InvalidStateError(
            f"Transicao de {current} para {new_status} nao permitida", current_state=current
        )
    audit.status = new_status
    db.commit()
    db.refresh(audit)
    logger.info("audit status changed id=%s from=%s to=%s", audit.id, current, new_status)
    return audit


def delete_audit(db: Session, audit_id: str) -> None:
    audit = get_audit_or_404(db, audit_id)
    db.delete(audit)
    db.commit()
    logger.info("audit deleted id=%s", audit_id)


def list_sessions(db: Session, audit_id: str) -> list[models.AuditSession]:
    get_audit_or_404(db, audit_id)
    return (
        db.query(models.AuditSession)
        .filter(models.AuditSession.audit_id == audit_id)
        .order_by(models.AuditSession.display_order.asc())
        .all()
    )


def create_session(db: Session, audit_id: str, payload: SessionCreate) -> models.AuditSession:
    audit = get_audit_or_404(db, audit_id)
    ensure_not_cancelled(audit)
    display_order = payload.display_order
    if display_order is None:
        current_max = (
            db.query(func.max(models.AuditSession.display_order))
            .filter(models.AuditSession.audit_id == audit_id)
            .scalar()
        )
        display_order = 0 if current_max is None else current_max + 1
    session = models.AuditSession(
        id=str(uuid.uuid4()),
        audit_id=audit_id,
        name=payload.name.strip(),
        description=payload.description,
        session_date=payload.session_date,
        location=payload.location,
        display_order=display_order,
        status="pending",
    )
    db.add(session)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError(
            "Ja existe uma sessao com esta ordem na auditoria",
            details={"display_order": display_order},
        ) from exc
    db.refresh(session)
    return session


def change_session_status(db: Session, audit_id: str, session_id: str, new_status: str) -> models.AuditSession:
    audit = get_audit_or_404(db, audit_id)
    ensure_not_cancelled(audit)
    session = get_session_or_404(db, audit_id, session_id)
    if new_status not in SESSION_STATUS_RANK:
        raise ValidationError("Status de sessao invalido", field="status", value=new_status)
    if SESSION_STATUS_RANK[new_status] < SESSION_STATUS_RANK[session.status]:
        raise InvalidStateError(
            f"Transicao de {session.status} para {new_status} nao permitida", current_state=session.status
        )
    session.status = new_status
    db.commit()
    db.refresh(session)
    return session


def link_standard(db: Session, audit_id: str, standard_id: str) -> models.AuditStandardLink:
    get_audit_or_404(db, audit_id)
    standard = db.query(models.Standard).filter(models.Standard.id == standard_id).first()
    if not standard:
        raise NotFoundError("Norma", standard_id)
    link = (
        db.query(models.AuditStandardLink)
        .filter(
            models.AuditStandardLink.audit_id == audit_id,
            models.AuditStandardLink.standard_id == standard_id,
        )
        .first()
    )
    if link:
        return link
    link = models.AuditStandardLink(id=str(uuid.uuid4()), audit_id=audit_id, standard_id=standard_id)
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def _snapshot_from_standard_item(item: models.StandardItem) -> dict:
    return {
        "code": item.code,
        "title": item.title,
        "description": item.description,
        "guidance": item.guidance,
        "weight": item.weight,
    }


def _snapshot_from_payload(item: ItemSnapshotIn) -> dict:
    return {
        "code": item.code,
        "title": item.title,
        "description": item.description,
        "guidance": item.guidance,
        "weight": item.weight,
    }


def assign_items(
    db: Session,
    audit_id: str,
    session_id: str,
    standard_item_ids: Optional[list[str]] = None,
    snapshots: Optional[list[ItemSnapshotIn]] = None,
) -> list[models.SessionItem]:
    """Copy checklist items into a session.

    Items are frozen at assignment time: later edits to the master standard
    never reach an existing session.
    """
    audit = get_audit_or_404(db, audit_id)
    ensure_not_cancelled(audit)
    session = get_session_or_404(db, audit_id, session_id)

    next_order = (
        db.query(func.max(models.SessionItem.display_order))
        .filter(models.SessionItem.session_id == session.id)
        .scalar()
    )
    next_order = 0 if next_order is None else next_order + 1

    created: list[models.SessionItem] = []
    linked_standards: set[str] = set()

    for standard_item_id in standard_item_ids or []:
        master = db.query(models.StandardItem).filter(models.StandardItem.id == standard_item_id).first()
        if not master:
            raise NotFoundError("Item da norma", standard_item_id)
        created.append(
            models.SessionItem(
                id=str(uuid.uuid4()),
                session_id=session.id,
                standard_item_id=master.id,
                response_type_id=master.standard.response_type_id,
                item_snapshot=_snapshot_from_standard_item(master),
                display_order=next_order,
            )
        )
        linked_standards.add(master.standard_id)
        next_order += 1

    for snapshot in snapshots or []:
        created.append(
            models.SessionItem(
                id=str(uuid.uuid4()),
                session_id=session.id,
                standard_item_id=snapshot.standard_item_id,
                response_type_id=snapshot.response_type_id,
                item_snapshot=_snapshot_from_payload(snapshot),
                display_order=next_order,
            )
        )
        next_order += 1

    db.add_all(created)
    for standard_id in linked_standards:
        exists = (
            db.query(models.AuditStandardLink)
            .filter(
                models.AuditStandardLink.audit_id == audit_id,
                models.AuditStandardLink.standard_id == standard_id,
            )
            .first()
        )
        if not exists:
            db.add(models.AuditStandardLink(id=str(uuid.uuid4()), audit_id=audit_id, standard_id=standard_id))
    db.commit()
    logger.info("session items assigned session=%s count=%s", session.id, len(created))
    return created


def list_session_items(db: Session, audit_id: str, session_id: str) -> list[models.SessionItem]:
    session = get_session_or_404(db, audit_id, session_id)
    return (
        db.query(models.SessionItem)
        .filter(models.SessionItem.session_id == session.id)
        .order_by(models.SessionItem.display_order.asc())
        .all()
    )


def list_audit_items(db: Session, audit_id: str) -> list[models.SessionItem]:
    return (
        db.query(models.SessionItem)
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(models.AuditSession.audit_id == audit_id)
        .order_by(models.AuditSession.display_order.asc(), models.SessionItem.display_order.asc())
        .all()
    )


def list_audit_responses(db: Session, audit_id: str) -> list[models.AuditResponse]:
    return (
        db.query(models.AuditResponse)
        .join(models.SessionItem, models.SessionItem.id == models.AuditResponse.session_item_id)
        .join(models.AuditSession, models.AuditSession.id == models.SessionItem.session_id)
        .filter(models.AuditSession.audit_id == audit_id)
        .all()
    )


def serialize_audit(audit: models.Audit) -> dict:
    return {
        "id": audit.id,
        "title": audit.title,
        "description": audit.description,
        "audit_type": audit.audit_type,
        "scope": audit.scope,
        "lead_auditor": audit.lead_auditor,
        "status": audit.status,
        "start_date": audit.start_date.isoformat() if audit.start_date else None,
        "end_date": audit.end_date.isoformat() if audit.end_date else None,
        "created_at": audit.created_at.isoformat() if audit.created_at else None,
        "updated_at": audit.updated_at.isoformat() if audit.updated_at else None,
    }


def serialize_session(session: models.AuditSession) -> dict:
    return {
        "id": session.id,
        "audit_id": session.audit_id,
        "name": session.name,
        "description": session.description,
        "session_date": session.session_date.isoformat() if session.session_date else None,
        "location": session.location,
        "display_order": session.display_order,
        "status": session.status,
    }


def serialize_session_item(item: models.SessionItem) -> dict:
    return {
        "id": item.id,
        "session_id": item.session_id,
        "standard_item_id": item.standard_item_id,
        "response_type_id": item.response_type_id,
        "item_snapshot": item.item_snapshot,
        "display_order": item.display_order,
    }
