import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.audit import occurrences, reports, responses, scoring, service
from app.audit.schemas import (
    AuditCreate,
    AuditStatusUpdate,
    OccurrenceClose,
    OccurrenceCreate,
    OccurrenceUpdate,
    ResponseSave,
    SessionCreate,
    SessionItemsAssign,
    SessionStatusUpdate,
)
from app.catalog.service import serialize_standard
from app.core.errors import NotFoundError
from app.core.security import get_actor_id
from app.db.session import get_db


logger = logging.getLogger("eagl.audit")
router = APIRouter(tags=["Audits"])


@router.get("/audits")
def list_audits(db: Session = Depends(get_db)):
    return {"items": [service.serialize_audit(item) for item in service.list_audits(db)]}


@router.post("/audits", status_code=status.HTTP_201_CREATED)
def create_audit(payload: AuditCreate, db: Session = Depends(get_db)):
    audit = service.create_audit(db, payload)
    return {"item": service.serialize_audit(audit)}


@router.get("/audits/{audit_id}")
def get_audit(audit_id: str, db: Session = Depends(get_db)):
    return {"item": service.serialize_audit(service.get_audit_or_404(db, audit_id))}


@router.patch("/audits/{audit_id}/status")
def change_audit_status(audit_id: str, payload: AuditStatusUpdate, db: Session = Depends(get_db)):
    audit = service.change_audit_status(db, audit_id, payload.status)
    return {"item": service.serialize_audit(audit)}


@router.delete("/audits/{audit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_audit(audit_id: str, db: Session = Depends(get_db)):
    service.delete_audit(db, audit_id)
    return None


@router.post("/audits/{audit_id}/standards/{standard_id}", status_code=status.HTTP_201_CREATED)
def link_standard(audit_id: str, standard_id: str, db: Session = Depends(get_db)):
    link = service.link_standard(db, audit_id, standard_id)
    return {"item": serialize_standard(link.standard)}


@router.get("/audits/{audit_id}/sessions")
def list_sessions(audit_id: str, db: Session = Depends(get_db)):
    return {"items": [service.serialize_session(item) for item in service.list_sessions(db, audit_id)]}


@router.post("/audits/{audit_id}/sessions", status_code=status.HTTP_201_CREATED)
def create_session(audit_id: str, payload: SessionCreate, db: Session = Depends(get_db)):
    session = service.create_session(db, audit_id, payload)
    return {"item": service.serialize_session(session)}


@router.patch("/audits/{audit_id}/sessions/{session_id}/status")
def change_session_status(
    audit_id: str,
    session_id: str,
    payload: SessionStatusUpdate,
    db: Session = Depends(get_db),
):
    session = service.change_session_status(db, audit_id, session_id, payload.status)
    return {"item": service.serialize_session(session)}


@router.get("/audits/{audit_id}/sessions/{session_id}/items")
def list_session_items(audit_id: str, session_id: str, db: Session = Depends(get_db)):
    items = service.list_session_items(db, audit_id, session_id)
    return {"items": [service.serialize_session_item(item) for item in items]}


@router.post("/audits/{audit_id}/sessions/{session_id}/items", status_code=status.HTTP_201_CREATED)
def assign_session_items(
    audit_id: str,
    session_id: str,
    payload: SessionItemsAssign,
    db: Session = Depends(get_db),
):
    items = service.assign_items(
        db,
        audit_id,
        session_id,
        standard_item_ids=payload.standard_item_ids,
        snapshots=payload.snapshots,
    )
    return {"items": [service.serialize_session_item(item) for item in items]}


@router.post("/audits/{audit_id}/sessions/{session_id}/items/{item_id}/response")
def save_response(
    audit_id: str,
    session_id: str,
    item_id: str,
    payload: ResponseSave,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    session = service.get_session_or_404(db, audit_id, session_id)
    if not any(item.id == item_id for item in session.items):
        raise NotFoundError("Item da sessao", item_id)
    response = responses.save_response(db, item_id, payload, actor_id)
    return {"item": responses.serialize_response(response)}


@router.get("/audits/{audit_id}/occurrences")
def list_occurrences(
    audit_id: str,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    occurrence_type: Optional[str] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
):
    items = occurrences.list_occurrences(db, audit_id, status_filter, occurrence_type)
    return {
        "items": [occurrences.serialize_occurrence(item) for item in items],
        "summary": occurrences.summarize(items),
    }


@router.post("/audits/{audit_id}/occurrences", status_code=status.HTTP_201_CREATED)
def create_occurrence(
    audit_id: str,
    payload: OccurrenceCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    item = occurrences.create_occurrence(db, audit_id, payload, actor_id=actor_id)
    return {"item": occurrences.serialize_occurrence(item)}


@router.patch("/occurrences/{occurrence_id}")
def update_occurrence(occurrence_id: str, payload: OccurrenceUpdate, db: Session = Depends(get_db)):
    item = occurrences.update_occurrence(db, occurrence_id, payload)
    return {"item": occurrences.serialize_occurrence(item)}


@router.patch("/occurrences/{occurrence_id}/close")
def close_occurrence(
    occurrence_id: str,
    payload: Optional[OccurrenceClose] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    closed_by = (payload.closed_by if payload else None) or actor_id
    item = occurrences.close_occurrence(db, occurrence_id, closed_by)
    return {"item": occurrences.serialize_occurrence(item)}


@router.patch("/occurrences/{occurrence_id}/cancel")
def cancel_occurrence(occurrence_id: str, db: Session = Depends(get_db)):
    item = occurrences.cancel_occurrence(db, occurrence_id)
    return {"item": occurrences.serialize_occurrence(item)}


@router.patch("/occurrences/{occurrence_id}/reopen")
def reopen_occurrence(
    occurrence_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    item = occurrences.reopen_occurrence(db, occurrence_id, actor_id)
    return {"item": occurrences.serialize_occurrence(item)}


@router.delete("/occurrences/{occurrence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_occurrence(occurrence_id: str, db: Session = Depends(get_db)):
    occurrences.delete_occurrence(db, occurrence_id)
    return None


@router.get("/audits/{audit_id}/scoring-config")
def get_scoring_config(audit_id: str, db: Session = Depends(get_db)):
    config = scoring.get_scoring_config(db, audit_id)
    return {"item": config.model_dump(mode="json")}


@router.put("/audits/{audit_id}/scoring-config")
def put_scoring_config(audit_id: str, body: dict, db: Session = Depends(get_db)):
    config = scoring.save_scoring_config(db, audit_id, body)
    return {"item": config.model_dump(mode="json")}


@router.post("/audits/{audit_id}/score:recalculate")
def recalculate_score(audit_id: str, db: Session = Depends(get_db)):
    result = scoring.recalculate(db, audit_id)
    return {"item": result.model_dump(mode="json")}


@router.get("/audits/{audit_id}/score")
def get_score(audit_id: str, db: Session = Depends(get_db)):
    result = scoring.get_scoring_result(db, audit_id)
    return {"item": result.model_dump(mode="json") if result else None}


@router.get("/audits/{audit_id}/report")
def get_report(
    audit_id: str,
    recalculate: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    report = reports.build_report(db, audit_id, recalculate=recalculate)
    return report.model_dump(mode="json")
