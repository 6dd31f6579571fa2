import logging
import time
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.audit.schemas import ScoringConfigData, ScoringResultData
from app.audit.scoring_engine import (
    ItemInput,
    OccurrenceInput,
    OptionInput,
    ResponseInput,
    build_scoring_config,
    calculate_score,
)
from app.audit.service import get_audit_or_404, list_audit_items, list_audit_responses
from app.db import models


logger = logging.getLogger("eagl.audit.scoring")

CONFIG_FIELDS = (
    "scoring_method",
    "nc_major_penalty",
    "nc_minor_penalty",
    "observation_penalty",
    "opportunity_bonus",
    "include_na_in_total",
    "max_score",
    "passing_score",
    "conditional_margin",
    "grade_bands",
)


def _config_row(db: Session, audit_id: str) -> Optional[models.ScoringConfig]:
    return db.query(models.ScoringConfig).filter(models.ScoringConfig.audit_id == audit_id).first()


def get_scoring_config(db: Session, audit_id: str) -> ScoringConfigData:
    get_audit_or_404(db, audit_id)
    row = _config_row(db, audit_id)
    if not row:
        return build_scoring_config(None)
    raw = {field: getattr(row, field) for field in CONFIG_FIELDS if getattr(row, field) is not None}
    return build_scoring_config(raw)


def save_scoring_config(db: Session, audit_id: str, raw: dict) -> ScoringConfigData:
    get_audit_or_404(db, audit_id)
    config = build_scoring_config(raw)
    row = _config_row(db, audit_id)
    if not row:
        row = models.ScoringConfig(id=str(uuid.uuid4()), audit_id=audit_id)
        db.add(row)
    data = config.model_dump(mode="json")
    for field in CONFIG_FIELDS:
        setattr(row, field, data[field])
    db.commit()
    logger.info("scoring config saved audit=%s method=%s", audit_id, config.scoring_method)
    return config


def collect_inputs(
    db: Session, audit_id: str
) -> tuple[list[ItemInput], list[ResponseInput], list[OptionInput], list[OccurrenceInput]]:
    items = list_audit_items(db, audit_id)
    responses = list_audit_responses(db, audit_id)

    type_ids = {item.response_type_id for item in items if item.response_type_id}
    option_ids = {response.response_option_id for response in responses if response.response_option_id}
    chosen = (
        db.query(models.ResponseOption).filter(models.ResponseOption.id.in_(option_ids)).all()
        if option_ids
        else []
    )
    type_ids.update(option.response_type_id for option in chosen)
    options = (
        db.query(models.ResponseOption).filter(models.ResponseOption.response_type_id.in_(type_ids)).all()
        if type_ids
        else []
    )
    occurrence_rows = (
        db.query(models.AuditOccurrence).filter(models.AuditOccurrence.audit_id == audit_id).all()
    )
    return (
        [ItemInput(item_id=item.id, weight=item.weight, response_type_id=item.response_type_id) for item in items],
        [
            ResponseInput(session_item_id=response.session_item_id, option_id=response.response_option_id)
            for response in responses
        ],
        [
            OptionInput(
                option_id=option.id,
                response_type_id=option.response_type_id,
                weight=option.weight,
                conformity=option.conformity,
            )
            for option in options
        ],
        [
            OccurrenceInput(occurrence_type=occurrence.occurrence_type, status=occurrence.status)
            for occurrence in occurrence_rows
        ],
    )


def compute_live(db: Session, audit_id: str, calculated_at: Optional[datetime] = None) -> ScoringResultData:
    config = get_scoring_config(db, audit_id)
    items, responses, options, occurrence_inputs = collect_inputs(db, audit_id)
    return calculate_score(audit_id, items, responses, options, occurrence_inputs, config, calculated_at)


def recalculate(db: Session, audit_id: str) -> ScoringResultData:
    """Recompute and fully replace the stored score of an audit."""
    start = time.perf_counter()
    result = compute_live(db, audit_id)

    existing = db.query(models.ScoringResult).filter(models.ScoringResult.audit_id == audit_id).first()
    if existing:
        db.delete(existing)
        db.flush()
    db.add(models.ScoringResult(id=str(uuid.uuid4()), **result.model_dump()))
    db.commit()

    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.info(
        "scoring recalculated audit=%s method=%s percentage=%.2f status=%s duration_ms=%s",
        audit_id,
        result.scoring_method,
        result.percentage,
        result.status,
        duration_ms,
    )
    return result


def get_scoring_result(db: Session, audit_id: str) -> Optional[ScoringResultData]:
    get_audit_or_404(db, audit_id)
    row = db.query(models.ScoringResult).filter(models.ScoringResult.audit_id == audit_id).first()
    if not row:
        return None
    return ScoringResultData.model_validate(row)
