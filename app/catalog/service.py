import uuid
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from app.db import models


CONFORMITY_TAGS = {"conforming", "non_conforming", "partial", "na"}
OCCURRENCE_TYPES = {"NC_major", "NC_minor", "Improvement_Opportunity", "Observation"}


class ResponseOptionIn(BaseModel):
    label: str = Field(..., min_length=1)
    weight: Optional[float] = Field(default=None, ge=0)
    conformity: Optional[str] = None
    triggers_occurrence: bool = False
    occurrence_type: Optional[str] = None
    color: Optional[str] = None


class ResponseTypeIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    options: list[ResponseOptionIn] = Field(..., min_length=1)


class StandardItemIn(BaseModel):
    code: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    guidance: Optional[str] = None
    weight: float = Field(default=1.0, ge=0)


class StandardIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    version: Optional[str] = None
    description: Optional[str] = None
    response_type_id: Optional[str] = None
    calculation_method: str = "weight_based"
    items: list[StandardItemIn] = Field(default_factory=list)


def list_response_types(db: Session) -> list[models.ResponseType]:
    return db.query(models.ResponseType).order_by(models.ResponseType.name.asc()).all()


def create_response_type(db: Session, payload: ResponseTypeIn) -> models.ResponseType:
    response_type = models.ResponseType(
        id=str(uuid.uuid4()),
        name=payload.name.strip(),
        description=payload.description,
    )
    for index, option in enumerate(payload.options):
        if option.conformity and option.conformity not in CONFORMITY_TAGS:
            raise ValidationError("Classificacao de conformidade invalida", field="conformity", value=option.conformity)
        if option.occurrence_type and option.occurrence_type not in OCCURRENCE_TYPES:
            raise ValidationError("Tipo de ocorrencia invalido", field="occurrence_type", value=option.occurrence_type)
        response_type.options.append(
            models.ResponseOption(
                id=str(uuid.uuid4()),
                label=option.label.strip(),
                weight=option.weight,
                conformity=option.conformity,
                triggers_occurrence=option.triggers_occurrence,
                occurrence_type=option.occurrence_type,
                color=option.color,
                display_order=index,
            )
        )
    db.add(response_type)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError("Tipo de resposta ja cadastrado", details={"name": payload.name}) from exc
    db.refresh(response_type)
    return response_type


def list_standards(db: Session) -> list[models.Standard]:
    return db.query(models.Standard).order_by(models.Standard.code.asc()).all()


def get_standard(db: Session, standard_id: str) -> models.Standard:
    standard = db.query(models.Standard).filter(models.Standard.id == standard_id).first()
    if not standard:
        raise NotFoundError("Norma", standard_id)
    return standard


def create_standard(db: Session, payload: StandardIn) -> models.Standard:
    if payload.response_type_id:
        exists = db.query(models.ResponseType).filter(models.ResponseType.id == payload.response_type_id).first()
        if not exists:
            raise NotFoundError("Tipo de resposta", payload.response_type_id)
    standard = models.Standard(
        id=str(uuid.uuid4()),
        code=payload.code.strip(),
        name=payload.name.strip(),
        version=payload.version,
        description=payload.description,
        response_type_id=payload.response_type_id,
        calculation_method=payload.calculation_method,
    )
    for index, item in enumerate(payload.items):
        standard.items.append(
            models.StandardItem(
                id=str(uuid.uuid4()),
                code=item.code,
                title=item.title.strip(),
                description=item.description,
                guidance=item.guidance,
                weight=item.weight,
                display_order=index,
            )
        )
    db.add(standard)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError("Codigo de norma ja cadastrado", details={"code": payload.code}) from exc
    db.refresh(standard)
    return standard


def serialize_response_type(response_type: models.ResponseType) -> dict:
    return {
        "id": response_type.id,
        "name": response_type.name,
        "description": response_type.description,
        "options": [
            {
                "id": option.id,
                "label": option.label,
                "weight": option.weight,
                "conformity": option.conformity,
                "triggers_occurrence": option.triggers_occurrence,
                "occurrence_type": option.occurrence_type,
                "color": option.color,
                "display_order": option.display_order,
            }
            for option in response_type.options
        ],
    }


def serialize_standard(standard: models.Standard, include_items: bool = False) -> dict:
    data = {
        "id": standard.id,
        "code": standard.code,
        "name": standard.name,
        "version": standard.version,
        "description": standard.description,
        "response_type_id": standard.response_type_id,
        "calculation_method": standard.calculation_method,
    }
    if include_items:
        data["items"] = [
            {
                "id": item.id,
                "code": item.code,
                "title": item.title,
                "description": item.description,
                "guidance": item.guidance,
                "weight": item.weight,
                "display_order": item.display_order,
            }
            for item in standard.items
        ]
    return data
