import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.catalog import service
from app.db.session import get_db

logger = logging.getLogger("eagl.catalog")

router = APIRouter(tags=["Catalog"])


@router.get("/catalog/response-types")
def get_response_types(db: Session = Depends(get_db)):
    items = service.list_response_types(db)
    return {"items": [service.serialize_response_type(item) for item in items]}


@router.post("/catalog/response-types", status_code=status.HTTP_201_CREATED)
def create_response_type(payload: service.ResponseTypeIn, db: Session = Depends(get_db)):
    item = service.create_response_type(db, payload)
    logger.info("response type created id=%s options=%s", item.id, len(item.options))
    return {"item": service.serialize_response_type(item)}


@router.get("/catalog/standards")
def get_standards(db: Session = Depends(get_db)):
    items = service.list_standards(db)
    return {"items": [service.serialize_standard(item) for item in items]}


@router.get("/catalog/standards/{standard_id}")
def get_standard(standard_id: str, db: Session = Depends(get_db)):
    item = service.get_standard(db, standard_id)
    return {"item": service.serialize_standard(item, include_items=True)}


@router.post("/catalog/standards", status_code=status.HTTP_201_CREATED)
def create_standard(payload: service.StandardIn, db: Session = Depends(get_db)):
    item = service.create_standard(db, payload)
    logger.info("standard created id=%s items=%s", item.id, len(item.items))
    return {"item": service.serialize_standard(item, include_items=True)}
