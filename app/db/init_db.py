import logging
import uuid

from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from app.db import models


logger = logging.getLogger("eagl.audit")

DEFAULT_RESPONSE_TYPE = "Conformidade"
DEFAULT_OPTIONS = [
    {"label": "Conforme", "weight": 1.0, "conformity": "conforming", "color": "#16a34a"},
    {"label": "Parcial", "weight": 0.5, "conformity": "partial", "color": "#ca8a04"},
    {
        "label": "Nao Conforme",
        "weight": 0.0,
        "conformity": "non_conforming",
        "triggers_occurrence": True,
        "occurrence_type": "NC_minor",
        "color": "#dc2626",
    },
    {"label": "N/A", "weight": None, "conformity": "na", "color": "#6b7280"},
]


def ensure_missing_columns(engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer
    existing_tables = set(inspector.get_table_names())
    for table_name, table in models.Base.metadata.tables.items():
        if table_name not in existing_tables:
            continue
        existing_columns = {col["name"] for col in inspector.get_columns(table_name)}
        for column in table.columns:
            if column.name in existing_columns:
                continue
            col_type = column.type.compile(dialect=engine.dialect)
            with engine.begin() as connection:
                connection.execute(
                    text(
                        f"ALTER TABLE {preparer.quote(table_name)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {col_type}"
                    )
                )
            logger.info("column added table=%s column=%s", table_name, column.name)


def seed_default_catalog(db: Session) -> models.ResponseType:
    existing = db.query(models.ResponseType).filter(models.ResponseType.name == DEFAULT_RESPONSE_TYPE).first()
    if existing:
        return existing
    response_type = models.ResponseType(
        id=str(uuid.uuid4()),
        name=DEFAULT_RESPONSE_TYPE,
        description="Conforme / Parcial / Nao Conforme / N/A",
    )
    for index, option in enumerate(DEFAULT_OPTIONS):
        response_type.options.append(
            models.ResponseOption(
                id=str(uuid.uuid4()),
                label=option["label"],
                weight=option["weight"],
                conformity=option["conformity"],
                triggers_occurrence=option.get("triggers_occurrence", False),
                occurrence_type=option.get("occurrence_type"),
                color=option["color"],
                display_order=index,
            )
        )
    db.add(response_type)
    db.commit()
    db.refresh(response_type)
    logger.info("default response type seeded id=%s", response_type.id)
    return response_type
