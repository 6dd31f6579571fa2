import pytest

from app.audit import occurrences, responses, service
from app.audit.schemas import AuditCreate, ItemSnapshotIn, ResponseSave, SessionCreate
from app.core.errors import ConcurrencyConflictError, InvalidStateError, NotFoundError, ValidationError
from app.db import models
from app.db.init_db import seed_default_catalog


def _options_by_label(response_type):
    return {option.label: option for option in response_type.options}


def _seed_audit(db, item_count=3):
    response_type = seed_default_catalog(db)
    audit = service.create_audit(db, AuditCreate(title="Auditoria interna 2026"))
    session = service.create_session(db, audit.id, SessionCreate(name="Almoxarifado"))
    items = service.assign_items(
        db,
        audit.id,
        session.id,
        snapshots=[
            ItemSnapshotIn(code=f"4.{idx}", title=f"Requisito {idx}", response_type_id=response_type.id)
            for idx in range(1, item_count + 1)
        ],
    )
    return audit, session, items, _options_by_label(response_type)


def test_save_twice_keeps_single_response(db_session):
    _, _, items, options = _seed_audit(db_session)
    item = items[0]

    responses.save_response(
        db_session,
        item.id,
        ResponseSave(response_option_id=options["Parcial"].id, justification="Primeira visita"),
        actor_id="auditor-1",
    )
    saved = responses.save_response(
        db_session,
        item.id,
        ResponseSave(response_option_id=options["Conforme"].id, justification="Evidencia apresentada"),
        actor_id="auditor-2",
    )

    rows = db_session.query(models.AuditResponse).filter(models.AuditResponse.session_item_id == item.id).all()
    assert len(rows) == 1
    assert rows[0].id == saved.id
    assert rows[0].response_option_id == options["Conforme"].id
    assert rows[0].justification == "Evidencia apresentada"
    assert rows[0].responded_by == "auditor-2"


def test_save_without_option_keeps_notes(db_session):
    _, _, items, _ = _seed_audit(db_session)

    saved = responses.save_response(
        db_session,
        items[1].id,
        ResponseSave(observations="Aguardando documento", attachments=["fotos/area-1.jpg"]),
        actor_id=None,
    )

    assert saved.response_option_id is None
    assert saved.attachments == ["fotos/area-1.jpg"]
    assert responses.serialize_response(saved)["observations"] == "Aguardando documento"


def test_save_does_not_touch_stored_score(db_session):
    _, _, items, options = _seed_audit(db_session)

    responses.save_response(db_session, items[0].id, ResponseSave(response_option_id=options["Conforme"].id), None)

    assert db_session.query(models.ScoringResult).count() == 0


def test_unknown_item_raises_not_found(db_session):
    _seed_audit(db_session)

    with pytest.raises(NotFoundError):
        responses.save_response(db_session, "missing-item", ResponseSave(), actor_id=None)


def test_unknown_option_raises_not_found(db_session):
    _, _, items, _ = _seed_audit(db_session)

    with pytest.raises(NotFoundError):
        responses.save_response(db_session, items[0].id, ResponseSave(response_option_id="missing"), None)


def test_option_from_other_response_type_rejected(db_session):
    _, _, items, _ = _seed_audit(db_session)
    other_type = models.ResponseType(id="type-sim-nao", name="Sim/Nao")
    other_type.options.append(models.ResponseOption(id="opt-sim", label="Sim", weight=1.0, display_order=0))
    db_session.add(other_type)
    db_session.commit()

    with pytest.raises(ValidationError):
        responses.save_response(db_session, items[0].id, ResponseSave(response_option_id="opt-sim"), None)


def test_cancelled_audit_rejects_responses(db_session):
    audit, _, items, options = _seed_audit(db_session)
    service.change_audit_status(db_session, audit.id, "cancelled")

    with pytest.raises(InvalidStateError):
        responses.save_response(db_session, items[0].id, ResponseSave(response_option_id=options["Conforme"].id), None)

    assert db_session.query(models.AuditResponse).count() == 0


def test_triggering_option_raises_occurrence_once(db_session):
    audit, session, items, options = _seed_audit(db_session)
    item = items[2]

    first = responses.save_response(
        db_session,
        item.id,
        ResponseSave(response_option_id=options["Nao Conforme"].id, justification="Extintor vencido"),
        actor_id="auditor-1",
    )
    responses.save_response(
        db_session,
        item.id,
        ResponseSave(response_option_id=options["Nao Conforme"].id, justification="Extintor vencido desde maio"),
        actor_id="auditor-1",
    )

    rows = db_session.query(models.AuditOccurrence).filter(models.AuditOccurrence.audit_id == audit.id).all()
    assert len(rows) == 1
    occurrence = rows[0]
    assert occurrence.occurrence_type == "NC_minor"
    assert occurrence.occurrence_number == 1
    assert occurrence.response_id == first.id
    assert occurrence.session_id == session.id
    assert occurrence.session_item_id == item.id
    assert occurrence.description == "Extintor vencido"
    assert occurrence.title == "4.3 - Requisito 3"
    assert occurrence.created_by == "auditor-1"


def test_failed_triggered_occurrence_discards_response(db_session, monkeypatch):
    audit, _, items, options = _seed_audit(db_session)

    def _conflict(db, audit_id):
        raise ConcurrencyConflictError("Sequencia de ocorrencias em conflito", details={"audit_id": audit_id})

    monkeypatch.setattr(occurrences, "_next_occurrence_number", _conflict)

    with pytest.raises(ConcurrencyConflictError):
        responses.save_response(
            db_session, items[0].id, ResponseSave(response_option_id=options["Nao Conforme"].id), actor_id=None
        )

    assert db_session.query(models.AuditResponse).count() == 0
    assert db_session.query(models.AuditOccurrence).filter(models.AuditOccurrence.audit_id == audit.id).count() == 0
