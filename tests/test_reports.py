from datetime import date

import pytest

from app.audit import occurrences, reports, responses, scoring, service
from app.audit.schemas import AuditCreate, ItemSnapshotIn, OccurrenceCreate, ResponseSave, SessionCreate
from app.core.errors import NotFoundError, ValidationError
from app.db import models
from app.db.init_db import seed_default_catalog


def _seed(db):
    response_type = seed_default_catalog(db)
    options = {option.label: option for option in response_type.options}
    audit = service.create_audit(db, AuditCreate(title="Auditoria de seguranca"))
    first = service.create_session(db, audit.id, SessionCreate(name="Producao"))
    second = service.create_session(db, audit.id, SessionCreate(name="Escritorio"))
    first_items = service.assign_items(
        db,
        audit.id,
        first.id,
        snapshots=[
            ItemSnapshotIn(title=f"Item producao {idx}", response_type_id=response_type.id) for idx in range(4)
        ],
    )
    second_items = service.assign_items(
        db,
        audit.id,
        second.id,
        snapshots=[ItemSnapshotIn(title="Item escritorio", response_type_id=response_type.id)],
    )
    return audit, (first, second), first_items + second_items, options


def _answer(db, item, option):
    return responses.save_response(db, item.id, ResponseSave(response_option_id=option.id), actor_id="auditor")


def test_report_without_score(db_session):
    audit, _, _, _ = _seed(db_session)

    report = reports.build_report(db_session, audit.id)

    assert report.scoring is None
    assert report.scoring_source == "none"
    assert report.scoring_stale is False
    assert report.total_items == 5
    assert report.responded_items == 0
    assert report.overall_progress == 0


def test_session_progress(db_session):
    audit, (first, second), items, options = _seed(db_session)
    _answer(db_session, items[0], options["Conforme"])
    _answer(db_session, items[1], options["Parcial"])
    responses.save_response(db_session, items[2].id, ResponseSave(observations="Sem acesso"), actor_id=None)

    report = reports.build_report(db_session, audit.id)

    by_id = {session.id: session for session in report.sessions}
    assert [session.name for session in report.sessions] == ["Producao", "Escritorio"]
    assert by_id[first.id].total_items == 4
    assert by_id[first.id].responded_items == 2
    assert by_id[first.id].progress == 50.0
    assert by_id[second.id].progress == 0.0
    assert report.overall_progress == 40.0


def test_recalculate_stores_single_result(db_session):
    audit, _, items, options = _seed(db_session)
    for item in items[:4]:
        _answer(db_session, item, options["Conforme"])

    scoring.recalculate(db_session, audit.id)
    _answer(db_session, items[4], options["Conforme"])
    result = scoring.recalculate(db_session, audit.id)

    rows = db_session.query(models.ScoringResult).filter(models.ScoringResult.audit_id == audit.id).all()
    assert len(rows) == 1
    assert rows[0].percentage == 100.0
    assert result.responded_items == 5
    assert scoring.get_scoring_result(db_session, audit.id).percentage == 100.0


def test_report_uses_stored_score_and_flags_stale(db_session):
    audit, _, items, options = _seed(db_session)
    _answer(db_session, items[0], options["Conforme"])
    scoring.recalculate(db_session, audit.id)

    fresh = reports.build_report(db_session, audit.id)
    assert fresh.scoring_source == "stored"
    assert fresh.scoring_stale is False
    assert fresh.scoring.responded_items == 1

    _answer(db_session, items[1], options["Parcial"])
    stale = reports.build_report(db_session, audit.id)

    assert stale.scoring_source == "stored"
    assert stale.scoring_stale is True
    assert stale.scoring.responded_items == 1


def test_live_report_does_not_persist(db_session):
    audit, _, items, options = _seed(db_session)
    _answer(db_session, items[0], options["Conforme"])
    _answer(db_session, items[1], options["Nao Conforme"])

    report = reports.build_report(db_session, audit.id, recalculate=True)

    assert report.scoring_source == "live"
    assert report.scoring.responded_items == 2
    assert report.scoring.percentage == 20.0
    assert db_session.query(models.ScoringResult).count() == 0


def test_report_lists_occurrences_with_summary(db_session):
    audit, _, items, options = _seed(db_session)
    _answer(db_session, items[0], options["Nao Conforme"])
    occurrences.create_occurrence(
        db_session,
        audit.id,
        OccurrenceCreate(
            occurrence_type="Improvement_Opportunity",
            title="Organizacao do estoque",
            description="Sugerido uso de etiquetas por cor",
            due_date=date(2026, 3, 1),
        ),
    )

    report = reports.build_report(db_session, audit.id, today=date(2026, 4, 1))

    assert [row["occurrence_code"] for row in report.occurrences] == ["OC-0001", "OC-0002"]
    assert report.occurrence_summary.total == 2
    assert report.occurrence_summary.overdue == 1
    assert report.occurrence_summary.by_type == {"NC_minor": 1, "Improvement_Opportunity": 1}


def test_scoring_config_roundtrip_and_penalties(db_session):
    audit, _, items, options = _seed(db_session)
    for item in items[:4]:
        _answer(db_session, item, options["Conforme"])
    _answer(db_session, items[4], options["Nao Conforme"])

    scoring.save_scoring_config(
        db_session,
        audit.id,
        {"scoring_method": "simple", "nc_minor_penalty": 5, "passing_score": 80},
    )
    config = scoring.get_scoring_config(db_session, audit.id)
    result = scoring.recalculate(db_session, audit.id)

    assert config.scoring_method == "simple"
    assert config.conditional_margin == 10
    assert result.nc_minor_count == 1
    assert result.percentage == 75.0
    assert result.status == "conditional"


def test_invalid_scoring_config_not_saved(db_session):
    audit, _, _, _ = _seed(db_session)

    with pytest.raises(ValidationError):
        scoring.save_scoring_config(db_session, audit.id, {"max_score": -1})

    assert db_session.query(models.ScoringConfig).count() == 0


def test_report_for_missing_audit(db_session):
    with pytest.raises(NotFoundError):
        reports.build_report(db_session, "missing")


def test_deleting_occurrence_marks_score_stale(db_session):
    audit, _, items, options = _seed(db_session)
    for item in items:
        _answer(db_session, item, options["Conforme"])
    scoring.save_scoring_config(db_session, audit.id, {"scoring_method": "simple", "nc_major_penalty": 50})
    major = occurrences.create_occurrence(
        db_session,
        audit.id,
        OccurrenceCreate(occurrence_type="NC_major", title="Painel sem aterramento", description="Risco eletrico"),
    )
    assert scoring.recalculate(db_session, audit.id).percentage == 50.0
    assert reports.build_report(db_session, audit.id).scoring_stale is False

    occurrences.delete_occurrence(db_session, major.id)
    report = reports.build_report(db_session, audit.id)

    assert report.scoring.percentage == 50.0
    assert report.scoring_stale is True
    assert reports.build_report(db_session, audit.id, recalculate=True).scoring.percentage == 100.0


def test_config_change_marks_score_stale(db_session):
    audit, _, items, options = _seed(db_session)
    for item in items:
        _answer(db_session, item, options["Conforme"])
    scoring.save_scoring_config(db_session, audit.id, {"scoring_method": "simple"})
    assert scoring.recalculate(db_session, audit.id).grade == "A"

    scoring.save_scoring_config(db_session, audit.id, {"scoring_method": "simple", "grade_bands": []})
    report = reports.build_report(db_session, audit.id)

    assert report.scoring.grade == "A"
    assert report.scoring_stale is True


def test_new_items_mark_score_stale(db_session):
    audit, (first, _), items, options = _seed(db_session)
    _answer(db_session, items[0], options["Conforme"])
    scoring.recalculate(db_session, audit.id)

    service.assign_items(db_session, audit.id, first.id, snapshots=[ItemSnapshotIn(title="Item extra")])

    assert reports.build_report(db_session, audit.id).scoring_stale is True
