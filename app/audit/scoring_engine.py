from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from app.audit.schemas import ScoringConfigData, ScoringResultData
from app.core.errors import ValidationError


CONFORMITY_TAGS = ("conforming", "non_conforming", "partial", "na")
IGNORED_OCCURRENCE_STATUSES = {"Cancelled"}


@dataclass(frozen=True)
class ItemInput:
    item_id: str
    weight: float
    response_type_id: Optional[str] = None


@dataclass(frozen=True)
class ResponseInput:
    session_item_id: str
    option_id: Optional[str]


@dataclass(frozen=True)
class OptionInput:
    option_id: str
    response_type_id: Optional[str]
    weight: Optional[float]
    conformity: Optional[str] = None


@dataclass(frozen=True)
class OccurrenceInput:
    occurrence_type: str
    status: str


def build_scoring_config(raw: Optional[dict]) -> ScoringConfigData:
    """Validate a loosely shaped config once, at the engine boundary."""
    try:
        return ScoringConfigData.model_validate(raw or {})
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            f"Configuracao de pontuacao invalida: {first.get('msg', str(exc))}",
            field=field,
            value=first.get("input") if field else None,
        ) from exc


def _best_weights(options: list[OptionInput]) -> dict[Optional[str], float]:
    best: dict[Optional[str], float] = {}
    for option in options:
        if option.weight is None:
            continue
        current = best.get(option.response_type_id)
        if current is None or option.weight > current:
            best[option.response_type_id] = option.weight
    weights = [value for value in best.values()]
    best[None] = max(weights) if weights else 1.0
    return best


def classify(option: OptionInput, best_weight: float) -> str:
    if option.conformity in CONFORMITY_TAGS:
        return option.conformity
    if option.weight is None:
        return "na"
    if option.weight >= best_weight:
        return "conforming"
    if option.weight <= 0:
        return "non_conforming"
    return "partial"


def _effective_weight(option: OptionInput, classification: str, best_weight: float) -> float:
    if option.weight is not None:
        return option.weight
    if classification == "conforming":
        return best_weight
    return 0.0


def _pick_grade(config: ScoringConfigData, percentage: float) -> tuple[Optional[str], Optional[str]]:
    for band in sorted(config.grade_bands, key=lambda band: band.min_percentage, reverse=True):
        if band.min_percentage <= percentage:
            return band.label, band.color
    return None, None


def _pick_status(config: ScoringConfigData, percentage: float) -> str:
    scale = 100.0 / config.max_score
    passing = config.passing_score * scale
    margin = config.conditional_margin * scale
    if percentage >= passing:
        return "passed"
    if percentage >= passing - margin:
        return "conditional"
    return "failed"


def calculate_score(
    audit_id: str,
    items: list[ItemInput],
    responses: list[ResponseInput],
    options: list[OptionInput],
    occurrences: list[OccurrenceInput],
    config: ScoringConfigData,
    calculated_at: Optional[datetime] = None,
) -> ScoringResultData:
    """Score an audit; with ``include_na_in_total`` false, N/A items leave the denominator for every method."""
    options_by_id = {option.option_id: option for option in options}
    best_by_type = _best_weights(options)
    responses_by_item = {
        response.session_item_id: response for response in responses if response.option_id
    }

    counts = {tag: 0 for tag in CONFORMITY_TAGS}
    numerator = 0.0
    denominator = 0.0

    for item in items:
        response = responses_by_item.get(item.item_id)
        option = options_by_id.get(response.option_id) if response else None
        type_id = item.response_type_id or (option.response_type_id if option else None)
        best = best_by_type.get(type_id, best_by_type[None])

        if option is None:
            denominator += item.weight * best
            continue

        classification = classify(option, best)
        counts[classification] += 1
        if classification == "na":
            if config.include_na_in_total:
                denominator += item.weight * best
            continue
        denominator += item.weight * best
        numerator += item.weight * _effective_weight(option, classification, best)

    total_items = len(items)
    responded_items = sum(counts.values())
    eligible_items = total_items if config.include_na_in_total else total_items - counts["na"]

    if config.scoring_method == "weighted":
        total_score = numerator
        max_possible_score = denominator
        base_percentage = (numerator / denominator * 100) if denominator > 0 else 0.0
    else:
        total_score = float(counts["conforming"])
        max_possible_score = float(eligible_items)
        base_percentage = (counts["conforming"] / eligible_items * 100) if eligible_items > 0 else 0.0

    occurrence_counts = {
        "NC_major": 0,
        "NC_minor": 0,
        "Observation": 0,
        "Improvement_Opportunity": 0,
    }
    for occurrence in occurrences:
        if occurrence.status in IGNORED_OCCURRENCE_STATUSES:
            continue
        if occurrence.occurrence_type in occurrence_counts:
            occurrence_counts[occurrence.occurrence_type] += 1

    scale = 100.0 / config.max_score
    if responded_items == 0:
        base_percentage = 0.0
        penalty_points = 0.0
        bonus_points = 0.0
        percentage = 0.0
        grade, grade_color = None, None
        status = "failed"
    else:
        penalty_points = (
            occurrence_counts["NC_major"] * config.nc_major_penalty
            + occurrence_counts["NC_minor"] * config.nc_minor_penalty
            + occurrence_counts["Observation"] * config.observation_penalty
        ) * scale
        bonus_points = occurrence_counts["Improvement_Opportunity"] * config.opportunity_bonus * scale
        percentage = min(100.0, max(0.0, base_percentage - penalty_points + bonus_points))
        percentage = round(percentage, 2)
        grade, grade_color = _pick_grade(config, percentage)
        status = _pick_status(config, percentage)

    if config.scoring_method == "percentage":
        total_score = percentage
        max_possible_score = 100.0

    return ScoringResultData(
        audit_id=audit_id,
        scoring_method=config.scoring_method,
        total_score=round(total_score, 2),
        max_possible_score=round(max_possible_score, 2),
        base_percentage=round(base_percentage, 2),
        penalty_points=round(penalty_points, 2),
        bonus_points=round(bonus_points, 2),
        percentage=percentage,
        final_score=round(percentage * config.max_score / 100.0, 2),
        conforming_items=counts["conforming"],
        non_conforming_items=counts["non_conforming"],
        partial_items=counts["partial"],
        na_items=counts["na"],
        responded_items=responded_items,
        total_items=total_items,
        nc_major_count=occurrence_counts["NC_major"],
        nc_minor_count=occurrence_counts["NC_minor"],
        observation_count=occurrence_counts["Observation"],
        opportunity_count=occurrence_counts["Improvement_Opportunity"],
        grade=grade,
        grade_color=grade_color,
        status=status,
        calculated_at=calculated_at or datetime.utcnow(),
    )
