from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.core.config import settings


AuditStatus = Literal["planned", "in_progress", "completed", "cancelled"]
SessionStatus = Literal["pending", "in_progress", "completed"]
OccurrenceType = Literal["NC_major", "NC_minor", "Improvement_Opportunity", "Observation"]
OccurrenceStatus = Literal["Open", "In_Treatment", "Awaiting_Verification", "Closed", "Cancelled"]
Priority = Literal["low", "medium", "high", "critical"]
ScoringMethod = Literal["weighted", "simple", "percentage"]
ScoringStatus = Literal["passed", "conditional", "failed"]


class AuditCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    audit_type: Optional[str] = None
    scope: Optional[str] = None
    lead_auditor: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date anterior a start_date")
        return self


class AuditStatusUpdate(BaseModel):
    status: AuditStatus


class SessionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    session_date: Optional[date] = None
    location: Optional[str] = None
    display_order: Optional[int] = Field(default=None, ge=0)


class SessionStatusUpdate(BaseModel):
    status: SessionStatus


class ItemSnapshotIn(BaseModel):
    standard_item_id: Optional[str] = None
    code: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    guidance: Optional[str] = None
    weight: float = Field(default=1.0, ge=0)
    response_type_id: Optional[str] = None


class SessionItemsAssign(BaseModel):
    standard_item_ids: list[str] = Field(default_factory=list)
    snapshots: list[ItemSnapshotIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_not_empty(self):
        if not self.standard_item_ids and not self.snapshots:
            raise ValueError("Informe standard_item_ids ou snapshots")
        return self


class ResponseSave(BaseModel):
    response_option_id: Optional[str] = None
    justification: Optional[str] = None
    strengths: Optional[str] = None
    weaknesses: Optional[str] = None
    observations: Optional[str] = None
    attachments: list[str] = Field(default_factory=list)


class OccurrenceCreate(BaseModel):
    occurrence_type: OccurrenceType
    title: str
    description: str
    priority: Priority = "medium"
    due_date: Optional[date] = None
    responsible: Optional[str] = None
    corrective_action: Optional[str] = None
    session_id: Optional[str] = None
    session_item_id: Optional[str] = None
    response_id: Optional[str] = None


class OccurrenceUpdate(BaseModel):
    occurrence_type: Optional[OccurrenceType] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[OccurrenceStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    responsible: Optional[str] = None
    corrective_action: Optional[str] = None

    model_config = {"extra": "forbid"}


class OccurrenceClose(BaseModel):
    closed_by: Optional[str] = None


class GradeBand(BaseModel):
    min_percentage: float = Field(ge=0, le=100, alias="minPercentage")
    label: str = Field(min_length=1)
    color: Optional[str] = None

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}


def default_grade_bands() -> list[GradeBand]:
    return [
        GradeBand(min_percentage=90, label="A", color="#16a34a"),
        GradeBand(min_percentage=75, label="B", color="#65a30d"),
        GradeBand(min_percentage=60, label="C", color="#ca8a04"),
        GradeBand(min_percentage=40, label="D", color="#ea580c"),
    ]


class ScoringConfigData(BaseModel):
    """Validated scoring policy of one audit.

    Penalties, bonus, ``passing_score`` and ``conditional_margin`` are on the
    0..``max_score`` scale; the engine converts them to percentage points.
    """

    scoring_method: ScoringMethod = "weighted"
    nc_major_penalty: float = Field(default=0, ge=0)
    nc_minor_penalty: float = Field(default=0, ge=0)
    observation_penalty: float = Field(default=0, ge=0)
    opportunity_bonus: float = Field(default=0, ge=0)
    include_na_in_total: bool = False
    max_score: float = Field(default_factory=lambda: settings.SCORING_DEFAULT_MAX_SCORE)
    passing_score: float = Field(default_factory=lambda: settings.SCORING_DEFAULT_PASSING_SCORE)
    conditional_margin: float = Field(default_factory=lambda: settings.SCORING_CONDITIONAL_MARGIN, ge=0)
    grade_bands: list[GradeBand] = Field(default_factory=default_grade_bands)

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def _check_ranges(self):
        if self.max_score <= 0:
            raise ValueError("max_score deve ser maior que zero")
        if self.passing_score < 0 or self.passing_score > self.max_score:
            raise ValueError("passing_score fora do intervalo [0, max_score]")
        if self.conditional_margin > self.max_score:
            raise ValueError("conditional_margin maior que max_score")
        return self


class ScoringResultData(BaseModel):
    audit_id: str
    scoring_method: ScoringMethod
    total_score: float
    max_possible_score: float
    base_percentage: float
    penalty_points: float
    bonus_points: float
    percentage: float
    final_score: float
    conforming_items: int
    non_conforming_items: int
    partial_items: int
    na_items: int
    responded_items: int
    total_items: int
    nc_major_count: int
    nc_minor_count: int
    observation_count: int
    opportunity_count: int
    grade: Optional[str] = None
    grade_color: Optional[str] = None
    status: ScoringStatus
    calculated_at: datetime

    model_config = {"frozen": True, "from_attributes": True}


class SessionProgress(BaseModel):
    id: str
    name: str
    display_order: int
    status: str
    session_date: Optional[date] = None
    location: Optional[str] = None
    total_items: int
    responded_items: int
    progress: float


class OccurrenceSummary(BaseModel):
    total: int = 0
    open: int = 0
    overdue: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


class AuditReportData(BaseModel):
    audit: dict
    sessions: list[SessionProgress]
    total_items: int
    responded_items: int
    overall_progress: float
    scoring: Optional[ScoringResultData] = None
    scoring_source: Literal["stored", "live", "none"]
    scoring_stale: bool
    occurrences: list[dict]
    occurrence_summary: OccurrenceSummary
    standards: list[dict]
    generated_at: datetime
