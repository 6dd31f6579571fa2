import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


AUDIT_STATUSES = ("planned", "in_progress", "completed", "cancelled")
SESSION_STATUSES = ("pending", "in_progress", "completed")
CONFORMITY_TAGS = ("conforming", "non_conforming", "partial", "na")
OCCURRENCE_TYPES = ("NC_major", "NC_minor", "Improvement_Opportunity", "Observation")
OCCURRENCE_STATUSES = ("Open", "In_Treatment", "Awaiting_Verification", "Closed", "Cancelled")
OCCURRENCE_PRIORITIES = ("low", "medium", "high", "critical")
SCORING_METHODS = ("weighted", "simple", "percentage")


class ResponseType(Base):
    __tablename__ = "audit_response_types"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, unique=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    options = relationship(
        "ResponseOption",
        back_populates="response_type",
        cascade="all, delete-orphan",
        order_by="ResponseOption.display_order",
    )


class ResponseOption(Base):
    __tablename__ = "audit_response_options"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    response_type_id = Column(String, ForeignKey("audit_response_types.id", ondelete="CASCADE"), nullable=False)
    label = Column(String, nullable=False)
    weight = Column(Float, nullable=True)
    conformity = Column(String, nullable=True)
    triggers_occurrence = Column(Boolean, default=False, nullable=False)
    occurrence_type = Column(String, nullable=True)
    color = Column(String, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)

    response_type = relationship("ResponseType", back_populates="options")


class Standard(Base):
    __tablename__ = "audit_standards"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    version = Column(String, nullable=True)
    description = Column(String, nullable=True)
    response_type_id = Column(String, ForeignKey("audit_response_types.id"), nullable=True)
    calculation_method = Column(String, nullable=False, default="weight_based")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    response_type = relationship("ResponseType")
    items = relationship(
        "StandardItem",
        back_populates="standard",
        cascade="all, delete-orphan",
        order_by="StandardItem.display_order",
    )


class StandardItem(Base):
    __tablename__ = "audit_standard_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    standard_id = Column(String, ForeignKey("audit_standards.id", ondelete="CASCADE"), nullable=False)
    code = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    guidance = Column(String, nullable=True)
    weight = Column(Float, nullable=False, default=1.0)
    display_order = Column(Integer, default=0, nullable=False)

    standard = relationship("Standard", back_populates="items")


class Audit(Base):
    __tablename__ = "audits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    audit_type = Column(String, nullable=True)
    scope = Column(String, nullable=True)
    lead_auditor = Column(String, nullable=True)
    status = Column(String, nullable=False, default="planned")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    sessions = relationship(
        "AuditSession",
        back_populates="audit",
        cascade="all, delete-orphan",
        order_by="AuditSession.display_order",
    )
    occurrences = relationship("AuditOccurrence", back_populates="audit", cascade="all, delete-orphan")
    occurrence_sequence = relationship(
        "OccurrenceSequence", uselist=False, cascade="all, delete-orphan"
    )
    scoring_config = relationship(
        "ScoringConfig", back_populates="audit", uselist=False, cascade="all, delete-orphan"
    )
    scoring_result = relationship(
        "ScoringResult", back_populates="audit", uselist=False, cascade="all, delete-orphan"
    )
    standard_links = relationship("AuditStandardLink", back_populates="audit", cascade="all, delete-orphan")


class AuditStandardLink(Base):
    __tablename__ = "audit_standard_links"
    __table_args__ = (UniqueConstraint("audit_id", "standard_id", name="uq_audit_standard"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), nullable=False)
    standard_id = Column(String, ForeignKey("audit_standards.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    audit = relationship("Audit", back_populates="standard_links")
    standard = relationship("Standard")


class AuditSession(Base):
    __tablename__ = "audit_sessions"
    __table_args__ = (UniqueConstraint("audit_id", "display_order", name="uq_audit_session_order"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    session_date = Column(Date, nullable=True)
    location = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    audit = relationship("Audit", back_populates="sessions")
    items = relationship(
        "SessionItem",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionItem.display_order",
    )


class SessionItem(Base):
    __tablename__ = "audit_session_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String, ForeignKey("audit_sessions.id", ondelete="CASCADE"), nullable=False)
    standard_item_id = Column(String, nullable=True)
    response_type_id = Column(String, ForeignKey("audit_response_types.id"), nullable=True)
    item_snapshot = Column(JSON, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("AuditSession", back_populates="items")
    response = relationship(
        "AuditResponse", back_populates="session_item", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def weight(self) -> float:
        value = (self.item_snapshot or {}).get("weight")
        return float(value) if value is not None else 1.0

    @property
    def title(self) -> str:
        return (self.item_snapshot or {}).get("title") or ""


class AuditResponse(Base):
    __tablename__ = "audit_responses"
    __table_args__ = (UniqueConstraint("session_item_id", name="uq_response_session_item"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_item_id = Column(String, ForeignKey("audit_session_items.id", ondelete="CASCADE"), nullable=False)
    response_option_id = Column(String, ForeignKey("audit_response_options.id"), nullable=True)
    justification = Column(String, nullable=True)
    strengths = Column(String, nullable=True)
    weaknesses = Column(String, nullable=True)
    observations = Column(String, nullable=True)
    attachments = Column(JSON, nullable=True)
    responded_by = Column(String, nullable=True)
    responded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    session_item = relationship("SessionItem", back_populates="response")
    option = relationship("ResponseOption")


class OccurrenceSequence(Base):
    __tablename__ = "audit_occurrence_sequences"

    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


class AuditOccurrence(Base):
    __tablename__ = "audit_occurrences"
    __table_args__ = (UniqueConstraint("audit_id", "occurrence_number", name="uq_audit_occurrence_number"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String, ForeignKey("audit_sessions.id", ondelete="SET NULL"), nullable=True)
    session_item_id = Column(String, ForeignKey("audit_session_items.id", ondelete="SET NULL"), nullable=True)
    response_id = Column(String, ForeignKey("audit_responses.id", ondelete="SET NULL"), nullable=True)
    occurrence_number = Column(Integer, nullable=False)
    occurrence_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    status = Column(String, nullable=False, default="Open")
    priority = Column(String, nullable=False, default="medium")
    responsible = Column(String, nullable=True)
    corrective_action = Column(String, nullable=True)
    due_date = Column(Date, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    audit = relationship("Audit", back_populates="occurrences")

    @property
    def occurrence_code(self) -> str:
        return f"OC-{self.occurrence_number:04d}"


class ScoringConfig(Base):
    __tablename__ = "audit_scoring_configs"
    __table_args__ = (UniqueConstraint("audit_id", name="uq_scoring_config_audit"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), nullable=False)
    scoring_method = Column(String, nullable=False, default="weighted")
    nc_major_penalty = Column(Float, nullable=False, default=0)
    nc_minor_penalty = Column(Float, nullable=False, default=0)
    observation_penalty = Column(Float, nullable=False, default=0)
    opportunity_bonus = Column(Float, nullable=False, default=0)
    include_na_in_total = Column(Boolean, nullable=False, default=False)
    max_score = Column(Float, nullable=False, default=100)
    passing_score = Column(Float, nullable=False, default=70)
    conditional_margin = Column(Float, nullable=True)
    grade_bands = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    audit = relationship("Audit", back_populates="scoring_config")


class ScoringResult(Base):
    __tablename__ = "audit_scoring_results"
    __table_args__ = (UniqueConstraint("audit_id", name="uq_scoring_result_audit"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    audit_id = Column(String, ForeignKey("audits.id", ondelete="CASCADE"), nullable=False)
    scoring_method = Column(String, nullable=False)
    total_score = Column(Float, nullable=False, default=0)
    max_possible_score = Column(Float, nullable=False, default=0)
    base_percentage = Column(Float, nullable=False, default=0)
    penalty_points = Column(Float, nullable=False, default=0)
    bonus_points = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    final_score = Column(Float, nullable=False, default=0)
    conforming_items = Column(Integer, nullable=False, default=0)
    non_conforming_items = Column(Integer, nullable=False, default=0)
    partial_items = Column(Integer, nullable=False, default=0)
    na_items = Column(Integer, nullable=False, default=0)
    responded_items = Column(Integer, nullable=False, default=0)
    total_items = Column(Integer, nullable=False, default=0)
    nc_major_count = Column(Integer, nullable=False, default=0)
    nc_minor_count = Column(Integer, nullable=False, default=0)
    observation_count = Column(Integer, nullable=False, default=0)
    opportunity_count = Column(Integer, nullable=False, default=0)
    grade = Column(String, nullable=True)
    grade_color = Column(String, nullable=True)
    status = Column(String, nullable=False)
    calculated_at = Column(DateTime, nullable=False)

    audit = relationship("Audit", back_populates="scoring_result")
