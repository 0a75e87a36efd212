"""
SQLAlchemy ORM Models

Workflow stages and statuses are stored as plain strings; the enums below
are the only values application code writes.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from resolve.db.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles"""
    user = "user"
    admin = "admin"


class ApplicationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class WorkflowStage(str, enum.Enum):
    """Application pipeline position, in forward order"""
    submitted = "submitted"
    ai_reviewed = "ai_reviewed"
    payment_pending = "payment_pending"
    intake_pending = "intake_pending"
    pdf_generation = "pdf_generation"
    dashboard_access = "dashboard_access"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class CaseStatus(str, enum.Enum):
    """Case status enum"""
    active = "active"
    resolved = "resolved"
    on_hold = "on_hold"


class CaseOutcome(str, enum.Enum):
    ongoing = "ongoing"
    successful = "successful"
    partial_success = "partial_success"
    unsuccessful = "unsuccessful"
    settled = "settled"


class CasePriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class GeneratedDocumentType(str, enum.Enum):
    strategy_pack = "strategy_pack"
    demand_letter = "demand_letter"
    notice_to_complete = "notice_to_complete"
    adjudication_application = "adjudication_application"


class GeneratedDocumentStatus(str, enum.Enum):
    draft = "draft"
    reviewed = "reviewed"
    pending_review = "pending_review"
    approved = "approved"
    rejected = "rejected"
    sent = "sent"


class ContractStatus(str, enum.Enum):
    draft = "draft"
    final = "final"
    signed = "signed"


class TimelineEventType(str, enum.Enum):
    milestone = "milestone"
    deadline = "deadline"
    note = "note"
    payment = "payment"
    communication = "communication"
    document = "document"


class TimelinePriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class TimelineStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    overdue = "overdue"


class CalendarSyncStatus(str, enum.Enum):
    not_synced = "not_synced"
    synced = "synced"
    failed = "failed"


class NotificationPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class SubscriptionPlan(str, enum.Enum):
    free = "free"
    monthly = "monthly"


class SubscriptionStatus(str, enum.Enum):
    inactive = "inactive"
    active = "active"
    cancelled = "cancelled"
    past_due = "past_due"


class PaymentIntentStatus(str, enum.Enum):
    requires_payment = "requires_payment"
    succeeded = "succeeded"
    failed = "failed"


class WorkflowTaskStatus(str, enum.Enum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.user.value)
    is_active = Column(Boolean, nullable=False, default=True)
    last_seen_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases = relationship("Case", back_populates="user")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")


class Application(Base):
    """
    A prospective client's initial submission. Moves forward through
    WorkflowStage; never hard-deleted.
    """
    __tablename__ = "applications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)

    full_name = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    trade = Column(String(100), nullable=False)
    state = Column(String(10), nullable=False)
    issue_type = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    start_date = Column(Date, nullable=True)
    description = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default=ApplicationStatus.pending.value, index=True)
    workflow_stage = Column(String(30), nullable=False, default=WorkflowStage.submitted.value, index=True)

    payment_status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)
    payment_amount = Column(Numeric(10, 2), nullable=False, default=299.00)
    payment_reference = Column(String(255), nullable=True)

    intake_completed = Column(Boolean, nullable=False, default=False)
    intake_data = Column(JSONType, nullable=True)
    pdf_generated = Column(Boolean, nullable=False, default=False)
    dashboard_access_granted = Column(Boolean, nullable=False, default=False)

    ai_analysis = Column(JSONType, nullable=True)
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    case = relationship("Case", foreign_keys=[case_id])


class Case(Base):
    __tablename__ = "cases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(Uuid, nullable=True, index=True)

    case_number = Column(String(50), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=CaseStatus.active.value, index=True)
    issue_type = Column(String(100), nullable=True)
    trade = Column(String(100), nullable=True)
    state = Column(String(10), nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    description = Column(Text, nullable=True)
    priority = Column(String(20), nullable=False, default=CasePriority.medium.value)

    ai_analysis = Column(JSONType, nullable=True)
    strategy_pack = Column(JSONType, nullable=True)
    next_action = Column(Text, nullable=True)
    next_action_due = Column(TIMESTAMP, nullable=True)
    progress = Column(Integer, nullable=False, default=0)

    # Outcome tracking
    outcome = Column(String(30), nullable=True, index=True)
    outcome_description = Column(Text, nullable=True)
    amount_recovered = Column(Numeric(12, 2), nullable=True)
    recovery_percentage = Column(Float, nullable=True)
    resolution_method = Column(String(100), nullable=True)
    days_to_resolution = Column(Integer, nullable=True)
    client_satisfaction_score = Column(Integer, nullable=True)
    strategy_effectiveness = Column(Integer, nullable=True)
    would_recommend = Column(Boolean, nullable=True)
    lessons_learned = Column(Text, nullable=True)
    resolved_at = Column(TIMESTAMP, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="cases")
    documents = relationship("CaseDocument", back_populates="case", cascade="all, delete-orphan")
    generated_documents = relationship(
        "GeneratedDocument", back_populates="case", cascade="all, delete-orphan"
    )
    timeline_entries = relationship("TimelineEntry", back_populates="case", cascade="all, delete-orphan")
    outcome_history = relationship(
        "CaseOutcomeHistory",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="CaseOutcomeHistory.created_at",
    )


class CaseOutcomeHistory(Base):
    """One row per outcome update on a case."""
    __tablename__ = "case_outcome_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    previous_outcome = Column(String(30), nullable=True)
    new_outcome = Column(String(30), nullable=False)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    amount_recovered = Column(Numeric(12, 2), nullable=True)
    resolution_method = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    case = relationship("Case", back_populates="outcome_history")


class CaseDocument(Base):
    """Uploaded evidence attached to a case or contract."""
    __tablename__ = "case_documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True, index=True)
    contract_id = Column(Uuid, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=True, index=True)

    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(100), nullable=True)
    storage_key = Column(String(500), nullable=False)
    category = Column(String(50), nullable=False, default="evidence")
    description = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="documents")
    contract = relationship("Contract", back_populates="documents")


class GeneratedDocument(Base):
    """AI-generated deliverable; visible to the case owner once sent."""
    __tablename__ = "generated_documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False, default=GeneratedDocumentType.strategy_pack.value)
    title = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=GeneratedDocumentStatus.draft.value, index=True)

    ai_content = Column(JSONType, nullable=True)
    content_text = Column(Text, nullable=True)
    intake_data = Column(JSONType, nullable=True)
    artifact_key = Column(String(500), nullable=True)
    artifact_generated_at = Column(TIMESTAMP, nullable=True)

    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)
    sent_by = Column(String(255), nullable=True)
    sent_at = Column(TIMESTAMP, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    case = relationship("Case", back_populates="generated_documents")


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    contract_number = Column(String(50), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    client_name = Column(String(255), nullable=True)
    project_description = Column(Text, nullable=True)
    value = Column(Numeric(12, 2), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=ContractStatus.draft.value)
    terms = Column(Text, nullable=True)
    version_number = Column(Integer, nullable=False, default=1)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    documents = relationship("CaseDocument", back_populates="contract", cascade="all, delete-orphan")
    timeline_entries = relationship("TimelineEntry", back_populates="contract", cascade="all, delete-orphan")


class TimelineEntry(Base):
    __tablename__ = "timeline_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True, index=True)
    contract_id = Column(Uuid, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(30), nullable=False, default=TimelineEventType.milestone.value)
    event_date = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    due_date = Column(TIMESTAMP, nullable=True)
    priority = Column(String(20), nullable=False, default=TimelinePriority.medium.value)
    status = Column(String(20), nullable=False, default=TimelineStatus.pending.value, index=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP, nullable=True)

    sync_status = Column(String(20), nullable=False, default=CalendarSyncStatus.not_synced.value)
    calendar_provider = Column(String(20), nullable=True)
    external_event_id = Column(String(255), nullable=True)
    sync_error = Column(Text, nullable=True)
    last_synced_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="timeline_entries")
    contract = relationship("Contract", back_populates="timeline_entries")


class Notification(Base):
    """Derived alert materialized by the notification generator."""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False, default=NotificationPriority.medium.value)
    related_type = Column(String(30), nullable=True)
    related_id = Column(Uuid, nullable=True)
    due_date = Column(TIMESTAMP, nullable=True)
    action_url = Column(String(500), nullable=True)

    read_at = Column(TIMESTAMP, nullable=True)
    archived_at = Column(TIMESTAMP, nullable=True)
    expires_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_notifications_related", "user_id", "related_type", "related_id", "type"),
    )


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    plan_type = Column(String(20), nullable=False, default=SubscriptionPlan.free.value)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.inactive.value)
    expires_at = Column(TIMESTAMP, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="subscriptions")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    provider = Column(String(20), nullable=False)
    provider_intent_id = Column(String(255), nullable=False, unique=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="aud")
    status = Column(String(30), nullable=False, default=PaymentIntentStatus.requires_payment.value)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkflowTask(Base):
    """
    Durable outbox row for a deferred side effect (email, AI generation).
    Drained by the background worker; dedupe_key makes enqueueing idempotent.
    """
    __tablename__ = "workflow_tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_type = Column(String(50), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    dedupe_key = Column(String(255), nullable=True, unique=True)

    status = Column(String(20), nullable=False, default=WorkflowTaskStatus.queued.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    run_after = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    last_error = Column(Text, nullable=True)
    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_workflow_tasks_status_run_after", "status", "run_after"),
    )


class IdempotencyRecord(Base):
    """
    Stores the result of a side-effecting request keyed by (user_id, idempotency_key).
    A retried request with the same key gets the stored response instead of
    creating a second entity.
    """
    __tablename__ = "idempotency_records"

    id             = Column(Uuid, primary_key=True, default=uuid.uuid4)
    idempotency_key = Column(String(255), nullable=False)
    user_id        = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint       = Column(String(255), nullable=True)   # e.g. "POST /api/cases"
    request_hash   = Column(String(64), nullable=True)
    status_code    = Column(Integer, nullable=False, default=200)
    response_body  = Column(JSONType, nullable=False, default=dict)
    created_at     = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    expires_at     = Column(TIMESTAMP, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("idempotency_key", "user_id", name="uq_idempotency_key_user"),
    )
