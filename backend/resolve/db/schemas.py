"""
Pydantic request/response schemas.

Domain code is snake_case; the JSON edge is camelCase via the alias
generator. Incoming bodies accept either spelling.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from resolve.utils.helpers import to_naive_utc

AUSTRALIAN_STATES = ("NSW", "VIC", "QLD", "WA", "SA", "TAS", "ACT", "NT")

# Incoming timestamps; stored naive UTC.
UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def dump(model_cls, obj) -> Dict[str, Any]:
    """ORM object -> camelCase JSON-ready dict."""
    return model_cls.model_validate(obj).model_dump(by_alias=True, mode="json")


def dump_list(model_cls, objs) -> List[Dict[str, Any]]:
    return [dump(model_cls, o) for o in objs]


# ============================================================================
# Applications
# ============================================================================

class ApplicationCreate(CamelModel):
    full_name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=40)
    email: EmailStr
    trade: str = Field(min_length=1, max_length=100)
    state: str
    issue_type: str = Field(min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    description: str = Field(min_length=1)

    @field_validator("state")
    @classmethod
    def valid_state(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in AUSTRALIAN_STATES:
            raise ValueError(f"state must be one of {', '.join(AUSTRALIAN_STATES)}")
        return v


class ApplicationOut(CamelModel):
    id: UUID
    full_name: str
    email: str
    phone: Optional[str] = None
    trade: str
    state: str
    issue_type: str
    amount: Optional[float] = None
    start_date: Optional[date] = None
    description: str
    status: str
    workflow_stage: str
    payment_status: str
    payment_amount: float
    intake_completed: bool
    pdf_generated: bool
    dashboard_access_granted: bool
    case_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ApplicationAdminOut(ApplicationOut):
    ai_analysis: Optional[Dict[str, Any]] = None
    intake_data: Optional[Dict[str, Any]] = None
    admin_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    user_id: Optional[UUID] = None


class ApplicationStatusOut(CamelModel):
    id: UUID
    status: str
    workflow_stage: str
    payment_status: str
    intake_completed: bool
    dashboard_access_granted: bool
    created_at: datetime


class IntakeIn(CamelModel):
    intake_data: Dict[str, Any] = Field(default_factory=dict)


class ReviewIn(CamelModel):
    action: Literal["approve", "reject"]
    notes: Optional[str] = None


# ============================================================================
# Cases
# ============================================================================

class CaseCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    issue_type: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    trade: Optional[str] = None
    state: Optional[str] = None
    next_action: Optional[str] = None
    next_action_due: Optional[UtcDatetime] = None


class CaseUpdate(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    issue_type: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = None
    status: Optional[Literal["active", "resolved", "on_hold"]] = None
    next_action: Optional[str] = None
    next_action_due: Optional[UtcDatetime] = None


class CaseOut(CamelModel):
    id: UUID
    case_number: str
    title: str
    status: str
    issue_type: Optional[str] = None
    trade: Optional[str] = None
    state: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    priority: str
    ai_analysis: Optional[Dict[str, Any]] = None
    strategy_pack: Optional[Dict[str, Any]] = None
    next_action: Optional[str] = None
    next_action_due: Optional[datetime] = None
    progress: int
    outcome: Optional[str] = None
    outcome_description: Optional[str] = None
    amount_recovered: Optional[float] = None
    recovery_percentage: Optional[float] = None
    resolution_method: Optional[str] = None
    days_to_resolution: Optional[int] = None
    client_satisfaction_score: Optional[int] = None
    strategy_effectiveness: Optional[int] = None
    would_recommend: Optional[bool] = None
    lessons_learned: Optional[str] = None
    resolved_at: Optional[datetime] = None
    application_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class CaseOutcomeUpdate(CamelModel):
    outcome: Literal["ongoing", "successful", "partial_success", "unsuccessful", "settled"]
    outcome_description: Optional[str] = None
    amount_claimed: Optional[Decimal] = Field(default=None, ge=0)
    amount_recovered: Optional[Decimal] = Field(default=None, ge=0)
    resolution_method: Optional[str] = Field(default=None, max_length=100)
    client_satisfaction_score: Optional[int] = Field(default=None, ge=1, le=5)
    strategy_effectiveness: Optional[int] = Field(default=None, ge=1, le=10)
    would_recommend: Optional[bool] = None
    lessons_learned: Optional[str] = None


class CaseOutcomeHistoryOut(CamelModel):
    id: UUID
    previous_outcome: Optional[str] = None
    new_outcome: str
    previous_status: Optional[str] = None
    new_status: str
    amount_recovered: Optional[float] = None
    resolution_method: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class GenerateDocumentIn(CamelModel):
    document_type: Literal[
        "strategy_pack", "demand_letter", "notice_to_complete", "adjudication_application"
    ] = "strategy_pack"


# ============================================================================
# Documents
# ============================================================================

class CaseDocumentOut(CamelModel):
    id: UUID
    case_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    file_name: str
    original_name: str
    file_size: int
    mime_type: Optional[str] = None
    category: str
    description: Optional[str] = None
    created_at: datetime


class GeneratedDocumentOut(CamelModel):
    id: UUID
    case_id: UUID
    type: str
    title: str
    status: str
    content_text: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class GeneratedDocumentAdminOut(GeneratedDocumentOut):
    user_id: UUID
    ai_content: Optional[Dict[str, Any]] = None
    intake_data: Optional[Dict[str, Any]] = None
    artifact_key: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    sent_by: Optional[str] = None


class DocumentUpdateIn(CamelModel):
    status: Optional[
        Literal["draft", "reviewed", "pending_review", "approved", "rejected", "sent"]
    ] = None
    review_notes: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content_text: Optional[str] = None
    ai_content: Optional[Dict[str, Any]] = None


# ============================================================================
# Contracts
# ============================================================================

class ContractCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    client_name: Optional[str] = None
    project_description: Optional[str] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    terms: Optional[str] = None
    status: Literal["draft", "final", "signed"] = "draft"


class ContractUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_name: Optional[str] = None
    project_description: Optional[str] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    terms: Optional[str] = None
    status: Optional[Literal["draft", "final", "signed"]] = None


class ContractOut(CamelModel):
    id: UUID
    contract_number: str
    title: str
    client_name: Optional[str] = None
    project_description: Optional[str] = None
    value: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str
    terms: Optional[str] = None
    version_number: int
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Timeline
# ============================================================================

class TimelineCreate(CamelModel):
    case_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    event_type: Literal["milestone", "deadline", "note", "payment", "communication", "document"] = "milestone"
    event_date: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    status: Literal["pending", "completed", "overdue"] = "pending"
    sync_to_calendar: bool = True


class TimelineUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    event_type: Optional[
        Literal["milestone", "deadline", "note", "payment", "communication", "document"]
    ] = None
    event_date: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    priority: Optional[Literal["low", "medium", "high", "critical"]] = None
    status: Optional[Literal["pending", "completed", "overdue"]] = None
    is_completed: Optional[bool] = None


class TimelineOut(CamelModel):
    id: UUID
    case_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    event_type: str
    event_date: datetime
    due_date: Optional[datetime] = None
    priority: str
    status: str
    is_completed: bool
    completed_at: Optional[datetime] = None
    sync_status: str
    calendar_provider: Optional[str] = None
    external_event_id: Optional[str] = None
    created_at: datetime


# ============================================================================
# Notifications / payments
# ============================================================================

class NotificationOut(CamelModel):
    id: UUID
    type: str
    title: str
    message: str
    priority: str
    related_type: Optional[str] = None
    related_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    action_url: Optional[str] = None
    read_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    created_at: datetime


class PaymentIntentIn(CamelModel):
    application_id: UUID
    email: EmailStr


class UserOut(CamelModel):
    id: UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    created_at: datetime
