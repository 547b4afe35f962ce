from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from leaddesk.domain.stages import Role


def _from_row(cls, row: Any):
    keys = set(row.keys())
    return cls(**{f.name: row[f.name] for f in fields(cls) if f.name in keys})


@dataclass(frozen=True)
class Actor:
    """The acting user, as supplied by the identity provider."""

    user_id: str
    role: str = Role.USER.value
    name: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown User"


@dataclass(frozen=True)
class User:
    user_id: str
    auth_id: str | None
    name: str | None
    email: str | None
    role: str
    created_at: str
    updated_at: str
    last_signed_in: str | None

    @classmethod
    def from_row(cls, row: Any) -> User:
        return _from_row(cls, row)

    def as_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role, name=self.name, email=self.email)


@dataclass(frozen=True)
class Lead:
    lead_id: str
    company_name: str
    contact_name: str
    phone: str | None
    email: str | None
    provider: str | None
    processing_volume: str | None
    effective_rate: str | None
    data_source: str | None
    data_cohort: str | None
    owner_id: str
    data_verified: str
    phone_valid: str
    email_valid: str
    correct_decision_maker: str
    stage: str
    last_contact_date: str | None
    next_follow_up_date: str | None
    follow_up_time: str | None
    quote_date: str | None
    quoted_rate: str | None
    expected_residual: str | None
    signed_date: str | None
    actual_residual: str | None
    onboarding_status: str | None
    loss_reason: str | None
    closed_date: str | None
    email_sent: str
    email_sent_date: str | None
    dial_attempts: int
    converted_to_opportunity: str
    opportunity_id: str | None
    conversion_date: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Any) -> Lead:
        return _from_row(cls, row)


@dataclass(frozen=True)
class CallLog:
    call_id: str
    lead_id: str | None
    opportunity_id: str | None
    call_date: str
    call_outcome: str
    call_duration: int | None
    notes: str | None
    agent_id: str
    callback_scheduled: str
    callback_date: str | None
    created_at: str

    @classmethod
    def from_row(cls, row: Any) -> CallLog:
        return _from_row(cls, row)


@dataclass(frozen=True)
class Opportunity:
    opportunity_id: str
    lead_id: str | None
    name: str
    company_name: str
    contact_name: str
    phone: str | None
    email: str | None
    stage: str
    deal_value: str | None
    probability: int | None
    expected_close_date: str | None
    actual_close_date: str | None
    owner_id: str
    notes: str | None
    loss_reason: str | None
    stage_entered_at: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Any) -> Opportunity:
        return _from_row(cls, row)


@dataclass(frozen=True)
class Note:
    note_id: str
    lead_id: str | None
    opportunity_id: str | None
    content: str
    created_by: str
    created_by_name: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Any) -> Note:
        return _from_row(cls, row)


@dataclass(frozen=True)
class Todo:
    todo_id: str
    owner_id: str
    title: str
    description: str | None
    completed: bool
    due_date: str | None
    priority: str
    status: str
    linked_lead_id: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Any) -> Todo:
        todo = _from_row(cls, row)
        return replace(todo, completed=bool(todo.completed))


@dataclass(frozen=True)
class AuditLog:
    audit_id: str
    entity_type: str
    entity_id: str
    entity_name: str
    deleted_by: str
    deleted_by_name: str
    deleted_at: str
    additional_info: str | None

    @classmethod
    def from_row(cls, row: Any) -> AuditLog:
        return _from_row(cls, row)
