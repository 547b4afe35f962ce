from leaddesk.domain.models import (
    Actor,
    AuditLog,
    CallLog,
    Lead,
    Note,
    Opportunity,
    Todo,
    User,
)
from leaddesk.domain.rules import ConflictError, ForbiddenError, NotFoundError, ValidationError

__all__ = [
    "Actor",
    "AuditLog",
    "CallLog",
    "ConflictError",
    "ForbiddenError",
    "Lead",
    "Note",
    "NotFoundError",
    "Opportunity",
    "Todo",
    "User",
    "ValidationError",
]
