from __future__ import annotations

from enum import Enum


class LeadStage(str, Enum):
    NEW = "new"
    ATTEMPTING = "attempting"
    DM_ENGAGED = "dm_engaged"
    EMAIL_SENT = "email_sent"
    STATEMENT_REQUESTED = "statement_requested"
    STATEMENT_RECEIVED = "statement_received"
    QUOTED = "quoted"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    PARKED = "parked"


class CallOutcome(str, Enum):
    NO_ANSWER = "No Answer"
    GATEKEEPER = "Gatekeeper"
    DM_REACHED = "DM Reached"
    CALLBACK_REQUESTED = "Callback Requested"
    EMAIL_REQUESTED = "Email Requested"
    STATEMENT_AGREED = "Statement Agreed"
    NOT_INTERESTED = "Not Interested"
    BAD_DATA = "Bad Data"


class OpportunityStage(str, Enum):
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class YesNo(str, Enum):
    YES = "Yes"
    NO = "No"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TodoStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class EntityType(str, Enum):
    LEAD = "lead"
    OPPORTUNITY = "opportunity"


CLOSED_LEAD_STAGES = (LeadStage.CLOSED_WON, LeadStage.CLOSED_LOST)
CLOSED_OPPORTUNITY_STAGES = (OpportunityStage.CLOSED_WON, OpportunityStage.CLOSED_LOST)
LATE_OPPORTUNITY_STAGES = (OpportunityStage.PROPOSAL, OpportunityStage.NEGOTIATION)

STAGE_LABELS = {
    LeadStage.NEW: "Lead (Not Contacted)",
    LeadStage.ATTEMPTING: "Attempting",
    LeadStage.DM_ENGAGED: "DM Engaged",
    LeadStage.EMAIL_SENT: "Email Sent",
    LeadStage.STATEMENT_REQUESTED: "Statement Requested",
    LeadStage.STATEMENT_RECEIVED: "Statement Received",
    LeadStage.QUOTED: "Quoted",
    LeadStage.NEGOTIATION: "Negotiation",
    LeadStage.CLOSED_WON: "Closed Won",
    LeadStage.CLOSED_LOST: "Closed Lost",
    LeadStage.PARKED: "Parked (5 Attempts No Contact)",
}

OPPORTUNITY_STAGE_LABELS = {
    OpportunityStage.QUALIFIED: "Qualified",
    OpportunityStage.PROPOSAL: "Proposal",
    OpportunityStage.NEGOTIATION: "Negotiation",
    OpportunityStage.CLOSED_WON: "Closed Won",
    OpportunityStage.CLOSED_LOST: "Closed Lost",
}
