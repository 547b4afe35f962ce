"""Call-outcome driven stage automation for leads.

Everything here is pure: the caller reads the lead, asks for a transition and
persists the result.
"""

from __future__ import annotations

from dataclasses import dataclass

from leaddesk.domain.stages import CLOSED_LEAD_STAGES, CallOutcome, LeadStage

OUTCOME_TO_STAGE: dict[str, LeadStage] = {
    CallOutcome.NO_ANSWER.value: LeadStage.ATTEMPTING,
    CallOutcome.GATEKEEPER.value: LeadStage.ATTEMPTING,
    CallOutcome.DM_REACHED.value: LeadStage.DM_ENGAGED,
    CallOutcome.CALLBACK_REQUESTED.value: LeadStage.DM_ENGAGED,
    CallOutcome.EMAIL_REQUESTED.value: LeadStage.EMAIL_SENT,
    CallOutcome.STATEMENT_AGREED.value: LeadStage.STATEMENT_REQUESTED,
    CallOutcome.NOT_INTERESTED.value: LeadStage.CLOSED_LOST,
    CallOutcome.BAD_DATA.value: LeadStage.CLOSED_LOST,
}

# Pipeline position used to keep automation moving forward. Parked sits level
# with attempting: a no-contact call leaves it parked, reaching a person revives it.
STAGE_RANK: dict[str, int] = {
    LeadStage.NEW.value: 0,
    LeadStage.ATTEMPTING.value: 1,
    LeadStage.PARKED.value: 1,
    LeadStage.DM_ENGAGED.value: 2,
    LeadStage.EMAIL_SENT.value: 3,
    LeadStage.STATEMENT_REQUESTED.value: 4,
    LeadStage.STATEMENT_RECEIVED.value: 5,
    LeadStage.QUOTED.value: 6,
    LeadStage.NEGOTIATION.value: 7,
    LeadStage.CLOSED_WON.value: 8,
    LeadStage.CLOSED_LOST.value: 8,
}

NO_CONTACT_OUTCOMES = frozenset({CallOutcome.NO_ANSWER.value, CallOutcome.GATEKEEPER.value})
EARLY_STAGES = frozenset({LeadStage.NEW.value, LeadStage.ATTEMPTING.value})
PARK_AFTER_ATTEMPTS = 5

LOSS_REASONS: dict[str, str] = {
    CallOutcome.NOT_INTERESTED.value: "Not Interested",
    CallOutcome.BAD_DATA.value: "Bad Data",
}


@dataclass(frozen=True)
class StageTransition:
    previous_stage: str
    stage: str
    dial_attempts: int
    closes_lead: bool = False
    loss_reason: str | None = None
    parked: bool = False

    @property
    def changed(self) -> bool:
        return self.stage != self.previous_stage


def apply_call_outcome(current_stage: str, dial_attempts: int, outcome: str) -> StageTransition:
    """Return the lead state after one more call with ``outcome``.

    The dial counter always advances. The stage only moves forward: outcomes
    missing from the table, targets behind the current stage and calls on
    closed leads leave it untouched. Five no-contact dials on a lead that
    never got past ``attempting`` park it instead.
    """
    attempts = (dial_attempts or 0) + 1
    unchanged = StageTransition(
        previous_stage=current_stage, stage=current_stage, dial_attempts=attempts
    )
    target = OUTCOME_TO_STAGE.get(outcome)
    if target is None or current_stage in {s.value for s in CLOSED_LEAD_STAGES}:
        return unchanged

    if target is LeadStage.CLOSED_LOST:
        return StageTransition(
            previous_stage=current_stage,
            stage=target.value,
            dial_attempts=attempts,
            closes_lead=True,
            loss_reason=LOSS_REASONS.get(outcome),
        )

    if (
        target is LeadStage.ATTEMPTING
        and outcome in NO_CONTACT_OUTCOMES
        and attempts >= PARK_AFTER_ATTEMPTS
        and current_stage in EARLY_STAGES
    ):
        return StageTransition(
            previous_stage=current_stage,
            stage=LeadStage.PARKED.value,
            dial_attempts=attempts,
            parked=True,
        )

    if STAGE_RANK[target.value] <= STAGE_RANK.get(current_stage, -1):
        return unchanged
    return StageTransition(previous_stage=current_stage, stage=target.value, dial_attempts=attempts)
