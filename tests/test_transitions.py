import pytest

from leaddesk.domain.transitions import PARK_AFTER_ATTEMPTS, apply_call_outcome


@pytest.mark.parametrize(
    ("stage", "outcome", "expected"),
    [
        ("new", "No Answer", "attempting"),
        ("new", "Gatekeeper", "attempting"),
        ("new", "DM Reached", "dm_engaged"),
        ("attempting", "Callback Requested", "dm_engaged"),
        ("dm_engaged", "Email Requested", "email_sent"),
        ("email_sent", "Statement Agreed", "statement_requested"),
        ("quoted", "Not Interested", "closed_lost"),
        ("new", "Bad Data", "closed_lost"),
    ],
)
def test_outcome_moves_stage(stage: str, outcome: str, expected: str) -> None:
    result = apply_call_outcome(stage, 0, outcome)
    assert result.stage == expected
    assert result.dial_attempts == 1


def test_stage_never_moves_backwards() -> None:
    result = apply_call_outcome("statement_requested", 3, "No Answer")
    assert result.stage == "statement_requested"
    assert not result.changed
    assert result.dial_attempts == 4


def test_parks_on_fifth_no_contact_dial() -> None:
    result = apply_call_outcome("attempting", PARK_AFTER_ATTEMPTS - 1, "No Answer")
    assert result.stage == "parked"
    assert result.parked
    assert result.dial_attempts == PARK_AFTER_ATTEMPTS


def test_fourth_dial_does_not_park() -> None:
    result = apply_call_outcome("attempting", PARK_AFTER_ATTEMPTS - 2, "Gatekeeper")
    assert result.stage == "attempting"
    assert not result.parked


def test_engaged_lead_is_never_parked() -> None:
    result = apply_call_outcome("dm_engaged", 9, "No Answer")
    assert result.stage == "dm_engaged"
    assert not result.parked


def test_parked_lead_revives_on_contact() -> None:
    assert apply_call_outcome("parked", 6, "No Answer").stage == "parked"
    assert apply_call_outcome("parked", 6, "DM Reached").stage == "dm_engaged"


def test_closed_lost_records_reason() -> None:
    result = apply_call_outcome("dm_engaged", 2, "Not Interested")
    assert result.closes_lead
    assert result.loss_reason == "Not Interested"

    result = apply_call_outcome("new", 0, "Bad Data")
    assert result.loss_reason == "Bad Data"


def test_closed_leads_only_count_dials() -> None:
    for stage in ("closed_won", "closed_lost"):
        result = apply_call_outcome(stage, 7, "DM Reached")
        assert result.stage == stage
        assert result.dial_attempts == 8
        assert not result.closes_lead


def test_unmapped_outcome_only_counts_dial() -> None:
    result = apply_call_outcome("dm_engaged", None, "Voicemail")
    assert result.stage == "dm_engaged"
    assert result.dial_attempts == 1
