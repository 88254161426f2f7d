import pytest

from bracket_engine.draft import PhaseType, Selection
from bracket_engine.errors import (
    DraftAlreadyCompleteError,
    EngineError,
    ErrorKind,
    InsufficientParticipantsError,
    InvalidPhaseIndexError,
    ItemAlreadyExcludedError,
    MatchNotFoundError,
    NotYourTurnError,
    require_participants,
)
from bracket_engine.events import (
    BracketRebuilt,
    DraftCompleted,
    MatchCompleted,
    PhaseAdvanced,
)


@pytest.mark.parametrize(
    ("error_cls", "kind"),
    [
        (InsufficientParticipantsError, "insufficient_participants"),
        (MatchNotFoundError, "match_not_found"),
        (InvalidPhaseIndexError, "invalid_phase_index"),
        (DraftAlreadyCompleteError, "draft_already_complete"),
        (NotYourTurnError, "not_your_turn"),
        (ItemAlreadyExcludedError, "item_already_excluded"),
    ],
)
def test_errors_carry_stable_kind(error_cls, kind):
    error = error_cls("boom")

    assert isinstance(error, EngineError)
    assert isinstance(error, ValueError)
    assert error.kind is ErrorKind(kind)
    assert error.to_dict() == {"error": kind, "message": "boom"}


def test_require_participants():
    assert require_participants(2) == 2
    with pytest.raises(InsufficientParticipantsError, match="At least 2"):
        require_participants(1)
    with pytest.raises(InsufficientParticipantsError):
        require_participants(3, minimum=4)


def test_event_payloads():
    assert MatchCompleted("R1M1", "p1").to_dict() == {
        "event": "match_completed",
        "match_id": "R1M1",
        "winner_id": "p1",
    }
    assert DraftCompleted("m1").to_dict() == {"event": "draft_completed", "match_id": "m1"}
    assert BracketRebuilt("cup").to_dict()["event"] == "bracket_rebuilt"


def test_phase_advanced_serializes_selection():
    selection = Selection(
        phase_id="phase-1",
        phase_index=0,
        side="blue",
        selection_type=PhaseType.BAN,
        payload={"championId": "Ahri"},
        item_key="ahri",
        selected_at="2024-01-01T00:00:00.000Z",
    )

    data = PhaseAdvanced("m1", 0, selection).to_dict()

    assert data["selection"]["item_key"] == "ahri"
    assert data["selection"]["selection_type"] == "ban"
    assert PhaseAdvanced("m1", 1).to_dict()["selection"] is None
