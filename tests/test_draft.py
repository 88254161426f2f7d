from datetime import UTC, datetime, timedelta

import pytest

from bracket_engine.draft import (
    DraftEngine,
    DraftPhase,
    DraftState,
    DraftStatus,
    PhaseOutcomeKind,
    PhaseType,
    alternating_phases,
    freeform_phases,
    new_draft,
    tournament_draft_phases,
)
from bracket_engine.errors import (
    DraftAlreadyCompleteError,
    InvalidDraftConfigurationError,
    InvalidPhaseIndexError,
    InvalidSelectionError,
    ItemAlreadyExcludedError,
    NotYourTurnError,
)
from bracket_engine.events import DraftCompleted, PhaseAdvanced
from bracket_engine.selection import ChampionValidator

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def started(phases, *, game_type="league_of_legends"):
    engine = DraftEngine()
    state = new_draft("match-1", phases, game_type=game_type)
    return engine, engine.start(state, T0).state


class TestPresets:
    """Phase lists produced by the preset builders."""

    def test_tournament_draft_has_twenty_phases(self):
        phases = tournament_draft_phases(time_limit=30)

        assert len(phases) == 20
        assert [p.order for p in phases] == list(range(1, 21))
        assert sum(1 for p in phases if p.phase_type is PhaseType.BAN) == 10
        assert sum(1 for p in phases if p.side == "blue") == 10

    def test_tournament_draft_order(self):
        phases = tournament_draft_phases(time_limit=30)

        sides = "".join(p.side[0] for p in phases)
        kinds = "".join(p.phase_type.value[0] for p in phases)
        assert sides == "brbrbrbrrbbrrbrbrbrb"
        assert kinds == "bbbbbbppppppbbbbpppp"
        assert phases[0].name == "Blue Ban 1"
        assert phases[19].name == "Blue Pick 5"

    def test_tournament_draft_needs_two_sides(self):
        with pytest.raises(InvalidDraftConfigurationError):
            tournament_draft_phases(sides=("solo",), time_limit=30)

    def test_freeform_is_single_open_pick(self):
        (phase,) = freeform_phases(time_limit=45)

        assert phase.turn_based is False
        assert phase.side is None
        assert phase.time_limit_seconds == 45

    def test_alternating_phases_follow_pattern(self):
        phases = alternating_phases(
            [("ban", 3), ("pick", 3), ("ban", 2), ("pick", 2)], time_limit=20
        )

        assert len(phases) == 10
        assert [p.side for p in phases[:4]] == ["blue", "red", "blue", "red"]
        assert [p.phase_type for p in phases[2:4]] == [PhaseType.BAN, PhaseType.PICK]


class TestConfiguration:
    def test_orders_must_start_at_one_and_increase(self):
        phases = alternating_phases([("pick", 2)], time_limit=10)
        phases[1].order = 3

        with pytest.raises(InvalidDraftConfigurationError):
            new_draft("m", phases)

    def test_turn_based_phase_needs_side(self):
        phase = DraftPhase("p1", 1, PhaseType.PICK, None, 10)

        with pytest.raises(InvalidDraftConfigurationError):
            new_draft("m", [phase])

    def test_phase_side_must_be_configured(self):
        phase = DraftPhase("p1", 1, PhaseType.PICK, "green", 10)

        with pytest.raises(InvalidDraftConfigurationError):
            new_draft("m", [phase])

    def test_empty_draft_rejected(self):
        with pytest.raises(InvalidDraftConfigurationError):
            new_draft("m", [])


def test_start_opens_first_phase():
    engine, state = started(tournament_draft_phases(time_limit=30))

    assert state.status is DraftStatus.AWAITING_SELECTION
    assert state.current_index == 0
    assert state.phase_opened_at == "2024-01-01T12:00:00.000Z"
    assert state.version == 1
    assert engine.deadline(state) == at(30)
    assert engine.time_remaining(state, at(12)) == 18


def test_submit_records_selection_and_opens_next_phase():
    engine, state = started(tournament_draft_phases(time_limit=30))

    transition = engine.submit(state, 0, "blue", {"championId": "Ahri"}, at(5))

    selection = transition.selection
    assert selection.item_key == "ahri"
    assert selection.selection_type is PhaseType.BAN
    assert selection.selected_at == "2024-01-01T12:00:05.000Z"
    assert transition.events == [PhaseAdvanced("match-1", 0, selection)]
    assert transition.state.current_index == 1
    assert transition.state.phase_opened_at == "2024-01-01T12:00:05.000Z"
    assert transition.state.version == 2
    assert state.current_index == 0


def test_wrong_side_is_rejected():
    engine, state = started(tournament_draft_phases(time_limit=30))

    with pytest.raises(NotYourTurnError):
        engine.submit(state, 0, "red", {"championId": "Ahri"}, at(1))
    with pytest.raises(NotYourTurnError):
        engine.submit(state, 0, "spectator", {"championId": "Ahri"}, at(1))
    assert not engine.can_select(state, "red", at(1))
    assert engine.can_select(state, "blue", at(1))


def test_open_phase_accepts_either_side():
    phase = DraftPhase("open", 1, PhaseType.PICK, None, 30, turn_based=False)
    engine, state = started([phase], game_type="freeform")

    assert engine.can_select(state, "blue", at(1))
    assert engine.can_select(state, "red", at(1))
    transition = engine.submit(state, 0, "red", {"item": "Sword"}, at(1))

    assert transition.selection.side == "red"


def test_submission_after_deadline_is_rejected():
    engine, state = started(tournament_draft_phases(time_limit=30))

    with pytest.raises(InvalidPhaseIndexError):
        engine.submit(state, 0, "blue", {"championId": "Ahri"}, at(30))
    assert not engine.can_select(state, "blue", at(30))


def test_late_duplicate_for_closed_phase_is_rejected():
    engine, state = started(tournament_draft_phases(time_limit=30))
    state = engine.submit(state, 0, "blue", {"championId": "Ahri"}, at(1)).state

    with pytest.raises(InvalidPhaseIndexError):
        engine.submit(state, 0, "blue", {"championId": "Zed"}, at(2))


def test_submit_before_start_is_rejected():
    engine = DraftEngine()
    state = new_draft("match-1", tournament_draft_phases(time_limit=30))

    with pytest.raises(InvalidPhaseIndexError):
        engine.submit(state, 0, "blue", {"item": "Ahri"}, T0)


def test_item_excluded_after_pick_or_ban():
    engine, state = started(tournament_draft_phases(time_limit=30))
    state = engine.submit(state, 0, "blue", {"championId": "Kai'Sa"}, at(1)).state

    with pytest.raises(ItemAlreadyExcludedError):
        engine.submit(state, 1, "red", {"championId": "kaisa"}, at(2))
    assert engine.excluded_items(state) == ["kaisa"]


def test_malformed_payload_is_rejected():
    engine, state = started(tournament_draft_phases(time_limit=30))

    with pytest.raises(InvalidSelectionError):
        engine.submit(state, 0, "blue", {"champion": "Ahri"}, at(1))


def test_explicit_validator_overrides_game_type():
    engine = DraftEngine(ChampionValidator(pool=["Ahri"]))
    state = engine.start(new_draft("m", freeform_phases(time_limit=30)), T0).state

    with pytest.raises(InvalidSelectionError):
        engine.submit(state, 0, "blue", {"item": "Zed"}, at(1))


def test_final_selection_completes_draft():
    engine, state = started(freeform_phases(time_limit=30), game_type="freeform")

    transition = engine.submit(state, 0, "red", {"item": "Sword"}, at(3))

    assert transition.state.status is DraftStatus.COMPLETE
    assert engine.is_complete(transition.state)
    assert engine.current_phase(transition.state) is None
    assert transition.events[-1] == DraftCompleted("match-1")
    assert engine.time_remaining(transition.state, at(4)) is None
    with pytest.raises(DraftAlreadyCompleteError):
        engine.submit(transition.state, 0, "blue", {"item": "Shield"}, at(4))


def test_full_tournament_draft_collects_picks_per_side():
    engine, state = started(tournament_draft_phases(time_limit=30))

    for index, phase in enumerate(state.phases):
        state = engine.submit(
            state, index, phase.side, {"championId": f"champ{index}"}, at(index + 1)
        ).state

    assert state.is_complete
    assert len(state.picks_for("blue")) == 5
    assert len(state.bans_for("red")) == 5
    assert len(state.outcomes) == 20


def test_expire_chains_through_lapsed_phases():
    engine, state = started(
        alternating_phases([("ban", 2), ("pick", 1)], time_limit=10)
    )

    transition = engine.expire(state, at(25))

    assert transition.state.current_index == 2
    assert transition.state.phase_opened_at == "2024-01-01T12:00:20.000Z"
    assert engine.time_remaining(transition.state, at(25)) == 5
    assert transition.events == [
        PhaseAdvanced("match-1", 0, None),
        PhaseAdvanced("match-1", 1, None),
    ]
    assert [o.outcome for o in transition.state.outcomes] == [
        PhaseOutcomeKind.TIMED_OUT,
        PhaseOutcomeKind.TIMED_OUT,
    ]


def test_expire_before_deadline_changes_nothing():
    engine, state = started(alternating_phases([("ban", 2)], time_limit=10))

    transition = engine.expire(state, at(9))

    assert transition.events == []
    assert transition.state is state


def test_expire_can_complete_draft():
    engine, state = started(alternating_phases([("ban", 1), ("pick", 2)], time_limit=10))

    transition = engine.expire(state, at(100))

    assert transition.state.status is DraftStatus.COMPLETE
    assert transition.events[-1] == DraftCompleted("match-1")
    assert len(transition.events) == 4


def test_skip_optional_phase():
    phases = alternating_phases([("ban", 1), ("pick", 1)], time_limit=10)
    phases[0].is_optional = True
    engine, state = started(phases)

    transition = engine.skip(state, 0, "blue", at(2))

    assert transition.selection is None
    assert transition.state.current_index == 1
    assert transition.state.outcomes[0].outcome is PhaseOutcomeKind.SKIPPED
    with pytest.raises(InvalidSelectionError):
        engine.skip(transition.state, 1, "red", at(3))


def test_draft_state_item_round_trip():
    engine, state = started(tournament_draft_phases(time_limit=30))
    state = engine.submit(state, 0, "blue", {"championId": "Ahri"}, at(1)).state

    item = state.to_item()
    assert item["pk"] == "MATCH#match-1"
    assert item["sk"] == "DRAFT"

    restored = DraftState.from_item(item)
    assert restored.to_dict() == state.to_dict()
    assert restored.selections[0].payload == {"championId": "Ahri"}


def test_blue_ban_timeout_hands_turn_to_red():
    phases = [
        DraftPhase("ban-1", 1, PhaseType.BAN, "blue", 30),
        DraftPhase("pick-1", 2, PhaseType.PICK, "red", 30),
    ]
    engine, state = started(phases)

    transition = engine.expire(state, at(30))
    state = transition.state

    assert transition.events == [PhaseAdvanced("match-1", 0, None)]
    assert state.selections == []
    assert state.outcomes[0].outcome is PhaseOutcomeKind.TIMED_OUT
    assert state.current_index == 1
    assert engine.current_phase(state).side == "red"
    assert engine.time_remaining(state, at(31)) == 29
    assert engine.can_select(state, "red", at(31))
    assert not engine.can_select(state, "blue", at(31))
    with pytest.raises(NotYourTurnError):
        engine.submit(state, 1, "blue", {"championId": "Ahri"}, at(31))
