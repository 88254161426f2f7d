from bracket_engine.config import EngineSettings
from bracket_engine.models import Match, MatchStatus, Participant
from bracket_engine.standings import calculate_standings

SETTINGS = EngineSettings()


def make_participants(*ids: str) -> list[Participant]:
    return [Participant(participant_id=pid, name=pid.upper()) for pid in ids]


def played(
    match_id: str, home: str, away: str, home_score: int, away_score: int
) -> Match:
    return Match(
        match_id=match_id,
        round_number=1,
        match_number=1,
        participant1_id=home,
        participant2_id=away,
        status=MatchStatus.COMPLETED,
        participant1_score=home_score,
        participant2_score=away_score,
    )


def test_points_goal_difference_and_positions():
    matches = [
        played("m1", "a", "b", 2, 1),
        played("m2", "b", "c", 3, 0),
        played("m3", "a", "c", 1, 1),
    ]

    standings = calculate_standings(
        matches, make_participants("a", "b", "c"), settings=SETTINGS
    )

    assert [s.participant_id for s in standings] == ["a", "b", "c"]
    assert [s.points for s in standings] == [4, 3, 1]
    assert [s.position for s in standings] == [1, 2, 3]
    leader = standings[0]
    assert (leader.wins, leader.draws, leader.losses) == (1, 1, 0)
    assert leader.goals_for == 3
    assert leader.goal_difference == 1
    assert standings[1].goal_difference == 2
    assert leader.form == ["W", "D"]


def test_head_to_head_breaks_full_tie():
    matches = [
        played("m1", "a", "b", 1, 0),
        played("m2", "d", "a", 1, 0),
        played("m3", "b", "c", 1, 0),
    ]

    standings = calculate_standings(
        matches, make_participants("b", "a", "c", "d"), settings=SETTINGS
    )

    assert [s.participant_id for s in standings] == ["d", "a", "b", "c"]
    a, b = standings[1], standings[2]
    assert (a.points, a.goal_difference, a.goals_for) == (
        b.points,
        b.goal_difference,
        b.goals_for,
    )
    assert a.head_to_head["b"].wins == 1
    assert b.head_to_head["a"].losses == 1


def test_unresolvable_tie_keeps_participant_order():
    standings = calculate_standings(
        [], make_participants("z", "y", "x"), settings=SETTINGS
    )

    assert [s.participant_id for s in standings] == ["z", "y", "x"]
    assert all(s.matches_played == 0 for s in standings)


def test_pending_and_unknown_matches_are_ignored():
    pending = played("m1", "a", "b", 5, 0)
    pending.status = MatchStatus.PENDING
    stranger = played("m2", "a", "ghost", 3, 0)

    standings = calculate_standings(
        [pending, stranger], make_participants("a", "b"), settings=SETTINGS
    )

    assert all(s.matches_played == 0 for s in standings)
    assert all(s.points == 0 for s in standings)


def test_form_keeps_most_recent_results():
    matches = [
        played("m1", "a", "b", 1, 0),
        played("m2", "a", "b", 0, 1),
        played("m3", "a", "b", 2, 2),
    ]

    standings = calculate_standings(
        matches,
        make_participants("a", "b"),
        settings=EngineSettings(form_length=2),
    )

    by_id = {s.participant_id: s for s in standings}
    assert by_id["a"].form == ["L", "D"]
    assert by_id["b"].form == ["W", "D"]
    assert by_id["a"].head_to_head["b"].to_dict() == {
        "wins": 1,
        "losses": 1,
        "draws": 1,
    }


def test_standing_to_dict_includes_goal_difference():
    standings = calculate_standings(
        [played("m1", "a", "b", 3, 1)], make_participants("a", "b"), settings=SETTINGS
    )

    data = standings[0].to_dict()
    assert data["goal_difference"] == 2
    assert data["head_to_head"] == {"b": {"wins": 1, "losses": 0, "draws": 0}}
    assert data["position"] == 1


def test_unscored_result_falls_back_to_winner():
    match = Match(
        match_id="m1",
        round_number=1,
        match_number=1,
        participant1_id="a",
        participant2_id="b",
        status=MatchStatus.COMPLETED,
        winner_id="b",
    )

    standings = calculate_standings(
        [match], make_participants("a", "b"), settings=SETTINGS
    )

    assert [(s.participant_id, s.wins, s.losses, s.draws) for s in standings] == [
        ("b", 1, 0, 0),
        ("a", 0, 1, 0),
    ]
    assert standings[0].form == ["W"]


def test_recalculating_same_history_is_stable():
    matches = [
        played("m1", "a", "b", 1, 1),
        played("m2", "c", "d", 2, 2),
        played("m3", "a", "c", 0, 3),
        played("m4", "b", "d", 1, 0),
    ]
    participants = make_participants("a", "b", "c", "d")

    first = calculate_standings(matches, participants, settings=SETTINGS)
    second = calculate_standings(matches, participants, settings=SETTINGS)

    assert [s.to_dict() for s in first] == [s.to_dict() for s in second]
    assert [s.position for s in first] == [1, 2, 3, 4]
