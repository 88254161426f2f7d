"""Round-robin standings computed from completed match history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import cmp_to_key

from .config import EngineSettings, read_engine_settings
from .models import Match, MatchStatus, Participant

WIN_POINTS = 3
DRAW_POINTS = 1


@dataclass(slots=True)
class HeadToHead:
    wins: int = 0
    losses: int = 0
    draws: int = 0

    @property
    def points(self) -> int:
        return self.wins * WIN_POINTS + self.draws * DRAW_POINTS

    def to_dict(self) -> dict[str, int]:
        return {"wins": self.wins, "losses": self.losses, "draws": self.draws}


@dataclass(slots=True)
class Standing:
    participant_id: str
    name: str
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    head_to_head: dict[str, HeadToHead] = field(default_factory=dict)
    form: list[str] = field(default_factory=list)
    position: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> dict[str, object]:
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "position": self.position,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points": self.points,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "head_to_head": {
                opponent: record.to_dict()
                for opponent, record in self.head_to_head.items()
            },
            "form": list(self.form),
        }

    def _record(self, result: str, opponent_id: str, form_length: int) -> None:
        record = self.head_to_head.setdefault(opponent_id, HeadToHead())
        if result == "W":
            self.wins += 1
            self.points += WIN_POINTS
            record.wins += 1
        elif result == "L":
            self.losses += 1
            record.losses += 1
        else:
            self.draws += 1
            self.points += DRAW_POINTS
            record.draws += 1
        self.form.append(result)
        del self.form[:-form_length]


def _compare(first: Standing, second: Standing) -> int:
    if first.points != second.points:
        return second.points - first.points
    if first.goal_difference != second.goal_difference:
        return second.goal_difference - first.goal_difference
    if first.goals_for != second.goals_for:
        return second.goals_for - first.goals_for
    first_vs = first.head_to_head.get(second.participant_id)
    second_vs = second.head_to_head.get(first.participant_id)
    if first_vs is not None and second_vs is not None:
        return second_vs.points - first_vs.points
    return 0


def calculate_standings(
    matches: Sequence[Match],
    participants: Sequence[Participant],
    *,
    settings: EngineSettings | None = None,
) -> list[Standing]:
    """Rank participants by points, goal difference, goals for, then head-to-head.

    Only completed matches count. Ties that survive every criterion keep the
    order of ``participants`` (the sort is stable).
    """
    form_length = (settings or read_engine_settings()).form_length
    standings = {
        p.participant_id: Standing(participant_id=p.participant_id, name=p.name)
        for p in participants
    }

    for match in matches:
        if match.status is not MatchStatus.COMPLETED:
            continue
        if match.participant1_id is None or match.participant2_id is None:
            continue
        first = standings.get(match.participant1_id)
        second = standings.get(match.participant2_id)
        if first is None or second is None:
            continue

        score_one = match.participant1_score or 0
        score_two = match.participant2_score or 0
        first.matches_played += 1
        second.matches_played += 1
        first.goals_for += score_one
        first.goals_against += score_two
        second.goals_for += score_two
        second.goals_against += score_one

        unscored = match.participant1_score is None and match.participant2_score is None
        if unscored and match.winner_id is not None:
            won = match.winner_id == match.participant1_id
            results = ("W", "L") if won else ("L", "W")
        elif score_one > score_two:
            results = ("W", "L")
        elif score_two > score_one:
            results = ("L", "W")
        else:
            results = ("D", "D")
        first._record(results[0], second.participant_id, form_length)
        second._record(results[1], first.participant_id, form_length)

    ordered = sorted(standings.values(), key=cmp_to_key(_compare))
    for position, standing in enumerate(ordered, start=1):
        standing.position = position
    return ordered


__all__ = ["HeadToHead", "Standing", "calculate_standings"]
