"""Round-robin fixtures (circle method) and group creation."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from .config import EngineSettings, read_engine_settings
from .errors import InvalidBracketSizeError, require_participants
from .models import (
    Group,
    Match,
    MatchStatus,
    Participant,
    RoundRobinRound,
    RoundRobinSchedule,
)
from .seeding import SeedingWeights, calculate_effective_rating, round_half_up

log = logging.getLogger(__name__)

T = TypeVar("T")


class RoundRobinFormat(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    GROUPS = "groups"


class GroupCreationMethod(str, Enum):
    SKILL_BALANCED = "skill_balanced"
    SEEDED = "seeded"
    RANDOM = "random"


def circle_pairings(entries: Sequence[T]) -> list[list[tuple[T, T]]]:
    """Pair ``entries`` so everyone meets everyone once, one game per round.

    Entry 0 stays fixed while the others rotate. An odd field gets a bye
    entry; pairings against it are dropped.
    """
    players: list[T | None] = list(entries)
    if len(players) % 2 == 1:
        players.append(None)
    fixed, rotating = players[0], players[1:]
    size = len(rotating)

    schedule: list[list[tuple[T, T]]] = []
    for round_index in range(size):
        pairs: list[tuple[T | None, T | None]] = [(fixed, rotating[round_index])]
        for offset in range(1, len(players) // 2):
            home = rotating[(round_index + offset) % size]
            away = rotating[(round_index - offset) % size]
            pairs.append((home, away))
        schedule.append(
            [
                (home, away)  # type: ignore[misc]
                for home, away in pairs
                if home is not None and away is not None
            ]
        )
    return schedule


def _group_name(index: int) -> str:
    if index < 26:
        return f"Group {chr(65 + index)}"
    return f"Group {index + 1}"


def _validate_group_count(participant_count: int, group_count: int) -> None:
    if group_count < 1 or group_count > participant_count // 2:
        raise InvalidBracketSizeError(
            f"Cannot split {participant_count} participants into {group_count} "
            "groups of at least two"
        )


def _snake_indices(count: int, group_count: int) -> list[int]:
    indices: list[int] = []
    current, direction = 0, 1
    for _ in range(count):
        indices.append(current)
        current += direction
        if current >= group_count:
            current, direction = group_count - 1, -1
        elif current < 0:
            current, direction = 0, 1
    return indices


def create_groups(
    participants: Sequence[Participant],
    group_count: int,
    method: GroupCreationMethod | str = GroupCreationMethod.SKILL_BALANCED,
    *,
    weights: SeedingWeights | None = None,
    rng: random.Random | None = None,
) -> list[Group]:
    """Split participants into ``group_count`` groups.

    ``skill_balanced`` snake-drafts by effective rating, ``seeded`` deals
    rating order round-robin style and ``random`` deals a shuffled list.
    """
    require_participants(len(participants))
    _validate_group_count(len(participants), group_count)
    method = GroupCreationMethod(method)
    ratings = {
        p.participant_id: calculate_effective_rating(p, weights) for p in participants
    }

    if method is GroupCreationMethod.RANDOM:
        ordered = list(participants)
        (rng or random.Random()).shuffle(ordered)
    else:
        ordered = sorted(participants, key=lambda p: -ratings[p.participant_id])

    if method is GroupCreationMethod.SKILL_BALANCED:
        assignment = _snake_indices(len(ordered), group_count)
    else:
        assignment = [index % group_count for index in range(len(ordered))]

    groups = [
        Group(group_id=index + 1, name=_group_name(index), participants=[])
        for index in range(group_count)
    ]
    for participant, group_index in zip(ordered, assignment):
        groups[group_index].participants.append(participant)
    for group in groups:
        if group.participants:
            total = sum(ratings[p.participant_id] for p in group.participants)
            group.average_rating = round_half_up(total / len(group.participants))
    return groups


def _schedule_rounds(
    participants: Sequence[Participant],
    iterations: int,
    *,
    group_id: int | None = None,
) -> list[RoundRobinRound]:
    prefix = f"g{group_id}-" if group_id is not None else ""
    pairings = circle_pairings([p.participant_id for p in participants])
    rounds: list[RoundRobinRound] = []
    match_number = 1
    for iteration in range(1, iterations + 1):
        for pairs in pairings:
            round_number = len(rounds) + 1
            matches: list[Match] = []
            for home, away in pairs:
                if iteration % 2 == 0:
                    home, away = away, home
                matches.append(
                    Match(
                        match_id=f"{prefix}m{match_number}",
                        round_number=round_number,
                        match_number=match_number,
                        participant1_id=home,
                        participant2_id=away,
                        group_id=group_id,
                        iteration=iteration,
                    )
                )
                match_number += 1
            rounds.append(
                RoundRobinRound(
                    round_number=round_number,
                    iteration=iteration,
                    matches=matches,
                    group_id=group_id,
                )
            )
    return rounds


def generate_round_robin_schedule(
    participants: Sequence[Participant], *, iterations: int = 1
) -> list[RoundRobinRound]:
    require_participants(len(participants))
    return _schedule_rounds(participants, iterations)


def schedule_round_robin(
    participants: Sequence[Participant],
    schedule_format: RoundRobinFormat | str = RoundRobinFormat.SINGLE,
    *,
    group_count: int | None = None,
    group_method: GroupCreationMethod | str = GroupCreationMethod.SKILL_BALANCED,
    weights: SeedingWeights | None = None,
    rng: random.Random | None = None,
    settings: EngineSettings | None = None,
) -> RoundRobinSchedule:
    settings = settings or read_engine_settings()
    require_participants(len(participants), settings.min_participants)
    if len(participants) > settings.max_participants:
        raise InvalidBracketSizeError(
            f"Round robin supports at most {settings.max_participants} participants"
        )
    schedule_format = RoundRobinFormat(schedule_format)

    if schedule_format is RoundRobinFormat.SINGLE:
        schedule = RoundRobinSchedule(
            format=schedule_format.value,
            rounds=_schedule_rounds(participants, 1),
        )
    elif schedule_format is RoundRobinFormat.DOUBLE:
        schedule = RoundRobinSchedule(
            format=schedule_format.value,
            rounds=_schedule_rounds(participants, 2),
        )
    else:
        if group_count is None:
            group_count = math.ceil(len(participants) / 4)
        groups = create_groups(
            participants, group_count, group_method, weights=weights, rng=rng
        )
        rounds: list[RoundRobinRound] = []
        for group in groups:
            if len(group.participants) < 2:
                continue
            rounds.extend(
                _schedule_rounds(group.participants, 1, group_id=group.group_id)
            )
        schedule = RoundRobinSchedule(
            format=schedule_format.value, rounds=rounds, groups=groups
        )

    log.info(
        "Scheduled %s round robin: %d participants, %d matches",
        schedule_format.value,
        len(participants),
        schedule.total_matches,
    )
    return schedule


def next_round_matches(matches: Sequence[Match]) -> list[Match]:
    """Pending matches from the earliest round that still has any."""
    by_round: dict[int, list[Match]] = {}
    for match in matches:
        by_round.setdefault(match.round_number, []).append(match)
    for round_number in sorted(by_round):
        pending = [m for m in by_round[round_number] if m.status is MatchStatus.PENDING]
        if pending:
            return pending
    return []


def is_round_robin_complete(matches: Sequence[Match]) -> bool:
    return all(match.is_resolved for match in matches)


@dataclass(slots=True)
class FixtureRound:
    round_number: int
    matches: list[Match]
    completed: int = 0

    @property
    def total(self) -> int:
        return len(self.matches)


def fixtures_by_round(matches: Sequence[Match]) -> dict[int, FixtureRound]:
    fixtures: dict[int, FixtureRound] = {}
    for match in matches:
        fixture = fixtures.setdefault(
            match.round_number, FixtureRound(match.round_number, [])
        )
        fixture.matches.append(match)
        if match.is_resolved:
            fixture.completed += 1
    return fixtures


__all__ = [
    "FixtureRound",
    "GroupCreationMethod",
    "RoundRobinFormat",
    "circle_pairings",
    "create_groups",
    "fixtures_by_round",
    "generate_round_robin_schedule",
    "is_round_robin_complete",
    "next_round_matches",
    "schedule_round_robin",
]
