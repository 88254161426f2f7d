"""Seeding strategies that order participants into seed positions 1..N."""

from __future__ import annotations

import logging
import math
import random
import statistics
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from enum import Enum

from .errors import require_participants
from .models import Participant

log = logging.getLogger(__name__)

BASELINE_RATING = 1000
UNSEEDED_SORT_VALUE = 999


class SeedingStrategy(str, Enum):
    RANDOM = "random"
    MANUAL = "manual"
    RANKED = "ranked"
    RECENT_PERFORMANCE = "recent_performance"
    SKILL_BALANCED = "skill_balanced"
    AI_OPTIMIZED = "ai_optimized"


@dataclass(frozen=True, slots=True)
class SeedingWeights:
    recent: float = 0.7
    overall: float = 0.3
    win_rate: float = 0.2


RECENT_PERFORMANCE_WEIGHTS = SeedingWeights(recent=0.8, overall=0.2)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def recent_win_rate(participant: Participant) -> float | None:
    if not participant.recent_matches:
        return None
    wins = sum(1 for result in participant.recent_matches if result.won)
    return wins / len(participant.recent_matches)


def calculate_effective_rating(
    participant: Participant, weights: SeedingWeights | None = None
) -> int:
    """Blend base rating, recent form and overall win rate into one number.

    The recency bonus is ``(recent win rate - 0.5) * 200`` so a perfect recent
    record is worth +100 rating before weighting. The win-rate term is
    ``(win_rate - 50) * 2``.
    """
    weights = weights or SeedingWeights()
    base = participant.rating
    rate = recent_win_rate(participant)
    recent_bonus = (rate - 0.5) * 200 if rate is not None else 0.0
    win_rate_bonus = (participant.win_rate - 50) * 2
    effective = (
        base * weights.overall
        + (base + recent_bonus) * weights.recent
        + win_rate_bonus * weights.win_rate
    )
    return round_half_up(effective)


def calculate_volatility(participant: Participant) -> float:
    if len(participant.recent_matches) < 3:
        return 0.0
    ratings = [
        result.performance_rating
        if result.performance_rating is not None
        else BASELINE_RATING
        for result in participant.recent_matches
    ]
    return statistics.pstdev(ratings) / 100


def calculate_matchup_value(participant: Participant) -> float:
    value = max(0.0, (participant.rating - BASELINE_RATING) / 100)
    if participant.kda_ratio:
        value += min(2.0, participant.kda_ratio - 1)
    if participant.comeback_rate is not None and participant.comeback_rate > 30:
        value += 1
    return value


def _number(participants: Sequence[Participant]) -> list[Participant]:
    return [
        replace(p, seed=index, recent_matches=list(p.recent_matches))
        for index, p in enumerate(participants, start=1)
    ]


def _random(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    # random.shuffle is an in-place Fisher-Yates shuffle.
    rng.shuffle(participants)
    return participants


def _manual(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    return sorted(participants, key=lambda p: p.seed or UNSEEDED_SORT_VALUE)


def _ranked(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    return sorted(participants, key=lambda p: -p.rating)


def _recent_performance(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    return sorted(
        participants,
        key=lambda p: -calculate_effective_rating(p, RECENT_PERFORMANCE_WEIGHTS),
    )


def interleave_halves(ordered: Sequence[Participant]) -> list[Participant]:
    split = math.ceil(len(ordered) / 2)
    top, bottom = ordered[:split], ordered[split:]
    balanced: list[Participant] = []
    for index in range(max(len(top), len(bottom))):
        if index < len(top):
            balanced.append(top[index])
        if index < len(bottom):
            balanced.append(bottom[index])
    return balanced


def _skill_balanced(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    ordered = sorted(
        participants, key=lambda p: -calculate_effective_rating(p, weights)
    )
    return interleave_halves(ordered)


def ai_optimized_score(participant: Participant, weights: SeedingWeights) -> float:
    return (
        calculate_effective_rating(participant, weights)
        + calculate_matchup_value(participant) * 50
        - calculate_volatility(participant) * 25
    )


def _ai_optimized(
    participants: list[Participant], weights: SeedingWeights, rng: random.Random
) -> list[Participant]:
    return sorted(participants, key=lambda p: -ai_optimized_score(p, weights))


_STRATEGIES: dict[
    SeedingStrategy,
    Callable[[list[Participant], SeedingWeights, random.Random], list[Participant]],
] = {
    SeedingStrategy.RANDOM: _random,
    SeedingStrategy.MANUAL: _manual,
    SeedingStrategy.RANKED: _ranked,
    SeedingStrategy.RECENT_PERFORMANCE: _recent_performance,
    SeedingStrategy.SKILL_BALANCED: _skill_balanced,
    SeedingStrategy.AI_OPTIMIZED: _ai_optimized,
}


def resolve_strategy(strategy: SeedingStrategy | str) -> SeedingStrategy:
    try:
        return SeedingStrategy(strategy)
    except ValueError:
        log.debug("Unknown seeding strategy %r; using ranked", strategy)
        return SeedingStrategy.RANKED


def seed_participants(
    participants: Sequence[Participant],
    strategy: SeedingStrategy | str = SeedingStrategy.RANKED,
    *,
    weights: SeedingWeights | None = None,
    rng: random.Random | None = None,
) -> list[Participant]:
    """Return copies of ``participants`` ordered by seed with ``seed`` set 1..N."""
    require_participants(len(participants))
    resolved = resolve_strategy(strategy)
    ordering = _STRATEGIES[resolved](
        list(participants), weights or SeedingWeights(), rng or random.Random()
    )
    seeded = _number(ordering)
    log.debug("Seeded %d participants with %s", len(seeded), resolved.value)
    return seeded


@dataclass(slots=True)
class GroupingOption:
    group_count: int
    participants_per_group: int
    matches_per_group: int
    total_matches: int
    estimated_minutes: int
    fits: bool
    efficiency: float


def calculate_optimal_grouping(
    total_participants: int, max_match_minutes: int, available_minutes: int
) -> tuple[GroupingOption | None, list[GroupingOption]]:
    """Suggest a group count for grouped round robin within a time budget."""
    options: list[GroupingOption] = []
    upper = min(8, total_participants // 3)
    for group_count in range(2, upper + 1):
        per_group = math.ceil(total_participants / group_count)
        matches_per_group = per_group * (per_group - 1) // 2
        total_matches = matches_per_group * group_count
        estimated = total_matches * max_match_minutes
        options.append(
            GroupingOption(
                group_count=group_count,
                participants_per_group=per_group,
                matches_per_group=matches_per_group,
                total_matches=total_matches,
                estimated_minutes=estimated,
                fits=estimated <= available_minutes,
                efficiency=(
                    estimated / available_minutes if available_minutes > 0 else 0.0
                ),
            )
        )
    fitting = [option for option in options if option.fits]
    if fitting:
        optimal: GroupingOption | None = max(fitting, key=lambda o: o.efficiency)
    else:
        optimal = options[0] if options else None
    return optimal, options


__all__ = [
    "SeedingStrategy",
    "SeedingWeights",
    "GroupingOption",
    "ai_optimized_score",
    "calculate_effective_rating",
    "calculate_matchup_value",
    "calculate_optimal_grouping",
    "calculate_volatility",
    "interleave_halves",
    "recent_win_rate",
    "resolve_strategy",
    "seed_participants",
]
