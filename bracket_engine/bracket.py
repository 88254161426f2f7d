from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from math import log2

from .config import EngineSettings, read_engine_settings
from .errors import (
    InvalidBracketSizeError,
    InvalidWinnerError,
    MatchNotFoundError,
    MatchNotReadyError,
    require_participants,
)
from .events import BracketRebuilt, EngineEvent, MatchCompleted
from .models import (
    Bracket,
    BracketType,
    Match,
    MatchLocation,
    MatchStatus,
    Participant,
    Round,
    TournamentFormat,
    format_iso,
)

log = logging.getLogger(__name__)

MINUTES_PER_MATCH = 15
GRAND_FINAL_ID = "GF"


@dataclass(slots=True)
class BuildResult:
    bracket: Bracket
    events: list[EngineEvent] = field(default_factory=list)


@dataclass(slots=True)
class AdvanceResult:
    bracket: Bracket
    events: list[EngineEvent] = field(default_factory=list)
    eliminated: list[str] = field(default_factory=list)


def _next_power_of_two(value: int) -> int:
    if value <= 0:
        raise ValueError("Value must be positive")
    return 1 << (value - 1).bit_length()


def _round_name(round_number: int, total_rounds: int) -> str:
    remaining = total_rounds - round_number + 1
    if remaining == 1:
        return "Finals"
    if remaining == 2:
        return "Semifinals"
    if remaining == 3:
        return "Quarterfinals"
    if remaining <= 5:
        return f"Round of {2**remaining}"
    return f"Round {round_number}"


def _timestamp(now: datetime | None) -> str:
    return format_iso(now or datetime.now(UTC))


def is_valid_bracket_size(
    participant_count: int, settings: EngineSettings | None = None
) -> bool:
    settings = settings or read_engine_settings()
    return settings.min_participants <= participant_count <= settings.max_participants


def _validate_entrants(
    participants: Sequence[Participant], settings: EngineSettings
) -> None:
    require_participants(len(participants), settings.min_participants)
    if len(participants) > settings.max_participants:
        raise InvalidBracketSizeError(
            f"Brackets support at most {settings.max_participants} participants "
            f"(got {len(participants)})"
        )
    ids = [p.participant_id for p in participants]
    if len(set(ids)) != len(ids):
        raise InvalidBracketSizeError("Participant ids must be unique")


def _winner_rounds(participants: Sequence[Participant], bracket_size: int) -> list[Round]:
    total_rounds = int(log2(bracket_size))
    padded: list[str | None] = [p.participant_id for p in participants]
    padded.extend([None] * (bracket_size - len(padded)))

    rounds: list[Round] = []
    first_round = [
        Match(
            match_id=f"R1M{index // 2 + 1}",
            round_number=1,
            match_number=index // 2 + 1,
            participant1_id=padded[index],
            participant2_id=padded[index + 1],
        )
        for index in range(0, bracket_size, 2)
    ]
    rounds.append(Round(1, _round_name(1, total_rounds), first_round))

    match_count = bracket_size // 4
    for round_number in range(2, total_rounds + 1):
        matches = [
            Match(
                match_id=f"R{round_number}M{number}",
                round_number=round_number,
                match_number=number,
            )
            for number in range(1, match_count + 1)
        ]
        rounds.append(
            Round(round_number, _round_name(round_number, total_rounds), matches)
        )
        match_count //= 2
    return rounds


def loser_round_sizes(bracket_size: int) -> list[int]:
    """Match count per loser-bracket round for a winner bracket of ``bracket_size``.

    Rounds come in pairs: the first of each pair absorbs drop-downs from the
    winner bracket, the second halves the field. ``2 * (log2(size) - 1)``
    rounds in total, ``bracket_size - 2`` matches overall.
    """
    winner_rounds = int(log2(bracket_size))
    sizes: list[int] = []
    for pair in range(1, winner_rounds):
        count = bracket_size // 2 ** (pair + 1)
        sizes.extend([count, count])
    return sizes


def _loser_rounds(bracket_size: int) -> list[Round]:
    rounds: list[Round] = []
    for round_number, count in enumerate(loser_round_sizes(bracket_size), start=1):
        matches = [
            Match(
                match_id=f"L{round_number}M{number}",
                round_number=round_number,
                match_number=number,
                bracket_type=BracketType.LOSER,
            )
            for number in range(1, count + 1)
        ]
        rounds.append(Round(round_number, f"Loser Round {round_number}", matches))
    return rounds


def _build(
    participants: Sequence[Participant],
    tournament_format: TournamentFormat,
    tournament_id: str,
    settings: EngineSettings | None,
    now: datetime | None,
) -> BuildResult:
    settings = settings or read_engine_settings()
    _validate_entrants(participants, settings)

    bracket_size = _next_power_of_two(len(participants))
    bracket = Bracket(
        tournament_id=tournament_id,
        format=tournament_format,
        bracket_size=bracket_size,
        participant_count=len(participants),
        created_at=_timestamp(now),
        rounds=_winner_rounds(participants, bracket_size),
        participants={p.participant_id: p.name for p in participants},
    )
    if tournament_format is TournamentFormat.DOUBLE_ELIMINATION:
        bracket.loser_rounds = _loser_rounds(bracket_size)
        bracket.grand_final = Match(
            match_id=GRAND_FINAL_ID,
            round_number=1,
            match_number=1,
            bracket_type=BracketType.GRAND_FINAL,
            reset_possible=True,
        )

    events: list[EngineEvent] = []
    events.extend(_auto_resolve(bracket, now))
    events.append(BracketRebuilt(tournament_id))
    log.info(
        "Built %s bracket %s: %d participants, size %d",
        tournament_format.value,
        tournament_id,
        len(participants),
        bracket_size,
    )
    return BuildResult(bracket=bracket, events=events)


def build_single_elimination(
    participants: Sequence[Participant],
    *,
    tournament_id: str = "default",
    settings: EngineSettings | None = None,
    now: datetime | None = None,
) -> BuildResult:
    """Build a single-elimination bracket from a seeded participant list.

    Byes pad the list up to the next power of two and are resolved before the
    bracket is returned.
    """
    return _build(
        participants, TournamentFormat.SINGLE_ELIMINATION, tournament_id, settings, now
    )


def build_double_elimination(
    participants: Sequence[Participant],
    *,
    tournament_id: str = "default",
    settings: EngineSettings | None = None,
    now: datetime | None = None,
) -> BuildResult:
    return _build(
        participants, TournamentFormat.DOUBLE_ELIMINATION, tournament_id, settings, now
    )


def build_bracket(
    participants: Sequence[Participant],
    tournament_format: TournamentFormat | str,
    *,
    tournament_id: str = "default",
    settings: EngineSettings | None = None,
    now: datetime | None = None,
) -> BuildResult:
    return _build(
        participants, TournamentFormat(tournament_format), tournament_id, settings, now
    )


# ----- Routing -----
def _winner_target(
    bracket: Bracket, location: MatchLocation
) -> tuple[Match, int] | None:
    index = location.match_index
    if location.bracket_type is BracketType.WINNER:
        if location.round_index < len(bracket.rounds) - 1:
            next_round = bracket.rounds[location.round_index + 1]
            return next_round.matches[index // 2], index % 2
        if bracket.grand_final is not None:
            return bracket.grand_final, 0
        return None
    if location.bracket_type is BracketType.LOSER:
        rounds = bracket.loser_rounds
        if location.round_index < len(rounds) - 1:
            next_round = rounds[location.round_index + 1]
            if location.round_index % 2 == 0:
                return next_round.matches[index], 0
            return next_round.matches[index // 2], index % 2
        if bracket.grand_final is not None:
            return bracket.grand_final, 1
    return None


def _loser_target(
    bracket: Bracket, location: MatchLocation
) -> tuple[Match, int] | None:
    if bracket.format is not TournamentFormat.DOUBLE_ELIMINATION:
        return None
    if location.bracket_type is not BracketType.WINNER:
        return None
    index = location.match_index
    if not bracket.loser_rounds:
        if bracket.grand_final is None:
            return None
        return bracket.grand_final, 1
    if location.round_index == 0:
        return bracket.loser_rounds[0].matches[index // 2], index % 2
    target_round = bracket.loser_rounds[2 * location.round_index - 1]
    return target_round.matches[index], 1


def _feeders(bracket: Bracket) -> dict[tuple[str, int], tuple[Match, str]]:
    feeders: dict[tuple[str, int], tuple[Match, str]] = {}
    for match in bracket.all_matches():
        location = _location(bracket, match.match_id)
        for outcome, target in (
            ("winner", _winner_target(bracket, location)),
            ("loser", _loser_target(bracket, location)),
        ):
            if target is not None:
                target_match, slot_index = target
                feeders[(target_match.match_id, slot_index)] = (match, outcome)
    return feeders


def _delivered(source: Match, outcome: str) -> str | None:
    if outcome == "winner":
        return source.winner_id
    return source.loser_id()


def _slot_dead(
    match: Match, slot_index: int, feeders: dict[tuple[str, int], tuple[Match, str]]
) -> bool:
    if match.slots[slot_index] is not None:
        return False
    feeder = feeders.get((match.match_id, slot_index))
    if feeder is None:
        return True
    source, outcome = feeder
    return source.is_resolved and _delivered(source, outcome) is None


def _propagate(bracket: Bracket, match: Match) -> None:
    location = _location(bracket, match.match_id)
    for participant_id, target in (
        (match.winner_id, _winner_target(bracket, location)),
        (match.loser_id(), _loser_target(bracket, location)),
    ):
        if participant_id is None or target is None:
            continue
        target_match, slot_index = target
        target_match.set_slot(slot_index, participant_id)
        if target_match.is_ready:
            target_match.status = MatchStatus.PENDING
            log.debug("Match %s is ready to be played", target_match.match_id)


def _auto_resolve(bracket: Bracket, now: datetime | None) -> list[EngineEvent]:
    """Complete byes and walkovers until nothing else can resolve on its own."""
    events: list[EngineEvent] = []
    feeders = _feeders(bracket)
    while True:
        resolved_any = False
        for match in bracket.all_matches():
            if match.is_resolved or match.is_ready:
                continue
            first, second = match.slots
            first_dead = _slot_dead(match, 0, feeders)
            second_dead = _slot_dead(match, 1, feeders)
            if first is not None and second_dead:
                match.winner_id = first
            elif second is not None and first_dead:
                match.winner_id = second
            elif not (first_dead and second_dead):
                continue
            match.status = MatchStatus.COMPLETED
            match.completed_at = _timestamp(now)
            _propagate(bracket, match)
            events.append(MatchCompleted(match.match_id, match.winner_id))
            log.debug(
                "Auto-resolved %s (winner=%s)", match.match_id, match.winner_id
            )
            resolved_any = True
        if not resolved_any:
            return events


def _eliminated_by(bracket: Bracket, match: Match) -> list[str]:
    loser = match.loser_id()
    if loser is None:
        return []
    if bracket.format is TournamentFormat.SINGLE_ELIMINATION:
        return [loser]
    if match.bracket_type is BracketType.LOSER:
        return [loser]
    if match.bracket_type is BracketType.GRAND_FINAL:
        # A loser-bracket champion winning game one forces a possible reset.
        if match.reset_possible and match.winner_id == match.participant2_id:
            return []
        return [loser]
    return []


def _locate_match(bracket: Bracket, match_id: str) -> Match:
    match = bracket.find_match(match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    return match


def _location(bracket: Bracket, match_id: str) -> MatchLocation:
    location = bracket.locate(match_id)
    if location is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    return location


def _complete(
    bracket: Bracket,
    match: Match,
    winner_id: str,
    status: MatchStatus,
    now: datetime | None,
) -> AdvanceResult:
    match.winner_id = winner_id
    match.status = status
    match.completed_at = _timestamp(now)
    _propagate(bracket, match)
    events: list[EngineEvent] = [MatchCompleted(match.match_id, winner_id)]
    eliminated = _eliminated_by(bracket, match)
    events.extend(_auto_resolve(bracket, now))
    log.info(
        "Match %s %s; winner %s", match.match_id, status.value, winner_id
    )
    return AdvanceResult(bracket=bracket, events=events, eliminated=eliminated)


def validate_match_result(
    match: Match, winner_id: str, score: object | None = None
) -> None:
    """Check that ``winner_id`` (and ``score``, when given) can be recorded."""
    if not match.is_ready:
        raise MatchNotReadyError(f"Match {match.match_id} is waiting for an opponent")
    if winner_id not in match.slots:
        raise InvalidWinnerError(
            f"{winner_id} is not a participant of match {match.match_id}"
        )
    if score is not None and not isinstance(score, dict):
        raise InvalidWinnerError(f"Score for match {match.match_id} must be a mapping")


def advance_winner(
    bracket: Bracket,
    match_id: str,
    winner_id: str,
    *,
    score: dict[str, object] | None = None,
    participant1_score: int | None = None,
    participant2_score: int | None = None,
    now: datetime | None = None,
) -> AdvanceResult:
    """Record ``winner_id`` for ``match_id`` and move them to their next match.

    The input bracket is left untouched; the updated copy is returned. Calling
    again with the same match and winner is a no-op that succeeds.
    """
    working = bracket.clone()
    match = _locate_match(working, match_id)
    if match.is_resolved:
        if match.winner_id == winner_id:
            log.debug("Match %s already won by %s", match_id, winner_id)
            return AdvanceResult(bracket=working)
        raise InvalidWinnerError(
            f"Match {match_id} already has a different winner recorded"
        )
    validate_match_result(match, winner_id, score)
    if score is not None:
        match.score = dict(score)
    if participant1_score is not None:
        match.participant1_score = participant1_score
    if participant2_score is not None:
        match.participant2_score = participant2_score
    return _complete(working, match, winner_id, MatchStatus.COMPLETED, now)


def forfeit_match(
    bracket: Bracket,
    match_id: str,
    forfeiting_id: str,
    *,
    now: datetime | None = None,
) -> AdvanceResult:
    """Award the match to the opponent of ``forfeiting_id``."""
    working = bracket.clone()
    match = _locate_match(working, match_id)
    opponent = match.opponent_of(forfeiting_id)
    if match.is_resolved:
        if match.status is MatchStatus.FORFEIT and match.winner_id == opponent:
            return AdvanceResult(bracket=working)
        raise InvalidWinnerError(f"Match {match_id} is already decided")
    if not match.involves(forfeiting_id):
        raise InvalidWinnerError(
            f"{forfeiting_id} is not a participant of match {match_id}"
        )
    if not match.is_ready or opponent is None:
        raise MatchNotReadyError(f"Match {match_id} is waiting for an opponent")
    return _complete(working, match, opponent, MatchStatus.FORFEIT, now)


def start_match(bracket: Bracket, match_id: str) -> Bracket:
    working = bracket.clone()
    match = _locate_match(working, match_id)
    if match.status is MatchStatus.IN_PROGRESS:
        return working
    if match.is_resolved or not match.is_ready:
        raise MatchNotReadyError(f"Match {match_id} cannot be started")
    match.status = MatchStatus.IN_PROGRESS
    return working


def next_matches(bracket: Bracket) -> list[Match]:
    return [
        match
        for match in bracket.all_matches()
        if match.status is MatchStatus.PENDING and match.is_ready
    ]


def matches_in_progress(bracket: Bracket) -> list[Match]:
    return [
        match
        for match in bracket.all_matches()
        if match.status is MatchStatus.IN_PROGRESS
    ]


def _deciding_match(bracket: Bracket) -> Match | None:
    if bracket.grand_final is not None:
        return bracket.grand_final
    if not bracket.rounds:
        return None
    return bracket.rounds[-1].matches[0]


def is_complete(bracket: Bracket) -> bool:
    final = _deciding_match(bracket)
    return final is not None and final.is_resolved and final.winner_id is not None


def champion(bracket: Bracket) -> str | None:
    final = _deciding_match(bracket)
    if final is None or not final.is_resolved:
        return None
    return final.winner_id


def played_matches(bracket: Bracket) -> list[Match]:
    """Matches decided between two real participants (byes excluded)."""
    return [
        match
        for match in bracket.all_matches()
        if match.is_resolved and match.is_ready
    ]


def estimate_duration(
    participant_count: int, tournament_format: TournamentFormat | str
) -> dict[str, int]:
    tournament_format = TournamentFormat(tournament_format)
    if tournament_format is TournamentFormat.SINGLE_ELIMINATION:
        matches = participant_count - 1
    else:
        matches = participant_count * 2 - 2
    minutes = matches * MINUTES_PER_MATCH
    return {
        "estimated_matches": matches,
        "estimated_minutes": minutes,
        "estimated_hours": -(-minutes // 60),
    }


def _display(bracket: Bracket, participant_id: str | None, dead: bool) -> str:
    if participant_id is None:
        return "BYE" if dead else "TBD"
    return bracket.participant_name(participant_id)


def _render_rounds(
    bracket: Bracket,
    rounds: Sequence[Round],
    feeders: dict[tuple[str, int], tuple[Match, str]],
) -> list[str]:
    lines: list[str] = []
    for round_ in rounds:
        lines.append(round_.name)
        for match in round_.matches:
            one = _display(bracket, match.participant1_id, _slot_dead(match, 0, feeders))
            two = _display(bracket, match.participant2_id, _slot_dead(match, 1, feeders))
            lines.append(f"  [{match.match_id}] {one} vs {two}")
            if match.winner_id is not None:
                lines.append(
                    f"    -> Winner: {bracket.participant_name(match.winner_id)}"
                )
            elif match.is_resolved:
                lines.append("    -> No contest")
            else:
                lines.append("    -> Winner: TBD")
        lines.append("")
    return lines


def render_bracket(bracket: Bracket, *, shrink_completed: bool = False) -> str:
    """Plain-text dump of the bracket, optionally hiding finished rounds."""
    start_index = 0
    if shrink_completed and bracket.rounds:
        last_index = len(bracket.rounds) - 1
        for idx, round_ in enumerate(bracket.rounds):
            if any(not match.is_resolved for match in round_.matches):
                start_index = idx
                break
        else:
            start_index = last_index

    feeders = _feeders(bracket)
    lines = _render_rounds(bracket, bracket.rounds[start_index:], feeders)
    lines.extend(_render_rounds(bracket, bracket.loser_rounds, feeders))
    if bracket.grand_final is not None:
        grand_final_round = Round(1, "Grand Final", [bracket.grand_final])
        lines.extend(_render_rounds(bracket, [grand_final_round], feeders))
    if lines and not lines[-1]:
        lines.pop()
    winner = champion(bracket)
    if winner is not None:
        lines.append(f"Champion: {bracket.participant_name(winner)}")
    return "\n".join(line.rstrip() for line in lines)


def simulate_tournament(
    bracket: Bracket, seeds: dict[str, int] | None = None
) -> tuple[Bracket, list[tuple[str, Bracket]]]:
    """Play out every match, favouring the better seed (or first slot).

    Returns the final bracket and a snapshot after each winner-bracket round.
    """
    seeds = seeds or {}
    working = bracket.clone()
    snapshots: list[tuple[str, Bracket]] = [("Initial Bracket", working.clone())]

    def favourite(match: Match) -> str:
        first, second = match.slots
        if first is None or second is None:
            raise MatchNotReadyError(
                f"Match {match.match_id} is waiting for an opponent"
            )
        return first if seeds.get(first, 999) <= seeds.get(second, 999) else second

    for round_index in range(len(working.rounds)):
        for match_index in range(len(working.rounds[round_index].matches)):
            match = working.rounds[round_index].matches[match_index]
            if match.is_resolved or not match.is_ready:
                continue
            working = advance_winner(working, match.match_id, favourite(match)).bracket
        snapshots.append(
            (f"After {working.rounds[round_index].name}", working.clone())
        )

    while True:
        ready = next_matches(working)
        if not ready:
            break
        working = advance_winner(
            working, ready[0].match_id, favourite(ready[0])
        ).bracket
    if working.loser_rounds or working.grand_final is not None:
        snapshots.append(("After Grand Final", working.clone()))
    return working, snapshots


__all__ = [
    "AdvanceResult",
    "BuildResult",
    "advance_winner",
    "build_bracket",
    "build_double_elimination",
    "build_single_elimination",
    "champion",
    "estimate_duration",
    "forfeit_match",
    "is_complete",
    "is_valid_bracket_size",
    "loser_round_sizes",
    "matches_in_progress",
    "next_matches",
    "played_matches",
    "render_bracket",
    "simulate_tournament",
    "start_match",
    "validate_match_result",
]
