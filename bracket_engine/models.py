from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_iso(moment: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 string (ms precision)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    value = moment.astimezone(UTC).strftime(ISO_FORMAT)
    # strftime emits microseconds; trim to milliseconds.
    return value[:-4] + "Z"


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(UTC)


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return format_iso(datetime.now(UTC))


class ParticipantStatus(str, Enum):
    ACTIVE = "active"
    ELIMINATED = "eliminated"
    DISQUALIFIED = "disqualified"
    NO_SHOW = "no_show"


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FORFEIT = "forfeit"


class BracketType(str, Enum):
    WINNER = "winner"
    LOSER = "loser"
    GRAND_FINAL = "grand_final"


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    DOUBLE_ELIMINATION = "double_elimination"


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _optional_int(value: object) -> int | None:
    return int(value) if value is not None else None  # type: ignore[arg-type]


@dataclass(slots=True)
class RecentResult:
    won: bool
    performance_rating: float | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"won": self.won}
        if self.performance_rating is not None:
            data["performance_rating"] = self.performance_rating
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RecentResult:
        rating = data.get("performance_rating")
        return cls(
            won=bool(data.get("won", False)),
            performance_rating=float(rating) if rating is not None else None,  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class Participant:
    participant_id: str
    name: str
    seed: int | None = None
    rating: float = 1000
    status: ParticipantStatus = ParticipantStatus.ACTIVE
    win_rate: float = 50
    kda_ratio: float | None = None
    comeback_rate: float | None = None
    recent_matches: list[RecentResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "participant_id": self.participant_id,
            "name": self.name,
            "rating": self.rating,
            "status": self.status.value,
            "win_rate": self.win_rate,
        }
        if self.seed is not None:
            data["seed"] = self.seed
        if self.kda_ratio is not None:
            data["kda_ratio"] = self.kda_ratio
        if self.comeback_rate is not None:
            data["comeback_rate"] = self.comeback_rate
        if self.recent_matches:
            data["recent_matches"] = [m.to_dict() for m in self.recent_matches]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Participant:
        recent_data: Iterable[dict[str, object]] = data.get("recent_matches", [])  # type: ignore[assignment]
        kda = data.get("kda_ratio")
        comeback = data.get("comeback_rate")
        return cls(
            participant_id=str(data["participant_id"]),
            name=str(data.get("name", "")),
            seed=_optional_int(data.get("seed")),
            rating=float(data.get("rating", 1000)),  # type: ignore[arg-type]
            status=ParticipantStatus(str(data.get("status", "active"))),
            win_rate=float(data.get("win_rate", 50)),  # type: ignore[arg-type]
            kda_ratio=float(kda) if kda is not None else None,  # type: ignore[arg-type]
            comeback_rate=float(comeback) if comeback is not None else None,  # type: ignore[arg-type]
            recent_matches=[RecentResult.from_dict(item) for item in recent_data],
        )


@dataclass(slots=True)
class Match:
    match_id: str
    round_number: int
    match_number: int
    bracket_type: BracketType = BracketType.WINNER
    participant1_id: str | None = None
    participant2_id: str | None = None
    winner_id: str | None = None
    status: MatchStatus = MatchStatus.PENDING
    score: dict[str, object] | None = None
    participant1_score: int | None = None
    participant2_score: int | None = None
    completed_at: str | None = None
    group_id: int | None = None
    iteration: int | None = None
    reset_possible: bool = False

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "match_id": self.match_id,
            "round_number": self.round_number,
            "match_number": self.match_number,
            "bracket_type": self.bracket_type.value,
            "status": self.status.value,
        }
        optional = {
            "participant1_id": self.participant1_id,
            "participant2_id": self.participant2_id,
            "winner_id": self.winner_id,
            "score": self.score,
            "participant1_score": self.participant1_score,
            "participant2_score": self.participant2_score,
            "completed_at": self.completed_at,
            "group_id": self.group_id,
            "iteration": self.iteration,
        }
        for key, value in optional.items():
            if value is not None:
                data[key] = value
        if self.reset_possible:
            data["reset_possible"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Match:
        score = data.get("score")
        return cls(
            match_id=str(data.get("match_id", "")),
            round_number=int(data.get("round_number", 1)),  # type: ignore[arg-type]
            match_number=int(data.get("match_number", 1)),  # type: ignore[arg-type]
            bracket_type=BracketType(str(data.get("bracket_type", "winner"))),
            participant1_id=_optional_str(data.get("participant1_id")),
            participant2_id=_optional_str(data.get("participant2_id")),
            winner_id=_optional_str(data.get("winner_id")),
            status=MatchStatus(str(data.get("status", "pending"))),
            score=dict(score) if isinstance(score, dict) else None,
            participant1_score=_optional_int(data.get("participant1_score")),
            participant2_score=_optional_int(data.get("participant2_score")),
            completed_at=_optional_str(data.get("completed_at")),
            group_id=_optional_int(data.get("group_id")),
            iteration=_optional_int(data.get("iteration")),
            reset_possible=bool(data.get("reset_possible", False)),
        )

    @property
    def slots(self) -> tuple[str | None, str | None]:
        return (self.participant1_id, self.participant2_id)

    @property
    def is_ready(self) -> bool:
        return self.participant1_id is not None and self.participant2_id is not None

    @property
    def is_resolved(self) -> bool:
        return self.status in (MatchStatus.COMPLETED, MatchStatus.FORFEIT)

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.slots

    def opponent_of(self, participant_id: str) -> str | None:
        if participant_id == self.participant1_id:
            return self.participant2_id
        if participant_id == self.participant2_id:
            return self.participant1_id
        return None

    def loser_id(self) -> str | None:
        if self.winner_id is None or not self.is_ready:
            return None
        return self.opponent_of(self.winner_id)

    def set_slot(self, slot_index: int, participant_id: str | None) -> None:
        if slot_index == 0:
            self.participant1_id = participant_id
        else:
            self.participant2_id = participant_id


@dataclass(slots=True)
class Round:
    round_number: int
    name: str
    matches: list[Match]

    def to_dict(self) -> dict[str, object]:
        return {
            "round_number": self.round_number,
            "name": self.name,
            "matches": [match.to_dict() for match in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Round:
        matches_data: Iterable[dict[str, object]] = data.get("matches", [])  # type: ignore[assignment]
        return cls(
            round_number=int(data.get("round_number", 1)),  # type: ignore[arg-type]
            name=str(data.get("name", "")),
            matches=[Match.from_dict(item) for item in matches_data],
        )


@dataclass(slots=True)
class MatchLocation:
    bracket_type: BracketType
    round_index: int
    match_index: int


@dataclass(slots=True)
class Bracket:
    tournament_id: str
    format: TournamentFormat
    bracket_size: int
    participant_count: int
    created_at: str
    rounds: list[Round]
    loser_rounds: list[Round] = field(default_factory=list)
    grand_final: Match | None = None
    participants: dict[str, str] = field(default_factory=dict)

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_VALUE: ClassVar[str] = "BRACKET"
    MATCH_SK_TEMPLATE: ClassVar[str] = "MATCH#%s"

    @classmethod
    def key(cls, tournament_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % tournament_id, "sk": cls.SK_VALUE}

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "tournament_id": self.tournament_id,
            "format": self.format.value,
            "bracket_size": self.bracket_size,
            "participant_count": self.participant_count,
            "created_at": self.created_at,
            "rounds": [round_.to_dict() for round_ in self.rounds],
            "participants": dict(self.participants),
        }
        if self.loser_rounds:
            data["loser_rounds"] = [round_.to_dict() for round_ in self.loser_rounds]
        if self.grand_final is not None:
            data["grand_final"] = self.grand_final.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Bracket:
        rounds_data: Iterable[dict[str, object]] = data.get("rounds", [])  # type: ignore[assignment]
        loser_data: Iterable[dict[str, object]] = data.get("loser_rounds", [])  # type: ignore[assignment]
        grand_final = data.get("grand_final")
        participants = data.get("participants") or {}
        return cls(
            tournament_id=str(data.get("tournament_id", "")),
            format=TournamentFormat(str(data.get("format", "single_elimination"))),
            bracket_size=int(data.get("bracket_size", 0)),  # type: ignore[arg-type]
            participant_count=int(data.get("participant_count", 0)),  # type: ignore[arg-type]
            created_at=str(data.get("created_at", "")),
            rounds=[Round.from_dict(item) for item in rounds_data],
            loser_rounds=[Round.from_dict(item) for item in loser_data],
            grand_final=(
                Match.from_dict(grand_final)  # type: ignore[arg-type]
                if isinstance(grand_final, dict)
                else None
            ),
            participants={
                str(key): str(value) for key, value in dict(participants).items()  # type: ignore[call-overload]
            },
        )

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.tournament_id)
        item.update(self.to_dict())
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Bracket:
        data = dict(item)
        if "tournament_id" not in data:
            data["tournament_id"] = str(item["pk"]).split("#", 1)[1]
        return cls.from_dict(data)

    def match_rows(self) -> list[dict[str, object]]:
        """Flatten every match into a queryable row."""
        rows: list[dict[str, object]] = []
        for match in self.all_matches():
            row: dict[str, object] = {
                "pk": self.PK_TEMPLATE % self.tournament_id,
                "sk": self.MATCH_SK_TEMPLATE % match.match_id,
                "tournament_id": self.tournament_id,
            }
            row.update(match.to_dict())
            rows.append(row)
        return rows

    def clone(self) -> Bracket:
        return Bracket.from_dict(self.to_dict())

    def partition(self, bracket_type: BracketType) -> list[Round]:
        if bracket_type is BracketType.LOSER:
            return self.loser_rounds
        if bracket_type is BracketType.GRAND_FINAL:
            if self.grand_final is None:
                return []
            return [Round(round_number=1, name="Grand Final", matches=[self.grand_final])]
        return self.rounds

    def all_matches(self) -> Iterator[Match]:
        for round_ in self.rounds:
            yield from round_.matches
        for round_ in self.loser_rounds:
            yield from round_.matches
        if self.grand_final is not None:
            yield self.grand_final

    def find_match(self, match_id: str) -> Match | None:
        for match in self.all_matches():
            if match.match_id == match_id:
                return match
        return None

    def locate(self, match_id: str) -> MatchLocation | None:
        for bracket_type, rounds in (
            (BracketType.WINNER, self.rounds),
            (BracketType.LOSER, self.loser_rounds),
        ):
            for round_index, round_ in enumerate(rounds):
                for match_index, match in enumerate(round_.matches):
                    if match.match_id == match_id:
                        return MatchLocation(bracket_type, round_index, match_index)
        if self.grand_final is not None and self.grand_final.match_id == match_id:
            return MatchLocation(BracketType.GRAND_FINAL, 0, 0)
        return None

    def participant_name(self, participant_id: str | None) -> str:
        if participant_id is None:
            return "TBD"
        return self.participants.get(participant_id, participant_id)


@dataclass(slots=True)
class Group:
    group_id: int
    name: str
    participants: list[Participant]
    average_rating: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "group_id": self.group_id,
            "name": self.name,
            "participant_ids": [p.participant_id for p in self.participants],
            "average_rating": self.average_rating,
        }


@dataclass(slots=True)
class RoundRobinRound:
    round_number: int
    iteration: int
    matches: list[Match]
    group_id: int | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "round_number": self.round_number,
            "iteration": self.iteration,
            "matches": [match.to_dict() for match in self.matches],
        }
        if self.group_id is not None:
            data["group_id"] = self.group_id
        return data


@dataclass(slots=True)
class RoundRobinSchedule:
    format: str
    rounds: list[RoundRobinRound]
    groups: list[Group] = field(default_factory=list)

    @property
    def matches(self) -> list[Match]:
        return [match for round_ in self.rounds for match in round_.matches]

    @property
    def total_matches(self) -> int:
        return sum(len(round_.matches) for round_ in self.rounds)

    @property
    def total_rounds(self) -> int:
        if not self.groups:
            return len(self.rounds)
        per_group: dict[int | None, int] = {}
        for round_ in self.rounds:
            per_group[round_.group_id] = per_group.get(round_.group_id, 0) + 1
        return max(per_group.values(), default=0)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "format": self.format,
            "rounds": [round_.to_dict() for round_ in self.rounds],
            "total_matches": self.total_matches,
            "total_rounds": self.total_rounds,
        }
        if self.groups:
            data["groups"] = [group.to_dict() for group in self.groups]
        return data


__all__ = [
    "ISO_FORMAT",
    "format_iso",
    "parse_iso",
    "utc_now_iso",
    "ParticipantStatus",
    "MatchStatus",
    "BracketType",
    "TournamentFormat",
    "RecentResult",
    "Participant",
    "Match",
    "Round",
    "MatchLocation",
    "Bracket",
    "Group",
    "RoundRobinRound",
    "RoundRobinSchedule",
]
