"""Events returned by engine operations for the caller to publish."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True, slots=True)
class MatchCompleted:
    match_id: str
    winner_id: str | None

    name: ClassVar[str] = "match_completed"

    def to_dict(self) -> dict[str, object]:
        return {
            "event": self.name,
            "match_id": self.match_id,
            "winner_id": self.winner_id,
        }


@dataclass(frozen=True, slots=True)
class PhaseAdvanced:
    match_id: str
    phase_index: int
    selection: Any | None = None

    name: ClassVar[str] = "phase_advanced"

    def to_dict(self) -> dict[str, object]:
        selection = self.selection.to_dict() if self.selection is not None else None
        return {
            "event": self.name,
            "match_id": self.match_id,
            "phase_index": self.phase_index,
            "selection": selection,
        }


@dataclass(frozen=True, slots=True)
class DraftCompleted:
    match_id: str

    name: ClassVar[str] = "draft_completed"

    def to_dict(self) -> dict[str, object]:
        return {"event": self.name, "match_id": self.match_id}


@dataclass(frozen=True, slots=True)
class BracketRebuilt:
    tournament_id: str

    name: ClassVar[str] = "bracket_rebuilt"

    def to_dict(self) -> dict[str, object]:
        return {"event": self.name, "tournament_id": self.tournament_id}


EngineEvent = MatchCompleted | PhaseAdvanced | DraftCompleted | BracketRebuilt


__all__ = [
    "BracketRebuilt",
    "DraftCompleted",
    "EngineEvent",
    "MatchCompleted",
    "PhaseAdvanced",
]
