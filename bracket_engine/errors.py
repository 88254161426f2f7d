from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable, enumerable failure kinds surfaced to the calling application."""

    INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
    MATCH_NOT_FOUND = "match_not_found"
    INVALID_WINNER = "invalid_winner"
    INVALID_PHASE_INDEX = "invalid_phase_index"
    DRAFT_ALREADY_COMPLETE = "draft_already_complete"
    NOT_YOUR_TURN = "not_your_turn"
    ITEM_ALREADY_EXCLUDED = "item_already_excluded"
    INVALID_BRACKET_SIZE = "invalid_bracket_size"
    INVALID_SELECTION = "invalid_selection"
    INVALID_DRAFT_CONFIGURATION = "invalid_draft_configuration"
    MATCH_NOT_READY = "match_not_ready"


class EngineError(ValueError):
    """Base exception for engine failures."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind.value, "message": self.message}


class InsufficientParticipantsError(EngineError):
    """Raised when fewer than two entrants are supplied."""

    kind = ErrorKind.INSUFFICIENT_PARTICIPANTS


class MatchNotFoundError(EngineError):
    kind = ErrorKind.MATCH_NOT_FOUND


class InvalidWinnerError(EngineError):
    """Raised when the winner is not one of the match participants."""

    kind = ErrorKind.INVALID_WINNER


class InvalidPhaseIndexError(EngineError):
    """Raised when a draft action targets a phase that is not open."""

    kind = ErrorKind.INVALID_PHASE_INDEX


class DraftAlreadyCompleteError(EngineError):
    kind = ErrorKind.DRAFT_ALREADY_COMPLETE


class NotYourTurnError(EngineError):
    kind = ErrorKind.NOT_YOUR_TURN


class ItemAlreadyExcludedError(EngineError):
    """Raised when a selection collides with a prior pick or ban."""

    kind = ErrorKind.ITEM_ALREADY_EXCLUDED


class MatchNotReadyError(EngineError):
    """Raised when a match is acted on before both participants are known."""

    kind = ErrorKind.MATCH_NOT_READY


class InvalidBracketSizeError(EngineError):
    kind = ErrorKind.INVALID_BRACKET_SIZE


class InvalidSelectionError(EngineError):
    kind = ErrorKind.INVALID_SELECTION


class InvalidDraftConfigurationError(EngineError):
    kind = ErrorKind.INVALID_DRAFT_CONFIGURATION


def require_participants(count: int, minimum: int = 2) -> int:
    if count < minimum:
        raise InsufficientParticipantsError(
            f"At least {minimum} participants are required (got {count})"
        )
    return count


__all__ = [
    "ErrorKind",
    "EngineError",
    "InsufficientParticipantsError",
    "MatchNotFoundError",
    "InvalidWinnerError",
    "InvalidPhaseIndexError",
    "DraftAlreadyCompleteError",
    "NotYourTurnError",
    "ItemAlreadyExcludedError",
    "InvalidBracketSizeError",
    "MatchNotReadyError",
    "InvalidSelectionError",
    "InvalidDraftConfigurationError",
    "require_participants",
]
