"""Environment-driven settings for the bracket engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

log = logging.getLogger(__name__)

DEFAULT_MIN_PARTICIPANTS = 2
DEFAULT_MAX_PARTICIPANTS = 128
DEFAULT_DRAFT_TIME_LIMIT = 30
DEFAULT_FORM_LENGTH = 5


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Invalid %s=%s; falling back to %s", name, raw, default)
        return default


@dataclass(frozen=True)
class EngineSettings:
    min_participants: int = DEFAULT_MIN_PARTICIPANTS
    max_participants: int = DEFAULT_MAX_PARTICIPANTS
    draft_time_limit: int = DEFAULT_DRAFT_TIME_LIMIT
    form_length: int = DEFAULT_FORM_LENGTH

    def __post_init__(self) -> None:
        if self.min_participants < DEFAULT_MIN_PARTICIPANTS:
            raise ValueError("min_participants must be at least 2")
        if self.max_participants < self.min_participants:
            raise ValueError("max_participants must not be below min_participants")
        if self.draft_time_limit <= 0:
            raise ValueError("draft_time_limit must be positive")
        if self.form_length <= 0:
            raise ValueError("form_length must be positive")


def read_engine_settings() -> EngineSettings:
    min_participants = env_int(
        "BRACKET_MIN_PARTICIPANTS", default=DEFAULT_MIN_PARTICIPANTS
    )
    max_participants = env_int(
        "BRACKET_MAX_PARTICIPANTS", default=DEFAULT_MAX_PARTICIPANTS
    )
    # A bracket needs two entrants no matter what the environment says.
    min_participants = max(DEFAULT_MIN_PARTICIPANTS, min_participants or 0)
    if max_participants is None or max_participants < min_participants:
        log.warning(
            "BRACKET_MAX_PARTICIPANTS=%s is below the minimum; using %s",
            max_participants,
            DEFAULT_MAX_PARTICIPANTS,
        )
        max_participants = max(DEFAULT_MAX_PARTICIPANTS, min_participants)
    time_limit = env_int("DRAFT_DEFAULT_TIME_LIMIT", default=DEFAULT_DRAFT_TIME_LIMIT)
    if time_limit is None or time_limit <= 0:
        time_limit = DEFAULT_DRAFT_TIME_LIMIT
    form_length = env_int("STANDINGS_FORM_LENGTH", default=DEFAULT_FORM_LENGTH)
    if form_length is None or form_length <= 0:
        form_length = DEFAULT_FORM_LENGTH
    return EngineSettings(
        min_participants=min_participants,
        max_participants=max_participants,
        draft_time_limit=time_limit,
        form_length=form_length,
    )


__all__ = [
    "EngineSettings",
    "env_int",
    "read_engine_settings",
]
