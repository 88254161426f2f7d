"""Pick/ban draft state machine with server-authoritative phase timers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import ClassVar

from .config import read_engine_settings
from .errors import (
    DraftAlreadyCompleteError,
    InvalidDraftConfigurationError,
    InvalidPhaseIndexError,
    InvalidSelectionError,
    NotYourTurnError,
)
from .events import DraftCompleted, PhaseAdvanced
from .models import format_iso, parse_iso
from .selection import SelectionValidator, validator_for

log = logging.getLogger(__name__)

DEFAULT_SIDES = ("blue", "red")


class PhaseType(str, Enum):
    PICK = "pick"
    BAN = "ban"


class DraftStatus(str, Enum):
    NOT_STARTED = "not_started"
    AWAITING_SELECTION = "awaiting_selection"
    COMPLETE = "complete"


class PhaseOutcomeKind(str, Enum):
    SELECTED = "selected"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


@dataclass(slots=True)
class DraftPhase:
    phase_id: str
    order: int
    phase_type: PhaseType
    side: str | None
    time_limit_seconds: int
    turn_based: bool = True
    is_optional: bool = False
    name: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "phase_id": self.phase_id,
            "order": self.order,
            "phase_type": self.phase_type.value,
            "side": self.side,
            "time_limit_seconds": self.time_limit_seconds,
            "turn_based": self.turn_based,
            "is_optional": self.is_optional,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DraftPhase:
        side = data.get("side")
        return cls(
            phase_id=str(data["phase_id"]),
            order=int(data["order"]),  # type: ignore[arg-type]
            phase_type=PhaseType(data.get("phase_type", PhaseType.PICK.value)),
            side=str(side) if side is not None else None,
            time_limit_seconds=int(data["time_limit_seconds"]),  # type: ignore[arg-type]
            turn_based=bool(data.get("turn_based", True)),
            is_optional=bool(data.get("is_optional", False)),
            name=str(data.get("name") or ""),
        )


@dataclass(slots=True)
class Selection:
    phase_id: str
    phase_index: int
    side: str
    selection_type: PhaseType
    payload: dict[str, object]
    item_key: str
    selected_at: str

    def to_dict(self) -> dict[str, object]:
        return {
            "phase_id": self.phase_id,
            "phase_index": self.phase_index,
            "side": self.side,
            "selection_type": self.selection_type.value,
            "payload": dict(self.payload),
            "item_key": self.item_key,
            "selected_at": self.selected_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Selection:
        payload = data.get("payload") or {}
        return cls(
            phase_id=str(data["phase_id"]),
            phase_index=int(data["phase_index"]),  # type: ignore[arg-type]
            side=str(data["side"]),
            selection_type=PhaseType(data["selection_type"]),
            payload=dict(payload),  # type: ignore[call-overload]
            item_key=str(data["item_key"]),
            selected_at=str(data["selected_at"]),
        )


@dataclass(slots=True)
class PhaseOutcome:
    phase_index: int
    outcome: PhaseOutcomeKind
    closed_at: str

    def to_dict(self) -> dict[str, object]:
        return {
            "phase_index": self.phase_index,
            "outcome": self.outcome.value,
            "closed_at": self.closed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PhaseOutcome:
        return cls(
            phase_index=int(data["phase_index"]),  # type: ignore[arg-type]
            outcome=PhaseOutcomeKind(data["outcome"]),
            closed_at=str(data["closed_at"]),
        )


@dataclass(slots=True)
class DraftState:
    """Persistable snapshot of one match's draft.

    ``version`` increases with every committed transition so storage can
    reject a write based on a stale read.
    """

    match_id: str
    phases: list[DraftPhase]
    sides: tuple[str, ...] = DEFAULT_SIDES
    game_type: str = "freeform"
    status: DraftStatus = DraftStatus.NOT_STARTED
    current_index: int | None = None
    phase_opened_at: str | None = None
    selections: list[Selection] = field(default_factory=list)
    outcomes: list[PhaseOutcome] = field(default_factory=list)
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "MATCH#%s"
    SK_VALUE: ClassVar[str] = "DRAFT"
    SELECTION_SK_TEMPLATE: ClassVar[str] = "SELECTION#%03d"

    @classmethod
    def key(cls, match_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % match_id, "sk": cls.SK_VALUE}

    @property
    def current_phase(self) -> DraftPhase | None:
        if self.status is not DraftStatus.AWAITING_SELECTION:
            return None
        if self.current_index is None:
            return None
        return self.phases[self.current_index]

    @property
    def is_complete(self) -> bool:
        return self.status is DraftStatus.COMPLETE

    def picks_for(self, side: str) -> list[Selection]:
        return [
            s
            for s in self.selections
            if s.side == side and s.selection_type is PhaseType.PICK
        ]

    def bans_for(self, side: str) -> list[Selection]:
        return [
            s
            for s in self.selections
            if s.side == side and s.selection_type is PhaseType.BAN
        ]

    def to_dict(self) -> dict[str, object]:
        return {
            "match_id": self.match_id,
            "game_type": self.game_type,
            "sides": list(self.sides),
            "status": self.status.value,
            "current_index": self.current_index,
            "phase_opened_at": self.phase_opened_at,
            "phases": [phase.to_dict() for phase in self.phases],
            "selections": [selection.to_dict() for selection in self.selections],
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DraftState:
        current = data.get("current_index")
        opened = data.get("phase_opened_at")
        return cls(
            match_id=str(data["match_id"]),
            game_type=str(data.get("game_type") or "freeform"),
            sides=tuple(str(side) for side in data.get("sides") or DEFAULT_SIDES),  # type: ignore[union-attr]
            status=DraftStatus(data.get("status", DraftStatus.NOT_STARTED.value)),
            current_index=int(current) if current is not None else None,  # type: ignore[arg-type]
            phase_opened_at=str(opened) if opened is not None else None,
            phases=[DraftPhase.from_dict(p) for p in data.get("phases") or []],  # type: ignore[union-attr]
            selections=[
                Selection.from_dict(s)
                for s in data.get("selections") or []  # type: ignore[union-attr]
            ],
            outcomes=[
                PhaseOutcome.from_dict(o)
                for o in data.get("outcomes") or []  # type: ignore[union-attr]
            ],
            version=int(data.get("version") or 0),  # type: ignore[arg-type]
        )

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = self.key(self.match_id)
        item.update(self.to_dict())
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, object]) -> DraftState:
        data = dict(item)
        if "match_id" not in data:
            data["match_id"] = str(item["pk"]).split("#", 1)[1]
        return cls.from_dict(data)

    def clone(self) -> DraftState:
        return DraftState.from_dict(self.to_dict())


@dataclass(slots=True)
class DraftTransition:
    state: DraftState
    events: list[PhaseAdvanced | DraftCompleted] = field(default_factory=list)
    selection: Selection | None = None


def validate_phases(phases: Sequence[DraftPhase], sides: Sequence[str]) -> None:
    if not phases:
        raise InvalidDraftConfigurationError("A draft needs at least one phase")
    if len(set(sides)) != len(sides) or not sides:
        raise InvalidDraftConfigurationError("Draft sides must be distinct")
    expected = 1
    for phase in phases:
        if phase.order != expected:
            raise InvalidDraftConfigurationError(
                f"Phase {phase.phase_id!r} has order {phase.order}; expected {expected}"
            )
        expected += 1
        if phase.time_limit_seconds <= 0:
            raise InvalidDraftConfigurationError(
                f"Phase {phase.phase_id!r} needs a positive time limit"
            )
        if phase.turn_based and phase.side is None:
            raise InvalidDraftConfigurationError(
                f"Turn-based phase {phase.phase_id!r} must name a side"
            )
        if phase.side is not None and phase.side not in sides:
            raise InvalidDraftConfigurationError(
                f"Phase {phase.phase_id!r} belongs to unknown side {phase.side!r}"
            )
    phase_ids = [phase.phase_id for phase in phases]
    if len(set(phase_ids)) != len(phase_ids):
        raise InvalidDraftConfigurationError("Phase ids must be unique")


def new_draft(
    match_id: str,
    phases: Sequence[DraftPhase],
    *,
    sides: Sequence[str] = DEFAULT_SIDES,
    game_type: str = "freeform",
) -> DraftState:
    validate_phases(phases, sides)
    return DraftState(
        match_id=match_id,
        phases=[replace(phase) for phase in phases],
        sides=tuple(sides),
        game_type=game_type,
    )


class DraftEngine:
    """Applies draft transitions to :class:`DraftState` snapshots.

    Every method returns a new state and leaves its input untouched, so a
    rejected action never leaves a half-applied draft behind. The phase
    deadline is always ``phase_opened_at + time_limit_seconds`` as recorded
    in the state; client clocks play no part.
    """

    def __init__(self, validator: SelectionValidator | None = None) -> None:
        self._validator = validator

    def validator(self, state: DraftState) -> SelectionValidator:
        return self._validator or validator_for(state.game_type)

    # Queries

    def deadline(self, state: DraftState) -> datetime | None:
        phase = state.current_phase
        if phase is None or state.phase_opened_at is None:
            return None
        return parse_iso(state.phase_opened_at) + timedelta(
            seconds=phase.time_limit_seconds
        )

    def time_remaining(self, state: DraftState, now: datetime) -> float | None:
        deadline = self.deadline(state)
        if deadline is None:
            return None
        return max(0.0, (deadline - now).total_seconds())

    def current_phase(self, state: DraftState) -> DraftPhase | None:
        return state.current_phase

    def excluded_items(self, state: DraftState) -> list[str]:
        return [selection.item_key for selection in state.selections]

    def is_complete(self, state: DraftState) -> bool:
        return state.is_complete

    def can_select(self, state: DraftState, side: str, now: datetime) -> bool:
        phase = state.current_phase
        if phase is None:
            return False
        deadline = self.deadline(state)
        if deadline is not None and now >= deadline:
            return False
        return self._side_allowed(state, phase, side)

    # Transitions

    def start(self, state: DraftState, now: datetime) -> DraftTransition:
        if state.status is DraftStatus.COMPLETE:
            raise DraftAlreadyCompleteError(f"Draft for {state.match_id} is complete")
        if state.status is DraftStatus.AWAITING_SELECTION:
            raise InvalidPhaseIndexError(
                f"Draft for {state.match_id} has already started"
            )
        validate_phases(state.phases, state.sides)
        updated = state.clone()
        updated.status = DraftStatus.AWAITING_SELECTION
        updated.current_index = 0
        updated.phase_opened_at = format_iso(now)
        updated.version += 1
        log.info("Draft %s started with %d phases", state.match_id, len(state.phases))
        return DraftTransition(state=updated)

    def submit(
        self,
        state: DraftState,
        phase_index: int,
        side: str,
        payload: Mapping[str, object],
        now: datetime,
    ) -> DraftTransition:
        phase = self._open_phase(state, phase_index, now)
        if not self._side_allowed(state, phase, side):
            log.debug(
                "Rejected %s selection for %s phase %d", side, state.match_id, phase_index
            )
            raise NotYourTurnError(
                f"Phase {phase.phase_id!r} belongs to {phase.side!r}, not {side!r}"
            )
        item_key = self.validator(state).validate(payload, self.excluded_items(state))

        updated = state.clone()
        selection = Selection(
            phase_id=phase.phase_id,
            phase_index=phase_index,
            side=side,
            selection_type=phase.phase_type,
            payload=dict(payload),
            item_key=item_key,
            selected_at=format_iso(now),
        )
        updated.selections.append(selection)
        events = self._close_phase(updated, PhaseOutcomeKind.SELECTED, now, selection)
        updated.version += 1
        log.info(
            "Draft %s phase %d: %s %s %s",
            state.match_id,
            phase_index,
            side,
            phase.phase_type.value,
            item_key,
        )
        return DraftTransition(state=updated, events=events, selection=selection)

    def skip(
        self, state: DraftState, phase_index: int, side: str, now: datetime
    ) -> DraftTransition:
        phase = self._open_phase(state, phase_index, now)
        if not phase.is_optional:
            raise InvalidSelectionError(f"Phase {phase.phase_id!r} cannot be skipped")
        if not self._side_allowed(state, phase, side):
            raise NotYourTurnError(
                f"Phase {phase.phase_id!r} belongs to {phase.side!r}, not {side!r}"
            )
        updated = state.clone()
        events = self._close_phase(updated, PhaseOutcomeKind.SKIPPED, now, None)
        updated.version += 1
        log.info("Draft %s phase %d skipped by %s", state.match_id, phase_index, side)
        return DraftTransition(state=updated, events=events)

    def expire(self, state: DraftState, now: datetime) -> DraftTransition:
        """Close every phase whose deadline lapsed before ``now``.

        The next phase opens at the previous phase's deadline, so a draft
        left idle for several limits catches up in one call.
        """
        deadline = self.deadline(state)
        if deadline is None or now < deadline:
            return DraftTransition(state=state)

        updated = state.clone()
        events: list[PhaseAdvanced | DraftCompleted] = []
        while deadline is not None and now >= deadline:
            log.debug(
                "Draft %s phase %s timed out", updated.match_id, updated.current_index
            )
            events.extend(
                self._close_phase(updated, PhaseOutcomeKind.TIMED_OUT, deadline, None)
            )
            deadline = self.deadline(updated)
        updated.version += 1
        log.info(
            "Draft %s auto-advanced %d phase(s) on timeout",
            state.match_id,
            sum(1 for event in events if isinstance(event, PhaseAdvanced)),
        )
        return DraftTransition(state=updated, events=events)

    # Internals

    def _side_allowed(self, state: DraftState, phase: DraftPhase, side: str) -> bool:
        if side not in state.sides:
            return False
        if phase.turn_based:
            return side == phase.side
        return True

    def _open_phase(
        self, state: DraftState, phase_index: int, now: datetime
    ) -> DraftPhase:
        if state.status is DraftStatus.COMPLETE:
            raise DraftAlreadyCompleteError(f"Draft for {state.match_id} is complete")
        if state.status is DraftStatus.NOT_STARTED:
            raise InvalidPhaseIndexError(f"Draft for {state.match_id} has not started")
        if phase_index != state.current_index:
            raise InvalidPhaseIndexError(
                f"Phase {phase_index} is not open (current phase is "
                f"{state.current_index})"
            )
        deadline = self.deadline(state)
        if deadline is not None and now >= deadline:
            raise InvalidPhaseIndexError(
                f"Phase {phase_index} closed at {format_iso(deadline)}"
            )
        return state.phases[phase_index]

    def _close_phase(
        self,
        state: DraftState,
        outcome: PhaseOutcomeKind,
        closed_at: datetime,
        selection: Selection | None,
    ) -> list[PhaseAdvanced | DraftCompleted]:
        index = state.current_index
        if index is None:
            raise InvalidPhaseIndexError(
                f"Draft for {state.match_id} has no open phase"
            )
        state.outcomes.append(
            PhaseOutcome(phase_index=index, outcome=outcome, closed_at=format_iso(closed_at))
        )
        events: list[PhaseAdvanced | DraftCompleted] = [
            PhaseAdvanced(match_id=state.match_id, phase_index=index, selection=selection)
        ]
        if index + 1 < len(state.phases):
            state.current_index = index + 1
            state.phase_opened_at = format_iso(closed_at)
        else:
            state.status = DraftStatus.COMPLETE
            state.current_index = None
            state.phase_opened_at = None
            events.append(DraftCompleted(match_id=state.match_id))
            log.info("Draft %s complete", state.match_id)
        return events


def _phase(
    order: int,
    phase_type: PhaseType,
    side: str,
    count: int,
    time_limit: int,
) -> DraftPhase:
    return DraftPhase(
        phase_id=f"phase-{order}",
        order=order,
        phase_type=phase_type,
        side=side,
        time_limit_seconds=time_limit,
        name=f"{side.title()} {phase_type.value.title()} {count}",
    )


# Standard competitive order: three alternating bans each, six picks, two more
# bans each, four picks.
_TOURNAMENT_ORDER: tuple[tuple[PhaseType, int], ...] = (
    (PhaseType.BAN, 0), (PhaseType.BAN, 1), (PhaseType.BAN, 0),
    (PhaseType.BAN, 1), (PhaseType.BAN, 0), (PhaseType.BAN, 1),
    (PhaseType.PICK, 0), (PhaseType.PICK, 1), (PhaseType.PICK, 1),
    (PhaseType.PICK, 0), (PhaseType.PICK, 0), (PhaseType.PICK, 1),
    (PhaseType.BAN, 1), (PhaseType.BAN, 0), (PhaseType.BAN, 1),
    (PhaseType.BAN, 0),
    (PhaseType.PICK, 1), (PhaseType.PICK, 0), (PhaseType.PICK, 1),
    (PhaseType.PICK, 0),
)  # fmt: skip


def _build_phases(
    order: Iterable[tuple[PhaseType, int]], sides: Sequence[str], time_limit: int
) -> list[DraftPhase]:
    counters: dict[tuple[str, PhaseType], int] = {}
    phases: list[DraftPhase] = []
    for position, (phase_type, side_index) in enumerate(order, start=1):
        side = sides[side_index]
        count = counters.get((side, phase_type), 0) + 1
        counters[(side, phase_type)] = count
        phases.append(_phase(position, phase_type, side, count, time_limit))
    return phases


def tournament_draft_phases(
    *, sides: Sequence[str] = DEFAULT_SIDES, time_limit: int | None = None
) -> list[DraftPhase]:
    """The 20-phase two-sided ban/pick order used in competitive play."""
    if len(sides) != 2:
        raise InvalidDraftConfigurationError("Tournament drafts need exactly two sides")
    limit = time_limit or read_engine_settings().draft_time_limit
    return _build_phases(_TOURNAMENT_ORDER, sides, limit)


def freeform_phases(*, time_limit: int | None = None) -> list[DraftPhase]:
    """A single open pick that either side may make."""
    limit = time_limit or read_engine_settings().draft_time_limit
    return [
        DraftPhase(
            phase_id="phase-1",
            order=1,
            phase_type=PhaseType.PICK,
            side=None,
            time_limit_seconds=limit,
            turn_based=False,
            name="Open Pick",
        )
    ]


def alternating_phases(
    pattern: Iterable[tuple[PhaseType | str, int]],
    *,
    sides: Sequence[str] = DEFAULT_SIDES,
    time_limit: int | None = None,
) -> list[DraftPhase]:
    """Expand ``[("ban", 3), ("pick", 3), ...]`` into phases.

    Sides alternate across the whole sequence, starting with ``sides[0]``.
    """
    limit = time_limit or read_engine_settings().draft_time_limit
    order: list[tuple[PhaseType, int]] = []
    for phase_type, count in pattern:
        if count < 0:
            raise InvalidDraftConfigurationError("Phase counts cannot be negative")
        for _ in range(count):
            order.append((PhaseType(phase_type), len(order) % len(sides)))
    return _build_phases(order, sides, limit)


__all__ = [
    "DEFAULT_SIDES",
    "DraftEngine",
    "DraftPhase",
    "DraftState",
    "DraftStatus",
    "DraftTransition",
    "PhaseOutcome",
    "PhaseOutcomeKind",
    "PhaseType",
    "Selection",
    "alternating_phases",
    "freeform_phases",
    "new_draft",
    "tournament_draft_phases",
    "validate_phases",
]
