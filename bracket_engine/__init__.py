"""Tournament bracket and draft engine."""

from .bracket import (
    AdvanceResult,
    BuildResult,
    advance_winner,
    build_bracket,
    build_double_elimination,
    build_single_elimination,
    champion,
    forfeit_match,
    next_matches,
    render_bracket,
    simulate_tournament,
)
from .config import EngineSettings, read_engine_settings
from .draft import (
    DraftEngine,
    DraftPhase,
    DraftState,
    DraftTransition,
    PhaseType,
    Selection,
    alternating_phases,
    freeform_phases,
    new_draft,
    tournament_draft_phases,
)
from .errors import EngineError, ErrorKind
from .events import BracketRebuilt, DraftCompleted, MatchCompleted, PhaseAdvanced
from .models import Bracket, Match, MatchStatus, Participant, TournamentFormat
from .round_robin import (
    RoundRobinFormat,
    create_groups,
    generate_round_robin_schedule,
    schedule_round_robin,
)
from .seeding import SeedingStrategy, seed_participants
from .selection import validator_for
from .standings import calculate_standings
from .storage import EngineStorage

__all__ = [
    "AdvanceResult",
    "BuildResult",
    "advance_winner",
    "build_bracket",
    "build_double_elimination",
    "build_single_elimination",
    "champion",
    "forfeit_match",
    "next_matches",
    "render_bracket",
    "simulate_tournament",
    "EngineSettings",
    "read_engine_settings",
    "DraftEngine",
    "DraftPhase",
    "DraftState",
    "DraftTransition",
    "PhaseType",
    "Selection",
    "alternating_phases",
    "freeform_phases",
    "new_draft",
    "tournament_draft_phases",
    "EngineError",
    "ErrorKind",
    "BracketRebuilt",
    "DraftCompleted",
    "MatchCompleted",
    "PhaseAdvanced",
    "Bracket",
    "Match",
    "MatchStatus",
    "Participant",
    "TournamentFormat",
    "RoundRobinFormat",
    "create_groups",
    "generate_round_robin_schedule",
    "schedule_round_robin",
    "SeedingStrategy",
    "seed_participants",
    "validator_for",
    "calculate_standings",
    "EngineStorage",
]
