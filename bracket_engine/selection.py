"""Game-specific rules for what a draft selection refers to."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import ClassVar

from .errors import InvalidSelectionError, ItemAlreadyExcludedError

_WHITESPACE = re.compile(r"\s+")

VALORANT_AGENTS = frozenset(
    {
        "astra", "breach", "brimstone", "chamber", "clove", "cypher", "deadlock",
        "fade", "gekko", "harbor", "iso", "jett", "kayo", "killjoy", "neon",
        "omen", "phoenix", "raze", "reyna", "sage", "skye", "sova", "viper",
        "vyse", "yoru",
    }
)  # fmt: skip

CS2_MAPS = frozenset(
    {"dust2", "mirage", "inferno", "nuke", "overpass", "vertigo", "ancient"}
)
VALORANT_MAPS = frozenset(
    {"bind", "haven", "split", "ascent", "icebox", "breeze", "fracture"}
)


def normalize_item(raw: str) -> str:
    value = _WHITESPACE.sub(" ", raw.strip()).lower()
    if not value:
        raise InvalidSelectionError("Selection cannot be empty")
    return value


class SelectionValidator:
    """Decides which item a payload names and whether it is still available.

    ``payload_keys`` are tried in order; ``pool`` (when set) restricts the
    items that may be chosen at all.
    """

    game_type: ClassVar[str] = "freeform"
    payload_keys: ClassVar[tuple[str, ...]] = ("item",)

    def __init__(self, pool: Iterable[str] | None = None) -> None:
        self._pool = frozenset(self.canonical(item) for item in pool) if pool else None

    def canonical(self, value: str) -> str:
        return normalize_item(value)

    @property
    def pool(self) -> frozenset[str] | None:
        return self._pool

    def item_key(self, payload: Mapping[str, object]) -> str:
        for key in self.payload_keys:
            value = payload.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise InvalidSelectionError(f"Selection field {key!r} must be text")
            item = self.canonical(value)
            if self._pool is not None and item not in self._pool:
                raise InvalidSelectionError(f"{value!r} is not available in this game")
            return item
        expected = " or ".join(repr(key) for key in self.payload_keys)
        raise InvalidSelectionError(f"Selection payload requires {expected}")

    def is_excluded(self, item: str, excluded: Iterable[str]) -> bool:
        return item in set(excluded)

    def validate(self, payload: Mapping[str, object], excluded: Iterable[str]) -> str:
        item = self.item_key(payload)
        if self.is_excluded(item, excluded):
            raise ItemAlreadyExcludedError(f"{item!r} has already been picked or banned")
        return item


class FreeformValidator(SelectionValidator):
    """Free text entries compared case- and whitespace-insensitively."""


class ChampionValidator(SelectionValidator):
    game_type = "league_of_legends"
    payload_keys = ("championId", "item")

    def canonical(self, value: str) -> str:
        # Champion ids drop punctuation and spaces ("Kai'Sa" -> "kaisa").
        return re.sub(r"[^a-z0-9]", "", normalize_item(value))


class AgentValidator(SelectionValidator):
    game_type = "valorant"
    payload_keys = ("agentId", "item")

    def __init__(self, pool: Iterable[str] | None = None) -> None:
        super().__init__(pool if pool is not None else VALORANT_AGENTS)

    def canonical(self, value: str) -> str:
        return normalize_item(re.sub(r"[^A-Za-z0-9 ]", "", value))


class MapValidator(SelectionValidator):
    game_type = "cs2"
    payload_keys = ("map", "item")

    def __init__(self, pool: Iterable[str] | None = None) -> None:
        super().__init__(pool if pool is not None else CS2_MAPS)


_REGISTRY: dict[str, type[SelectionValidator]] = {
    FreeformValidator.game_type: FreeformValidator,
    ChampionValidator.game_type: ChampionValidator,
    AgentValidator.game_type: AgentValidator,
    MapValidator.game_type: MapValidator,
}


def register_validator(validator_cls: type[SelectionValidator]) -> None:
    _REGISTRY[validator_cls.game_type] = validator_cls


def validator_for(
    game_type: str | None, *, pool: Iterable[str] | None = None
) -> SelectionValidator:
    validator_cls = _REGISTRY.get(game_type or "", FreeformValidator)
    return validator_cls(pool)


__all__ = [
    "AgentValidator",
    "CS2_MAPS",
    "ChampionValidator",
    "FreeformValidator",
    "MapValidator",
    "SelectionValidator",
    "VALORANT_AGENTS",
    "VALORANT_MAPS",
    "normalize_item",
    "register_validator",
    "validator_for",
]
