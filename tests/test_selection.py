import pytest

from bracket_engine.errors import InvalidSelectionError, ItemAlreadyExcludedError
from bracket_engine.selection import (
    AgentValidator,
    ChampionValidator,
    FreeformValidator,
    MapValidator,
    SelectionValidator,
    register_validator,
    validator_for,
)


def test_validator_for_known_games():
    assert isinstance(validator_for("league_of_legends"), ChampionValidator)
    assert isinstance(validator_for("valorant"), AgentValidator)
    assert isinstance(validator_for("cs2"), MapValidator)


def test_validator_for_unknown_game_is_freeform():
    assert isinstance(validator_for("chess"), FreeformValidator)
    assert isinstance(validator_for(None), FreeformValidator)


def test_freeform_normalizes_case_and_whitespace():
    validator = FreeformValidator()

    assert validator.item_key({"item": "  Big   Sword "}) == "big sword"
    with pytest.raises(ItemAlreadyExcludedError):
        validator.validate({"item": "BIG SWORD"}, ["big sword"])


def test_champion_ids_ignore_punctuation():
    validator = ChampionValidator()

    assert validator.item_key({"championId": "Kai'Sa"}) == "kaisa"
    assert validator.item_key({"item": "Lee Sin"}) == "leesin"
    with pytest.raises(ItemAlreadyExcludedError):
        validator.validate({"championId": "KaiSa"}, ["kaisa"])


def test_champion_pool_is_normalized_the_same_way():
    validator = ChampionValidator(pool=["Kai'Sa", "Ahri"])

    assert validator.item_key({"championId": "kaisa"}) == "kaisa"
    with pytest.raises(InvalidSelectionError):
        validator.item_key({"championId": "Zed"})


def test_agent_validator_uses_agent_pool():
    validator = AgentValidator()

    assert validator.item_key({"agentId": "KAY/O"}) == "kayo"
    with pytest.raises(InvalidSelectionError):
        validator.item_key({"agentId": "Pikachu"})


def test_map_validator_uses_map_key():
    validator = MapValidator()

    assert validator.validate({"map": "Dust2"}, ["mirage"]) == "dust2"
    with pytest.raises(InvalidSelectionError):
        validator.item_key({"map": "de_cache"})


@pytest.mark.parametrize(
    "payload",
    [{}, {"item": 5}, {"item": "   "}, {"other": "ahri"}],
)
def test_malformed_payloads_are_rejected(payload):
    with pytest.raises(InvalidSelectionError):
        FreeformValidator().item_key(payload)


def test_register_validator_adds_game_type():
    class DeckValidator(SelectionValidator):
        game_type = "test_card_game"
        payload_keys = ("card",)

    register_validator(DeckValidator)

    validator = validator_for("test_card_game", pool=["Fireball"])
    assert isinstance(validator, DeckValidator)
    assert validator.pool == frozenset({"fireball"})
    assert validator.item_key({"card": "FIREBALL"}) == "fireball"
