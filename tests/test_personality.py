import random

import pytest

from src.game.personality import (
    DIFFICULTY_PRESETS,
    PERSONALITY_TEMPLATES,
    create_from_template,
    create_personality_by_difficulty,
    create_random_personality,
    optimize_for_role,
    speech_style_hint,
    vary_trait,
)
from src.game.state import PERSONALITY_TRAITS, Personality, RoleType


def _in_unit_range(personality: Personality) -> bool:
    return all(0.0 <= value <= 1.0 for value in personality.traits().values())


@pytest.mark.parametrize("template", sorted(PERSONALITY_TEMPLATES))
def test_templates_produce_bounded_traits(template):
    personality = create_from_template(template, variation=0.5, rng=random.Random(4))
    assert _in_unit_range(personality)
    assert personality.id.startswith(f"{template}_variant_")


def test_zero_variation_copies_template():
    personality = create_from_template("analytical", variation=0.0)
    assert personality.logic == 0.9
    assert personality.impulsiveness == 0.2


def test_unknown_template():
    with pytest.raises(KeyError):
        create_from_template("berserker")


def test_vary_trait_clamps():
    rng = random.Random(0)
    for _ in range(100):
        assert 0.0 <= vary_trait(0.95, 0.3, rng) <= 1.0


def test_random_personality_in_ranges():
    rng = random.Random(9)
    for _ in range(20):
        personality = create_random_personality(rng)
        assert set(personality.traits()) == set(PERSONALITY_TRAITS)
        assert 0.5 <= personality.logic <= 0.9
        assert 0.1 <= personality.impulsiveness <= 0.95


@pytest.mark.parametrize("difficulty", sorted(DIFFICULTY_PRESETS))
def test_difficulty_presets(difficulty):
    personality = create_personality_by_difficulty(difficulty, random.Random(2))
    assert _in_unit_range(personality)
    for trait, value in DIFFICULTY_PRESETS[difficulty][2].items():
        assert getattr(personality, trait) == value


def test_unknown_difficulty_is_random():
    assert _in_unit_range(create_personality_by_difficulty("nightmare", random.Random(1)))


def test_optimize_for_werewolf_raises_deception_without_mutating():
    base = Personality(id="base", name="Base", deception=0.8, trustfulness=0.2)
    tuned = optimize_for_role(base, RoleType.WEREWOLF)

    assert tuned.deception == 1.0
    assert tuned.trustfulness == pytest.approx(0.1)
    assert base.deception == 0.8
    assert tuned.id == "base_werewolf"


def test_speech_style_hint():
    assert speech_style_hint(Personality(id="a", name="a", logic=0.9)) == "methodical and analytical"
    assert speech_style_hint(Personality(id="b", name="b")) == "even-tempered and balanced"
