"""
Personality templates and generators for agent-controlled players.

Each agent gets a ``Personality`` at initialization: either a random blend or
a template with some per-trait jitter, then tuned for the role it was dealt
(werewolves lie more, seers reason harder, and so on).
"""

from __future__ import annotations

import random
from typing import Dict, Optional

from .state import PERSONALITY_TRAITS, Personality, RoleType, clamp

PERSONALITY_TEMPLATES: Dict[str, Dict[str, object]] = {
    "analytical": {
        "name": "Analyst",
        "description": "Calm and rational, reasons carefully and speaks precisely.",
        "traits": {
            "aggressiveness": 0.3,
            "logic": 0.9,
            "deception": 0.2,
            "trustfulness": 0.7,
            "patience": 0.8,
            "confidence": 0.7,
            "empathy": 0.4,
            "impulsiveness": 0.2,
        },
    },
    "impulsive": {
        "name": "Hothead",
        "description": "Emotional and excitable, acts on gut feeling.",
        "traits": {
            "aggressiveness": 0.8,
            "logic": 0.4,
            "deception": 0.3,
            "trustfulness": 0.6,
            "patience": 0.2,
            "confidence": 0.6,
            "empathy": 0.8,
            "impulsiveness": 0.9,
        },
    },
    "deceptive": {
        "name": "Trickster",
        "description": "A skilled bluffer whose statements are built to mislead.",
        "traits": {
            "aggressiveness": 0.5,
            "logic": 0.7,
            "deception": 0.9,
            "trustfulness": 0.3,
            "patience": 0.8,
            "confidence": 0.8,
            "empathy": 0.3,
            "impulsiveness": 0.3,
        },
    },
    "cautious": {
        "name": "Watcher",
        "description": "Careful, slow to commit, notices everything.",
        "traits": {
            "aggressiveness": 0.2,
            "logic": 0.6,
            "deception": 0.4,
            "trustfulness": 0.8,
            "patience": 0.9,
            "confidence": 0.4,
            "empathy": 0.7,
            "impulsiveness": 0.1,
        },
    },
    "leader": {
        "name": "Leader",
        "description": "Organises the table and speaks with authority.",
        "traits": {
            "aggressiveness": 0.7,
            "logic": 0.8,
            "deception": 0.4,
            "trustfulness": 0.5,
            "patience": 0.6,
            "confidence": 0.9,
            "empathy": 0.6,
            "impulsiveness": 0.4,
        },
    },
    "chaotic": {
        "name": "Wildcard",
        "description": "Unpredictable and jumpy, keeps everyone guessing.",
        "traits": {
            "aggressiveness": 0.6,
            "logic": 0.3,
            "deception": 0.5,
            "trustfulness": 0.4,
            "patience": 0.3,
            "confidence": 0.7,
            "empathy": 0.5,
            "impulsiveness": 0.8,
        },
    },
}

# (trait, delta, floor) applied when tuning a personality for a role.
_ROLE_ADJUSTMENTS: Dict[RoleType, tuple] = {
    RoleType.WEREWOLF: (("deception", 0.3, 0.0), ("trustfulness", -0.2, 0.1)),
    RoleType.SEER: (("logic", 0.2, 0.0), ("trustfulness", 0.1, 0.0)),
    RoleType.WITCH: (("logic", 0.15, 0.0), ("aggressiveness", -0.1, 0.1)),
    RoleType.HUNTER: (("aggressiveness", 0.2, 0.0),),
    RoleType.GUARD: (("trustfulness", 0.15, 0.0), ("aggressiveness", -0.1, 0.1)),
    RoleType.VILLAGER: (("logic", 0.1, 0.0),),
}

_RANDOM_RANGES: Dict[str, tuple[float, float]] = {
    "aggressiveness": (0.3, 0.8),
    "logic": (0.5, 0.9),
    "deception": (0.4, 0.7),
    "trustfulness": (0.3, 0.7),
    "patience": (0.2, 0.9),
    "confidence": (0.3, 0.9),
    "empathy": (0.2, 0.8),
    "impulsiveness": (0.1, 0.95),
}

DIFFICULTY_PRESETS: Dict[str, tuple[str, float, Dict[str, float]]] = {
    "easy": ("cautious", 0.3, {"logic": 0.3, "deception": 0.2}),
    "normal": ("analytical", 0.2, {}),
    "hard": ("deceptive", 0.1, {"logic": 0.8, "deception": 0.8}),
    "expert": (
        "leader",
        0.05,
        {"logic": 0.9, "deception": 0.7, "aggressiveness": 0.8},
    ),
}


def vary_trait(base: float, variation: float, rng: random.Random) -> float:
    """Jitter ``base`` by up to +/- ``variation`` and clamp into [0, 1]."""
    if variation <= 0:
        return clamp(base)
    return clamp(base + rng.uniform(-variation, variation))


def create_from_template(
    template: str,
    *,
    variation: float = 0.1,
    rng: Optional[random.Random] = None,
) -> Personality:
    """Create a personality from a named template with random variation."""
    if template not in PERSONALITY_TEMPLATES:
        raise KeyError(
            f"Unknown personality template '{template}'. "
            f"Choose one of: {', '.join(sorted(PERSONALITY_TEMPLATES))}."
        )
    rng = rng or random.Random()
    template_def = PERSONALITY_TEMPLATES[template]
    traits = {
        name: vary_trait(value, variation, rng)
        for name, value in template_def["traits"].items()  # type: ignore[union-attr]
    }
    return Personality(
        id=f"{template}_variant_{rng.getrandbits(32):08x}",
        name=f"{template_def['name']} variant",
        description=str(template_def["description"]),
        **traits,
    )


def create_random_personality(rng: Optional[random.Random] = None) -> Personality:
    """Draw every trait uniformly from its allowed range."""
    rng = rng or random.Random()
    traits = {name: rng.uniform(*_RANDOM_RANGES[name]) for name in PERSONALITY_TRAITS}

    if traits["logic"] > 0.7:
        kind = "Rational"
    elif traits["aggressiveness"] > 0.7:
        kind = "Aggressive"
    elif traits["deception"] > 0.6:
        kind = "Sly"
    else:
        kind = "Balanced"

    return Personality(
        id=f"random_{rng.getrandbits(32):08x}",
        name=f"{kind} AI",
        description=f"An AI with a {kind.lower()} temperament.",
        **traits,
    )


def create_personality_by_difficulty(
    difficulty: str, rng: Optional[random.Random] = None
) -> Personality:
    """Map a difficulty label to a tuned template; unknown labels get a random mix."""
    preset = DIFFICULTY_PRESETS.get(difficulty.lower())
    if preset is None:
        return create_random_personality(rng)

    template, variation, overrides = preset
    personality = create_from_template(template, variation=variation, rng=rng)
    for trait, value in overrides.items():
        setattr(personality, trait, value)
    return personality


def optimize_for_role(personality: Personality, role_type: RoleType) -> Personality:
    """Return a copy of ``personality`` nudged towards what ``role_type`` needs."""
    tuned = personality.model_copy(deep=True)
    for trait, delta, floor in _ROLE_ADJUSTMENTS.get(RoleType(role_type), ()):
        value = tuned.nudge(trait, delta)
        if value < floor:
            setattr(tuned, trait, floor)

    tuned.id = f"{personality.id}_{role_type.value}"
    tuned.name = f"{personality.name} ({role_type.value})"
    return tuned


def speech_style_hint(personality: Personality) -> str:
    """Short natural-language description of how this personality talks."""
    if personality.logic > 0.7:
        return "methodical and analytical"
    if personality.aggressiveness > 0.7:
        return "blunt and confrontational"
    if personality.deception > 0.6:
        return "smooth and evasive"
    if personality.trustfulness > 0.7:
        return "open and sincere"
    return "even-tempered and balanced"
