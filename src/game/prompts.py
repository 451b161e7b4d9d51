"""
Prompt builders and reply parsing for the text-generation service.

The service contract is deliberately loose: a prompt string goes in, free
text comes out. Night-action prompts ask for a small JSON object; parsing is
best-effort and any failure returns ``None`` so the caller can fall back to
the heuristic strategy.
"""

from __future__ import annotations

import json
import re
from typing import Dict, List, Optional, Sequence, Set

from pydantic import ValidationError

from .llm_schemas import NightActionDecision
from .logger import get_logger
from .personality import speech_style_hint
from .state import (
    ROLE_NIGHT_ACTIONS,
    GameState,
    NightAction,
    NightActionType,
    Player,
    RoleType,
    alive_players,
)
from .agents.strategy import SpeechStrategy

logger = get_logger(__name__)

MAX_SPEECH_CHARS = 200
MIN_SPEECH_CHARS = 10
SPEECH_PLACEHOLDER = "I need to think this over a little longer."

FALLBACK_SPEECHES: Dict[Optional[RoleType], List[str]] = {
    RoleType.WEREWOLF: [
        "Something about one of the statements today feels off to me.",
        "We should look carefully at how everyone voted.",
        "I'm inclined to go with what the villagers decide.",
    ],
    RoleType.SEER: [
        "I have some information I'd like to share.",
        "From what I've seen, someone here is not who they claim to be.",
        "Please trust my read on this one.",
    ],
    None: [
        "I want to watch a bit longer before I commit.",
        "Everyone's reasoning makes some sense so far.",
        "I'll hold my opinion for now.",
    ],
}

_ROLE_BRIEFS: Dict[RoleType, str] = {
    RoleType.WEREWOLF: "You are a werewolf. Hide your identity and mislead the villagers.",
    RoleType.SEER: "You are the seer. Share what your checks revealed when it helps the village.",
    RoleType.VILLAGER: "You are a villager. Help find the werewolves.",
    RoleType.WITCH: "You are the witch. Keep your potions secret and help the village.",
    RoleType.HUNTER: "You are the hunter. If you fall, you take someone with you.",
    RoleType.GUARD: "You are the guard. Protect the village without exposing yourself.",
}

_NIGHT_INSTRUCTIONS: Dict[RoleType, tuple[str, str]] = {
    RoleType.WEREWOLF: ("choose one player to kill", '{"action": "kill", "target": "<player_id>"}'),
    RoleType.SEER: ("choose one player to check", '{"action": "check", "target": "<player_id>"}'),
    RoleType.GUARD: ("choose one player to protect", '{"action": "protect", "target": "<player_id>"}'),
}

_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)


def format_roster(players: Sequence[Player], *, exclude: Optional[str] = None) -> str:
    return ", ".join(f"{p.name} ({p.id})" for p in players if p.id != exclude)


def fallback_speech(role_type: RoleType, day: int) -> str:
    """Canned line for ``role_type``, rotated by day."""
    pool = FALLBACK_SPEECHES.get(role_type) or FALLBACK_SPEECHES[None]
    return pool[day % len(pool)]


def sanitize_speech(text: str) -> str:
    """Collapse whitespace, cap the length and replace empty replies."""
    cleaned = " ".join(str(text).split()).strip().strip('"')
    if len(cleaned) > MAX_SPEECH_CHARS:
        cleaned = cleaned[: MAX_SPEECH_CHARS - 3].rstrip() + "..."
    if len(cleaned) < MIN_SPEECH_CHARS:
        return SPEECH_PLACEHOLDER
    return cleaned


def build_night_action_prompt(
    player: Player,
    state: GameState,
    *,
    potions: Optional[Set[NightActionType]] = None,
) -> str:
    role_type = player.role.role_type
    roster = format_roster(alive_players(state), exclude=player.id)

    if role_type == RoleType.WITCH:
        available = sorted(a.value for a in (potions if potions is not None else ROLE_NIGHT_ACTIONS[role_type]))
        return (
            f"You are the witch {player.name} ({player.id}). It is night {state.day}. "
            f"Living players: {roster}. Potions left: {', '.join(available) or 'none'}. "
            "A heal saves tonight's victim; a poison kills the target. "
            'Reply with JSON only: {"action": "heal" or "poison", "target": "<player_id or null>"}'
        )

    goal, schema = _NIGHT_INSTRUCTIONS[role_type]
    if role_type == RoleType.WEREWOLF:
        living = alive_players(state)
        pack = [p for p in living if p.id != player.id and p.faction == player.faction]
        prey = format_roster([p for p in living if p.faction != player.faction])
        return (
            f"You are the werewolf {player.name} ({player.id}). It is night {state.day}. "
            f"Your fellow werewolves: {format_roster(pack) or 'none'}; never pick them. "
            f"Players you may kill: {prey}. Please {goal}. Reply with JSON only: {schema}"
        )
    return (
        f"You are the {role_type.value} {player.name} ({player.id}). It is night {state.day}. "
        f"Living players: {roster}. Please {goal}. Reply with JSON only: {schema}"
    )


def build_speech_prompt(player: Player, state: GameState, plan: SpeechStrategy) -> str:
    brief = _ROLE_BRIEFS.get(player.role.role_type, "Speak in a way that fits your role.")
    roster = format_roster(alive_players(state), exclude=player.id)
    recent = [s for s in state.speeches if s.day == state.day][-6:]
    transcript = " | ".join(f"{s.speaker}: {s.content}" for s in recent) or "nobody has spoken yet"

    lines = [
        f"You are {player.name} ({player.id}) in a game of werewolf. {brief}",
        f"It is day {state.day}. Living players: {roster}.",
        f"Said so far today: {transcript}.",
        f"Your goal for this statement: {plan.speech_type.value}, tone {plan.tone.value}.",
        f"Talking points: {', '.join(plan.key_points)}.",
    ]
    if plan.target:
        lines.append(f"Focus on player {plan.target}.")
    if plan.deception_elements:
        lines.append(f"Quietly work in: {', '.join(plan.deception_elements)}.")
    if player.personality is not None:
        lines.append(f"Your manner is {speech_style_hint(player.personality)}.")
    lines.append("Reply with a single statement of 50 to 150 characters and nothing else.")
    return "\n".join(lines)


def build_last_words_prompt(player: Player, state: GameState) -> str:
    brief = _ROLE_BRIEFS.get(player.role.role_type, "")
    return (
        f"You are {player.name} ({player.id}) and you were just voted out on day {state.day}. "
        f"{brief} Give your final words to the table in one short statement."
    )


def _extract_json(text: str) -> Optional[dict]:
    candidates = [text.strip()]
    candidates.extend(match.group(0) for match in _JSON_OBJECT.finditer(text))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (TypeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_night_action_response(
    player: Player, text: str, state: GameState
) -> Optional[NightAction]:
    """Best-effort parse of a night-action reply into a ``NightAction``.

    Targets may be given as ids or display names. Returns ``None`` when the
    reply has no usable JSON, names an action the role cannot take, lacks
    a target where one is required, or sends the pack after one of its own.
    """
    data = _extract_json(text)
    if data is None or "action" not in data:
        logger.debug("No night-action JSON found in reply from %s", player.id)
        return None

    try:
        decision = NightActionDecision.model_validate(data)
    except ValidationError as exc:
        logger.debug("Rejected night-action reply from %s: %s", player.id, exc)
        return None

    if decision.action not in ROLE_NIGHT_ACTIONS.get(player.role.role_type, frozenset()):
        return None

    target = decision.target
    if target is not None:
        living = {p.id: p for p in alive_players(state)}
        if target not in living:
            by_name = {p.name.lower(): p.id for p in living.values()}
            target = by_name.get(target.lower())
        if target is None:
            return None
        if decision.action == NightActionType.KILL and living[target].faction == player.faction:
            logger.debug("Discarding kill on teammate %s from %s", target, player.id)
            return None
    elif decision.action != NightActionType.HEAL:
        return None

    return NightAction(actor=player.id, action=decision.action, target=target)
