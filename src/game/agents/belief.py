"""
Per-agent belief tracking.

Each agent owns one ``BeliefModel`` holding a ``BeliefNode`` for every other
player. Nodes start from the public role distribution and move as evidence
arrives. Updates are additive: every evidence type has fixed multipliers that
scale ``weight * confidence`` into suspicion, trust and werewolf-faction
probability, and the three scalars are clamped after each update. Nothing is
renormalised across players, so this is a heuristic scorer rather than a true
posterior.

Trust and suspicion are independent; a player can be both trusted and
suspected.

None of the operations raise: unknown players are ignored and queries fall
back to neutral values.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from ..logger import get_logger
from ..state import Faction, GameState, RoleType, all_players, clamp
from .speech import SpeechAssessment, assess_suspicion

logger = get_logger(__name__)

NEUTRAL_SCORE = 0.5
VOTE_EVIDENCE_CONFIDENCE = 0.8
VOTE_EVIDENCE_WEIGHT = 0.3


class EvidenceType(str, Enum):
    VOTING_PATTERN = "voting_pattern"
    SPEECH_ANALYSIS = "speech_analysis"
    NIGHT_RESULT = "night_result"
    ROLE_CLAIM_CONSISTENCY = "role_claim_consistency"
    DEFENSIVE_BEHAVIOR = "defensive_behavior"
    AGGRESSIVE_BEHAVIOR = "aggressive_behavior"
    LOGICAL_INCONSISTENCY = "logical_inconsistency"
    TEAMWORK_INDICATOR = "teamwork_indicator"


class EvidenceEffect(NamedTuple):
    suspicion: float
    trust: float
    faction: float


EVIDENCE_EFFECTS: Dict[EvidenceType, EvidenceEffect] = {
    EvidenceType.VOTING_PATTERN: EvidenceEffect(0.0, 0.0, 0.15),
    EvidenceType.SPEECH_ANALYSIS: EvidenceEffect(0.2, -0.1, 0.0),
    EvidenceType.NIGHT_RESULT: EvidenceEffect(0.3, 0.0, 0.6),
    EvidenceType.ROLE_CLAIM_CONSISTENCY: EvidenceEffect(0.0, 0.2, 0.0),
    EvidenceType.DEFENSIVE_BEHAVIOR: EvidenceEffect(0.25, 0.0, 0.0),
    EvidenceType.AGGRESSIVE_BEHAVIOR: EvidenceEffect(0.1, 0.0, 0.0),
    EvidenceType.LOGICAL_INCONSISTENCY: EvidenceEffect(0.4, 0.0, 0.3),
    EvidenceType.TEAMWORK_INDICATOR: EvidenceEffect(0.0, 0.15, 0.0),
}


class Evidence(BaseModel):
    evidence_type: EvidenceType
    confidence: float = Field(ge=0.0, le=1.0)
    weight: float = Field(ge=0.0, le=1.0)
    source: str = ""
    description: str = ""


class BeliefNode(BaseModel):
    player_id: str
    seat: int
    role_probabilities: Dict[RoleType, float] = Field(default_factory=dict)
    faction_probability: float = Field(default=NEUTRAL_SCORE, ge=0.0, le=1.0)
    trust: float = Field(default=NEUTRAL_SCORE, ge=0.0, le=1.0)
    suspicion: float = Field(default=NEUTRAL_SCORE, ge=0.0, le=1.0)
    evidence: List[Evidence] = Field(default_factory=list)
    confirmed_faction: Optional[Faction] = None
    eliminated: bool = False


class PlayerAnalysis(BaseModel):
    player_id: str
    werewolf_probability: float
    suspicion: float
    trust: float
    main_evidence: List[str] = Field(default_factory=list)


class BeliefReport(BaseModel):
    owner_id: str
    players: List[PlayerAnalysis] = Field(default_factory=list)
    most_suspicious: Optional[str] = None
    most_trusted: Optional[str] = None


class BeliefModel:
    """Suspicion, trust and faction estimates one agent holds about the others."""

    def __init__(self, owner_id: str) -> None:
        self.owner_id = owner_id
        self.nodes: Dict[str, BeliefNode] = {}

    def initialize(self, game_state: GameState) -> None:
        """Seed a node per other player from the public role distribution."""
        roster = all_players(game_state)
        distribution = Counter(p.role.role_type for p in roster)
        total = game_state.config.total_players or len(roster)

        role_probabilities = {
            role: (distribution.get(role, 0) / total if total else 0.0) for role in RoleType
        }
        werewolf_share = role_probabilities[RoleType.WEREWOLF]

        self.nodes = {
            p.id: BeliefNode(
                player_id=p.id,
                seat=p.seat,
                role_probabilities=dict(role_probabilities),
                faction_probability=clamp(werewolf_share),
                eliminated=not p.is_alive,
            )
            for p in roster
            if p.id != self.owner_id
        }
        logger.debug("Belief model for %s initialized with %d nodes", self.owner_id, len(self.nodes))

    # ------------------------------------------------------------------ #
    # Updates
    # ------------------------------------------------------------------ #

    def add_evidence(self, player_id: str, evidence: Evidence) -> bool:
        """Append evidence to a node and apply its additive effect.

        Returns False when the player is unknown.
        """
        node = self.nodes.get(player_id)
        if node is None:
            return False

        node.evidence.append(evidence)
        effect = EVIDENCE_EFFECTS[evidence.evidence_type]
        strength = evidence.weight * evidence.confidence
        node.suspicion = clamp(node.suspicion + effect.suspicion * strength)
        node.trust = clamp(node.trust + effect.trust * strength)
        node.faction_probability = clamp(node.faction_probability + effect.faction * strength)
        logger.debug(
            "%s: %s evidence on %s (strength %.3f)",
            self.owner_id,
            evidence.evidence_type.value,
            player_id,
            strength,
        )
        return True

    def analyze_vote(self, voter_id: str, target_id: str) -> None:
        """Record a voting-pattern entry against the voter."""
        self.add_evidence(
            voter_id,
            Evidence(
                evidence_type=EvidenceType.VOTING_PATTERN,
                confidence=VOTE_EVIDENCE_CONFIDENCE,
                weight=VOTE_EVIDENCE_WEIGHT,
                source="voting_analysis",
                description=f"{voter_id} voted for {target_id}",
            ),
        )
        if target_id == self.owner_id:
            self.add_evidence(
                voter_id,
                Evidence(
                    evidence_type=EvidenceType.AGGRESSIVE_BEHAVIOR,
                    confidence=0.6,
                    weight=VOTE_EVIDENCE_WEIGHT,
                    source="voting_analysis",
                    description=f"{voter_id} voted against me",
                ),
            )

    def analyze_speech(self, player_id: str, text: str) -> SpeechAssessment:
        """Score a statement with the keyword heuristics and log it as evidence."""
        assessment = assess_suspicion(text)
        self.add_evidence(
            player_id,
            Evidence(
                evidence_type=EvidenceType.SPEECH_ANALYSIS,
                confidence=assessment.confidence,
                weight=assessment.suspicion_weight,
                source="speech_analysis",
                description=f"speech analysis: {assessment.summary}",
            ),
        )
        return assessment

    def confirm_faction(self, player_id: str, faction: Faction, *, source: str = "night_check") -> None:
        """Pin a node to a known faction (seer result or werewolf teammate)."""
        node = self.nodes.get(player_id)
        if node is None:
            return

        hostile = faction == Faction.WEREWOLF
        self.add_evidence(
            player_id,
            Evidence(
                evidence_type=(
                    EvidenceType.NIGHT_RESULT if hostile else EvidenceType.ROLE_CLAIM_CONSISTENCY
                ),
                confidence=1.0,
                weight=1.0,
                source=source,
                description=f"{player_id} confirmed as {faction.value}",
            ),
        )
        node.confirmed_faction = faction
        node.faction_probability = 1.0 if hostile else 0.0
        node.role_probabilities = _collapse_roles(node.role_probabilities, hostile)

    def mark_eliminated(self, player_id: str) -> None:
        node = self.nodes.get(player_id)
        if node is not None:
            node.eliminated = True

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def _candidates(self, among: Optional[Iterable[str]]) -> List[BeliefNode]:
        allowed = set(among) if among is not None else None
        return [
            node
            for node in self.nodes.values()
            if not node.eliminated and (allowed is None or node.player_id in allowed)
        ]

    def most_suspicious(self, among: Optional[Iterable[str]] = None) -> Optional[str]:
        """Highest suspicion among living nodes; ties go to the lowest seat."""
        nodes = self._candidates(among)
        if not nodes:
            return None
        return min(nodes, key=lambda n: (-n.suspicion, n.seat)).player_id

    def most_trusted(self, among: Optional[Iterable[str]] = None) -> Optional[str]:
        """Highest trust among living nodes; ties go to the lowest seat."""
        nodes = self._candidates(among)
        if not nodes:
            return None
        return min(nodes, key=lambda n: (-n.trust, n.seat)).player_id

    def faction_probability(self, player_id: str) -> float:
        node = self.nodes.get(player_id)
        return node.faction_probability if node is not None else NEUTRAL_SCORE

    def suspicion(self, player_id: str) -> float:
        node = self.nodes.get(player_id)
        return node.suspicion if node is not None else NEUTRAL_SCORE

    def trust(self, player_id: str) -> float:
        node = self.nodes.get(player_id)
        return node.trust if node is not None else NEUTRAL_SCORE

    def confirmed_faction(self, player_id: str) -> Optional[Faction]:
        node = self.nodes.get(player_id)
        return node.confirmed_faction if node is not None else None

    def analysis_report(self) -> BeliefReport:
        ordered = sorted(self.nodes.values(), key=lambda n: (-n.suspicion, n.seat))
        return BeliefReport(
            owner_id=self.owner_id,
            players=[
                PlayerAnalysis(
                    player_id=node.player_id,
                    werewolf_probability=node.faction_probability,
                    suspicion=node.suspicion,
                    trust=node.trust,
                    main_evidence=[e.description for e in node.evidence[:3]],
                )
                for node in ordered
            ],
            most_suspicious=self.most_suspicious(),
            most_trusted=self.most_trusted(),
        )


def _collapse_roles(probabilities: Dict[RoleType, float], hostile: bool) -> Dict[RoleType, float]:
    if hostile:
        return {role: (1.0 if role == RoleType.WEREWOLF else 0.0) for role in RoleType}

    remaining = {
        role: probabilities.get(role, 0.0) for role in RoleType if role != RoleType.WEREWOLF
    }
    total = sum(remaining.values())
    collapsed = {RoleType.WEREWOLF: 0.0}
    for role, value in remaining.items():
        collapsed[role] = value / total if total else 1.0 / len(remaining)
    return collapsed
