"""
Keyword heuristics for reading other players' statements.

Everything here is a deterministic, explainable lexical classifier. It is the
layer agents fall back on regardless of whether a language model is wired in,
so it must stay cheap and side-effect free.

Two entry points:
- ``analyze_speech``: intent / emotion / credibility / key facts / mentions
- ``assess_suspicion``: how suspicious a statement sounds, fed into the
  belief model as speech evidence

Keyword sets cover English and Chinese table talk.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

from pydantic import BaseModel, Field

from ..state import Player, SpeechType, clamp

LONG_SPEECH_CHARS = 200
SHORT_SPEECH_CHARS = 20
BASE_CREDIBILITY = 0.7
BASE_ASSESSMENT_CONFIDENCE = 0.5

# Checked in order; the first bucket with a hit decides the intent.
INTENT_KEYWORDS: Tuple[Tuple[SpeechType, Tuple[str, ...]], ...] = (
    (SpeechType.VOTE, ("投票", "vote for", "voting for", "i vote", "my vote")),
    (SpeechType.ACCUSATION, ("怀疑", "suspect", "suspicious", "is a wolf", "is the wolf")),
    (SpeechType.DEFENSE, ("不是我", "not me", "it wasn't me", "i'm innocent", "i am innocent")),
    (SpeechType.INFORMATION, ("验了", "i checked", "i verified", "my check", "last night i")),
)

EMOTION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("anger", ("气死", "愤怒", "furious", "angry", "ridiculous", "outrageous")),
    ("nervous", ("紧张", "不是我", "nervous", "worried", "not me")),
    ("confident", ("一定", "肯定", "definitely", "certainly", "for sure")),
)
DEFAULT_EMOTION = "calm"

ABSOLUTIST_WORDS = ("绝对", "一定", "absolutely", "definitely", "100%")
SUSPECT_ME_PHRASES = ("为什么怀疑我", "why suspect me", "why are you suspecting me", "why me")

KEY_INFO_MARKERS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("role_claim", ("我是", "i am the", "i'm the")),
    ("check_result", ("验了", "i checked", "i verified")),
    ("vote_intention", ("投票", "vote for", "i vote")),
)

SUSPICIOUS_KEYWORDS = (
    "一定是",
    "肯定是",
    "我觉得不是",
    "太明显了",
    "这么简单",
    "显而易见",
    "不可能",
    "绝对",
    "obviously",
    "too obvious",
    "impossible",
    "absolutely",
    "clearly",
)

DEFENSIVE_KEYWORDS = (
    "我不是",
    "相信我",
    "为什么怀疑我",
    "我是好人",
    "你们错了",
    "冤枉",
    "诬陷",
    "trust me",
    "i'm not",
    "i am not",
    "why suspect me",
    "i'm a villager",
    "you're wrong",
    "framed",
)

AGGRESSIVE_KEYWORDS = (
    "一定是狼",
    "明显的狼",
    "狼人",
    "出他",
    "投他",
    "他有问题",
    "werewolf",
    "vote him out",
    "vote them out",
    "lynch",
    "get rid of",
)


class SpeechAnalysis(BaseModel):
    intent: SpeechType = SpeechType.STRATEGY
    emotion: str = DEFAULT_EMOTION
    credibility: float = Field(default=BASE_CREDIBILITY, ge=0.0, le=1.0)
    key_information: List[str] = Field(default_factory=list)
    targets_mentioned: List[str] = Field(default_factory=list)


class SpeechAssessment(BaseModel):
    suspicion_weight: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=BASE_ASSESSMENT_CONFIDENCE, ge=0.0, le=1.0)
    summary: str = "ordinary statement"


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_intent(text: str) -> SpeechType:
    lowered = text.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if _contains_any(lowered, keywords):
            return intent
    return SpeechType.STRATEGY


def classify_emotion(text: str) -> str:
    lowered = text.lower()
    for emotion, keywords in EMOTION_KEYWORDS:
        if _contains_any(lowered, keywords):
            return emotion
    return DEFAULT_EMOTION


def score_credibility(text: str) -> float:
    lowered = text.lower()
    score = BASE_CREDIBILITY
    if _contains_any(lowered, ABSOLUTIST_WORDS):
        score -= 0.1
    if _contains_any(lowered, SUSPECT_ME_PHRASES):
        score -= 0.2
    if len(text) > LONG_SPEECH_CHARS:
        score -= 0.1
    return clamp(score)


def extract_key_information(text: str) -> List[str]:
    lowered = text.lower()
    return [label for label, markers in KEY_INFO_MARKERS if _contains_any(lowered, markers)]


def extract_targets(text: str, roster: Sequence[Player]) -> List[str]:
    """Ids of players whose display name occurs as a whole word in ``text``, in seat order."""
    return [
        player.id
        for player in sorted(roster, key=lambda p: p.seat)
        if player.name and re.search(rf"\b{re.escape(player.name)}\b", text, re.IGNORECASE)
    ]


def analyze_speech(text: str, roster: Sequence[Player] = ()) -> SpeechAnalysis:
    """Classify a statement into an analysis tuple."""
    return SpeechAnalysis(
        intent=classify_intent(text),
        emotion=classify_emotion(text),
        credibility=score_credibility(text),
        key_information=extract_key_information(text),
        targets_mentioned=extract_targets(text, roster),
    )


def assess_suspicion(text: str) -> SpeechAssessment:
    """Estimate how suspicious a statement sounds.

    Suspicious phrasing adds 0.1 per keyword, defensive phrasing 0.2 (and
    raises confidence), aggressive phrasing 0.05. Very long statements look
    like over-explaining, very short ones like hiding information.
    """
    lowered = text.lower()
    weight = 0.0
    confidence = BASE_ASSESSMENT_CONFIDENCE
    notes: List[str] = []

    for keyword in SUSPICIOUS_KEYWORDS:
        if keyword in lowered:
            weight += 0.1
            notes.append(f"suspicious wording: {keyword}")

    for keyword in DEFENSIVE_KEYWORDS:
        if keyword in lowered:
            weight += 0.2
            confidence += 0.1
            notes.append(f"defensive wording: {keyword}")

    for keyword in AGGRESSIVE_KEYWORDS:
        if keyword in lowered:
            weight += 0.05
            notes.append(f"aggressive wording: {keyword}")

    if len(text) > LONG_SPEECH_CHARS:
        weight += 0.05
        notes.append("long statement, possibly over-explaining")
    elif len(text) < SHORT_SPEECH_CHARS:
        weight += 0.1
        notes.append("very short statement, possibly withholding")

    return SpeechAssessment(
        suspicion_weight=clamp(weight),
        confidence=clamp(confidence),
        summary="; ".join(notes) if notes else "ordinary statement",
    )
