import pytest

from src.game.agents.speech import (
    BASE_CREDIBILITY,
    analyze_speech,
    assess_suspicion,
    classify_emotion,
    classify_intent,
    extract_key_information,
    score_credibility,
)
from src.game.state import RoleType, SpeechType


@pytest.mark.parametrize(
    "text, expected",
    [
        ("I vote for Bob, he has been quiet.", SpeechType.VOTE),
        ("I suspect Carol is lying.", SpeechType.ACCUSATION),
        ("It's not me, I'm innocent!", SpeechType.DEFENSE),
        ("Last night I checked Dave.", SpeechType.INFORMATION),
        ("我怀疑3号", SpeechType.ACCUSATION),
        ("Let's take it slowly today.", SpeechType.STRATEGY),
    ],
)
def test_classify_intent(text, expected):
    assert classify_intent(text) == expected


def test_vote_wins_over_accusation():
    assert classify_intent("I suspect him, so I vote for Bob") == SpeechType.VOTE


def test_classify_emotion():
    assert classify_emotion("This is ridiculous!") == "anger"
    assert classify_emotion("I'm a bit nervous about this") == "nervous"
    assert classify_emotion("He is definitely the one") == "confident"
    assert classify_emotion("Good morning everyone") == "calm"


def test_credibility_penalties_stack():
    assert score_credibility("I think we should wait.") == BASE_CREDIBILITY
    assert score_credibility("Absolutely sure, why me?") == pytest.approx(0.4)
    long_text = "absolutely " + "x" * 250
    assert score_credibility(long_text) == pytest.approx(0.5)


def test_extract_key_information():
    info = extract_key_information("I am the seer and I checked Bob. I vote for Bob.")
    assert info == ["role_claim", "check_result", "vote_intention"]


def test_targets_are_matched_by_name_in_seat_order(make_player):
    roster = [
        make_player("p2", 2, RoleType.VILLAGER, name="Carol"),
        make_player("p1", 1, RoleType.WEREWOLF, name="Bob"),
        make_player("p3", 3, RoleType.SEER, name="Dave"),
    ]
    analysis = analyze_speech("carol and BOB were both weird", roster)
    assert analysis.targets_mentioned == ["p1", "p2"]


def test_targets_need_whole_word_matches(make_player):
    roster = [
        make_player("p0", 0, RoleType.VILLAGER, name="You"),
        make_player("p1", 1, RoleType.WEREWOLF, name="Al"),
        make_player("p2", 2, RoleType.SEER, name="Bob"),
    ]
    analysis = analyze_speech("Bob, I suspect youngsters and allies alike.", roster)
    assert analysis.targets_mentioned == ["p2"]
    assert analyze_speech("Is it you, Bob's friend?", roster).targets_mentioned == ["p0", "p2"]


def test_analyze_without_roster_mentions_nobody():
    analysis = analyze_speech("I suspect Bob")
    assert analysis.intent == SpeechType.ACCUSATION
    assert analysis.targets_mentioned == []


def test_assess_ordinary_statement():
    assessment = assess_suspicion("I think we should look at how the votes went yesterday.")
    assert assessment.suspicion_weight == 0.0
    assert assessment.confidence == 0.5
    assert assessment.summary == "ordinary statement"


def test_assess_defensive_statement_raises_confidence():
    assessment = assess_suspicion("Trust me, I'm not the wolf you are looking for here")
    assert assessment.suspicion_weight == pytest.approx(0.4)
    assert assessment.confidence == pytest.approx(0.7)


def test_assess_short_statement():
    assessment = assess_suspicion("Pass.")
    assert assessment.suspicion_weight == pytest.approx(0.1)


def test_assess_scores_are_clamped():
    text = " ".join(
        ["obviously clearly absolutely impossible too obvious trust me i'm not framed"] * 3
    )
    assessment = assess_suspicion(text)
    assert 0.0 <= assessment.suspicion_weight <= 1.0
    assert 0.0 <= assessment.confidence <= 1.0
