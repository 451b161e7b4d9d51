import json

import pytest

from src.game.recorder import GameRecorder


@pytest.fixture
def recorder(tmp_path):
    return GameRecorder(tmp_path)


def _start(recorder, game_id="game-1"):
    recorder.on_game_start(
        game_id=game_id,
        players={"a": "villager", "b": "werewolf", "c": "seer"},
        config={"total_players": 3},
    )


def test_on_vote_records_roles(recorder):
    _start(recorder)
    recorder.on_vote(game_id="game-1", day=1, voter_id="a", target_id="b")

    record = recorder._active_games["game-1"]["votes"][0]
    assert record["voter_role"] == "villager"
    assert record["target_role"] == "werewolf"


def test_events_for_unknown_game_are_ignored(recorder):
    recorder.on_speech(game_id="nope", day=1, player_id="a", content="hi", source="llm")
    assert recorder._active_games == {}


def test_disabled_recorder_keeps_nothing(tmp_path):
    recorder = GameRecorder(tmp_path, enabled=False)
    _start(recorder)
    assert recorder.on_game_end(game_id="game-1", winner="villager", days=2) is None
    assert list(tmp_path.iterdir()) == []


def test_game_end_summarizes_and_persists(recorder, tmp_path):
    _start(recorder)
    recorder.on_speech(game_id="game-1", day=1, player_id="c", content="I checked b.", source="llm")
    recorder.on_night_action(
        game_id="game-1", day=1, actor_id="b", action="kill", target_id="a", source="heuristic"
    )
    recorder.on_vote(game_id="game-1", day=1, voter_id="a", target_id="b")
    recorder.on_vote(game_id="game-1", day=1, voter_id="c", target_id="a")
    recorder.on_analysis(game_id="game-1", day=1, player_id="c", report={"most_suspicious": "b"})
    recorder.on_elimination(game_id="game-1", day=1, player_id="b", cause="vote")

    summary = recorder.on_game_end(game_id="game-1", winner="villager", days=1)

    assert summary["speech_count"] == 1
    assert summary["vote_count"] == 2
    assert summary["votes_on_werewolves"] == 1
    assert summary["vote_accuracy"] == 0.5
    assert summary["eliminations"] == [{"day": 1, "player_id": "b", "cause": "vote"}]
    assert "game-1" not in recorder._active_games

    saved = json.loads((tmp_path / "game-1.json").read_text(encoding="utf-8"))
    assert saved["summary"]["winner"] == "villager"
    assert saved["events"]["night_actions"][0]["action"] == "kill"
    assert json.loads((tmp_path / "overall.json").read_text(encoding="utf-8"))["games"] == 1


def test_overall_metrics_track_balance(recorder):
    for idx, winner in enumerate(["werewolf", "villager", "villager", "werewolf"]):
        _start(recorder, f"g{idx}")
        recorder.on_game_end(game_id=f"g{idx}", winner=winner, days=3)

    overall = recorder.get_overall_metrics()
    assert overall["games"] == 4
    assert overall["werewolf_win_rate"] == 0.5
    assert overall["win_balance_score"] == 1.0


def test_reset_clears_history(recorder):
    _start(recorder)
    recorder.on_game_end(game_id="game-1", winner=None, days=30)
    recorder.reset()
    assert recorder.completed_games == []
    assert recorder.get_overall_metrics()["werewolf_win_rate"] is None
