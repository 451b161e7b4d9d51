"""
One-way event recorder for completed games.

The orchestrator notifies the recorder about key events (game start,
speeches, votes, night actions, belief analyses, eliminations and the final
result). The recorder keeps them per game id and, when enabled, writes one
JSON summary per finished game plus a running ``overall.json`` with win
balance across games. Nothing here is read back during live play.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

BASE_DIR = Path(__file__).resolve().parents[2]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GameRecorder:
    """Collects per-game events and persists summaries."""

    def __init__(self, output_dir: Path | str | None = None, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._output_dir = Path(output_dir) if output_dir else BASE_DIR / "logs" / "games"
        self._active_games: Dict[str, Dict[str, Any]] = {}
        self.completed_games: List[Dict[str, Any]] = []
        self.win_counts: Counter[str] = Counter()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def reset(self) -> None:
        self._active_games.clear()
        self.completed_games.clear()
        self.win_counts.clear()

    # ------------------------------------------------------------------ #
    # Event hooks
    # ------------------------------------------------------------------ #

    def on_game_start(
        self,
        *,
        game_id: str,
        players: Dict[str, str],
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Open a record for ``game_id``. ``players`` maps player id to role."""
        if not self._enabled or not players:
            return
        if game_id in self._active_games:
            return
        self._active_games[game_id] = {
            "game_id": game_id,
            "started_at": _utc_now(),
            "players": dict(players),
            "config": dict(config or {}),
            "speeches": [],
            "votes": [],
            "night_actions": [],
            "analyses": [],
            "eliminations": [],
            "winner": None,
        }

    def _game(self, game_id: str) -> Optional[Dict[str, Any]]:
        if not self._enabled:
            return None
        return self._active_games.get(game_id)

    def on_speech(self, *, game_id: str, day: int, player_id: str, content: str, source: str) -> None:
        game = self._game(game_id)
        if game is None:
            return
        game["speeches"].append(
            {"day": day, "player_id": player_id, "content": content, "source": source, "ts": _utc_now()}
        )

    def on_vote(self, *, game_id: str, day: int, voter_id: str, target_id: str) -> None:
        game = self._game(game_id)
        if game is None:
            return
        roles = game["players"]
        game["votes"].append(
            {
                "day": day,
                "voter_id": voter_id,
                "target_id": target_id,
                "voter_role": roles.get(voter_id),
                "target_role": roles.get(target_id),
            }
        )

    def on_night_action(
        self,
        *,
        game_id: str,
        day: int,
        actor_id: str,
        action: str,
        target_id: Optional[str],
        source: str,
    ) -> None:
        game = self._game(game_id)
        if game is None:
            return
        game["night_actions"].append(
            {"day": day, "actor_id": actor_id, "action": action, "target_id": target_id, "source": source}
        )

    def on_analysis(self, *, game_id: str, day: int, player_id: str, report: Dict[str, Any]) -> None:
        game = self._game(game_id)
        if game is None:
            return
        game["analyses"].append({"day": day, "player_id": player_id, "report": report})

    def on_elimination(self, *, game_id: str, day: int, player_id: str, cause: str) -> None:
        game = self._game(game_id)
        if game is None:
            return
        game["eliminations"].append({"day": day, "player_id": player_id, "cause": cause})

    def on_game_end(self, *, game_id: str, winner: Optional[str], days: int) -> Optional[Dict[str, Any]]:
        """Close the record, update win counts and persist the summary."""
        game = self._game(game_id)
        if game is None:
            return None

        game["winner"] = winner
        game["days"] = days
        game["finished_at"] = _utc_now()
        summary = self._summarize_game(game)

        del self._active_games[game_id]
        self.completed_games.append(summary)
        if winner:
            self.win_counts[winner] += 1

        self._persist_game_summary(game, summary)
        self._persist_overall_metrics()
        return summary

    # ------------------------------------------------------------------ #
    # Summaries
    # ------------------------------------------------------------------ #

    @staticmethod
    def _summarize_game(game: Dict[str, Any]) -> Dict[str, Any]:
        roles = game["players"]
        votes = game["votes"]
        wolf_votes = [v for v in votes if v["target_role"] == "werewolf"]
        return {
            "game_id": game["game_id"],
            "winner": game["winner"],
            "days": game.get("days"),
            "player_count": len(roles),
            "speech_count": len(game["speeches"]),
            "vote_count": len(votes),
            "votes_on_werewolves": len(wolf_votes),
            "vote_accuracy": round(len(wolf_votes) / len(votes), 4) if votes else None,
            "eliminations": list(game["eliminations"]),
        }

    def get_overall_metrics(self) -> Dict[str, Any]:
        total = sum(self.win_counts.values())
        werewolf_rate = self.win_counts.get("werewolf", 0) / total if total else None
        return {
            "games": len(self.completed_games),
            "wins": dict(self.win_counts),
            "werewolf_win_rate": werewolf_rate,
            "win_balance_score": (1.0 - abs(werewolf_rate - 0.5) * 2) if werewolf_rate is not None else None,
        }

    def _persist_game_summary(self, game: Dict[str, Any], summary: Dict[str, Any]) -> None:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / f"{game['game_id']}.json"
        with path.open("w", encoding="utf-8") as fp:
            json.dump({"summary": summary, "events": game}, fp, ensure_ascii=False, indent=2)
        logger.info("Game record written to %s", path)

    def _persist_overall_metrics(self) -> None:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / "overall.json"
        with path.open("w", encoding="utf-8") as fp:
            json.dump(self.get_overall_metrics(), fp, ensure_ascii=False, indent=2)


__all__ = ["GameRecorder"]
