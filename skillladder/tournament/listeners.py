"""Result sinks for tournaments.

Listeners receive every completed match and the final outcome of each
tournament, and own all file formatting. The runner calls them from the
thread that aggregates results, so implementations need no locking.

Listeners are selected by name in run configurations:

    listeners: ["matchlog"]
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from ..errors import ConfigurationError, ResourceError
from .results import MatchResult, TournamentOutcome

logger = logging.getLogger(__name__)


class GameListener:
    """Base listener; every hook is a no-op by default."""

    def __init__(self) -> None:
        self.output_dir: Path | None = None

    def set_output_directory(self, *parts: str | Path) -> None:
        """Direct output to the nested directory ``parts`` (joined)."""
        parts = tuple(p for p in parts if str(p))
        self.output_dir = Path(*parts) if parts else None

    def on_match(self, match: MatchResult, agent_names: Sequence[str]) -> None:
        pass

    def on_tournament_end(
        self, outcome: TournamentOutcome, agent_names: Sequence[str]
    ) -> None:
        pass

    def _ensure_dir(self) -> Path:
        directory = self.output_dir or Path(".")
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(
                f"Cannot create output directory {directory}: {e}",
                context={"listener": type(self).__name__},
            ) from e
        return directory


class MatchLogListener(GameListener):
    """Appends one CSV row per match to ``<output_dir>/matches.csv``."""

    FILE_NAME = "matches.csv"
    FIELDS = ("match_index", "agents", "positions", "ranks", "win_shares", "moves", "truncated")

    def on_match(self, match: MatchResult, agent_names: Sequence[str]) -> None:
        path = self._ensure_dir() / self.FILE_NAME
        new_file = not path.exists()
        try:
            with open(path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                if new_file:
                    writer.writerow(self.FIELDS)
                writer.writerow([
                    match.match_index,
                    "|".join(agent_names[slot] for slot in match.seats),
                    "|".join(str(p) for p in match.positions),
                    "|".join(f"{float(r):g}" for r in match.ranks),
                    "|".join(f"{float(w):.4f}" for w in match.win_shares),
                    match.moves,
                    match.truncated,
                ])
        except OSError as e:
            raise ResourceError(f"Cannot write match log {path}: {e}") from e


class TournamentSummaryListener(GameListener):
    """Writes ``<output_dir>/summary.json`` when a tournament ends."""

    FILE_NAME = "summary.json"

    def on_tournament_end(
        self, outcome: TournamentOutcome, agent_names: Sequence[str]
    ) -> None:
        path = self._ensure_dir() / self.FILE_NAME
        data = {
            "agents": list(agent_names),
            "games": outcome.games,
            "elapsed_seconds": outcome.elapsed_seconds,
            "complete": outcome.complete,
            "failed": outcome.failed,
            "results": [outcome.results[s].to_dict() for s in sorted(outcome.results)],
        }
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise ResourceError(f"Cannot write tournament summary {path}: {e}") from e


class TournamentResultsFile(GameListener):
    """Appends a text block per tournament to a shared results file."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)

    def on_tournament_end(
        self, outcome: TournamentOutcome, agent_names: Sequence[str]
    ) -> None:
        lines = [
            f"Tournament: {' vs '.join(agent_names)} "
            f"({outcome.games} games{'' if outcome.complete else ', incomplete'})"
        ]
        for slot in sorted(outcome.results):
            r = outcome.results[slot]
            lines.append(
                f"\t{r.name:<20} win rate {r.win_rate * 100:5.1f}% +/- "
                f"{r.win_std_err * 200:4.1f}%  mean rank {r.mean_rank:.2f} +/- "
                f"{r.rank_std_err * 2:.2f}"
            )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n\n")
        except OSError as e:
            raise ResourceError(f"Cannot write results file {self.path}: {e}") from e


LISTENERS: dict[str, Callable[[], GameListener]] = {
    "matchlog": MatchLogListener,
    "summary": TournamentSummaryListener,
}


def create_listener(name: str) -> GameListener:
    """Instantiate the listener registered as ``name``."""
    try:
        return LISTENERS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown listener '{name}'",
            context={"available": sorted(LISTENERS)},
        ) from None
