"""Skill ladder driver.

Plots how playing strength scales with an agent's resource budget. Starting
from ``start_budget``, each rung multiplies the budget by ``multiplier``:

    budget(i) = int(multiplier ** i * start_budget)

For each rung the agent is either created directly at the new budget, or,
when NTBEA tuning is enabled, tuned at that budget against the previous rung
(rescaled to the new budget) with the previous rung's configuration as an
elite. The new rung then plays a one-vs-all tournament against the previous
rung, or against every earlier rung in grid mode.

Player counts are processed independently; output is organised as

    <dest_dir>/Players_<p>/TournamentResults.txt
    <dest_dir>/Players_<p>/Budget_<b>/                 (listeners)
    <dest_dir>/Players_<p>/Budget_<b> vs Budget_<o>/   (listeners, grid mode)
    <dest_dir>/Players_<p>/Budget_<b>/NTBEA/NTBEA_Runs.log

Usage:
    from skillladder.config import load_config
    from skillladder.tournament.skill_ladder import SkillLadder

    report = SkillLadder(load_config("ladder.yaml")).run()
    for comparison in report.comparisons:
        print(comparison.summary)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from ..ai.base import Agent, BudgetScaling
from ..ai.factory import AgentFactory
from ..config.ladder_config import SkillLadderConfig, resolve_player_counts
from ..games.base import GameRegistry, RulesEngine
from ..metrics import LADDER_RUNGS
from ..models import SeatingMode
from ..optimisation.ntbea import NTBEA, NTBEAParameters
from ..optimisation.search_space import Configuration, SearchSpace
from .listeners import GameListener, TournamentResultsFile, create_listener
from .results import TournamentResult, format_summary_line
from .runner import TournamentRunner

logger = logging.getLogger(__name__)

RESULTS_FILE = "TournamentResults.txt"


@dataclass(frozen=True)
class Rung:
    """One step of the ladder."""

    index: int
    budget: int
    agent: Agent
    configuration: Configuration | None = None

    @property
    def name(self) -> str:
        return self.agent.name


@dataclass
class LadderComparison:
    """Confirmatory tournament between a new rung and an earlier one.

    ``results`` is keyed by slot: 0 is the new rung, 1 the earlier rung.
    """

    n_players: int
    budget: int
    other_budget: int
    games: int
    elapsed_seconds: float
    results: dict[int, TournamentResult]
    summary: str
    complete: bool = True


@dataclass
class LadderReport:
    rungs_by_players: dict[int, list[Rung]] = field(default_factory=dict)
    comparisons: list[LadderComparison] = field(default_factory=list)
    complete: bool = True

    def rungs(self, n_players: int) -> list[Rung]:
        return self.rungs_by_players.get(n_players, [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "complete": self.complete,
            "rungs": {
                str(p): [
                    {
                        "index": r.index,
                        "budget": r.budget,
                        "name": r.name,
                        "configuration": str(r.configuration) if r.configuration is not None else None,
                    }
                    for r in rungs
                ]
                for p, rungs in self.rungs_by_players.items()
            },
            "comparisons": [
                {
                    "n_players": c.n_players,
                    "budget": c.budget,
                    "other_budget": c.other_budget,
                    "games": c.games,
                    "elapsed_seconds": c.elapsed_seconds,
                    "complete": c.complete,
                    "results": [c.results[s].to_dict() for s in sorted(c.results)],
                }
                for c in self.comparisons
            ],
        }


class SkillLadder:
    """Runs the ladder described by a :class:`SkillLadderConfig`.

    Args:
        config: Validated run options.
        games: Registry resolving ``config.game``.
        factory: Agent factory resolving ``config.player``.
        report: Receives each tournament summary line.
        cancel_event: Checked at rung and tournament boundaries; when set,
            the ladder stops and returns a report flagged incomplete.
    """

    def __init__(
        self,
        config: SkillLadderConfig,
        games: type[GameRegistry] = GameRegistry,
        factory: type[AgentFactory] = AgentFactory,
        report: Callable[[str], Any] = print,
        cancel_event: threading.Event | None = None,
    ):
        self.config = config
        self.games = games
        self.factory = factory
        self.report = report
        self.cancel_event = cancel_event
        self._search_space: SearchSpace | None = None

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _seed(self, *keys: int) -> int | None:
        if self.config.seed is None:
            return None
        sequence = np.random.SeedSequence([self.config.seed, *keys])
        return int(sequence.generate_state(1)[0])

    def _player_dir(self, n_players: int) -> Path:
        return Path(self.config.dest_dir) / f"Players_{n_players}"

    def _space(self, budget: int) -> SearchSpace:
        if self._search_space is None:
            self._search_space = SearchSpace.from_file(
                self.config.search_space, factory=self.factory
            )
        return self._search_space.with_budget(budget)

    def run(self) -> LadderReport:
        """Run every configured player count.

        Raises:
            ConfigurationError: Unknown game, agent or unsupported player count.
            SimulationError: A match failed and failures are not skipped.
            ResourceError: Output files could not be written.
        """
        game = self.games.create(self.config.game)
        counts = resolve_player_counts(self.config, game)
        logger.info(
            "Skill ladder for %s, players %s, budgets %s%s",
            game.name, counts, self.config.budgets(),
            " (NTBEA tuned)" if self.config.tuning else "",
        )

        report = LadderReport()
        for n_players in counts:
            if self._cancelled():
                report.complete = False
                break
            self._run_players(game, n_players, report)
        if self._cancelled():
            report.complete = False
            logger.warning("Skill ladder cancelled; returning partial results")
        return report

    def _ntbea_parameters(self, n_players: int, budget: int, rung: int) -> NTBEAParameters:
        cfg = self.config
        dest_dir = None
        if cfg.dest_dir:
            dest_dir = self._player_dir(n_players) / f"Budget_{budget}" / "NTBEA"
        return NTBEAParameters.for_budget_rung(
            self._space(budget),
            cfg.ntbea_budget,
            evaluation_games=cfg.evaluation_games,
            fitness=cfg.fitness,
            seed=self._seed(0, n_players, rung),
            workers=cfg.workers,
            max_moves=cfg.max_moves,
            game_params=cfg.game_params,
            dest_dir=dest_dir,
            skip_failed_matches=cfg.skip_failed_matches,
        )

    def _baseline(self, budget: int) -> Agent:
        return self.factory.create_from_spec(self.config.player, budget=budget)

    def _run_players(self, game: RulesEngine, n_players: int, report: LadderReport) -> None:
        cfg = self.config
        rungs: list[Rung] = []
        report.rungs_by_players[n_players] = rungs
        labels = {"game": game.name, "num_players": str(n_players)}

        best: Configuration | None = None
        if cfg.tuning:
            params = self._ntbea_parameters(n_players, cfg.start_budget, 0)
            params = params.with_repeats(max(n_players, params.repeats))
            params.search_space.log_details(logger)
            if cfg.start_settings:
                best = params.search_space.validate(Configuration.from_digits(cfg.start_settings))
                agent = params.search_space.build_agent(best)
            else:
                ntbea = NTBEA(
                    params, game, n_players,
                    opponents=[self._baseline(cfg.start_budget)],
                    cancel_event=self.cancel_event,
                )
                agent, best = ntbea.run()
        else:
            agent = self._baseline(cfg.start_budget)
        agent.name = f"Budget {cfg.start_budget}"
        rungs.append(Rung(0, cfg.start_budget, agent, best))
        LADDER_RUNGS.labels(**labels).set(len(rungs))

        for i in range(cfg.iterations):
            if self._cancelled():
                return
            new_budget = cfg.budget(i + 1)
            if cfg.tuning:
                params = self._ntbea_parameters(n_players, new_budget, i + 1)
                # One run per opponent seat; the elite supplies the remaining candidate
                params = params.with_repeats(max(n_players - 1, params.repeats))
                benchmark = rungs[i].agent.copy()
                if isinstance(benchmark, BudgetScaling):
                    benchmark.budget = new_budget
                ntbea = NTBEA(params, game, n_players, cancel_event=self.cancel_event)
                ntbea.set_opponents([benchmark])
                ntbea.add_elite(best)
                agent, best = ntbea.run()
                configuration = best
            else:
                agent = self._baseline(new_budget)
                configuration = None
            agent.name = f"Budget {new_budget}"
            rungs.append(Rung(i + 1, new_budget, agent, configuration))
            LADDER_RUNGS.labels(**labels).set(len(rungs))

            if new_budget < cfg.grid_start:
                logger.info("Budget %d below grid start %d, not evaluated", new_budget, cfg.grid_start)
                continue

            start_agent = 0 if cfg.grid else i
            for agent_index in range(start_agent, i + 1):
                other = rungs[agent_index]
                if new_budget == cfg.grid_start and other.budget < cfg.grid_minor_start:
                    continue
                if self._cancelled():
                    return
                comparison = self._compare(game, n_players, rungs[i + 1], other)
                report.comparisons.append(comparison)
                if not comparison.complete:
                    report.complete = False

    def _listeners(self, n_players: int, new: Rung, other: Rung) -> list[GameListener]:
        cfg = self.config
        player_dir = self._player_dir(n_players)
        listeners: list[GameListener] = []
        for name in cfg.listener:
            if not name:
                continue
            listener = create_listener(name)
            if cfg.grid:
                listener.set_output_directory(player_dir, f"Budget_{new.budget} vs Budget_{other.budget}")
            else:
                listener.set_output_directory(player_dir, f"Budget_{new.budget}")
            listeners.append(listener)
        if cfg.dest_dir:
            listeners.append(TournamentResultsFile(player_dir / RESULTS_FILE))
        return listeners

    def _compare(self, game: RulesEngine, n_players: int, new: Rung, other: Rung) -> LadderComparison:
        cfg = self.config
        runner = TournamentRunner(
            game,
            n_players,
            mode=SeatingMode.ONE_VS_ALL,
            matches=cfg.matchups,
            game_params=cfg.game_params,
            listeners=self._listeners(n_players, new, other),
            workers=cfg.workers,
            seed=self._seed(1, n_players, new.index, other.index),
            max_moves=cfg.max_moves,
            skip_failed_matches=cfg.skip_failed_matches,
            cancel_event=self.cancel_event,
        )
        outcome = runner.run([new.agent, other.agent])
        summary = format_summary_line(
            cfg.matchups,
            outcome.elapsed_seconds,
            new.budget,
            outcome.results[0],
            other.budget,
            outcome.results[1],
        )
        logger.info(summary)
        self.report(summary)
        return LadderComparison(
            n_players=n_players,
            budget=new.budget,
            other_budget=other.budget,
            games=outcome.games,
            elapsed_seconds=outcome.elapsed_seconds,
            results=outcome.results,
            summary=summary,
            complete=outcome.complete,
        )
