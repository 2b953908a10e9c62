"""N-Tuple Bandit Evolutionary Algorithm (NTBEA).

Tunes an agent over a discrete :class:`SearchSpace` by playing short
tournaments against a fixed opponent set:

- Each run keeps a fresh :class:`NTupleModel` and a current best
  configuration. Every iteration proposes either a uniformly random
  configuration or the single-dimension neighbour of the current best with
  the highest upper confidence bound, evaluates it in a one-vs-all
  mini-tournament, feeds the per-match scores into the model, and moves the
  current best to whichever evaluated configuration the model now values
  most.
- ``repeats`` independent runs are made, each starting from the best elite.
  Run winners join the bounded elite set alongside any externally supplied
  elites, and the elites optionally play a larger round-robin tournament
  to pick the final configuration.

Usage:
    params = NTBEAParameters(search_space=space, iterations_per_run=200, seed=1)
    ntbea = NTBEA(params, game, n_players=2, opponents=[baseline])
    agent, config = ntbea.run()
"""

from __future__ import annotations

import json
import logging
import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np

from ..ai.base import Agent
from ..errors import ConfigurationError, InvalidStateError, ResourceError
from ..games.base import RulesEngine, check_player_count
from ..metrics import NTBEA_BEST_ESTIMATE, NTBEA_ITERATIONS
from ..models import FitnessMode, SeatingMode
from ..tournament.results import MatchResult, TournamentOutcome
from ..tournament.runner import DEFAULT_MAX_MOVES, TournamentRunner
from .ntuple import DEFAULT_EXPLORATION, NTupleModel
from .search_space import Configuration, SearchSpace

logger = logging.getLogger(__name__)

# Fixed split used between ladder rungs: independent runs, and the share of
# the game budget spent on the final tournament among their winners.
RUNS_BETWEEN_RUNGS = 4
TOURNAMENT_BUDGET_FRACTION = 0.5


class NTBEAPhase(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    FINALIZING = "finalizing"
    DONE = "done"


_TRANSITIONS: dict[NTBEAPhase, frozenset[NTBEAPhase]] = {
    NTBEAPhase.IDLE: frozenset({NTBEAPhase.INITIALIZING}),
    NTBEAPhase.INITIALIZING: frozenset({NTBEAPhase.ITERATING}),
    NTBEAPhase.ITERATING: frozenset({NTBEAPhase.FINALIZING}),
    NTBEAPhase.FINALIZING: frozenset({NTBEAPhase.DONE}),
    NTBEAPhase.DONE: frozenset({NTBEAPhase.INITIALIZING}),
}


@dataclass
class NTBEAParameters:
    """Configuration for one NTBEA optimisation.

    Attributes:
        search_space: Space to tune (its budget is injected into agents).
        iterations_per_run: Candidate evaluations per run.
        repeats: Independent runs, each with a fresh model.
        evaluation_games: Games per candidate evaluation.
        tournament_games: Games in the final tournament among the elites;
            0 picks the elite with the best model estimate instead.
        exploration: UCB exploration constant.
        random_probability: Chance of proposing a uniformly random
            configuration instead of the best neighbour.
        tuple_sizes: N-tuple sizes tracked by the model (default 1, 2, full).
        elite_capacity: Bound on the elite set, which holds the finalists.
        fitness: Score per match (win share or normalised rank).
        seed: Seed for proposals and match seeds.
        workers: Worker threads for mini-tournaments.
        max_moves: Per-match action limit.
        game_params: Rules engine parameters.
        dest_dir: Directory for the per-run log; None disables it.
        log_file: Per-run log file name inside ``dest_dir``.
        skip_failed_matches: Tolerate failed matches in evaluations.
    """

    search_space: SearchSpace
    iterations_per_run: int = 100
    repeats: int = 1
    evaluation_games: int = 1
    tournament_games: int = 0
    exploration: float = DEFAULT_EXPLORATION
    random_probability: float = 0.1
    tuple_sizes: tuple[int, ...] | None = None
    elite_capacity: int = 16
    fitness: FitnessMode = FitnessMode.WIN
    seed: int | None = None
    workers: int = 1
    max_moves: int = DEFAULT_MAX_MOVES
    game_params: Mapping[str, Any] = field(default_factory=dict)
    dest_dir: str | Path | None = None
    log_file: str = "NTBEA_Runs.log"
    skip_failed_matches: bool = False

    @classmethod
    def for_budget_rung(
        cls,
        search_space: SearchSpace,
        game_budget: int,
        runs: int = RUNS_BETWEEN_RUNGS,
        tournament_fraction: float = TOURNAMENT_BUDGET_FRACTION,
        **kwargs: Any,
    ) -> NTBEAParameters:
        """Split a total game budget between runs and the final tournament."""
        tournament_games = int(game_budget * tournament_fraction)
        return cls(
            search_space=search_space,
            repeats=runs,
            tournament_games=tournament_games,
            iterations_per_run=(game_budget - tournament_games) // runs,
            **kwargs,
        )

    def with_repeats(self, repeats: int) -> NTBEAParameters:
        return replace(self, repeats=repeats)

    def validate(self) -> None:
        if self.iterations_per_run <= 0:
            raise ConfigurationError(
                "NTBEA needs a positive iteration budget",
                context={"iterations_per_run": self.iterations_per_run},
            )
        if self.repeats < 1:
            raise ConfigurationError(
                "NTBEA needs at least one run", context={"repeats": self.repeats}
            )
        if self.evaluation_games < 1:
            raise ConfigurationError(
                "Each evaluation needs at least one game",
                context={"evaluation_games": self.evaluation_games},
            )
        if not 0.0 <= self.random_probability <= 1.0:
            raise ConfigurationError(
                "random_probability must be within [0, 1]",
                context={"random_probability": self.random_probability},
            )


class EliteSet:
    """Bounded mapping from configurations to their best observed score.

    When full, the lowest-scoring entry is evicted (ties: the configuration
    last in canonical order goes first). Pinned entries are never evicted,
    so the set exceeds its capacity only when every entry is pinned.
    """

    def __init__(self, capacity: int = 16):
        if capacity < 1:
            raise ConfigurationError("Elite set capacity must be positive")
        self.capacity = capacity
        self._scores: dict[Configuration, float] = {}
        self._pinned: set[Configuration] = set()

    def add(
        self,
        config: Sequence[int],
        score: float = -math.inf,
        pinned: bool = False,
    ) -> None:
        config = Configuration(config)
        previous = self._scores.get(config)
        if previous is None or score > previous:
            self._scores[config] = score
        if pinned:
            self._pinned.add(config)
        while len(self._scores) > self.capacity:
            evictable = [c for c in self._scores if c not in self._pinned]
            if not evictable:
                break
            worst = min(evictable, key=lambda c: (self._scores[c], _reverse_key(c)))
            del self._scores[worst]

    def best(self) -> Configuration | None:
        if not self._scores:
            return None
        return max(self._scores, key=lambda c: (self._scores[c], _reverse_key(c)))

    def score(self, config: Sequence[int]) -> float | None:
        return self._scores.get(Configuration(config))

    def configurations(self) -> list[Configuration]:
        """Entries in insertion order."""
        return list(self._scores)

    def is_pinned(self, config: Sequence[int]) -> bool:
        return Configuration(config) in self._pinned

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, config: object) -> bool:
        return config in self._scores


def _reverse_key(config: Configuration) -> tuple[int, ...]:
    # Negated indices invert canonical order for max()/min() tie-breaks
    return tuple(-i for i in config)


@dataclass(frozen=True)
class RunSummary:
    run_index: int
    configuration: Configuration
    estimate: float
    std_err: float
    evaluations: int


class NTBEA:
    """NTBEA optimiser for one game and player count.

    Args:
        params: Optimisation parameters.
        game: Rules engine used for evaluation games.
        n_players: Seats per game.
        opponents: Agents filling the non-candidate seats.
        cancel_event: Checked at every iteration boundary; a cancelled
            optimisation finalises with the runs completed so far.
    """

    def __init__(
        self,
        params: NTBEAParameters,
        game: RulesEngine,
        n_players: int,
        opponents: Iterable[Agent] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.params = params
        self.game = game
        self.n_players = n_players
        self.opponents: list[Agent] = list(opponents or [])
        self.cancel_event = cancel_event
        self.elites = EliteSet(params.elite_capacity)
        self.seeded_elites: list[Configuration] = []
        self.phase = NTBEAPhase.IDLE
        self.proposals: list[Configuration] = []
        self.run_winners: list[RunSummary] = []
        self.model: NTupleModel | None = None
        self.final_tournament: TournamentOutcome | None = None
        self._labels = {"game": game.name, "num_players": str(n_players)}

    @property
    def search_space(self) -> SearchSpace:
        return self.params.search_space

    def set_opponents(self, opponents: Iterable[Agent]) -> None:
        self.opponents = list(opponents)

    def add_elite(self, config: Sequence[int]) -> None:
        """Seed the optimisation with a known-good configuration."""
        config = self.search_space.validate(config)
        if config not in self.seeded_elites:
            self.seeded_elites.append(config)
        self.elites.add(config, pinned=True)

    def _transition(self, phase: NTBEAPhase) -> None:
        allowed = _TRANSITIONS.get(self.phase)
        if allowed is None or phase not in allowed:
            raise InvalidStateError(
                f"Illegal NTBEA transition {self.phase.value} -> {phase.value}"
            )
        logger.debug("NTBEA phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def run(self) -> tuple[Agent, Configuration]:
        """Run the optimisation.

        Returns:
            The best agent and the configuration that produced it.

        Raises:
            ConfigurationError: Empty opponent set, non-positive iteration
                budget or unsupported player count.
            SimulationError: A mini-tournament match failed.
        """
        self._transition(NTBEAPhase.INITIALIZING)
        try:
            return self._run()
        except BaseException:
            self.phase = NTBEAPhase.IDLE
            raise

    def _run(self) -> tuple[Agent, Configuration]:
        if not self.opponents:
            raise ConfigurationError("NTBEA needs at least one opponent")
        self.params.validate()
        check_player_count(self.game, self.n_players)

        rng = np.random.default_rng(self.params.seed)
        self.elites = EliteSet(self.params.elite_capacity)
        for config in self.seeded_elites:
            self.elites.add(config, pinned=True)
        self.proposals = []
        self.run_winners = []
        self.final_tournament = None
        logger.info(
            "NTBEA on %s (%d players): %d runs x %d iterations, %d games per "
            "evaluation, %d final tournament games, %d elites",
            self.game.name, self.n_players, self.params.repeats,
            self.params.iterations_per_run, self.params.evaluation_games,
            self.params.tournament_games, len(self.elites),
        )

        self._transition(NTBEAPhase.ITERATING)
        for run_index in range(self.params.repeats):
            if self._cancelled():
                logger.warning("NTBEA cancelled after %d runs", run_index)
                break
            summary = self._single_run(run_index, rng)
            self.run_winners.append(summary)
            self.elites.add(summary.configuration, summary.estimate)
            logger.info(
                "NTBEA run %d winner %s %s: estimate %.3f +/- %.3f",
                run_index, summary.configuration,
                self.search_space.describe(summary.configuration),
                summary.estimate, summary.std_err,
            )
            self._write_log({
                "run": run_index,
                "configuration": str(summary.configuration),
                "settings": self.search_space.describe(summary.configuration),
                "estimate": summary.estimate,
                "std_err": summary.std_err,
                "evaluations": summary.evaluations,
            })

        self._transition(NTBEAPhase.FINALIZING)
        best = self._finalize(rng)
        self._transition(NTBEAPhase.DONE)

        logger.info(
            "NTBEA final configuration %s %s",
            best, self.search_space.describe(best),
        )
        return self.search_space.build_agent(best), best

    def _single_run(self, run_index: int, rng: np.random.Generator) -> RunSummary:
        space = self.search_space
        model = NTupleModel(space.size(), self.params.tuple_sizes, self.params.exploration)
        self.model = model

        current = self.elites.best()
        if current is None:
            current = space.random_config(rng)
        evaluated: set[Configuration] = set()

        for iteration in range(self.params.iterations_per_run):
            if self._cancelled():
                break
            candidate = current if iteration == 0 else self._propose(model, current, rng)
            self.proposals.append(candidate)

            scores = self._evaluate(candidate, iteration, int(rng.integers(2**31)))
            model.update_batch(candidate, scores)
            evaluated.add(candidate)
            NTBEA_ITERATIONS.labels(**self._labels).inc()

            current = max(evaluated, key=lambda c: (model.value(c), _reverse_key(c)))
            logger.debug(
                "Run %d iteration %d: %s scored %.3f, best %s (%.3f)",
                run_index, iteration, candidate,
                sum(scores) / len(scores) if scores else float("nan"),
                current, model.value(current),
            )

        estimate = model.value(current)
        NTBEA_BEST_ESTIMATE.labels(**self._labels).set(estimate)
        return RunSummary(
            run_index=run_index,
            configuration=current,
            estimate=estimate,
            std_err=model.std_err(current),
            evaluations=len(evaluated),
        )

    def _propose(
        self,
        model: NTupleModel,
        current: Configuration,
        rng: np.random.Generator,
    ) -> Configuration:
        """Random configuration, or the neighbour with the highest UCB.

        Ties on the bound go to the neighbour with the fewest tuple visits,
        then to the first in canonical order.
        """
        if rng.random() < self.params.random_probability:
            return self.search_space.random_config(rng)

        def key(config: Configuration) -> tuple[float, int, Configuration]:
            _, bound = model.estimate(config)
            return (-bound, model.visits(config), config)

        return min(self.search_space.neighbours(current), key=key)

    def _evaluate(self, candidate: Configuration, iteration: int, seed: int) -> list[float]:
        agent = self.search_space.build_agent(candidate, name=f"NTBEA {candidate}")
        runner = TournamentRunner(
            self.game,
            self.n_players,
            mode=SeatingMode.ONE_VS_ALL,
            matches=self.params.evaluation_games,
            game_params=self.params.game_params,
            workers=self.params.workers,
            seed=seed,
            max_moves=self.params.max_moves,
            skip_failed_matches=self.params.skip_failed_matches,
            cancel_event=self.cancel_event,
            seat_offset=iteration,
        )
        outcome = runner.run([agent, *self.opponents])
        return [self._fitness(match) for match in outcome.matches]

    def _fitness(self, match: MatchResult) -> float:
        [seat] = match.seats_of(0)
        if self.params.fitness is FitnessMode.ORDINAL:
            return float((self.n_players - match.ranks[seat]) / (self.n_players - 1))
        return float(match.win_shares[seat])

    def _finalize(self, rng: np.random.Generator) -> Configuration:
        """Pick the final configuration from the elite set."""
        candidates = self.elites.configurations()
        if not candidates:
            raise InvalidStateError("NTBEA finished without evaluating any configuration")

        if len(candidates) == 1:
            return candidates[0]
        if self.params.tournament_games <= 0 or self._cancelled():
            return self.elites.best()

        agents = [
            self.search_space.build_agent(c, name=f"Candidate {c}") for c in candidates
        ]
        runner = TournamentRunner(
            self.game,
            self.n_players,
            mode=SeatingMode.ROUND_ROBIN,
            matches=self.params.tournament_games,
            game_params=self.params.game_params,
            workers=self.params.workers,
            seed=int(rng.integers(2**31)),
            max_moves=self.params.max_moves,
            skip_failed_matches=self.params.skip_failed_matches,
            cancel_event=self.cancel_event,
        )
        outcome = runner.run(agents)
        self.final_tournament = outcome
        for slot, config in enumerate(candidates):
            result = outcome.results[slot]
            logger.info(
                "Final tournament %s: win rate %.1f%% +/- %.1f%%, mean rank %.2f",
                config, result.win_rate * 100, result.win_std_err * 200, result.mean_rank,
            )
        winner = candidates[outcome.best_slot()]
        self._write_log({
            "final": str(winner),
            "settings": self.search_space.describe(winner),
            "tournament": [
                {"configuration": str(c), **outcome.results[s].to_dict()}
                for s, c in enumerate(candidates)
            ],
        })
        return winner

    def _write_log(self, record: dict[str, Any]) -> None:
        if self.params.dest_dir is None:
            return
        path = Path(self.params.dest_dir) / self.params.log_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except OSError as e:
            raise ResourceError(f"Cannot write NTBEA log {path}: {e}") from e
