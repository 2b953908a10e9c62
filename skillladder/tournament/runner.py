"""Tournament runner.

Plays a fixed schedule of independent matches between a set of agents and
aggregates per-agent win rate and ordinal rank statistics.

Each match runs to completion on one worker with its own copies of the
participating agents, so matches share no mutable state. Aggregation and
listener callbacks happen on the calling thread; because the per-agent
totals are exact, the result is the same whatever order matches finish in.

Usage:
    runner = TournamentRunner(game, n_players=2, mode=SeatingMode.ONE_VS_ALL,
                              matches=100, workers=4, seed=1)
    outcome = runner.run([candidate, baseline])
    print(outcome.win_rate(0), outcome.win_std_err(0))
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any

import numpy as np

from ..ai.base import Agent, Seedable
from ..errors import ConfigurationError, SimulationError, SkillLadderError
from ..games.base import RulesEngine, check_player_count
from ..metrics import MATCH_FAILURES, MATCH_MOVES, MATCHES_PLAYED, TOURNAMENT_DURATION_SECONDS
from ..models import SeatingMode
from .listeners import GameListener
from .results import (
    MatchResult,
    TournamentOutcome,
    TournamentResult,
    aggregate,
    ordinal_ranks,
)
from .scheduler import schedule_matches

logger = logging.getLogger(__name__)

DEFAULT_MAX_MOVES = 10_000


def play_match(
    game: RulesEngine,
    seat_agents: Sequence[Agent],
    n_players: int,
    seed: int,
    game_params: Mapping[str, Any] | None = None,
    max_moves: int = DEFAULT_MAX_MOVES,
    match_index: int = 0,
    seats: Sequence[int] | None = None,
) -> MatchResult:
    """Simulate one match to completion.

    Every seat plays an independent copy of its agent, reseeded from
    ``seed`` when the agent supports it.

    Args:
        game: Rules engine.
        seat_agents: Agent per seat (the same agent may fill several seats).
        n_players: Seats in the match; must match ``seat_agents``.
        seed: Match seed, shared by the game setup and agent clones.
        game_params: Passed to :meth:`RulesEngine.setup`.
        max_moves: Action limit; a match that reaches it is ranked by the
            engine's current ordering and flagged as truncated.
        match_index: Schedule position, recorded in the result.
        seats: Agent slot per seat, recorded in the result.

    Raises:
        ConfigurationError: ``seat_agents`` does not fill ``n_players`` seats.
        SimulationError: The rules engine or an agent failed.
    """
    if len(seat_agents) != n_players:
        raise ConfigurationError(
            f"{len(seat_agents)} agents supplied for {n_players} seats",
            context={"game": game.name},
        )
    players = []
    for seat, agent in enumerate(seat_agents):
        clone = agent.copy()
        if isinstance(clone, Seedable):
            clone.seed(seed + seat)
        players.append(clone)

    moves = 0
    truncated = False
    try:
        state = game.setup(n_players, game_params, seed)
        while not game.is_terminal(state):
            if moves >= max_moves:
                truncated = True
                break
            legal = game.legal_actions(state)
            if not legal:
                raise SimulationError(
                    "No legal actions in a non-terminal state",
                    match_index=match_index,
                    context={"moves": moves},
                )
            player = game.current_player(state)
            action = players[player].select_action(game, state, legal)
            state = game.apply(state, action)
            moves += 1
        positions = list(game.ranking(state))
    except SkillLadderError:
        raise
    except Exception as e:
        raise SimulationError(
            f"Match {match_index} failed in {game.name}: {e}",
            match_index=match_index,
            context={"moves": moves},
        ) from e

    if len(positions) != n_players:
        raise SimulationError(
            f"Ranking has {len(positions)} entries for {n_players} players",
            match_index=match_index,
        )
    ranks, shares = ordinal_ranks(positions)
    return MatchResult(
        match_index=match_index,
        seats=tuple(seats) if seats is not None else tuple(range(n_players)),
        positions=tuple(positions),
        ranks=tuple(ranks),
        win_shares=tuple(shares),
        moves=moves,
        truncated=truncated,
    )


class TournamentRunner:
    """Plays a seating schedule and aggregates the outcome.

    Args:
        game: Rules engine.
        n_players: Seats per match.
        mode: Round robin or one-vs-all (slot 0 is the subject).
        matches: Total number of matches to play.
        game_params: Passed to the rules engine setup.
        listeners: Result sinks notified per match and per tournament.
        workers: Worker threads; 1 plays matches inline.
        seed: Tournament seed; match seeds are derived from it, so outcomes
            do not depend on thread scheduling.
        max_moves: Per-match action limit.
        skip_failed_matches: Log and skip matches that raise
            :class:`SimulationError` instead of aborting the tournament.
        cancel_event: When set, matches not yet started are skipped and the
            outcome is flagged incomplete.
        seat_offset: Starting seat rotation.
    """

    def __init__(
        self,
        game: RulesEngine,
        n_players: int,
        mode: SeatingMode = SeatingMode.ROUND_ROBIN,
        matches: int = 100,
        game_params: Mapping[str, Any] | None = None,
        listeners: Sequence[GameListener] = (),
        workers: int = 1,
        seed: int | None = None,
        max_moves: int = DEFAULT_MAX_MOVES,
        skip_failed_matches: bool = False,
        cancel_event: threading.Event | None = None,
        seat_offset: int = 0,
    ):
        check_player_count(game, n_players)
        if matches < 1:
            raise ConfigurationError(
                "A tournament needs at least one match",
                context={"matches": matches},
            )
        self.game = game
        self.n_players = n_players
        self.mode = SeatingMode(mode)
        self.matches = matches
        self.game_params = dict(game_params or {})
        self.listeners = list(listeners)
        self.workers = max(1, workers)
        self.seed = seed
        self.max_moves = max_moves
        self.skip_failed_matches = skip_failed_matches
        self.cancel_event = cancel_event
        self.seat_offset = seat_offset
        self._labels = {"game": game.name, "num_players": str(n_players)}

    def _match_seeds(self) -> list[int]:
        sequence = np.random.SeedSequence(self.seed)
        return [int(s) for s in sequence.generate_state(self.matches, dtype=np.uint32)]

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _play(
        self,
        index: int,
        seats: tuple[int, ...],
        seed: int,
        agents: Sequence[Agent],
    ) -> MatchResult | None:
        if self._cancelled():
            return None
        return play_match(
            self.game,
            [agents[slot] for slot in seats],
            self.n_players,
            seed,
            game_params=self.game_params,
            max_moves=self.max_moves,
            match_index=index,
            seats=seats,
        )

    def run(self, agents: Sequence[Agent]) -> TournamentOutcome:
        """Play all scheduled matches between ``agents``.

        Raises:
            ConfigurationError: Fewer than two agents.
            SimulationError: A match failed and ``skip_failed_matches`` is off.
        """
        names = [getattr(a, "name", str(slot)) for slot, a in enumerate(agents)]
        schedule = schedule_matches(
            len(agents), self.n_players, self.matches, self.mode, self.seat_offset
        )
        seeds = self._match_seeds()
        logger.debug(
            "Playing %d %s matches of %s (%d players): %s",
            self.matches, self.mode.value, self.game.name, self.n_players,
            " vs ".join(names),
        )

        start = time.time()
        completed: list[MatchResult] = []
        failed = 0

        def collect(result: MatchResult | None) -> None:
            if result is None:
                return
            completed.append(result)
            MATCHES_PLAYED.labels(**self._labels).inc()
            MATCH_MOVES.labels(**self._labels).observe(result.moves)
            if result.truncated:
                logger.warning(
                    "Match %d truncated after %d moves", result.match_index, result.moves
                )
            for listener in self.listeners:
                listener.on_match(result, names)

        def fail(error: SimulationError) -> None:
            nonlocal failed
            MATCH_FAILURES.labels(
                skipped=str(self.skip_failed_matches).lower(), **self._labels
            ).inc()
            if not self.skip_failed_matches:
                raise error
            failed += 1
            logger.warning("Skipping failed match: %s", error)

        if self.workers == 1:
            for index, (seats, seed) in enumerate(zip(schedule, seeds)):
                try:
                    collect(self._play(index, seats, seed, agents))
                except SimulationError as e:
                    fail(e)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                futures = [
                    pool.submit(self._play, index, seats, seed, agents)
                    for index, (seats, seed) in enumerate(zip(schedule, seeds))
                ]
                if not self.skip_failed_matches:
                    done, pending = wait(futures, return_when=FIRST_EXCEPTION)
                    if any(f.exception() is not None for f in done):
                        for future in pending:
                            future.cancel()
                # Collected in schedule order so listeners see a stable sequence
                for future in futures:
                    if future.cancelled():
                        continue
                    try:
                        collect(future.result())
                    except SimulationError as e:
                        fail(e)

        elapsed = time.time() - start
        completed.sort(key=lambda m: m.match_index)
        results = aggregate(completed, len(agents), names)
        for result in results.values():
            result.close()
        outcome = TournamentOutcome(
            results=results,
            matches=completed,
            agent_names=names,
            elapsed_seconds=elapsed,
            complete=len(completed) == self.matches,
            failed=failed,
        )
        TOURNAMENT_DURATION_SECONDS.labels(mode=self.mode.value, **self._labels).observe(elapsed)
        if not outcome.complete:
            logger.warning(
                "Tournament incomplete: %d of %d matches played (%d failed)",
                len(completed), self.matches, failed,
            )
        for listener in self.listeners:
            listener.on_tournament_end(outcome, outcome.agent_names)
        return outcome


def run_tournament(
    agents: Sequence[Agent],
    game: RulesEngine,
    n_players: int,
    repeats: int,
    mode: SeatingMode = SeatingMode.ROUND_ROBIN,
    **kwargs: Any,
) -> dict[int, TournamentResult]:
    """Functional form: play ``repeats`` matches and return per-slot results."""
    runner = TournamentRunner(game, n_players, mode=mode, matches=repeats, **kwargs)
    return runner.run(agents).results
