"""Flat Monte Carlo agent with a UCB1 root bandit.

Every decision spends ``budget`` random playouts: each legal action is tried
once, then playouts are allocated to the action maximising
``mean + exploration * sqrt(log(t) / visits)``. The most visited action is
played. Strength grows with ``budget``, which makes this the reference
budget-scaling agent for ladder runs.

Tunable parameters:
    exploration: UCB1 constant at the root.
    rollout_length: Maximum playout length in actions (0 = play to the end).
    epsilon: Probability of playing a uniformly random action instead of
        searching.
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Sequence
from typing import Any

from ..games.base import RulesEngine
from .base import BaseAgent


class FlatMonteCarloAgent(BaseAgent):
    """Budget-scaling Monte Carlo agent."""

    def __init__(
        self,
        budget: int = 100,
        exploration: float = math.sqrt(2.0),
        rollout_length: int = 0,
        epsilon: float = 0.0,
        name: str | None = None,
        seed: int | None = None,
    ):
        super().__init__(name=name, seed=seed)
        self.budget = int(budget)
        self.exploration = float(exploration)
        self.rollout_length = int(rollout_length)
        self.epsilon = float(epsilon)

    def select_action(
        self,
        game: RulesEngine,
        state: Any,
        legal_actions: Sequence[Hashable],
    ) -> Hashable:
        actions = list(legal_actions)
        if len(actions) == 1:
            return actions[0]
        if self.epsilon > 0 and self.rng.random() < self.epsilon:
            return self.rng.choice(actions)

        player = game.current_player(state)
        visits = [0] * len(actions)
        totals = [0.0] * len(actions)

        for t in range(max(self.budget, 1)):
            if t < len(actions):
                idx = t
            else:
                log_t = math.log(t)
                idx = max(
                    range(len(actions)),
                    key=lambda i: totals[i] / visits[i]
                    + self.exploration * math.sqrt(log_t / visits[i]),
                )
            reward = self._rollout(game, game.apply(state, actions[idx]), player)
            visits[idx] += 1
            totals[idx] += reward

        best = max(
            range(len(actions)),
            key=lambda i: (visits[i], totals[i] / visits[i] if visits[i] else 0.0),
        )
        return actions[best]

    def _rollout(self, game: RulesEngine, state: Any, player: int) -> float:
        steps = 0
        while not game.is_terminal(state):
            if self.rollout_length > 0 and steps >= self.rollout_length:
                break
            state = game.apply(state, self.rng.choice(list(game.legal_actions(state))))
            steps += 1
        positions = game.ranking(state)
        if positions[player] != 1:
            return 0.0
        return 1.0 / positions.count(1)

    def __repr__(self) -> str:
        return (
            f"FlatMonteCarloAgent(name={self.name!r}, budget={self.budget}, "
            f"exploration={self.exploration}, rollout_length={self.rollout_length}, "
            f"epsilon={self.epsilon})"
        )
