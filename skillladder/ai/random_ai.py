"""Random agent.

Selects uniformly among legal actions using the per-instance RNG on
:class:`BaseAgent`. Used as the default baseline opponent and in tests.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Any

from ..games.base import RulesEngine
from .base import BaseAgent


class RandomAgent(BaseAgent):
    """Agent that selects random legal actions."""

    def select_action(
        self,
        game: RulesEngine,
        state: Any,
        legal_actions: Sequence[Hashable],
    ) -> Hashable:
        _ = game, state  # unused in this implementation
        return self.rng.choice(list(legal_actions))
