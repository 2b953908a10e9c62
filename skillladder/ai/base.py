"""
Agent capability interfaces and a convenience base class.

The ladder core treats agents as opaque strategies. It only ever
(1) creates them through :class:`~skillladder.ai.factory.AgentFactory`,
(2) clones them with ``copy()``, (3) reads or sets ``budget`` on agents that
scale with a resource budget, (4) assigns a display ``name``, and
(5) reseeds clones so that match outcomes are reproducible.

These capabilities are expressed as protocols rather than a class hierarchy:
any object with the right attributes plugs in.
"""

from __future__ import annotations

import copy
import random
from abc import ABC, abstractmethod
from collections.abc import Hashable, Sequence
from typing import Any, Protocol, runtime_checkable

from ..games.base import RulesEngine


@runtime_checkable
class Agent(Protocol):
    """Strategy that chooses an action for the player to act."""

    name: str

    def select_action(
        self,
        game: RulesEngine,
        state: Any,
        legal_actions: Sequence[Hashable],
    ) -> Hashable:
        ...

    def copy(self) -> Agent:
        """Independent clone with no shared mutable state."""
        ...


@runtime_checkable
class BudgetScaling(Protocol):
    """Agent whose strength scales with a numeric budget."""

    budget: int


@runtime_checkable
class Seedable(Protocol):
    def seed(self, seed: int) -> None:
        ...


class BaseAgent(ABC):
    """Base class for the bundled agents.

    Holds the display name and a per-instance RNG used for all stochastic
    behaviour, so that a clone reseeded with the same value replays the same
    decisions.
    """

    def __init__(self, name: str | None = None, seed: int | None = None):
        self.name = name or type(self).__name__
        self.rng_seed = seed if seed is not None else 0
        self.rng = random.Random(self.rng_seed)

    @abstractmethod
    def select_action(
        self,
        game: RulesEngine,
        state: Any,
        legal_actions: Sequence[Hashable],
    ) -> Hashable:
        """Select an action for the player to act in ``state``.

        Args:
            game: Rules engine, usable for look-ahead.
            state: Current game state.
            legal_actions: Non-empty list of legal actions.
        """

    def copy(self) -> BaseAgent:
        return copy.deepcopy(self)

    def seed(self, seed: int) -> None:
        self.rng_seed = seed
        self.rng = random.Random(seed)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
