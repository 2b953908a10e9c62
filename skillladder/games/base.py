"""
Rules engine interface and game registry.

The tuning and evaluation core never looks inside a game. It drives a match
through the small surface defined by :class:`RulesEngine` and asks for the
final ranking once the state is terminal. Concrete games are plugged in by
name through :class:`GameRegistry`, mirroring how agents are created through
:class:`skillladder.ai.factory.AgentFactory`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class RulesEngine(Protocol):
    """Opaque simulation oracle for one game.

    States are treated as immutable values: :meth:`apply` returns the next
    state and never mutates its argument, so agents can simulate ahead
    without copying.

    Attributes
    ----------
    name : str
        Registry name of the game.
    min_players, max_players : int
        Supported player counts (inclusive).
    """

    name: str
    min_players: int
    max_players: int

    def setup(
        self,
        n_players: int,
        parameters: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> Any:
        """Return the initial state for ``n_players``."""
        ...

    def current_player(self, state: Any) -> int:
        """Return the 0-based index of the player to act."""
        ...

    def legal_actions(self, state: Any) -> Sequence[Hashable]:
        """Return the actions available to the player to act."""
        ...

    def apply(self, state: Any, action: Hashable) -> Any:
        """Return the state reached by playing ``action``."""
        ...

    def is_terminal(self, state: Any) -> bool:
        ...

    def ranking(self, state: Any) -> list[int]:
        """Finishing position per player, 1 = best.

        Tied players share the same position (competition ranking, e.g.
        ``[1, 2, 2]``). For non-terminal states the engine returns its best
        current ordering.
        """
        ...


class GameRegistry:
    """Name-based lookup of rules engine factories.

    Usage:
        GameRegistry.register("Nim", Nim)
        game = GameRegistry.create("Nim")
    """

    _games: dict[str, Callable[[], RulesEngine]] = {}

    @classmethod
    def register(cls, name: str, factory: Callable[[], RulesEngine]) -> None:
        if name in cls._games:
            logger.debug("Replacing registered game %s", name)
        cls._games[name] = factory

    @classmethod
    def create(cls, name: str) -> RulesEngine:
        """Instantiate the game registered as ``name``.

        Raises:
            ConfigurationError: If no game is registered under ``name``.
        """
        try:
            factory = cls._games[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown game '{name}'",
                context={"available": sorted(cls._games)},
            ) from None
        return factory()

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._games)


def check_player_count(game: RulesEngine, n_players: int) -> None:
    """Raise :class:`ConfigurationError` if ``n_players`` is unsupported."""
    if not game.min_players <= n_players <= game.max_players:
        raise ConfigurationError(
            f"Invalid number of players for game {game.name}",
            context={
                "n_players": n_players,
                "min_players": game.min_players,
                "max_players": game.max_players,
            },
        )
