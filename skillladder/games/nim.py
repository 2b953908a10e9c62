"""Multi-player Nim.

A single heap of objects; players take between 1 and ``max_take`` objects in
turn and whoever takes the last object wins. With two players the game is
solved (leave a multiple of ``max_take + 1``), which makes it a convenient
reference game: stronger search budgets measurably win more often, and a
full game costs microseconds.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from ..errors import ConfigurationError


@dataclass(frozen=True)
class NimParameters:
    heap_size: int = 21
    max_take: int = 3

    @classmethod
    def from_mapping(cls, parameters: Mapping[str, Any] | None) -> NimParameters:
        try:
            params = cls(**dict(parameters or {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid Nim parameters: {e}") from e
        if params.heap_size < 1 or params.max_take < 1:
            raise ConfigurationError(
                "Nim needs a positive heap_size and max_take",
                context={"heap_size": params.heap_size, "max_take": params.max_take},
            )
        return params


@dataclass(frozen=True)
class NimState:
    remaining: int
    max_take: int
    n_players: int
    current: int = 0
    last_taker: int | None = None
    moves: int = 0


class Nim:
    """Rules engine for :class:`NimState`."""

    name = "Nim"
    min_players = 2
    max_players = 4

    def setup(
        self,
        n_players: int,
        parameters: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ) -> NimState:
        params = NimParameters.from_mapping(parameters)
        return NimState(
            remaining=params.heap_size,
            max_take=params.max_take,
            n_players=n_players,
        )

    def current_player(self, state: NimState) -> int:
        return state.current

    def legal_actions(self, state: NimState) -> list[int]:
        return list(range(1, min(state.max_take, state.remaining) + 1))

    def apply(self, state: NimState, action: int) -> NimState:
        if not 1 <= action <= min(state.max_take, state.remaining):
            raise ValueError(
                f"Illegal take of {action} with {state.remaining} remaining"
            )
        return replace(
            state,
            remaining=state.remaining - action,
            current=(state.current + 1) % state.n_players,
            last_taker=state.current,
            moves=state.moves + 1,
        )

    def is_terminal(self, state: NimState) -> bool:
        return state.remaining == 0

    def ranking(self, state: NimState) -> list[int]:
        if state.last_taker is None or not self.is_terminal(state):
            return [1] * state.n_players
        return [
            1 if player == state.last_taker else 2
            for player in range(state.n_players)
        ]
