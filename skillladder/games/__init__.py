"""Rules engines usable by the ladder, looked up by name."""

from .base import GameRegistry, RulesEngine, check_player_count
from .nim import Nim, NimParameters, NimState

GameRegistry.register("Nim", Nim)

__all__ = [
    "GameRegistry",
    "Nim",
    "NimParameters",
    "NimState",
    "RulesEngine",
    "check_player_count",
]
