"""Run configuration for skill ladder experiments.

Options are read from YAML or JSON and may be overridden from the command
line. Both the snake_case field names and the camelCase option names used by
existing experiment files are accepted:

    game: Nim
    player: {type: flat_mc}
    playerRange: "2-3"
    startBudget: 10
    multiplier: 3
    iterations: 4
    matchups: 200
    NTBEABudget: 400
    searchSpace: config/flat_mc_space.yaml
    destDir: results/nim_ladder
    listener: [matchlog]

Usage:
    config = load_config("ladder.yaml", overrides={"seed": 7})
    for n_players in resolve_player_counts(config, game):
        ...
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import ConfigurationError, ResourceError
from ..games.base import RulesEngine, check_player_count
from ..models import AgentSpec, FitnessMode
from ..tournament.runner import DEFAULT_MAX_MOVES

logger = logging.getLogger(__name__)

_PLAYER_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


class SkillLadderConfig(BaseModel):
    """Immutable, validated options for one ladder run."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    game: str
    player: AgentSpec
    n_players: int = Field(-1, alias="nPlayers")
    player_range: str = Field("", alias="playerRange")
    ntbea_budget: int = Field(0, alias="NTBEABudget", ge=0)
    search_space: str = Field("", alias="searchSpace")
    start_budget: int = Field(8, alias="startBudget", gt=0)
    multiplier: float = Field(2.0, ge=1)
    matchups: int = Field(1000, ge=1)
    iterations: int = Field(10, ge=0)
    dest_dir: str = Field("", alias="destDir")
    game_params: dict[str, Any] = Field(default_factory=dict, alias="gameParams")
    listener: list[str] = Field(default_factory=list)
    start_settings: str = Field("", alias="startSettings")
    grid: bool = False
    grid_start: int = Field(0, alias="gridStart", ge=0)
    grid_minor_start: int = Field(0, alias="gridMinorStart", ge=0)

    evaluation_games: int = Field(1, alias="evalGames", ge=1)
    fitness: FitnessMode = FitnessMode.WIN
    seed: int | None = None
    workers: int = Field(1, ge=1)
    max_moves: int = Field(DEFAULT_MAX_MOVES, alias="maxMoves", ge=1)
    skip_failed_matches: bool = Field(False, alias="skipFailedMatches")

    @field_validator("player", mode="before")
    @classmethod
    def _parse_player(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v:
                raise ValueError("Please specify a player")
            return {"type": v}
        return v

    @field_validator("listener", mode="before")
    @classmethod
    def _listener_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",")]
        return v

    @field_validator("player_range")
    @classmethod
    def _check_player_range(cls, v: str) -> str:
        if v and v.lower() != "all":
            match = _PLAYER_RANGE.match(v)
            if match is None:
                raise ValueError(f"Player range must be 'all' or 'min-max', got '{v}'")
            if int(match.group(1)) > int(match.group(2)):
                raise ValueError(f"Player range '{v}' is empty")
        return v

    @field_validator("start_settings")
    @classmethod
    def _check_start_settings(cls, v: str) -> str:
        if v and not v.isdigit():
            raise ValueError(f"startSettings must hold one digit per dimension, got '{v}'")
        return v

    @field_validator("game")
    @classmethod
    def _check_game(cls, v: str) -> str:
        if not v or v.lower() == "all":
            raise ValueError("No game provided. Please provide a game.")
        return v

    @model_validator(mode="after")
    def _check_combinations(self) -> SkillLadderConfig:
        if self.n_players == -1 and not self.player_range:
            raise ValueError("Provide either nPlayers or a playerRange")
        if self.n_players != -1 and self.n_players < 1:
            raise ValueError(f"nPlayers must be positive, got {self.n_players}")
        if self.ntbea_budget > 0 and not self.search_space:
            raise ValueError("No search space file provided. Please provide a search space file.")
        return self

    @property
    def tuning(self) -> bool:
        return self.ntbea_budget > 0

    def budget(self, rung: int) -> int:
        """Agent budget of rung ``rung`` (rung 0 is the starting budget)."""
        return int(self.multiplier**rung * self.start_budget)

    def budgets(self) -> list[int]:
        return [self.budget(i) for i in range(self.iterations + 1)]


def resolve_player_counts(config: SkillLadderConfig, game: RulesEngine) -> list[int]:
    """Player counts to run, validated against the game.

    Raises:
        ConfigurationError: A requested count is outside the game's range.
    """
    if config.n_players != -1:
        counts = [config.n_players]
    elif config.player_range.lower() == "all":
        counts = list(range(game.min_players, game.max_players + 1))
    else:
        match = _PLAYER_RANGE.match(config.player_range)
        counts = list(range(int(match.group(1)), int(match.group(2)) + 1))
    for n_players in counts:
        check_player_count(game, n_players)
    return counts


def load_config(
    path: str | Path,
    overrides: Mapping[str, Any] | None = None,
) -> SkillLadderConfig:
    """Read a ladder configuration file and apply ``overrides`` on top.

    Raises:
        ConfigurationError: Missing or malformed file, or invalid options.
        ResourceError: The file exists but cannot be read.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found : {path}") from e
    except OSError as e:
        raise ResourceError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config file {path} must hold a mapping")

    merged = _by_field_name(data)
    merged.update(_by_field_name({k: v for k, v in (overrides or {}).items() if v is not None}))
    logger.debug("Loaded ladder config from %s: %s", path, sorted(merged))
    return build_config(merged)


def _by_field_name(data: Mapping[str, Any]) -> dict[str, Any]:
    """Rename camelCase option names to field names so overrides replace them."""
    aliases = {
        field.alias: name
        for name, field in SkillLadderConfig.model_fields.items()
        if field.alias
    }
    return {aliases.get(k, k): v for k, v in data.items()}


def build_config(data: Mapping[str, Any]) -> SkillLadderConfig:
    """Validate ``data``, translating validation failures."""
    try:
        return SkillLadderConfig.model_validate(_by_field_name(data))
    except pydantic.ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            "Invalid ladder configuration: " + "; ".join(problems),
            context={"errors": len(problems)},
        ) from e
