"""Discrete search space over agent parameters.

A search space owns an ordered list of dimensions, each with a small ordered
domain of values, plus the fixed parameters and budget used to build an
agent. A :class:`Configuration` is one index per dimension.

Search spaces are declared in YAML or JSON:

    agent: flat_mc
    params:
      rollout_length: 0
    dimensions:
      exploration: [0.25, 0.5, 1.0, 1.41, 2.0]
      epsilon: [0.0, 0.05, 0.1]
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from ..ai.base import Agent
from ..ai.factory import AgentFactory
from ..errors import ConfigurationError, InvalidConfigurationError, ResourceError

logger = logging.getLogger(__name__)


class Configuration(tuple):
    """Immutable index vector, compared and hashed by value.

    Canonical ordering is plain lexicographic tuple ordering.
    """

    def __new__(cls, indices: Iterable[int] = ()) -> Configuration:
        return super().__new__(cls, (int(i) for i in indices))

    @classmethod
    def from_digits(cls, digits: str) -> Configuration:
        """Decode a digit-per-dimension string such as ``"0121"``."""
        if not digits or not digits.isdigit():
            raise ConfigurationError(
                f"Settings must be a non-empty string of digits, got '{digits}'"
            )
        return cls(int(d) for d in digits)

    def replace(self, dim: int, index: int) -> Configuration:
        values = list(self)
        values[dim] = index
        return Configuration(values)

    def __str__(self) -> str:
        if all(0 <= i < 10 for i in self):
            return "".join(str(i) for i in self)
        return ",".join(str(i) for i in self)

    def __repr__(self) -> str:
        return f"Configuration({list(self)})"


@dataclass(frozen=True)
class Dimension:
    name: str
    values: tuple[Any, ...]

    def __post_init__(self) -> None:
        if not self.values:
            raise ConfigurationError(f"Dimension '{self.name}' has no values")

    @property
    def size(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class SearchSpace:
    """Parameter grid for one agent family.

    Attributes:
        agent_type: Name registered with :class:`AgentFactory`.
        dimensions: Tunable dimensions, in index-vector order.
        fixed_params: Parameters shared by every configuration.
        budget: Budget injected into budget-scaling agents.
        factory: Factory resolving ``agent_type``.
    """

    agent_type: str
    dimensions: tuple[Dimension, ...]
    fixed_params: Mapping[str, Any] = field(default_factory=dict)
    budget: int | None = None
    factory: type[AgentFactory] = field(default=AgentFactory, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.dimensions:
            raise ConfigurationError("Search space has no dimensions")
        names = [d.name for d in self.dimensions]
        if len(set(names)) != len(names):
            raise ConfigurationError(
                "Search space dimension names must be unique",
                context={"dimensions": names},
            )

    def size(self) -> int:
        """Dimensionality of the space."""
        return len(self.dimensions)

    def domain_size(self, dim: int) -> int:
        return self.dimensions[dim].size

    def total_size(self) -> int:
        return math.prod(d.size for d in self.dimensions)

    def validate(self, config: Sequence[int]) -> Configuration:
        """Return ``config`` as a :class:`Configuration` or raise.

        Raises:
            InvalidConfigurationError: Wrong length or out-of-range index.
        """
        if len(config) != self.size():
            raise InvalidConfigurationError(
                f"Configuration has {len(config)} indices, search space has "
                f"{self.size()} dimensions",
                configuration=tuple(config),
            )
        for dim, (index, dimension) in enumerate(zip(config, self.dimensions)):
            if not 0 <= index < dimension.size:
                raise InvalidConfigurationError(
                    f"Index {index} out of range for dimension "
                    f"'{dimension.name}' ({dimension.size} values)",
                    configuration=tuple(config),
                    context={"dimension": dim},
                )
        return Configuration(config)

    def describe(self, config: Sequence[int]) -> dict[str, Any]:
        """Map dimension names to the values selected by ``config``."""
        config = self.validate(config)
        return {d.name: d.values[i] for d, i in zip(self.dimensions, config)}

    def build_agent(self, config: Sequence[int], name: str | None = None) -> Agent:
        """Instantiate the agent selected by ``config``."""
        params = dict(self.fixed_params)
        params.update(self.describe(config))
        return self.factory.create(
            self.agent_type, budget=self.budget, name=name, **params
        )

    def random_config(self, rng: np.random.Generator) -> Configuration:
        return Configuration(int(rng.integers(d.size)) for d in self.dimensions)

    def neighbours(self, config: Sequence[int]) -> list[Configuration]:
        """All configurations differing from ``config`` in exactly one dimension.

        Ordered by dimension, then by value index.
        """
        config = self.validate(config)
        return [
            config.replace(dim, value)
            for dim, dimension in enumerate(self.dimensions)
            for value in range(dimension.size)
            if value != config[dim]
        ]

    def with_budget(self, budget: int | None) -> SearchSpace:
        return replace(self, budget=budget)

    def log_details(self, log: logging.Logger | None = None) -> None:
        log = log or logger
        log.info(
            "Search space for %s: %d dimensions, %d configurations",
            self.agent_type, self.size(), self.total_size(),
        )
        for dim, dimension in enumerate(self.dimensions):
            log.info("  %2d %-20s %s", dim, dimension.name, list(dimension.values))

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        budget: int | None = None,
        factory: type[AgentFactory] = AgentFactory,
    ) -> SearchSpace:
        """Build a search space from its declarative description."""
        agent_type = data.get("agent") or data.get("type")
        if not agent_type:
            raise ConfigurationError("Search space description needs an 'agent' type")
        raw_dimensions = data.get("dimensions") or {}
        if not isinstance(raw_dimensions, Mapping) or not raw_dimensions:
            raise ConfigurationError(
                "Search space description needs a non-empty 'dimensions' mapping"
            )
        dimensions = []
        for name, values in raw_dimensions.items():
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                raise ConfigurationError(
                    f"Dimension '{name}' must list its values",
                    context={"values": values},
                )
            dimensions.append(Dimension(str(name), tuple(values)))
        return cls(
            agent_type=str(agent_type),
            dimensions=tuple(dimensions),
            fixed_params=dict(data.get("params") or {}),
            budget=budget,
            factory=factory,
        )

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        budget: int | None = None,
        factory: type[AgentFactory] = AgentFactory,
    ) -> SearchSpace:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Search space file not found: {path}") from e
        except OSError as e:
            raise ResourceError(f"Cannot read search space file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed search space file {path}: {e}") from e
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Search space file {path} must hold a mapping")
        return cls.from_dict(data, budget=budget, factory=factory)
