"""Agent factory for skill ladder runs.

All agent creation goes through this factory so that search spaces, baseline
opponents and untuned rungs resolve agent names the same way, and so the
rung budget is injected consistently into budget-scaling agents.

Usage:
    from skillladder.ai.factory import AgentFactory

    # Create by type with explicit parameters
    agent = AgentFactory.create("flat_mc", budget=40, exploration=1.0)

    # Create from a declarative spec
    agent = AgentFactory.create_from_spec({"type": "random"})

    # Register a custom implementation
    AgentFactory.register("custom", CustomAgent, budget_scaling=True)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import ConfigurationError
from ..models import AgentSpec
from .base import Agent
from .mc_ai import FlatMonteCarloAgent
from .random_ai import RandomAgent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Registration:
    constructor: Callable[..., Agent]
    budget_scaling: bool


class AgentFactory:
    """Name-based agent construction."""

    _registry: dict[str, _Registration] = {}

    @classmethod
    def register(
        cls,
        agent_type: str,
        constructor: Callable[..., Agent],
        budget_scaling: bool = False,
    ) -> None:
        """Register ``constructor`` under ``agent_type``.

        Budget-scaling constructors must accept a ``budget`` keyword.
        """
        cls._registry[agent_type] = _Registration(constructor, budget_scaling)

    @classmethod
    def is_budget_scaling(cls, agent_type: str) -> bool:
        return cls._lookup(agent_type).budget_scaling

    @classmethod
    def available(cls) -> list[str]:
        return sorted(cls._registry)

    @classmethod
    def create(
        cls,
        agent_type: str,
        budget: int | None = None,
        name: str | None = None,
        **params: Any,
    ) -> Agent:
        """Create an agent.

        Args:
            agent_type: Registered agent type.
            budget: Resource budget; ignored for agents that do not scale.
            name: Display name; defaults to the agent's own default.
            **params: Constructor keyword arguments.

        Raises:
            ConfigurationError: Unknown type or parameters the constructor
                rejects.
        """
        registration = cls._lookup(agent_type)
        kwargs = dict(params)
        if budget is not None:
            if registration.budget_scaling:
                kwargs["budget"] = budget
            else:
                logger.debug("Agent type %s ignores budget %s", agent_type, budget)
        if name is not None:
            kwargs["name"] = name
        try:
            return registration.constructor(**kwargs)
        except TypeError as e:
            raise ConfigurationError(
                f"Invalid parameters for agent type '{agent_type}': {e}",
                context={"params": sorted(kwargs)},
            ) from e

    @classmethod
    def create_from_spec(
        cls,
        spec: AgentSpec | str | dict[str, Any],
        budget: int | None = None,
        name: str | None = None,
    ) -> Agent:
        parsed = AgentSpec.parse(spec)
        return cls.create(parsed.type, budget=budget, name=name, **parsed.params)

    @classmethod
    def _lookup(cls, agent_type: str) -> _Registration:
        try:
            return cls._registry[agent_type]
        except KeyError:
            raise ConfigurationError(
                f"Unknown agent type '{agent_type}'",
                context={"available": sorted(cls._registry)},
            ) from None


AgentFactory.register("random", RandomAgent)
AgentFactory.register("flat_mc", FlatMonteCarloAgent, budget_scaling=True)
