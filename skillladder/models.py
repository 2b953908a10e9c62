"""
Pydantic models and enums shared across the skill ladder package.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SeatingMode(str, Enum):
    """Policy for assigning agents to player positions in a match"""
    ROUND_ROBIN = "round_robin"
    ONE_VS_ALL = "one_vs_all"


class FitnessMode(str, Enum):
    """How a match outcome is turned into an optimizer score"""
    WIN = "win"
    ORDINAL = "ordinal"


class AgentSpec(BaseModel):
    """Declarative agent description resolved through AgentFactory.

    ``params`` are passed as keyword arguments to the agent constructor; the
    rung budget is injected separately for budget-scaling agents.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def parse(cls, value: AgentSpec | str | dict[str, Any]) -> AgentSpec:
        """Accept a bare type name, a mapping, or an existing spec."""
        if isinstance(value, AgentSpec):
            return value
        if isinstance(value, str):
            return cls(type=value)
        return cls.model_validate(value)
