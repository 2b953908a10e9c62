"""Agents and the capability interfaces the ladder relies on."""

from .base import Agent, BaseAgent, BudgetScaling, Seedable
from .factory import AgentFactory
from .mc_ai import FlatMonteCarloAgent
from .random_ai import RandomAgent

__all__ = [
    "Agent",
    "AgentFactory",
    "BaseAgent",
    "BudgetScaling",
    "FlatMonteCarloAgent",
    "RandomAgent",
    "Seedable",
]
