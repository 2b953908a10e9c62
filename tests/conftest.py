"""
Shared pytest fixtures for skill ladder tests.

Game and agent fixtures are function-scoped so tests never share mutable
state. Everything runs on a small Nim heap so that full tournaments and
optimizer runs finish in milliseconds.
"""

from pathlib import Path

import pytest
import yaml

from skillladder.ai import AgentFactory, FlatMonteCarloAgent, RandomAgent
from skillladder.games import Nim
from skillladder.optimisation.search_space import SearchSpace

SMALL_NIM = {"heap_size": 7, "max_take": 3}

SPACE_DESCRIPTION = {
    "agent": "flat_mc",
    "params": {"rollout_length": 0},
    "dimensions": {
        "exploration": [0.5, 1.0, 2.0],
        "epsilon": [0.0, 0.25, 0.5],
    },
}


class FailingNim(Nim):
    """Nim whose rules engine breaks after ``fail_after`` moves."""

    name = "FailingNim"

    def __init__(self, fail_after: int = 2):
        self.fail_after = fail_after

    def apply(self, state, action):
        if state.moves >= self.fail_after:
            raise RuntimeError("rules engine failure")
        return super().apply(state, action)


@pytest.fixture
def nim():
    return Nim()


@pytest.fixture
def small_nim():
    """Game parameters for a short Nim heap."""
    return dict(SMALL_NIM)


@pytest.fixture
def failing_nim():
    return FailingNim()


@pytest.fixture
def random_agents():
    return [RandomAgent(name="A", seed=1), RandomAgent(name="B", seed=2)]


@pytest.fixture
def mc_agent():
    return FlatMonteCarloAgent(budget=8, name="MC", seed=3)


@pytest.fixture
def search_space():
    """Two-dimensional flat Monte Carlo space at a small budget."""
    return SearchSpace.from_dict(SPACE_DESCRIPTION, budget=4)


@pytest.fixture
def search_space_file(tmp_path) -> Path:
    path = tmp_path / "flat_mc_space.yaml"
    path.write_text(yaml.safe_dump(SPACE_DESCRIPTION, sort_keys=False))
    return path


@pytest.fixture
def baseline():
    return AgentFactory.create("flat_mc", budget=2, name="Baseline")
