"""Tests for the reference rules engine and agents."""

import pytest

from skillladder.ai import AgentFactory, BudgetScaling, FlatMonteCarloAgent, RandomAgent, Seedable
from skillladder.errors import ConfigurationError
from skillladder.games import GameRegistry, Nim, RulesEngine, check_player_count


class TestNim:
    def test_is_rules_engine(self, nim):
        """Nim satisfies the RulesEngine protocol."""
        assert isinstance(nim, RulesEngine)

    def test_setup(self, nim):
        """Setup honours heap size and take limit."""
        state = nim.setup(3, {"heap_size": 5, "max_take": 2})
        assert state.remaining == 5
        assert nim.current_player(state) == 0
        assert nim.legal_actions(state) == [1, 2]

    def test_apply_is_pure(self, nim):
        """apply returns a new state and leaves the input alone."""
        state = nim.setup(2)
        after = nim.apply(state, 3)
        assert state.remaining == 21
        assert after.remaining == 18
        assert nim.current_player(after) == 1

    def test_illegal_take(self, nim):
        """Taking more than remains is rejected."""
        state = nim.setup(2, {"heap_size": 2})
        with pytest.raises(ValueError):
            nim.apply(state, 3)

    def test_last_taker_wins(self, nim):
        """The player taking the last object ranks first, the rest tie."""
        state = nim.setup(3, {"heap_size": 3})
        state = nim.apply(state, 1)  # player 0
        state = nim.apply(state, 2)  # player 1 takes the last objects
        assert nim.is_terminal(state)
        assert nim.ranking(state) == [2, 1, 2]

    def test_non_terminal_ranking_is_a_tie(self, nim):
        assert nim.ranking(nim.setup(4)) == [1, 1, 1, 1]

    @pytest.mark.parametrize("params", [{"heap_size": 0}, {"pile": 3}])
    def test_invalid_parameters(self, nim, params):
        """Bad game parameters raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            nim.setup(2, params)


class TestGameRegistry:
    def test_create(self):
        """Registered games are created by name."""
        game = GameRegistry.create("Nim")
        assert isinstance(game, Nim)
        assert "Nim" in GameRegistry.available()

    def test_unknown_game(self):
        """Unknown names list the available games."""
        with pytest.raises(ConfigurationError) as exc:
            GameRegistry.create("Chess")
        assert "Nim" in exc.value.context["available"]

    def test_player_count(self, nim):
        """Player counts outside the game's range are rejected."""
        check_player_count(nim, 4)
        with pytest.raises(ConfigurationError):
            check_player_count(nim, 5)
        with pytest.raises(ConfigurationError):
            check_player_count(nim, 1)


class TestAgentFactory:
    def test_budget_injected_for_scaling_agents(self):
        """Budget-scaling agents receive the budget."""
        agent = AgentFactory.create("flat_mc", budget=40, exploration=0.5)
        assert isinstance(agent, FlatMonteCarloAgent)
        assert agent.budget == 40
        assert agent.exploration == 0.5
        assert isinstance(agent, BudgetScaling)

    def test_budget_ignored_for_random(self):
        """Agents that do not scale ignore the budget."""
        agent = AgentFactory.create("random", budget=40, name="R")
        assert isinstance(agent, RandomAgent)
        assert agent.name == "R"
        assert not AgentFactory.is_budget_scaling("random")

    def test_from_spec(self):
        """Declarative specs pass their params through."""
        agent = AgentFactory.create_from_spec({"type": "flat_mc", "params": {"epsilon": 0.1}}, budget=5)
        assert agent.budget == 5
        assert agent.epsilon == 0.1

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            AgentFactory.create("alphazero")

    def test_bad_parameter(self):
        """Unknown constructor arguments raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            AgentFactory.create("random", temperature=1.0)


class TestAgents:
    def test_copy_is_independent(self, mc_agent):
        """Copies share no mutable state with the original."""
        clone = mc_agent.copy()
        clone.budget = 99
        clone.name = "Clone"
        assert mc_agent.budget == 8
        assert mc_agent.name == "MC"

    def test_reseeded_clones_replay(self, nim):
        """Clones reseeded alike choose the same actions."""
        agent = RandomAgent(seed=0)
        assert isinstance(agent, Seedable)
        state = nim.setup(2)
        actions = []
        for _ in range(2):
            clone = agent.copy()
            clone.seed(11)
            actions.append([clone.select_action(nim, state, [1, 2, 3]) for _ in range(10)])
        assert actions[0] == actions[1]

    def test_flat_mc_takes_winning_move(self, nim):
        """Flat Monte Carlo finds the immediate win."""
        agent = FlatMonteCarloAgent(budget=30, seed=5)
        state = nim.setup(2, {"heap_size": 3})
        assert agent.select_action(nim, state, nim.legal_actions(state)) == 3

    def test_single_action_short_circuits(self, nim, mc_agent):
        state = nim.setup(2, {"heap_size": 1})
        assert mc_agent.select_action(nim, state, [1]) == 1
