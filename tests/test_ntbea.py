"""Tests for skillladder/optimisation/ntbea.py."""

import json
import threading
from fractions import Fraction

import pytest

from skillladder.errors import ConfigurationError, InvalidConfiguration, InvalidStateError
from skillladder.models import FitnessMode
from skillladder.optimisation.ntbea import NTBEA, EliteSet, NTBEAParameters, NTBEAPhase
from skillladder.optimisation.search_space import Configuration
from skillladder.tournament.results import MatchResult


def make_params(search_space, small_nim, **overrides):
    params = dict(
        search_space=search_space,
        iterations_per_run=6,
        repeats=2,
        evaluation_games=2,
        tournament_games=4,
        seed=42,
        game_params=small_nim,
    )
    params.update(overrides)
    return NTBEAParameters(**params)


class TestNTBEAParameters:
    def test_for_budget_rung(self, search_space):
        """Half the budget goes to the final tournament, the rest to 4 runs."""
        params = NTBEAParameters.for_budget_rung(search_space, 100)
        assert params.repeats == 4
        assert params.tournament_games == 50
        assert params.iterations_per_run == 12

    def test_for_budget_rung_passes_options(self, search_space):
        params = NTBEAParameters.for_budget_rung(search_space, 8, seed=3, workers=2)
        assert params.tournament_games == 4
        assert params.iterations_per_run == 1
        assert params.seed == 3
        assert params.workers == 2

    def test_with_repeats_copies(self, search_space):
        """with_repeats returns a copy and leaves the original alone."""
        params = NTBEAParameters(search_space=search_space)
        assert params.with_repeats(5).repeats == 5
        assert params.repeats == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"repeats": 0},
            {"evaluation_games": 0},
            {"random_probability": 1.5},
        ],
    )
    def test_validate_rejects(self, search_space, overrides):
        with pytest.raises(ConfigurationError):
            NTBEAParameters(search_space=search_space, **overrides).validate()


class TestEliteSet:
    def test_keeps_best_score(self):
        """Re-adding a configuration keeps its highest score."""
        elites = EliteSet()
        elites.add((0, 1), 0.2)
        elites.add((0, 1), 0.6)
        elites.add((0, 1), 0.4)
        assert elites.score((0, 1)) == 0.6
        assert len(elites) == 1

    def test_capacity_evicts_lowest(self):
        elites = EliteSet(capacity=2)
        elites.add((0, 0), 0.5)
        elites.add((0, 1), 0.1)
        elites.add((0, 2), 0.9)
        assert (0, 1) not in elites
        assert elites.configurations() == [(0, 0), (0, 2)]

    def test_eviction_tie_removes_last_in_canonical_order(self):
        """Equal scores: the configuration last in canonical order goes first."""
        elites = EliteSet(capacity=2)
        elites.add((1, 0), 0.5)
        elites.add((0, 0), 0.5)
        elites.add((2, 0), 0.5)
        assert sorted(elites.configurations()) == [(0, 0), (1, 0)]

    def test_pinned_entries_survive_eviction(self):
        """Pinned entries stay even with the lowest score."""
        elites = EliteSet(capacity=2)
        elites.add((0, 0), pinned=True)
        elites.add((1, 1), 0.4)
        elites.add((2, 2), 0.8)
        assert elites.configurations() == [(0, 0), (2, 2)]
        assert elites.is_pinned((0, 0))
        assert not elites.is_pinned((2, 2))

    def test_all_pinned_may_exceed_capacity(self):
        elites = EliteSet(capacity=1)
        elites.add((0, 0), pinned=True)
        elites.add((1, 0), pinned=True)
        assert len(elites) == 2

    def test_best_prefers_first_in_canonical_order(self):
        elites = EliteSet()
        elites.add((2, 2), 0.7)
        elites.add((1, 2), 0.7)
        elites.add((0, 0), 0.1)
        assert elites.best() == (1, 2)

    def test_empty(self):
        """An empty set has no best entry and capacity must be positive."""
        assert EliteSet().best() is None
        with pytest.raises(ConfigurationError):
            EliteSet(capacity=0)


class TestNTBEAValidation:
    def test_zero_iterations(self, search_space, small_nim, nim, baseline):
        """Invalid parameters fail before any proposal and reset the phase."""
        ntbea = NTBEA(make_params(search_space, small_nim, iterations_per_run=0), nim, 2, [baseline])
        with pytest.raises(ConfigurationError):
            ntbea.run()
        assert ntbea.phase is NTBEAPhase.IDLE
        assert ntbea.proposals == []

    def test_empty_opponents(self, search_space, small_nim, nim):
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2)
        with pytest.raises(ConfigurationError):
            ntbea.run()

    def test_unsupported_player_count(self, search_space, small_nim, nim, baseline):
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 6, [baseline])
        with pytest.raises(ConfigurationError):
            ntbea.run()

    def test_invalid_elite(self, search_space, small_nim, nim):
        """Elites are validated against the search space."""
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2)
        with pytest.raises(InvalidConfiguration):
            ntbea.add_elite((0, 5))

    def test_illegal_transition(self, search_space, small_nim, nim, baseline):
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
        ntbea.phase = NTBEAPhase.ITERATING
        with pytest.raises(InvalidStateError):
            ntbea.run()


class TestNTBEARun:
    def test_returns_agent_for_best_configuration(self, search_space, small_nim, nim, baseline):
        """The returned agent is built from the returned configuration."""
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
        agent, config = ntbea.run()
        assert isinstance(config, Configuration)
        search_space.validate(config)
        values = search_space.describe(config)
        assert agent.exploration == values["exploration"]
        assert agent.epsilon == values["epsilon"]
        assert agent.budget == search_space.budget
        assert ntbea.phase is NTBEAPhase.DONE

    def test_proposal_count(self, search_space, small_nim, nim, baseline):
        """Each run makes exactly iterations_per_run proposals."""
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
        ntbea.run()
        assert len(ntbea.proposals) == 2 * 6
        assert len(ntbea.run_winners) == 2
        assert all(w.evaluations >= 1 for w in ntbea.run_winners)

    def test_deterministic_with_seed(self, search_space, small_nim, nim, baseline):
        """The same seed gives the same proposals and result."""
        results = []
        for _ in range(2):
            ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
            _, config = ntbea.run()
            results.append((list(ntbea.proposals), config))
        assert results[0] == results[1]

    def test_parallel_evaluation_is_deterministic(self, search_space, small_nim, nim, baseline):
        """Worker count does not change the outcome."""
        serial = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
        parallel = NTBEA(make_params(search_space, small_nim, workers=3), nim, 2, [baseline])
        assert serial.run()[1] == parallel.run()[1]
        assert serial.proposals == parallel.proposals

    def test_can_run_again(self, search_space, small_nim, nim, baseline):
        """A finished optimizer can run again from a clean state."""
        ntbea = NTBEA(make_params(search_space, small_nim, repeats=1), nim, 2, [baseline])
        first = ntbea.run()[1]
        second = ntbea.run()[1]
        assert first == second
        assert len(ntbea.proposals) == 6

    def test_elite_is_first_proposal(self, search_space, small_nim, nim, baseline):
        """A seeded elite is the starting point of the first run."""
        ntbea = NTBEA(make_params(search_space, small_nim, repeats=1), nim, 2, [baseline])
        ntbea.add_elite((2, 1))
        ntbea.run()
        assert ntbea.proposals[0] == (2, 1)

    def test_single_candidate_skips_tournament(self, search_space, small_nim, nim, baseline):
        """One run and no elites means no final tournament."""
        ntbea = NTBEA(make_params(search_space, small_nim, repeats=1), nim, 2, [baseline])
        _, config = ntbea.run()
        assert ntbea.final_tournament is None
        assert config == ntbea.run_winners[0].configuration

    def test_final_tournament_among_elites(self, search_space, small_nim, nim, baseline):
        """The final tournament plays every elite and picks one of them."""
        ntbea = NTBEA(make_params(search_space, small_nim, repeats=3), nim, 2, [baseline])
        _, config = ntbea.run()
        candidates = {w.configuration for w in ntbea.run_winners}
        assert config in candidates
        assert set(ntbea.elites.configurations()) == candidates
        if len(candidates) > 1:
            assert ntbea.final_tournament.games == 4
            assert len(ntbea.final_tournament.results) == len(candidates)

    def test_elite_capacity_bounds_finalists(self, search_space, small_nim, nim, baseline):
        """With capacity 1, a pinned elite crowds out every run winner."""
        params = make_params(search_space, small_nim, repeats=3, elite_capacity=1)
        ntbea = NTBEA(params, nim, 2, [baseline])
        ntbea.add_elite((2, 1))
        _, config = ntbea.run()
        assert len(ntbea.run_winners) == 3
        assert ntbea.elites.configurations() == [(2, 1)]
        assert ntbea.final_tournament is None
        assert config == (2, 1)

    def test_no_tournament_picks_best_estimate(self, search_space, small_nim, nim, baseline):
        """With no tournament games, the highest estimate wins."""
        params = make_params(search_space, small_nim, repeats=3, tournament_games=0)
        ntbea = NTBEA(params, nim, 2, [baseline])
        _, config = ntbea.run()
        best = max(w.estimate for w in ntbea.run_winners)
        assert ntbea.elites.score(config) == best
        assert ntbea.final_tournament is None

    def test_three_player_evaluation(self, search_space, small_nim, nim, baseline):
        ntbea = NTBEA(make_params(search_space, small_nim, repeats=1), nim, 3, [baseline])
        _, config = ntbea.run()
        search_space.validate(config)

    def test_cancelled_run_falls_back_to_elite(self, search_space, small_nim, nim, baseline):
        """Cancelled before any run, the seeded elite is returned."""
        cancel = threading.Event()
        cancel.set()
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline], cancel_event=cancel)
        ntbea.add_elite((1, 1))
        _, config = ntbea.run()
        assert config == (1, 1)
        assert ntbea.proposals == []

    def test_cancelled_without_candidates(self, search_space, small_nim, nim, baseline):
        cancel = threading.Event()
        cancel.set()
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline], cancel_event=cancel)
        with pytest.raises(InvalidStateError):
            ntbea.run()

    def test_run_log(self, search_space, small_nim, nim, baseline, tmp_path):
        """Each run and the final choice are written as JSON lines."""
        params = make_params(search_space, small_nim, dest_dir=tmp_path / "NTBEA")
        ntbea = NTBEA(params, nim, 2, [baseline])
        _, config = ntbea.run()
        lines = (tmp_path / "NTBEA" / "NTBEA_Runs.log").read_text().splitlines()
        records = [json.loads(line) for line in lines]
        runs = [r for r in records if "run" in r]
        assert [r["run"] for r in runs] == [0, 1]
        assert set(runs[0]["settings"]) == {"exploration", "epsilon"}
        finals = [r for r in records if "final" in r]
        if finals:
            assert finals[0]["final"] == str(config)


class TestFitness:
    def test_ordinal_fitness(self, search_space, small_nim, nim, baseline):
        """Ordinal fitness normalises the subject's rank to [0, 1]."""
        params = make_params(search_space, small_nim, fitness=FitnessMode.ORDINAL)
        ntbea = NTBEA(params, nim, 3, [baseline])
        match = MatchResult(
            match_index=0,
            seats=(1, 0, 1),
            positions=(1, 2, 2),
            ranks=(Fraction(1), Fraction(5, 2), Fraction(5, 2)),
            win_shares=(Fraction(1), Fraction(0), Fraction(0)),
        )
        assert ntbea._fitness(match) == pytest.approx(0.25)

    def test_win_fitness_shares_ties(self, search_space, small_nim, nim, baseline):
        """A shared win counts as half a win for each tied player."""
        ntbea = NTBEA(make_params(search_space, small_nim), nim, 2, [baseline])
        match = MatchResult(
            match_index=0,
            seats=(0, 1),
            positions=(1, 1),
            ranks=(Fraction(3, 2), Fraction(3, 2)),
            win_shares=(Fraction(1, 2), Fraction(1, 2)),
        )
        assert ntbea._fitness(match) == 0.5
