"""Tests for the matching strategies and the pairing contract."""

import numpy as np
import pytest

from matesim.evaluation import count_blocking_pairs
from matesim.matching import (
    Pairing,
    MatchingInvariantError,
    RandomMatch,
    DeferredAcceptanceMatch,
    ResourceAllocationMatch,
    ResourceAllocationConfig,
    deferred_acceptance,
    iter_investment_rounds,
    run_investment,
    create_strategy,
    STRATEGIES
)
from matesim.matching import resource_allocation
from matesim.matching.resource_allocation import (
    normalize_rows,
    initial_investment,
    top_choices,
    strongest_mutual_investment
)
from matesim.population import Pool, MALE, FEMALE

# Men rank women (rows) and women rank men (rows) so that the unique stable
# matching is the identity, reached only after several rejections.
MEN_SCORES = np.array([
    [9, 8, 7, 6],
    [9, 8, 7, 6],
    [9, 7, 8, 6],
    [7, 9, 6, 8],
], dtype=float)
WOMEN_SCORES = np.array([
    [9, 8, 7, 6],
    [7, 9, 6, 8],
    [8, 7, 9, 6],
    [6, 7, 8, 9],
], dtype=float)


def all_strategies():
    return [RandomMatch(random_seed=0), DeferredAcceptanceMatch(random_seed=0),
            ResourceAllocationMatch(random_seed=0)]


def assert_bijection(pairing, pool_a, pool_b):
    partners = pairing.partners
    assert set(partners) == set(pool_a.pins) | set(pool_b.pins)
    for pin, partner in partners.items():
        if partner is not None:
            assert partners[partner] == pin
    matched = [p for p in partners.values() if p is not None]
    assert len(matched) == len(set(matched)) == 2 * min(len(pool_a), len(pool_b))


class TestPairing:

    def test_valid_pairing(self):
        pairing = Pairing("test", pins_a=[1, 2, 3], pins_b=[4, 5], pairs=[(1, 5), (3, 4)])

        assert len(pairing) == 2
        assert pairing.partner(1) == 5 and pairing.partner(5) == 1
        assert pairing.partner(2) is None
        assert pairing.partner(None) is None
        assert pairing.partner(99) is None
        assert pairing.unmatched == {2}
        assert pairing.partners == {1: 5, 2: None, 3: 4, 4: 3, 5: 1}
        assert list(pairing.to_frame().columns) == ["pin_a", "pin_b"]
        assert pairing.to_dict()["n_unmatched"] == 1

    @pytest.mark.parametrize("pairs", [
        [(1, 3), (2, 3)],          # candidate used twice
        [(1, 3), (1, 4)],          # proposer used twice
        [(1, 2), (3, 4)],          # pair inside one pool
        [(1, 3)],                  # too few pairs
    ])
    def test_invariant_violations_raise(self, pairs):
        with pytest.raises(MatchingInvariantError):
            Pairing("test", pins_a=[1, 2], pins_b=[3, 4], pairs=pairs)

    def test_shared_pins_raise(self):
        with pytest.raises(MatchingInvariantError, match="share"):
            Pairing("test", pins_a=[1, 2], pins_b=[2, 3], pairs=[(1, 2), (2, 3)])


class TestAllStrategies:

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
    def test_equal_pools_fully_paired(self, make_pool, n):
        pool_a = make_pool(MALE, n, pin_start=1, seed=n)
        pool_b = make_pool(FEMALE, n, pin_start=n + 1, seed=n + 100)
        for strategy in all_strategies():
            pairing = strategy.match(pool_a, pool_b)
            assert pairing.strategy == strategy.name
            assert not pairing.unmatched
            assert_bijection(pairing, pool_a, pool_b)

    @pytest.mark.parametrize("n_a, n_b", [(5, 3), (3, 5), (1, 4)])
    def test_unequal_pools_leave_surplus_unmatched(self, make_pool, n_a, n_b):
        pool_a = make_pool(MALE, n_a, pin_start=1, seed=1)
        pool_b = make_pool(FEMALE, n_b, pin_start=100, seed=2)
        for strategy in all_strategies():
            pairing = strategy.match(pool_a, pool_b)
            assert len(pairing) == min(n_a, n_b)
            assert len(pairing.unmatched) == abs(n_a - n_b)
            assert_bijection(pairing, pool_a, pool_b)

    def test_same_sex_pools_rejected(self, make_pool):
        pool_a = make_pool(MALE, 2, pin_start=1)
        pool_b = make_pool(MALE, 2, pin_start=3)
        for strategy in all_strategies():
            with pytest.raises(ValueError, match="opposite-sex"):
                strategy.match(pool_a, pool_b)

    def test_single_agents_pair_with_each_other(self, make_pool):
        pool_a = make_pool(MALE, 1, pin_start=1)
        pool_b = make_pool(FEMALE, 1, pin_start=2)
        for strategy in all_strategies():
            assert strategy.match(pool_a, pool_b).pairs == [(1, 2)]


class TestRandomMatch:

    def test_reproducible_with_seed(self, pools):
        first = RandomMatch(random_seed=3).match(*pools)
        second = RandomMatch(random_seed=3).match(*pools)
        assert first.pairs == second.pairs

    def test_does_not_need_attraction(self):
        pool_a = Pool(sex=MALE, pins=[1, 2], traits=np.ones((2, 1)), preferences=np.ones((2, 1)))
        pool_b = Pool(sex=FEMALE, pins=[3, 4], traits=np.ones((2, 3)), preferences=np.ones((2, 3)))
        assert len(RandomMatch(random_seed=0).match(pool_a, pool_b)) == 2


class TestDeferredAcceptance:

    def test_unique_stable_matching(self):
        assignment = deferred_acceptance(MEN_SCORES, WOMEN_SCORES)
        assert assignment == [0, 1, 2, 3]

    def test_unique_stable_matching_from_the_other_side(self):
        assignment = deferred_acceptance(WOMEN_SCORES, MEN_SCORES)
        assert assignment == [0, 1, 2, 3]

    def test_result_has_no_blocking_pairs(self, make_pool):
        pool_a = make_pool(MALE, 15, pin_start=1, seed=4)
        pool_b = make_pool(FEMALE, 12, pin_start=16, seed=5)
        strategy = DeferredAcceptanceMatch()
        a_rates_b, b_rates_a = strategy.attraction_model.rate_both(pool_a, pool_b)

        pairs = strategy.assign(a_rates_b, b_rates_a)

        assert len(pairs) == 12
        assert count_blocking_pairs(pairs, a_rates_b, b_rates_a) == 0

    def test_candidate_keeps_incumbent_on_tie(self):
        proposers = np.array([[5.0], [5.0]])
        candidates = np.array([[3.0, 3.0]])
        assert deferred_acceptance(proposers, candidates) == [0, None]

    def test_proposer_ranks_ties_by_index(self):
        proposers = np.array([[4.0, 4.0, 1.0]])
        candidates = np.ones((3, 1))
        assert deferred_acceptance(proposers, candidates) == [0]

    def test_female_proposer_is_optimal_for_women(self):
        # Two stable matchings: men's first choices or women's first choices
        men = np.array([[2.0, 1.0], [1.0, 2.0]])
        women = np.array([[1.0, 2.0], [2.0, 1.0]])
        pool_a = Pool(sex=MALE, pins=[1, 2], traits=np.zeros((2, 1)), preferences=np.zeros((2, 1)))
        pool_b = Pool(sex=FEMALE, pins=[3, 4], traits=np.zeros((2, 1)), preferences=np.zeros((2, 1)))

        class FixedScores:
            def rate_both(self, a, b):
                return (men, women) if a.sex == MALE else (women, men)

        male_first = DeferredAcceptanceMatch(FixedScores(), proposer_sex=MALE)
        female_first = DeferredAcceptanceMatch(FixedScores(), proposer_sex=FEMALE)

        assert male_first.match(pool_a, pool_b).pairs == [(1, 3), (2, 4)]
        pairing = female_first.match(pool_a, pool_b)
        assert pairing.pairs == [(1, 4), (2, 3)]
        assert pairing.metadata["proposer"] == "female"

    def test_rejects_unknown_proposer_sex(self):
        with pytest.raises(ValueError):
            DeferredAcceptanceMatch(proposer_sex=2)


class TestResourceAllocation:

    def test_normalize_rows_leaves_zero_rows_at_zero(self):
        normalized = normalize_rows(np.array([[0.0, 0.0], [1.0, 3.0]]), budget=10.0)
        np.testing.assert_allclose(normalized, [[0.0, 0.0], [2.5, 7.5]])

    def test_initial_investment_spends_budget(self):
        invest = initial_investment(np.array([[1.0, 1.0, 2.0], [5.0, 0.0, 5.0]]), budget=10.0)
        np.testing.assert_allclose(invest.sum(axis=1), [10.0, 10.0])

    def test_zero_attraction_never_produces_nan(self):
        a_rates_b = np.array([[0.0, 0.0], [5.0, 5.0]])
        b_rates_a = np.array([[0.0, 3.0], [0.0, 0.0]])

        invest_a, invest_b = run_investment(a_rates_b, b_rates_a, rounds=20)

        assert np.all(np.isfinite(invest_a)) and np.all(np.isfinite(invest_b))
        pairs = ResourceAllocationMatch(random_seed=0).assign(a_rates_b, b_rates_a)
        assert len(pairs) == 2

    @pytest.mark.parametrize("seed", range(20))
    @pytest.mark.parametrize("n_a,n_b", [(5, 5), (4, 6)])
    def test_investment_in_largest_investor_never_decreases(self, seed, n_a, n_b):
        rng = np.random.RandomState(seed)
        invest_a = initial_investment(rng.uniform(1, 10, size=(n_a, n_b)), 10.0)
        invest_b = initial_investment(rng.uniform(1, 10, size=(n_b, n_a)), 10.0)

        checked = 0
        for next_a, next_b in iter_investment_rounds(invest_a, invest_b, rounds=15, budget=10.0):
            # j is i's largest investor: a[i, j] cannot shrink next round
            for i in range(n_a):
                j = int(np.argmax(invest_b[:, i]))
                if invest_b[j, i] > 0:
                    assert next_a[i, j] >= invest_a[i, j] * (1 - 1e-9) - 1e-12
                    checked += 1
            # i is j's largest investor: b[j, i] cannot shrink next round
            for j in range(n_b):
                i = int(np.argmax(invest_a[:, j]))
                if invest_a[i, j] > 0:
                    assert next_b[j, i] >= invest_b[j, i] * (1 - 1e-9) - 1e-12
                    checked += 1
            invest_a, invest_b = next_a, next_b

        assert checked > 0

    def test_mutual_favourites_can_lose_investment_to_a_rival(self):
        # A0 and B0 are each other's top choice, but B1 invests more in A0
        invest_a = np.array([[6.0, 4.0], [5.0, 5.0]])
        invest_b = np.array([[6.0, 4.0], [9.0, 1.0]])

        next_a, next_b = next(iter_investment_rounds(invest_a, invest_b, rounds=1, budget=10.0))

        assert next_a[0, 0] == pytest.approx(5.0)
        assert next_b[0, 0] == pytest.approx(360.0 / 56.0)

    def test_symmetric_favourites_converge_to_full_investment(self):
        attraction = np.array([[7.0, 2.0, 1.0], [1.0, 7.0, 2.0], [2.0, 1.0, 7.0]])

        invest_a, invest_b = run_investment(attraction, attraction.T, rounds=30, budget=10.0)

        assert invest_a[0, 0] == pytest.approx(10.0)
        assert invest_b[0, 0] == pytest.approx(10.0)

    def test_rounds_spend_full_budget(self):
        rng = np.random.RandomState(0)
        a_rates_b = rng.uniform(1, 10, size=(4, 6))
        b_rates_a = rng.uniform(1, 10, size=(6, 4))

        for invest_a, invest_b in iter_investment_rounds(
            initial_investment(a_rates_b, 10.0), initial_investment(b_rates_a, 10.0), 5, 10.0
        ):
            np.testing.assert_allclose(invest_a.sum(axis=1), 10.0)
            np.testing.assert_allclose(invest_b.sum(axis=1), 10.0)

    def test_mutual_favourites_pair(self):
        attraction = np.array([[8.0, 1.0, 1.0], [1.0, 8.0, 1.0], [1.0, 1.0, 8.0]])
        strategy = ResourceAllocationMatch(random_seed=0)

        pairs = strategy.assign(attraction, attraction.T)

        assert pairs == [(0, 0), (1, 1), (2, 2)]
        assert strategy.diagnostics["forced_pairs"] == 0

    def test_top_choice_ties_use_random_state(self):
        investment = np.array([[5.0, 5.0], [0.0, 0.0], [1.0, 9.0]])
        choices = top_choices(investment, np.random.RandomState(0))
        assert choices[0] in (0, 1) and choices[1] in (0, 1)
        assert choices[2] == 1

    def test_strongest_mutual_investment_prefers_first_on_ties(self):
        invest_a = np.array([[1.0, 4.0], [4.0, 1.0]])
        invest_b = np.array([[1.0, 2.0], [2.0, 1.0]])
        assert strongest_mutual_investment(invest_a, invest_b) == (0, 1)

    def test_fallback_pairs_when_no_mutual_choice(self, monkeypatch):
        monkeypatch.setattr(resource_allocation, "mutual_choices", lambda a, b: [])
        attraction = np.array([[8.0, 1.0, 1.0], [1.0, 8.0, 1.0], [1.0, 1.0, 8.0]])
        strategy = ResourceAllocationMatch(random_seed=0)

        pairs = strategy.assign(attraction, attraction.T)

        assert sorted(pairs) == [(0, 0), (1, 1), (2, 2)]
        assert strategy.diagnostics["forced_pairs"] == 2
        assert strategy.diagnostics["passes"] == 2

    def test_config_validation(self, config):
        assert ResourceAllocationConfig.from_config(config).to_dict() == {"rounds": 100, "budget": 10.0}
        with pytest.raises(ValueError):
            ResourceAllocationMatch(config=ResourceAllocationConfig(rounds=0))
        with pytest.raises(ValueError):
            ResourceAllocationConfig(budget=-1.0).validate()


class TestFactory:

    def test_known_strategies(self, config):
        assert set(STRATEGIES) == {"random", "gsa", "ram"}
        assert isinstance(create_strategy("random", config), RandomMatch)
        assert isinstance(create_strategy("ram", config), ResourceAllocationMatch)

    def test_gsa_proposer_from_config(self, config):
        config["matching"]["gsa"]["proposer"] = "female"
        assert create_strategy("gsa", config).proposer_sex == FEMALE

    def test_ram_settings_from_config(self, config):
        config["matching"]["ram"] = {"rounds": 7, "budget": 2.5}
        strategy = create_strategy("ram", config)
        assert (strategy.config.rounds, strategy.config.budget) == (7, 2.5)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown matching strategy"):
            create_strategy("lottery")
