"""
Monte Carlo bias studies for the estimator bank.

Property 1: under confounding through own and neighbour covariates, the
unweighted MSM fit is badly biased for the direct effect while correctly
specified IPW and permutation weighting are nearly unbiased.

Property 2: when treatment does not depend on covariates, permutation
weights average to one.
"""

import numpy as np
import pytest

from permweight import (
    DIRECT_AND_SPILLOVER,
    DIRECT_EFFECT_ONLY,
    NO_CONFOUNDING,
    PermutationWeightingEstimator,
    default_estimators,
    estimate_weights,
    generate_dataset,
    generate_graph,
    run_simulation,
)

pytestmark = [pytest.mark.slow, pytest.mark.monte_carlo]


@pytest.fixture(scope='module')
def study_graph():
    return generate_graph(n=1000, max_degree=5, seed=20240601)


@pytest.fixture(scope='module')
def direct_effect_results(study_graph):
    scenario = DIRECT_EFFECT_ONLY
    return run_simulation(
        250,
        scenario.oracle,
        default_estimators(n_permutations=10),
        graph=study_graph,
        gamma=scenario.gamma,
        beta=scenario.beta,
        seed=2024,
        n_jobs=-1,
    )


class TestDirectEffectScenario:
    """
    Property 1: bias pattern in the direct-effect-only setting
    (oracle A=2, fA=0; n=1000, max_degree=5, 250 replicates).
    """

    def test_no_failed_fits(self, direct_effect_results):
        assert direct_effect_results.n_failed == 0
        assert len(direct_effect_results.records) == 250 * 5 * 2

    def test_naive_is_badly_biased(self, direct_effect_results):
        mab = direct_effect_results.mean_absolute_bias()
        assert mab.loc['naive', 'A'] > 1.0, (
            f"naive mean absolute bias for A: {mab.loc['naive', 'A']:.3f}"
        )

    @pytest.mark.parametrize("method", ['ipw_correct', 'pw_correct'])
    def test_correct_weighting_is_nearly_unbiased(self, direct_effect_results, method):
        mab = direct_effect_results.mean_absolute_bias()
        assert mab.loc[method, 'A'] < 0.2, (
            f"{method} mean absolute bias for A: {mab.loc[method, 'A']:.3f}"
        )

    def test_weighting_beats_naive(self, direct_effect_results):
        mab = direct_effect_results.mean_absolute_bias()
        for method in ('ipw_correct', 'pw_correct'):
            assert mab.loc[method, 'A'] < mab.loc['naive', 'A']


class TestDensityRatioIdentity:
    """
    Property 2: with gamma = [c, 0, 0, 0, 0] there is no dependence for
    permutation to break, so the average weight is close to one.
    """

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_mean_weight_near_one(self, study_graph, seed):
        dataset = generate_dataset(
            study_graph, NO_CONFOUNDING.gamma, NO_CONFOUNDING.beta, seed=seed,
        )
        weights = estimate_weights(dataset, n_permutations=10, seed=seed)
        assert abs(weights.mean - 1.0) < 0.1, f"mean weight {weights.mean:.4f}"

    def test_no_confounding_all_estimators_agree(self, study_graph):
        results = run_simulation(
            20,
            NO_CONFOUNDING.oracle,
            {
                'naive': default_estimators()['naive'],
                'pw': PermutationWeightingEstimator(name='pw', n_permutations=5),
            },
            graph=study_graph,
            gamma=NO_CONFOUNDING.gamma,
            beta=NO_CONFOUNDING.beta,
            seed=5,
        )
        summary = results.summary_table().set_index(['method', 'parameter'])
        for method in ('naive', 'pw'):
            assert abs(summary.loc[(method, 'A'), 'mean_bias']) < 0.2


@pytest.mark.integration
def test_spillover_scenario_runs(study_graph):
    scenario = DIRECT_AND_SPILLOVER
    results = run_simulation(
        5,
        scenario.oracle,
        default_estimators(n_permutations=2),
        graph=study_graph,
        gamma=scenario.gamma,
        beta=scenario.beta,
        seed=11,
        on_error='skip',
    )
    records = results.records
    assert set(records['parameter']) == {'A', 'fA'}
    assert np.all(records.loc[records['parameter'] == 'fA', 'oracle'] == 1.5)
