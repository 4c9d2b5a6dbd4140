"""Tests for the MSM least-squares fit and the propensity model."""

import warnings

import numpy as np
import pandas as pd
import pytest

from permweight import (
    COVARIATE_TERMS,
    DegenerateWeightError,
    InvalidParameterError,
    ModelFitError,
    OverlapWarning,
    fit_msm,
    fit_propensity,
)
from permweight.estimation import check_weights


@pytest.fixture
def msm_frame():
    rng = np.random.default_rng(3)
    n = 200
    A = rng.binomial(1, 0.5, size=n)
    fA = rng.uniform(0, 1, size=n)
    Y = 1.0 + 2.0 * A + 3.0 * fA
    return pd.DataFrame({'A': A, 'fA': fA, 'Y': Y})


class TestFitMSM:

    def test_exact_recovery_ols(self, msm_frame):
        fit = fit_msm(msm_frame)
        assert not fit.weighted
        assert fit.nobs == 200
        np.testing.assert_allclose(fit.params[['const', 'A', 'fA']], [1.0, 2.0, 3.0], atol=1e-8)

    def test_exact_recovery_wls(self, msm_frame):
        weights = np.linspace(0.5, 2.0, len(msm_frame))
        fit = fit_msm(msm_frame, weights=weights)
        assert fit.weighted
        np.testing.assert_allclose(fit.params.to_numpy(), [1.0, 2.0, 3.0], atol=1e-8)

    def test_weights_change_estimates_with_noise(self, msm_frame):
        rng = np.random.default_rng(4)
        noisy = msm_frame.assign(Y=msm_frame['Y'] + rng.normal(size=len(msm_frame)))
        unweighted = fit_msm(noisy)
        weighted = fit_msm(noisy, weights=rng.uniform(0.1, 5.0, size=len(noisy)))
        assert not np.allclose(unweighted.params, weighted.params)

    @pytest.mark.parametrize("bad", [0.0, -1.0, np.nan, np.inf])
    def test_degenerate_weights(self, msm_frame, bad):
        weights = np.ones(len(msm_frame))
        weights[5] = bad
        with pytest.raises(DegenerateWeightError):
            fit_msm(msm_frame, weights=weights)

    def test_weight_length(self, msm_frame):
        with pytest.raises(InvalidParameterError):
            fit_msm(msm_frame, weights=np.ones(3))

    def test_constant_treatment_is_rank_deficient(self, msm_frame):
        with pytest.raises(ModelFitError, match='rank deficient'):
            fit_msm(msm_frame.assign(A=1))

    def test_missing_outcome(self, msm_frame):
        with pytest.raises(InvalidParameterError):
            fit_msm(msm_frame.drop(columns='Y'))


class TestCheckWeights:

    def test_overlap_warning(self):
        w = np.ones(1000)
        w[0] = 1e4
        with pytest.warns(OverlapWarning, match='overlap'):
            check_weights(w, 1000)

    def test_moderate_weights_do_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            out = check_weights(np.linspace(0.5, 3.0, 50), 50)
        assert out.shape == (50,)


class TestFitPropensity:

    def test_scores(self, small_dataset):
        scores = fit_propensity(small_dataset.frame, COVARIATE_TERMS)
        assert scores.shape == (small_dataset.n,)
        assert np.all((scores > 0) & (scores < 1))

    def test_scores_track_true_propensity(self, small_dataset):
        frame = small_dataset.frame
        scores = fit_propensity(frame, COVARIATE_TERMS)
        assert np.corrcoef(scores, frame['pA'])[0, 1] > 0.5

    def test_missing_treatment(self, small_dataset):
        with pytest.raises(InvalidParameterError):
            fit_propensity(small_dataset.frame.drop(columns='A'))
