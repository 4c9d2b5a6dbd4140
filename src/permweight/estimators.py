"""
Estimator Bank

Interchangeable estimators of the marginal structural model
``E[Y(a, fa)] = b0 + b1 a + b2 fa`` under network interference.

- ``NaiveEstimator``: unweighted OLS of Y on ``[1, A, fA]``.
- ``IPWEstimator``: stabilized inverse probability weights from a logistic
  propensity model, then weighted least squares.
- ``PermutationWeightingEstimator``: weights from the permutation
  weighting classifier, then weighted least squares.

Every estimator is an immutable configuration value with a single
``fit(dataset, seed=None)`` entry point.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .classifiers import LogitFitter
from .design import (
    COVARIATE_TERMS,
    MISSPECIFIED_COVARIATE_TERMS,
    MSM_TERMS,
    DesignSpec,
    permutation_classifier_terms,
)
from .dgp import TREATMENT, SimulationDataset
from .estimation import fit_msm, fit_propensity
from .exceptions import InvalidParameterError
from .permutation import DEGENERATE_POLICIES, estimate_weights
from .validation import validate_choice, validate_positive_int


@dataclass(frozen=True, eq=False)
class EstimationResult:
    """
    Fitted MSM coefficients for one estimator on one dataset.

    Attributes
    ----------
    method : str
        Estimator name.
    coefficients : pd.Series
        MSM coefficients indexed by term (``const``, ``A``, ``fA``).
    std_errors : pd.Series
        Model-based standard errors (not adjusted for weight estimation).
    weights : np.ndarray or None
        Regression weights, None for unweighted fits.
    nobs : int
        Number of units.
    """

    method: str
    coefficients: pd.Series
    std_errors: pd.Series
    weights: Optional[np.ndarray]
    nobs: int

    def estimate(self, parameter: str) -> float:
        if parameter not in self.coefficients.index:
            raise InvalidParameterError(
                f"Parameter {parameter!r} not estimated by {self.method}. "
                f"Available: {list(self.coefficients.index)}"
            )
        return float(self.coefficients[parameter])

    def bias(self, oracle: Mapping[str, float]) -> Dict[str, float]:
        """Estimate minus true value for every parameter in *oracle*."""
        return {name: self.estimate(name) - float(value) for name, value in oracle.items()}


class Estimator(ABC):
    """Common interface of the estimator bank."""

    name: str

    @abstractmethod
    def fit(self, dataset: SimulationDataset, seed=None) -> EstimationResult:
        """Fit the MSM on *dataset*; *seed* feeds any internal randomness."""


@dataclass(frozen=True)
class NaiveEstimator(Estimator):
    """Unweighted least squares of Y on the MSM terms."""

    name: str = 'naive'
    msm: DesignSpec = MSM_TERMS

    def fit(self, dataset: SimulationDataset, seed=None) -> EstimationResult:
        result = fit_msm(dataset.frame, self.msm)
        return EstimationResult(
            method=self.name,
            coefficients=result.params,
            std_errors=result.bse,
            weights=None,
            nobs=result.nobs,
        )


def stabilized_ipw(treatment, propensity, stabilized: bool = True) -> np.ndarray:
    """
    Inverse probability weights ``P(A = A_i) / P(A = A_i | X_i)``.

    The numerator is the marginal treatment prevalence (or 1 when
    ``stabilized=False``).
    """
    A = np.asarray(treatment, dtype=float)
    p = np.asarray(propensity, dtype=float)
    denominator = np.where(A == 1, p, 1.0 - p)
    if stabilized:
        prevalence = A.mean()
        numerator = np.where(A == 1, prevalence, 1.0 - prevalence)
    else:
        numerator = np.ones_like(A)
    return numerator / denominator


@dataclass(frozen=True)
class IPWEstimator(Estimator):
    """
    Inverse probability weighted least squares.

    Attributes
    ----------
    covariates : DesignSpec
        Propensity model terms (an intercept is always added). Pass a
        deliberately wrong set to study misspecification.
    stabilized : bool
        Use the marginal prevalence as numerator.
    fitter : classifier strategy
        Propensity model fitter.
    """

    name: str = 'ipw'
    covariates: DesignSpec = COVARIATE_TERMS
    msm: DesignSpec = MSM_TERMS
    stabilized: bool = True
    fitter: object = field(default_factory=LogitFitter)

    def fit(self, dataset: SimulationDataset, seed=None) -> EstimationResult:
        frame = dataset.frame
        propensity = fit_propensity(frame, self.covariates, TREATMENT, self.fitter)
        weights = stabilized_ipw(frame[TREATMENT].to_numpy(), propensity, self.stabilized)
        result = fit_msm(frame, self.msm, weights=weights)
        return EstimationResult(
            method=self.name,
            coefficients=result.params,
            std_errors=result.bse,
            weights=weights,
            nobs=result.nobs,
        )


@dataclass(frozen=True)
class PermutationWeightingEstimator(Estimator):
    """
    Permutation weighted least squares.

    Attributes
    ----------
    classifier_terms : DesignSpec
        Design of the observed-vs-permuted classifier.
    n_permutations : int
        Permutation draws averaged per fit (B).
    fitter : classifier strategy
        Classifier fitter (logit, GEE or scikit-learn).
    on_degenerate : {'raise', 'clip'}
        Policy for classifier probabilities at 0 or 1.
    """

    name: str = 'pw'
    classifier_terms: DesignSpec = field(
        default_factory=lambda: permutation_classifier_terms(COVARIATE_TERMS)
    )
    n_permutations: int = 10
    msm: DesignSpec = MSM_TERMS
    fitter: object = field(default_factory=LogitFitter)
    on_degenerate: str = 'raise'

    def __post_init__(self):
        validate_positive_int(self.n_permutations, 'n_permutations')
        validate_choice(self.on_degenerate, 'on_degenerate', DEGENERATE_POLICIES)

    def fit(self, dataset: SimulationDataset, seed=None) -> EstimationResult:
        weights = estimate_weights(
            dataset,
            self.n_permutations,
            classifier_terms=self.classifier_terms,
            classifier_fitter=self.fitter,
            seed=seed,
            on_degenerate=self.on_degenerate,
        )
        result = fit_msm(dataset.frame, self.msm, weights=weights.values)
        return EstimationResult(
            method=self.name,
            coefficients=result.params,
            std_errors=result.bse,
            weights=np.array(weights.values),
            nobs=result.nobs,
        )


def default_estimators(n_permutations: int = 10, fitter=None) -> Dict[str, Estimator]:
    """
    The estimator bank compared in the simulation study.

    Correctly specified models use ``|Z1|``, ``Z2``, their interaction and
    ``Z3``; misspecified models use raw ``Z1``, ``Z2`` and ``Z3`` only.

    Parameters
    ----------
    n_permutations : int, default 10
        Permutation draws per permutation weighting fit.
    fitter : classifier strategy, optional
        Shared by every weighted estimator; defaults to ``LogitFitter()``.
    """
    fitter = fitter if fitter is not None else LogitFitter()
    bank = [
        NaiveEstimator(name='naive'),
        IPWEstimator(name='ipw_correct', covariates=COVARIATE_TERMS, fitter=fitter),
        IPWEstimator(name='ipw_incorrect', covariates=MISSPECIFIED_COVARIATE_TERMS, fitter=fitter),
        PermutationWeightingEstimator(
            name='pw_correct',
            classifier_terms=permutation_classifier_terms(COVARIATE_TERMS),
            n_permutations=n_permutations,
            fitter=fitter,
        ),
        PermutationWeightingEstimator(
            name='pw_incorrect',
            classifier_terms=permutation_classifier_terms(MISSPECIFIED_COVARIATE_TERMS),
            n_permutations=n_permutations,
            fitter=fitter,
        ),
    ]
    return {est.name: est for est in bank}
