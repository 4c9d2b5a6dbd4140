"""
Estimation module for marginal structural models.

Implements the weighted least-squares fit of the outcome on the exposure
design ``[1, A, fA]`` and the logistic propensity model used for inverse
probability weights.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .classifiers import LogitFitter
from .design import COVARIATE_TERMS, MSM_TERMS, DesignSpec
from .exceptions import DegenerateWeightError, InvalidParameterError, ModelFitError
from .warnings_categories import OverlapWarning

# Largest weight relative to the mean weight before warning about overlap
OVERLAP_RATIO_THRESHOLD = 100.0


@dataclass(frozen=True, eq=False)
class MSMFit:
    """
    Fitted marginal structural model.

    Attributes
    ----------
    params : pd.Series
        Coefficients indexed by design column name.
    bse : pd.Series
        Model-based standard errors.
    nobs : int
        Number of observations.
    weighted : bool
        Whether regression weights were used.
    """

    params: pd.Series
    bse: pd.Series
    nobs: int
    weighted: bool


def check_weights(weights, n: int, label: str = 'weights') -> np.ndarray:
    """
    Validate regression weights: length *n*, finite and strictly positive.

    Emits :class:`OverlapWarning` when a single weight dominates.

    Raises
    ------
    DegenerateWeightError
        If any weight is non-finite or not strictly positive.
    """
    w = np.asarray(weights, dtype=float)
    if w.shape != (n,):
        raise InvalidParameterError(f"{label} must have length {n}, got shape {w.shape}")
    bad = ~np.isfinite(w) | (w <= 0)
    if bad.any():
        idx = np.flatnonzero(bad)
        raise DegenerateWeightError(
            f"{label} must be finite and strictly positive; {idx.size} unit(s) "
            f"violate this (first: {idx[:10].tolist()}, values: {w[idx[:5]].tolist()})."
        )
    ratio = w.max() / w.mean()
    if ratio > OVERLAP_RATIO_THRESHOLD:
        warnings.warn(
            f"Extreme {label}: the largest weight is {ratio:.1f} times the mean weight. "
            f"Estimates are driven by few units; check overlap.",
            OverlapWarning,
            stacklevel=3,
        )
    return w


def fit_msm(
    frame: pd.DataFrame,
    msm: DesignSpec = MSM_TERMS,
    weights=None,
    outcome: str = 'Y',
) -> MSMFit:
    """
    Fit the marginal structural model by (weighted) least squares.

    Parameters
    ----------
    frame : pd.DataFrame
        Unit-level data containing the outcome and the MSM terms.
    msm : DesignSpec, default ``MSM_TERMS``
        Exposure design, ``[1, A, fA]`` by default.
    weights : array-like, optional
        Regression weights; OLS when omitted.
    outcome : str, default 'Y'
        Outcome column.

    Returns
    -------
    MSMFit

    Raises
    ------
    ModelFitError
        If the design is rank deficient or the fit is not finite.
    DegenerateWeightError
        If weights are non-finite or not strictly positive.
    """
    if outcome not in frame.columns:
        raise InvalidParameterError(f"Outcome column {outcome!r} not found in data")
    X = msm.build(frame)
    y = frame[outcome].to_numpy(dtype=float)
    n, k = X.shape
    if n <= k:
        raise ModelFitError(f"Insufficient observations for the MSM: N={n}, parameters={k}")

    rank = np.linalg.matrix_rank(X.to_numpy())
    if rank < k:
        raise ModelFitError(
            f"MSM design is rank deficient (rank {rank} < {k} columns {list(X.columns)}). "
            f"This happens when an exposure does not vary, e.g. no treated units."
        )

    if weights is None:
        model = sm.OLS(y, X)
    else:
        w = check_weights(weights, n)
        model = sm.WLS(y, X, weights=w)
    try:
        result = model.fit()
    except np.linalg.LinAlgError as exc:
        raise ModelFitError(f"MSM least-squares fit failed: {exc}") from exc

    params = pd.Series(np.asarray(result.params), index=X.columns)
    if not np.all(np.isfinite(params.to_numpy())):
        raise ModelFitError(f"MSM fit produced non-finite coefficients: {params.to_dict()}")
    bse = pd.Series(np.asarray(result.bse), index=X.columns)
    return MSMFit(params=params, bse=bse, nobs=int(n), weighted=weights is not None)


def fit_propensity(
    frame: pd.DataFrame,
    covariates: DesignSpec = COVARIATE_TERMS,
    treatment: str = 'A',
    fitter=None,
) -> np.ndarray:
    """
    Estimate ``P(A = 1 | X)`` with a logistic model.

    Parameters
    ----------
    frame : pd.DataFrame
        Unit-level data.
    covariates : DesignSpec, default ``COVARIATE_TERMS``
        Covariate terms; an intercept is always included.
    treatment : str, default 'A'
        Binary treatment column.
    fitter : classifier strategy, optional
        Defaults to :class:`~permweight.classifiers.LogitFitter`.

    Returns
    -------
    np.ndarray
        Fitted propensity scores.

    Raises
    ------
    ModelFitError
        If the fit fails or any fitted probability is exactly 0 or 1
        (separation), since the inverse weights would be infinite.
    """
    fitter = fitter if fitter is not None else LogitFitter()
    if treatment not in frame.columns:
        raise InvalidParameterError(f"Treatment column {treatment!r} not found in data")
    design = DesignSpec(covariates.terms, intercept=True)
    X = design.build(frame)
    model = fitter.fit(X, frame[treatment].to_numpy())
    scores = model.predict_proba(X)
    if np.any(scores <= 0.0) or np.any(scores >= 1.0):
        n_bad = int(np.sum((scores <= 0.0) | (scores >= 1.0)))
        raise ModelFitError(
            f"Propensity model separates the data: {n_bad} fitted probabilities "
            f"are exactly 0 or 1. Inverse probability weights would be infinite."
        )
    return scores

