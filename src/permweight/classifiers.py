"""
Classifier Strategies Module

Pluggable binary classifiers used for propensity scores and for the
permutation-weighting density-ratio classifier. Every strategy fits a
linear-logistic model and returns a :class:`LinearLogisticModel` holding
only the coefficient vector, so no fitted model object (with its copy of
the training data) outlives the call.

Strategies
----------
- ``LogitFitter``: statsmodels ``Logit`` (maximum likelihood, Newton).
- ``GEEFitter``: statsmodels ``GEE`` with a Binomial family, clustered by
  unit so a unit's real and permuted rows are treated as correlated.
- ``SklearnLogisticFitter``: scikit-learn ``LogisticRegression`` on
  standardised columns, coefficients mapped back to the original scale.
"""

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import expit
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as SMConvergenceWarning,
    HessianInversionWarning,
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from .design import INTERCEPT
from .exceptions import InvalidParameterError, ModelFitError
from .validation import validate_choice, validate_positive_int
from .warnings_categories import ConvergenceWarning


@dataclass(frozen=True, eq=False)
class LinearLogisticModel:
    """
    Fitted linear-logistic classifier ``P(y=1 | x) = expit(x . params)``.

    Attributes
    ----------
    params : pd.Series
        Coefficients indexed by design column name.
    converged : bool
        Whether the fitting routine reported convergence.
    """

    params: pd.Series
    converged: bool = True

    def linear_predictor(self, X: pd.DataFrame) -> np.ndarray:
        missing = [c for c in self.params.index if c not in X.columns]
        if missing:
            raise InvalidParameterError(f"Prediction design lacks fitted column(s): {missing}")
        return X[list(self.params.index)].to_numpy(dtype=float) @ self.params.to_numpy()

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Probability of the positive class for every row of *X*."""
        return expit(self.linear_predictor(X))


def _check_inputs(X: pd.DataFrame, y) -> np.ndarray:
    y = np.asarray(y, dtype=float)
    if y.shape != (len(X),):
        raise InvalidParameterError(
            f"Label vector has shape {y.shape}, expected ({len(X)},)"
        )
    if not np.isin(y, (0.0, 1.0)).all():
        raise InvalidParameterError("Classifier labels must be binary (0/1)")
    if y.min() == y.max():
        raise ModelFitError(
            f"Cannot fit a classifier: every label equals {int(y[0])}. "
            f"Both classes must be present."
        )
    return y


def _finite_params(params: pd.Series, label: str) -> pd.Series:
    if not np.all(np.isfinite(params.to_numpy())):
        raise ModelFitError(
            f"{label} produced non-finite coefficients: {params.to_dict()}. "
            f"This usually indicates separation or a singular design."
        )
    return params


def _convergence_warning(label: str, detail: str) -> None:
    warnings.warn(
        f"{label} did not converge ({detail}). Coefficients may be unreliable.",
        ConvergenceWarning,
        stacklevel=4,
    )


class LogitFitter:
    """
    Maximum-likelihood logistic regression via statsmodels ``Logit``.

    Parameters
    ----------
    maxiter : int, default 100
        Maximum Newton iterations.
    """

    name = 'logit'

    def __init__(self, maxiter: int = 100):
        self.maxiter = validate_positive_int(maxiter, 'maxiter')

    def __repr__(self) -> str:
        return f"LogitFitter(maxiter={self.maxiter})"

    def __eq__(self, other) -> bool:
        return type(other) is type(self) and other.maxiter == self.maxiter

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.maxiter))

    def fit(self, X: pd.DataFrame, y, groups=None) -> LinearLogisticModel:
        y = _check_inputs(X, y)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            warnings.simplefilter('error', PerfectSeparationWarning)
            try:
                result = sm.Logit(y, X.astype(float)).fit(
                    method='newton', maxiter=self.maxiter, disp=0
                )
            except (PerfectSeparationError, PerfectSeparationWarning) as exc:
                raise ModelFitError(
                    f"Logistic regression failed: perfect separation detected ({exc}). "
                    f"Simplify the design or use a penalised classifier."
                ) from exc
            except np.linalg.LinAlgError as exc:
                raise ModelFitError(
                    f"Logistic regression failed: singular Hessian ({exc}). "
                    f"Check the design for collinear terms."
                ) from exc

        converged = bool(result.mle_retvals.get('converged', True))
        sm_warned = any(
            issubclass(w.category, (SMConvergenceWarning, HessianInversionWarning))
            for w in caught
        )
        if not converged or sm_warned:
            _convergence_warning('Logistic regression', f'maxiter={self.maxiter}')
        params = _finite_params(pd.Series(result.params, index=X.columns), 'Logistic regression')
        return LinearLogisticModel(params=params, converged=converged)


class GEEFitter:
    """
    Logistic generalized estimating equations via statsmodels ``GEE``.

    Parameters
    ----------
    cov_struct : {'exchangeable', 'independence'}, default 'exchangeable'
        Working correlation within a group.
    maxiter : int, default 60
        Maximum GEE iterations.

    Notes
    -----
    When ``groups`` is not supplied every row forms its own group.
    """

    name = 'gee'
    _COV_STRUCTS = ('exchangeable', 'independence')

    def __init__(self, cov_struct: str = 'exchangeable', maxiter: int = 60):
        self.cov_struct = validate_choice(cov_struct, 'cov_struct', self._COV_STRUCTS)
        self.maxiter = validate_positive_int(maxiter, 'maxiter')

    def __repr__(self) -> str:
        return f"GEEFitter(cov_struct={self.cov_struct!r}, maxiter={self.maxiter})"

    def __eq__(self, other) -> bool:
        return (
            type(other) is type(self)
            and other.cov_struct == self.cov_struct
            and other.maxiter == self.maxiter
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.cov_struct, self.maxiter))

    def fit(self, X: pd.DataFrame, y, groups=None) -> LinearLogisticModel:
        y = _check_inputs(X, y)
        if groups is None:
            groups = np.arange(len(y))
        groups = np.asarray(groups)
        if groups.shape != y.shape:
            raise InvalidParameterError(
                f"groups has shape {groups.shape}, expected {y.shape}"
            )
        if self.cov_struct == 'exchangeable':
            cov = sm.cov_struct.Exchangeable()
        else:
            cov = sm.cov_struct.Independence()

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                result = sm.GEE(
                    y, X.astype(float), groups=groups,
                    family=sm.families.Binomial(), cov_struct=cov,
                ).fit(maxiter=self.maxiter)
            except (np.linalg.LinAlgError, PerfectSeparationError) as exc:
                raise ModelFitError(f"GEE logistic fit failed: {exc}") from exc

        converged = bool(getattr(result, 'converged', True))
        sm_warned = any(issubclass(w.category, SMConvergenceWarning) for w in caught)
        if not converged or sm_warned:
            _convergence_warning('GEE logistic fit', f'maxiter={self.maxiter}')
        params = _finite_params(pd.Series(result.params, index=X.columns), 'GEE logistic fit')
        return LinearLogisticModel(params=params, converged=converged)


class SklearnLogisticFitter:
    """
    Logistic regression via scikit-learn on standardised columns.

    Parameters
    ----------
    C : float, optional
        Inverse L2 penalty strength. ``None`` (default) fits without a
        penalty, matching the maximum-likelihood strategies.
    max_iter : int, default 1000
        Maximum lbfgs iterations.
    """

    name = 'sklearn'

    def __init__(self, C: Optional[float] = None, max_iter: int = 1000):
        if C is not None and not (C > 0):
            raise InvalidParameterError(f"C must be positive, got {C}")
        self.C = C
        self.max_iter = validate_positive_int(max_iter, 'max_iter')

    def __repr__(self) -> str:
        return f"SklearnLogisticFitter(C={self.C}, max_iter={self.max_iter})"

    def __eq__(self, other) -> bool:
        return type(other) is type(self) and (other.C, other.max_iter) == (self.C, self.max_iter)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.C, self.max_iter))

    def fit(self, X: pd.DataFrame, y, groups=None) -> LinearLogisticModel:
        from sklearn.exceptions import ConvergenceWarning as SKConvergenceWarning
        from sklearn.linear_model import LogisticRegression

        y = _check_inputs(X, y)
        has_const = INTERCEPT in X.columns
        features = [c for c in X.columns if c != INTERCEPT]
        Z = X[features].to_numpy(dtype=float)

        # Standardise for numerical stability; centring needs an intercept
        # to absorb the shift
        Z_mean = Z.mean(axis=0) if has_const else np.zeros(Z.shape[1])
        Z_std = Z.std(axis=0)
        Z_std[Z_std == 0] = 1
        Z_scaled = (Z - Z_mean) / Z_std

        if self.C is None:
            model = LogisticRegression(
                penalty=None, solver='lbfgs', max_iter=self.max_iter,
                tol=1e-8, fit_intercept=has_const,
            )
        else:
            model = LogisticRegression(
                C=self.C, solver='lbfgs', max_iter=self.max_iter,
                tol=1e-8, fit_intercept=has_const,
            )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                model.fit(Z_scaled, y)
            except ValueError as exc:
                raise ModelFitError(f"scikit-learn logistic fit failed: {exc}") from exc
        converged = not any(issubclass(w.category, SKConvergenceWarning) for w in caught)
        if not converged:
            _convergence_warning('scikit-learn logistic fit', f'max_iter={self.max_iter}')

        # Map coefficients back to the original scale
        coef_scaled = model.coef_[0]
        coef = coef_scaled / Z_std
        values = {}
        if has_const:
            values[INTERCEPT] = float(model.intercept_[0] - (coef_scaled * Z_mean / Z_std).sum())
        for name, value in zip(features, coef):
            values[name] = float(value)
        params = pd.Series(values)[list(X.columns)]
        params = _finite_params(params, 'scikit-learn logistic fit')
        return LinearLogisticModel(params=params, converged=converged)


_FITTERS = {
    'logit': LogitFitter,
    'gee': GEEFitter,
    'sklearn': SklearnLogisticFitter,
}


def get_fitter(name: str, **kwargs):
    """
    Instantiate a classifier strategy by name.

    Parameters
    ----------
    name : {'logit', 'gee', 'sklearn'}
        Strategy name (case-insensitive).
    **kwargs
        Passed to the strategy constructor.
    """
    key = validate_choice(name, 'classifier', _FITTERS)
    return _FITTERS[key](**kwargs)
