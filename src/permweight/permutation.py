"""
Permutation Weighting Module

Estimates the density ratio ``Pr(A) Pr(X) / Pr(A, X)`` without a parametric
joint density. Randomly permuting the treatment column breaks its
dependence on the covariates, giving draws from the product of marginals;
a classifier trained to tell permuted rows (C=1) from observed rows (C=0)
has odds ``P(C=1 | a, x) / P(C=0 | a, x)`` equal to that ratio.

Each of the B draws:

1. permutes ``A`` across units and recomputes ``A_n``/``fA`` on the
   original graph (covariates and outcome untouched);
2. stacks observed (C=0) and permuted (C=1) rows, 2n in total;
3. fits the classifier ``C ~ classifier_terms``;
4. predicts ``P(C=1)`` for the n observed rows only;
5. converts probabilities to odds weights ``p / (1 - p)``.

The B weight vectors are averaged element-wise.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from .classifiers import LogitFitter
from .design import COVARIATE_TERMS, DesignSpec, permutation_classifier_terms
from .dgp import TREATMENT, UNIT, SimulationDataset
from .exceptions import DegenerateWeightError, InvalidParameterError
from .validation import validate_choice, validate_positive_int
from .warnings_categories import NumericalWarning

logger = logging.getLogger('permweight.permutation')

LABEL = 'C'
DEGENERATE_POLICIES = ('raise', 'clip')

DEFAULT_CLASSIFIER_TERMS = permutation_classifier_terms(COVARIATE_TERMS)


@dataclass(frozen=True, eq=False)
class PermutedDataset:
    """
    Copy of a dataset with the treatment column permuted across units.

    Attributes
    ----------
    frame : pd.DataFrame
        Unit frame with ``A`` permuted and ``A_n``/``fA`` recomputed.
    permutation : np.ndarray
        ``frame.A[i] == original.A[permutation[i]]``.
    """

    frame: pd.DataFrame = field(repr=False)
    permutation: np.ndarray = field(repr=False)

    @property
    def n(self) -> int:
        return len(self.frame)


@dataclass(frozen=True, eq=False)
class StackedClassificationSet:
    """
    Observed rows (label 0) stacked on permuted rows (label 1).

    The first ``n_original`` rows are the observed data, in unit order.
    """

    frame: pd.DataFrame = field(repr=False)
    n_original: int

    @property
    def labels(self) -> np.ndarray:
        return self.frame[LABEL].to_numpy()

    @property
    def groups(self) -> np.ndarray:
        """Unit id of every row; a unit's observed and permuted rows share it."""
        return self.frame[UNIT].to_numpy()

    @property
    def original(self) -> pd.DataFrame:
        return self.frame.iloc[:self.n_original]


@dataclass(frozen=True, eq=False)
class WeightVector:
    """
    Permutation weights, one per unit of the original dataset.

    Attributes
    ----------
    values : np.ndarray
        Read-only, finite, strictly positive weights.
    n_permutations : int
        Number of permutation draws averaged.
    n_clipped : int
        Probabilities clipped across all draws (``on_degenerate='clip'``).
    """

    values: np.ndarray = field(repr=False)
    n_permutations: int
    n_clipped: int = 0

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim != 1:
            raise InvalidParameterError(f"Weights must be one-dimensional, got shape {values.shape}")
        if not np.all(np.isfinite(values)) or np.any(values <= 0):
            raise DegenerateWeightError("Permutation weights must be finite and strictly positive")
        values.flags.writeable = False
        object.__setattr__(self, 'values', values)

    def __len__(self) -> int:
        return self.values.size

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.values, dtype=dtype)

    @property
    def mean(self) -> float:
        return float(self.values.mean())

    @property
    def effective_sample_size(self) -> float:
        """Kish effective sample size ``(sum w)^2 / sum w^2``."""
        return float(self.values.sum() ** 2 / np.square(self.values).sum())


def permute_treatment(
    dataset: SimulationDataset,
    rng: Optional[np.random.Generator] = None,
) -> PermutedDataset:
    """
    Permute the treatment vector uniformly at random across units.

    ``A_n`` and ``fA`` are recomputed against the dataset's (unpermuted)
    graph under the dataset's own ``zero_degree`` policy; covariates and
    the outcome are not regenerated.
    """
    rng = np.random.default_rng(rng)
    permutation = rng.permutation(dataset.n)
    permuted = dataset.treatment[permutation]
    return PermutedDataset(frame=dataset.with_treatment(permuted), permutation=permutation)


def stack_classification_set(
    dataset: SimulationDataset,
    permuted: PermutedDataset,
) -> StackedClassificationSet:
    """Stack observed (C=0) and permuted (C=1) rows into one 2n-row frame."""
    if permuted.n != dataset.n:
        raise InvalidParameterError(
            f"Permuted dataset has {permuted.n} rows, original has {dataset.n}"
        )
    observed = dataset.frame
    observed[LABEL] = 0
    shuffled = permuted.frame.copy()
    shuffled[LABEL] = 1
    stacked = pd.concat([observed, shuffled], ignore_index=True)
    return StackedClassificationSet(frame=stacked, n_original=dataset.n)


def odds_weights(
    probabilities,
    on_degenerate: str = 'raise',
    clip: float = 1e-8,
) -> tuple:
    """
    Convert classifier probabilities into odds weights ``p / (1 - p)``.

    Parameters
    ----------
    probabilities : array-like
        ``P(C = 1)`` for each observed unit.
    on_degenerate : {'raise', 'clip'}, default 'raise'
        Policy when a probability is 0, 1 or non-finite (zero or infinite
        odds). ``'raise'`` raises :class:`DegenerateWeightError`;
        ``'clip'`` clips probabilities to ``[clip, 1 - clip]`` and emits a
        :class:`NumericalWarning`.
    clip : float, default 1e-8
        Clipping bound used when ``on_degenerate='clip'``.

    Returns
    -------
    (weights, n_clipped) : tuple of (np.ndarray, int)
    """
    on_degenerate = validate_choice(on_degenerate, 'on_degenerate', DEGENERATE_POLICIES)
    if not 0 < clip < 0.5:
        raise InvalidParameterError(f"clip must lie in (0, 0.5), got {clip}")
    p = np.asarray(probabilities, dtype=float)
    degenerate = ~np.isfinite(p) | (p <= 0.0) | (p >= 1.0)
    n_clipped = 0

    if degenerate.any():
        if on_degenerate == 'raise' or not np.isfinite(p).all():
            idx = np.flatnonzero(degenerate)
            raise DegenerateWeightError(
                f"Classifier probabilities reached 0 or 1 for {idx.size} unit(s) "
                f"(first: {idx[:10].tolist()}), giving zero or infinite odds weights. "
                f"The classifier separates observed from permuted rows; simplify the "
                f"classifier design or pass on_degenerate='clip'."
            )
    if on_degenerate == 'clip':
        outside = (p < clip) | (p > 1.0 - clip)
        n_clipped = int(outside.sum())
        if n_clipped:
            warnings.warn(
                f"Clipped {n_clipped} classifier probabilities to [{clip:g}, {1 - clip:g}] "
                f"to keep permutation weights finite.",
                NumericalWarning,
                stacklevel=3,
            )
        p = np.clip(p, clip, 1.0 - clip)
    return p / (1.0 - p), n_clipped


def estimate_weights(
    dataset: SimulationDataset,
    n_permutations: int,
    classifier_terms: Optional[DesignSpec] = None,
    classifier_fitter=None,
    seed=None,
    on_degenerate: str = 'raise',
    clip: float = 1e-8,
) -> WeightVector:
    """
    Permutation weights averaged over B independent permutation draws.

    Parameters
    ----------
    dataset : SimulationDataset
        Observed data.
    n_permutations : int
        Number of permutation draws B (>= 1).
    classifier_terms : DesignSpec, optional
        Classifier design. Defaults to exposure main effects, covariate
        main effects and exposure x covariate interactions.
    classifier_fitter : classifier strategy, optional
        Object with ``fit(X, y, groups) -> LinearLogisticModel``.
        Defaults to :class:`~permweight.classifiers.LogitFitter`.
    seed : None, int, SeedSequence or Generator, optional
        Source of randomness for the permutations.
    on_degenerate : {'raise', 'clip'}, default 'raise'
        See :func:`odds_weights`.
    clip : float, default 1e-8
        See :func:`odds_weights`.

    Returns
    -------
    WeightVector
        n finite, strictly positive weights.

    Raises
    ------
    ModelFitError
        If a classifier fit fails.
    DegenerateWeightError
        If a probability reaches 0 or 1 and ``on_degenerate='raise'``.
    """
    B = validate_positive_int(n_permutations, 'n_permutations')
    on_degenerate = validate_choice(on_degenerate, 'on_degenerate', DEGENERATE_POLICIES)
    terms = classifier_terms if classifier_terms is not None else DEFAULT_CLASSIFIER_TERMS
    fitter = classifier_fitter if classifier_fitter is not None else LogitFitter()
    if TREATMENT not in terms.columns:
        raise InvalidParameterError(
            f"Classifier design must involve the treatment column '{TREATMENT}'; "
            f"got {terms.column_names}"
        )
    rng = np.random.default_rng(seed)

    total = np.zeros(dataset.n, dtype=float)
    n_clipped = 0
    for b in range(B):
        permuted = permute_treatment(dataset, rng)
        stacked = stack_classification_set(dataset, permuted)
        X = terms.build(stacked.frame)
        model = fitter.fit(X, stacked.labels, groups=stacked.groups)
        probabilities = model.predict_proba(X.iloc[:stacked.n_original])
        weights, clipped = odds_weights(probabilities, on_degenerate, clip)
        total += weights
        n_clipped += clipped
        logger.debug("permutation %d/%d: mean weight %.4f", b + 1, B, weights.mean())

    return WeightVector(values=total / B, n_permutations=B, n_clipped=n_clipped)
