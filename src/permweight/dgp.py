"""
Data Generating Process Module

Draws one synthetic dataset with network interference on a fixed graph.

Per replicate, vectorised over all n units:

1. ``Z1 ~ N(0, 1)`` and ``Z1_abs = |Z1|``
2. ``Z2 ~ Bernoulli(0.5)``
3. ``Z3 = G @ Z1_abs`` (sum of neighbours' ``|Z1|``)
4. ``pA = expit(gamma . [1, Z1_abs, Z2, Z1_abs*Z2, Z3])``, ``A ~ Bernoulli(pA)``
5. ``A_n = G @ A`` and ``fA = A_n / degree``
6. ``Y ~ N(beta . [1, A, fA, Z1_abs, Z2, Z1_abs*Z2, Z3], 1)``
"""

from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

from .design import OUTCOME_TERMS, TREATMENT_TERMS
from .exceptions import InvalidParameterError, ZeroDegreeUnitError
from .network import AdjacencyGraph
from .validation import validate_choice, validate_parameter_vector

UNIT = 'unit'
DEGREE = 'degree'
Z1 = 'Z1'
Z1_ABS = 'Z1_abs'
Z2 = 'Z2'
Z3 = 'Z3'
PROPENSITY = 'pA'
TREATMENT = 'A'
TREATED_NEIGHBORS = 'A_n'
TREATED_FRACTION = 'fA'
OUTCOME = 'Y'

DATASET_COLUMNS = (
    UNIT, DEGREE, Z1, Z1_ABS, Z2, Z3, PROPENSITY,
    TREATMENT, TREATED_NEIGHBORS, TREATED_FRACTION, OUTCOME,
)
ZERO_DEGREE_POLICIES = ('raise', 'zero')

# Tolerance for the fA * degree == A_n consistency check
_EXPOSURE_TOL = 1e-9


def treatment_exposure(
    graph: AdjacencyGraph,
    treatment,
    zero_degree: str = 'raise',
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Neighbour-treatment count and proportion for a treatment vector.

    Parameters
    ----------
    graph : AdjacencyGraph
        Network the summaries are computed on.
    treatment : array-like of shape (n,)
        Binary treatment vector.
    zero_degree : {'raise', 'zero'}, default 'raise'
        Policy for units without neighbours, for which ``fA`` is 0/0.
        ``'raise'`` raises :class:`ZeroDegreeUnitError`; ``'zero'`` sets
        ``fA = 0`` for those units.

    Returns
    -------
    (A_n, fA) : tuple of np.ndarray
        Integer count of treated neighbours and float proportion.
    """
    zero_degree = validate_choice(zero_degree, 'zero_degree', ZERO_DEGREE_POLICIES)
    A = np.asarray(treatment)
    if A.shape != (graph.n,):
        raise InvalidParameterError(
            f"treatment must have length {graph.n}, got shape {A.shape}"
        )
    counts = np.rint(graph.neighbor_sum(A)).astype(np.int64)
    degrees = graph.degrees

    isolated = degrees == 0
    if isolated.any() and zero_degree == 'raise':
        units = np.flatnonzero(isolated)
        raise ZeroDegreeUnitError(
            f"{units.size} unit(s) have no neighbours, so the treated-neighbour "
            f"proportion is undefined (first: {units[:10].tolist()}). "
            f"Use zero_degree='zero' to define fA=0 for isolated units, "
            f"or remove them from the graph."
        )
    fractions = np.zeros(graph.n, dtype=float)
    np.divide(counts, degrees, out=fractions, where=~isolated)
    return counts, fractions


@dataclass(frozen=True, eq=False)
class SimulationDataset:
    """
    One simulated dataset: per-unit frame plus the graph it was drawn on.

    The frame is never exposed for mutation; ``frame`` returns a copy and
    ``column`` returns read-only arrays.

    Attributes
    ----------
    graph : AdjacencyGraph
        Network shared with every other dataset of the run.
    """

    _frame: pd.DataFrame = field(repr=False)
    graph: AdjacencyGraph
    zero_degree: str = 'raise'

    def __post_init__(self):
        missing = [c for c in DATASET_COLUMNS if c not in self._frame.columns]
        if missing:
            raise InvalidParameterError(f"Dataset frame is missing columns: {missing}")
        if len(self._frame) != self.graph.n:
            raise InvalidParameterError(
                f"Dataset has {len(self._frame)} rows but the graph has {self.graph.n} units"
            )
        A = self._frame[TREATMENT].to_numpy()
        if not np.isin(A, (0, 1)).all():
            raise InvalidParameterError("Treatment column must be binary (0/1)")
        counts, fractions = treatment_exposure(self.graph, A, self.zero_degree)
        if not np.array_equal(self._frame[TREATED_NEIGHBORS].to_numpy(), counts):
            raise InvalidParameterError("A_n is inconsistent with the graph and treatment vector")
        if not np.allclose(self._frame[TREATED_FRACTION].to_numpy(), fractions,
                           rtol=0.0, atol=_EXPOSURE_TOL):
            raise InvalidParameterError("fA is inconsistent with A_n / degree")

    def __len__(self) -> int:
        return len(self._frame)

    @property
    def n(self) -> int:
        return len(self._frame)

    @property
    def frame(self) -> pd.DataFrame:
        """Copy of the per-unit data."""
        return self._frame.copy()

    def column(self, name: str) -> np.ndarray:
        """Read-only view of one column."""
        values = self._frame[name].to_numpy().copy()
        values.flags.writeable = False
        return values

    @property
    def treatment(self) -> np.ndarray:
        return self.column(TREATMENT)

    @property
    def outcome(self) -> np.ndarray:
        return self.column(OUTCOME)

    def with_treatment(self, treatment) -> pd.DataFrame:
        """
        Frame with ``A`` replaced and ``A_n``/``fA`` recomputed on this graph.

        Covariates and the outcome are carried over unchanged.
        """
        counts, fractions = treatment_exposure(self.graph, treatment, self.zero_degree)
        out = self._frame.copy()
        out[TREATMENT] = np.asarray(treatment, dtype=np.int64)
        out[TREATED_NEIGHBORS] = counts
        out[TREATED_FRACTION] = fractions
        return out


def generate_dataset(
    graph: AdjacencyGraph,
    gamma: Sequence[float],
    beta: Sequence[float],
    seed=None,
    zero_degree: str = 'raise',
) -> SimulationDataset:
    """
    Draw one synthetic dataset on a fixed graph.

    Parameters
    ----------
    graph : AdjacencyGraph
        Network; read only.
    gamma : sequence of 5 floats
        Treatment model coefficients for ``[1, Z1_abs, Z2, Z1_abs:Z2, Z3]``.
    beta : sequence of 7 floats
        Outcome model coefficients for
        ``[1, A, fA, Z1_abs, Z2, Z1_abs:Z2, Z3]``.
    seed : None, int, SeedSequence or Generator, optional
        Source of randomness for this draw.
    zero_degree : {'raise', 'zero'}, default 'raise'
        Policy for units without neighbours, see :func:`treatment_exposure`.

    Returns
    -------
    SimulationDataset

    Raises
    ------
    InvalidParameterError
        If gamma or beta have the wrong length or non-finite entries.
    ZeroDegreeUnitError
        If the graph has isolated units and ``zero_degree='raise'``.
    """
    gamma = validate_parameter_vector(gamma, 'gamma', TREATMENT_TERMS.column_names)
    beta = validate_parameter_vector(beta, 'beta', OUTCOME_TERMS.column_names)
    rng = np.random.default_rng(seed)
    n = graph.n

    z1 = rng.normal(0.0, 1.0, size=n)
    z1_abs = np.abs(z1)
    z2 = rng.binomial(1, 0.5, size=n).astype(float)
    z3 = graph.neighbor_sum(z1_abs)

    frame = pd.DataFrame({
        UNIT: np.arange(n, dtype=np.int64),
        DEGREE: graph.degrees.astype(np.int64),
        Z1: z1,
        Z1_ABS: z1_abs,
        Z2: z2,
        Z3: z3,
    })

    propensity = expit(TREATMENT_TERMS.build(frame).to_numpy() @ gamma)
    treatment = rng.binomial(1, propensity).astype(np.int64)
    counts, fractions = treatment_exposure(graph, treatment, zero_degree)

    frame[PROPENSITY] = propensity
    frame[TREATMENT] = treatment
    frame[TREATED_NEIGHBORS] = counts
    frame[TREATED_FRACTION] = fractions

    mean = OUTCOME_TERMS.build(frame).to_numpy() @ beta
    frame[OUTCOME] = rng.normal(mean, 1.0)

    return SimulationDataset(frame[list(DATASET_COLUMNS)], graph, zero_degree)


def oracle_from_beta(beta: Sequence[float]) -> Dict[str, float]:
    """
    True marginal structural model coefficients implied by *beta*.

    The outcome model is additive in the exposures, so the MSM coefficients
    of ``A`` and ``fA`` are ``beta[1]`` and ``beta[2]``.
    """
    beta = validate_parameter_vector(beta, 'beta', OUTCOME_TERMS.column_names)
    return {TREATMENT: float(beta[1]), TREATED_FRACTION: float(beta[2])}
