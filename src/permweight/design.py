"""
Design Specification Module

Explicit, enumerated design matrices. A design is an ordered list of named
terms (intercept, main effects, interactions) that is resolved against a
frame's columns at call time. Interactions are written with ``:``, so
``Z1_abs:Z2`` is the element-wise product of the two columns.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError, MissingRequiredColumnError

INTERCEPT = 'const'


@dataclass(frozen=True)
class Term:
    """
    Product of one or more frame columns.

    Attributes
    ----------
    factors : tuple of str
        Column names multiplied together. A single factor is a main effect.
    """

    factors: Tuple[str, ...]

    def __post_init__(self):
        if not self.factors:
            raise InvalidParameterError("A design term needs at least one factor")
        for f in self.factors:
            if not isinstance(f, str) or not f or ':' in f:
                raise InvalidParameterError(f"Invalid factor name {f!r} in design term")
        if len(set(self.factors)) != len(self.factors):
            raise InvalidParameterError(f"Repeated factor in design term {':'.join(self.factors)!r}")

    @classmethod
    def parse(cls, text: Union[str, 'Term']) -> 'Term':
        """Parse ``'a'`` or ``'a:b:c'`` into a term."""
        if isinstance(text, Term):
            return text
        if not isinstance(text, str):
            raise InvalidParameterError(f"Design terms must be strings, got {text!r}")
        return cls(tuple(part.strip() for part in text.split(':')))

    @property
    def name(self) -> str:
        return ':'.join(self.factors)

    def __str__(self) -> str:
        return self.name

    def evaluate(self, frame: pd.DataFrame) -> np.ndarray:
        values = np.ones(len(frame), dtype=float)
        for f in self.factors:
            values = values * frame[f].to_numpy(dtype=float)
        return values

    def __mul__(self, other: 'Term') -> 'Term':
        return Term(self.factors + tuple(f for f in other.factors if f not in self.factors))


TermLike = Union[str, Term]


class DesignSpec:
    """
    Ordered list of design terms with an optional leading intercept.

    Parameters
    ----------
    terms : iterable of str or Term
        Model terms, excluding the intercept.
    intercept : bool, default True
        Whether to prepend a ``const`` column.

    Examples
    --------
    >>> spec = DesignSpec.from_terms('A', 'fA')
    >>> spec.column_names
    ['const', 'A', 'fA']
    >>> X = spec.build(frame)  # doctest: +SKIP
    """

    def __init__(self, terms: Iterable[TermLike] = (), intercept: bool = True):
        parsed = []
        for t in terms:
            term = Term.parse(t)
            if term.name == INTERCEPT:
                raise InvalidParameterError(
                    f"'{INTERCEPT}' is reserved for the intercept; use intercept=True"
                )
            parsed.append(term)
        names = [t.name for t in parsed]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise InvalidParameterError(f"Duplicate design terms: {dupes}")
        self._terms: Tuple[Term, ...] = tuple(parsed)
        self._intercept = bool(intercept)

    @classmethod
    def from_terms(cls, *terms: TermLike, intercept: bool = True) -> 'DesignSpec':
        return cls(terms, intercept=intercept)

    def __repr__(self) -> str:
        return f"DesignSpec({self.column_names!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, DesignSpec):
            return NotImplemented
        return self._terms == other._terms and self._intercept == other._intercept

    def __hash__(self) -> int:
        return hash((self._terms, self._intercept))

    def __len__(self) -> int:
        return len(self._terms) + int(self._intercept)

    def __iter__(self):
        return iter(self._terms)

    def __add__(self, other: 'DesignSpec') -> 'DesignSpec':
        if not isinstance(other, DesignSpec):
            return NotImplemented
        return DesignSpec(self._terms + other._terms, intercept=self._intercept or other._intercept)

    @property
    def terms(self) -> Tuple[Term, ...]:
        return self._terms

    @property
    def intercept(self) -> bool:
        return self._intercept

    @property
    def column_names(self) -> list:
        """Design column names, ``const`` first when present."""
        names = [t.name for t in self._terms]
        return [INTERCEPT] + names if self._intercept else names

    @property
    def columns(self) -> list:
        """Frame columns referenced by any term, in first-use order."""
        seen = []
        for t in self._terms:
            for f in t.factors:
                if f not in seen:
                    seen.append(f)
        return seen

    def without_intercept(self) -> 'DesignSpec':
        return DesignSpec(self._terms, intercept=False)

    def interact(self, other: Union['DesignSpec', Iterable[TermLike]]) -> 'DesignSpec':
        """
        Cross every term of this spec with every term of *other*.

        The result has no intercept; combine it with ``+`` to keep main
        effects.
        """
        right = other.terms if isinstance(other, DesignSpec) else [Term.parse(t) for t in other]
        return DesignSpec([a * b for a in self._terms for b in right], intercept=False)

    def build(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        Resolve the terms against *frame* and return the design matrix.

        Raises
        ------
        MissingRequiredColumnError
            If a factor is not a column of *frame*.
        InvalidParameterError
            If the resulting matrix contains non-finite values.
        """
        missing = [c for c in self.columns if c not in frame.columns]
        if missing:
            raise MissingRequiredColumnError(
                f"Design term(s) reference missing column(s): {missing}. "
                f"Available columns: {list(frame.columns)}"
            )
        data = {}
        if self._intercept:
            data[INTERCEPT] = np.ones(len(frame), dtype=float)
        for t in self._terms:
            data[t.name] = t.evaluate(frame)
        X = pd.DataFrame(data, index=frame.index, columns=self.column_names)
        if not np.isfinite(X.to_numpy()).all():
            bad = [c for c in X.columns if not np.isfinite(X[c].to_numpy()).all()]
            raise InvalidParameterError(f"Design matrix has non-finite values in column(s): {bad}")
        return X


# Coefficient layouts of the data-generating process
TREATMENT_TERMS = DesignSpec.from_terms('Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3')
OUTCOME_TERMS = DesignSpec.from_terms('A', 'fA', 'Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3')

# Marginal structural model E[Y(a, fa)] = b0 + b1 a + b2 fa
MSM_TERMS = DesignSpec.from_terms('A', 'fA')

# Covariate sets for propensity / classifier models
COVARIATE_TERMS = DesignSpec.from_terms('Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3', intercept=False)
MISSPECIFIED_COVARIATE_TERMS = DesignSpec.from_terms('Z1', 'Z2', 'Z3', intercept=False)

_EXPOSURE_TERMS = DesignSpec.from_terms('A', 'fA', intercept=False)


def permutation_classifier_terms(covariates: DesignSpec = COVARIATE_TERMS) -> DesignSpec:
    """
    Classifier design for permutation weighting.

    Main effects of the exposures ``A`` and ``fA`` and of the covariates,
    plus every exposure x covariate interaction. The interactions carry the
    dependence between exposure and covariates that permutation destroys.
    """
    main = DesignSpec(_EXPOSURE_TERMS.terms + covariates.terms, intercept=True)
    return main + _EXPOSURE_TERMS.interact(covariates)
