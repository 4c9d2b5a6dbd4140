"""
Validation Module

Implements input validation for graph sizes, coefficient vectors, oracle
values and policy arguments used throughout the permweight package.
"""

from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from .exceptions import InvalidParameterError


def validate_positive_int(value, name: str, minimum: int = 1) -> int:
    """
    Validate that *value* is an integer no smaller than *minimum*.

    Booleans are rejected even though they are ``int`` subclasses.

    Raises
    ------
    InvalidParameterError
        If *value* is not an integer or is below *minimum*.
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidParameterError(
            f"{name} must be an integer, got {type(value).__name__} ({value!r})"
        )
    if value < minimum:
        raise InvalidParameterError(f"{name} must be >= {minimum}, got {value}")
    return int(value)


def validate_choice(value: str, name: str, choices: Iterable[str]) -> str:
    """
    Validate a policy string against its allowed values (case-insensitive).

    Returns
    -------
    str
        The lower-cased choice.
    """
    choices = tuple(choices)
    normalized = value.lower() if isinstance(value, str) else value
    if normalized not in choices:
        raise InvalidParameterError(
            f"{name} must be one of {list(choices)}, got {value!r}"
        )
    return normalized


def validate_graph_size(n: int, max_degree: int) -> None:
    """
    Validate the network generator's size constraints.

    A simple graph whose degrees lie in ``[1, max_degree]`` requires
    ``n > 0``, ``max_degree >= 1`` and ``max_degree < n``.
    """
    validate_positive_int(n, 'n')
    validate_positive_int(max_degree, 'max_degree')
    if max_degree >= n:
        raise InvalidParameterError(
            f"max_degree must be smaller than n (a unit has at most n-1 "
            f"neighbours in a simple graph). Got n={n}, max_degree={max_degree}."
        )


def validate_parameter_vector(
    values: Sequence[float],
    name: str,
    expected_terms: Sequence[str],
) -> np.ndarray:
    """
    Validate a coefficient vector against the design it multiplies.

    Parameters
    ----------
    values : sequence of float
        Coefficients.
    name : str
        Parameter name used in error messages (``'gamma'``, ``'beta'``).
    expected_terms : sequence of str
        Names of the design columns the vector is aligned with.

    Returns
    -------
    np.ndarray
        Float copy of the coefficients.
    """
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise InvalidParameterError(
            f"{name} must be a one-dimensional vector, got shape {arr.shape}"
        )
    if arr.size != len(expected_terms):
        raise InvalidParameterError(
            f"{name} must have {len(expected_terms)} entries aligned with "
            f"{list(expected_terms)}, got {arr.size}"
        )
    if not np.all(np.isfinite(arr)):
        raise InvalidParameterError(f"{name} contains non-finite values: {arr.tolist()}")
    return arr


def validate_oracle(
    oracle: Mapping[str, float],
    parameters: Optional[Sequence[str]] = None,
) -> dict:
    """
    Validate oracle (ground-truth) coefficient values.

    Parameters
    ----------
    oracle : mapping
        Parameter name -> true value, e.g. ``{'A': 2.0, 'fA': 0.0}``.
    parameters : sequence of str, optional
        If given, every oracle key must be one of these names.

    Returns
    -------
    dict
        Plain dict with float values.
    """
    if not isinstance(oracle, Mapping) or len(oracle) == 0:
        raise InvalidParameterError(
            f"oracle must be a non-empty mapping of parameter name to value, got {oracle!r}"
        )
    out = {}
    for key, value in oracle.items():
        if parameters is not None and key not in parameters:
            raise InvalidParameterError(
                f"oracle parameter {key!r} is not a model term. Available: {list(parameters)}"
            )
        try:
            value = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(
                f"oracle value for {key!r} must be numeric, got {value!r}"
            ) from exc
        if not np.isfinite(value):
            raise InvalidParameterError(f"oracle value for {key!r} must be finite, got {value}")
        out[str(key)] = value
    return out
