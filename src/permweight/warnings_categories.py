"""
Warning category hierarchy for the permweight package.

Provides structured warning categories enabling selective filtering via
Python's standard ``warnings.filterwarnings()`` mechanism. All warning
classes inherit from :class:`PermWeightWarning`, which itself inherits from
:class:`UserWarning`, preserving compatibility with existing filter rules.

Examples
--------
Suppress only clipping warnings while keeping others visible:

>>> import warnings
>>> from permweight import NumericalWarning
>>> warnings.filterwarnings('ignore', category=NumericalWarning)

Suppress all permweight warnings at once:

>>> warnings.filterwarnings('ignore', category=PermWeightWarning)
"""


class PermWeightWarning(UserWarning):
    """
    Base warning class for all permweight package warnings.
    """
    pass


class OverlapWarning(PermWeightWarning):
    """
    Warning raised when estimated weights suggest poor overlap.

    Triggered when the largest weight exceeds a large multiple of the mean
    weight, meaning a handful of units dominate the weighted regression.
    """
    pass


class NumericalWarning(PermWeightWarning):
    """
    Warning raised when numerical safeguards alter a computation.

    Triggered when classifier probabilities are clipped away from 0 and 1
    to keep the odds weights finite.
    """
    pass


class ConvergenceWarning(PermWeightWarning):
    """
    Warning raised when an iterative fit fails to converge.

    Triggered when a logistic regression (propensity or permutation
    classifier) does not reach the convergence criterion within the
    maximum number of iterations.
    """
    pass


class ReplicateFailureWarning(PermWeightWarning):
    """
    Warning raised when simulation replicates fail under ``on_error='skip'``.

    The failed (replicate, method) pairs are kept in
    ``SimulationResults.failures`` so that they can be reported alongside
    the aggregated bias.
    """
    pass
