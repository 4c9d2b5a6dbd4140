"""
Exception Classes Module

Defines exception hierarchy for the permweight package.
"""


class PermWeightError(Exception):
    """
    Base exception class for all permweight package errors.

    All custom exceptions in the permweight package inherit from this class,
    allowing users to catch any permweight-specific error with:

        try:
            results = run_simulation(...)
        except PermWeightError as e:
            # Handle any permweight error
            print(f"permweight error: {e}")

    The simulation driver only treats subclasses of this class as
    replicate-local failures; anything else propagates unchanged.
    """
    pass


class InvalidParameterError(PermWeightError, ValueError):
    """
    Exception raised when input parameter validation fails.

    This is a general exception for invalid parameter values. Common
    triggers include:

    - Non-positive graph size, replicate count or permutation count
    - Coefficient vectors whose length does not match the design
    - Unknown policy names (``on_error``, ``zero_degree``, ...)

    See Also
    --------
    InvalidGraphError : For adjacency matrices that are not simple graphs.
    """
    pass


class InvalidGraphError(InvalidParameterError):
    """
    Exception raised when an adjacency matrix is not a simple undirected graph.

    The matrix must be square, binary (0/1), symmetric and have a zero
    diagonal (no self-loops).

    See Also
    --------
    permweight.network.AdjacencyGraph : Validates matrices on construction.
    """
    pass


class MissingRequiredColumnError(PermWeightError):
    """
    Exception raised when a design term references a column the data lacks.

    Examples
    --------
    >>> DesignSpec.from_terms('A', 'W').build(frame)  # doctest: +SKIP
    MissingRequiredColumnError: Design term(s) reference missing column(s): ['W']

    See Also
    --------
    permweight.design.DesignSpec.build : Resolves terms against a frame.
    """
    pass


class InfeasibleDegreeSequenceError(PermWeightError):
    """
    Exception raised when a degree sequence cannot be realised as a simple graph.

    The network generator redraws the degree sequence on failure; this
    exception is raised once the retry budget is exhausted, or immediately
    when no sequence can satisfy the constraints at all (for example
    ``max_degree=1`` with an odd number of units).

    See Also
    --------
    permweight.network.generate_graph : Draws and realises degree sequences.
    """
    pass


class ZeroDegreeUnitError(PermWeightError):
    """
    Exception raised when a unit with no neighbours makes ``fA`` undefined.

    The neighbour-treatment proportion ``fA = A_n / degree`` is 0/0 for an
    isolated unit. Generated graphs never contain such units; user-supplied
    graphs may. Pass ``zero_degree='zero'`` to define ``fA := 0`` instead.

    See Also
    --------
    permweight.dgp.treatment_exposure : Computes neighbour-treatment summaries.
    """
    pass


class ModelFitError(PermWeightError):
    """
    Exception raised when a logistic or linear model cannot be fitted.

    Trigger conditions include:

    - Perfect or quasi-perfect separation in a logistic fit
    - Singular (rank-deficient) design matrices
    - Non-finite coefficients or fitted probabilities of exactly 0 or 1

    A replicate experiencing this error is reported by the simulation
    driver, never silently dropped.
    """
    pass


class DegenerateWeightError(PermWeightError):
    """
    Exception raised when estimated weights are not finite and positive.

    For permutation weighting this occurs when a classifier probability
    reaches 1, so that the odds ``p / (1 - p)`` are infinite. Pass
    ``on_degenerate='clip'`` to clip probabilities away from 0 and 1
    instead of raising.

    See Also
    --------
    permweight.permutation.odds_weights : Converts probabilities to weights.
    """
    pass
