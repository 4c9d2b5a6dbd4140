"""
Network Generator Module

Builds the fixed random graph shared by every replicate of a simulation
run. Degrees are drawn uniformly on ``{1, ..., max_degree}`` and a uniformly
random simple graph with exactly that degree sequence is realised, so every
unit has at least one neighbour and ``fA = A_n / degree`` is always defined.
"""

import logging
from typing import Optional

import networkx as nx
import numpy as np
import scipy.sparse as sp

from .exceptions import InfeasibleDegreeSequenceError, InvalidGraphError
from .validation import validate_graph_size, validate_positive_int

logger = logging.getLogger('permweight.network')


class AdjacencyGraph:
    """
    Read-only adjacency structure of an undirected simple graph.

    Parameters
    ----------
    matrix : array-like or scipy.sparse matrix
        n x n binary matrix. Must be symmetric with a zero diagonal.

    Raises
    ------
    InvalidGraphError
        If the matrix is not square, not binary, not symmetric, or has
        self-loops.

    Notes
    -----
    The matrix is stored in CSR form with non-writeable buffers; the same
    instance can be shared by every replicate (and every worker process)
    without risk of mutation.
    """

    def __init__(self, matrix):
        if sp.issparse(matrix):
            m = sp.csr_matrix(matrix, dtype=np.int8, copy=True)
        else:
            dense = np.asarray(matrix)
            if dense.ndim != 2:
                raise InvalidGraphError(
                    f"Adjacency matrix must be two-dimensional, got shape {dense.shape}"
                )
            if dense.size and not np.isin(dense, (0, 1)).all():
                raise InvalidGraphError("Adjacency matrix must be binary (entries 0 or 1)")
            m = sp.csr_matrix(dense.astype(np.int8))
        m.eliminate_zeros()

        if m.shape[0] != m.shape[1]:
            raise InvalidGraphError(f"Adjacency matrix must be square, got shape {m.shape}")
        if m.shape[0] == 0:
            raise InvalidGraphError("Adjacency matrix must have at least one unit")
        if m.nnz and not np.all(m.data == 1):
            raise InvalidGraphError("Adjacency matrix must be binary (entries 0 or 1)")
        if m.diagonal().any():
            loops = np.flatnonzero(m.diagonal())
            raise InvalidGraphError(
                f"Adjacency matrix must have a zero diagonal (no self-loops); "
                f"found self-loops at units {loops[:10].tolist()}"
            )
        if (m != m.T).nnz:
            raise InvalidGraphError("Adjacency matrix must be symmetric (undirected graph)")

        m.sort_indices()
        for buf in (m.data, m.indices, m.indptr):
            buf.flags.writeable = False
        degrees = np.asarray(m.sum(axis=1)).ravel().astype(np.int64)
        degrees.flags.writeable = False

        self._matrix = m
        self._degrees = degrees

    @classmethod
    def from_networkx(cls, graph: nx.Graph) -> 'AdjacencyGraph':
        """Build from a networkx graph; nodes are ordered by ``sorted(graph.nodes)``."""
        if graph.is_directed():
            raise InvalidGraphError("Directed graphs are not supported; pass an undirected graph")
        nodelist = sorted(graph.nodes)
        matrix = nx.to_scipy_sparse_array(graph, nodelist=nodelist, dtype=np.int8, format='csr')
        return cls(sp.csr_matrix(matrix))

    def __repr__(self) -> str:
        return (
            f"AdjacencyGraph(n={self.n}, edges={self.n_edges}, "
            f"degree=[{self.min_degree}, {self.max_degree}])"
        )

    def __len__(self) -> int:
        return self.n

    @property
    def n(self) -> int:
        """Number of units."""
        return self._matrix.shape[0]

    @property
    def degrees(self) -> np.ndarray:
        """Read-only degree (row sum) of every unit."""
        return self._degrees

    @property
    def max_degree(self) -> int:
        return int(self._degrees.max())

    @property
    def min_degree(self) -> int:
        return int(self._degrees.min())

    @property
    def n_edges(self) -> int:
        """Number of undirected edges."""
        return int(self._matrix.nnz // 2)

    @property
    def matrix(self) -> sp.csr_matrix:
        """The read-only sparse adjacency matrix."""
        return self._matrix

    def to_dense(self) -> np.ndarray:
        """Dense int8 copy of the adjacency matrix."""
        return self._matrix.toarray()

    def edges(self) -> np.ndarray:
        """Undirected edge list as an (m, 2) array with ``i < j``."""
        upper = sp.triu(self._matrix, k=1).tocoo()
        return np.column_stack([upper.row, upper.col]).astype(np.int64)

    def neighbor_sum(self, values) -> np.ndarray:
        """
        One-hop neighbour aggregate ``out[i] = sum_j G[i, j] * values[j]``.

        Parameters
        ----------
        values : array-like of shape (n,)
            Per-unit values.

        Returns
        -------
        np.ndarray of float
        """
        arr = np.asarray(values, dtype=float)
        if arr.shape != (self.n,):
            raise InvalidGraphError(
                f"neighbor_sum expects a vector of length {self.n}, got shape {arr.shape}"
            )
        return np.asarray(self._matrix @ arr, dtype=float).ravel()


def draw_degree_sequence(
    n: int,
    max_degree: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw degrees uniformly on ``{1, ..., max_degree}`` with an even sum.

    When the sum is odd one unit is moved by one so that the handshake
    lemma holds: a unit below ``max_degree`` is incremented, or, if every
    unit already sits at ``max_degree``, one unit is decremented.

    Raises
    ------
    InfeasibleDegreeSequenceError
        If ``max_degree == 1`` and ``n`` is odd (no even-sum sequence with
        all degrees equal to 1 exists).
    """
    degrees = rng.integers(1, max_degree + 1, size=n)
    if degrees.sum() % 2 == 1:
        below = np.flatnonzero(degrees < max_degree)
        if below.size > 0:
            degrees[rng.choice(below)] += 1
        elif max_degree > 1:
            degrees[rng.integers(n)] -= 1
        else:
            raise InfeasibleDegreeSequenceError(
                f"No simple graph on n={n} units has every degree equal to 1 "
                f"(n must be even when max_degree=1)."
            )
    return degrees


def generate_graph(
    n: int,
    max_degree: int,
    seed=None,
    max_retries: int = 10,
) -> AdjacencyGraph:
    """
    Generate a random simple graph with degrees in ``[1, max_degree]``.

    Parameters
    ----------
    n : int
        Number of units (nodes). Must be positive.
    max_degree : int
        Maximum degree. Must satisfy ``1 <= max_degree < n``.
    seed : None, int, SeedSequence or Generator, optional
        Source of randomness. The graph is the only structure shared by all
        replicates, so seeding here fixes it for a whole run.
    max_retries : int, default 10
        Number of degree sequences drawn before giving up.

    Returns
    -------
    AdjacencyGraph
        Symmetric, zero-diagonal adjacency with every degree in
        ``[1, max_degree]``.

    Raises
    ------
    InvalidParameterError
        If the size constraints are violated.
    InfeasibleDegreeSequenceError
        If no drawn sequence could be realised within ``max_retries``
        attempts.
    """
    validate_graph_size(n, max_degree)
    validate_positive_int(max_retries, 'max_retries')
    rng = np.random.default_rng(seed)

    last_error: Optional[Exception] = None
    for attempt in range(1, max_retries + 1):
        degrees = draw_degree_sequence(n, max_degree, rng)
        if not nx.is_graphical(degrees.tolist()):
            logger.debug("attempt %d: degree sequence is not graphical, redrawing", attempt)
            last_error = None
            continue
        try:
            graph = nx.random_degree_sequence_graph(
                degrees.tolist(),
                seed=int(rng.integers(0, 2**32 - 1)),
                tries=10,
            )
        except (nx.NetworkXUnfeasible, nx.NetworkXError) as exc:
            logger.debug("attempt %d: could not realise degree sequence (%s)", attempt, exc)
            last_error = exc
            continue

        adjacency = AdjacencyGraph.from_networkx(graph)
        if not np.array_equal(adjacency.degrees, degrees):
            logger.debug("attempt %d: realised degrees differ from the sequence", attempt)
            continue
        logger.debug(
            "generated graph with n=%d, %d edges after %d attempt(s)",
            n, adjacency.n_edges, attempt,
        )
        return adjacency

    raise InfeasibleDegreeSequenceError(
        f"Could not realise a simple graph with n={n} and max_degree={max_degree} "
        f"after {max_retries} degree-sequence draws. "
        f"Increase max_retries or lower max_degree."
    ) from last_error
