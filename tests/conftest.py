"""
Pytest configuration file providing shared fixtures and helper functions.
"""
import networkx as nx
import numpy as np
import pandas as pd
import pytest

from permweight import (
    DIRECT_EFFECT_ONLY,
    AdjacencyGraph,
    generate_dataset,
    generate_graph,
)


@pytest.fixture
def path_graph():
    """Four units on a path: 0 - 1 - 2 - 3."""
    return AdjacencyGraph.from_networkx(nx.path_graph(4))


@pytest.fixture
def graph_with_isolated_unit():
    """Three-regular graph on 40 units plus one unit with no neighbours."""
    g = nx.random_regular_graph(3, 40, seed=7)
    g.add_node(40)
    return AdjacencyGraph.from_networkx(g)


@pytest.fixture(scope='module')
def small_graph():
    """Random graph shared by the fast tests (n=300, max_degree=5)."""
    return generate_graph(n=300, max_degree=5, seed=2024)


@pytest.fixture(scope='module')
def small_dataset(small_graph):
    """One dataset from the direct-effect-only scenario on ``small_graph``."""
    return generate_dataset(
        small_graph, DIRECT_EFFECT_ONLY.gamma, DIRECT_EFFECT_ONLY.beta, seed=17,
    )


@pytest.fixture
def logistic_data():
    """Design and labels from a known logistic model (const=-0.5, x1=1.0, x2=-0.8)."""
    rng = np.random.default_rng(99)
    n = 4000
    X = pd.DataFrame({
        'const': np.ones(n),
        'x1': rng.normal(size=n),
        'x2': rng.binomial(1, 0.4, size=n).astype(float),
    })
    eta = -0.5 + 1.0 * X['x1'] - 0.8 * X['x2']
    y = rng.binomial(1, 1.0 / (1.0 + np.exp(-eta.to_numpy())))
    return X, y
