"""
permweight: Permutation Weighting for Causal Effects under Network Interference
================================================================================

Simulation study of permutation weighting as an estimator of direct and
spillover effects when units interact through a network.

Each unit's outcome depends on its own binary treatment ``A`` and on the
fraction ``fA`` of its neighbours that are treated. Treatment is confounded
by unit covariates and by the covariates of neighbours. The package compares
three ways of estimating the marginal structural model
``E[Y(a, fa)] = b0 + b1 a + b2 fa``:

- ``naive``: unweighted least squares, biased under confounding
- ``ipw``: stabilized inverse probability weights from a logistic
  propensity model
- ``pw``: permutation weights, the odds of a classifier trained to tell
  observed rows from rows whose treatment was permuted across units

Main Components
---------------
generate_graph : function
    Random simple graph with degrees in [1, max_degree].
generate_dataset : function
    One synthetic dataset on a fixed graph.
estimate_weights : function
    Permutation weights averaged over B permutation draws.
default_estimators : function
    The naive, IPW and permutation weighting estimator bank.
run_simulation : function
    Monte Carlo bias study over many replicates.
SimulationResults : class
    Results container with ``summary()``, ``mean_absolute_bias()`` and
    export methods.
Exception hierarchy : module
    Typed exceptions inheriting from ``PermWeightError``.

Quick Start
-----------
>>> from permweight import (
...     generate_graph, default_estimators, run_simulation, DIRECT_EFFECT_ONLY,
... )
>>> graph = generate_graph(n=1000, max_degree=5, seed=0)
>>> scenario = DIRECT_EFFECT_ONLY
>>> results = run_simulation(
...     250, scenario.oracle, default_estimators(),
...     graph=graph, gamma=scenario.gamma, beta=scenario.beta, seed=1,
... )                                                            # doctest: +SKIP
>>> print(results.summary())                                     # doctest: +SKIP

Notes
-----
Standard errors reported by the estimators are model-based and do not
account for the estimation of the weights.
"""

from .classifiers import (
    GEEFitter,
    LinearLogisticModel,
    LogitFitter,
    SklearnLogisticFitter,
    get_fitter,
)
from .design import (
    COVARIATE_TERMS,
    MISSPECIFIED_COVARIATE_TERMS,
    MSM_TERMS,
    OUTCOME_TERMS,
    TREATMENT_TERMS,
    DesignSpec,
    Term,
    permutation_classifier_terms,
)
from .dgp import (
    SimulationDataset,
    generate_dataset,
    oracle_from_beta,
    treatment_exposure,
)
from .estimation import MSMFit, fit_msm, fit_propensity
from .estimators import (
    EstimationResult,
    Estimator,
    IPWEstimator,
    NaiveEstimator,
    PermutationWeightingEstimator,
    default_estimators,
    stabilized_ipw,
)
from .exceptions import (
    DegenerateWeightError,
    InfeasibleDegreeSequenceError,
    InvalidGraphError,
    InvalidParameterError,
    MissingRequiredColumnError,
    ModelFitError,
    PermWeightError,
    ZeroDegreeUnitError,
)
from .network import AdjacencyGraph, draw_degree_sequence, generate_graph
from .permutation import (
    PermutedDataset,
    StackedClassificationSet,
    WeightVector,
    estimate_weights,
    odds_weights,
    permute_treatment,
    stack_classification_set,
)
from .results import SimulationResults
from .scenarios import (
    DIRECT_AND_SPILLOVER,
    DIRECT_EFFECT_ONLY,
    NO_CONFOUNDING,
    Scenario,
    get_scenario,
)
from .simulation import ReplicateOutcome, run_replicate, run_simulation, summarize_bias
from .warning_registry import WarningRecord, WarningRegistry
from .warnings_categories import (
    ConvergenceWarning,
    NumericalWarning,
    OverlapWarning,
    PermWeightWarning,
    ReplicateFailureWarning,
)

__version__ = "0.1.0"
__all__ = [
    # network
    'AdjacencyGraph',
    'draw_degree_sequence',
    'generate_graph',
    # design
    'Term',
    'DesignSpec',
    'TREATMENT_TERMS',
    'OUTCOME_TERMS',
    'MSM_TERMS',
    'COVARIATE_TERMS',
    'MISSPECIFIED_COVARIATE_TERMS',
    'permutation_classifier_terms',
    # data generation
    'SimulationDataset',
    'generate_dataset',
    'oracle_from_beta',
    'treatment_exposure',
    # classifiers
    'LinearLogisticModel',
    'LogitFitter',
    'GEEFitter',
    'SklearnLogisticFitter',
    'get_fitter',
    # estimation
    'MSMFit',
    'fit_msm',
    'fit_propensity',
    # permutation weighting
    'PermutedDataset',
    'StackedClassificationSet',
    'WeightVector',
    'permute_treatment',
    'stack_classification_set',
    'odds_weights',
    'estimate_weights',
    # estimators
    'EstimationResult',
    'Estimator',
    'NaiveEstimator',
    'IPWEstimator',
    'PermutationWeightingEstimator',
    'stabilized_ipw',
    'default_estimators',
    # simulation
    'ReplicateOutcome',
    'run_replicate',
    'run_simulation',
    'summarize_bias',
    'SimulationResults',
    # scenarios
    'Scenario',
    'DIRECT_EFFECT_ONLY',
    'DIRECT_AND_SPILLOVER',
    'NO_CONFOUNDING',
    'get_scenario',
    # warnings
    'WarningRecord',
    'WarningRegistry',
    'PermWeightWarning',
    'OverlapWarning',
    'NumericalWarning',
    'ConvergenceWarning',
    'ReplicateFailureWarning',
    # exceptions
    'PermWeightError',
    'InvalidParameterError',
    'InvalidGraphError',
    'MissingRequiredColumnError',
    'InfeasibleDegreeSequenceError',
    'ZeroDegreeUnitError',
    'ModelFitError',
    'DegenerateWeightError',
]
