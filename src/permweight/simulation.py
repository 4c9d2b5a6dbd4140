"""
Simulation Driver

Runs the replicate loop of the interference simulation study: for each
replicate, draw a dataset on a fixed graph, fit every estimator in the
bank, and record ``estimate - oracle`` for each oracle parameter.

Every replicate and every (replicate, estimator) pair owns an independent
random stream spawned from one root :class:`numpy.random.SeedSequence`, so
results are identical whether replicates run sequentially or in worker
processes.
"""

import logging
import os
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .design import OUTCOME_TERMS, TREATMENT_TERMS
from .dgp import ZERO_DEGREE_POLICIES, generate_dataset
from .estimators import Estimator
from .exceptions import InvalidParameterError, PermWeightError
from .network import AdjacencyGraph
from .results import SimulationResults, summarize_bias
from .validation import (
    validate_choice,
    validate_oracle,
    validate_parameter_vector,
    validate_positive_int,
)
from .warning_registry import VALID_VERBOSE_LEVELS, WarningRegistry
from .warnings_categories import PermWeightWarning, ReplicateFailureWarning

logger = logging.getLogger('permweight.simulation')

ERROR_POLICIES = ('raise', 'skip')

# Method label for failures that happen before any estimator runs
DATA_STAGE = '<data>'

__all__ = [
    'ReplicateOutcome',
    'run_replicate',
    'run_simulation',
    'summarize_bias',
]


@dataclass
class ReplicateOutcome:
    """Everything one replicate produced, returned by worker processes."""

    replicate: int
    records: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    warnings: WarningRegistry = field(default_factory=WarningRegistry)


def _capture(caught, replicate: int, method: str, sink: WarningRegistry) -> None:
    """Move package warnings into *sink*; re-emit anything else."""
    for w in caught:
        if issubclass(w.category, PermWeightWarning):
            sink.collect(w.category, str(w.message), replicate=replicate, method=method)
        else:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)


def _record_failure(
    outcome: ReplicateOutcome,
    method: str,
    exc: PermWeightError,
) -> None:
    outcome.failures.append({
        'replicate': outcome.replicate,
        'method': method,
        'error': type(exc).__name__,
        'message': str(exc),
    })
    outcome.warnings.collect(
        ReplicateFailureWarning,
        f"{method} failed with {type(exc).__name__}; failed fits are listed "
        f"in SimulationResults.failures",
        replicate=outcome.replicate,
        method=method,
        context={'error': type(exc).__name__},
    )
    logger.debug("replicate %d, %s: %s: %s", outcome.replicate, method, type(exc).__name__, exc)


def run_replicate(
    replicate: int,
    graph: AdjacencyGraph,
    gamma: Sequence[float],
    beta: Sequence[float],
    estimators: Mapping[str, Estimator],
    oracle: Mapping[str, float],
    seed=None,
    on_error: str = 'raise',
    zero_degree: str = 'raise',
) -> ReplicateOutcome:
    """
    Run one replicate: draw a dataset and fit every estimator on it.

    Parameters
    ----------
    replicate : int
        Replicate index, recorded in every output row.
    graph : AdjacencyGraph
        Fixed network; never mutated.
    gamma, beta : sequence of float
        Treatment and outcome model coefficients.
    estimators : mapping of str to Estimator
        Estimator bank keyed by method name.
    oracle : mapping of str to float
        True MSM coefficients; one record is produced per key.
    seed : None, int or SeedSequence
        Replicate stream. One child stream draws the data and one child
        stream per estimator feeds its internal randomness.
    on_error : {'raise', 'skip'}, default 'raise'
        ``'raise'`` propagates the first :class:`PermWeightError`;
        ``'skip'`` records it as a failure and moves on.
    zero_degree : {'raise', 'zero'}, default 'raise'
        Policy for isolated units, see :func:`~permweight.dgp.treatment_exposure`.

    Returns
    -------
    ReplicateOutcome
    """
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    data_seed, *estimator_seeds = root.spawn(1 + len(estimators))
    outcome = ReplicateOutcome(replicate=replicate)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        try:
            dataset = generate_dataset(graph, gamma, beta, seed=data_seed, zero_degree=zero_degree)
        except PermWeightError as exc:
            if on_error == 'raise':
                logger.error("replicate %d: data generation failed: %s", replicate, exc)
                raise
            dataset = None
            _record_failure(outcome, DATA_STAGE, exc)
    _capture(caught, replicate, DATA_STAGE, outcome.warnings)
    if dataset is None:
        return outcome

    for (method, estimator), est_seed in zip(estimators.items(), estimator_seeds):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                result = estimator.fit(dataset, seed=est_seed)
            except PermWeightError as exc:
                if on_error == 'raise':
                    logger.error("replicate %d: %s failed: %s", replicate, method, exc)
                    raise
                result = None
                _record_failure(outcome, method, exc)
        _capture(caught, replicate, method, outcome.warnings)
        if result is None:
            continue

        for parameter, bias in result.bias(oracle).items():
            outcome.records.append({
                'replicate': replicate,
                'method': method,
                'parameter': parameter,
                'estimate': result.estimate(parameter),
                'oracle': float(oracle[parameter]),
                'bias': bias,
            })
    return outcome


def _normalize_bank(estimators) -> Dict[str, Estimator]:
    if isinstance(estimators, Mapping):
        bank = dict(estimators)
    else:
        bank = {}
        for est in estimators:
            if est.name in bank:
                raise InvalidParameterError(
                    f"Duplicate estimator name {est.name!r}; pass a mapping to rename"
                )
            bank[est.name] = est
    if not bank:
        raise InvalidParameterError("At least one estimator is required")
    for method, est in bank.items():
        if not callable(getattr(est, 'fit', None)):
            raise InvalidParameterError(
                f"Estimator {method!r} has no fit(dataset, seed) method: {est!r}"
            )
    return bank


def _run_sequential(n_reps, seeds, kwargs) -> List[ReplicateOutcome]:
    outcomes = []
    for rep in range(n_reps):
        outcomes.append(run_replicate(rep, seed=seeds[rep], **kwargs))
        if (rep + 1) % 50 == 0:
            logger.info("completed %d/%d replicates", rep + 1, n_reps)
    return outcomes


def _run_parallel(n_reps, seeds, kwargs, n_jobs) -> List[ReplicateOutcome]:
    if n_jobs == -1:
        n_jobs = os.cpu_count() or 4

    outcomes = []
    with ProcessPoolExecutor(max_workers=n_jobs) as executor:
        futures = {
            executor.submit(run_replicate, rep, seed=seeds[rep], **kwargs): rep
            for rep in range(n_reps)
        }
        try:
            for future in as_completed(futures):
                outcomes.append(future.result())
                if len(outcomes) % 50 == 0:
                    logger.info("completed %d/%d replicates", len(outcomes), n_reps)
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return outcomes


def run_simulation(
    n_reps: int,
    oracle: Mapping[str, float],
    estimators: Union[Mapping[str, Estimator], Sequence[Estimator]],
    *,
    graph: AdjacencyGraph,
    gamma: Sequence[float],
    beta: Sequence[float],
    seed: Optional[int] = None,
    on_error: str = 'raise',
    n_jobs: int = 1,
    zero_degree: str = 'raise',
    verbose: str = 'default',
) -> SimulationResults:
    """
    Monte Carlo bias study of the estimator bank on a fixed graph.

    Parameters
    ----------
    n_reps : int
        Number of replicates (>= 1).
    oracle : mapping of str to float
        True MSM coefficients, e.g. ``{'A': 2.0, 'fA': 0.0}``.
    estimators : mapping or sequence of Estimator
        Estimator bank. A sequence is keyed by each estimator's ``name``.
    graph : AdjacencyGraph
        Network reused, read-only, across all replicates.
    gamma : sequence of 5 floats
        Treatment model coefficients.
    beta : sequence of 7 floats
        Outcome model coefficients.
    seed : int, optional
        Root seed. When omitted, fresh entropy is drawn and stored on the
        result so the run can be reproduced.
    on_error : {'raise', 'skip'}, default 'raise'
        ``'raise'`` aborts on the first failing fit. ``'skip'`` records
        failed (replicate, method) pairs in ``SimulationResults.failures``
        and excludes them from aggregation.
    n_jobs : int, default 1
        Worker processes; ``-1`` uses every CPU.
    zero_degree : {'raise', 'zero'}, default 'raise'
        Policy for isolated units of a user-supplied graph.
    verbose : {'quiet', 'default', 'verbose'}, default 'default'
        Warning output level, see :class:`~permweight.warning_registry.WarningRegistry`.

    Returns
    -------
    SimulationResults

    Raises
    ------
    InvalidParameterError
        If any argument is invalid (checked before any replicate runs).
    PermWeightError
        The first replicate failure, when ``on_error='raise'``.
    """
    n_reps = validate_positive_int(n_reps, 'n_reps')
    oracle = validate_oracle(oracle)
    bank = _normalize_bank(estimators)
    on_error = validate_choice(on_error, 'on_error', ERROR_POLICIES)
    zero_degree = validate_choice(zero_degree, 'zero_degree', ZERO_DEGREE_POLICIES)
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, (int, np.integer)) or (
        n_jobs < 1 and n_jobs != -1
    ):
        raise InvalidParameterError(f"n_jobs must be a positive integer or -1, got {n_jobs!r}")
    if isinstance(verbose, str) and verbose.lower() not in VALID_VERBOSE_LEVELS:
        raise InvalidParameterError(
            f"verbose must be one of {sorted(VALID_VERBOSE_LEVELS)}, got {verbose!r}"
        )
    if not isinstance(graph, AdjacencyGraph):
        graph = AdjacencyGraph(graph)
    gamma = validate_parameter_vector(gamma, 'gamma', TREATMENT_TERMS.column_names)
    beta = validate_parameter_vector(beta, 'beta', OUTCOME_TERMS.column_names)

    registry = WarningRegistry(verbose=verbose)
    root = np.random.SeedSequence(seed)
    seeds = root.spawn(n_reps)
    kwargs = dict(
        graph=graph,
        gamma=gamma,
        beta=beta,
        estimators=bank,
        oracle=oracle,
        on_error=on_error,
        zero_degree=zero_degree,
    )

    logger.info(
        "running %d replicates of %d estimators on %r (seed=%s, n_jobs=%d)",
        n_reps, len(bank), graph, root.entropy, n_jobs,
    )
    if n_jobs == 1:
        outcomes = _run_sequential(n_reps, seeds, kwargs)
    else:
        outcomes = _run_parallel(n_reps, seeds, kwargs, n_jobs)
    outcomes.sort(key=lambda o: o.replicate)

    records, failures = [], []
    for outcome in outcomes:
        records.extend(outcome.records)
        failures.extend(outcome.failures)
        registry.extend(outcome.warnings.records)
    registry.flush(total_replicates=n_reps)

    logger.info(
        "simulation finished: %d records, %d failed fits", len(records), len(failures)
    )
    return SimulationResults(
        records=records,
        failures=failures,
        n_reps=n_reps,
        oracle=oracle,
        methods=list(bank),
        seed=root.entropy,
        diagnostics=registry.get_diagnostics(),
    )
