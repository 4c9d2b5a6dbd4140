"""
Results Container Module

Defines the SimulationResults class for storing, summarising, and exporting
the bias records of a simulation run.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

RECORD_COLUMNS = ['replicate', 'method', 'parameter', 'estimate', 'oracle', 'bias']
FAILURE_COLUMNS = ['replicate', 'method', 'error', 'message']


def summarize_bias(records: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate tidy bias records by method and parameter.

    Parameters
    ----------
    records : pd.DataFrame
        Columns ``method``, ``parameter``, ``estimate``, ``bias``.

    Returns
    -------
    pd.DataFrame
        One row per (method, parameter) with ``n``, ``mean_estimate``,
        ``mean_bias``, ``mean_abs_bias``, ``sd`` and ``rmse``.
    """
    if records.empty:
        return pd.DataFrame(columns=[
            'method', 'parameter', 'n', 'mean_estimate',
            'mean_bias', 'mean_abs_bias', 'sd', 'rmse',
        ])
    grouped = records.groupby(['method', 'parameter'], sort=False)
    out = grouped.agg(
        n=('bias', 'size'),
        mean_estimate=('estimate', 'mean'),
        mean_bias=('bias', 'mean'),
        mean_abs_bias=('bias', lambda b: float(np.mean(np.abs(b)))),
        sd=('estimate', 'std'),
        rmse=('bias', lambda b: float(np.sqrt(np.mean(np.square(b))))),
    )
    return out.reset_index()


class SimulationResults:
    """
    Container for simulation results

    Stores the tidy per-replicate bias records, the failures recorded under
    ``on_error='skip'``, and run metadata. All attributes are read-only
    properties.

    Attributes
    ----------
    records : pd.DataFrame
        One row per (replicate, method, parameter) with columns
        replicate, method, parameter, estimate, oracle, bias.
    failures : pd.DataFrame
        One row per failed (replicate, method) with columns
        replicate, method, error, message.
    n_reps : int
        Number of replicates requested.
    seed : int or None
        Root seed of the run.
    oracle : dict
        True parameter values used for bias.
    methods : list of str
        Estimator names, in bank order.
    diagnostics : list of dict
        Aggregated warning diagnostics collected during the run.

    Examples
    --------
    >>> results = run_simulation(250, {'A': 2.0, 'fA': 0.0}, bank,
    ...                          graph=graph, gamma=gamma, beta=beta, seed=1)
    >>> print(results.summary())                               # doctest: +SKIP
    >>> results.mean_absolute_bias()                            # doctest: +SKIP
    """

    def __init__(
        self,
        records: List[Dict[str, Any]],
        failures: List[Dict[str, Any]],
        n_reps: int,
        oracle: Dict[str, float],
        methods: List[str],
        seed: Optional[int] = None,
        diagnostics: Optional[List[dict]] = None,
    ):
        self._records = pd.DataFrame(records, columns=RECORD_COLUMNS)
        self._failures = pd.DataFrame(failures, columns=FAILURE_COLUMNS)
        self._n_reps = int(n_reps)
        self._oracle = dict(oracle)
        self._methods = list(methods)
        self._seed = seed
        self._diagnostics = list(diagnostics or [])

    def __repr__(self) -> str:
        return (
            f"SimulationResults(n_reps={self.n_reps}, methods={self.methods}, "
            f"records={len(self._records)}, failed={self.n_failed})"
        )

    @property
    def records(self) -> pd.DataFrame:
        """Tidy bias records (copy)"""
        return self._records.copy()

    @property
    def failures(self) -> pd.DataFrame:
        """Failed (replicate, method) pairs (copy)"""
        return self._failures.copy()

    @property
    def n_reps(self) -> int:
        return self._n_reps

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @property
    def oracle(self) -> Dict[str, float]:
        return dict(self._oracle)

    @property
    def methods(self) -> List[str]:
        return list(self._methods)

    @property
    def diagnostics(self) -> List[dict]:
        return list(self._diagnostics)

    @property
    def n_failed(self) -> int:
        """Number of failed (replicate, method) fits"""
        return len(self._failures)

    @property
    def failure_rate(self) -> float:
        """Failed fits as a share of attempted fits"""
        attempted = self._n_reps * max(len(self._methods), 1)
        return self.n_failed / attempted if attempted else 0.0

    def summary_table(self) -> pd.DataFrame:
        """Bias summary by method and parameter, see :func:`summarize_bias`."""
        return summarize_bias(self._records)

    def mean_absolute_bias(self) -> pd.DataFrame:
        """Mean absolute bias, methods as rows and parameters as columns."""
        table = self.summary_table()
        if table.empty:
            return pd.DataFrame(index=pd.Index(self._methods, name='method'))
        pivot = table.pivot(index='method', columns='parameter', values='mean_abs_bias')
        order = [m for m in self._methods if m in pivot.index]
        pivot = pivot.reindex(order)
        pivot.columns.name = None
        return pivot

    def summary(self) -> str:
        """Formatted results summary"""
        sep_line = "=" * 72
        sub_line = "-" * 72

        output = []
        output.append(sep_line)
        output.append("                  Permutation Weighting Simulation")
        output.append(sep_line)
        output.append(f"Replicates: {self.n_reps}   Seed: {self.seed}")
        oracle_str = ", ".join(f"{k}={v:g}" for k, v in self._oracle.items())
        output.append(f"Oracle: {oracle_str}")
        output.append(f"Failed fits: {self.n_failed} ({self.failure_rate:.1%})")
        output.append("")
        output.append(sub_line)
        output.append(
            f"{'Method':<18} {'Param':<6} {'N':>5} {'Mean':>9} {'Bias':>9} "
            f"{'|Bias|':>9} {'RMSE':>9}"
        )
        output.append(sub_line)
        for row in self.summary_table().itertuples(index=False):
            output.append(
                f"{row.method:<18} {row.parameter:<6} {row.n:>5d} {row.mean_estimate:>9.4f} "
                f"{row.mean_bias:>9.4f} {row.mean_abs_bias:>9.4f} {row.rmse:>9.4f}"
            )
        output.append(sep_line)

        if self.n_failed:
            output.append("")
            output.append("=== Failures by method ===")
            counts = self._failures.groupby('method').size()
            for method, count in counts.items():
                output.append(f"  {method}: {count}")
        return "\n".join(output)

    def to_csv(self, path: str):
        if self._records.empty:
            raise ValueError("No bias records available for CSV export")
        self._records.to_csv(path, index=False)

    def to_latex(self, path: str):
        content = []
        table = self.summary_table()
        content.append(table.to_latex(index=False, escape=True, float_format="%.4f"))
        if not self._failures.empty:
            content.append(self._failures.to_latex(index=False, escape=True))
        with open(path, 'w', encoding='utf-8') as f:
            f.write("\n\n".join(content))
