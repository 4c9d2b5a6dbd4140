"""
Deferred warnings for simulation runs.

Estimators warn once per replicate, so a run of a few hundred replicates
would otherwise print the same overlap or convergence message hundreds of
times. Each replicate collects its package warnings into a small
``WarningRegistry`` of its own (one that can be pickled back from a worker
process); the driver merges those into the run registry and flushes it
once, after the last replicate.

Verbosity levels
----------------
quiet
    Only replicate failures and numerical problems, one line per category.
default
    One line per category, with the affected replicates and methods.
verbose
    Every record, in collection order.

``get_diagnostics()`` ignores the verbosity level; its output is exposed
as ``SimulationResults.diagnostics``.
"""

import warnings
from dataclasses import dataclass, field
from typing import Any, Iterable

from .warnings_categories import NumericalWarning, ReplicateFailureWarning

VALID_VERBOSE_LEVELS = frozenset({'quiet', 'default', 'verbose'})

# Still emitted when verbose='quiet'
_CRITICAL_CATEGORIES = (ReplicateFailureWarning, NumericalWarning)


@dataclass
class WarningRecord:
    """One warning raised while fitting *method* on *replicate*."""

    category: type
    message: str
    replicate: Any = None
    method: Any = None
    context: dict = field(default_factory=dict)


def _numeric_ranges(records: list[WarningRecord]) -> dict:
    """``{key}_min`` / ``{key}_max`` for every numeric context key."""
    values: dict[str, list] = {}
    for rec in records:
        for key, value in rec.context.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                values.setdefault(key, []).append(value)
    ranges = {}
    for key in sorted(values):
        ranges[f'{key}_min'] = min(values[key])
        ranges[f'{key}_max'] = max(values[key])
    return ranges


class WarningRegistry:
    """
    Buffer of package warnings, emitted in aggregate by :meth:`flush`.

    Parameters
    ----------
    verbose : {'quiet', 'default', 'verbose'}, default 'default'
        Output level used by :meth:`flush`. Case-insensitive.

    Raises
    ------
    ValueError
        If *verbose* is not a known level.
    """

    def __init__(self, verbose: str = 'default') -> None:
        level = verbose.lower() if isinstance(verbose, str) else verbose
        if level not in VALID_VERBOSE_LEVELS:
            raise ValueError(
                f"Invalid verbose level {verbose!r}. "
                f"Must be one of {sorted(VALID_VERBOSE_LEVELS)}."
            )
        self._verbose = level
        self._records: list[WarningRecord] = []
        self._flushed = False

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[WarningRecord]:
        return list(self._records)

    def collect(
        self,
        category: type,
        message: str,
        replicate: Any = None,
        method: Any = None,
        context: dict | None = None,
    ) -> None:
        """
        Store a warning without emitting it.

        Parameters
        ----------
        category : type
            A :class:`~permweight.warnings_categories.PermWeightWarning`
            subclass.
        message : str
            Warning text.
        replicate : int, optional
            Replicate the warning came from.
        method : str, optional
            Estimator name, or ``'<data>'`` for the data-generation stage.
        context : dict, optional
            Numeric details such as ``{'max_weight': 312.5}``; their ranges
            appear in :meth:`get_diagnostics`.
        """
        self._records.append(WarningRecord(
            category=category,
            message=message,
            replicate=replicate,
            method=method,
            context=dict(context) if context else {},
        ))

    def extend(self, records: Iterable[WarningRecord]) -> None:
        """Append records collected by another registry, e.g. a replicate's."""
        self._records.extend(records)

    def by_category(self) -> dict[type, list[WarningRecord]]:
        """Records grouped by category, in order of first appearance."""
        grouped: dict[type, list[WarningRecord]] = {}
        for rec in self._records:
            grouped.setdefault(rec.category, []).append(rec)
        return grouped

    def flush(self, total_replicates: int | None = None) -> None:
        """
        Emit the buffered warnings according to the verbosity level.

        Only the first call emits anything.

        Parameters
        ----------
        total_replicates : int, optional
            Number of replicates in the run, reported as ``k/N replicates``
            in the aggregated messages.
        """
        if self._flushed:
            return
        self._flushed = True

        if self._verbose == 'verbose':
            for rec in self._records:
                warnings.warn(rec.message, rec.category, stacklevel=2)
            return

        for category, records in self.by_category().items():
            if self._verbose == 'quiet' and not issubclass(category, _CRITICAL_CATEGORIES):
                continue
            warnings.warn(
                self._summary_line(category, records, total_replicates),
                category,
                stacklevel=2,
            )

    def get_diagnostics(self) -> list[dict]:
        """
        Per-category summary of every record, whatever the verbosity.

        Returns
        -------
        list of dict
            Keys: ``category`` (class name), ``message`` (first message),
            ``count``, ``affected`` (list of ``(replicate, method)``) and
            ``context_summary`` (min and max of numeric context values).
        """
        diagnostics = []
        for category, records in self.by_category().items():
            diagnostics.append({
                'category': category.__name__,
                'message': records[0].message,
                'count': len(records),
                'affected': [
                    (r.replicate, r.method) for r in records
                    if r.replicate is not None or r.method is not None
                ],
                'context_summary': _numeric_ranges(records),
            })
        return diagnostics

    @staticmethod
    def _summary_line(category, records, total_replicates) -> str:
        replicates = {r.replicate for r in records if r.replicate is not None}
        methods = sorted({str(r.method) for r in records if r.method is not None})

        if not replicates:
            scope = f"{len(records)} occurrences"
        elif total_replicates:
            scope = f"{len(replicates)}/{total_replicates} replicates"
        else:
            scope = f"{len(replicates)} replicates"
        if methods:
            scope += f"; methods: {', '.join(methods)}"
        return f"[{category.__name__}] {records[0].message} ({scope})"
