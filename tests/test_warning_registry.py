"""Tests for the deferred warning registry.

Verifies buffering, the three verbosity levels, idempotent flushing, and
the structured diagnostics returned regardless of verbosity.
"""

import warnings

import pytest

from permweight import (
    ConvergenceWarning,
    NumericalWarning,
    OverlapWarning,
    PermWeightWarning,
    ReplicateFailureWarning,
    WarningRecord,
    WarningRegistry,
)


def _flush_and_capture(registry, total=None):
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        registry.flush(total_replicates=total)
    return caught


@pytest.fixture
def registry_records():
    return [
        (OverlapWarning, "Extreme weights", 0, 'ipw', {'ratio': 150.0}),
        (OverlapWarning, "Extreme weights", 3, 'ipw', {'ratio': 410.0}),
        (ConvergenceWarning, "did not converge", 1, 'pw', {}),
        (ReplicateFailureWarning, "pw failed", 2, 'pw', {}),
    ]


class TestWarningCategories:

    @pytest.mark.parametrize("category", [
        OverlapWarning, NumericalWarning, ConvergenceWarning, ReplicateFailureWarning,
    ])
    def test_hierarchy(self, category):
        assert issubclass(category, PermWeightWarning)
        assert issubclass(category, UserWarning)


class TestWarningRegistry:

    def test_collect_does_not_emit(self, registry_records):
        registry = WarningRegistry()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            for args in registry_records:
                registry.collect(*args)
        assert caught == []
        assert len(registry) == 4

    def test_default_one_summary_per_category(self, registry_records):
        registry = WarningRegistry('default')
        for args in registry_records:
            registry.collect(*args)
        caught = _flush_and_capture(registry, total=10)
        assert [w.category for w in caught] == [
            OverlapWarning, ConvergenceWarning, ReplicateFailureWarning,
        ]
        assert "2/10 replicates" in str(caught[0].message)
        assert "methods: ipw" in str(caught[0].message)

    def test_quiet_only_critical(self, registry_records):
        registry = WarningRegistry('QUIET')
        for args in registry_records:
            registry.collect(*args)
        caught = _flush_and_capture(registry)
        assert [w.category for w in caught] == [ReplicateFailureWarning]

    def test_verbose_every_record(self, registry_records):
        registry = WarningRegistry('verbose')
        for args in registry_records:
            registry.collect(*args)
        assert len(_flush_and_capture(registry)) == 4

    def test_flush_is_idempotent(self, registry_records):
        registry = WarningRegistry()
        registry.collect(*registry_records[0])
        assert len(_flush_and_capture(registry)) == 1
        assert _flush_and_capture(registry) == []

    def test_empty_flush(self):
        assert _flush_and_capture(WarningRegistry()) == []

    def test_diagnostics(self, registry_records):
        registry = WarningRegistry('quiet')
        for args in registry_records:
            registry.collect(*args)
        diagnostics = {d['category']: d for d in registry.get_diagnostics()}
        overlap = diagnostics['OverlapWarning']
        assert overlap['count'] == 2
        assert overlap['affected'] == [(0, 'ipw'), (3, 'ipw')]
        assert overlap['context_summary'] == {'ratio_min': 150.0, 'ratio_max': 410.0}
        assert diagnostics['ReplicateFailureWarning']['count'] == 1

    def test_extend_merges_replicate_registries(self):
        run_registry = WarningRegistry()
        for replicate in (4, 7):
            local = WarningRegistry()
            local.collect(NumericalWarning, "clipped", replicate, 'pw', {'n_clipped': replicate})
            run_registry.extend(local.records)
        assert len(run_registry) == 2
        assert all(isinstance(r, WarningRecord) for r in run_registry.records)
        diagnostics = run_registry.get_diagnostics()[0]
        assert diagnostics['affected'] == [(4, 'pw'), (7, 'pw')]
        assert diagnostics['context_summary'] == {'n_clipped_min': 4, 'n_clipped_max': 7}

    def test_by_category_keeps_first_appearance_order(self, registry_records):
        registry = WarningRegistry()
        for args in registry_records:
            registry.collect(*args)
        grouped = registry.by_category()
        assert list(grouped) == [OverlapWarning, ConvergenceWarning, ReplicateFailureWarning]
        assert len(grouped[OverlapWarning]) == 2

    def test_invalid_verbose(self):
        with pytest.raises(ValueError, match='Invalid verbose level'):
            WarningRegistry('loud')
