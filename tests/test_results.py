"""Results Container Tests

Tests for ``SimulationResults`` accessors, aggregation, and export:
- read-only properties
- mean absolute bias pivot
- text summary
- CSV and LaTeX export
"""

import pandas as pd
import pytest

from permweight import SimulationResults


def _records():
    rows = []
    biases = {
        ('naive', 'A'): [-1.2, -1.0],
        ('naive', 'fA'): [0.4, 0.2],
        ('pw', 'A'): [0.1, -0.1],
        ('pw', 'fA'): [0.05, -0.15],
    }
    oracle = {'A': 2.0, 'fA': 0.0}
    for (method, parameter), values in biases.items():
        for rep, bias in enumerate(values):
            rows.append({
                'replicate': rep,
                'method': method,
                'parameter': parameter,
                'estimate': oracle[parameter] + bias,
                'oracle': oracle[parameter],
                'bias': bias,
            })
    return rows


@pytest.fixture
def results():
    return SimulationResults(
        records=_records(),
        failures=[{'replicate': 1, 'method': 'ipw', 'error': 'ModelFitError', 'message': 'x'}],
        n_reps=2,
        oracle={'A': 2.0, 'fA': 0.0},
        methods=['naive', 'ipw', 'pw'],
        seed=42,
    )


class TestSimulationResults:

    def test_properties(self, results):
        assert results.n_reps == 2
        assert results.seed == 42
        assert results.oracle == {'A': 2.0, 'fA': 0.0}
        assert results.methods == ['naive', 'ipw', 'pw']
        assert results.n_failed == 1
        assert results.failure_rate == pytest.approx(1 / 6)
        assert results.diagnostics == []

    def test_records_are_copies(self, results):
        records = results.records
        records['bias'] = 0.0
        assert not (results.records['bias'] == 0.0).all()

    def test_mean_absolute_bias(self, results):
        mab = results.mean_absolute_bias()
        assert list(mab.index) == ['naive', 'pw']
        assert list(mab.columns) == ['A', 'fA']
        assert mab.loc['naive', 'A'] == pytest.approx(1.1)
        assert mab.loc['pw', 'A'] == pytest.approx(0.1)
        assert mab.loc['pw', 'fA'] == pytest.approx(0.1)

    def test_summary_table(self, results):
        table = results.summary_table()
        row = table[(table['method'] == 'naive') & (table['parameter'] == 'fA')].iloc[0]
        assert row['n'] == 2
        assert row['mean_bias'] == pytest.approx(0.3)
        assert row['mean_estimate'] == pytest.approx(0.3)

    def test_summary_text(self, results):
        text = results.summary()
        assert "Replicates: 2" in text
        assert "naive" in text and "pw" in text
        assert "Failures by method" in text
        assert "ipw: 1" in text

    def test_repr(self, results):
        assert repr(results).startswith("SimulationResults(n_reps=2")

    def test_empty_results(self):
        empty = SimulationResults(records=[], failures=[], n_reps=1, oracle={'A': 1.0},
                                  methods=['naive'])
        assert empty.records.empty
        assert empty.mean_absolute_bias().empty
        assert "Replicates: 1" in empty.summary()


class TestExport:

    def test_to_csv(self, results, tmp_path):
        path = tmp_path / 'records.csv'
        results.to_csv(str(path))
        loaded = pd.read_csv(path)
        assert len(loaded) == 8
        assert list(loaded.columns) == list(results.records.columns)

    def test_to_csv_without_records(self, tmp_path):
        empty = SimulationResults(records=[], failures=[], n_reps=1, oracle={'A': 1.0},
                                  methods=['naive'])
        with pytest.raises(ValueError, match='No bias records'):
            empty.to_csv(str(tmp_path / 'empty.csv'))

    def test_to_latex(self, results, tmp_path):
        path = tmp_path / 'summary.tex'
        results.to_latex(str(path))
        content = path.read_text(encoding='utf-8')
        assert "tabular" in content
        assert "mean\\_abs\\_bias" in content
