"""Tests for explicit design specifications."""

import numpy as np
import pandas as pd
import pytest

from permweight import (
    COVARIATE_TERMS,
    MISSPECIFIED_COVARIATE_TERMS,
    MSM_TERMS,
    OUTCOME_TERMS,
    TREATMENT_TERMS,
    DesignSpec,
    InvalidParameterError,
    MissingRequiredColumnError,
    Term,
    permutation_classifier_terms,
)


@pytest.fixture
def frame():
    return pd.DataFrame({
        'A': [1, 0, 1],
        'fA': [0.5, 1.0, 0.0],
        'Z1_abs': [0.2, 1.5, 0.7],
        'Z2': [1.0, 0.0, 1.0],
    })


class TestTerm:

    def test_parse_interaction(self):
        term = Term.parse('Z1_abs:Z2')
        assert term.factors == ('Z1_abs', 'Z2')
        assert term.name == 'Z1_abs:Z2'

    def test_evaluate_is_elementwise_product(self, frame):
        values = Term.parse('Z1_abs:Z2').evaluate(frame)
        np.testing.assert_allclose(values, [0.2, 0.0, 0.7])

    def test_product_drops_repeated_factors(self):
        assert (Term.parse('A') * Term.parse('A:Z2')).factors == ('A', 'Z2')

    @pytest.mark.parametrize("text", ['', 'A::B', 'A:A'])
    def test_invalid_terms(self, text):
        with pytest.raises(InvalidParameterError):
            Term.parse(text)


class TestDesignSpec:

    def test_presets(self):
        assert MSM_TERMS.column_names == ['const', 'A', 'fA']
        assert TREATMENT_TERMS.column_names == ['const', 'Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3']
        assert OUTCOME_TERMS.column_names == [
            'const', 'A', 'fA', 'Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3',
        ]
        assert COVARIATE_TERMS.column_names == ['Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3']
        assert MISSPECIFIED_COVARIATE_TERMS.column_names == ['Z1', 'Z2', 'Z3']

    def test_build(self, frame):
        spec = DesignSpec.from_terms('A', 'Z1_abs:Z2')
        X = spec.build(frame)
        assert list(X.columns) == ['const', 'A', 'Z1_abs:Z2']
        np.testing.assert_allclose(X['const'], 1.0)
        np.testing.assert_allclose(X['Z1_abs:Z2'], [0.2, 0.0, 0.7])
        assert X.index.equals(frame.index)

    def test_missing_column(self, frame):
        with pytest.raises(MissingRequiredColumnError, match='Z3'):
            DesignSpec.from_terms('A', 'Z3').build(frame)

    def test_non_finite_values(self, frame):
        frame.loc[1, 'fA'] = np.nan
        with pytest.raises(InvalidParameterError, match='fA'):
            MSM_TERMS.build(frame)

    def test_duplicate_terms_rejected(self):
        with pytest.raises(InvalidParameterError, match='Duplicate'):
            DesignSpec.from_terms('A', 'A')

    def test_intercept_name_reserved(self):
        with pytest.raises(InvalidParameterError):
            DesignSpec.from_terms('const', 'A')

    def test_interact_and_add(self):
        left = DesignSpec.from_terms('A', 'fA', intercept=False)
        right = DesignSpec.from_terms('Z2', 'Z3', intercept=False)
        crossed = left.interact(right)
        assert crossed.column_names == ['A:Z2', 'A:Z3', 'fA:Z2', 'fA:Z3']
        combined = MSM_TERMS + crossed
        assert combined.intercept
        assert combined.column_names[:3] == ['const', 'A', 'fA']
        assert len(combined) == 7

    def test_columns_in_first_use_order(self):
        assert COVARIATE_TERMS.columns == ['Z1_abs', 'Z2', 'Z3']

    def test_equality_and_hash(self):
        a = DesignSpec.from_terms('A', 'fA')
        assert a == MSM_TERMS
        assert hash(a) == hash(MSM_TERMS)
        assert a != a.without_intercept()


class TestPermutationClassifierTerms:

    def test_correct_covariates(self):
        names = permutation_classifier_terms(COVARIATE_TERMS).column_names
        assert names == [
            'const', 'A', 'fA', 'Z1_abs', 'Z2', 'Z1_abs:Z2', 'Z3',
            'A:Z1_abs', 'A:Z2', 'A:Z1_abs:Z2', 'A:Z3',
            'fA:Z1_abs', 'fA:Z2', 'fA:Z1_abs:Z2', 'fA:Z3',
        ]

    def test_misspecified_covariates(self):
        spec = permutation_classifier_terms(MISSPECIFIED_COVARIATE_TERMS)
        assert 'A:Z1' in spec.column_names
        assert 'Z1_abs' not in spec.columns
