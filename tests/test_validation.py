"""Tests for shared input validation helpers."""

import numpy as np
import pytest

from permweight import InvalidParameterError
from permweight.validation import (
    validate_choice,
    validate_graph_size,
    validate_oracle,
    validate_parameter_vector,
    validate_positive_int,
)


class TestValidatePositiveInt:

    @pytest.mark.parametrize("value", [1, 10, np.int64(3)])
    def test_valid(self, value):
        assert validate_positive_int(value, 'x') == int(value)

    @pytest.mark.parametrize("value", [0, -1, 1.0, True, '3', None])
    def test_invalid(self, value):
        with pytest.raises(InvalidParameterError):
            validate_positive_int(value, 'x')

    def test_custom_minimum(self):
        assert validate_positive_int(0, 'x', minimum=0) == 0


def test_validate_choice_normalizes_case():
    assert validate_choice('Raise', 'on_error', ('raise', 'skip')) == 'raise'
    with pytest.raises(InvalidParameterError, match="on_error"):
        validate_choice('drop', 'on_error', ('raise', 'skip'))


def test_validate_graph_size():
    validate_graph_size(10, 9)
    with pytest.raises(InvalidParameterError, match='smaller than n'):
        validate_graph_size(10, 10)


class TestValidateParameterVector:

    def test_valid(self):
        out = validate_parameter_vector([1, 2], 'beta', ['a', 'b'])
        assert out.dtype == float
        assert out.tolist() == [1.0, 2.0]

    @pytest.mark.parametrize("values", [[1.0], [[1.0, 2.0]], [1.0, np.inf]])
    def test_invalid(self, values):
        with pytest.raises(InvalidParameterError):
            validate_parameter_vector(values, 'beta', ['a', 'b'])


class TestValidateOracle:

    def test_valid(self):
        assert validate_oracle({'A': 2, 'fA': 0}) == {'A': 2.0, 'fA': 0.0}

    def test_restricted_parameters(self):
        with pytest.raises(InvalidParameterError, match='not a model term'):
            validate_oracle({'Z1': 1.0}, parameters=['A', 'fA'])

    @pytest.mark.parametrize("oracle", [{}, [('A', 1.0)], {'A': None}, {'A': np.inf}])
    def test_invalid(self, oracle):
        with pytest.raises(InvalidParameterError):
            validate_oracle(oracle)
