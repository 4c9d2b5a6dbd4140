"""Tests for the exception hierarchy.

This module verifies the inheritance structure and catching behavior of all
exception classes defined in ``exceptions.py``.
"""

import pytest

from permweight.exceptions import (
    DegenerateWeightError,
    InfeasibleDegreeSequenceError,
    InvalidGraphError,
    InvalidParameterError,
    MissingRequiredColumnError,
    ModelFitError,
    PermWeightError,
    ZeroDegreeUnitError,
)


class TestExceptionHierarchy:
    """Tests for the inheritance structure of exception classes."""

    def test_base_exception(self):
        """Check that ``PermWeightError`` is the base class for all package exceptions."""
        assert issubclass(PermWeightError, Exception)
        with pytest.raises(PermWeightError):
            raise PermWeightError("Test error")

    @pytest.mark.parametrize("exc", [
        InvalidParameterError,
        InvalidGraphError,
        MissingRequiredColumnError,
        InfeasibleDegreeSequenceError,
        ZeroDegreeUnitError,
        ModelFitError,
        DegenerateWeightError,
    ])
    def test_all_inherit_from_base(self, exc):
        assert issubclass(exc, PermWeightError)

    def test_invalid_parameter_is_value_error(self):
        # InvalidGraphError → InvalidParameterError → (PermWeightError, ValueError)
        assert issubclass(InvalidParameterError, ValueError)
        assert issubclass(InvalidGraphError, InvalidParameterError)
        with pytest.raises(ValueError):
            raise InvalidGraphError("not symmetric")

    def test_runtime_failures_are_not_value_errors(self):
        for exc in (ModelFitError, DegenerateWeightError, ZeroDegreeUnitError):
            assert not issubclass(exc, ValueError)


class TestExceptionMessages:

    def test_message_preserved(self):
        try:
            raise ModelFitError("singular design")
        except PermWeightError as e:
            assert str(e) == "singular design"
