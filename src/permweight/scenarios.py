"""
Scenario presets for the interference simulation study.

A scenario fixes the treatment model coefficients ``gamma`` (aligned with
``[1, Z1_abs, Z2, Z1_abs:Z2, Z3]``) and the outcome model coefficients
``beta`` (aligned with ``[1, A, fA, Z1_abs, Z2, Z1_abs:Z2, Z3]``). The
oracle MSM coefficients follow from ``beta``.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from .dgp import oracle_from_beta
from .design import OUTCOME_TERMS, TREATMENT_TERMS
from .exceptions import InvalidParameterError
from .validation import validate_parameter_vector


@dataclass(frozen=True)
class Scenario:
    """Named pair of generative coefficient vectors."""

    name: str
    gamma: Tuple[float, ...]
    beta: Tuple[float, ...]
    description: str = ''

    def __post_init__(self):
        gamma = validate_parameter_vector(self.gamma, 'gamma', TREATMENT_TERMS.column_names)
        beta = validate_parameter_vector(self.beta, 'beta', OUTCOME_TERMS.column_names)
        object.__setattr__(self, 'gamma', tuple(float(g) for g in gamma))
        object.__setattr__(self, 'beta', tuple(float(b) for b in beta))

    @property
    def oracle(self) -> Dict[str, float]:
        """True MSM coefficients of ``A`` and ``fA``."""
        return oracle_from_beta(self.beta)


DIRECT_EFFECT_ONLY = Scenario(
    name='direct_effect_only',
    gamma=(0.1, 0.2, 0.0, 0.2, 0.2),
    beta=(2.0, 2.0, 0.0, -1.5, 2.0, -3.0, -3.0),
    description='Confounded treatment, direct effect 2, no spillover.',
)

DIRECT_AND_SPILLOVER = Scenario(
    name='direct_and_spillover',
    gamma=(0.1, 0.2, 0.0, 0.2, 0.2),
    beta=(2.0, 2.0, 1.5, -1.5, 2.0, -3.0, -3.0),
    description='Confounded treatment, direct effect 2, spillover 1.5.',
)

NO_CONFOUNDING = Scenario(
    name='no_confounding',
    gamma=(0.2, 0.0, 0.0, 0.0, 0.0),
    beta=(2.0, 2.0, 0.0, -1.5, 2.0, -3.0, -3.0),
    description='Treatment independent of covariates; every estimator is unbiased.',
)

SCENARIOS = {s.name: s for s in (DIRECT_EFFECT_ONLY, DIRECT_AND_SPILLOVER, NO_CONFOUNDING)}


def get_scenario(name: str) -> Scenario:
    """Look up a preset scenario by name."""
    try:
        return SCENARIOS[name]
    except KeyError:
        raise InvalidParameterError(
            f"Unknown scenario {name!r}. Available: {sorted(SCENARIOS)}"
        ) from None
