import math
from dataclasses import dataclass
from typing import Dict, Iterable

from sedsim.core.exceptions import InvalidTimeStepError
from sedsim.patient.drugs import DRUG_CATALOG, DrugDefinition

# =============================================================================
# PHARMACOKINETIC MODEL
# =============================================================================
#
# 3-compartment mammillary model with an effect-site compartment, integrated
# with explicit (forward) Euler in concentration form:
#
#   dC1/dt = -(k10 + k12 + k13) * C1 + k21 * C2 + k31 * C3 + R(t) / V1
#   dC2/dt =  k12 * C1 - k21 * C2
#   dC3/dt =  k13 * C1 - k31 * C3
#   dCe/dt =  ke0 * (C1 - Ce)
#
# Rate constants are per minute; dt is supplied in seconds. With dt = 1 s the
# largest catalog k * dt is ~0.015, well inside the Euler stability region.
# Under zero input C1 + C2 + C3 changes by exactly -k10 * C1 * dt per step.
# =============================================================================


@dataclass(frozen=True)
class PKState:
    """State of the 3-compartment PK model."""
    c1: float = 0.0  # Central compartment concentration
    c2: float = 0.0  # Fast peripheral
    c3: float = 0.0  # Slow peripheral
    ce: float = 0.0  # Effect site

    @property
    def total(self) -> float:
        """Sum of the three body compartments (effect site excluded)."""
        return self.c1 + self.c2 + self.c3


def initial_pk_state() -> PKState:
    """Drug-free state: every compartment and the effect site at zero."""
    return PKState()


def initial_pk_states(keys: Iterable[str] = DRUG_CATALOG) -> Dict[str, PKState]:
    """Zeroed PK state for every drug key."""
    return {key: initial_pk_state() for key in keys}


def step_pk(state: PKState, drug: DrugDefinition, bolus_amount: float = 0.0,
            infusion_rate_per_minute: float = 0.0,
            dt_seconds: float = 1.0) -> PKState:
    """
    Advance one drug's PK state by dt_seconds.

    Args:
        state: Current concentrations.
        drug: Catalog parameters.
        bolus_amount: Dose given at the start of the step (drug dose unit).
        infusion_rate_per_minute: Continuous infusion (dose unit / min).
        dt_seconds: Time step in seconds (must be >= 0).

    Returns:
        New PKState; all concentrations clamped at 0.
    """
    if not math.isfinite(dt_seconds) or dt_seconds < 0:
        raise InvalidTimeStepError(f"dt must be a non-negative number of seconds, got {dt_seconds!r}")

    dt_min = dt_seconds / 60.0
    c1, c2, c3, ce = state.c1, state.c2, state.c3, state.ce

    dc1 = (-(drug.k10 + drug.k12 + drug.k13) * c1
           + drug.k21 * c2
           + drug.k31 * c3) * dt_min
    dc2 = (drug.k12 * c1 - drug.k21 * c2) * dt_min
    dc3 = (drug.k13 * c1 - drug.k31 * c3) * dt_min
    dce = drug.ke0 * (c1 - ce) * dt_min

    c1_new = c1 + dc1 + bolus_amount / drug.v1 + infusion_rate_per_minute * dt_min / drug.v1

    return PKState(
        c1=max(0.0, c1_new),
        c2=max(0.0, c2 + dc2),
        c3=max(0.0, c3 + dc3),
        ce=max(0.0, ce + dce),
    )


def simulate_decay(state: PKState, drug: DrugDefinition, target_fraction: float = 0.5,
                   max_seconds: int = 3600) -> float:
    """
    Time (s) for Ce to fall to target_fraction of its current value with no
    further dosing. Used for context-sensitive decrement estimates.

    Returns max_seconds if the target is not reached, 0.0 if Ce is already 0.
    """
    if state.ce <= 0:
        return 0.0
    target = state.ce * target_fraction
    peak = state.ce
    for t in range(1, max_seconds + 1):
        state = step_pk(state, drug, dt_seconds=1.0)
        # Ce can still be rising right after a bolus
        peak = max(peak, state.ce)
        if state.ce < peak and state.ce <= target:
            return float(t)
    return float(max_seconds)
