from typing import Tuple

from scipy.optimize import root_scalar

from sedsim.core.exceptions import InvalidDoseError
from sedsim.patient.drugs import DrugDefinition
from sedsim.patient.pk_models import PKState, initial_pk_state, step_pk

# Peak Ce after a bolus is linear in dose from a zero state, but root finding
# keeps this valid for any starting state (e.g. top-ups on a running level).
PEAK_SEARCH_SECONDS = 1800


def peak_effect_site(drug: DrugDefinition, dose: float, state: PKState = None,
                     max_seconds: int = PEAK_SEARCH_SECONDS) -> Tuple[float, float]:
    """
    Simulate a bolus at 1 s resolution and return (peak Ce, time of peak in s).
    """
    state = state or initial_pk_state()
    state = step_pk(state, drug, dose, 0.0, 1.0)
    peak_ce, peak_t = state.ce, 1.0
    for t in range(2, max_seconds + 1):
        state = step_pk(state, drug, 0.0, 0.0, 1.0)
        if state.ce > peak_ce:
            peak_ce, peak_t = state.ce, float(t)
        elif state.ce < peak_ce and state.c1 < state.ce:
            # Past the peak: Ce only falls once plasma drops below it
            break
    return peak_ce, peak_t


def bolus_for_peak_ce(drug: DrugDefinition, target_ce: float, state: PKState = None,
                      max_dose: float = None) -> float:
    """
    Bolus dose (drug dose unit) whose effect-site peak reaches target_ce.

    Solved with Brent's method on peak_effect_site(dose) - target.
    """
    if target_ce <= 0:
        raise InvalidDoseError(f"Target Ce must be positive, got {target_ce}")
    state = state or initial_pk_state()

    def residual(dose: float) -> float:
        return peak_effect_site(drug, dose, state)[0] - target_ce

    if residual(0.0) >= 0:
        return 0.0

    # Generous bracket: 20x the target amount placed in V1
    upper = max_dose if max_dose is not None else target_ce * drug.v1 * 20.0
    if residual(upper) < 0:
        raise InvalidDoseError(f"Target Ce {target_ce} for {drug.key} is not reachable below {upper} {drug.unit}")

    sol = root_scalar(residual, bracket=(0.0, upper), method='brentq', xtol=1e-4)
    return float(sol.root)
