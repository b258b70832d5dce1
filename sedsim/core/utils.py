"""
Shared utility functions for SedSim.
"""

import math

from sedsim.core.constants import (
    HILL_LOG_OVERFLOW,
    ODC_HILL_N,
    ODC_P50,
)


def clamp(value: float, low: float, high: float) -> float:
    """
    Clamp value to the inclusive range [low, high].
    """
    if low > high:
        low, high = high, low
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    """
    Clamp value to the inclusive range [0.0, 1.0].
    """
    return clamp(value, 0.0, 1.0)


def hill_function(c: float, c50: float, gamma: float) -> float:
    """
    Generic Hill/sigmoidal Emax function with numerical safeguards.

    Args:
        c: Drug concentration
        c50: Half-maximal effect concentration (EC50)
        gamma: Hill coefficient (steepness)

    Returns:
        Effect fraction (0 to 1), monotone non-decreasing in c.

    Numerical safeguards:
        - c <= 0, c50 <= 0 or gamma <= 0: returns 0.0
        - gamma * ln(c / c50) beyond the float64 exponent range: returns 1.0
    """
    if c <= 0 or c50 <= 0 or gamma <= 0:
        return 0.0

    log_ratio_g = gamma * math.log(c / c50)
    if log_ratio_g > HILL_LOG_OVERFLOW:
        return 1.0

    ratio_g = math.exp(log_ratio_g)
    # c^g / (c50^g + c^g) = ratio^g / (1 + ratio^g)
    return ratio_g / (1.0 + ratio_g)


def complement_product(effects) -> float:
    """
    Combine independent fractional effects: 1 - prod(1 - e_i).
    """
    remaining = 1.0
    for e in effects:
        remaining *= 1.0 - clamp01(e)
    return 1.0 - remaining


def pao2_to_sao2(pao2: float) -> float:
    """
    Convert PaO2 (mmHg) to SaO2 (%) with a Hill fit of the
    oxyhemoglobin dissociation curve (P50 26.6 mmHg, n 2.7).
    """
    if pao2 <= 0:
        return 0.0
    ratio_n = (pao2 / ODC_P50) ** ODC_HILL_N
    return 100.0 * ratio_n / (1.0 + ratio_n)
