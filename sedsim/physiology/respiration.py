import math
from typing import Mapping, Optional

import numpy as np

from sedsim.core.constants import (
    ATMOSPHERIC_PRESSURE,
    BASELINE_ETCO2,
    BASELINE_PACO2,
    BASELINE_RR,
    BASELINE_SPO2,
    MIN_VENTILATION_RATIO,
    PACO2_MAX,
    RESPIRATORY_QUOTIENT,
    ROOM_AIR_FIO2,
    SPO2_LAG_TAU,
    WATER_VAPOR_PRESSURE,
)
from sedsim.core.utils import clamp, complement_product, pao2_to_sao2
from sedsim.patient.drugs import DRUG_CATALOG, DrugCatalog, OPIOIDS, REVERSAL_TARGETS
from sedsim.patient.patient import Patient
from sedsim.patient.pd_models import (
    antagonism_factors,
    effective_concentration,
    hill_effect,
    opioid_raw_effect,
)

# =============================================================================
# RESPIRATORY DEPRESSION AND OXYGENATION
# =============================================================================
#
# Respiratory rate:
#   depression = (W_OPIOID * opioid + W_HYPNOTIC * hypnotic)
#                * (1 + K_SYNERGY * opioid * hypnotic) * sensitivity
#   RR = RR0 * (1 - depression), floored at 0
#
# Opioids are the dominant ventilatory depressants (Dahan et al.
# Anesthesiology. 2010); propofol and benzodiazepines add a smaller linear
# component and act supra-additively with opioids (Bouillon et al.
# Anesthesiology. 2003). Ketamine and dexmedetomidine largely spare drive.
#
# Oxygenation:
#   vent_ratio = max(0.1, RR / RR0)
#   PaCO2 = min(100, 40 / vent_ratio)
#   PAO2 = FiO2 * (Patm - PH2O) - PaCO2 / RQ     (alveolar gas equation)
#   PaO2 = PAO2 * V/Q derating (obesity, OSA, COPD, hypoventilation)
#   SaO2 from the Hill ODC, scaled so a healthy patient at baseline ventilation
#   on room air reads 99% (PAO2 99.7 mmHg gives SaO2 97.3% on the raw curve);
#   the displayed SpO2 lags with tau = 30 s.
# =============================================================================

W_OPIOID = 0.75
W_HYPNOTIC = 0.40
K_SYNERGY = 1.5
RR_JITTER_SD = 0.3

# Fraction of each hypnotic's sedative Hill effect that depresses breathing.
RESPIRATORY_WEIGHTS = {
    "propofol": 1.0,
    "midazolam": 0.8,
    "ketamine": 0.1,
    "dexmedetomidine": 0.2,
    "lidocaine_epi": 0.3,
    "articaine_epi": 0.3,
    "bupivacaine": 0.3,
}

# V/Q mismatch derating applied to alveolar PO2.
VQ_OBESITY = 0.92  # BMI > 30
VQ_OSA = 0.93
VQ_COPD = 0.90

OXIMETER_GAIN = BASELINE_SPO2 / pao2_to_sao2(
    ROOM_AIR_FIO2 * (ATMOSPHERIC_PRESSURE - WATER_VAPOR_PRESSURE)
    - BASELINE_PACO2 / RESPIRATORY_QUOTIENT
)


def weighted_hypnotic_fraction(ce_by_drug: Mapping[str, float],
                               weights: Mapping[str, float],
                               catalog: DrugCatalog = DRUG_CATALOG,
                               antagonism: Optional[Mapping[str, float]] = None) -> float:
    """
    Complement-product of weighted hypnotic Hill effects.

    Opioids and reversal agents are excluded; drugs without a weight
    contribute nothing.
    """
    if antagonism is None:
        antagonism = antagonism_factors(ce_by_drug, catalog)
    effects = []
    for key, ce in ce_by_drug.items():
        drug = catalog[key]
        if key in OPIOIDS or key in REVERSAL_TARGETS:
            continue
        w = weights.get(key, 0.0)
        if w <= 0:
            continue
        ce_eff = effective_concentration(key, ce, antagonism)
        effects.append(w * hill_effect(ce_eff, drug.ec50, drug.gamma))
    return complement_product(effects)


def respiratory_rate(ce_by_drug: Mapping[str, float], patient: Patient,
                     catalog: DrugCatalog = DRUG_CATALOG,
                     rng: Optional[np.random.Generator] = None) -> float:
    """Respiratory rate (breaths/min) from opioid and hypnotic depression."""
    antagonism = antagonism_factors(ce_by_drug, catalog)
    opioid = opioid_raw_effect(ce_by_drug, catalog, antagonism)
    hypnotic = weighted_hypnotic_fraction(ce_by_drug, RESPIRATORY_WEIGHTS, catalog, antagonism)

    depression = (W_OPIOID * opioid + W_HYPNOTIC * hypnotic) \
        * (1.0 + K_SYNERGY * opioid * hypnotic) \
        * patient.drug_sensitivity
    rr = max(0.0, BASELINE_RR * (1.0 - depression))

    if rng is not None and rr > 0:
        rr = max(0.0, rr + rng.normal(0.0, RR_JITTER_SD))
    return rr


def ventilation_ratio(rr: float) -> float:
    return max(MIN_VENTILATION_RATIO, rr / BASELINE_RR)


def arterial_po2(rr: float, fio2: float, patient: Patient) -> float:
    """Effective arterial PO2 (mmHg) from the alveolar gas equation and V/Q derating."""
    vent = ventilation_ratio(rr)
    paco2 = min(PACO2_MAX, BASELINE_PACO2 / vent)
    pao2_alveolar = max(0.0, fio2 * (ATMOSPHERIC_PRESSURE - WATER_VAPOR_PRESSURE)
                        - paco2 / RESPIRATORY_QUOTIENT)

    vq = 1.0
    if patient.bmi > 30:
        vq *= VQ_OBESITY
    if patient.osa:
        vq *= VQ_OSA
    if patient.copd:
        vq *= VQ_COPD
    vq *= clamp(0.8 + 0.2 * vent, 0.8, 1.0)
    return pao2_alveolar * vq


def oxygen_saturation(rr: float, fio2: float, patient: Patient) -> float:
    """Steady-state oximeter saturation (%) for a given ventilation and FiO2."""
    return min(100.0, OXIMETER_GAIN * pao2_to_sao2(arterial_po2(rr, fio2, patient)))


def displayed_spo2(rr: float, fio2: float, patient: Patient,
                   previous_spo2: float, dt: float = 1.0) -> float:
    """
    Pulse-oximeter SpO2 (%): true saturation blended toward the previous
    reading with a first-order lag.
    """
    true_spo2 = oxygen_saturation(rr, fio2, patient)
    alpha = 1.0 - math.exp(-max(0.0, dt) / SPO2_LAG_TAU)
    return clamp(previous_spo2 + (true_spo2 - previous_spo2) * alpha, 0.0, 100.0)


def end_tidal_co2(rr: float) -> float:
    """EtCO2 (mmHg), inversely proportional to ventilation."""
    return clamp(BASELINE_ETCO2 / ventilation_ratio(rr), 0.0, 100.0)
