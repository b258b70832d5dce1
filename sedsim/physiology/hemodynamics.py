from dataclasses import dataclass
from typing import Mapping

from sedsim.core.constants import (
    BASELINE_DBP,
    BASELINE_HR,
    BASELINE_SBP,
    DBP_MAX,
    DBP_MIN,
    HR_MAX,
    HR_MIN,
    SBP_MAX,
    SBP_MIN,
)
from sedsim.core.utils import clamp, clamp01
from sedsim.patient.drugs import DRUG_CATALOG, DrugCatalog
from sedsim.patient.patient import Patient
from sedsim.patient.pd_models import (
    antagonism_factors,
    effective_concentration,
    hill_effect,
    opioid_raw_effect,
)
from sedsim.physiology.respiration import weighted_hypnotic_fraction

# =============================================================================
# HEMODYNAMIC MODEL
# =============================================================================
#
# Hypnotic fraction h (vasodilation + myocardial depression):
#   SBP = SBP0 * (1 - 0.30 h) + 25 k       DBP = DBP0 * (1 - 0.25 h) + 12 k
#   HR  = HR0 * (1 - 0.15 h - 0.20 o) + 35 k
# with o the opioid (vagal) fraction and k the ketamine sympathomimetic
# fraction (White et al. Anesthesiology. 1982).
#
# Compensation:
#   - Baroreflex: +0.4 bpm per mmHg MAP below baseline
#   - Hypoxic tachycardia: +1.5 bpm per % SpO2 below 90
#   - SpO2 < 75: pre-arrest bradycardia and hypotension override
# =============================================================================

HEMODYNAMIC_WEIGHTS = {
    "propofol": 1.0,
    "midazolam": 0.4,
    "dexmedetomidine": 0.9,
    "lidocaine_epi": 0.2,
    "articaine_epi": 0.2,
    "bupivacaine": 0.3,
}

SBP_DEPRESSION = 0.30
DBP_DEPRESSION = 0.25
HR_HYPNOTIC_DEPRESSION = 0.15
HR_OPIOID_DEPRESSION = 0.20

KETAMINE_SBP_RISE = 25.0
KETAMINE_DBP_RISE = 12.0
KETAMINE_HR_RISE = 35.0

BARO_GAIN = 0.4  # bpm per mmHg MAP deficit
HYPOXIC_HR_GAIN = 1.5  # bpm per % SpO2 below 90
HYPOXIC_TACHY_SPO2 = 90.0
PRE_ARREST_SPO2 = 75.0

BASELINE_MAP = (BASELINE_SBP + 2.0 * BASELINE_DBP) / 3.0


@dataclass(frozen=True)
class Hemodynamics:
    hr: float
    sbp: float
    dbp: float

    @property
    def map(self) -> float:
        return (self.sbp + 2.0 * self.dbp) / 3.0


def compute_hemodynamics(ce_by_drug: Mapping[str, float], patient: Patient,
                         spo2: float, catalog: DrugCatalog = DRUG_CATALOG) -> Hemodynamics:
    """
    Heart rate and blood pressure from drug effects, reflexes and oxygenation.

    Args:
        ce_by_drug: Effect-site concentration by drug key.
        patient: Patient record (drug sensitivity scales the hypnotic fraction).
        spo2: Current displayed SpO2 (%).

    Returns:
        Hemodynamics clamped to physiological bounds.
    """
    antagonism = antagonism_factors(ce_by_drug, catalog)
    h = clamp01(weighted_hypnotic_fraction(ce_by_drug, HEMODYNAMIC_WEIGHTS, catalog, antagonism)
                * patient.drug_sensitivity)
    o = opioid_raw_effect(ce_by_drug, catalog, antagonism)

    k = 0.0
    ket_ce = ce_by_drug.get("ketamine", 0.0)
    if ket_ce > 0:
        ket = catalog["ketamine"]
        k = hill_effect(effective_concentration("ketamine", ket_ce, antagonism),
                        ket.ec50, ket.gamma)

    sbp = BASELINE_SBP * (1.0 - SBP_DEPRESSION * h) + KETAMINE_SBP_RISE * k
    dbp = BASELINE_DBP * (1.0 - DBP_DEPRESSION * h) + KETAMINE_DBP_RISE * k
    hr = BASELINE_HR * (1.0 - HR_HYPNOTIC_DEPRESSION * h - HR_OPIOID_DEPRESSION * o) \
        + KETAMINE_HR_RISE * k

    map_ = (sbp + 2.0 * dbp) / 3.0
    hr += BARO_GAIN * max(0.0, BASELINE_MAP - map_)

    if spo2 < HYPOXIC_TACHY_SPO2:
        hr += HYPOXIC_HR_GAIN * (HYPOXIC_TACHY_SPO2 - spo2)

    if spo2 < PRE_ARREST_SPO2:
        hr = max(HR_MIN, 20.0 + (spo2 - 40.0) * 1.2)
        scale = max(0.0, spo2) / PRE_ARREST_SPO2
        sbp *= scale
        dbp *= scale

    return Hemodynamics(
        hr=clamp(hr, HR_MIN, HR_MAX),
        sbp=clamp(sbp, SBP_MIN, SBP_MAX),
        dbp=clamp(dbp, DBP_MIN, DBP_MAX),
    )
