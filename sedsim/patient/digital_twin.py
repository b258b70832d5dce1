from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from sedsim.core.enums import CardiacRhythm
from sedsim.core.utils import clamp
from sedsim.patient.patient import Patient
from sedsim.patient.pk_models import PKState
from sedsim.physiology.cardiac_rhythm import acls_guidance

# =============================================================================
# DIGITAL TWIN / RISK ENGINE
# =============================================================================
#
# Modifiers (computed once per patient):
#   age factor 0.8 (>65) / 1.2 (<18) / 1.0; obesity factor 0.85 (BMI>35) / 0.9 (>30)
#   cardiac output = age * obesity; hepatic 0.5 if impaired else age factor;
#   renal 0.4 if impaired else age factor; brain = sensitivity * 1.3 (>70 y);
#   respiratory drive 0.7 (OSA) / 0.75 (COPD) / 1.0
#
# Risks (recomputed every tick, each term clamped to [0, 100]):
#   hypotension  = 0.6 * Ce term * (2 - CO) + 0.4 * (90 - SBP) * 3
#   desaturation = 0.6 * Ce term            + 0.4 * (94 - SpO2) * 5
#   awareness    = (1.5 - sedation pressure) * 40
#   arrhythmia   = hypoxia + propofol + fentanyl high-dose terms
#
# Concentrations: propofol/midazolam/ketamine µg/mL, fentanyl/dex ng/mL.
# =============================================================================

CE_WEIGHT = 0.6
VITAL_WEIGHT = 0.4


@dataclass(frozen=True)
class PhysiologyModifiers:
    cardiac_output: float = 1.0      # 0.5-1.5 multiplier
    hepatic_clearance: float = 1.0   # 0.3-1.2
    renal_clearance: float = 1.0     # 0.3-1.2
    brain_sensitivity: float = 1.0   # 0.6-1.8
    respiratory_drive: float = 1.0   # 0.4-1.2


@dataclass(frozen=True)
class PredictedOutcome:
    time_to_emergence: float = 0.0  # minutes
    hypotension_risk: float = 0.0
    desaturation_risk: float = 0.0
    awareness_risk: float = 0.0
    arrhythmia_risk: float = 0.0
    predicted_rhythm: CardiacRhythm = CardiacRhythm.NORMAL_SINUS
    acls_guidance: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DigitalTwin:
    patient: Patient
    modifiers: PhysiologyModifiers
    sensitivity_multiplier: float = 1.0
    comorbidities: Tuple[str, ...] = ()
    current_ce: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    outcome: PredictedOutcome = field(default_factory=PredictedOutcome)


def physiology_modifiers(patient: Patient) -> PhysiologyModifiers:
    if patient.age > 65:
        age_factor = 0.8
    elif patient.age < 18:
        age_factor = 1.2
    else:
        age_factor = 1.0

    if patient.bmi > 35:
        obesity_factor = 0.85
    elif patient.bmi > 30:
        obesity_factor = 0.9
    else:
        obesity_factor = 1.0

    if patient.osa:
        resp_drive = 0.7
    elif patient.copd:
        resp_drive = 0.75
    else:
        resp_drive = 1.0

    return PhysiologyModifiers(
        cardiac_output=age_factor * obesity_factor,
        hepatic_clearance=0.5 if patient.hepatic_impairment else age_factor,
        renal_clearance=0.4 if patient.renal_impairment else age_factor,
        brain_sensitivity=patient.drug_sensitivity * (1.3 if patient.age > 70 else 1.0),
        respiratory_drive=resp_drive,
    )


def create_digital_twin(patient: Patient) -> DigitalTwin:
    """Build a twin for a patient; modifiers are fixed for its lifetime."""
    return DigitalTwin(
        patient=patient,
        modifiers=physiology_modifiers(patient),
        sensitivity_multiplier=patient.drug_sensitivity,
        comorbidities=tuple(patient.comorbidities),
    )


def _excess(value: float, threshold: float, gain: float) -> float:
    return (value - threshold) * gain if value > threshold else 0.0


def sedation_pressure(ce: Mapping[str, float]) -> float:
    """Propofol-equivalent hypnotic load."""
    return (ce.get("propofol", 0.0)
            + 0.8 * ce.get("midazolam", 0.0)
            + 0.6 * ce.get("ketamine", 0.0)
            + 0.7 * ce.get("dexmedetomidine", 0.0))


def update_twin(twin: DigitalTwin, pk_states: Mapping[str, PKState], hr: float,
                spo2: float, dt: float, rhythm: Optional[CardiacRhythm] = None,
                sbp: float = 120.0) -> DigitalTwin:
    """
    Recompute the twin's risk scores from current concentrations and vitals.

    hr and dt are accepted for interface symmetry; the current scores depend
    only on concentrations, SpO2 and SBP.
    """
    rhythm = rhythm or CardiacRhythm.NORMAL_SINUS
    ce = {key: state.ce for key, state in pk_states.items()}
    mods = twin.modifiers

    prop = ce.get("propofol", 0.0)
    dex = ce.get("dexmedetomidine", 0.0)
    fent = ce.get("fentanyl", 0.0)

    pressure = sedation_pressure(ce)
    emergence = pressure * 12.0 / mods.hepatic_clearance if pressure > 0.5 else 0.0

    ce_hypotension = (_excess(prop, 2.0, 15.0)
                      + _excess(dex, 0.5, 20.0)
                      + _excess(fent, 1.0, 15.0)) * (2.0 - mods.cardiac_output)
    vital_hypotension = _excess(90.0, sbp, 3.0)
    hypotension = (CE_WEIGHT * clamp(ce_hypotension, 0.0, 100.0)
                   + VITAL_WEIGHT * clamp(vital_hypotension, 0.0, 100.0))

    ce_desat = ((1.0 - mods.respiratory_drive) * 40.0
                + _excess(prop, 3.0, 20.0)
                + _excess(fent, 0.8, 20.0))
    vital_desat = _excess(94.0, spo2, 5.0)
    desaturation = (CE_WEIGHT * clamp(ce_desat, 0.0, 100.0)
                    + VITAL_WEIGHT * clamp(vital_desat, 0.0, 100.0))

    awareness = _excess(1.5, pressure, 40.0)

    arrhythmia = (_excess(90.0, spo2, 3.0)
                  + _excess(prop, 5.0, 8.0)
                  + _excess(fent, 3.0, 5.0))

    outcome = PredictedOutcome(
        time_to_emergence=round(emergence, 1),
        hypotension_risk=round(clamp(hypotension, 0.0, 100.0)),
        desaturation_risk=round(clamp(desaturation, 0.0, 100.0)),
        awareness_risk=round(clamp(awareness, 0.0, 100.0)),
        arrhythmia_risk=round(clamp(arrhythmia, 0.0, 100.0)),
        predicted_rhythm=rhythm,
        acls_guidance=tuple(acls_guidance(rhythm)),
    )
    return replace(twin, current_ce=MappingProxyType(ce), outcome=outcome)
