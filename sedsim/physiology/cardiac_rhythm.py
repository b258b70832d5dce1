from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple

from sedsim.core.constants import (
    ARREST_ASYSTOLE_AFTER,
    ARREST_MAP_THRESHOLD,
    ARREST_PEA_AFTER,
    ARREST_SPO2_THRESHOLD,
    ARREST_VF_AFTER,
)
from sedsim.core.enums import CardiacRhythm
from sedsim.core.state import Vitals
from sedsim.patient.drugs import LOCAL_ANESTHETICS
from sedsim.patient.patient import Patient
from sedsim.patient.pk_models import PKState

# =============================================================================
# CARDIAC RHYTHM CLASSIFIER
# =============================================================================
#
# Ordered rule table, first match wins:
#   1. Arrest cascade (SpO2 < 40 or MAP < 30 sustained):
#      >20 s PEA (or VT), >60 s VF, >120 s asystole; the stage never
#      drops back while the condition holds
#   2. Flatline (no saturation signal and HR < 10)
#   3. Local anesthetic systemic toxicity (summed LA Ce, µg/mL)
#   4. Hypoxia (SpO2 50/60/70/80/85)
#   5. Drug-induced bradyarrhythmias and AV block
#   6. Ketamine tachyarrhythmia
#   7. Sinus rate classification
#
# Drug thresholds are multiplied by the patient's drug sensitivity.
# Only the arrest start time persists between ticks.
# =============================================================================

R = CardiacRhythm

PULSELESS_RHYTHMS = frozenset({R.VENTRICULAR_FIBRILLATION, R.ASYSTOLE, R.PEA})

LETHAL_RHYTHMS = frozenset({
    R.VENTRICULAR_FIBRILLATION, R.VENTRICULAR_TACHYCARDIA, R.POLYMORPHIC_VT,
    R.ASYSTOLE, R.PEA,
})

VENTRICULAR_RHYTHMS = frozenset({R.VENTRICULAR_TACHYCARDIA, R.POLYMORPHIC_VT})

RHYTHM_LABELS = {
    R.NORMAL_SINUS: "Normal Sinus Rhythm",
    R.SINUS_BRADYCARDIA: "Sinus Bradycardia",
    R.SINUS_TACHYCARDIA: "Sinus Tachycardia",
    R.SVT: "Supraventricular Tachycardia",
    R.ATRIAL_FIBRILLATION: "Atrial Fibrillation",
    R.ATRIAL_FLUTTER: "Atrial Flutter",
    R.JUNCTIONAL: "Junctional Rhythm",
    R.VENTRICULAR_TACHYCARDIA: "Ventricular Tachycardia",
    R.POLYMORPHIC_VT: "Polymorphic VT (Torsades)",
    R.WIDE_COMPLEX_UNKNOWN: "Wide Complex Rhythm",
    R.FIRST_DEGREE_AV_BLOCK: "1st Degree AV Block",
    R.SECOND_DEGREE_TYPE1: "2nd Degree AV Block Type I (Wenckebach)",
    R.SECOND_DEGREE_TYPE2: "2nd Degree AV Block Type II (Mobitz II)",
    R.THIRD_DEGREE_AV_BLOCK: "3rd Degree (Complete) AV Block",
    R.VENTRICULAR_FIBRILLATION: "Ventricular Fibrillation",
    R.ASYSTOLE: "Asystole",
    R.PEA: "Pulseless Electrical Activity",
}

_SHOCKABLE = [
    "Shockable rhythm: Defibrillate 200J biphasic",
    "Start CPR 30:2",
    "Epinephrine 1mg IV q3-5min",
    "Amiodarone 300mg IV (first dose), 150mg (second dose)",
]
_NON_SHOCKABLE = [
    "Non-shockable rhythm: Do NOT defibrillate",
    "Start CPR 30:2",
    "Epinephrine 1mg IV q3-5min",
    "Identify reversible causes (Hs and Ts)",
]
_BRADYCARDIA = [
    "Atropine 0.5mg IV q3-5min (max 3mg)",
    "Consider transcutaneous pacing",
    "Dopamine 5-20 mcg/kg/min or Epinephrine 2-10 mcg/min",
]
_NARROW_TACHY = [
    "Vagal maneuvers",
    "Adenosine 6mg rapid IV push, may repeat 12mg ×2",
    "If unstable: Synchronized cardioversion",
]
_AFIB = [
    "Rate control: Diltiazem 0.25 mg/kg IV or Metoprolol 5mg IV",
    "If unstable: Synchronized cardioversion",
]
_WIDE_COMPLEX = [
    "Amiodarone 150mg IV over 10 min",
    "Consider procainamide",
    "If unstable: Synchronized cardioversion",
]

ACLS_GUIDANCE = {
    R.VENTRICULAR_FIBRILLATION: _SHOCKABLE,
    R.VENTRICULAR_TACHYCARDIA: _SHOCKABLE,
    R.POLYMORPHIC_VT: _SHOCKABLE,
    R.ASYSTOLE: _NON_SHOCKABLE,
    R.PEA: _NON_SHOCKABLE,
    R.THIRD_DEGREE_AV_BLOCK: _BRADYCARDIA,
    R.SECOND_DEGREE_TYPE2: _BRADYCARDIA,
    R.SECOND_DEGREE_TYPE1: _BRADYCARDIA,
    R.JUNCTIONAL: _BRADYCARDIA,
    R.SINUS_BRADYCARDIA: _BRADYCARDIA,
    R.SVT: _NARROW_TACHY,
    R.ATRIAL_FLUTTER: _NARROW_TACHY,
    R.ATRIAL_FIBRILLATION: _AFIB,
    R.WIDE_COMPLEX_UNKNOWN: _WIDE_COMPLEX,
}


@dataclass(frozen=True)
class RhythmResult:
    rhythm: CardiacRhythm
    qrs_width: float    # ms
    pr_interval: float  # ms, 0 when no conducted P wave
    qt_interval: float  # ms
    arrest_started_at: Optional[float] = None


@dataclass(frozen=True)
class RhythmContext:
    """Inputs shared by every rule."""
    vitals: Vitals
    ce_by_drug: Mapping[str, float]
    sensitivity: float
    prev_rhythm: Optional[CardiacRhythm]
    arrest_elapsed: Optional[float]  # seconds since arrest onset, None if no arrest

    def ce(self, key: str) -> float:
        return self.ce_by_drug.get(key, 0.0)


# (rhythm, QRS, PR, QT)
Classification = Tuple[CardiacRhythm, float, float, float]
Rule = Callable[[RhythmContext], Optional[Classification]]

_VT = (R.VENTRICULAR_TACHYCARDIA, 160.0, 0.0, 360.0)
_VF = (R.VENTRICULAR_FIBRILLATION, 0.0, 0.0, 0.0)
_ASYSTOLE = (R.ASYSTOLE, 0.0, 0.0, 0.0)
_SVT = (R.SVT, 100.0, 0.0, 340.0)
_POLYMORPHIC_VT = (R.POLYMORPHIC_VT, 160.0, 0.0, 360.0)
_PEA = (R.PEA, 100.0, 160.0, 400.0)

# Arrest stages by severity. While the arrest timer runs the rhythm never
# steps back to a lower stage.
ARREST_SEVERITY = {
    R.PEA: 1,
    R.VENTRICULAR_TACHYCARDIA: 1,
    R.POLYMORPHIC_VT: 1,
    R.VENTRICULAR_FIBRILLATION: 2,
    R.ASYSTOLE: 3,
}
_ARREST_STAGES = {
    R.PEA: _PEA,
    R.VENTRICULAR_TACHYCARDIA: _VT,
    R.POLYMORPHIC_VT: _POLYMORPHIC_VT,
    R.VENTRICULAR_FIBRILLATION: _VF,
    R.ASYSTOLE: _ASYSTOLE,
}


def _arrest_cascade(ctx: RhythmContext) -> Optional[Classification]:
    elapsed = ctx.arrest_elapsed
    if elapsed is None:
        return None
    if elapsed > ARREST_ASYSTOLE_AFTER:
        return _ASYSTOLE
    if elapsed > ARREST_VF_AFTER:
        return _VF
    if elapsed > ARREST_PEA_AFTER:
        v = ctx.vitals
        if v.map < ARREST_MAP_THRESHOLD and v.spo2 > 0:
            if ctx.prev_rhythm in VENTRICULAR_RHYTHMS:
                return (R.PEA, 160.0, 160.0, 400.0)
            return _PEA
        return _VT
    return None


def _flatline(ctx: RhythmContext) -> Optional[Classification]:
    if ctx.vitals.spo2 <= 0 and ctx.vitals.hr < 10:
        return _ASYSTOLE
    return None


# Summed local anesthetic Ce (µg/mL) thresholds, most severe first.
LAST_THRESHOLDS = (
    (20.0, _VF),
    (10.0, _VT),
    (5.0, (R.WIDE_COMPLEX_UNKNOWN, 150.0, 220.0, 440.0)),
    (2.0, (R.FIRST_DEGREE_AV_BLOCK, 100.0, 240.0, 420.0)),
)


def _local_anesthetic_toxicity(ctx: RhythmContext) -> Optional[Classification]:
    total = sum(ctx.ce(key) for key in LOCAL_ANESTHETICS)
    for threshold, result in LAST_THRESHOLDS:
        if total > threshold * ctx.sensitivity:
            return result
    return None


def _hypoxia(ctx: RhythmContext) -> Optional[Classification]:
    spo2 = ctx.vitals.spo2
    if spo2 <= 0:
        return None
    if spo2 < 50:
        return _VF
    if spo2 < 60:
        return _VT
    if spo2 < 70:
        # Sustained VT degenerates and stays polymorphic
        if ctx.prev_rhythm in VENTRICULAR_RHYTHMS:
            return _POLYMORPHIC_VT
        return _VT
    if spo2 < 80:
        return _SVT
    if spo2 < 85:
        return (R.ATRIAL_FIBRILLATION, 100.0, 0.0, 380.0)
    return None


def _bradyarrhythmia(ctx: RhythmContext) -> Optional[Classification]:
    s = ctx.sensitivity
    prop = ctx.ce("propofol")
    fent = ctx.ce("fentanyl")
    hr = ctx.vitals.hr
    if prop > 8 * s:
        return (R.JUNCTIONAL, 100.0, 0.0, 480.0)
    if prop > 6 * s:
        return (R.FIRST_DEGREE_AV_BLOCK, 100.0, 260.0, 460.0)
    if fent > 6 * s:
        return (R.SINUS_BRADYCARDIA, 100.0, 160.0, 480.0)
    if hr < 30:
        return (R.THIRD_DEGREE_AV_BLOCK, 120.0, 0.0, 600.0)
    if hr < 40 and prop > 4 * s:
        return (R.SECOND_DEGREE_TYPE1, 100.0, 200.0, 480.0)
    if hr < 40 and fent > 3 * s:
        return (R.SECOND_DEGREE_TYPE2, 100.0, 180.0, 480.0)
    return None


def _ketamine_tachyarrhythmia(ctx: RhythmContext) -> Optional[Classification]:
    if ctx.ce("ketamine") > 3.0 * ctx.sensitivity and ctx.vitals.hr > 140:
        return _SVT
    return None


def _sinus(ctx: RhythmContext) -> Optional[Classification]:
    hr = ctx.vitals.hr
    if hr > 150:
        return (R.SINUS_TACHYCARDIA, 100.0, 140.0, 320.0)
    if hr > 100:
        return (R.SINUS_TACHYCARDIA, 100.0, 150.0, 340.0)
    if hr < 60:
        return (R.SINUS_BRADYCARDIA, 100.0, 160.0, 440.0)
    return (R.NORMAL_SINUS, 100.0, 160.0, 400.0)


RHYTHM_RULES: Tuple[Rule, ...] = (
    _arrest_cascade,
    _flatline,
    _local_anesthetic_toxicity,
    _hypoxia,
    _bradyarrhythmia,
    _ketamine_tachyarrhythmia,
    _sinus,
)


def arrest_condition(vitals: Vitals) -> bool:
    """SpO2 critically low (but measurable) or MAP below perfusion threshold."""
    return (0 < vitals.spo2 < ARREST_SPO2_THRESHOLD) or vitals.map < ARREST_MAP_THRESHOLD


def determine_rhythm(vitals: Vitals, pk_states: Mapping[str, PKState], patient: Patient,
                     prev_rhythm: Optional[CardiacRhythm], elapsed_seconds: float,
                     arrest_started_at: Optional[float]) -> RhythmResult:
    """
    Classify the cardiac rhythm for this tick.

    Args:
        vitals: Current vitals.
        pk_states: PK state by drug key.
        patient: Patient (drug sensitivity scales drug thresholds).
        prev_rhythm: Rhythm from the previous tick.
        elapsed_seconds: Current simulation time (s).
        arrest_started_at: Simulation time at which arrest conditions began,
            or None.

    Returns:
        RhythmResult with the updated arrest start time (None once the
        arrest condition clears).
    """
    if arrest_condition(vitals):
        started = elapsed_seconds if arrest_started_at is None else arrest_started_at
        arrest_elapsed = elapsed_seconds - started
    else:
        started = None
        arrest_elapsed = None

    ctx = RhythmContext(
        vitals=vitals,
        ce_by_drug={key: state.ce for key, state in pk_states.items()},
        sensitivity=patient.drug_sensitivity,
        prev_rhythm=prev_rhythm,
        arrest_elapsed=arrest_elapsed,
    )
    # _sinus always matches, so the table never runs dry
    match = next(
        match for match in (rule(ctx) for rule in RHYTHM_RULES) if match is not None
    )
    if arrest_elapsed is not None:
        match = _hold_arrest_stage(match, prev_rhythm)
    rhythm, qrs, pr, qt = match
    return RhythmResult(rhythm, qrs, pr, qt, arrest_started_at=started)


def _hold_arrest_stage(match: Classification,
                       prev_rhythm: Optional[CardiacRhythm]) -> Classification:
    """Keep the previous arrest stage if this tick's match is less severe."""
    prev_rank = ARREST_SEVERITY.get(prev_rhythm, 0)
    if ARREST_SEVERITY.get(match[0], 0) < prev_rank:
        return _ARREST_STAGES[prev_rhythm]
    return match


def _as_rhythm(rhythm) -> Optional[CardiacRhythm]:
    """Accept an enum member or its string tag."""
    try:
        return CardiacRhythm(rhythm)
    except ValueError:
        return None


def acls_guidance(rhythm) -> List[str]:
    """Ordered ACLS treatment steps for a rhythm (empty when none apply)."""
    return list(ACLS_GUIDANCE.get(_as_rhythm(rhythm), []))


def is_pulseless_rhythm(rhythm) -> bool:
    return _as_rhythm(rhythm) in PULSELESS_RHYTHMS


def is_lethal_rhythm(rhythm) -> bool:
    return _as_rhythm(rhythm) in LETHAL_RHYTHMS


def rhythm_label(rhythm) -> str:
    return RHYTHM_LABELS.get(_as_rhythm(rhythm), str(rhythm))
