import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from sedsim.core.constants import PREDICTION_OFFSETS
from sedsim.core.enums import SedationLevel
from sedsim.core.exceptions import InvalidTimeStepError
from sedsim.core.state import InfusionState, Vitals
from sedsim.patient.drugs import DRUG_CATALOG, DrugCatalog
from sedsim.patient.patient import Patient
from sedsim.patient.pd_models import combined_effect, drug_effects, effect_to_level
from sedsim.patient.pk_models import PKState, initial_pk_state, step_pk
from sedsim.physiology.vitals import calculate_vitals


@dataclass(frozen=True)
class GhostDose:
    """Hypothetical bolus to preview."""
    drug: str
    dose: float


@dataclass(frozen=True)
class PredictionSnapshot:
    seconds_ahead: int
    ce_by_drug: Dict[str, float]
    effect_by_drug: Dict[str, float]
    combined_effect: float
    moass: SedationLevel
    spo2: float
    rr: float
    sbp: float


def _infusion_rate(infusion: Union[InfusionState, float, None]) -> float:
    if infusion is None:
        return 0.0
    if isinstance(infusion, InfusionState):
        return infusion.effective_rate
    return float(infusion)


def predict_forward(pk_states: Mapping[str, PKState],
                    infusions: Mapping[str, Union[InfusionState, float]],
                    patient: Patient, fio2: float, vitals: Vitals,
                    offsets: Sequence[float] = PREDICTION_OFFSETS,
                    hypothetical_dose: Optional[GhostDose] = None,
                    catalog: DrugCatalog = DRUG_CATALOG) -> List[PredictionSnapshot]:
    """
    Simulate forward from a copy of the live state at 1 s resolution.

    The hypothetical bolus (if any) is given in the first 1 s step. PK, PD and
    vitals are stepped every second without jitter, so identical inputs give
    identical snapshots. None of the inputs are modified.

    Args:
        pk_states: Current PK state by drug key.
        infusions: Running infusions by drug key (InfusionState or rate/min).
        patient: Patient record.
        fio2: Inspired O2 fraction.
        vitals: Current vitals (SpO2 lag seed).
        offsets: Seconds ahead to snapshot; sorted and de-duplicated.
        hypothetical_dose: Optional GhostDose.

    Returns:
        One PredictionSnapshot per distinct offset, in ascending order.
    """
    sample_times = sorted({int(math.ceil(o)) for o in offsets})
    if sample_times and sample_times[0] < 1:
        raise InvalidTimeStepError(f"Prediction offsets must be positive, got {list(offsets)}")

    # PKState and Vitals are frozen, so a shallow copy of the mapping isolates
    # the branch from the live session.
    sim_pk: Dict[str, PKState] = dict(pk_states)
    ghost_drug = None
    if hypothetical_dose is not None:
        ghost_drug = catalog[hypothetical_dose.drug]
        sim_pk.setdefault(ghost_drug.key, initial_pk_state())

    sim_vitals = vitals
    snapshots: List[PredictionSnapshot] = []
    wanted = set(sample_times)
    horizon = sample_times[-1] if sample_times else 0
    for t in range(1, horizon + 1):
        stepped = {}
        for key, state in sim_pk.items():
            bolus = hypothetical_dose.dose if (t == 1 and ghost_drug is not None
                                               and key == ghost_drug.key) else 0.0
            stepped[key] = step_pk(state, catalog[key], bolus,
                                   _infusion_rate(infusions.get(key)), 1.0)
        sim_pk = stepped
        sim_vitals = calculate_vitals(sim_pk, patient, sim_vitals, fio2, dt=1.0,
                                      rng=None, catalog=catalog)

        if t in wanted:
            ce_by_drug = {key: state.ce for key, state in sim_pk.items()}
            effect = combined_effect(ce_by_drug, catalog)
            snapshots.append(PredictionSnapshot(
                seconds_ahead=t,
                ce_by_drug=ce_by_drug,
                effect_by_drug=drug_effects(ce_by_drug, catalog),
                combined_effect=effect,
                moass=effect_to_level(effect),
                spo2=sim_vitals.spo2,
                rr=sim_vitals.rr,
                sbp=sim_vitals.sbp,
            ))

    return snapshots
