from typing import Mapping, Optional

import numpy as np

from sedsim.core.state import Vitals
from sedsim.patient.drugs import DRUG_CATALOG, DrugCatalog
from sedsim.patient.patient import Patient
from sedsim.patient.pk_models import PKState
from sedsim.physiology.hemodynamics import compute_hemodynamics
from sedsim.physiology.respiration import (
    displayed_spo2,
    end_tidal_co2,
    respiratory_rate,
)


def calculate_vitals(pk_states: Mapping[str, PKState], patient: Patient,
                     prev_vitals: Vitals, fio2: float, dt: float = 1.0,
                     rng: Optional[np.random.Generator] = None,
                     catalog: DrugCatalog = DRUG_CATALOG) -> Vitals:
    """
    Derive vital signs for one tick.

    Order matters: RR -> SpO2 (needs RR and the previous SpO2) ->
    hemodynamics (needs SpO2) -> EtCO2 (needs RR).

    Args:
        pk_states: PK state by drug key (effect-site concentrations are used).
        patient: Patient record.
        prev_vitals: Previous tick's vitals (SpO2 lag input).
        fio2: Inspired O2 fraction (0.21 room air).
        dt: Tick length in seconds.
        rng: Optional generator for RR jitter; None gives deterministic output.

    Returns:
        Vitals without rhythm annotation.
    """
    ce_by_drug = {key: state.ce for key, state in pk_states.items()}

    rr = respiratory_rate(ce_by_drug, patient, catalog, rng)
    spo2 = displayed_spo2(rr, fio2, patient, prev_vitals.spo2, dt)
    hemo = compute_hemodynamics(ce_by_drug, patient, spo2, catalog)

    return Vitals(
        hr=hemo.hr,
        sbp=hemo.sbp,
        dbp=hemo.dbp,
        map=hemo.map,
        rr=rr,
        spo2=spo2,
        etco2=end_tidal_co2(rr),
    )
