import copy
import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from sedsim.core.constants import PREDICTION_OFFSETS
from sedsim.core.drug_api import DrugControllerMixin
from sedsim.core.enums import CardiacRhythm
from sedsim.core.exceptions import InvalidTimeStepError
from sedsim.core.predict import GhostDose, PredictionSnapshot, predict_forward
from sedsim.core.recorder import DataRecorder, states_to_frame
from sedsim.core.state import BASELINE_VITALS, InfusionState, SimulationConfig, SimulationState
from sedsim.core.step_helpers import StepHelpersMixin
from sedsim.monitors.alarms import AlarmSystem
from sedsim.monitors.eeg import EEGState
from sedsim.patient.digital_twin import create_digital_twin
from sedsim.patient.drugs import DRUG_CATALOG, DrugCatalog
from sedsim.patient.patient import Patient, get_archetype
from sedsim.patient.pd_models import level_label
from sedsim.patient.pk_models import PKState, initial_pk_states
from sedsim.physiology.cardiac_rhythm import RhythmResult

logger = logging.getLogger(__name__)


class SimulationEngine(StepHelpersMixin, DrugControllerMixin):
    """
    Sedation session orchestrator.

    Owns the single live state (PK by drug, infusions, vitals, rhythm timer,
    EEG buffers, digital twin) and advances it by a caller-supplied dt.
    Ticks must be serialised: SpO2 lag and the arrest timer feed back from
    one tick to the next.
    """
    def __init__(self, patient: Optional[Patient] = None,
                 config: Optional[SimulationConfig] = None,
                 catalog: DrugCatalog = DRUG_CATALOG):
        self.config = config or SimulationConfig()
        self.catalog = catalog
        self.rng = np.random.default_rng(self.config.rng_seed)
        self.recorder: Optional[DataRecorder] = None
        self.output_buffer = deque(maxlen=self.config.history_length)
        self.fio2 = self.config.fio2
        self._reset(patient or Patient())

    def _reset(self, patient: Patient):
        """Zero every patient-dependent state."""
        self.patient = patient
        self.time = 0.0
        self.pk_states: Dict[str, PKState] = initial_pk_states(self.catalog)
        self.infusions: Dict[str, InfusionState] = {}
        self.pending_boluses: Dict[str, float] = {}
        self.vitals = BASELINE_VITALS
        self.rhythm = RhythmResult(CardiacRhythm.NORMAL_SINUS, 100.0, 160.0, 400.0)
        self.effect = 0.0
        self.level = 5
        self.eeg: Optional[EEGState] = None
        self.twin = create_digital_twin(patient)
        self.alarm_system = AlarmSystem(self.config.alarm_thresholds,
                                        self.config.alarm_delays, self.config.dt)
        self.alarms: List[str] = []
        self.output_buffer.clear()
        self.state = self._snapshot()

    def select_patient(self, patient: Union[Patient, str]):
        """Switch patient (record or archetype key) and reset the session."""
        if isinstance(patient, str):
            patient = get_archetype(patient)
        logger.info("Patient selected: %.0f y %s, %.0f kg, ASA %d, sensitivity %.2f",
                    patient.age, patient.sex, patient.weight, patient.asa,
                    patient.drug_sensitivity)
        self._reset(patient)

    def step(self, dt: Optional[float] = None) -> SimulationState:
        """
        Advance the session by dt seconds (config.dt if omitted).

        A zero dt is a no-op; a negative dt raises InvalidTimeStepError.
        """
        dt = self.config.dt if dt is None else dt
        if dt < 0:
            raise InvalidTimeStepError(f"dt must be >= 0, got {dt}")
        if dt == 0:
            return self.get_latest_state()

        self.time += dt
        self._step_pk(dt)
        self._step_pd()
        self._step_physiology(dt)
        self._step_rhythm()
        self._step_eeg()
        self._step_twin(dt)
        self._step_alarms(dt)

        self.state = self._snapshot()
        self.output_buffer.append(self.state)
        if self.recorder is not None:
            self.recorder.log(self.state)
        logger.debug("t=%.0fs effect=%.2f HR=%.0f SpO2=%.1f RR=%.1f",
                     self.time, self.effect, self.vitals.hr, self.vitals.spo2, self.vitals.rr)
        return self.get_latest_state()

    def run(self, duration: float, dt: Optional[float] = None) -> SimulationState:
        """Advance by duration seconds in steps of dt."""
        dt = self.config.dt if dt is None else dt
        if dt <= 0:
            raise InvalidTimeStepError(f"run() needs dt > 0, got {dt}")
        steps = int(round(duration / dt))
        for _ in range(steps):
            self.step(dt)
        return self.get_latest_state()

    def _snapshot(self) -> SimulationState:
        v = self.vitals
        outcome = self.twin.outcome
        return SimulationState(
            time=self.time,
            hr=v.hr, sbp=v.sbp, dbp=v.dbp, map=v.map, rr=v.rr,
            spo2=v.spo2, etco2=v.etco2, fio2=self.fio2,
            rhythm=self.rhythm.rhythm.value,
            qrs_width=self.rhythm.qrs_width,
            pr_interval=self.rhythm.pr_interval,
            qt_interval=self.rhythm.qt_interval,
            arrest_started_at=self.rhythm.arrest_started_at,
            effect=self.effect,
            moass=int(self.level),
            moass_label=level_label(self.level),
            bis=self.eeg.bis_index if self.eeg else 100.0,
            suppression_ratio=self.eeg.channels["Fp1"].suppression_ratio if self.eeg else 0.0,
            eeg_state=self.eeg.sedation_state.value if self.eeg else "awake",
            hypotension_risk=outcome.hypotension_risk,
            desaturation_risk=outcome.desaturation_risk,
            awareness_risk=outcome.awareness_risk,
            arrhythmia_risk=outcome.arrhythmia_risk,
            time_to_emergence=outcome.time_to_emergence,
            ce={key: s.ce for key, s in self.pk_states.items()},
            cp={key: s.c1 for key, s in self.pk_states.items()},
            infusions={key: inf.effective_rate for key, inf in self.infusions.items()},
            alarms=list(self.alarms),
        )

    def get_latest_state(self) -> SimulationState:
        """Return the most recent state snapshot."""
        return copy.deepcopy(self.state)

    def predict(self, offsets: Sequence[float] = PREDICTION_OFFSETS,
                drug_key: Optional[str] = None, dose: float = 0.0) -> List[PredictionSnapshot]:
        """Ghost-dose preview from the live state; the session is not modified."""
        ghost = GhostDose(drug_key, dose) if drug_key is not None else None
        return predict_forward(self.pk_states, self.infusions, self.patient, self.fio2,
                               self.vitals, offsets, ghost, self.catalog)

    def history(self) -> List[SimulationState]:
        return list(self.output_buffer)

    def history_frame(self) -> pd.DataFrame:
        """Trend history as a pandas DataFrame indexed by time (s)."""
        return states_to_frame(self.output_buffer)

    def start_recording(self, output_dir: str = "recordings", sample_interval_sec: float = 1.0):
        self.stop_recording()
        self.recorder = DataRecorder(output_dir, sample_interval_sec)
        self.recorder.start()

    def stop_recording(self):
        if self.recorder is not None:
            self.recorder.stop()
            self.recorder = None
