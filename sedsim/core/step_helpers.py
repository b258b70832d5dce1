"""
Step Helper Methods Mixin for SimulationEngine.

One private _step_* method per stage of a tick, in control-flow order:
PK -> PD -> physiology -> rhythm -> EEG -> digital twin -> alarms.
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from sedsim.monitors.alarms import alarm_messages
from sedsim.monitors.eeg import generate_eeg
from sedsim.patient.digital_twin import update_twin
from sedsim.patient.pd_models import combined_effect, effect_to_level
from sedsim.patient.pk_models import step_pk
from sedsim.physiology.cardiac_rhythm import determine_rhythm, rhythm_label
from sedsim.physiology.vitals import calculate_vitals

if TYPE_CHECKING:
    from .engine import SimulationEngine

logger = logging.getLogger(__name__)


class StepHelpersMixin:

    def _step_pk(self: "SimulationEngine", dt: float):
        """Advance every drug; queued boluses enter on this step."""
        boluses, self.pending_boluses = self.pending_boluses, {}
        new_states = {}
        for key, state in self.pk_states.items():
            infusion = self.infusions.get(key)
            rate = infusion.effective_rate if infusion else 0.0
            new_states[key] = step_pk(state, self.catalog[key], boluses.get(key, 0.0), rate, dt)
        self.pk_states = new_states

    def _step_pd(self: "SimulationEngine"):
        ce_by_drug = {key: state.ce for key, state in self.pk_states.items()}
        self.effect = combined_effect(ce_by_drug, self.catalog)
        self.level = effect_to_level(self.effect)

    def _step_physiology(self: "SimulationEngine", dt: float):
        rng = self.rng if self.config.vitals_jitter else None
        self.vitals = calculate_vitals(self.pk_states, self.patient, self.vitals, self.fio2,
                                       dt=dt, rng=rng, catalog=self.catalog)

    def _step_rhythm(self: "SimulationEngine"):
        prev = self.rhythm.rhythm
        result = determine_rhythm(self.vitals, self.pk_states, self.patient, prev,
                                  self.time, self.rhythm.arrest_started_at)
        if result.arrest_started_at is not None and self.rhythm.arrest_started_at is None:
            logger.warning("Arrest conditions at t=%.0fs (SpO2 %.0f%%, MAP %.0f)",
                           self.time, self.vitals.spo2, self.vitals.map)
        if result.rhythm != prev:
            logger.warning("Rhythm change at t=%.0fs: %s -> %s", self.time,
                           rhythm_label(prev), rhythm_label(result.rhythm))
        self.rhythm = result
        self.vitals = replace(self.vitals, rhythm=result.rhythm, qrs_width=result.qrs_width,
                              pr_interval=result.pr_interval, qt_interval=result.qt_interval)

    def _step_eeg(self: "SimulationEngine"):
        if not self.config.eeg_enabled:
            return
        ce = {key: state.ce for key, state in self.pk_states.items()}
        self.eeg = generate_eeg(
            ce.get("propofol", 0.0),
            ce.get("dexmedetomidine", 0.0),
            ce.get("ketamine", 0.0),
            ce.get("midazolam", 0.0),
            ce.get("fentanyl", 0.0),
            self.patient.age,
            self.time,
            previous_state=self.eeg,
            rng=self.rng,
        )

    def _step_twin(self: "SimulationEngine", dt: float):
        self.twin = update_twin(self.twin, self.pk_states, self.vitals.hr, self.vitals.spo2,
                                dt, self.rhythm.rhythm, self.vitals.sbp)

    def _step_alarms(self: "SimulationEngine", dt: float):
        v = self.vitals
        active = self.alarm_system.update(
            {'HR': v.hr, 'SBP': v.sbp, 'SpO2': v.spo2, 'RR': v.rr, 'EtCO2': v.etco2}, dt
        )
        messages = alarm_messages(active)
        for message in messages:
            if message not in self.alarms:
                logger.warning("ALARM %s at t=%.0fs", message, self.time)
        self.alarms = messages
