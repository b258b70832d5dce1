"""
Digital Twin / Risk Engine Tests
"""

import pytest

from sedsim.core.enums import CardiacRhythm
from sedsim.patient.digital_twin import (
    PredictedOutcome,
    create_digital_twin,
    physiology_modifiers,
    sedation_pressure,
    update_twin,
)
from sedsim.patient.patient import get_archetype
from sedsim.patient.pk_models import PKState, initial_pk_states


def pk(**ce):
    states = initial_pk_states()
    states.update({key: PKState(c1=value, ce=value) for key, value in ce.items()})
    return states


class TestModifiers:

    def test_healthy(self, patient):
        mods = physiology_modifiers(patient)
        assert mods.cardiac_output == 1.0
        assert mods.hepatic_clearance == 1.0
        assert mods.respiratory_drive == 1.0
        assert mods.brain_sensitivity == 1.0

    def test_elderly(self):
        mods = physiology_modifiers(get_archetype("elderly"))
        assert mods.cardiac_output == pytest.approx(0.8)
        assert mods.hepatic_clearance == pytest.approx(0.8)
        assert mods.renal_clearance == pytest.approx(0.8)
        assert mods.brain_sensitivity == pytest.approx(1.4 * 1.3)

    def test_obese_osa(self):
        mods = physiology_modifiers(get_archetype("obese_osa"))
        assert mods.cardiac_output == pytest.approx(0.85)
        assert mods.respiratory_drive == pytest.approx(0.7)

    def test_copd_hepatic_adolescent(self):
        assert physiology_modifiers(get_archetype("copd")).respiratory_drive == 0.75
        assert physiology_modifiers(get_archetype("hepatic")).hepatic_clearance == 0.5
        assert physiology_modifiers(get_archetype("adolescent")).cardiac_output == \
            pytest.approx(1.2)

    def test_twin_records_patient(self):
        twin = create_digital_twin(get_archetype("obese_osa"))
        assert twin.comorbidities == ("OSA",)
        assert twin.sensitivity_multiplier == 1.1
        assert twin.outcome == PredictedOutcome()


class TestRiskScores:

    def test_drug_free(self, patient):
        twin = update_twin(create_digital_twin(patient), pk(), hr=75, spo2=98, dt=1.0)
        out = twin.outcome
        assert out.hypotension_risk == 0
        assert out.desaturation_risk == 0
        assert out.arrhythmia_risk == 0
        assert out.awareness_risk == 60
        assert out.time_to_emergence == 0.0

    def test_osa_baseline_desaturation_risk(self):
        twin = create_digital_twin(get_archetype("obese_osa"))
        out = update_twin(twin, pk(), hr=75, spo2=98, dt=1.0).outcome
        # 0.6 * (1 - 0.7) * 40
        assert out.desaturation_risk == 7

    def test_blended_scores(self, patient):
        twin = update_twin(create_digital_twin(patient), pk(propofol=4.0),
                           hr=80, spo2=88, dt=1.0, sbp=80)
        out = twin.outcome
        assert out.hypotension_risk == 30
        assert out.desaturation_risk == 24
        assert out.arrhythmia_risk == 6
        assert out.awareness_risk == 0
        assert out.time_to_emergence == pytest.approx(48.0)

    def test_terms_clamped_before_blending(self, patient):
        """A saturated concentration term cannot crowd out the vitals term."""
        out = update_twin(create_digital_twin(patient), pk(fentanyl=20.0),
                          hr=75, spo2=98, dt=1.0).outcome
        assert out.desaturation_risk == 60

    def test_scores_bounded(self, patient):
        out = update_twin(create_digital_twin(patient),
                          pk(propofol=20.0, fentanyl=30.0, dexmedetomidine=5.0),
                          hr=30, spo2=20, dt=1.0, sbp=40).outcome
        for score in (out.hypotension_risk, out.desaturation_risk,
                      out.awareness_risk, out.arrhythmia_risk):
            assert 0 <= score <= 100

    def test_awareness_and_emergence(self, patient):
        out = update_twin(create_digital_twin(patient), pk(propofol=1.0),
                          hr=75, spo2=98, dt=1.0).outcome
        assert out.awareness_risk == 20
        assert out.time_to_emergence == pytest.approx(12.0)

        hepatic = create_digital_twin(get_archetype("hepatic"))
        slow = update_twin(hepatic, pk(propofol=1.0), hr=75, spo2=98, dt=1.0).outcome
        assert slow.time_to_emergence == pytest.approx(24.0)

    def test_rhythm_guidance(self, patient):
        twin = update_twin(create_digital_twin(patient), pk(), hr=0, spo2=30, dt=1.0,
                           rhythm=CardiacRhythm.VENTRICULAR_FIBRILLATION)
        assert twin.outcome.predicted_rhythm == CardiacRhythm.VENTRICULAR_FIBRILLATION
        assert twin.outcome.acls_guidance[0].startswith("Shockable")

    def test_update_returns_new_twin(self, patient):
        twin = create_digital_twin(patient)
        updated = update_twin(twin, pk(propofol=2.0), hr=75, spo2=98, dt=1.0)
        assert twin.outcome == PredictedOutcome()
        assert updated.current_ce["propofol"] == 2.0
        assert updated.modifiers is twin.modifiers

    def test_sedation_pressure(self):
        assert sedation_pressure({}) == 0.0
        assert sedation_pressure({"propofol": 1.0, "midazolam": 1.0, "ketamine": 1.0,
                                  "dexmedetomidine": 1.0}) == pytest.approx(3.1)
