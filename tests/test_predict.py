"""
Forward Predictor (ghost dose) Tests
"""

import copy

import pytest

from sedsim.core.enums import SedationLevel
from sedsim.core.exceptions import InvalidTimeStepError, UnknownDrugError
from sedsim.core.predict import GhostDose, predict_forward
from sedsim.core.state import InfusionState
from sedsim.patient.drugs import DRUG_CATALOG
from sedsim.patient.pk_models import PKState, initial_pk_states, step_pk


@pytest.fixture
def live_pk():
    states = initial_pk_states()
    states["propofol"] = PKState(c1=3.0, c2=1.0, c3=0.2, ce=2.0)
    states["fentanyl"] = PKState(c1=1.0, c2=0.5, c3=0.1, ce=0.8)
    return states


@pytest.fixture
def live_infusions():
    return {"propofol": InfusionState(rate=6.0, running=True)}


class TestPredictForward:

    def test_default_offsets(self, patient, baseline_vitals, live_pk, live_infusions):
        snaps = predict_forward(live_pk, live_infusions, patient, 0.21, baseline_vitals)
        assert [s.seconds_ahead for s in snaps] == [30, 60, 120, 300, 600]

    def test_offsets_sorted_and_deduplicated(self, patient, baseline_vitals):
        snaps = predict_forward({}, {}, patient, 0.21, baseline_vitals, offsets=(60, 30, 30, 29.5))
        assert [s.seconds_ahead for s in snaps] == [30, 60]

    def test_empty_offsets(self, patient, baseline_vitals):
        assert predict_forward({}, {}, patient, 0.21, baseline_vitals, offsets=()) == []

    def test_non_positive_offset_raises(self, patient, baseline_vitals):
        with pytest.raises(InvalidTimeStepError):
            predict_forward({}, {}, patient, 0.21, baseline_vitals, offsets=(0, 30))

    def test_idempotent(self, patient, baseline_vitals, live_pk, live_infusions):
        ghost = GhostDose("propofol", 40.0)
        a = predict_forward(live_pk, live_infusions, patient, 0.21, baseline_vitals,
                            hypothetical_dose=ghost)
        b = predict_forward(live_pk, live_infusions, patient, 0.21, baseline_vitals,
                            hypothetical_dose=ghost)
        assert a == b

    def test_inputs_untouched(self, patient, baseline_vitals, live_pk, live_infusions):
        pk_before = copy.deepcopy(live_pk)
        inf_before = copy.deepcopy(live_infusions)
        predict_forward(live_pk, live_infusions, patient, 0.21, baseline_vitals,
                        hypothetical_dose=GhostDose("midazolam", 2.0))
        assert live_pk == pk_before
        assert live_infusions == inf_before
        assert "midazolam" in live_pk and live_pk["midazolam"] == PKState()

    def test_ghost_dose_enters_first_step(self, patient, baseline_vitals):
        drug = DRUG_CATALOG["propofol"]
        expected = step_pk(step_pk(PKState(), drug, 100.0, 0.0, 1.0), drug, 0.0, 0.0, 1.0)
        snaps = predict_forward({}, {}, patient, 0.21, baseline_vitals, offsets=(2,),
                                hypothetical_dose=GhostDose("propofol", 100.0))
        assert snaps[0].ce_by_drug == {"propofol": pytest.approx(expected.ce)}

    def test_ghost_dose_deepens_sedation(self, patient, baseline_vitals):
        pk = initial_pk_states()
        without = predict_forward(pk, {}, patient, 0.21, baseline_vitals)
        with_dose = predict_forward(pk, {}, patient, 0.21, baseline_vitals,
                                    hypothetical_dose=GhostDose("propofol", 140.0))
        assert all(s.combined_effect == 0.0 for s in without)
        assert all(s.moass == SedationLevel.AWAKE for s in without)
        peak = max(with_dose, key=lambda s: s.combined_effect)
        assert peak.combined_effect > 0.3
        assert peak.moass < SedationLevel.AWAKE
        assert peak.effect_by_drug["propofol"] > 0.0

    def test_running_infusion_is_continued(self, patient, baseline_vitals):
        pk = {"propofol": PKState()}
        running = predict_forward(pk, {"propofol": InfusionState(100.0, True)}, patient,
                                  0.21, baseline_vitals, offsets=(60,))
        stopped = predict_forward(pk, {"propofol": InfusionState(100.0, False)}, patient,
                                  0.21, baseline_vitals, offsets=(60,))
        # Plain per-minute rates are accepted too
        plain = predict_forward(pk, {"propofol": 100.0}, patient,
                                0.21, baseline_vitals, offsets=(60,))
        assert running[0].ce_by_drug["propofol"] > 0.0
        assert running[0].ce_by_drug["propofol"] == pytest.approx(plain[0].ce_by_drug["propofol"])
        assert stopped[0].ce_by_drug["propofol"] == 0.0

    def test_vitals_follow_oxygenation(self, patient, baseline_vitals):
        room_air = predict_forward({}, {}, patient, 0.21, baseline_vitals, offsets=(600,))
        oxygen = predict_forward({}, {}, patient, 1.0, baseline_vitals, offsets=(600,))
        assert room_air[0].spo2 < oxygen[0].spo2
        assert room_air[0].rr == pytest.approx(14.0)

    def test_unknown_ghost_drug(self, patient, baseline_vitals):
        with pytest.raises(UnknownDrugError):
            predict_forward({}, {}, patient, 0.21, baseline_vitals,
                            hypothetical_dose=GhostDose("etomidate", 10.0))
