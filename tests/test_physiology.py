"""
Physiology Engine Tests

Respiratory depression, oxygenation (alveolar gas equation, ODC and
pulse-oximeter lag), hemodynamics and the combined vitals tick.
"""

import math

import numpy as np
import pytest

from sedsim.core.constants import (
    BASELINE_DBP,
    BASELINE_ETCO2,
    BASELINE_HR,
    BASELINE_RR,
    BASELINE_SBP,
    BASELINE_SPO2,
    DBP_MAX,
    DBP_MIN,
    HR_MAX,
    HR_MIN,
    SBP_MAX,
    SBP_MIN,
)
from sedsim.core.exceptions import UnknownDrugError
from sedsim.core.utils import pao2_to_sao2
from sedsim.patient.patient import get_archetype
from sedsim.patient.pk_models import PKState, initial_pk_states
from sedsim.physiology.hemodynamics import compute_hemodynamics
from sedsim.physiology.respiration import (
    arterial_po2,
    displayed_spo2,
    end_tidal_co2,
    oxygen_saturation,
    respiratory_rate,
)
from sedsim.physiology.vitals import calculate_vitals


def _pk_at(**ce):
    """PK states with the given effect-site concentrations."""
    return {key: PKState(c1=value, ce=value) for key, value in ce.items()}


def _settle(pk_states, patient, vitals, fio2, seconds):
    for _ in range(seconds):
        vitals = calculate_vitals(pk_states, patient, vitals, fio2, dt=1.0)
    return vitals


# =============================================================================
# Respiration
# =============================================================================

class TestRespiration:

    def test_baseline_rate(self, patient):
        assert respiratory_rate({}, patient) == BASELINE_RR
        assert end_tidal_co2(BASELINE_RR) == pytest.approx(BASELINE_ETCO2)

    def test_opioid_depression(self, patient):
        # fentanyl at 2x EC50 -> opioid fraction 0.8 -> 60% depression
        assert respiratory_rate({"fentanyl": 4.0}, patient) == pytest.approx(14.0 * 0.4)

    def test_hypnotic_depression_is_milder(self, patient):
        rr_prop = respiratory_rate({"propofol": 3.4}, patient)
        assert rr_prop == pytest.approx(14.0 * (1 - 0.4 * 0.5))
        assert rr_prop > respiratory_rate({"fentanyl": 2.0}, patient)

    def test_opioid_hypnotic_synergy(self, patient):
        """Combined depression exceeds the sum of the separate depressions."""
        drop_o = BASELINE_RR - respiratory_rate({"fentanyl": 1.5}, patient)
        drop_h = BASELINE_RR - respiratory_rate({"propofol": 2.5}, patient)
        drop_both = BASELINE_RR - respiratory_rate({"fentanyl": 1.5, "propofol": 2.5}, patient)
        assert drop_both > drop_o + drop_h

    def test_apnea_floor(self, patient):
        rr = respiratory_rate({"fentanyl": 50.0, "propofol": 10.0}, patient)
        assert rr == 0.0
        assert end_tidal_co2(rr) == 100.0

    def test_sensitivity_scales_depression(self, patient):
        sensitive = patient.with_changes(drug_sensitivity=1.4)
        assert respiratory_rate({"fentanyl": 2.0}, sensitive) < \
            respiratory_rate({"fentanyl": 2.0}, patient)

    def test_naloxone_restores_rate(self, patient):
        depressed = respiratory_rate({"fentanyl": 4.0}, patient)
        reversed_ = respiratory_rate({"fentanyl": 4.0, "naloxone": 0.05}, patient)
        assert reversed_ > depressed

    def test_jitter_only_with_rng(self, patient):
        ce = {"propofol": 2.0}
        assert respiratory_rate(ce, patient) == respiratory_rate(ce, patient)
        rng = np.random.default_rng(1)
        jittered = [respiratory_rate(ce, patient, rng=rng) for _ in range(50)]
        base = respiratory_rate(ce, patient)
        assert len(set(jittered)) > 1
        assert all(abs(rr - base) < 2.0 for rr in jittered)

    def test_unknown_drug_raises(self, patient):
        with pytest.raises(UnknownDrugError):
            respiratory_rate({"etomidate": 1.0}, patient)


class TestOxygenation:

    def test_room_air_saturation(self, patient):
        pao2 = arterial_po2(BASELINE_RR, 0.21, patient)
        # 0.21 * 713 - 40 / 0.8
        assert pao2 == pytest.approx(0.21 * 713 - 50.0)
        assert 96.5 < pao2_to_sao2(pao2) < 98.0

    def test_oximeter_reads_baseline_on_room_air(self, patient):
        assert oxygen_saturation(BASELINE_RR, 0.21, patient) == pytest.approx(BASELINE_SPO2)
        assert oxygen_saturation(BASELINE_RR, 1.0, patient) == 100.0
        # Ordering of the raw curve is kept
        assert oxygen_saturation(BASELINE_RR, 0.21, get_archetype("copd")) < BASELINE_SPO2
        assert oxygen_saturation(7.0, 0.21, patient) < oxygen_saturation(BASELINE_RR, 0.21, patient)

    def test_supplemental_oxygen(self, patient):
        assert pao2_to_sao2(arterial_po2(BASELINE_RR, 1.0, patient)) > 99.5
        assert pao2_to_sao2(0.0) == 0.0

    def test_vq_derating(self, patient):
        healthy = arterial_po2(BASELINE_RR, 0.21, patient)
        assert arterial_po2(BASELINE_RR, 0.21, get_archetype("obese_osa")) < healthy
        assert arterial_po2(BASELINE_RR, 0.21, get_archetype("copd")) < healthy

    def test_hypoventilation_lowers_po2(self, patient):
        values = [arterial_po2(rr, 0.21, patient) for rr in (14, 10, 6, 2, 0)]
        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_spo2_display_lag(self, patient):
        true_apnea = oxygen_saturation(0.0, 0.21, patient)
        spo2 = displayed_spo2(0.0, 0.21, patient, previous_spo2=99.0, dt=1.0)
        assert 95.0 < spo2 < 99.0

        for _ in range(29):
            spo2 = displayed_spo2(0.0, 0.21, patient, spo2, dt=1.0)
        # One time constant: 63% of the way to the true value
        expected = true_apnea + (99.0 - true_apnea) * math.exp(-1.0)
        assert spo2 == pytest.approx(expected, rel=1e-9)

    def test_zero_dt_holds_display(self, patient):
        assert displayed_spo2(0.0, 0.21, patient, previous_spo2=97.0, dt=0.0) == 97.0


# =============================================================================
# Hemodynamics
# =============================================================================

class TestHemodynamics:

    def test_baseline(self, patient):
        hemo = compute_hemodynamics({}, patient, spo2=98.0)
        assert hemo.hr == pytest.approx(BASELINE_HR)
        assert hemo.sbp == pytest.approx(BASELINE_SBP)
        assert hemo.dbp == pytest.approx(BASELINE_DBP)

    def test_propofol_hypotension_with_baroreflex(self, patient):
        hemo = compute_hemodynamics({"propofol": 3.4}, patient, spo2=98.0)
        assert hemo.sbp == pytest.approx(120.0 * 0.85)
        assert hemo.dbp == pytest.approx(80.0 * 0.875)
        map_deficit = (120.0 + 160.0) / 3.0 - hemo.map
        assert hemo.hr == pytest.approx(75.0 * 0.925 + 0.4 * map_deficit)

    def test_ketamine_sympathomimetic(self, patient):
        hemo = compute_hemodynamics({"ketamine": 1.5}, patient, spo2=98.0)
        assert hemo.hr == pytest.approx(75.0 + 17.5)
        assert hemo.sbp == pytest.approx(132.5)
        assert hemo.dbp == pytest.approx(86.0)

    def test_opioid_bradycardia(self, patient):
        hemo = compute_hemodynamics({"fentanyl": 4.0}, patient, spo2=98.0)
        assert hemo.hr == pytest.approx(75.0 * (1 - 0.2 * 0.8))

    def test_hypoxic_tachycardia(self, patient):
        hemo = compute_hemodynamics({}, patient, spo2=85.0)
        assert hemo.hr == pytest.approx(75.0 + 1.5 * 5.0)

    def test_pre_arrest_override(self, patient):
        hemo = compute_hemodynamics({}, patient, spo2=50.0)
        assert hemo.hr == pytest.approx(32.0)
        assert hemo.sbp == pytest.approx(80.0)

        hemo = compute_hemodynamics({}, patient, spo2=0.0)
        assert hemo.hr == HR_MIN
        assert hemo.sbp == SBP_MIN
        assert hemo.dbp == DBP_MIN

    def test_sensitivity_deepens_hypotension(self, patient):
        sensitive = patient.with_changes(drug_sensitivity=1.4)
        assert compute_hemodynamics({"propofol": 3.4}, sensitive, 98.0).sbp < \
            compute_hemodynamics({"propofol": 3.4}, patient, 98.0).sbp

    @pytest.mark.parametrize("spo2", [0.0, 30.0, 60.0, 80.0, 99.0])
    @pytest.mark.parametrize("ce", [
        {},
        {"propofol": 50.0, "dexmedetomidine": 20.0},
        {"ketamine": 100.0},
        {"fentanyl": 100.0, "propofol": 20.0, "bupivacaine": 30.0},
    ])
    def test_bounds(self, patient, ce, spo2):
        hemo = compute_hemodynamics(ce, patient, spo2)
        assert HR_MIN <= hemo.hr <= HR_MAX
        assert SBP_MIN <= hemo.sbp <= SBP_MAX
        assert DBP_MIN <= hemo.dbp <= DBP_MAX


# =============================================================================
# Vitals tick
# =============================================================================

class TestVitals:

    def test_drug_free_convergence(self, patient, baseline_vitals):
        vitals = _settle(initial_pk_states(), patient, baseline_vitals, 0.21, 300)
        assert vitals.hr == pytest.approx(BASELINE_HR)
        assert vitals.sbp == pytest.approx(BASELINE_SBP)
        assert vitals.dbp == pytest.approx(BASELINE_DBP)
        assert vitals.rr == pytest.approx(BASELINE_RR)
        assert vitals.etco2 == pytest.approx(BASELINE_ETCO2)
        assert vitals.spo2 == pytest.approx(BASELINE_SPO2, abs=0.5)

    def test_oxygen_reaches_baseline_saturation(self, patient, baseline_vitals):
        vitals = _settle(initial_pk_states(), patient, baseline_vitals, 1.0, 300)
        assert vitals.spo2 > BASELINE_SPO2

    def test_deterministic_without_rng(self, patient, baseline_vitals):
        pk = _pk_at(propofol=2.5, fentanyl=1.0)
        a = calculate_vitals(pk, patient, baseline_vitals, 0.21)
        b = calculate_vitals(pk, patient, baseline_vitals, 0.21)
        assert a == b
        assert a.rhythm is None

    def test_apnea_desaturates(self, patient, baseline_vitals):
        pk = _pk_at(fentanyl=50.0, propofol=10.0)
        vitals = _settle(pk, patient, baseline_vitals, 0.21, 60)
        assert vitals.rr == 0.0
        assert vitals.etco2 == 100.0
        assert vitals.spo2 < 60.0
