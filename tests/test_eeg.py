"""
Processed EEG Tests

Index and suppression ratio are deterministic functions of concentration;
the raw waveform is stochastic but must stay bounded in size and leave the
previous state untouched.
"""

import numpy as np
import pytest

from sedsim.core.constants import (
    EEG_BUFFER_SIZE,
    EEG_CHANNELS,
    EEG_DSA_BINS,
    EEG_SAMPLES_PER_TICK,
)
from sedsim.core.enums import EEGSedationState as S
from sedsim.monitors.eeg import (
    age_sensitivity,
    compute_bis_index,
    density_spectral_array,
    dominant_frequency,
    generate_eeg,
    sedation_state,
    spectral_edge,
    suppression_ratio,
)


def _eeg(prop=0.0, dex=0.0, ket=0.0, midaz=0.0, fent=0.0, age=40.0, t=0.0,
         previous=None, seed=0):
    return generate_eeg(prop, dex, ket, midaz, fent, age, t,
                        previous_state=previous, rng=np.random.default_rng(seed))


class TestIndex:

    def test_awake_and_ec50(self):
        assert compute_bis_index(0, 0, 0, 0, 0) == 100
        assert compute_bis_index(3.5, 0, 0, 0, 0) == 50

    def test_monotone_and_bounded_in_propofol(self):
        values = [compute_bis_index(p / 2.0, 0, 0, 0, 0) for p in range(0, 41)]
        assert all(0 <= v <= 100 for v in values)
        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_adjuncts_lower_index(self):
        assert compute_bis_index(0, 0, 0, 0.1, 0) < 100
        assert compute_bis_index(0, 1.0, 0, 0, 0) < 100
        # fentanyl is supplied in ng/mL
        assert compute_bis_index(0, 0, 0, 0, 10.0) < 100

    def test_ketamine_raises_index(self):
        assert compute_bis_index(3.5, 0, 1.0, 0, 0) == 58
        assert compute_bis_index(3.5, 0, 5.0, 0, 0) == 65
        assert compute_bis_index(3.5, 0, 0.4, 0, 0) == 50

    @pytest.mark.parametrize("index, state", [
        (100, S.AWAKE), (81, S.AWAKE), (80, S.LIGHT), (61, S.LIGHT),
        (60, S.MODERATE), (41, S.MODERATE), (40, S.DEEP), (21, S.DEEP),
        (20, S.BURST_SUPPRESSION), (6, S.BURST_SUPPRESSION),
        (5, S.ISOELECTRIC), (0, S.ISOELECTRIC),
    ])
    def test_sedation_state(self, index, state):
        assert sedation_state(index) == state


class TestSuppression:

    @pytest.mark.parametrize("prop", [0.0, 2.0, 3.99, 4.0])
    def test_zero_at_or_below_threshold(self, prop):
        assert suppression_ratio(prop) == 0

    def test_rises_above_threshold(self):
        assert suppression_ratio(5.0) == 25
        assert suppression_ratio(6.0) == 50
        assert suppression_ratio(10.0) == 100

    def test_spectral_features(self):
        assert spectral_edge(0, 0) == 25.0
        assert spectral_edge(10.0, 0) == 2.0
        assert dominant_frequency(0.0) == 10.0
        assert dominant_frequency(2.0) == 4.0
        assert dominant_frequency(5.0) == 2.0

    def test_age_sensitivity(self):
        assert age_sensitivity(70) == 1.2
        assert age_sensitivity(16) == 0.85
        assert age_sensitivity(40) == 1.0


class TestWaveform:

    def test_channels_and_first_tick(self):
        state = _eeg(prop=2.0)
        assert tuple(state.channels) == EEG_CHANNELS
        for channel in state.channels.values():
            assert len(channel.raw) == EEG_SAMPLES_PER_TICK
            assert len(channel.dsa) == EEG_DSA_BINS

    def test_buffer_capacity(self):
        state = None
        for t in range(100):
            state = _eeg(prop=2.0, t=float(t), previous=state, seed=t)
        assert all(len(ch.raw) == EEG_BUFFER_SIZE for ch in state.channels.values())

    def test_previous_state_not_mutated(self):
        first = _eeg(prop=1.0)
        before = list(first.channels["Fp1"].raw)
        second = _eeg(prop=1.0, t=1.0, previous=first)
        assert list(first.channels["Fp1"].raw) == before
        assert len(second.channels["Fp1"].raw) == 2 * EEG_SAMPLES_PER_TICK
        assert list(second.channels["Fp1"].raw)[:EEG_SAMPLES_PER_TICK] == before

    def test_index_independent_of_random_stream(self):
        a = _eeg(prop=5.0, seed=1)
        b = _eeg(prop=5.0, seed=2)
        assert a.bis_index == b.bis_index
        assert a.channels["F7"].suppression_ratio == b.channels["F7"].suppression_ratio == 25
        assert list(a.channels["F7"].raw) != list(b.channels["F7"].raw)

    def test_same_seed_reproduces_waveform(self):
        a = _eeg(prop=1.5, ket=1.0, seed=7)
        b = _eeg(prop=1.5, ket=1.0, seed=7)
        assert list(a.channels["Fp2"].raw) == list(b.channels["Fp2"].raw)

    def test_awake_alpha_dominates_spectrum(self):
        state = None
        for t in range(EEG_BUFFER_SIZE // EEG_SAMPLES_PER_TICK):
            state = _eeg(t=float(t), previous=state, seed=t)
        dsa = state.channels["Fp1"].dsa
        assert int(np.argmax(dsa)) in (9, 10, 11)

    def test_dsa_values(self):
        assert density_spectral_array([]) == [0.0] * EEG_DSA_BINS
        dsa = density_spectral_array(np.sin(np.arange(256) / 250.0 * 2 * np.pi * 5.0))
        assert len(dsa) == EEG_DSA_BINS
        assert all(np.isfinite(v) and v >= 0.0 for v in dsa)

    def test_timestamp_and_state(self):
        state = _eeg(prop=3.5, t=42.0)
        assert state.timestamp == 42.0
        assert state.bis_index == 50
        assert state.sedation_state == S.MODERATE
