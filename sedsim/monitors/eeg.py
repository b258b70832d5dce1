from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

import numpy as np
from scipy import signal

from sedsim.core.constants import (
    EEG_BIS_EC50,
    EEG_BIS_GAMMA,
    EEG_BUFFER_SIZE,
    EEG_CHANNELS,
    EEG_DSA_BINS,
    EEG_SAMPLE_RATE,
    EEG_SAMPLES_PER_TICK,
)
from sedsim.core.enums import EEGSedationState
from sedsim.core.utils import clamp, hill_function

# =============================================================================
# PROCESSED EEG MODEL
# =============================================================================
#
# Composite index (BIS-like), sigmoid Emax over a propofol-equivalent sum:
#   total = prop + 15 * midaz + 1.5 * dex + 200 * fent(µg/mL)
#   index = 100 * (1 - H(total; 3.5, 2.5)) + ketamine correction
# Ketamine raises the index paradoxically (Hans et al. Br J Anaesth. 2005).
#
# Raw signal, per channel and sample:
#   - alpha slows and fades, theta/delta emerge with propofol
#     (Purdon et al. PNAS. 2013)
#   - ketamine adds gamma, dexmedetomidine adds spindles, midazolam adds beta
#   - Gaussian noise grows with depth; EMG artifact only when light
#   - burst suppression above propofol 4 µg/mL: each sample is suppressed
#     (x0.05) with probability min(0.8, 0.3 * (prop - 4)), otherwise a burst (x2)
#
# Index and suppression ratio are deterministic; waveforms use the injected
# numpy Generator.
# =============================================================================

FENTANYL_NG_PER_UG = 1000.0

_STATE_THRESHOLDS = (
    (80, EEGSedationState.AWAKE),
    (60, EEGSedationState.LIGHT),
    (40, EEGSedationState.MODERATE),
    (20, EEGSedationState.DEEP),
    (5, EEGSedationState.BURST_SUPPRESSION),
)

# Channel phase multipliers per band: beta, theta, delta, gamma, spindle.
_PHASE_MULT = (1.5, 0.8, 0.5, 2.0, 1.2)


@dataclass
class EEGChannel:
    raw: Deque[float] = field(default_factory=lambda: deque(maxlen=EEG_BUFFER_SIZE))
    dsa: List[float] = field(default_factory=lambda: [0.0] * EEG_DSA_BINS)
    index: float = 100.0
    suppression_ratio: float = 0.0
    sef: float = 25.0
    dominant_freq: float = 10.0


@dataclass
class EEGState:
    channels: Dict[str, EEGChannel] = field(default_factory=dict)
    bis_index: float = 100.0
    sedation_state: EEGSedationState = EEGSedationState.AWAKE
    timestamp: float = 0.0


def compute_bis_index(prop_ce: float, dex_ce: float, ket_ce: float,
                      midaz_ce: float, fent_ce: float) -> int:
    """
    BIS-like index (0-100).

    Args:
        prop_ce, ket_ce, midaz_ce: µg/mL
        dex_ce, fent_ce: ng/mL
    """
    total = (prop_ce
             + 15.0 * midaz_ce
             + 1.5 * dex_ce
             + 200.0 * fent_ce / FENTANYL_NG_PER_UG)
    fraction = hill_function(total, EEG_BIS_EC50, EEG_BIS_GAMMA)
    ket_boost = min(15.0, ket_ce * 8.0) if ket_ce > 0.5 else 0.0
    return int(round(clamp(100.0 * (1.0 - fraction) + ket_boost, 0.0, 100.0)))


def sedation_state(bis_index: float) -> EEGSedationState:
    for threshold, state in _STATE_THRESHOLDS:
        if bis_index > threshold:
            return state
    return EEGSedationState.ISOELECTRIC


def suppression_ratio(prop_ce: float) -> int:
    """Percent of isoelectric epochs; zero at or below propofol 4 µg/mL."""
    if prop_ce <= 4.0:
        return 0
    return int(min(100, round((prop_ce - 4.0) * 25.0)))


def spectral_edge(prop_ce: float, dex_ce: float) -> float:
    """SEF95 (Hz)."""
    return max(2.0, round(25.0 - prop_ce * 3.0 - dex_ce * 2.0, 1))


def dominant_frequency(prop_ce: float) -> float:
    if prop_ce < 1:
        freq = 10.0
    elif prop_ce < 3:
        freq = 6.0 - prop_ce
    else:
        freq = 2.0
    return round(freq, 1)


def age_sensitivity(age: float) -> float:
    if age > 65:
        return 1.2
    if age < 18:
        return 0.85
    return 1.0


def synthesize_samples(prop_ce: float, dex_ce: float, ket_ce: float, midaz_ce: float,
                       age: float, t: np.ndarray, channel_idx: int,
                       rng: np.random.Generator) -> np.ndarray:
    """Raw EEG samples (µV) for one channel at times t (s)."""
    n = t.shape[0]
    prop = prop_ce * age_sensitivity(age)

    alpha_amp = max(0.0, 30.0 * (1.0 - prop * 0.3))
    alpha_freq = 10.0 - prop * 1.5
    beta_amp = max(0.0, 15.0 * (1.0 - prop * 0.5))
    beta_freq = 20.0 + rng.random(n) * 5.0
    theta_amp = min(40.0, (prop - 1.0) * 25.0) if prop > 1 else 0.0
    theta_freq = 6.0 - prop * 0.5
    delta_amp = min(60.0, (prop - 2.0) * 30.0) if prop > 2 else 0.0
    delta_freq = 2.0 - prop * 0.2
    gamma_amp = min(20.0, ket_ce * 15.0) if ket_ce > 0.5 else 0.0
    gamma_freq = 35.0 + rng.random(n) * 10.0
    spindle_amp = min(25.0, dex_ce * 30.0) if dex_ce > 0.3 else 0.0
    midaz_beta = min(20.0, midaz_ce * 100.0) if midaz_ce > 0.05 else 0.0

    phase = channel_idx * 0.3
    two_pi_t = 2.0 * np.pi * t
    beta_p, theta_p, delta_p, gamma_p, spindle_p = (phase * m for m in _PHASE_MULT)

    sig = (alpha_amp * np.sin(two_pi_t * alpha_freq + phase)
           + beta_amp * np.sin(two_pi_t * beta_freq + beta_p)
           + theta_amp * np.sin(two_pi_t * theta_freq + theta_p)
           + delta_amp * np.sin(two_pi_t * delta_freq + delta_p)
           + gamma_amp * np.sin(two_pi_t * gamma_freq + gamma_p)
           + spindle_amp * np.sin(two_pi_t * 13.0 + spindle_p)
           + (beta_amp + midaz_beta) * np.sin(two_pi_t * 18.0 + phase) * 0.3)

    noise = rng.normal(0.0, 3.0 + prop * 2.0, n)
    if prop < 1.5:
        emg = 0.3 * (rng.random(n) - 0.5) * 2.0 * (20.0 + rng.random(n) * 30.0)
    else:
        emg = np.zeros(n)

    if prop > 4:
        burst_prob = min(0.8, (prop - 4.0) * 0.3)
        suppressed = rng.random(n) < burst_prob
        gate = np.where(suppressed, 0.05, 2.0)
    else:
        gate = np.ones(n)

    return (sig + noise + emg) * gate


def density_spectral_array(samples) -> List[float]:
    """
    Power (dB) at 1 Hz bins from 0 to EEG_DSA_BINS - 1 Hz, via Welch's method.
    """
    x = np.asarray(samples, dtype=float)
    if x.size < 2:
        return [0.0] * EEG_DSA_BINS
    freqs, psd = signal.welch(x, fs=EEG_SAMPLE_RATE, nperseg=min(x.size, 256))
    bins = np.arange(EEG_DSA_BINS, dtype=float)
    power = np.interp(bins, freqs, psd)
    return np.maximum(0.0, 10.0 * np.log10(power + 1e-12)).tolist()


def generate_eeg(prop_ce: float, dex_ce: float, ket_ce: float, midaz_ce: float,
                 fent_ce: float, age: float, sim_time: float,
                 previous_state: Optional[EEGState] = None,
                 rng: Optional[np.random.Generator] = None) -> EEGState:
    """
    Produce the next EEG state.

    Appends EEG_SAMPLES_PER_TICK new samples to a copy of each channel's
    buffer (capacity EEG_BUFFER_SIZE); previous_state is left unchanged.

    Args:
        prop_ce, ket_ce, midaz_ce: Effect-site concentrations (µg/mL).
        dex_ce, fent_ce: Effect-site concentrations (ng/mL).
        age: Patient age (years).
        sim_time: Simulation time (s) of the first new sample.
        previous_state: Prior state whose buffers are extended.
        rng: Random source for the waveform; a fresh default_rng() if None.
    """
    if rng is None:
        rng = np.random.default_rng()

    bis = compute_bis_index(prop_ce, dex_ce, ket_ce, midaz_ce, fent_ce)
    sr = suppression_ratio(prop_ce)
    sef = spectral_edge(prop_ce, dex_ce)
    dom = dominant_frequency(prop_ce)
    t = sim_time + np.arange(EEG_SAMPLES_PER_TICK) / EEG_SAMPLE_RATE

    channels = {}
    for idx, name in enumerate(EEG_CHANNELS):
        raw = deque(maxlen=EEG_BUFFER_SIZE)
        if previous_state is not None and name in previous_state.channels:
            raw.extend(previous_state.channels[name].raw)
        raw.extend(synthesize_samples(prop_ce, dex_ce, ket_ce, midaz_ce, age, t, idx, rng).tolist())

        channels[name] = EEGChannel(
            raw=raw,
            dsa=density_spectral_array(raw),
            index=bis,
            suppression_ratio=sr,
            sef=sef,
            dominant_freq=dom,
        )

    return EEGState(
        channels=channels,
        bis_index=bis,
        sedation_state=sedation_state(bis),
        timestamp=sim_time,
    )
