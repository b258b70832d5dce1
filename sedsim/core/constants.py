"""
Physiological and Numerical Constants for SedSim.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

# Baseline adult vitals (used in state.py, hemodynamics.py, respiration.py).
BASELINE_HR = 75.0  # bpm
BASELINE_SBP = 120.0  # mmHg
BASELINE_DBP = 80.0  # mmHg
BASELINE_RR = 14.0  # breaths/min
BASELINE_SPO2 = 99.0  # %
BASELINE_ETCO2 = 38.0  # mmHg
BASELINE_PACO2 = 40.0  # mmHg

# Physiological bounds (used in hemodynamics.py).
HR_MIN = 20.0
HR_MAX = 220.0
SBP_MIN = 30.0
SBP_MAX = 260.0
DBP_MIN = 15.0
DBP_MAX = 160.0

# Alveolar gas equation (used in respiration.py).
# PAO2 = FiO2 * (Patm - PH2O) - PaCO2 / RQ
ATMOSPHERIC_PRESSURE = 760.0  # mmHg, sea level
WATER_VAPOR_PRESSURE = 47.0  # mmHg at 37 C
RESPIRATORY_QUOTIENT = 0.8
PACO2_MAX = 100.0  # mmHg, ceiling for severe hypoventilation
MIN_VENTILATION_RATIO = 0.1

# Oxyhemoglobin dissociation curve (Hill fit).
# Reference: Severinghaus. J Appl Physiol. 1979 (P50 26.6 mmHg).
ODC_P50 = 26.6  # mmHg
ODC_HILL_N = 2.7

# Pulse oximeter display lag: first-order with 30 s time constant.
SPO2_LAG_TAU = 30.0  # seconds

# Pulse oximeter calibration: a drug-free patient on room air at baseline
# ventilation reads BASELINE_SPO2.
ROOM_AIR_FIO2 = 0.21

# Pharmacodynamic constants (used in utils.py hill_function).

# Above this exponent ratio^gamma overflows a float64.
HILL_LOG_OVERFLOW = 700.0

# Opioid contribution to sedation (ceiling) and synergy with hypnotics.
# Opioids alone produce limited sedation; their main effect on depth is
# to lower the hypnotic EC50 (Bouillon et al. Anesthesiology. 2004).
OPIOID_SEDATION_WEIGHT = 0.22
OPIOID_SEDATION_CAP = 0.22
OPIOID_POTENTIATION = 0.35

# MOASS effect thresholds, inclusive-low (effect < threshold -> level).
MOASS_THRESHOLDS = (
    (0.10, 5),
    (0.25, 4),
    (0.45, 3),
    (0.65, 2),
    (0.85, 1),
)

# Cardiac arrest cascade (used in cardiac_rhythm.py), seconds since onset.
ARREST_SPO2_THRESHOLD = 40.0  # %
ARREST_MAP_THRESHOLD = 30.0  # mmHg
ARREST_PEA_AFTER = 20.0
ARREST_VF_AFTER = 60.0
ARREST_ASYSTOLE_AFTER = 120.0

# EEG model (used in eeg.py).
EEG_CHANNELS = ("Fp1", "Fp2", "F7", "F8")
EEG_BUFFER_SIZE = 512
EEG_SAMPLE_RATE = 250.0  # Hz (4 ms sample spacing)
EEG_SAMPLES_PER_TICK = 8
EEG_DSA_BINS = 30
EEG_BIS_EC50 = 3.5
EEG_BIS_GAMMA = 2.5

# Default simulation timestep (seconds).
DEFAULT_DT = 1.0

# Forward predictor sample horizons (seconds ahead).
PREDICTION_OFFSETS = (30, 60, 120, 300, 600)
