from enum import Enum, IntEnum


class CardiacRhythm(Enum):
    """Cardiac rhythm tags produced by the rhythm classifier."""
    NORMAL_SINUS = "normal_sinus"
    SINUS_BRADYCARDIA = "sinus_bradycardia"
    SINUS_TACHYCARDIA = "sinus_tachycardia"
    SVT = "svt"
    ATRIAL_FIBRILLATION = "atrial_fibrillation"
    ATRIAL_FLUTTER = "atrial_flutter"
    JUNCTIONAL = "junctional"
    VENTRICULAR_TACHYCARDIA = "ventricular_tachycardia"
    POLYMORPHIC_VT = "polymorphic_vt"
    WIDE_COMPLEX_UNKNOWN = "wide_complex_unknown"
    FIRST_DEGREE_AV_BLOCK = "first_degree_av_block"
    SECOND_DEGREE_TYPE1 = "second_degree_type1"
    SECOND_DEGREE_TYPE2 = "second_degree_type2"
    THIRD_DEGREE_AV_BLOCK = "third_degree_av_block"
    VENTRICULAR_FIBRILLATION = "ventricular_fibrillation"
    ASYSTOLE = "asystole"
    PEA = "pea"


class SedationLevel(IntEnum):
    """Modified Observer's Assessment of Alertness/Sedation (MOASS)."""
    UNRESPONSIVE = 0
    GENERAL_ANESTHESIA = 1
    DEEP = 2
    MODERATE = 3
    DROWSY = 4
    AWAKE = 5


class EEGSedationState(Enum):
    """Processed-EEG depth category."""
    AWAKE = "awake"
    LIGHT = "light"
    MODERATE = "moderate"
    DEEP = "deep"
    BURST_SUPPRESSION = "burst_suppression"
    ISOELECTRIC = "isoelectric"
