from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sedsim.core.constants import (
    BASELINE_DBP,
    BASELINE_ETCO2,
    BASELINE_HR,
    BASELINE_RR,
    BASELINE_SBP,
    BASELINE_SPO2,
    DEFAULT_DT,
    ROOM_AIR_FIO2,
)
from sedsim.core.enums import CardiacRhythm
from sedsim.core.exceptions import InvalidTimeStepError


@dataclass
class SimulationConfig:
    """Configuration for the simulation engine."""
    dt: float = DEFAULT_DT  # Time step in seconds
    fio2: float = ROOM_AIR_FIO2

    # Runtime settings.
    rng_seed: Optional[int] = None
    vitals_jitter: bool = True   # Gaussian RR jitter (off = fully deterministic vitals)
    eeg_enabled: bool = True
    history_length: int = 3600   # Snapshots kept in the trend buffer

    # Alarm overrides; None -> AlarmSystem defaults.
    alarm_thresholds: Optional[Dict[str, float]] = None
    alarm_delays: Optional[Dict[str, float]] = None

    def __post_init__(self):
        if not self.dt > 0:
            raise InvalidTimeStepError(f"SimulationConfig.dt must be > 0, got {self.dt}")


@dataclass(frozen=True, slots=True)
class Vitals:
    """Vital signs for one tick, with optional rhythm annotation."""
    hr: float
    sbp: float
    dbp: float
    map: float
    rr: float
    spo2: float
    etco2: float
    rhythm: Optional[CardiacRhythm] = None
    qrs_width: Optional[float] = None   # ms
    pr_interval: Optional[float] = None  # ms
    qt_interval: Optional[float] = None  # ms


BASELINE_VITALS = Vitals(
    hr=BASELINE_HR,
    sbp=BASELINE_SBP,
    dbp=BASELINE_DBP,
    map=(BASELINE_SBP + 2.0 * BASELINE_DBP) / 3.0,
    rr=BASELINE_RR,
    spo2=BASELINE_SPO2,
    etco2=BASELINE_ETCO2,
    rhythm=CardiacRhythm.NORMAL_SINUS,
    qrs_width=100.0,
    pr_interval=160.0,
    qt_interval=400.0,
)


@dataclass
class InfusionState:
    """Continuous infusion for one drug (dose unit per minute)."""
    rate: float = 0.0
    running: bool = False

    @property
    def effective_rate(self) -> float:
        return self.rate if self.running else 0.0


@dataclass(slots=True)
class SimulationState:
    """Snapshot of the simulation state at a specific time."""
    time: float = 0.0

    # Vitals
    hr: float = 0.0
    sbp: float = 0.0
    dbp: float = 0.0
    map: float = 0.0
    rr: float = 0.0
    spo2: float = 0.0
    etco2: float = 0.0
    fio2: float = 0.21

    # Rhythm
    rhythm: str = CardiacRhythm.NORMAL_SINUS.value
    qrs_width: float = 100.0
    pr_interval: float = 160.0
    qt_interval: float = 400.0
    arrest_started_at: Optional[float] = None

    # Sedation depth
    effect: float = 0.0
    moass: int = 5
    moass_label: str = "Awake / Alert"

    # Processed EEG
    bis: float = 100.0
    suppression_ratio: float = 0.0
    eeg_state: str = "awake"

    # Digital twin
    hypotension_risk: float = 0.0
    desaturation_risk: float = 0.0
    awareness_risk: float = 0.0
    arrhythmia_risk: float = 0.0
    time_to_emergence: float = 0.0

    # Drug concentrations by key (Ce effect site, Cp plasma).
    ce: Dict[str, float] = field(default_factory=dict)
    cp: Dict[str, float] = field(default_factory=dict)
    infusions: Dict[str, float] = field(default_factory=dict)

    alarms: List[str] = field(default_factory=list)
