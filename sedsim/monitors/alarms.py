from collections import deque
from typing import Dict, List, Mapping, Optional

from sedsim.core.exceptions import InvalidTimeStepError

# Default limits for procedural sedation monitoring (ASA standards).
DEFAULT_THRESHOLDS = {
    'HR_min': 50, 'HR_max': 120,
    'SBP_min': 90,
    'SpO2_min': 90,
    'RR_min': 8,
    'EtCO2_max': 55,
}

# Seconds a limit must be violated before the alarm sounds.
DEFAULT_DELAYS = {
    'HR': 0,
    'SBP': 0,
    'SpO2': 5,
    'RR': 0,
    'EtCO2': 0,
}

ALARM_NAMES = {
    ('HR', 'low'): 'Bradycardia',
    ('HR', 'high'): 'Tachycardia',
    ('SBP', 'low'): 'Hypotension',
    ('SBP', 'high'): 'Hypertension',
    ('SpO2', 'low'): 'Desaturation',
    ('RR', 'low'): 'Respiratory Depression',
    ('RR', 'high'): 'Tachypnea',
    ('EtCO2', 'low'): 'Low EtCO2',
    ('EtCO2', 'high'): 'Hypercapnia',
}


class AlarmSystem:
    """
    Threshold alarms with sustain delays.

    A parameter alarms only when every sample in its delay window is beyond
    the limit, which filters single-tick artefacts.
    """
    def __init__(self, thresholds: Optional[Mapping[str, float]] = None,
                 delays: Optional[Mapping[str, float]] = None, dt: float = 1.0):
        if not dt > 0:
            raise InvalidTimeStepError(f"Alarm sample interval must be > 0, got {dt}")
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self.delays = dict(DEFAULT_DELAYS)
        if delays:
            self.delays.update(delays)
        self.dt = dt
        self.buffers = {
            name: deque(maxlen=self._window_len(delay))
            for name, delay in self.delays.items()
        }
        self.active_alarms: Dict[str, Dict[str, bool]] = {}

    def _window_len(self, delay_sec: float) -> int:
        """Window length in samples for a given delay."""
        return max(1, int(delay_sec / self.dt))

    def reset(self):
        for buf in self.buffers.values():
            buf.clear()
        self.active_alarms = {}

    def update(self, values: Mapping[str, float], dt: Optional[float] = None) -> Dict[str, Dict[str, bool]]:
        """
        Feed one sample per parameter, e.g. {'HR': 60, 'SpO2': 97}.

        Returns:
            {name: {'low': bool, 'high': bool}} for parameters in alarm.
        """
        if dt is not None and dt > 0 and dt != self.dt:
            self.dt = dt
        current = {}

        for name, delay_sec in self.delays.items():
            if name not in values:
                continue

            window_len = self._window_len(delay_sec)
            buf = self.buffers.get(name)
            if buf is None or buf.maxlen != window_len:
                buf = self.buffers[name] = deque(buf or (), maxlen=window_len)
            buf.append(values[name])

            if len(buf) < window_len:
                continue

            low_limit = self.thresholds.get(f'{name}_min')
            high_limit = self.thresholds.get(f'{name}_max')
            is_low = low_limit is not None and all(v < low_limit for v in buf)
            is_high = high_limit is not None and all(v > high_limit for v in buf)

            if is_low or is_high:
                current[name] = {'low': is_low, 'high': is_high}

        self.active_alarms = current
        return self.active_alarms


def alarm_messages(active: Mapping[str, Mapping[str, bool]]) -> List[str]:
    """Clinical alarm labels for an AlarmSystem.update() result."""
    messages = []
    for name, flags in active.items():
        for side in ('low', 'high'):
            if flags.get(side):
                messages.append(ALARM_NAMES.get((name, side), f"{name} {side}"))
    return messages


def check_alarms(hr: float, sbp: float, spo2: float, rr: float, etco2: float) -> List[str]:
    """Instantaneous alarm check with the default limits (no delays)."""
    system = AlarmSystem(delays={name: 0 for name in DEFAULT_DELAYS})
    return alarm_messages(system.update(
        {'HR': hr, 'SBP': sbp, 'SpO2': spo2, 'RR': rr, 'EtCO2': etco2}
    ))
