import csv
import logging
import time
from dataclasses import asdict, fields
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from sedsim.core.state import SimulationState

logger = logging.getLogger(__name__)


def _flatten(state: SimulationState) -> dict:
    """One flat row per snapshot; per-drug dicts become ce_<drug>/cp_<drug> columns."""
    row = asdict(state)
    for prefix in ('ce', 'cp', 'infusions'):
        for key, value in row.pop(prefix).items():
            row[f"{prefix}_{key}"] = value
    row['alarms'] = ';'.join(row['alarms'])
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in row.items()}


def states_to_frame(states: Iterable[SimulationState]) -> pd.DataFrame:
    """Trend history as a DataFrame indexed by simulation time."""
    rows = [_flatten(s) for s in states]
    if not rows:
        return pd.DataFrame(columns=[f.name for f in fields(SimulationState)])
    return pd.DataFrame(rows).set_index('time')


class DataRecorder:
    """
    Records simulation snapshots to CSV.

    Columns are fixed by the first logged snapshot (drug keys included).
    """
    def __init__(self, output_dir: str = ".", sample_interval_sec: float = 1.0):
        self.output_dir = Path(output_dir)
        self.filename = f"sedsim_log_{int(time.time())}.csv"
        self.file_path = self.output_dir / self.filename
        self.file = None
        self.writer: Optional[csv.DictWriter] = None
        self.is_recording = False
        self.sample_interval_sec = max(0.0, sample_interval_sec)
        self._last_sample_time = None

    def start(self):
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.file = open(self.file_path, 'w', newline='')
        self.writer = None
        self.is_recording = True
        self._last_sample_time = None
        logger.info("Recording to %s", self.file_path)

    def log(self, state: SimulationState):
        if not self.is_recording:
            return

        if self.sample_interval_sec > 0.0:
            if self._last_sample_time is not None and \
                    (state.time - self._last_sample_time) < self.sample_interval_sec:
                return
            self._last_sample_time = state.time

        row = _flatten(state)
        if self.writer is None:
            self.writer = csv.DictWriter(self.file, fieldnames=list(row), extrasaction='ignore')
            self.writer.writeheader()
        self.writer.writerow(row)

    def stop(self):
        if self.file:
            self.file.close()
            self.file = None
            logger.info("Recording stopped (%s)", self.file_path)
        self.is_recording = False
