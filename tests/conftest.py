from pathlib import Path
import logging
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from sedsim.core.engine import SimulationEngine
from sedsim.core.state import BASELINE_VITALS, SimulationConfig
from sedsim.patient.patient import Patient


DEFAULT_PATIENT = dict(age=40, weight=70, height=170, sex="male")


@pytest.fixture
def patient():
    """Standard adult patient used across most tests."""
    return Patient(**DEFAULT_PATIENT)


@pytest.fixture
def engine(patient):
    """Seeded engine with vitals jitter enabled."""
    return SimulationEngine(patient, SimulationConfig(rng_seed=0))


@pytest.fixture
def quiet_engine(patient):
    """Fully deterministic engine (no RR jitter, no EEG waveform)."""
    config = SimulationConfig(rng_seed=0, vitals_jitter=False, eeg_enabled=False)
    return SimulationEngine(patient, config)


@pytest.fixture
def baseline_vitals():
    return BASELINE_VITALS


@pytest.fixture
def advance_time():
    """Helper to advance simulations using consistent step handling."""
    def _advance(engine, seconds, dt=1.0):
        if seconds <= 0:
            return
        steps = int(seconds / dt)
        for _ in range(steps):
            engine.step(dt)
        remainder = seconds - steps * dt
        if remainder > 1e-9:
            engine.step(remainder)

    return _advance


@pytest.fixture
def restore_logging():
    """Undo setup_logging() side effects on the 'sedsim' logger."""
    logger = logging.getLogger("sedsim")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
