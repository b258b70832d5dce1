import argparse
import json
import logging
import sys
import time
from typing import Dict, List, Tuple

from sedsim.core.engine import SimulationEngine
from sedsim.core.exceptions import ConfigurationError, InvalidTimeStepError, SedSimError
from sedsim.core.logger import setup_logging
from sedsim.core.state import SimulationConfig
from sedsim.patient.patient import Patient, get_archetype

logger = logging.getLogger("sedsim.cli")

PATIENT_FIELDS = ("age", "weight", "height", "sex", "asa", "mallampati", "osa", "copd",
                  "hepatic_impairment", "renal_impairment", "drug_sensitivity")
CONFIG_FIELDS = ("dt", "fio2", "rng_seed", "vitals_jitter", "eeg_enabled", "history_length",
                 "alarm_thresholds", "alarm_delays")


def load_config(path: str) -> Dict:
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error loading config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must contain a JSON object")
    return data


def build_patient(config_data: Dict, archetype: str = None) -> Patient:
    """Archetype (CLI flag or config 'archetype') with per-field overrides."""
    name = archetype or config_data.get("archetype")
    patient = get_archetype(name) if name else Patient()
    overrides = {k: config_data[k] for k in PATIENT_FIELDS if k in config_data}
    return patient.with_changes(**overrides) if overrides else patient


def build_sim_config(config_data: Dict, args) -> SimulationConfig:
    values = {k: config_data[k] for k in CONFIG_FIELDS if k in config_data}
    if args.fio2 is not None:
        values["fio2"] = args.fio2
    if args.seed is not None:
        values["rng_seed"] = args.seed
    try:
        return SimulationConfig(**values)
    except (TypeError, InvalidTimeStepError) as e:
        raise ConfigurationError(str(e)) from e


def parse_dose(text: str) -> Tuple[str, float]:
    """'propofol=50' -> ('propofol', 50.0)."""
    key, sep, amount = text.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected drug=amount, got {text!r}")
    try:
        return key.strip(), float(amount)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid amount in {text!r}") from None


def run_headless(args):
    """Run a session without UI, printing a vitals line every --print-every seconds."""
    config_data = load_config(args.config) if args.config else {}
    patient = build_patient(config_data, args.patient)
    sim_config = build_sim_config(config_data, args)

    engine = SimulationEngine(patient, sim_config)
    logger.info("Starting headless session (duration %.0fs, dt %.2fs)", args.duration, sim_config.dt)

    for key, dose in args.bolus:
        engine.give_bolus(key, dose)
    for key, rate in args.infusion:
        engine.start_infusion(key, rate)
    if args.record:
        engine.start_recording(output_dir=args.record_dir, sample_interval_sec=args.record_interval)

    start_real = time.time()
    steps = int(round(args.duration / sim_config.dt))
    print_every = max(1, int(round(args.print_every / sim_config.dt)))
    try:
        for i in range(1, steps + 1):
            state = engine.step(sim_config.dt)
            if i % print_every == 0:
                print(f"t={state.time:6.0f}s | MOASS {state.moass} | BIS {state.bis:3.0f} | "
                      f"HR {state.hr:5.1f} | BP {state.sbp:5.1f}/{state.dbp:5.1f} | "
                      f"RR {state.rr:4.1f} | SpO2 {state.spo2:5.1f} | EtCO2 {state.etco2:5.1f} | "
                      f"{state.rhythm}")
    finally:
        engine.stop_recording()

    logger.info("Session completed in %.2fs real time", time.time() - start_real)

    if args.preview:
        key, dose = args.preview
        for snap in engine.predict(drug_key=key, dose=dose):
            print(f"+{snap.seconds_ahead:4d}s | effect {snap.combined_effect:.2f} | "
                  f"MOASS {int(snap.moass)} | SpO2 {snap.spo2:5.1f} | RR {snap.rr:4.1f}")

    if args.export:
        engine.history_frame().to_csv(args.export)
        logger.info("History exported to %s", args.export)
    return engine


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(description="SedSim - Procedural Sedation Simulator")
    parser.add_argument("--duration", type=float, default=300.0, help="Session length in seconds")
    parser.add_argument("--config", type=str, help="Path to JSON configuration file")
    parser.add_argument("--patient", type=str, help="Patient archetype (e.g. healthy_adult, elderly)")
    parser.add_argument("--bolus", type=parse_dose, action="append", default=[],
                        metavar="DRUG=DOSE", help="Bolus at t=0 (repeatable)")
    parser.add_argument("--infusion", type=parse_dose, action="append", default=[],
                        metavar="DRUG=RATE", help="Infusion per minute from t=0 (repeatable)")
    parser.add_argument("--preview", type=parse_dose, metavar="DRUG=DOSE",
                        help="Ghost-dose prediction from the final state")
    parser.add_argument("--fio2", type=float, help="Inspired O2 fraction (0.21-1.0)")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--print-every", type=float, default=10.0, help="Print interval in seconds")
    parser.add_argument("--record", action="store_true", help="Enable CSV recording")
    parser.add_argument("--record-dir", type=str, default="recordings", help="Output directory for recordings")
    parser.add_argument("--record-interval", type=float, default=1.0, help="Sample interval in seconds for CSV")
    parser.add_argument("--export", type=str, help="Write the trend history DataFrame to this CSV path")
    parser.add_argument("--log-level", type=str, default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-dir", type=str, help="Directory for log files")

    args = parser.parse_args(argv)
    setup_logging(log_dir=args.log_dir, log_level=args.log_level)

    try:
        run_headless(args)
    except SedSimError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
