"""
Drug administration API mixin for SimulationEngine.

Boluses are queued and enter the central compartment on the next tick's PK
step; infusions run continuously until stopped.
"""

import logging
from typing import TYPE_CHECKING, Dict

from sedsim.core.constants import ROOM_AIR_FIO2
from sedsim.core.dosing import bolus_for_peak_ce
from sedsim.core.exceptions import InvalidDoseError
from sedsim.core.state import InfusionState
from sedsim.core.utils import clamp
from sedsim.patient.drugs import drug_info
from sedsim.patient.pk_models import simulate_decay

if TYPE_CHECKING:
    from .engine import SimulationEngine

logger = logging.getLogger(__name__)


class DrugControllerMixin:
    """
    Mixin providing drug control for SimulationEngine:
    - boluses and infusions for every catalog drug
    - supplemental oxygen (FiO2)
    - drug metadata/state for displays
    """

    def give_bolus(self: "SimulationEngine", drug_key: str, dose: float):
        """Queue a bolus (drug dose unit) for the next tick."""
        drug = self.catalog[drug_key]
        if dose < 0:
            raise InvalidDoseError(f"Bolus dose must be >= 0, got {dose} {drug.unit}")
        self.pending_boluses[drug_key] = self.pending_boluses.get(drug_key, 0.0) + dose
        logger.info("Bolus %s %.3g %s at t=%.0fs", drug.name, dose, drug.unit, self.time)

    def start_infusion(self: "SimulationEngine", drug_key: str, rate_per_min: float):
        """Start (or restart) an infusion at rate_per_min (dose unit / min)."""
        drug = self.catalog[drug_key]
        if rate_per_min < 0:
            raise InvalidDoseError(f"Infusion rate must be >= 0, got {rate_per_min}")
        self.infusions[drug_key] = InfusionState(rate=rate_per_min, running=True)
        logger.info("Infusion %s started at %.3g %s/min", drug.name, rate_per_min, drug.unit)

    def set_infusion_rate(self: "SimulationEngine", drug_key: str, rate_per_min: float):
        drug = self.catalog[drug_key]
        if rate_per_min < 0:
            raise InvalidDoseError(f"Infusion rate must be >= 0, got {rate_per_min}")
        infusion = self.infusions.setdefault(drug_key, InfusionState())
        infusion.rate = rate_per_min
        logger.info("Infusion %s rate %.3g %s/min", drug.name, rate_per_min, drug.unit)

    def stop_infusion(self: "SimulationEngine", drug_key: str):
        drug = self.catalog[drug_key]
        infusion = self.infusions.get(drug_key)
        if infusion is not None and infusion.running:
            infusion.running = False
            logger.info("Infusion %s stopped", drug.name)

    def set_fio2(self: "SimulationEngine", fio2: float):
        """Set inspired O2 fraction (clamped to room air .. 100%)."""
        self.fio2 = clamp(fio2, ROOM_AIR_FIO2, 1.0)
        logger.info("FiO2 set to %.0f%%", self.fio2 * 100)

    def bolus_for_target(self: "SimulationEngine", drug_key: str, target_ce: float) -> float:
        """Bolus needed now for the effect-site peak to reach target_ce."""
        return bolus_for_peak_ce(self.catalog[drug_key], target_ce, self.pk_states[drug_key])

    def get_predicted_csht(self: "SimulationEngine", drug_key: str) -> float:
        """
        Context-sensitive half-time (minutes) from the current PK state, or
        0.0 if the drug is not on board.
        """
        seconds = simulate_decay(self.pk_states[drug_key], self.catalog[drug_key],
                                 target_fraction=0.5, max_seconds=3600)
        return seconds / 60.0

    def get_drug_state(self: "SimulationEngine", drug_key: str) -> Dict[str, object]:
        """Metadata plus live concentrations and infusion rate for one drug."""
        info = drug_info(drug_key, self.catalog)
        pk = self.pk_states[drug_key]
        infusion = self.infusions.get(drug_key)
        info.update({
            "cp": pk.c1,
            "ce": pk.ce,
            "infusion_rate": infusion.effective_rate if infusion else 0.0,
            "pending_bolus": self.pending_boluses.get(drug_key, 0.0),
        })
        return info
