from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, Mapping, Tuple

from sedsim.core.exceptions import UnknownDrugError

# =============================================================================
# DRUG CATALOG - PK/PD PARAMETERS
# =============================================================================
#
# Three-compartment mammillary parameters plus effect-site ke0 and Hill PD.
#
#   - Propofol: Marsh et al. Br J Anaesth. 1991 (70 kg adult, fixed V1)
#   - Midazolam: Greenblatt/Zomorodi-style adult population values
#   - Fentanyl: Shafer et al. Anesthesiology. 1990
#   - Remifentanil: Minto et al. Anesthesiology. 1997 (40 y, 70 kg typical)
#   - Ketamine: Domino et al. Clin Pharmacol Ther. 1984
#   - Dexmedetomidine: Hannivoort et al. Anesthesiology. 2015 (simplified)
#   - Naloxone / flumazenil: short-acting antagonists, heuristic fast-washout
#     models calibrated to clinical onset (~1-2 min) and duration (~30-60 min)
#   - Local anesthetics (with epinephrine): heuristic systemic-absorption
#     models; Ce is the plasma-equivalent level used for LAST thresholds
#
# Units:
#   - V1: L
#   - Rate constants (k10, k12, ...) and ke0: min^-1
#   - Doses in mg give concentrations in µg/mL (mg/L)
#   - Doses in mcg give concentrations in ng/mL (µg/L)
#   - EC50 is expressed in the drug's concentration unit
# =============================================================================


@dataclass(frozen=True)
class DrugDefinition:
    """Immutable PK/PD parameter record for one drug."""
    key: str
    name: str
    unit: str       # dose unit: "mg" or "mcg"
    k10: float
    k12: float
    k13: float
    k21: float
    k31: float
    ke0: float
    v1: float
    ec50: float
    gamma: float
    color: str

    @property
    def concentration_unit(self) -> str:
        return "ng/mL" if self.unit == "mcg" else "µg/mL"


class DrugCatalog(Mapping[str, DrugDefinition]):
    """
    Read-only drug lookup table, built once and shared by reference.

    Indexing an unknown key raises UnknownDrugError.
    """

    def __init__(self, drugs):
        self._drugs = MappingProxyType({d.key: d for d in drugs})

    def __getitem__(self, key: str) -> DrugDefinition:
        try:
            return self._drugs[key]
        except KeyError:
            raise UnknownDrugError(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._drugs)

    def __len__(self) -> int:
        return len(self._drugs)

    def __repr__(self):
        return f"DrugCatalog({list(self._drugs)})"


DRUG_CATALOG = DrugCatalog([
    DrugDefinition(
        key="propofol", name="Propofol", unit="mg",
        k10=0.119, k12=0.112, k13=0.042, k21=0.055, k31=0.0033, ke0=0.26,
        v1=15.9, ec50=3.4, gamma=2.8, color="#3b82f6",
    ),
    DrugDefinition(
        key="midazolam", name="Midazolam", unit="mg",
        k10=0.032, k12=0.077, k13=0.017, k21=0.025, k31=0.004, ke0=0.13,
        v1=8.6, ec50=0.15, gamma=3.0, color="#22c55e",
    ),
    DrugDefinition(
        key="fentanyl", name="Fentanyl", unit="mcg",
        k10=0.094, k12=0.471, k13=0.225, k21=0.066, k31=0.013, ke0=0.147,
        v1=12.7, ec50=2.0, gamma=2.0, color="#f59e0b",
    ),
    DrugDefinition(
        key="remifentanil", name="Remifentanil", unit="mcg",
        k10=0.51, k12=0.40, k13=0.0149, k21=0.209, k31=0.014, ke0=0.595,
        v1=5.1, ec50=2.0, gamma=2.0, color="#eab308",
    ),
    DrugDefinition(
        key="ketamine", name="Ketamine", unit="mg",
        k10=0.064, k12=0.231, k13=0.062, k21=0.069, k31=0.007, ke0=0.2,
        v1=14.4, ec50=1.5, gamma=1.8, color="#a855f7",
    ),
    DrugDefinition(
        key="dexmedetomidine", name="Dexmedetomidine", unit="mcg",
        k10=0.045, k12=0.18, k13=0.04, k21=0.08, k31=0.006, ke0=0.12,
        v1=13.0, ec50=0.8, gamma=2.5, color="#06b6d4",
    ),
    DrugDefinition(
        key="naloxone", name="Naloxone", unit="mg",
        k10=0.2, k12=0.15, k13=0.02, k21=0.1, k31=0.01, ke0=0.5,
        v1=10.0, ec50=0.01, gamma=1.5, color="#ef4444",
    ),
    DrugDefinition(
        key="flumazenil", name="Flumazenil", unit="mg",
        k10=0.25, k12=0.2, k13=0.02, k21=0.12, k31=0.01, ke0=0.6,
        v1=15.0, ec50=0.01, gamma=1.5, color="#14b8a6",
    ),
    DrugDefinition(
        key="lidocaine_epi", name="Lidocaine 2% + epi", unit="mg",
        k10=0.07, k12=0.3, k13=0.05, k21=0.1, k31=0.01, ke0=0.5,
        v1=35.0, ec50=10.0, gamma=2.0, color="#ec4899",
    ),
    DrugDefinition(
        key="articaine_epi", name="Articaine 4% + epi", unit="mg",
        k10=0.09, k12=0.3, k13=0.05, k21=0.1, k31=0.01, ke0=0.5,
        v1=35.0, ec50=10.0, gamma=2.0, color="#f97316",
    ),
    DrugDefinition(
        key="bupivacaine", name="Bupivacaine 0.5%", unit="mg",
        k10=0.05, k12=0.3, k13=0.05, k21=0.1, k31=0.01, ke0=0.5,
        v1=35.0, ec50=8.0, gamma=2.0, color="#8b5cf6",
    ),
])

# Pharmacodynamic roles, fixed by key. Anything not listed is a hypnotic.
OPIOIDS: FrozenSet[str] = frozenset({"fentanyl", "remifentanil"})

REVERSAL_TARGETS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "naloxone": ("fentanyl", "remifentanil"),
    "flumazenil": ("midazolam",),
})

LOCAL_ANESTHETICS: FrozenSet[str] = frozenset(
    {"lidocaine_epi", "articaine_epi", "bupivacaine"}
)


def is_opioid(key: str) -> bool:
    return key in OPIOIDS


def is_reversal_agent(key: str) -> bool:
    return key in REVERSAL_TARGETS


def is_hypnotic(key: str) -> bool:
    return key not in OPIOIDS and key not in REVERSAL_TARGETS


def drug_info(key: str, catalog: DrugCatalog = DRUG_CATALOG) -> Dict[str, object]:
    """Display metadata for a drug (name, dose unit, concentration unit, color)."""
    drug = catalog[key]
    return {
        "key": drug.key,
        "name": drug.name,
        "unit": drug.unit,
        "concentration_unit": drug.concentration_unit,
        "color": drug.color,
    }
