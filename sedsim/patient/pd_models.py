from typing import Dict, Iterable, Mapping, Tuple, Union

from sedsim.core.constants import (
    MOASS_THRESHOLDS,
    OPIOID_POTENTIATION,
    OPIOID_SEDATION_CAP,
    OPIOID_SEDATION_WEIGHT,
)
from sedsim.core.enums import SedationLevel
from sedsim.core.utils import clamp01, complement_product, hill_function
from sedsim.patient.drugs import (
    DRUG_CATALOG,
    DrugCatalog,
    OPIOIDS,
    REVERSAL_TARGETS,
)

# -----------------------------------------------------------------------------
# Sedation Depth Model (opioid-hypnotic interaction with reversal)
# -----------------------------------------------------------------------------
#
# 1. Reversal agents antagonise their targets: per target, the summed Hill
#    effect of every reversal agent acting on it, capped at 1.
# 2. Opioids: complement-product of Hill effects at Ce * (1 - antagonism).
#    Opioids alone sedate only lightly (ceiling 0.22) ...
# 3. ... but shift hypnotic EC50 left by up to 35% (synergy; Bouillon et al.
#    Anesthesiology. 2004; Vuyk et al. Anesthesiology. 1997).
# 4. Hypnotics (every other drug): complement-product at antagonised Ce
#    against the potentiated EC50.
# 5. Total = 1 - (1 - hypnotic) * (1 - opioid sedation).
#
# MOASS mapping (inclusive-low): <0.10 -> 5, <0.25 -> 4, <0.45 -> 3,
# <0.65 -> 2, <0.85 -> 1, otherwise 0.
# -----------------------------------------------------------------------------

Entries = Union[Mapping[str, float], Iterable[Tuple[str, float]]]

LEVEL_LABELS = {
    SedationLevel.AWAKE: "Awake / Alert",
    SedationLevel.DROWSY: "Drowsy",
    SedationLevel.MODERATE: "Moderate Sedation",
    SedationLevel.DEEP: "Deep Sedation",
    SedationLevel.GENERAL_ANESTHESIA: "General Anesthesia",
    SedationLevel.UNRESPONSIVE: "Unresponsive",
}


def _as_pairs(entries: Entries):
    if isinstance(entries, Mapping):
        return list(entries.items())
    return list(entries)


def hill_effect(ce: float, ec50: float, gamma: float) -> float:
    """Fractional drug effect from the Hill equation."""
    return hill_function(ce, ec50, gamma)


def antagonism_factors(entries: Entries,
                       catalog: DrugCatalog = DRUG_CATALOG) -> Dict[str, float]:
    """
    Antagonism fraction (0-1) per target drug from all reversal agents present.
    """
    antagonism: Dict[str, float] = {}
    for key, ce in _as_pairs(entries):
        drug = catalog[key]
        targets = REVERSAL_TARGETS.get(key)
        if not targets:
            continue
        effect = hill_effect(ce, drug.ec50, drug.gamma)
        for target in targets:
            antagonism[target] = min(1.0, antagonism.get(target, 0.0) + effect)
    return antagonism


def effective_concentration(key: str, ce: float, antagonism: Mapping[str, float]) -> float:
    """Ce after reversal-agent antagonism."""
    return max(0.0, ce) * (1.0 - antagonism.get(key, 0.0))


def opioid_raw_effect(entries: Entries, catalog: DrugCatalog = DRUG_CATALOG,
                      antagonism: Mapping[str, float] = None) -> float:
    """Complement-product Hill effect of all opioids after antagonism."""
    pairs = _as_pairs(entries)
    if antagonism is None:
        antagonism = antagonism_factors(pairs, catalog)
    effects = []
    for key, ce in pairs:
        drug = catalog[key]
        if key in OPIOIDS:
            effects.append(hill_effect(effective_concentration(key, ce, antagonism),
                                       drug.ec50, drug.gamma))
    return complement_product(effects)


def combined_effect(entries: Entries, catalog: DrugCatalog = DRUG_CATALOG) -> float:
    """
    Combined sedation effect in [0, 1] for a set of (drug key, Ce) entries.

    Args:
        entries: Mapping or iterable of (drug key, effect-site concentration).
        catalog: Drug parameter table.

    Returns:
        0.0 for an empty set; otherwise the interaction-model effect.
    """
    pairs = _as_pairs(entries)
    if not pairs:
        return 0.0

    antagonism = antagonism_factors(pairs, catalog)
    opioid_raw = opioid_raw_effect(pairs, catalog, antagonism)
    opioid_sedation = min(opioid_raw * OPIOID_SEDATION_WEIGHT, OPIOID_SEDATION_CAP)
    potentiation = opioid_raw * OPIOID_POTENTIATION

    hypnotic_effects = []
    for key, ce in pairs:
        drug = catalog[key]
        if key in OPIOIDS or key in REVERSAL_TARGETS:
            continue
        ec50 = drug.ec50 * (1.0 - potentiation)
        hypnotic_effects.append(
            hill_effect(effective_concentration(key, ce, antagonism), ec50, drug.gamma)
        )
    hypnotic = complement_product(hypnotic_effects)

    return clamp01(1.0 - (1.0 - hypnotic) * (1.0 - opioid_sedation))


def drug_effects(entries: Entries, catalog: DrugCatalog = DRUG_CATALOG) -> Dict[str, float]:
    """Per-drug Hill effect (after antagonism, before synergy) for display."""
    pairs = _as_pairs(entries)
    antagonism = antagonism_factors(pairs, catalog)
    result = {}
    for key, ce in pairs:
        drug = catalog[key]
        result[key] = hill_effect(effective_concentration(key, ce, antagonism),
                                  drug.ec50, drug.gamma)
    return result


def effect_to_level(effect: float) -> SedationLevel:
    """Map a combined effect to the MOASS level (5 awake .. 0 unresponsive)."""
    for threshold, level in MOASS_THRESHOLDS:
        if effect < threshold:
            return SedationLevel(level)
    return SedationLevel.UNRESPONSIVE


def level_label(level: int) -> str:
    return LEVEL_LABELS.get(level, "Unknown")
