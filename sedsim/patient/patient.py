from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import List, Mapping

from sedsim.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class Patient:
    """
    Patient demographics, risk flags and drug sensitivity.

    Immutable for a session. Switching archetype replaces the whole record
    (and the engine resets every dependent state).
    """
    age: float = 45.0       # years
    weight: float = 70.0    # kg
    height: float = 170.0   # cm
    sex: str = "male"       # "male" or "female"
    asa: int = 1            # ASA physical status 1-5
    mallampati: int = 1     # 1-4
    osa: bool = False
    copd: bool = False
    hepatic_impairment: bool = False
    renal_impairment: bool = False
    drug_sensitivity: float = 1.0  # nominal 1.0, typical range 0.6-1.8

    @property
    def bmi(self) -> float:
        """Body Mass Index (kg/m^2)."""
        return self.weight / ((self.height / 100.0) ** 2)

    @property
    def comorbidities(self) -> List[str]:
        labels = []
        if self.osa:
            labels.append("OSA")
        if self.copd:
            labels.append("COPD")
        if self.hepatic_impairment:
            labels.append("Hepatic Impairment")
        if self.renal_impairment:
            labels.append("Renal Impairment")
        return labels

    def with_changes(self, **changes) -> "Patient":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


# Preset patients for scenario selection.
PATIENT_ARCHETYPES: Mapping[str, Patient] = MappingProxyType({
    "healthy_adult": Patient(age=45, weight=70, height=170, sex="male", asa=1,
                             mallampati=1),
    "elderly": Patient(age=78, weight=62, height=162, sex="female", asa=3,
                       mallampati=2, drug_sensitivity=1.4),
    "obese_osa": Patient(age=52, weight=128, height=175, sex="male", asa=3,
                         mallampati=4, osa=True, drug_sensitivity=1.1),
    "copd": Patient(age=68, weight=74, height=172, sex="male", asa=3,
                    mallampati=2, copd=True, drug_sensitivity=1.2),
    "hepatic": Patient(age=58, weight=80, height=178, sex="male", asa=3,
                       mallampati=2, hepatic_impairment=True,
                       drug_sensitivity=1.3),
    "anxious_young": Patient(age=24, weight=58, height=165, sex="female",
                             asa=1, mallampati=1, drug_sensitivity=0.7),
    "adolescent": Patient(age=16, weight=55, height=163, sex="female", asa=1,
                          mallampati=1, drug_sensitivity=0.85),
})


def get_archetype(name: str) -> Patient:
    """Look up a preset patient by archetype key."""
    try:
        return PATIENT_ARCHETYPES[name]
    except KeyError:
        known = ", ".join(sorted(PATIENT_ARCHETYPES))
        raise ConfigurationError(
            f"Unknown patient archetype {name!r} (expected one of: {known})"
        ) from None
