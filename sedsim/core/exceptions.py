"""
Exception hierarchy for SedSim.

SedSimError (base)
├── UnknownDrugError        (also KeyError)
├── InvalidTimeStepError    (also ValueError)
├── InvalidDoseError        (also ValueError)
└── ConfigurationError

Model functions saturate on degenerate physiology instead of raising; these
exceptions are reserved for caller mistakes.
"""


class SedSimError(Exception):
    """Base exception for all SedSim errors."""
    pass


class UnknownDrugError(SedSimError, KeyError):
    """Raised when a drug key is not present in the catalog."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown drug: {key!r}")

    def __str__(self):
        # KeyError.__str__ would repr() the message
        return self.args[0]


class InvalidTimeStepError(SedSimError, ValueError):
    """Raised for a negative (or non-finite) simulation timestep."""
    pass


class InvalidDoseError(SedSimError, ValueError):
    """Raised for negative bolus doses or infusion rates."""
    pass


class ConfigurationError(SedSimError):
    """Raised for unreadable or inconsistent configuration."""
    pass
