from enum import StrEnum


class UnitStatus(StrEnum):
    """All possible states for an EGS unit."""

    UNPROVISIONED = "unprovisioned"
    PROVISIONED = "provisioned"


class UnitEvent(StrEnum):
    """All possible events that trigger EGS unit transitions."""

    KEYS_GENERATED = "keys_generated"
    CERTIFICATE_INSTALLED = "certificate_installed"


class EGSEnvironment(StrEnum):
    """Enrollment environments, each with its own certificate template."""

    PRODUCTION = "production"
    SIMULATION = "simulation"
    SANDBOX = "sandbox"
