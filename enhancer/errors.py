"""Exception hierarchy for the trade enhancer."""


class EnhancerError(Exception):
    """Base class for all trade enhancer exceptions."""


class ContractViolation(EnhancerError, ValueError):
    """Raised for malformed numeric input that indicates an upstream defect."""


class ConfigError(EnhancerError):
    """Raised for missing/malformed configuration or strategy parameters."""


class ExitPlanError(EnhancerError):
    """Raised when an exit strategy fails validation."""


__all__ = [
    "EnhancerError",
    "ContractViolation",
    "ConfigError",
    "ExitPlanError",
]
