"""Exception hierarchy for the cost pilot worker."""


class CostPilotError(Exception):
    """Base class for all cost pilot errors."""


class ProviderError(CostPilotError):
    """A billing or inventory provider call failed.

    Recovered locally: the failing target is logged and skipped.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CostQueryShapeError(ProviderError):
    """The billing response is missing a column the ingestion relies on."""


class CredentialResolutionError(CostPilotError):
    """No usable credentials could be resolved for a connection."""


class ScenarioValidationError(CostPilotError, ValueError):
    """Invalid synthetic scenario request. Rejected before anything is written."""
