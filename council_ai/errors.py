"""Exception hierarchy for the council pipeline."""


class CouncilError(Exception):
    """Base class for all council errors."""


class ProviderError(CouncilError):
    """Raised by a provider adapter when a call fails.

    ``retryable`` marks transient conditions (timeout, connection abort, 5xx).
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        *,
        retryable: bool = False,
        status: int | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.retryable = retryable
        self.status = status
        super().__init__(f"[{provider_name}] {message}")


class ChairError(CouncilError):
    """Raised when the chair call fails; fatal for the whole question."""


class AskAborted(CouncilError):
    """Raised when the user cancels a question in flight."""


class ConfigError(CouncilError):
    """Raised on invalid or missing settings."""
