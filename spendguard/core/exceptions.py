"""Exception hierarchy for the detection engine."""

from typing import Optional


class SpendguardError(Exception):
    """Base class for all engine errors."""


class ProviderError(SpendguardError):
    """A classification provider failed to produce a usable answer."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class TransientProviderError(ProviderError):
    """Rate limit, overload or network failure. Worth retrying."""


class ProviderTimeoutError(TransientProviderError):
    """The provider call exceeded the local timeout."""


class FatalProviderError(ProviderError):
    """Any provider failure that retrying will not fix."""


class ClassificationParseError(FatalProviderError):
    """The provider answered, but not with the expected JSON object."""


class PersistenceError(SpendguardError):
    """A batch write of anomalies failed and was rolled back."""


class AuditLogImmutableError(SpendguardError):
    """Raised on any attempt to update or delete a persisted audit entry."""


class AnomalyNotFoundError(SpendguardError):
    pass


class InvalidReviewActionError(SpendguardError):
    pass
