class UnrecoverableError(ValueError):
    """Base class for all unrecoverable errors in the build relay."""

    pass


class ConfigurationError(UnrecoverableError):
    """Raised at startup when required settings or credentials are unavailable."""

    pass


class DecodeError(UnrecoverableError):
    """Raised when a Pub/Sub message cannot be decoded into a build event."""

    pass


class TriggerLookupError(UnrecoverableError):
    """Raised when the build trigger metadata could not be fetched."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class DispatchError(UnrecoverableError):
    """Raised when the chat webhook did not accept the message."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class PushAuthenticationError(UnrecoverableError):
    """Raised when an inbound push request does not carry a valid token."""

    def __init__(self, message: str, status: int = 401):
        super().__init__(message)
        self.status = status
