"""Domain-specific errors for blecentral."""


class BleCentralError(Exception):
    """Base error for blecentral."""


class ProfileValidationError(BleCentralError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(BleCentralError):
    """Raised when loading profile sources fails."""


class ProfileResolutionError(BleCentralError):
    """Raised when a requested profile id is not known."""


class AdapterError(BleCentralError):
    """Base radio adapter error."""


class AdapterUnavailableError(AdapterError):
    """Raised when the radio backend cannot be imported or started."""


class AdapterTimeoutError(AdapterError):
    """Raised when a blocking helper gives up waiting on the adapter."""
