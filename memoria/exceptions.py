"""Custom exceptions for Memoria."""


class MemoriaError(Exception):
    """Base exception for all Memoria errors."""


class MemoriaConfigError(MemoriaError):
    """Raised when the cloud backend is not configured."""


class MemoriaAPIError(MemoriaError):
    """Raised when a request to the cloud backend fails."""


class MemoriaAuthenticationError(MemoriaAPIError):
    """Raised when the backend rejects the API key."""


class MemoriaPermissionError(MemoriaAPIError):
    """Raised when the backend denies access to a resource."""


class MemoriaNotFoundError(MemoriaAPIError):
    """Raised when a requested resource does not exist."""


class MemoriaConflictError(MemoriaAPIError):
    """Raised when a write violates a unique constraint."""


class MemoriaInvalidResponseError(MemoriaAPIError):
    """Raised when the backend returns something that is not valid JSON."""


class MemoriaNetworkError(MemoriaAPIError):
    """Raised when the backend cannot be reached."""


class MemoriaSyncInProgressError(MemoriaError):
    """Raised when a sync is started while another one is still running."""


class PairingError(MemoriaError):
    """Raised when the pairing flow cannot complete."""


class PairingValidationError(PairingError):
    """Raised for user input that is rejected before any network call."""


class PairingRejectedError(PairingError):
    """Raised when the backend does not accept a code/password pair."""
