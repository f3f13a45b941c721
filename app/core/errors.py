# app/core/errors.py
"""Exception types shared across the conversation engine and its collaborators."""


class InvalidSessionError(Exception):
    """Raised when a session is written without its phone-number key."""
    pass


class TransportError(Exception):
    """Raised when the messaging provider rejects or fails an outbound call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GeneratorError(Exception):
    """Raised when the content generator fails or returns unusable output."""
    pass


class DomainStoreError(Exception):
    """Raised when the persistent user/medication/health store fails."""
    pass
