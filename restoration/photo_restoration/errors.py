class RestorationError(Exception):
    """Base error for a restoration attempt. ``message`` is safe to show to users."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RestorationError):
    """Bad input file or missing credentials, raised before any network call."""


class TransportError(RestorationError):
    """Network failure or an error response from the model service."""


class EmptyResultError(RestorationError):
    """The model answered but no usable image came back."""
