"""Request-level errors for the photo generation pipeline."""

from __future__ import annotations


class PhotoValidationError(ValueError):
    """Raised for client input that never reaches the provider chain."""

    status_code = 400

    @property
    def code(self) -> str:
        return str(self.args[0]) if self.args else "invalid_request"


class ImageRequiredError(PhotoValidationError):
    pass


class ImageTooLargeError(PhotoValidationError):
    status_code = 413


class InvalidSubjectError(PhotoValidationError):
    pass


class DecodeError(PhotoValidationError):
    """Raised when uploaded bytes cannot be decoded as an image."""
