"""
Service-level error taxonomy.

Services raise these; the HTTP layer maps them to status codes in
``expense_tracker.main``. None of them carries a transport code.
"""


class ServiceError(Exception):
    """Base for every classified failure. ``message`` is safe to show users."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    """Client-correctable input: bad MIME type, oversized file, missing field."""


class NotFound(ServiceError):
    pass


class Forbidden(ServiceError):
    pass


class Conflict(ServiceError):
    """The receipt already has an expense."""


class UploadFailure(ServiceError):
    """The blob store rejected or failed to persist an upload."""


class ExtractionError(ServiceError):
    """The OCR engine failed on an image."""
