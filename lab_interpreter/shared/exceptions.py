from fastapi import HTTPException, status


class NotFoundException(HTTPException):
    """Exception for resource not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class BadRequestException(HTTPException):
    """Exception for bad request."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ConflictException(HTTPException):
    """Exception for a request that clashes with the current resource state."""

    def __init__(self, detail: str = "Resource is busy"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class PayloadTooLargeException(HTTPException):
    """Exception for uploads over the configured size limit."""

    def __init__(self, detail: str = "Uploaded file is too large"):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
        )


# ============ PIPELINE ERRORS ============
# Raised inside the background pipeline; they only reach callers
# through the record's status and error fields.

class InterpretationError(Exception):
    """Base class for interpretation pipeline errors."""


class InsufficientTextError(InterpretationError):
    """The document did not yield enough text to interpret."""


class InvalidStatusTransition(InterpretationError):
    """A status write would break the record lifecycle."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move interpretation from '{current}' to '{target}'")


class ReasoningError(InterpretationError):
    """The reasoning service returned nothing usable."""
