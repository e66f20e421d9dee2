# docsign/fields/exceptions.py

"""
Custom exceptions for field mutations.

Every failure carries a stable ``code`` so callers can render a field-local
message. UnauthorizedException is kept outside the FieldMutationException
branch: it must always reach the layer that handles re-authentication.
"""

from typing import Optional

from fastapi import HTTPException


class ErrorCode:
    """Error codes of the field mutation taxonomy."""
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FieldMutationException(Exception):
    """Base exception for typed field mutation failures."""
    code: str = ErrorCode.VALIDATION

    def __init__(self, message: str, field_id: Optional[int] = None):
        self.message = message
        self.field_id = field_id
        super().__init__(message)

    def to_dict(self) -> dict:
        """Error body returned to the caller."""
        return {"code": self.code, "message": self.message}


class FieldNotFoundException(FieldMutationException):
    """Field does not exist or does not belong to the recipient."""
    code = ErrorCode.NOT_FOUND

    def __init__(self, field_id: int):
        super().__init__(f"Field {field_id} not found", field_id=field_id)


class InvalidStateException(FieldMutationException):
    """Document or recipient status does not allow the operation."""
    code = ErrorCode.INVALID_STATE


class DocumentNotPendingException(InvalidStateException):
    """Document is not awaiting signatures."""

    def __init__(self, document_id: int, field_id: Optional[int] = None):
        super().__init__(f"Document {document_id} must be pending", field_id=field_id)


class RecipientAlreadySignedException(InvalidStateException):
    """Recipient has already completed signing; signing is final."""

    def __init__(self, recipient_id: int, field_id: Optional[int] = None):
        super().__init__(f"Recipient {recipient_id} has already signed", field_id=field_id)


class ForbiddenFieldActionException(FieldMutationException):
    """Read-only field or disallowed signature kind."""
    code = ErrorCode.FORBIDDEN


class FieldValidationException(FieldMutationException):
    """Value is malformed for the field type."""
    code = ErrorCode.VALIDATION


class UnauthorizedException(Exception):
    """Recipient token is unknown or no longer valid."""
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = "Invalid or expired signing token"):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        """Error body returned to the caller."""
        return {"code": self.code, "message": self.message}


HTTP_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.VALIDATION: 422,
    ErrorCode.UNAUTHORIZED: 401,
}


def as_http_exception(exc) -> HTTPException:
    """Convert a typed signing failure into a structured HTTP error."""
    return HTTPException(status_code=HTTP_STATUS_BY_CODE.get(exc.code, 400), detail=exc.to_dict())
