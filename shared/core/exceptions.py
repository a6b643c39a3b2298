from shared.utils.app_status_code import AppStatusCode


class AppError(Exception):
    """Base class for errors raised by CRUD operations.

    Each subclass carries the HTTP status and internal status code the
    exception handlers use when turning it into a JSON envelope.
    """
    http_status = 400
    status_code = AppStatusCode.OPERATION_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed or missing input (no items, mismatched lease references)."""
    http_status = 400
    status_code = AppStatusCode.INVALID_INPUT


class NotFoundError(AppError):
    """Referenced record is absent or belongs to another organization."""
    http_status = 404
    status_code = AppStatusCode.RECORD_NOT_FOUND


class InvalidStateError(AppError):
    """Mutation not allowed from the record's current status."""
    http_status = 409
    status_code = AppStatusCode.INVALID_STATE


class UnsupportedOperationError(AppError):
    """Path that is intentionally not implemented (visitor parking invoices)."""
    http_status = 501
    status_code = AppStatusCode.UNSUPPORTED_OPERATION
