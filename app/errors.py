"""
Application error types.

Every error carries an HTTP status and a stable code so the server can render
it as ``{"error": {"code", "message", "status", "details"}}``.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors the service reports to callers."""
    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error = {
            'code': self.code,
            'message': self.message,
            'status': self.status_code,
        }
        if self.details is not None:
            error['details'] = self.details
        return {'error': error}


class ValidationError(AppError):
    """Malformed or inconsistent input. Details list offending element indexes."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class NotFoundError(AppError):
    """A referenced job or file does not exist."""
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, resource: str, details: Optional[Any] = None):
        super().__init__(f'{resource} not found', details)


class ProcessFailure(AppError):
    """An external engine exited non-zero, failed to start, or returned unusable output."""
    code = 'CHILD_PROCESS_ERROR'

    def __init__(self, stage: str, message: str, exit_code: Optional[int] = None):
        super().__init__(f'{stage}: {message}', {'stage': stage, 'exit_code': exit_code})
        self.stage = stage
        self.exit_code = exit_code


class PersistenceError(AppError):
    """A store operation failed."""
    code = 'DATABASE_ERROR'


class InternalError(AppError):
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str = 'Internal server error', details: Optional[Any] = None):
        super().__init__(message, details)
