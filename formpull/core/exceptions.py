"""
Unified exception definitions
"""
from typing import Optional


class FormPullError(Exception):
    """Base exception class"""
    pass


class ConfigError(FormPullError):
    """Configuration error"""
    pass


class ConnectionError(FormPullError):
    """Connection error"""
    pass


class TransferError(FormPullError):
    """Transfer error raised by concrete pull operations"""
    pass


class SourceValidationError(FormPullError):
    """A candidate source failed adapter validation"""
    pass


ValidationError = SourceValidationError


class NotFoundError(FormPullError, LookupError):
    """Lookup of a form or configuration by an unknown id"""
    pass


class IndexOutOfRange(FormPullError, IndexError):
    """Positional access outside the registry bounds"""
    pass


class OrchestratorMisuseError(FormPullError):
    """A batch was launched while another one is still active"""
    pass


class BatchCancelled(FormPullError):
    """Raised at a unit checkpoint once its batch has been cancelled"""
    pass


class UnitFailure(FormPullError):
    """One unit of work failed during execution"""

    def __init__(self, form_id: str, description: str, cause: Optional[BaseException] = None):
        self.form_id = form_id
        self.description = description
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown cause"
        super().__init__(f"{description} ({form_id}) failed: {reason}")
