"""
Custom exception classes for the NOM-035 questionnaire engine.

Provides structured error handling with user-friendly messages and
error categorization for the import, session and storage layers. The
scoring engine itself never raises for missing or malformed responses.
"""

from __future__ import annotations

from typing import Any


class NOM035Error(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(NOM035Error):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )


class MultipleValidationError(NOM035Error):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )


class CatalogIntegrityError(NOM035Error):
    """Raised when the guide catalog and the category mapping disagree."""

    def __init__(self, guide_type: str, problems: list[str]):
        self.guide_type = guide_type
        self.problems = problems
        super().__init__(
            message=f"Guide {guide_type} failed integrity checks: {'; '.join(problems)}",
            details={"guide_type": guide_type, "problems": problems},
            user_message="The questionnaire data is inconsistent. Please contact support.",
        )


class SpreadsheetImportError(NOM035Error):
    """Raised when a spreadsheet cannot be imported at all."""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        self.file_name = file_name
        super().__init__(
            message=message,
            details=details or {"file_name": file_name},
            user_message=user_message,
        )

    def _get_default_user_message(self) -> str:
        return "Import failed. Please check your file and try again."


class UnsupportedFileTypeError(SpreadsheetImportError):
    """Raised when the uploaded file is not an accepted spreadsheet type."""

    def __init__(self, file_name: str, allowed: list[str]):
        self.allowed = allowed
        super().__init__(
            message=f"Unsupported file type for '{file_name}'",
            file_name=file_name,
            details={"file_name": file_name, "allowed_extensions": allowed},
            user_message=(
                "Invalid file format. Please upload an Excel file "
                f"({' or '.join(allowed)})."
            ),
        )


class FileTooLargeError(SpreadsheetImportError):
    """Raised when the uploaded file exceeds the configured size limit."""

    def __init__(self, file_name: str, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            message=f"File '{file_name}' is {size} bytes, limit is {limit} bytes",
            file_name=file_name,
            details={"file_name": file_name, "size": size, "limit": limit},
            user_message=f"File is too large. Maximum size: {limit // (1024 * 1024)}MB",
        )


class SpreadsheetParseError(SpreadsheetImportError):
    """Raised when the workbook cannot be decoded as a spreadsheet."""

    def __init__(self, file_name: str | None = None, reason: str | None = None):
        super().__init__(
            message=f"Failed to parse spreadsheet {file_name or ''}: {reason or 'unknown error'}",
            file_name=file_name,
            details={"file_name": file_name, "reason": reason},
            user_message="Failed to parse Excel file. Please check the format.",
        )


class AssessmentError(NOM035Error):
    """Raised when assessment session operations fail."""

    def __init__(
        self,
        message: str,
        assessment_id: str | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        self.assessment_id = assessment_id
        super().__init__(
            message=message,
            details=details or {"assessment_id": assessment_id},
            user_message=user_message,
        )

    def _get_default_user_message(self) -> str:
        return "Assessment error occurred. Please select a guide and try again."


class AssessmentNotFoundError(AssessmentError):
    """Raised when no assessment matches the requested id."""

    def __init__(self, assessment_id: str):
        super().__init__(
            message=f"Assessment with ID {assessment_id} not found",
            assessment_id=assessment_id,
        )

    def _get_default_user_message(self) -> str:
        return "The selected assessment could not be found."


class AssessmentStateError(AssessmentError):
    """Raised when an operation is not allowed in the assessment's current state."""

    def __init__(self, message: str, assessment_id: str | None = None, status: str | None = None):
        self.status = status
        super().__init__(
            message=message,
            assessment_id=assessment_id,
            details={"assessment_id": assessment_id, "status": status},
        )

    def _get_default_user_message(self) -> str:
        if self.status == "completed":
            return "This assessment has already been submitted and can no longer be edited."
        return "Please select a guide before answering questions."


class IncompleteAssessmentError(AssessmentError):
    """Raised on submission while visible questions are still unanswered.

    This is a soft gate: callers may confirm with the user and submit again
    with ``allow_incomplete=True``.
    """

    def __init__(self, missing_questions: list[int], assessment_id: str | None = None):
        self.missing_questions = missing_questions
        super().__init__(
            message=f"{len(missing_questions)} questions are unanswered",
            assessment_id=assessment_id,
            details={"assessment_id": assessment_id, "missing_questions": missing_questions},
            user_message=(
                f"There are {len(missing_questions)} unanswered questions. "
                "Do you want to continue anyway?"
            ),
        )


class StorageError(NOM035Error):
    """Raised when the draft/history storage fails."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Storage error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="Unable to save your progress. Please try again in a moment.",
        )


class ConfigurationError(NOM035Error):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


def handle_storage_error(e: Exception, operation: str = "storage operation") -> StorageError:
    """
    Convert a backend exception into a StorageError.

    Example:
        >>> try:
        ...     session.commit()
        >>> except SQLAlchemyError as e:
        ...     raise handle_storage_error(e, "kv_set")
    """
    error_msg = str(e).lower()
    details: dict[str, Any] = {"operation": operation, "error_type": type(e).__name__}

    if "connection" in error_msg or "timeout" in error_msg:
        details["category"] = "connection"
    elif "locked" in error_msg:
        details["category"] = "locked"
    elif "no such table" in error_msg:
        details["category"] = "schema"
    return StorageError(str(e), operation, details)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Example:
        >>> create_user_friendly_error_message(ValidationError("answer", "unknown label"))
        'Invalid answer: unknown label'
    """
    if isinstance(error, NOM035Error):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Example:
        >>> details = log_error_details(StorageError("disk full", "kv_set"), {"key": "draft"})
        >>> details["error_type"]
        'StorageError'
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, NOM035Error):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
