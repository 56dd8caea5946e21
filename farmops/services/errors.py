"""
Error taxonomy for the recurring task subsystem.

Every error carries a machine readable code, a user facing message and
optional details; the API layer renders them with a standard envelope.
"""

from typing import Any, Dict, Optional


class FarmOpsError(Exception):
    """Base exception for recurring task operations"""
    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FarmOpsError):
    """Malformed input, such as a weekly schedule without days."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(FarmOpsError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            "NOT_FOUND",
            f"{resource} not found",
            {"resource": resource, "id": resource_id}
        )


class StaleTemplateError(FarmOpsError):
    """The template changed since the editor loaded it."""
    status_code = 409

    def __init__(self, template_id: int, expected_version: int, current_version: int):
        super().__init__(
            "STALE_TEMPLATE",
            "Recurring task was modified by someone else. Reload and try again.",
            {
                "id": template_id,
                "expected_version": expected_version,
                "current_version": current_version,
            }
        )


class PropagationError(FarmOpsError):
    """A propagation batch failed and was rolled back."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("PROPAGATION_ERROR", message, details)


class ConflictResolutionError(FarmOpsError):
    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT_RESOLUTION_ERROR", message, details)


def create_error_response(error: FarmOpsError) -> Dict[str, Any]:
    """
    Create a standardized error response

    Args:
        error: The FarmOpsError to convert

    Returns:
        Standardized error response dictionary
    """
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details
        }
    }
