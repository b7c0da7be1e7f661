"""HTTP API for granular backups."""

from typing import Any

__all__ = ["create_error_response"]


def create_error_response(message: str, error: str | None = None) -> dict[str, Any]:
    """Create standardized failure body.

    Args:
        message: User-facing message
        error: Optional error text

    Returns:
        Failure body dictionary
    """
    response: dict[str, Any] = {"success": False, "message": message}
    if error:
        response["error"] = error
    return response
