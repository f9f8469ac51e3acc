"""Business-rule failures raised by the blood request services.

Each error carries the HTTP status it maps to and a ``details`` dict that is
merged into the JSON failure body, so routers never have to translate them
by hand.
"""

from __future__ import annotations

from typing import Any


class BloodHubError(Exception):
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, **self.details}


class ValidationError(BloodHubError):
    status_code = 400


class NotFoundError(BloodHubError):
    status_code = 404


class PreconditionFailed(BloodHubError):
    """The request exists but is in the wrong state for the action."""

    status_code = 400


class InsufficientStockError(BloodHubError):
    status_code = 400

    def __init__(self, requested_units: int, available_units: int, message: str | None = None):
        super().__init__(
            message
            or (
                f"Insufficient blood stock. Requested: {requested_units} units, "
                f"Available: {available_units} units"
            ),
            requested_units=requested_units,
            available_units=available_units,
        )
        self.requested_units = requested_units
        self.available_units = available_units


class InvalidCoordinateError(BloodHubError):
    status_code = 400
