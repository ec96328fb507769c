from __future__ import annotations

from typing import Any, Dict, Optional


class AlianahError(Exception):
    """Base for domain errors that map onto a JSON error response."""

    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


class ValidationFailed(AlianahError):
    status_code = 400

    def __init__(self, message: str = "Invalid request", issues: Optional[Dict[str, Any]] = None):
        super().__init__(message, extra={"issues": issues or {}})
        self.issues = issues or {}


class DonationNumberExhausted(AlianahError):
    """No free donation number after the maximum number of attempts."""


class PaymentsNotConfigured(AlianahError):
    status_code = 503
