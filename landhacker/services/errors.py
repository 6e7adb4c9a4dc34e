"""Domain errors raised by the valuation core and mapped to HTTP in ``main``."""

from __future__ import annotations


class LandhackerError(Exception):
    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str | None = None, *, reason: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.reason)
        if reason:
            self.reason = reason

    @property
    def message(self) -> str:
        return str(self)


class InvalidEstimateFormat(LandhackerError):
    """The valuation response is missing required fields."""

    status_code = 400
    reason = "invalid_estimate_format"


class UpstreamServiceFailure(LandhackerError):
    """An upstream collaborator failed."""

    status_code = 502
    reason = "upstream_failure"


class InsufficientCredits(LandhackerError):
    """Insufficient credits"""

    status_code = 400
    reason = "insufficient_credits"


class NotFound(LandhackerError):
    """Not found"""

    status_code = 404
    reason = "not_found"


class Conflict(LandhackerError):
    """Already exists"""

    status_code = 409
    reason = "conflict"


class AnalysisFailed(LandhackerError):
    """Failed to analyze property."""

    def __init__(self, stage: str, reason: str, *, status_code: int = 502, message: str | None = None):
        super().__init__(message, reason=reason)
        self.stage = stage
        self.status_code = status_code
