# ABOUTME: Declares the error taxonomy shared by feature extraction and the risk engine.
# ABOUTME: Separates upstream collaborator failures from internal range violations.

from typing import Optional


class DropoutRiskError(Exception):
    """Base class for dropout-risk engine failures."""


class UpstreamQueryFailure(DropoutRiskError):
    """A data-access or cache collaborator failed or timed out for one student."""

    def __init__(self, message: str, student_id: Optional[str] = None):
        super().__init__(message)
        self.student_id = student_id


class InvariantViolation(DropoutRiskError, ValueError):
    """A derived value fell outside its documented range (logic defect)."""
