"""Custom exceptions for the scoring service."""


class PracticeSyncError(Exception):
    """Base exception for scoring service errors."""
    pass


class SessionNotFoundError(PracticeSyncError):
    """Session does not exist or belongs to another user."""
    pass


class QuestionNotFoundError(PracticeSyncError):
    """Question is unknown or not bound to the session."""
    pass


class InvalidSubmissionError(PracticeSyncError):
    """Request body is missing required data."""
    pass
