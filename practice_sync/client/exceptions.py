"""Custom exceptions for delivering queued submissions."""


class SubmissionError(Exception):
    """Base exception for submission queue errors."""
    pass


class InvalidSubmissionError(SubmissionError):
    """Submission is missing its session id or answers."""
    pass


class NetworkError(SubmissionError):
    """Connectivity issues or request timeout."""
    pass


class SubmissionRejectedError(SubmissionError):
    """Server answered without success."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
