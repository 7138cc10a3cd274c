"""Errors raised by the drink analysis pipeline."""


class AnalysisError(Exception):
    """Base class for analysis pipeline failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AnalysisError):
    """Image rejected before any network or database call."""


class SubmissionError(AnalysisError):
    """Job record creation or worker trigger failed.

    ``job_id`` is set when the pending record was created before the failure.
    """

    def __init__(self, message: str, job_id: str | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class WorkerError(AnalysisError):
    """The remote worker reported (or will report) a failed job."""


class ResponseParseError(WorkerError):
    """Model output could not be turned into a JSON object."""


class PollTimeoutError(AnalysisError):
    """No terminal status observed within the attempt cap.

    Local only: the job record is left untouched and the worker may still finish.
    """


class DataIntegrityError(AnalysisError):
    """Job reports completed but carries no result payload."""


class InvalidTransitionError(AnalysisError):
    """A status change would move a job backwards in its lifecycle."""


def truncate_message(message: str, max_length: int = 500) -> str:
    """Bound an error message before it is persisted."""
    if len(message) <= max_length:
        return message
    return message[: max_length - 3] + "..."
