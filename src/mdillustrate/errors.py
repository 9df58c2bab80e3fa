"""Error taxonomy shared by the document engine, job poller, and API clients"""


class IllustrateError(Exception):
    """Base class for all mdillustrate failures; `code` identifies the kind."""
    code = "ERROR"


class ConflictError(IllustrateError):
    """The note changed between the read and the write; re-read and retry."""
    code = "CONFLICT"


class JobFailedError(IllustrateError):
    """An external generation job reported a terminal failure."""
    code = "JOB_FAILED"


class JobTimeoutError(JobFailedError):
    """The poll budget ran out while the job was still pending or processing."""
    code = "JOB_TIMEOUT"


class MissingResultError(JobFailedError):
    """The job completed without a usable result reference."""
    code = "MISSING_RESULT"


class ApiError(IllustrateError):
    """Transport, HTTP status, or response-shape failure from an external API."""
    code = "API_ERROR"

    def __init__(self, message: str, code: str = None, status_code: int = None,
                 retryable: bool = False, retry_after: float = None):
        super().__init__(message)
        if code:
            self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after
