class ChowkError(Exception):
    """A domain failure that is reported back to the user as a denial."""

    def __init__(self, reason: str, detail: str | None = None):
        super().__init__(detail or reason)
        self.reason = reason


class AcceptanceFailure:
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_ALREADY_FILLED = "JOB_ALREADY_FILLED"
    ALREADY_APPLIED = "ALREADY_APPLIED"
    WORKER_NOT_REGISTERED = "WORKER_NOT_REGISTERED"
    WORKER_BUSY = "WORKER_BUSY"
    TRANSIENT_DB_ERROR = "TRANSIENT_DB_ERROR"


class AcceptanceError(ChowkError):
    pass


class VerificationFailure:
    INVALID_OR_EXPIRED_CODE = "INVALID_OR_EXPIRED_CODE"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    # Worker already confirmed on a job that runs into this one.
    WORKER_BUSY = "WORKER_BUSY"


class VerificationError(ChowkError):
    def __init__(self, reason: str, retry_after_seconds: float = 0):
        super().__init__(reason)
        self.retry_after_seconds = retry_after_seconds


class CancellationFailure:
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
    NOT_CANCELLABLE = "NOT_CANCELLABLE"
    NOT_JOB_OWNER = "NOT_JOB_OWNER"


class CancellationError(ChowkError):
    pass


class TransientError(ChowkError):
    """Infrastructure failure; the caller may retry the same request."""

    def __init__(self, detail: str | None = None):
        super().__init__(AcceptanceFailure.TRANSIENT_DB_ERROR, detail)


# Status codes for the structured HTTP API; the chat channel replies in text instead.
HTTP_STATUS = {
    AcceptanceFailure.JOB_NOT_FOUND: 404,
    AcceptanceFailure.JOB_ALREADY_FILLED: 409,
    AcceptanceFailure.ALREADY_APPLIED: 409,
    AcceptanceFailure.WORKER_NOT_REGISTERED: 403,
    AcceptanceFailure.WORKER_BUSY: 409,
    AcceptanceFailure.TRANSIENT_DB_ERROR: 503,
    VerificationFailure.INVALID_OR_EXPIRED_CODE: 400,
    VerificationFailure.TOO_MANY_ATTEMPTS: 429,
    CancellationFailure.APPLICATION_NOT_FOUND: 404,
    CancellationFailure.NOT_CANCELLABLE: 409,
    CancellationFailure.NOT_JOB_OWNER: 403,
}
