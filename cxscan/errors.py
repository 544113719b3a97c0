"""Exception hierarchy for scan orchestration."""


class CxScanError(Exception):
    """Base class for all orchestration errors.

    Context values (scan id, report id, project id, last observed state) are
    kept as attributes and appended to the message so a failure can be
    diagnosed without querying the server again.
    """

    def __init__(self, message, scan_id=None, report_id=None, project_id=None, state=None):
        self.scan_id = scan_id
        self.report_id = report_id
        self.project_id = project_id
        self.state = state
        self.detail = message
        super().__init__(self._format(message))

    def _format(self, message):
        context = []
        if self.project_id is not None:
            context.append(f"project_id={self.project_id}")
        if self.scan_id is not None:
            context.append(f"scan_id={self.scan_id}")
        if self.report_id is not None:
            context.append(f"report_id={self.report_id}")
        if self.state is not None:
            state = getattr(self.state, 'value', self.state)
            context.append(f"state={state}")
        if context:
            return f"{message} ({', '.join(context)})"
        return message


class AuthenticationError(CxScanError):
    """Token could not be obtained from the identity endpoint."""


class RemoteServiceError(CxScanError):
    """Non-transient failure reported by the remote service."""

    def __init__(self, message, status_code=None, **context):
        self.status_code = status_code
        super().__init__(message, **context)


class TransientRemoteError(RemoteServiceError):
    """Retryable failure: timeout, connection error, 5xx or rate limiting."""


class NotFoundError(CxScanError):
    """No scan, project, team or report exists for the given identifier."""


class SubmissionError(CxScanError):
    """Scan submission rejected: bad parameters or unknown project."""


class ScanInProgressError(SubmissionError):
    """The project already has a queued or running scan."""


class InvalidStateError(CxScanError):
    """Operation attempted in the wrong lifecycle state."""


class PollingTimeoutError(CxScanError, TimeoutError):
    """A polling phase exceeded its maximum wait."""


class PollingTransientFailureError(CxScanError):
    """Consecutive transient errors exhausted the polling error budget."""


PollingFailedError = PollingTransientFailureError


class PollingCanceledError(CxScanError):
    """Polling stopped because the caller set the cancel signal."""


class ScanFailedError(CxScanError):
    """Scan reached a terminal state other than Finished."""


class ScanCanceledError(CxScanError):
    """Scan was canceled before it finished."""


class ReportFailedError(CxScanError):
    """Report generation ended in the Failed state."""


class ParseError(CxScanError):
    """Report content is structurally invalid."""
