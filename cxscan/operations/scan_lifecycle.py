"""Scan state machine."""

import threading
from cxscan.errors import InvalidStateError
from cxscan.models.scan import ScanState
from cxscan.operations.base import Operation


class ScanLifecycle(Operation):
    """Track one scan from submission to a terminal state.

    State only changes in response to status values returned by the scan
    gateway (or to a cancel/delete issued through this object). Progress is
    forward only: Queued -> Scanning -> Finished/Failed/Canceled, and
    Deleted is reachable from anywhere through delete(). Once terminal, the
    state never changes again except for an explicit delete.
    """

    def __init__(self, handle, gateway, config, state=ScanState.QUEUED, progress=None,
                 debug_logger=None, exception_reporter=None):
        """Initialize the lifecycle.

        Args:
            handle (ScanHandle): Scan being tracked
            gateway (ScanGateway): Remote scan operations
            config (Config): Configuration instance
            state (ScanState): Initial state
        """
        super().__init__(config, progress, debug_logger, exception_reporter)
        self.handle = handle
        self.gateway = gateway
        self._state = state
        self._lock = threading.RLock()
        self.history = [state]

    @classmethod
    def submit(cls, request, gateway, config, **kwargs):
        """Submit a scan and track it from the Queued state.

        Args:
            request (ScanRequest): Scan parameters
            gateway (ScanGateway): Remote scan operations
            config (Config): Configuration instance

        Returns:
            ScanLifecycle: Lifecycle in the Queued state
        """
        handle = gateway.submit(request)
        lifecycle = cls(handle, gateway, config, state=ScanState.QUEUED, **kwargs)
        if lifecycle.logger:
            lifecycle.logger.log(f"Submitted scan {handle.scan_id} for project {handle.project_id}")
        return lifecycle

    @classmethod
    def attach(cls, handle, gateway, config, **kwargs):
        """Track an existing scan, starting from its current remote state."""
        state = gateway.status(handle)
        return cls(handle, gateway, config, state=state, **kwargs)

    @property
    def state(self):
        return self._state

    @property
    def scan_id(self):
        return self.handle.scan_id

    @property
    def project_id(self):
        return self.handle.project_id

    def refresh(self):
        """Query the remote status, apply it and return the resulting state."""
        observed = self.gateway.status(self.handle)
        return self.observe(observed)

    def observe(self, observed):
        """Apply a status value reported by the gateway.

        Args:
            observed (ScanState): Reported state

        Returns:
            ScanState: State after applying the observation
        """
        with self._lock:
            current = self._state
            if observed is current:
                return current
            if current.is_terminal:
                if self.logger:
                    self.logger.log(f"  Scan {self.scan_id}: ignoring reported {observed.value}, "
                                    f"already {current.value}")
                return current
            if observed.rank < current.rank:
                if self.logger:
                    self.logger.log(f"  Scan {self.scan_id}: ignoring backward move "
                                    f"{current.value} -> {observed.value}")
                return current
            self._set_state(observed)
            return observed

    def _set_state(self, state):
        if self.logger:
            self.logger.log(f"  Scan {self.scan_id}: {self._state.value} -> {state.value}")
        self._state = state
        self.history.append(state)

    def wait_for_completion(self, poller, cancel_event=None):
        """Poll the scan until it reaches a terminal state.

        Args:
            poller (Poller): Poller configured for the scan phase
            cancel_event (threading.Event, optional): Caller abort signal

        Returns:
            ScanState: The terminal state
        """
        if self._state.is_terminal:
            return self._state
        return poller.poll(
            self.refresh,
            lambda state: state.is_terminal,
            cancel_event=cancel_event,
            context={'scan_id': self.scan_id, 'project_id': self.project_id}
        )

    def cancel(self):
        """Cancel the scan if it is queued or running.

        Canceling a scan in a terminal state does nothing and is recorded
        as a warning.

        Returns:
            bool: True if a cancel request was sent
        """
        with self._lock:
            if self._state.is_terminal:
                self._warn(f"Cancel ignored: scan {self.scan_id} is already {self._state.value}",
                           scan_id=self.scan_id)
                return False
            self.gateway.cancel(self.handle)
            self._set_state(ScanState.CANCELED)
            return True

    def delete(self, delete_running_scans=None):
        """Delete the scan.

        An active scan is canceled first when ``delete_running_scans`` is
        true; otherwise deleting it is refused.

        Args:
            delete_running_scans (bool, optional): Consent to cancel an active scan;
                defaults to ``config.delete_running_scans``

        Returns:
            bool: True if a delete request was sent

        Raises:
            InvalidStateError: If the scan is active and consent was not given
        """
        if delete_running_scans is None:
            delete_running_scans = self.config.delete_running_scans

        with self._lock:
            if self._state is ScanState.DELETED:
                self._warn(f"Delete ignored: scan {self.scan_id} is already deleted", scan_id=self.scan_id)
                return False
            if self._state.is_active:
                if not delete_running_scans:
                    raise InvalidStateError(
                        "Refusing to delete an active scan without delete_running_scans",
                        scan_id=self.scan_id, project_id=self.project_id, state=self._state
                    )
                self.gateway.cancel(self.handle)
                self._set_state(ScanState.CANCELED)
            self.gateway.delete(self.handle)
            self._set_state(ScanState.DELETED)
            return True

    def __repr__(self):
        return f"ScanLifecycle(scan={self.scan_id}, state={self._state.value})"
