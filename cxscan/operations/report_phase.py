"""Report generation phase."""

import threading
from cxscan.errors import InvalidStateError, ReportFailedError
from cxscan.models.report import RawReport, ReportKind, ReportState
from cxscan.models.scan import ScanState
from cxscan.operations.base import Operation
from cxscan.operations.poller import Poller


class ReportPhase(Operation):
    """Request, wait for and fetch the report of a finished scan."""

    def __init__(self, config, report_gateway, file_manager=None, poller=None, progress=None,
                 debug_logger=None, exception_reporter=None):
        """Initialize the report phase.

        Args:
            config (Config): Configuration instance
            report_gateway (ReportGateway): Remote report operations
            file_manager (FileManager, optional): Saves raw reports when configured
            poller (Poller, optional): Poller for the report phase; built from config if omitted
        """
        super().__init__(config, progress, debug_logger, exception_reporter)
        self.gateway = report_gateway
        self.file_manager = file_manager
        self.poller = poller or Poller.from_config(
            config, 'report',
            debug_logger=debug_logger,
            exception_reporter=exception_reporter,
            progress=progress
        )
        self._active_reports = {}
        self._lock = threading.Lock()

    def request_report(self, lifecycle, kind=ReportKind.SAST_XML):
        """Request a report for a finished scan.

        Args:
            lifecycle (ScanLifecycle): Lifecycle of the scan
            kind (ReportKind): Report format

        Returns:
            ReportHandle: Handle in the Requested state

        Raises:
            InvalidStateError: If the scan is not Finished or already has a report in progress
        """
        if lifecycle.state is not ScanState.FINISHED:
            raise InvalidStateError(
                "Reports can only be requested for finished scans",
                scan_id=lifecycle.scan_id, project_id=lifecycle.project_id, state=lifecycle.state
            )

        with self._lock:
            active = self._active_reports.get(lifecycle.handle)
            if active is not None and not active.state.is_terminal:
                # An earlier wait may have stopped before the report settled
                active.state = self.gateway.status(active)
                if active.state is ReportState.FINISHED and active.kind is kind:
                    if self.logger:
                        self.logger.log(f"Reusing finished report {active.report_id} for scan {lifecycle.scan_id}")
                    return active
                if not active.state.is_terminal:
                    raise InvalidStateError(
                        f"Report {active.report_id} is still {active.state.value}",
                        scan_id=lifecycle.scan_id, report_id=active.report_id, state=active.state
                    )
            handle = self.gateway.request_report(lifecycle.handle, kind)
            handle.state = ReportState.REQUESTED
            self._active_reports[lifecycle.handle] = handle

        if self.logger:
            self.logger.log(f"Requested {kind.value} report {handle.report_id} for scan {lifecycle.scan_id}")
        return handle

    def wait_for_report(self, handle, cancel_event=None):
        """Poll report status until it is Finished.

        Args:
            handle (ReportHandle): Report to wait for
            cancel_event (threading.Event, optional): Caller abort signal

        Returns:
            ReportHandle: The same handle, now Finished

        Raises:
            ReportFailedError: If report generation failed
        """
        if not handle.state.is_terminal:
            def update(state):
                if state is not handle.state and self.logger:
                    self.logger.log(f"  Report {handle.report_id}: {handle.state.value} -> {state.value}")
                handle.state = state

            if self.progress:
                self.progress.create_bar(self.poller.max_wait, f"Report {handle.report_id}")
            try:
                self.poller.poll(
                    lambda: self.gateway.status(handle),
                    lambda state: state.is_terminal,
                    cancel_event=cancel_event,
                    on_value=update,
                    context={'scan_id': handle.scan_id, 'report_id': handle.report_id}
                )
            finally:
                if self.progress:
                    self.progress.close()

        if handle.state is ReportState.FAILED:
            raise ReportFailedError(
                "Report generation failed",
                scan_id=handle.scan_id, report_id=handle.report_id, state=handle.state
            )
        return handle

    def fetch(self, handle):
        """Return the report content, downloading it only once per handle.

        Raises:
            InvalidStateError: If the report is not Finished
        """
        if handle.state is not ReportState.FINISHED:
            raise InvalidStateError(
                "Report content is only available once generation has finished",
                scan_id=handle.scan_id, report_id=handle.report_id, state=handle.state
            )
        if handle.content is None:
            handle.content = self.gateway.fetch(handle)
            if self.logger:
                self.logger.log(f"Fetched report {handle.report_id} ({len(handle.content):,} bytes)")
            if self.file_manager:
                path = self.file_manager.save_raw_report(handle.report_id, handle.scan_id, handle.content)
                if path and self.logger:
                    self.logger.log(f"Saved raw report to {path}")
        return handle.content

    def generate(self, lifecycle, cancel_event=None):
        """Request, wait for and fetch the XML report of a finished scan.

        Returns:
            RawReport: Report content tagged with its kind
        """
        handle = self.request_report(lifecycle, ReportKind.SAST_XML)
        try:
            self.wait_for_report(handle, cancel_event)
            content = self.fetch(handle)
        finally:
            if handle.state.is_terminal:
                self.release(lifecycle.handle, handle)
        return RawReport(ReportKind.SAST_XML, content=content, report_id=handle.report_id)

    def active_report(self, scan_handle):
        """Return the report handle still tracked for a scan, or None."""
        with self._lock:
            return self._active_reports.get(scan_handle)

    def release(self, scan_handle, handle):
        """Stop tracking a settled report so its content can be freed."""
        with self._lock:
            if self._active_reports.get(scan_handle) is handle:
                del self._active_reports[scan_handle]
