"""Compose submission, polling, reporting, parsing and filtering."""

import threading
from cxscan.errors import (
    CxScanError,
    InvalidStateError,
    PollingCanceledError,
    ScanCanceledError,
    ScanFailedError,
    ScanInProgressError,
)
from cxscan.models.scan import ScanHandle, ScanState
from cxscan.operations.base import Operation
from cxscan.operations.filter_engine import apply_filter
from cxscan.operations.poller import Poller
from cxscan.operations.report_phase import ReportPhase
from cxscan.operations.result_parser import ResultParser
from cxscan.operations.scan_lifecycle import ScanLifecycle


class ScanOrchestrator(Operation):
    """Run complete scan workflows against the remote service.

    Submissions are serialized per project through a lock table owned by
    the instance: a project with a queued or running scan (known locally or
    reported by the remote scan queue) is either rejected or, with
    ``config.wait_for_active_scans``, waited on before submitting.
    """

    def __init__(self, config, scan_gateway, report_gateway, directory, result_parser=None,
                 file_manager=None, scan_poller=None, report_poller=None, progress=None,
                 debug_logger=None, exception_reporter=None):
        """Initialize the orchestrator.

        Args:
            config (Config): Configuration instance
            scan_gateway (ScanGateway): Remote scan operations
            report_gateway (ReportGateway): Remote report operations
            directory (ProjectDirectory): Project and team lookups
            result_parser (ResultParser, optional): Report parser
            file_manager (FileManager, optional): Saves raw reports when configured
            scan_poller (Poller, optional): Poller for scan waits; built from config if omitted
            report_poller (Poller, optional): Poller for report waits; built from config if omitted
        """
        super().__init__(config, progress, debug_logger, exception_reporter)
        self.scan_gateway = scan_gateway
        self.directory = directory
        self.result_parser = result_parser or ResultParser(debug_logger)
        self.scan_poller = scan_poller or Poller.from_config(
            config, 'scan',
            debug_logger=debug_logger,
            exception_reporter=exception_reporter,
            progress=progress
        )
        self.report_phase = ReportPhase(
            config, report_gateway,
            file_manager=file_manager,
            poller=report_poller,
            progress=progress,
            debug_logger=debug_logger,
            exception_reporter=exception_reporter
        )
        self._project_locks = {}
        self._locks_guard = threading.Lock()
        self._active_scans = {}

    def _project_lock(self, project_id):
        with self._locks_guard:
            lock = self._project_locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._project_locks[project_id] = lock
            return lock

    def _lifecycle(self, handle, state=None):
        """Lifecycle for a handle, reusing the one this instance submitted if any."""
        local = self._active_scans.get(handle.project_id)
        if local is not None and local.handle == handle:
            if not local.state.is_terminal:
                local.refresh()
            return local
        kwargs = {
            'progress': self.progress,
            'debug_logger': self.logger,
            'exception_reporter': self.exception_reporter
        }
        if state is not None:
            return ScanLifecycle(handle, self.scan_gateway, self.config, state=state, **kwargs)
        return ScanLifecycle.attach(handle, self.scan_gateway, self.config, **kwargs)

    def _record(self, operation, error, scan_id=None, project_id=None):
        if self.logger:
            self.logger.error(f"{operation} failed: {error}")
        if self.exception_reporter:
            self.exception_reporter.add_workflow_error(operation, error, scan_id=scan_id, project_id=project_id)

    # Submission

    def active_scan_ids(self, project_id):
        """Queued or running scans of a project, local ones first."""
        ids = []
        local = self._active_scans.get(project_id)
        if local is not None and local.state.is_active:
            ids.append(local.scan_id)
        for scan_id in self.scan_gateway.active_scan_ids(project_id):
            if scan_id not in ids:
                ids.append(scan_id)
        return ids

    def submit_scan(self, request, cancel_event=None):
        """Submit a scan once the project has no other active scan.

        Args:
            request (ScanRequest): Scan parameters
            cancel_event (threading.Event, optional): Caller abort signal

        Returns:
            ScanLifecycle: Lifecycle of the new scan

        Raises:
            ScanInProgressError: If the project has an active scan and waiting is disabled
        """
        project_id = request.project_id
        with self._project_lock(project_id):
            active = self.active_scan_ids(project_id)
            if active:
                if not self.config.wait_for_active_scans:
                    raise ScanInProgressError(
                        f"Project already has {len(active)} active scan(s): {', '.join(map(str, active))}",
                        project_id=project_id, scan_id=active[0]
                    )
                if self.logger:
                    self.logger.log(f"Waiting for {len(active)} active scan(s) of project {project_id}")
                for scan_id in active:
                    lifecycle = self._lifecycle(ScanHandle(scan_id, project_id), state=ScanState.QUEUED)
                    lifecycle.wait_for_completion(self.scan_poller, cancel_event)

            lifecycle = ScanLifecycle.submit(
                request, self.scan_gateway, self.config,
                progress=self.progress,
                debug_logger=self.logger,
                exception_reporter=self.exception_reporter
            )
            self._active_scans[project_id] = lifecycle
        return lifecycle

    def wait_for_scan(self, lifecycle, cancel_event=None):
        """Wait for a scan to finish successfully.

        A caller abort, either cancel_event or Ctrl-C, cancels the remote scan
        when ``config.cancel_on_abort`` is set before re-raising.

        Raises:
            ScanFailedError: If the scan failed or was deleted
            ScanCanceledError: If the scan was canceled
            PollingCanceledError: If cancel_event was set
        """
        if self.progress:
            self.progress.create_bar(self.scan_poller.max_wait, f"Scan {lifecycle.scan_id}")
        try:
            state = lifecycle.wait_for_completion(self.scan_poller, cancel_event)
        except (PollingCanceledError, KeyboardInterrupt):
            if self.config.cancel_on_abort and lifecycle.state.is_active:
                if self.logger:
                    self.logger.log(f"Aborted by caller; canceling scan {lifecycle.scan_id}")
                lifecycle.cancel()
            raise
        finally:
            if self.progress:
                self.progress.close()

        if state is ScanState.FINISHED:
            return state
        if state is ScanState.CANCELED:
            raise ScanCanceledError("Scan was canceled", scan_id=lifecycle.scan_id,
                                    project_id=lifecycle.project_id, state=state)
        raise ScanFailedError(f"Scan ended as {state.value}", scan_id=lifecycle.scan_id,
                              project_id=lifecycle.project_id, state=state)

    # Workflows

    def create_scan_and_report(self, request, filters=None, cancel_event=None):
        """Submit a scan, wait for it, then fetch, parse and filter its report.

        Args:
            request (ScanRequest): Scan parameters
            filters (FilterConfiguration, optional): Filter applied to the results
            cancel_event (threading.Event, optional): Caller abort signal

        Returns:
            ScanResults: Parsed (and filtered, if filters are given) results
        """
        lifecycle = None
        try:
            lifecycle = self.submit_scan(request, cancel_event)
            self.wait_for_scan(lifecycle, cancel_event)
            return self._results(lifecycle, filters, cancel_event)
        except CxScanError as e:
            self._record('create_scan_and_report', e,
                         scan_id=lifecycle.scan_id if lifecycle else None,
                         project_id=request.project_id)
            raise

    def get_latest_results(self, team, project_name, filters=None, cancel_event=None):
        """Fetch, parse and filter the report of a project's latest finished scan.

        Args:
            team (str): Team full path
            project_name (str): Project name
            filters (FilterConfiguration, optional): Filter applied to the results
            cancel_event (threading.Event, optional): Caller abort signal

        Raises:
            NotFoundError: If the team, project or a finished scan does not exist
        """
        project_id = None
        try:
            project_id = self.directory.resolve_project_id(team, project_name)
            scan_id = self.directory.latest_scan_id(project_id)
            if self.logger:
                self.logger.log(f"Latest scan of {team}/{project_name} ({project_id}) is {scan_id}")
            return self.results_for_scan(ScanHandle(scan_id, project_id), filters, cancel_event)
        except CxScanError as e:
            self._record('get_latest_results', e, project_id=project_id)
            raise

    def results_for_scan(self, handle, filters=None, cancel_event=None):
        """Fetch, parse and filter the report of an existing scan.

        Raises:
            InvalidStateError: If the scan is not Finished
        """
        lifecycle = self._lifecycle(handle)
        return self._results(lifecycle, filters, cancel_event)

    def _results(self, lifecycle, filters, cancel_event):
        raw_report = self.report_phase.generate(lifecycle, cancel_event)
        results = self.result_parser.parse(
            raw_report, scan_id=lifecycle.scan_id, project_id=lifecycle.project_id
        )
        if filters is None:
            return results

        filtered = apply_filter(results, filters)
        if self.logger:
            self.logger.log(f"Filter {filters} kept {filtered.total} of {results.total} findings")
        if self.exception_reporter:
            self.exception_reporter.update_stats(findings_total=results.total, findings_filtered=filtered.total)
        return filtered

    # Scan and project maintenance

    def get_scan_summary(self, team, project_name):
        """Server-side severity counts of a project's latest finished scan."""
        project_id = self.directory.resolve_project_id(team, project_name)
        scan_id = self.directory.latest_scan_id(project_id)
        return self.directory.get_scan_summary(scan_id)

    def cancel_scan(self, handle):
        """Cancel a scan; a scan already in a terminal state is left alone."""
        return self._lifecycle(handle).cancel()

    def delete_scan(self, handle, delete_running_scans=None):
        """Delete a scan, canceling it first when it is active and consent is given."""
        with self._project_lock(handle.project_id):
            deleted = self._lifecycle(handle).delete(delete_running_scans)
            local = self._active_scans.get(handle.project_id)
            if local is not None and local.handle == handle:
                del self._active_scans[handle.project_id]
        return deleted

    def delete_project(self, project_id, delete_running_scans=None):
        """Delete a project.

        A project with active scans is only deleted when
        ``delete_running_scans`` is true; those scans are canceled first.

        Raises:
            InvalidStateError: If the project has active scans and consent was not given
        """
        if delete_running_scans is None:
            delete_running_scans = self.config.delete_running_scans

        with self._project_lock(project_id):
            active = self.active_scan_ids(project_id)
            if active and not delete_running_scans:
                raise InvalidStateError(
                    f"Project has {len(active)} active scan(s); refusing to delete without delete_running_scans",
                    project_id=project_id, scan_id=active[0]
                )
            for scan_id in active:
                self._lifecycle(ScanHandle(scan_id, project_id), state=ScanState.QUEUED).cancel()
            self.directory.delete_project(project_id, delete_running_scans=bool(active))
            self._active_scans.pop(project_id, None)
        return True
