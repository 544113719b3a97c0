"""Scan operations against the CxSAST REST API."""

from cxscan.errors import NotFoundError, RemoteServiceError, SubmissionError
from cxscan.models.scan import ScanHandle, ScanState

# Remote stage names mapped onto the lifecycle states
STATUS_MAP = {
    'new': ScanState.QUEUED,
    'prescan': ScanState.QUEUED,
    'queued': ScanState.QUEUED,
    'sourcepullinganddeployment': ScanState.QUEUED,
    'scanning': ScanState.SCANNING,
    'postscan': ScanState.SCANNING,
    'finished': ScanState.FINISHED,
    'failed': ScanState.FAILED,
    'canceled': ScanState.CANCELED,
    'cancelled': ScanState.CANCELED,
    'deleted': ScanState.DELETED,
}

# Numeric status ids returned by /sast/scans/{id}
STATUS_ID_MAP = {
    1: ScanState.QUEUED,
    2: ScanState.QUEUED,
    3: ScanState.QUEUED,
    4: ScanState.SCANNING,
    6: ScanState.SCANNING,
    7: ScanState.FINISHED,
    8: ScanState.CANCELED,
    9: ScanState.FAILED,
    10: ScanState.QUEUED,
}


def map_scan_status(status):
    """Map a remote status object, name or id onto a ScanState.

    Raises:
        RemoteServiceError: If the status is not recognized
    """
    if isinstance(status, dict):
        name = status.get('name') or status.get('value')
        if name and str(name).replace(' ', '').lower() in STATUS_MAP:
            return STATUS_MAP[str(name).replace(' ', '').lower()]
        status = status.get('id')
    if isinstance(status, int) and status in STATUS_ID_MAP:
        return STATUS_ID_MAP[status]
    if isinstance(status, str) and status.replace(' ', '').lower() in STATUS_MAP:
        return STATUS_MAP[status.replace(' ', '').lower()]
    raise RemoteServiceError(f"Unrecognized scan status: {status!r}")


class ScanGateway:
    """Submit, query, cancel and delete scans."""

    def __init__(self, api_client, debug_logger=None):
        """Initialize the gateway.

        Args:
            api_client (APIClient): HTTP client
            debug_logger (DebugLogger, optional): Debug logger instance
        """
        self.api_client = api_client
        self.logger = debug_logger

    def submit(self, request):
        """Configure and start a scan.

        Args:
            request (ScanRequest): Scan parameters

        Returns:
            ScanHandle: Handle of the created scan

        Raises:
            SubmissionError: If the project does not exist or the server rejects the parameters
        """
        project_id = request.project_id
        try:
            preset_id = self.resolve_preset_id(request.preset)
            engine_id = self.resolve_engine_configuration_id(request.engine_configuration)

            settings = {'projectId': project_id, 'presetId': preset_id}
            if engine_id is not None:
                settings['engineConfigurationId'] = engine_id
            self.api_client.post('/cxrestapi/sast/scanSettings', json_data=settings)

            if request.exclude_folders or request.exclude_files:
                self.api_client.put(
                    f'/cxrestapi/projects/{project_id}/sourceCode/excludeSettings',
                    json_data={
                        'excludeFoldersPattern': ', '.join(request.exclude_folders),
                        'excludeFilesPattern': ', '.join(request.exclude_files)
                    }
                )

            response = self.api_client.post('/cxrestapi/sast/scans', json_data={
                'projectId': project_id,
                'isIncremental': request.incremental,
                'isPublic': request.is_public,
                'forceScan': request.force_scan,
                'comment': request.comment or ''
            })
        except NotFoundError as e:
            raise SubmissionError(f"Project not found: {e.detail}", project_id=project_id) from e
        except RemoteServiceError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise SubmissionError(f"Scan rejected: {e.detail}", project_id=project_id) from e
            raise

        scan_id = (response or {}).get('id')
        if scan_id is None:
            raise SubmissionError("No scan id in submission response", project_id=project_id)
        return ScanHandle(scan_id, project_id)

    def status(self, handle):
        """Return the current ScanState of a scan."""
        response = self.api_client.get(f'/cxrestapi/sast/scans/{handle.scan_id}')
        return map_scan_status((response or {}).get('status'))

    def cancel(self, handle):
        """Cancel a queued or running scan."""
        if self.logger:
            self.logger.log(f"Canceling scan {handle.scan_id}")
        self.api_client.patch(f'/cxrestapi/sast/scansQueue/{handle.scan_id}', json_data={'status': 'Canceled'})
        return True

    def delete(self, handle):
        """Delete a scan."""
        if self.logger:
            self.logger.log(f"Deleting scan {handle.scan_id}")
        self.api_client.delete(f'/cxrestapi/sast/scans/{handle.scan_id}')
        return True

    def active_scan_ids(self, project_id):
        """IDs of queued or running scans of a project, from the scan queue."""
        queue = self.api_client.get('/cxrestapi/sast/scansQueue', params={'projectId': project_id}) or []
        active = []
        for entry in queue:
            stage = entry.get('stage') or {}
            try:
                state = map_scan_status(stage)
            except RemoteServiceError:
                continue
            if state.is_active:
                active.append(entry.get('id'))
        return active

    def resolve_preset_id(self, preset):
        """Return the ID of a preset given its ID or name."""
        return self._resolve_named('/cxrestapi/sast/presets', preset, 'preset')

    def resolve_engine_configuration_id(self, configuration):
        """Return the ID of an engine configuration given its ID or name."""
        if configuration is None or configuration == '':
            return None
        return self._resolve_named('/cxrestapi/sast/engineConfigurations', configuration, 'engine configuration')

    def _resolve_named(self, endpoint, value, label):
        if isinstance(value, int):
            return value
        if str(value).isdigit():
            return int(value)
        for item in self.api_client.get(endpoint) or []:
            if str(item.get('name', '')).lower() == str(value).lower():
                return item.get('id')
        raise SubmissionError(f"Unknown {label}: {value}")
