"""Report operations against the CxSAST REST API."""

from cxscan.errors import RemoteServiceError
from cxscan.models.report import ReportHandle, ReportKind, ReportState

# Report status values returned by /reports/sastScan/{id}/status
REPORT_STATUS_MAP = {
    'inprocess': ReportState.IN_PROGRESS,
    'created': ReportState.FINISHED,
    'failed': ReportState.FAILED,
    'deleted': ReportState.FAILED,
}

REPORT_TYPES = {
    ReportKind.SAST_XML: 'XML',
}


class ReportGateway:
    """Request, query and download scan reports."""

    def __init__(self, api_client, debug_logger=None):
        self.api_client = api_client
        self.logger = debug_logger

    def request_report(self, scan_handle, kind=ReportKind.SAST_XML):
        """Ask the server to generate a report.

        Returns:
            ReportHandle: Handle in the Requested state
        """
        report_type = REPORT_TYPES.get(kind)
        if report_type is None:
            raise ValueError(f"The server cannot generate {kind.value} reports")

        response = self.api_client.post('/cxrestapi/reports/sastScan', json_data={
            'reportType': report_type,
            'scanId': scan_handle.scan_id
        })
        report_id = (response or {}).get('reportId')
        if report_id is None:
            raise RemoteServiceError(f"No reportId in report request response for scan {scan_handle.scan_id}")
        return ReportHandle(report_id, scan_handle, kind=kind)

    def status(self, handle):
        """Return the current ReportState of a report."""
        response = self.api_client.get(f'/cxrestapi/reports/sastScan/{handle.report_id}/status') or {}
        status = response.get('status') or {}
        value = status.get('value') if isinstance(status, dict) else status
        state = REPORT_STATUS_MAP.get(str(value).replace(' ', '').lower())
        if state is None:
            raise RemoteServiceError(f"Unrecognized report status: {value!r}", report_id=handle.report_id)
        return state

    def fetch(self, handle):
        """Download the generated report."""
        return self.api_client.get_bytes(f'/cxrestapi/reports/sastScan/{handle.report_id}',
                                         accept='application/xml')
