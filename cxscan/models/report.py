"""Report data models."""

from enum import Enum


class ReportKind(Enum):
    """Shape of the raw report content, used to pick the parser."""

    SAST_XML = 'xml'
    OSA = 'osa'


class ReportState(Enum):
    """Generation state of a report."""

    REQUESTED = 'Requested'
    IN_PROGRESS = 'InProgress'
    FINISHED = 'Finished'
    FAILED = 'Failed'

    @property
    def is_terminal(self):
        return self in (ReportState.FINISHED, ReportState.FAILED)


class ReportHandle:
    """Represents a report requested for a finished scan."""

    def __init__(self, report_id, scan_handle, kind=ReportKind.SAST_XML,
                 state=ReportState.REQUESTED):
        """Initialize a ReportHandle.

        Args:
            report_id (int or str): The report ID
            scan_handle (ScanHandle): Scan the report was generated from
            kind (ReportKind): Report format
            state (ReportState): Current generation state
        """
        self.report_id = report_id
        self.scan_handle = scan_handle
        self.kind = kind
        self.state = state
        self.content = None

    @property
    def scan_id(self):
        return self.scan_handle.scan_id

    @property
    def is_fetched(self):
        return self.content is not None

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'report_id': self.report_id,
            'scan_id': self.scan_handle.scan_id,
            'project_id': self.scan_handle.project_id,
            'kind': self.kind.value,
            'state': self.state.value
        }

    def __repr__(self):
        return f"ReportHandle(id={self.report_id}, scan={self.scan_id}, state={self.state.value})"


class RawReport:
    """Unparsed report payload tagged with its kind.

    SAST reports carry a single ``content`` document; OSA reports carry a
    ``vulnerabilities`` document and a ``libraries`` document.
    """

    def __init__(self, kind, content=None, vulnerabilities=None, libraries=None, report_id=None):
        self.kind = kind
        self.content = content
        self.vulnerabilities = vulnerabilities
        self.libraries = libraries
        self.report_id = report_id

    @classmethod
    def sast(cls, content, report_id=None):
        return cls(ReportKind.SAST_XML, content=content, report_id=report_id)

    @classmethod
    def osa(cls, vulnerabilities, libraries):
        return cls(ReportKind.OSA, vulnerabilities=vulnerabilities, libraries=libraries)

    def __repr__(self):
        return f"RawReport(kind={self.kind.value}, report={self.report_id})"
