"""Scan results data model."""

from cxscan.models.finding import Severity
from cxscan.models.report import ReportKind


class ScanResults:
    """Ordered findings of one scan plus scan metadata.

    The severity summary is always computed from the findings held by the
    instance, so it cannot drift from them.
    """

    def __init__(self, findings, scan_id=None, project_id=None, project_name=None, team=None,
                 scan_date=None, engine_version=None, preset=None, report_kind=ReportKind.SAST_XML,
                 lines_of_code=None, files_scanned=None, deep_link=None):
        self.findings = tuple(findings)
        self.scan_id = scan_id
        self.project_id = project_id
        self.project_name = project_name
        self.team = team
        self.scan_date = scan_date
        self.engine_version = engine_version
        self.preset = preset
        self.report_kind = report_kind
        self.lines_of_code = lines_of_code
        self.files_scanned = files_scanned
        self.deep_link = deep_link
        self._summary = self._count_by_severity(self.findings)

    @staticmethod
    def _count_by_severity(findings):
        counts = {}
        for finding in findings:
            counts[finding.severity] = counts.get(finding.severity, 0) + 1
        return {severity: counts[severity] for severity in Severity.ordered() if severity in counts}

    @property
    def summary(self):
        """Finding count per severity, only for severities that occur."""
        return dict(self._summary)

    @property
    def total(self):
        return len(self.findings)

    def metadata(self):
        """Scan metadata without findings."""
        return {
            'scan_id': self.scan_id,
            'project_id': self.project_id,
            'project_name': self.project_name,
            'team': self.team,
            'scan_date': self.scan_date,
            'engine_version': self.engine_version,
            'preset': self.preset,
            'report_kind': self.report_kind,
            'lines_of_code': self.lines_of_code,
            'files_scanned': self.files_scanned,
            'deep_link': self.deep_link
        }

    def with_findings(self, findings):
        """Return a new ScanResults with the same metadata and other findings."""
        return ScanResults(findings, **self.metadata())

    def keys(self):
        """Identity keys of all findings, for before/after comparisons."""
        return [finding.key for finding in self.findings]

    def to_dict(self):
        """Convert to dictionary."""
        data = self.metadata()
        data['report_kind'] = self.report_kind.value if self.report_kind else None
        data['scan_date'] = self.scan_date.isoformat() if hasattr(self.scan_date, 'isoformat') else self.scan_date
        data['summary'] = {severity.value: count for severity, count in self._summary.items()}
        data['findings'] = [finding.to_dict() for finding in self.findings]
        return data

    def __len__(self):
        return len(self.findings)

    def __iter__(self):
        return iter(self.findings)

    def __eq__(self, other):
        if not isinstance(other, ScanResults):
            return NotImplemented
        return self.metadata() == other.metadata() and self.findings == other.findings

    def __repr__(self):
        counts = ', '.join(f"{severity.value}={count}" for severity, count in self._summary.items())
        return f"ScanResults(scan={self.scan_id}, findings={len(self.findings)}, {counts or 'empty'})"
