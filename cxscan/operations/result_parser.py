"""Parse raw reports into ScanResults."""

import json
from datetime import datetime
from xml.etree import ElementTree
from cxscan.errors import ParseError
from cxscan.models.finding import Finding
from cxscan.models.report import RawReport, ReportKind
from cxscan.models.scan_results import ScanResults

# Format of the ScanStart attribute, e.g. "Sunday, June 2, 2019 10:00:00 AM"
SCAN_START_FORMAT = '%A, %B %d, %Y %I:%M:%S %p'


class ResultParser:
    """Convert report payloads into canonical findings.

    The parser is chosen by the report's ReportKind tag. Both paths produce
    the same Finding shape; tokens that cannot be mapped become the Unknown
    member of their enumeration instead of being dropped. Findings sharing
    an identity key keep only the first occurrence.
    """

    def __init__(self, debug_logger=None):
        self.logger = debug_logger
        self._parsers = {
            ReportKind.SAST_XML: self._parse_sast_xml,
            ReportKind.OSA: self._parse_osa,
        }

    def parse(self, raw_report, **metadata):
        """Parse a RawReport.

        Args:
            raw_report (RawReport): Report payload
            **metadata: Values used where the payload carries none (scan_id, project_id...)

        Returns:
            ScanResults: Parsed results

        Raises:
            ParseError: If the payload is structurally invalid
        """
        parser = self._parsers.get(raw_report.kind)
        if parser is None:
            raise ParseError(f"Unsupported report kind: {raw_report.kind}", report_id=raw_report.report_id)
        return parser(raw_report, metadata)

    def parse_file(self, path, **metadata):
        """Parse an XML report file."""
        with open(path, 'rb') as f:
            content = f.read()
        return self.parse(RawReport.sast(content), **metadata)

    def parse_osa_files(self, vulnerabilities_path, libraries_path, **metadata):
        """Parse an OSA vulnerabilities file together with its libraries file."""
        with open(vulnerabilities_path, 'rb') as f:
            vulnerabilities = f.read()
        with open(libraries_path, 'rb') as f:
            libraries = f.read()
        return self.parse(RawReport.osa(vulnerabilities, libraries), **metadata)

    def _dedupe(self, findings, source):
        unique = []
        seen = set()
        for finding in findings:
            if finding.key in seen:
                continue
            seen.add(finding.key)
            unique.append(finding)
        duplicates = len(findings) - len(unique)
        if duplicates and self.logger:
            self.logger.log(f"  Merged {duplicates} duplicate findings from {source}")
        return unique

    # SAST XML

    def _parse_sast_xml(self, raw_report, metadata):
        content = raw_report.content
        if not content:
            raise ParseError("Empty XML report", report_id=raw_report.report_id)
        try:
            root = ElementTree.fromstring(content)
        except ElementTree.ParseError as e:
            raise ParseError(f"Malformed XML report: {e}", report_id=raw_report.report_id) from e

        if root.tag != 'CxXMLResults':
            raise ParseError(f"Unexpected root element <{root.tag}>", report_id=raw_report.report_id)

        findings = []
        for query in root.iter('Query'):
            category = query.get('name')
            if not category:
                raise ParseError("Query element without a name", report_id=raw_report.report_id)
            for result in query.findall('Result'):
                findings.append(self._sast_finding(query, result, category, raw_report.report_id))

        findings = self._dedupe(findings, 'XML report')
        if self.logger:
            self.logger.log(f"Parsed {len(findings)} findings from XML report")

        return ScanResults(
            findings,
            scan_id=root.get('ScanId') or metadata.get('scan_id'),
            project_id=root.get('ProjectId') or metadata.get('project_id'),
            project_name=root.get('ProjectName') or metadata.get('project_name'),
            team=root.get('TeamFullPathOnReportDate') or root.get('Team') or metadata.get('team'),
            scan_date=self._parse_scan_start(root.get('ScanStart')) or metadata.get('scan_date'),
            engine_version=root.get('CheckmarxVersion') or metadata.get('engine_version'),
            preset=root.get('Preset') or metadata.get('preset'),
            report_kind=ReportKind.SAST_XML,
            lines_of_code=self._optional_int(root.get('LinesOfCodeScanned')),
            files_scanned=self._optional_int(root.get('FilesScanned')),
            deep_link=root.get('DeepLink')
        )

    @staticmethod
    def _sast_finding(query, result, category, report_id):
        file_name = result.get('FileName')
        if file_name is None:
            raise ParseError(f"Result of query {category} has no FileName", report_id=report_id)
        try:
            line = int(result.get('Line', '0') or 0)
        except ValueError as e:
            raise ParseError(f"Invalid Line '{result.get('Line')}' in {file_name}", report_id=report_id) from e

        path = result.find('Path')
        similarity_id = path.get('SimilarityId') if path is not None else None

        return Finding(
            severity=result.get('Severity') or query.get('Severity'),
            category=category,
            cwe=query.get('cweId'),
            state=result.get('state'),
            status=result.get('Status'),
            file_path=file_name,
            line=line,
            group=query.get('group'),
            language=query.get('Language'),
            similarity_id=similarity_id,
            deep_link=result.get('DeepLink')
        )

    @staticmethod
    def _parse_scan_start(value):
        if not value:
            return None
        try:
            return datetime.strptime(value.strip(), SCAN_START_FORMAT)
        except ValueError:
            return value

    @staticmethod
    def _optional_int(value):
        try:
            return int(value) if value not in (None, '') else None
        except ValueError:
            return None

    # OSA

    def _parse_osa(self, raw_report, metadata):
        vulnerabilities = self._load_json_list(raw_report.vulnerabilities, 'vulnerabilities')
        libraries = self._load_json_list(raw_report.libraries, 'libraries')

        library_names = {}
        for library in libraries:
            if 'id' not in library:
                raise ParseError("Library entry without an id")
            name = library.get('name') or str(library['id'])
            version = library.get('version')
            library_names[str(library['id'])] = f"{name}:{version}" if version else name

        findings = []
        for vulnerability in vulnerabilities:
            cve = vulnerability.get('cveName')
            if not cve:
                raise ParseError("Vulnerability entry without a cveName")
            library_id = vulnerability.get('libraryId')
            location = library_names.get(str(library_id)) if library_id is not None else None
            findings.append(Finding(
                severity=self._named(vulnerability.get('severity')),
                category=cve,
                cwe=vulnerability.get('cwe'),
                state=self._named(vulnerability.get('state')),
                status=vulnerability.get('status'),
                file_path=location or vulnerability.get('sourceFileName') or str(library_id),
                line=0,
                group='OSA',
                deep_link=vulnerability.get('url'),
                description=vulnerability.get('description')
            ))

        findings = self._dedupe(findings, 'OSA report')
        if self.logger:
            self.logger.log(f"Parsed {len(findings)} findings across {len(libraries)} libraries from OSA report")

        return ScanResults(
            findings,
            scan_id=metadata.get('scan_id'),
            project_id=metadata.get('project_id'),
            project_name=metadata.get('project_name'),
            team=metadata.get('team'),
            scan_date=metadata.get('scan_date'),
            engine_version=metadata.get('engine_version'),
            report_kind=ReportKind.OSA
        )

    @staticmethod
    def _named(value):
        """OSA encodes enumerations as {"id": .., "name": ..} objects."""
        if isinstance(value, dict):
            return value.get('name')
        return value

    @staticmethod
    def _load_json_list(content, label):
        if content is None:
            raise ParseError(f"Missing OSA {label} document")
        try:
            data = json.loads(content)
        except ValueError as e:
            raise ParseError(f"Malformed OSA {label} document: {e}") from e
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ParseError(f"OSA {label} document must be a list of objects")
        return data
