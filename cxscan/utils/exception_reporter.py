"""Exception and summary reporting utilities."""

import os
import threading
from datetime import datetime

class ExceptionReporter:
    """Collect warnings and errors raised while orchestrating scans."""

    def __init__(self):
        """Initialize the exception reporter."""
        self.workflow_errors = []
        self.poll_errors = []
        self.lifecycle_warnings = []
        self.general_warnings = []
        self._lock = threading.Lock()

        # Summary statistics
        self.stats = {
            'project': '',
            'scan_id': '',
            'report_id': '',
            'scan_state': '',
            'findings_total': 0,
            'findings_filtered': 0,
            'execution_time': '0h 0m 0s',
            'output_file': ''
        }

    def add_workflow_error(self, operation, error, scan_id=None, project_id=None):
        """Record an error that ended a workflow."""
        with self._lock:
            self.workflow_errors.append({
                'operation': operation,
                'type': type(error).__name__,
                'error': str(error),
                'scan_id': scan_id,
                'project_id': project_id
            })

    def add_poll_error(self, phase, identifier, error_message):
        """Record a transient error swallowed by a poll loop."""
        with self._lock:
            self.poll_errors.append({
                'phase': phase,
                'id': identifier,
                'error': error_message
            })

    def add_lifecycle_warning(self, scan_id, message):
        """Record a benign lifecycle warning, e.g. canceling a finished scan."""
        with self._lock:
            self.lifecycle_warnings.append({
                'scan_id': scan_id,
                'message': message
            })

    def add_general_warning(self, category, message):
        """Record a general warning."""
        with self._lock:
            self.general_warnings.append({
                'category': category,
                'message': message
            })

    @property
    def has_entries(self):
        return bool(self.workflow_errors or self.poll_errors or
                    self.lifecycle_warnings or self.general_warnings)

    def update_stats(self, **kwargs):
        """Update summary statistics."""
        self.stats.update(kwargs)

    def generate_report(self, output_path):
        """Generate and save the execution report.

        Args:
            output_path (str): Path of the results file the report belongs to

        Returns:
            str: Path to the generated report file
        """
        report_path = os.path.splitext(output_path)[0] + '_report.txt'

        lines = []
        lines.append("=" * 80)
        lines.append("CxSAST Scan Orchestrator - Execution Report")
        lines.append("=" * 80)
        lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append("")

        lines.append("=" * 80)
        lines.append("SUMMARY STATISTICS")
        lines.append("=" * 80)
        lines.append(f"Project:               {self.stats['project']}")
        lines.append(f"Scan ID:               {self.stats['scan_id']}")
        lines.append(f"Report ID:             {self.stats['report_id']}")
        lines.append(f"Scan State:            {self.stats['scan_state']}")
        lines.append(f"Findings (all):        {self.stats['findings_total']:,}")
        lines.append(f"Findings (filtered):   {self.stats['findings_filtered']:,}")
        lines.append(f"Execution Time:        {self.stats['execution_time']}")
        lines.append(f"Output File:           {self.stats['output_file']}")
        lines.append("")

        if self.workflow_errors:
            lines.append("=" * 80)
            lines.append(f"WORKFLOW ERRORS ({len(self.workflow_errors)})")
            lines.append("=" * 80)
            lines.append("")
            for idx, error in enumerate(self.workflow_errors, 1):
                lines.append(f"{idx}. Operation: {error['operation']}")
                lines.append(f"   Project ID: {error['project_id']}")
                lines.append(f"   Scan ID: {error['scan_id']}")
                lines.append(f"   {error['type']}: {error['error']}")
                lines.append("")

        if self.poll_errors:
            lines.append("=" * 80)
            lines.append(f"TRANSIENT POLLING ERRORS ({len(self.poll_errors)})")
            lines.append("=" * 80)
            lines.append("")
            for idx, error in enumerate(self.poll_errors, 1):
                lines.append(f"{idx}. {error['phase']} {error['id']}: {error['error']}")
            lines.append("")

        if self.lifecycle_warnings:
            lines.append("=" * 80)
            lines.append(f"LIFECYCLE WARNINGS ({len(self.lifecycle_warnings)})")
            lines.append("=" * 80)
            lines.append("")
            for warning in self.lifecycle_warnings:
                lines.append(f"  - Scan {warning['scan_id']}: {warning['message']}")
            lines.append("")

        if self.general_warnings:
            lines.append("=" * 80)
            lines.append(f"GENERAL WARNINGS ({len(self.general_warnings)})")
            lines.append("=" * 80)
            lines.append("")

            by_category = {}
            for warning in self.general_warnings:
                by_category.setdefault(warning['category'], []).append(warning['message'])

            for category in sorted(by_category.keys()):
                lines.append(f"Category: {category}")
                for message in by_category[category]:
                    lines.append(f"  - {message}")
                lines.append("")

        if not self.has_entries:
            lines.append("=" * 80)
            lines.append("NO ERRORS OR WARNINGS")
            lines.append("=" * 80)
            lines.append("All operations completed successfully!")
            lines.append("")

        lines.append("=" * 80)
        lines.append("END OF REPORT")
        lines.append("=" * 80)

        with open(report_path, 'w', encoding='utf-8') as f:  # nosec - controlled path
            f.write('\n'.join(lines))

        return report_path
