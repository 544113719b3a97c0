"""Write scan results to CSV or Excel."""

from pathlib import Path
import pandas as pd
from openpyxl import Workbook
from openpyxl.utils.dataframe import dataframe_to_rows

# Column order of exported findings
COLUMNS = [
    'Severity', 'Category', 'CWE', 'State', 'Status', 'FileName', 'Line',
    'Group', 'Language', 'SimilarityId', 'DeepLink'
]

# Excel row limit (1,048,576 rows including header)
EXCEL_MAX_ROWS = 1048576


class ResultsExporter:
    """Convert ScanResults into tabular files."""

    def __init__(self, debug=False, debug_logger=None):
        """Initialize the exporter.

        Args:
            debug (bool): Enable debug output
            debug_logger (DebugLogger, optional): Debug logger instance
        """
        self.debug = debug
        self.logger = debug_logger

    @staticmethod
    def to_dataframe(results):
        """Build a DataFrame with one row per finding.

        Args:
            results (ScanResults): Results to convert

        Returns:
            DataFrame: Findings in export column order
        """
        rows = []
        for finding in results.findings:
            rows.append({
                'Severity': finding.severity.value,
                'Category': finding.category,
                'CWE': finding.cwe,
                'State': finding.state.value,
                'Status': finding.status.value,
                'FileName': finding.file_path,
                'Line': finding.line,
                'Group': finding.group,
                'Language': finding.language,
                'SimilarityId': finding.similarity_id,
                'DeepLink': finding.deep_link
            })
        return pd.DataFrame(rows, columns=COLUMNS)

    @staticmethod
    def summary_dataframe(results):
        """Build a DataFrame with the severity summary and scan metadata."""
        rows = [{'Field': 'ScanId', 'Value': results.scan_id},
                {'Field': 'ProjectId', 'Value': results.project_id},
                {'Field': 'ProjectName', 'Value': results.project_name},
                {'Field': 'Team', 'Value': results.team},
                {'Field': 'ScanDate', 'Value': str(results.scan_date) if results.scan_date else None},
                {'Field': 'EngineVersion', 'Value': results.engine_version},
                {'Field': 'Preset', 'Value': results.preset}]
        for severity, count in results.summary.items():
            rows.append({'Field': f"Total{severity.value}", 'Value': count})
        rows.append({'Field': 'Total', 'Value': results.total})
        return pd.DataFrame(rows, columns=['Field', 'Value'])

    def write(self, results, output_file):
        """Write results to ``output_file``; the suffix picks CSV or XLSX.

        Args:
            results (ScanResults): Results to write
            output_file (str): Destination path

        Returns:
            str: Path written
        """
        output_path = Path(output_file)
        if output_path.suffix.lower() == '.xlsx':
            return self.write_xlsx(results, output_path)
        return self.write_csv(results, output_path)

    def write_csv(self, results, output_path):
        df = self.to_dataframe(results)
        df.to_csv(output_path, index=False)
        if self.logger:
            self.logger.log(f"Wrote {len(df):,} findings to {output_path}")
        return str(output_path)

    def write_xlsx(self, results, output_path):
        df = self.to_dataframe(results)
        if len(df) + 1 > EXCEL_MAX_ROWS:
            if self.logger:
                self.logger.warning(f"Excel row limit reached; truncating {len(df):,} findings")
            df = df.head(EXCEL_MAX_ROWS - 1)

        wb = Workbook()
        ws = wb.active
        ws.title = "Findings"
        for row in dataframe_to_rows(df, index=False, header=True):
            ws.append(row)

        summary_ws = wb.create_sheet("Summary")
        for row in dataframe_to_rows(self.summary_dataframe(results), index=False, header=True):
            summary_ws.append(row)

        wb.save(str(output_path))
        if self.logger:
            self.logger.log(f"Wrote {len(df):,} findings to {output_path}")
        return str(output_path)
