"""File management utilities."""

import os
import re
from datetime import datetime

class FileManager:
    """Manage output, debug log and raw report files."""

    def __init__(self, config, debug=False):
        """Initialize the file manager.

        Args:
            config (Config): Configuration instance
            debug (bool): Enable debug output
        """
        self.config = config
        self.debug = debug
        self.timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        self._output_path = None

    @property
    def raw_directory(self):
        return os.path.join(self.config.output_directory, 'raw')

    def setup_directories(self):
        """Create necessary directories."""
        os.makedirs(self.config.output_directory, exist_ok=True)
        if self.config.save_raw_reports:
            os.makedirs(self.raw_directory, exist_ok=True)

        if self.debug:
            print(f"Output directory: {self.config.output_directory}")

    @staticmethod
    def _safe_name(value):
        return re.sub(r'[^A-Za-z0-9._-]+', '_', str(value)).strip('_') or 'unknown'

    def get_output_file_path(self, project='results', scan_id='latest', ext='csv'):
        """Generate the results file path.

        The first call fixes the path; later calls return the same file.

        Args:
            project (str): Project name or ID
            scan_id (str): Scan ID
            ext (str): File extension (csv or xlsx)

        Returns:
            str: Full path to output file
        """
        if self._output_path is None:
            filename = self.config.output_filename_template.format(
                project=self._safe_name(project),
                scan_id=self._safe_name(scan_id),
                timestamp=self.timestamp,
                ext=ext
            )
            self._output_path = os.path.join(self.config.output_directory, filename)

        return self._output_path

    def get_debug_log_path(self):
        """Generate the debug log file path.

        Returns:
            str: Full path to debug log file
        """
        filename = f"cx_debug_{self.timestamp}.txt"
        return os.path.join(self.config.output_directory, filename)

    def save_raw_report(self, report_id, scan_id, content, ext='xml'):
        """Write raw report content to the raw directory.

        Args:
            report_id (str): Report ID
            scan_id (str): Scan ID
            content (bytes): Report content
            ext (str): File extension

        Returns:
            str: Path written, or None when raw saving is disabled
        """
        if not self.config.save_raw_reports:
            return None

        os.makedirs(self.raw_directory, exist_ok=True)
        filename = f"scan_{self._safe_name(scan_id)}_report_{self._safe_name(report_id)}.{ext}"
        path = os.path.join(self.raw_directory, filename)
        with open(path, 'wb') as f:  # nosec - path is built by FileManager
            f.write(content)
        return path


def get_file_size(file_path):
    """Get human-readable file size.

    Args:
        file_path (str): Path to file

    Returns:
        str: Formatted file size
    """
    try:
        size_bytes = os.path.getsize(file_path)
    except OSError:
        return "Unknown"

    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0

    return f"{size_bytes:.1f} TB"
