"""Debug logging to file with live updates."""

import threading
from datetime import datetime

class DebugLogger:
    """Logger that writes debug output to a file and, optionally, the console.

    Lines are timestamped and flushed immediately so a long poll can be
    followed with ``tail -f``. Without a file path the logger only echoes
    to the console (when ``console_debug`` is set) and keeps nothing.
    """

    def __init__(self, log_file_path=None, console_debug=False):
        """Initialize the debug logger.

        Args:
            log_file_path (str, optional): Path to the debug log file
            console_debug (bool): Whether to also print to console
        """
        self.log_file_path = log_file_path
        self.console_debug = console_debug
        self.file_handle = None
        self.warning_count = 0
        self.error_count = 0
        self._lock = threading.Lock()

        if log_file_path:
            try:
                # nosec B113 - controlled path, line buffering for live updates
                self.file_handle = open(log_file_path, 'w', encoding='utf-8', buffering=1)
                self.log(f"Debug log started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
                self.log("="*120)
            except OSError as e:
                print(f"Warning: Could not open debug log file: {e}")

    def log(self, message, level=None):
        """Write a message to the debug log.

        Args:
            message (str): Message to log
            level (str, optional): Level tag prefixed to the message (WARNING, ERROR)
        """
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        text = f"{level}: {message}" if level else message
        log_line = f"[{timestamp}] [{threading.current_thread().name}] {text}"

        with self._lock:
            if self.file_handle:
                try:
                    self.file_handle.write(log_line + '\n')
                    self.file_handle.flush()
                except OSError as e:
                    print(f"Warning: Failed to write to debug log: {e}")

        if self.console_debug:
            print(text)

    def warning(self, message):
        """Log a warning."""
        self.warning_count += 1
        self.log(message, level='WARNING')

    def error(self, message):
        """Log an error."""
        self.error_count += 1
        self.log(message, level='ERROR')

    def close(self):
        """Close the log file."""
        if self.file_handle:
            self.log("="*120)
            self.log(f"Debug log ended: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            with self._lock:
                try:
                    self.file_handle.close()
                except OSError:
                    pass
                self.file_handle = None

    def __del__(self):
        """Ensure file is closed on destruction."""
        self.close()
