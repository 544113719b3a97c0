class Operation:
    """Base class for orchestration operations."""

    def __init__(self, config, progress=None, debug_logger=None, exception_reporter=None):
        """Initialize the operation.

        Args:
            config (Config): Configuration instance
            progress (ProgressTracker, optional): Progress tracker instance
            debug_logger (DebugLogger, optional): Debug logger instance
            exception_reporter (ExceptionReporter, optional): Collects warnings and errors
        """
        self.config = config
        self.progress = progress
        self.logger = debug_logger
        self.exception_reporter = exception_reporter

    def _warn(self, message, scan_id=None):
        """Log a benign warning and record it on the exception reporter."""
        if self.logger:
            self.logger.warning(message)
        if self.exception_reporter:
            if scan_id is not None:
                self.exception_reporter.add_lifecycle_warning(scan_id, message)
            else:
                self.exception_reporter.add_general_warning(type(self).__name__, message)
