import os
from dotenv import load_dotenv
from cxscan.models.filter_configuration import FilterConfiguration


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name):
    value = os.getenv(name, '')
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    def __init__(self):
        """Initialize configuration with default values."""
        # Authentication
        self.base_url = None
        self.username = None
        self.password = None
        self.client_id = 'resource_owner_client'
        self.client_secret = None
        self.scope = 'sast_rest_api'

        # General
        self.debug = False

        # Polling
        self.polling_interval = 10.0  # Initial polling interval
        self.polling_backoff = 1.5  # Interval multiplier after each poll
        self.polling_max_wait = 60.0  # Cap on a single wait
        self.scan_max_wait = 3600  # 1 hour in seconds
        self.report_max_wait = 600  # 10 minutes in seconds
        self.max_poll_errors = 5  # Consecutive transient errors tolerated

        # API settings
        self.max_retries = 3
        self.retry_delay = 2.0
        self.rate_limit_wait = 30
        self.request_timeout = 60

        # Scan lifecycle
        self.delete_running_scans = True
        self.wait_for_active_scans = False
        self.cancel_on_abort = True

        # Filters
        self.filter_severities = []
        self.filter_categories = []
        self.filter_cwes = []
        self.filter_states = []
        self.filter_statuses = []

        # File paths
        self.output_directory = "./output"
        self.output_filename_template = "cx_results_{project}_{scan_id}_{timestamp}.{ext}"
        self.save_raw_reports = False

    @classmethod
    def from_args(cls, args, config=None):
        """Apply command line arguments on top of a configuration.

        Args:
            args: Parsed command line arguments
            config (Config, optional): Configuration to update; a default one is created if omitted
        """
        config = config or cls()

        if getattr(args, 'base_url', None):
            config.base_url = args.base_url
        if getattr(args, 'username', None):
            config.username = args.username
        if getattr(args, 'password', None):
            config.password = args.password
        if getattr(args, 'debug', False):
            config.debug = True
        if getattr(args, 'output_dir', None):
            config.output_directory = args.output_dir
        if getattr(args, 'poll_interval', None):
            config.polling_interval = args.poll_interval
        if getattr(args, 'scan_timeout', None):
            config.scan_max_wait = args.scan_timeout
        if getattr(args, 'report_timeout', None):
            config.report_max_wait = args.report_timeout
        if getattr(args, 'wait_for_active', False):
            config.wait_for_active_scans = True
        if getattr(args, 'save_raw', False):
            config.save_raw_reports = True

        return config

    @classmethod
    def from_env(cls, env_file='.env'):
        """Create configuration from environment variables.

        Args:
            env_file (str): Path to environment file (default: '.env')
        """
        load_dotenv(env_file)  # Load specified .env file if it exists

        config = cls()
        config.base_url = os.getenv('CXSAST_BASE_URL')
        config.username = os.getenv('CXSAST_USERNAME')
        config.password = os.getenv('CXSAST_PASSWORD')
        config.client_secret = os.getenv('CXSAST_CLIENT_SECRET')
        config.debug = _env_bool('CXSAST_DEBUG')

        # Optional environment overrides
        if os.getenv('CXSAST_POLL_INTERVAL'):
            config.polling_interval = float(os.getenv('CXSAST_POLL_INTERVAL'))
        if os.getenv('CXSAST_SCAN_TIMEOUT'):
            config.scan_max_wait = float(os.getenv('CXSAST_SCAN_TIMEOUT'))
        if os.getenv('CXSAST_REPORT_TIMEOUT'):
            config.report_max_wait = float(os.getenv('CXSAST_REPORT_TIMEOUT'))
        if os.getenv('CXSAST_MAX_POLL_ERRORS'):
            config.max_poll_errors = int(os.getenv('CXSAST_MAX_POLL_ERRORS'))
        if os.getenv('CXSAST_OUTPUT_DIR'):
            config.output_directory = os.getenv('CXSAST_OUTPUT_DIR')
        config.delete_running_scans = _env_bool('CXSAST_DELETE_RUNNING_SCANS', config.delete_running_scans)
        config.wait_for_active_scans = _env_bool('CXSAST_WAIT_FOR_ACTIVE_SCANS', config.wait_for_active_scans)

        config.filter_severities = _env_list('CXSAST_FILTER_SEVERITY')
        config.filter_categories = _env_list('CXSAST_FILTER_CATEGORY')
        config.filter_cwes = _env_list('CXSAST_FILTER_CWE')
        config.filter_states = _env_list('CXSAST_FILTER_STATE')
        config.filter_statuses = _env_list('CXSAST_FILTER_STATUS')

        return config

    def filter_configuration(self):
        """Build the FilterConfiguration described by the filter settings."""
        return FilterConfiguration(
            severities=self.filter_severities,
            categories=self.filter_categories,
            cwes=self.filter_cwes,
            states=self.filter_states,
            statuses=self.filter_statuses
        )

    def validate(self):
        """Validate the configuration.

        Returns:
            tuple: (bool, str) - (is_valid, error_message)
        """
        if not self.base_url:
            return False, "Base URL is required"
        if not self.username:
            return False, "Username is required"
        if not self.password:
            return False, "Password is required"
        if not self.client_secret:
            return False, "Client secret is required"
        if self.polling_interval <= 0:
            return False, "Polling interval must be positive"
        if self.scan_max_wait <= 0 or self.report_max_wait <= 0:
            return False, "Maximum wait times must be positive"
        if self.max_poll_errors < 0:
            return False, "Maximum poll errors cannot be negative"
        return True, None
