import threading
import time
import requests
from cxscan.errors import AuthenticationError

class AuthManager:
    def __init__(self, base_url, username, password, client_secret, client_id='resource_owner_client',
                 scope='sast_rest_api', request_timeout=60, debug=False, debug_logger=None):
        """Initialize the authentication manager.

        Args:
            base_url (str): The base URL for the CxSAST server
            username (str): User name for the password grant
            password (str): Password for the password grant
            client_secret (str): OAuth client secret
            client_id (str, optional): OAuth client ID
            scope (str, optional): Requested token scope
            request_timeout (int, optional): Token request timeout in seconds
            debug (bool, optional): Enable debug output. Defaults to False.
            debug_logger (DebugLogger, optional): Debug logger instance
        """
        self.base_url = base_url.rstrip('/')
        self.username = username
        self.password = password
        self.client_secret = client_secret
        self.client_id = client_id
        self.scope = scope
        self.request_timeout = request_timeout
        self.debug = debug
        self.logger = debug_logger
        self.auth_token = None
        self.token_expiration = 0
        self.auth_url = self._generate_auth_url()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, debug_logger=None):
        return cls(
            base_url=config.base_url,
            username=config.username,
            password=config.password,
            client_secret=config.client_secret,
            client_id=config.client_id,
            scope=config.scope,
            request_timeout=config.request_timeout,
            debug=config.debug,
            debug_logger=debug_logger
        )

    def _generate_auth_url(self):
        """Generate the token endpoint URL."""
        return f"{self.base_url}/cxrestapi/auth/identity/connect/token"

    def ensure_authenticated(self):
        """Ensure we have a valid authentication token."""
        with self._lock:
            if time.time() >= self.token_expiration - 60:
                self._authenticate()
            return self.auth_token

    def invalidate(self):
        """Force a new token on the next request."""
        with self._lock:
            self.token_expiration = 0

    def _authenticate(self):
        """Authenticate with the password grant and get a new token.

        Raises:
            AuthenticationError: If the identity endpoint rejects the request
        """
        if self.logger:
            self.logger.log(f"Authenticating as {self.username}...")

        headers = {'Content-Type': 'application/x-www-form-urlencoded'}
        data = {
            'grant_type': 'password',
            'username': self.username,
            'password': self.password,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'scope': self.scope
        }

        try:
            response = requests.post(self.auth_url, headers=headers, data=data, timeout=self.request_timeout)
            response.raise_for_status()

            json_response = response.json()
            self.auth_token = json_response.get('access_token')
            if not self.auth_token:
                raise AuthenticationError("No access token in response")

            expires_in = json_response.get('expires_in', 3600)
            self.token_expiration = time.time() + expires_in

            if self.logger:
                self.logger.log("Authentication successful")

        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Authentication error: {e}") from e
        except ValueError as e:
            raise AuthenticationError(f"Authentication error: invalid token response ({e})") from e

    def get_headers(self, accept='application/json'):
        """Get headers with authentication token for API requests."""
        return {
            'Authorization': f'Bearer {self.ensure_authenticated()}',
            'Content-Type': 'application/json',
            'Accept': accept
        }
