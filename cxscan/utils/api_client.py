"""API client with retry logic and error classification."""

import time
import requests
from cxscan.errors import NotFoundError, RemoteServiceError, TransientRemoteError

class APIClient:
    """HTTP client for the CxSAST REST API with retry support.

    Timeouts, connection errors, 5xx responses and rate limiting are retried
    up to ``config.max_retries`` times and then raised as
    TransientRemoteError. POST is not idempotent, so it is only retried when
    the server cannot have acted on it (connect timeout or 429). 404 raises
    NotFoundError; any other 4xx raises RemoteServiceError without retrying.
    """

    def __init__(self, base_url, auth_manager, config, debug=False, debug_logger=None):
        """Initialize the API client.

        Args:
            base_url (str): The base URL for API requests
            auth_manager (AuthManager): Authentication manager instance
            config (Config): Configuration instance
            debug (bool): Enable debug output
            debug_logger (DebugLogger, optional): Debug logger instance
        """
        self.base_url = base_url.rstrip('/')
        self.auth = auth_manager
        self.config = config
        self.debug = debug
        self.logger = debug_logger

    def get(self, endpoint, params=None):
        """Make a GET request and return the decoded JSON body."""
        response = self._request('GET', endpoint, params=params)
        return self._json(response)

    def get_bytes(self, endpoint, params=None, accept='application/xml'):
        """Make a GET request and return the raw body."""
        response = self._request('GET', endpoint, params=params, accept=accept)
        return response.content

    def post(self, endpoint, json_data=None):
        """Make a POST request and return the decoded JSON body."""
        response = self._request('POST', endpoint, json_data=json_data, idempotent=False)
        return self._json(response)

    def put(self, endpoint, json_data=None):
        """Make a PUT request and return the decoded JSON body."""
        response = self._request('PUT', endpoint, json_data=json_data)
        return self._json(response)

    def patch(self, endpoint, json_data=None):
        """Make a PATCH request and return the decoded JSON body."""
        response = self._request('PATCH', endpoint, json_data=json_data)
        return self._json(response)

    def delete(self, endpoint, json_data=None):
        """Make a DELETE request and return the decoded JSON body."""
        response = self._request('DELETE', endpoint, json_data=json_data)
        return self._json(response)

    def _json(self, response):
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"Invalid JSON from {response.request.method if response.request else ''} {response.url}: {e}",
                status_code=response.status_code
            ) from e

    def _request(self, method, endpoint, params=None, json_data=None, accept='application/json',
                 idempotent=True):
        """Send a request, retrying transient failures with exponential backoff.

        Args:
            method (str): HTTP method
            endpoint (str): API endpoint path
            params (dict, optional): Query parameters
            json_data (dict, optional): JSON body
            accept (str): Accept header value
            idempotent (bool): Whether a request the server may have received can be resent

        Returns:
            requests.Response: Successful response

        Raises:
            TransientRemoteError: If retries are exhausted on a transient failure
            NotFoundError: If the server answers 404
            RemoteServiceError: For any other client error
        """
        url = f"{self.base_url}{endpoint}"
        last_error = None
        reauthenticated = False
        attempt = 0

        while attempt < self.config.max_retries:
            try:
                headers = self.auth.get_headers(accept=accept)
                response = requests.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_data,
                    timeout=self.config.request_timeout
                )
            except requests.exceptions.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
                if not idempotent and not isinstance(e, requests.exceptions.ConnectTimeout):
                    self._give_up(method, endpoint, last_error, e)
                self._backoff(attempt, method, endpoint, last_error)
                attempt += 1
                continue

            if response.status_code == 401 and not reauthenticated:
                # Token revoked or expired early; retry once with a fresh one
                reauthenticated = True
                self.auth.invalidate()
                continue

            if response.status_code == 429:
                last_error = "HTTP 429 Too Many Requests"
                if self.logger:
                    self.logger.log(f"    Rate limited on {method} {endpoint}. Waiting {self.config.rate_limit_wait}s...")
                if attempt < self.config.max_retries - 1:
                    time.sleep(self.config.rate_limit_wait)
                attempt += 1
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}: {self._error_text(response)}"
                if not idempotent:
                    self._give_up(method, endpoint, last_error, status_code=response.status_code)
                self._backoff(attempt, method, endpoint, last_error)
                attempt += 1
                continue

            if response.status_code == 404:
                raise NotFoundError(f"{method} {endpoint} returned 404: {self._error_text(response)}")

            if response.status_code >= 400:
                raise RemoteServiceError(
                    f"{method} {endpoint} returned {response.status_code}: {self._error_text(response)}",
                    status_code=response.status_code
                )

            return response

        if self.logger:
            self.logger.log(f"    Request failed after {self.config.max_retries} attempts: {method} {endpoint}: {last_error}")
        raise TransientRemoteError(
            f"{method} {endpoint} failed after {self.config.max_retries} attempts: {last_error}"
        )

    def _give_up(self, method, endpoint, error, cause=None, status_code=None):
        if self.logger:
            self.logger.log(f"    Not retrying {method} {endpoint}: {error}")
        raise TransientRemoteError(
            f"{method} {endpoint} failed and was not retried: {error}", status_code=status_code
        ) from cause

    def _backoff(self, attempt, method, endpoint, error):
        if attempt >= self.config.max_retries - 1:
            return
        wait_time = self.config.retry_delay * (2 ** attempt)
        if self.logger:
            self.logger.log(f"    {method} {endpoint}: {error}. Retrying in {wait_time}s...")
        time.sleep(wait_time)

    @staticmethod
    def _error_text(response):
        try:
            body = response.json()
        except ValueError:
            return (response.text or '')[:200]
        if isinstance(body, dict):
            return body.get('messageDetails') or body.get('message') or str(body)[:200]
        return str(body)[:200]
