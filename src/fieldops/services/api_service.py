"""API service for HTTP client abstraction."""
import requests
import time
import logging


class APIService:
    """HTTP client for backend API calls with error handling.

    Reads are retried with exponential backoff on connection errors, timeouts
    and 5xx responses. Writes are sent exactly once; retrying a failed save is
    left to the user.
    """

    RETRYABLE_METHODS = ('GET',)

    def __init__(self, base_url='http://localhost:5000', timeout=10.0, max_retries=3, retry_delay=0.5,
                 auth_service=None, access_token=None, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(self.__class__.__name__)
        self.auth_service = auth_service
        self.access_token = access_token
        self.session = session or requests.Session()

    def _get_auth_headers(self):
        """Get authorization headers for API requests.

        auth_service takes precedence over a fixed access_token.
        """
        headers = {}
        if self.auth_service:
            headers.update(self.auth_service.get_headers())
        elif self.access_token:
            headers['Authorization'] = f"Bearer {self.access_token}"
        return headers

    def _merge_headers(self, kwargs):
        """Merge auth headers with any provided headers in kwargs."""
        auth_headers = self._get_auth_headers()
        if not auth_headers:
            return kwargs

        existing_headers = kwargs.get('headers', {})
        if not isinstance(existing_headers, dict):
            existing_headers = {}

        kwargs['headers'] = {**existing_headers, **auth_headers}
        return kwargs

    def _make_request(self, method, url, **kwargs):
        """Make HTTP request, retrying reads only."""
        kwargs = self._merge_headers(kwargs)
        kwargs.setdefault('timeout', self.timeout)
        attempts = self.max_retries if method in self.RETRYABLE_METHODS else 1

        last_exception = None
        for attempt in range(attempts):
            try:
                response = self.session.request(method, url, **kwargs)
                if response.status_code < 500 or attempt == attempts - 1:
                    return response
                self.logger.warning(f"{method} {url} failed (attempt {attempt + 1}/{attempts}): "
                                    f"{response.status_code} {response.reason}")
            except requests.exceptions.RequestException as e:
                last_exception = e
                if attempt == attempts - 1:
                    self.logger.error(f"{method} {url} failed after {attempts} attempt(s): {e}")
                    raise
                self.logger.warning(f"Request exception (attempt {attempt + 1}/{attempts}): {e}")
            time.sleep(self.retry_delay * (2 ** attempt))

        raise last_exception or requests.exceptions.RequestException("All retry attempts failed")

    def get(self, endpoint, **kwargs):
        """GET request with error handling and retry."""
        return self._make_request('GET', f"{self.base_url}{endpoint}", **kwargs)

    def post(self, endpoint, **kwargs):
        return self._make_request('POST', f"{self.base_url}{endpoint}", **kwargs)

    def put(self, endpoint, **kwargs):
        return self._make_request('PUT', f"{self.base_url}{endpoint}", **kwargs)

    def delete(self, endpoint, **kwargs):
        return self._make_request('DELETE', f"{self.base_url}{endpoint}", **kwargs)
