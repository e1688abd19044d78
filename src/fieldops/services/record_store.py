"""Client for the backend record store: insert, update by id, select, change feed."""
import logging
import requests

TABLE_ENDPOINTS = {
    'site_surveys': ('/api/surveys', 'surveys'),
    'site_installations': ('/api/installations', 'installations'),
    'engineer_allocations': ('/api/allocations', 'allocations'),
    'eskom_sites': ('/api/sites', 'sites'),
    'engineer_profiles': ('/api/engineers', 'engineers'),
}


class RecordStoreError(Exception):
    """Raised when the backend rejects a request or cannot be reached."""

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


class RecordConflictError(RecordStoreError):
    """Raised when an update carried a stale version."""

    @property
    def current_version(self):
        return self.details.get('current_version')


class RecordStore:
    def __init__(self, api_service):
        self.api = api_service
        self.logger = logging.getLogger(self.__class__.__name__)

    def insert(self, table, row):
        """Insert one row and return the backend's reply (``id``, ``version``, ...)."""
        endpoint, _ = self._endpoint(table)
        return self._send('POST', endpoint, json=row)

    def update(self, table, record_id, row, version=None):
        """Update a row by id; ``version`` turns on the backend's stale-write check."""
        endpoint, _ = self._endpoint(table)
        headers = {'If-Match': f'"{version}"'} if version is not None else {}
        return self._send('PUT', f"{endpoint}/{record_id}", json=row, headers=headers)

    def get(self, table, record_id):
        endpoint, _ = self._endpoint(table)
        return self._send('GET', f"{endpoint}/{record_id}")

    def select(self, table, per_page=500, **filters):
        """Return rows matching equality ``filters``."""
        endpoint, key = self._endpoint(table)
        params = {name: value for name, value in filters.items() if value not in (None, '')}
        params['per_page'] = per_page
        return self._send('GET', endpoint, params=params).get(key, [])

    def regions(self):
        """Distinct regions of the site catalog."""
        return self._send('GET', '/api/sites/regions').get('regions', [])

    def changes(self, since=0, table=None):
        """Return ``(events, latest_id)`` for events after ``since``."""
        params = {'since': since}
        if table:
            params['table'] = table
        data = self._send('GET', '/api/changes', params=params)
        return data.get('changes', []), data.get('latest_id', since)

    def _endpoint(self, table):
        try:
            return TABLE_ENDPOINTS[table]
        except KeyError:
            raise RecordStoreError(f"Unknown table: {table}")

    def _send(self, method, endpoint, **kwargs):
        method_func = getattr(self.api, method.lower())
        try:
            response = method_func(endpoint, **kwargs)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"{method} {endpoint} failed: {e}")
            raise RecordStoreError(f"Could not reach the server: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 409:
            raise RecordConflictError(data.get('error', 'Record was modified by someone else'), 409, data)
        if response.status_code >= 400:
            message = data.get('error') or f"Request failed with status {response.status_code}"
            self.logger.warning(f"{method} {endpoint} rejected ({response.status_code}): {message}")
            raise RecordStoreError(message, response.status_code, data)
        return data
