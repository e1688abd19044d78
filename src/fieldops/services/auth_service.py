import json
import logging
import os
import requests
from pathlib import Path
from appdirs import user_data_dir


class AuthError(Exception):
    """Raised when the session API cannot be reached or rejects the token."""
    pass


class AuthService:
    def __init__(self, api_base_url, data_dir=None, timeout=10):
        self.api_base_url = api_base_url.rstrip('/')
        self.timeout = timeout
        self.token = None
        self.user = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self.data_dir = Path(data_dir) if data_dir else Path(user_data_dir("fieldops", "fieldops"))
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.token_file = self.data_dir / "auth_token.json"
        self._load_token()

    def _load_token(self):
        if self.token_file.exists():
            try:
                with open(self.token_file, 'r') as f:
                    data = json.load(f)
                    self.token = data.get('token')
                    self.user = data.get('user')
            except (OSError, json.JSONDecodeError) as e:
                self.logger.warning(f"Ignoring unreadable token file {self.token_file}: {e}")

    def _save_token(self):
        with open(self.token_file, 'w') as f:
            json.dump({'token': self.token, 'user': self.user}, f)

    def _clear_token(self):
        self.token = None
        self.user = None
        if self.token_file.exists():
            os.remove(self.token_file)

    def login(self, email, password):
        try:
            resp = requests.post(f"{self.api_base_url}/api/auth/login", json={
                'email': email,
                'password': password
            }, timeout=self.timeout)

            if resp.status_code == 200:
                data = resp.json()
                self.token = data['token']
                self.user = data['user']
                self._save_token()
                self.logger.info(f"Logged in as {self.user.get('email')}")
                return True, None
            else:
                return False, resp.json().get('error', 'Login failed')
        except requests.exceptions.RequestException as e:
            return False, f"Connection error: {str(e)}"

    def register(self, email, password, name=''):
        try:
            resp = requests.post(f"{self.api_base_url}/api/auth/register", json={
                'email': email,
                'password': password,
                'name': name
            }, timeout=self.timeout)

            if resp.status_code == 201:
                return True, None
            else:
                return False, resp.json().get('error', 'Registration failed')
        except requests.exceptions.RequestException as e:
            return False, f"Connection error: {str(e)}"

    def fetch_session(self):
        """Ask the backend who the stored token belongs to.

        Returns the user dict, or None when there is no valid session. A
        rejected token is forgotten.

        Raises:
            AuthError: If the backend cannot be reached
        """
        if not self.token:
            return None
        try:
            resp = requests.get(f"{self.api_base_url}/api/auth/session",
                                headers=self.get_headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Connection error: {e}") from e

        data = resp.json() if resp.status_code == 200 else {}
        if not data.get('authenticated'):
            self.logger.info("Stored token is no longer valid")
            self._clear_token()
            return None

        self.user = data['user']
        self._save_token()
        return self.user

    def logout(self):
        if self.token:
            try:
                requests.post(f"{self.api_base_url}/api/auth/logout", headers=self.get_headers(),
                              timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                self.logger.warning(f"Logout request failed, clearing local token anyway: {e}")
        self._clear_token()

    def get_headers(self):
        if self.token:
            return {'Authorization': f'Bearer {self.token}'}
        return {}

    def is_authenticated(self):
        return self.token is not None
