"""Process-wide session context.

One ``SessionContext`` is built at startup from the backend session API and
shared by every screen. Screens read ``is_authenticated``, ``role`` and
``user``, and call ``subscribe`` to hear about sign-in and sign-out; they
never keep their own copies of these flags.
"""
import logging
from typing import Any, Callable, Dict, Optional

from shared.enums import UserRole

_context = None


class SessionContext:
    def __init__(self, auth_service):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._auth_service = auth_service
        self._user: Optional[Dict[str, Any]] = None
        self._subscribers = []

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return dict(self._user) if self._user else None

    @property
    def role(self) -> Optional[str]:
        """Role as reported by the backend; ``None`` when signed out or unassigned."""
        return self._user.get('role') if self._user else None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def subscribe(self, callback: Callable[['SessionContext'], None]):
        """Call ``callback(context)`` after every session change; returns an unsubscribe function."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def initialize(self):
        """Load the current session from the backend.

        Raises:
            AuthError: If the backend cannot be reached
        """
        self._set_user(self._auth_service.fetch_session())
        return self.is_authenticated

    def login(self, email, password):
        success, error = self._auth_service.login(email, password)
        if success:
            self._set_user(self._auth_service.user)
        return success, error

    def logout(self):
        self._auth_service.logout()
        self._set_user(None)

    def _set_user(self, user):
        self._user = dict(user) if user else None
        if self._user:
            self.logger.info(f"Session active for {self._user.get('email')} (role: {self.role})")
        else:
            self.logger.info("No active session")
        for callback in list(self._subscribers):
            callback(self)


def init_session_context(auth_service) -> SessionContext:
    """Create the process-wide context; call ``initialize`` on it once the UI is up."""
    global _context
    _context = SessionContext(auth_service)
    return _context


def get_session_context() -> SessionContext:
    if _context is None:
        raise RuntimeError("Session context has not been initialized")
    return _context
