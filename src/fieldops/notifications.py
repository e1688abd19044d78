"""Toast notifications posted by handlers."""
import logging
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Toast:
    level: str
    title: str
    message: str
    created_at: datetime


class Notifier:
    """Collects success/error toasts and forwards them to listeners.

    There are no modal dialogs: every outcome a handler reports goes through
    ``success`` or ``error`` and is also written to the log.
    """

    def __init__(self, history_size=50):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.history_size = history_size
        self.history = []
        self._listeners = []

    def subscribe(self, callback):
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def success(self, title, message=''):
        self.logger.info(f"{title}: {message}" if message else title)
        return self._post('success', title, message)

    def error(self, title, message=''):
        self.logger.error(f"{title}: {message}" if message else title)
        return self._post('error', title, message)

    @property
    def last(self):
        return self.history[-1] if self.history else None

    def _post(self, level, title, message):
        toast = Toast(level, title, message, datetime.now())
        self.history.append(toast)
        del self.history[:-self.history_size]
        for listener in list(self._listeners):
            listener(toast)
        return toast
