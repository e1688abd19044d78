"""Named form-state drafts kept in local storage, one scope per form type."""
import copy
import logging
import secrets
from datetime import date

from shared.enums import FormType
from .local_storage import LocalStorageError

SURVEY_DRAFTS = 'survey-drafts'
INSTALLATION_DRAFTS = 'installation-drafts'

DRAFT_SCOPES = {
    FormType.ESKOM_SURVEY.value: SURVEY_DRAFTS,
    FormType.INSTALLATION.value: INSTALLATION_DRAFTS,
}


class DraftStorageError(Exception):
    """Raised when a draft cannot be read from or written to local storage."""
    pass


class DraftStore:
    """Drafts live in ``scope``; the backend record a draft was saved to, if
    any, is kept beside it in ``<scope>-records`` so a reloaded draft keeps
    updating that record.
    """

    def __init__(self, storage, scope=SURVEY_DRAFTS):
        self.storage = storage
        self.scope = scope
        self.records_scope = f"{scope}-records"
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def for_form(cls, storage, form_type):
        return cls(storage, DRAFT_SCOPES[form_type])

    @staticmethod
    def generate_name(today=None):
        """Name used when the user saves without choosing one: ``Draft_<date>_<rand>``."""
        today = today or date.today()
        return f"Draft_{today.isoformat()}_{secrets.token_hex(3)}"

    def get(self, name):
        """Return the stored form state, or None when there is no such draft."""
        try:
            return self.storage.get(self.scope, name)
        except LocalStorageError as e:
            raise DraftStorageError(str(e)) from e

    def set(self, name, form_state):
        if not name:
            raise DraftStorageError("Draft name must not be empty")
        try:
            self.storage.set(self.scope, name, copy.deepcopy(form_state))
        except LocalStorageError as e:
            self.logger.error(f"Failed to save draft {name!r}: {e}")
            raise DraftStorageError(str(e)) from e
        self.logger.info(f"Saved draft {name!r} in {self.scope}")

    def delete(self, name):
        try:
            removed = self.storage.delete(self.scope, name)
            self.storage.delete(self.records_scope, name)
        except LocalStorageError as e:
            raise DraftStorageError(str(e)) from e
        if removed:
            self.logger.info(f"Deleted draft {name!r} from {self.scope}")
        return removed

    def names(self):
        try:
            return self.storage.keys(self.scope)
        except LocalStorageError as e:
            raise DraftStorageError(str(e)) from e

    def link_record(self, name, record_id):
        """Remember that draft ``name`` has been saved to backend record ``record_id``."""
        try:
            self.storage.set(self.records_scope, name, record_id)
        except LocalStorageError as e:
            raise DraftStorageError(str(e)) from e

    def record_id(self, name):
        """Backend record id linked to draft ``name``, or None."""
        try:
            return self.storage.get(self.records_scope, name)
        except LocalStorageError as e:
            raise DraftStorageError(str(e)) from e
