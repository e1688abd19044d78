"""Submission pipeline: form state to backend record, create or update, draft cleanup."""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from shared.enums import SurveyStatus
from shared.validation import REQUIRED_INSTALLATION_FIELDS, REQUIRED_SURVEY_FIELDS, missing_required_fields
from .draft_store import DraftStorageError
from .record_store import RecordConflictError, RecordStoreError


class SubmissionValidationError(Exception):
    """Raised before any backend call when required fields are blank."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class SubmissionError(Exception):
    """Raised when the backend write fails; the save can simply be retried."""

    def __init__(self, message, conflict=False):
        super().__init__(message)
        self.conflict = conflict


@dataclass(frozen=True)
class RecordMapping:
    """Where a form type is stored and which fields become indexed columns."""
    table: str
    columns: Tuple[Tuple[str, str], ...]
    remainder_column: str
    required_fields: Tuple[str, ...]


SURVEY_MAPPING = RecordMapping(
    table='site_surveys',
    columns=(
        ('siteName', 'site_name'),
        ('region', 'region'),
        ('date', 'date'),
        ('siteId', 'site_id'),
        ('siteType', 'site_type'),
        ('address', 'address'),
        ('gpsCoordinates', 'gps_coordinates'),
        ('buildingPhoto', 'building_photo'),
    ),
    remainder_column='survey_data',
    required_fields=REQUIRED_SURVEY_FIELDS,
)

INSTALLATION_MAPPING = RecordMapping(
    table='site_installations',
    columns=(
        ('siteName', 'site_name'),
        ('siteId', 'site_id'),
        ('installationDate', 'installation_date'),
    ),
    remainder_column='details',
    required_fields=REQUIRED_INSTALLATION_FIELDS,
)


def split_form_state(form_state: Dict[str, Any], mapping: RecordMapping = SURVEY_MAPPING):
    """Split a form state into ``(columns, remainder)``.

    Promoted fields are renamed to their column names; every other field goes
    into the remainder untouched.
    """
    promoted = dict(mapping.columns)
    columns = {column: form_state.get(field_name, '') for field_name, column in mapping.columns}
    remainder = {key: copy.deepcopy(value) for key, value in form_state.items() if key not in promoted}
    return columns, remainder


def build_row(form_state, status, mapping=SURVEY_MAPPING):
    columns, remainder = split_form_state(form_state, mapping)
    return {**columns, 'status': status, mapping.remainder_column: remainder}


def form_state_from_record(record, base_state, mapping=SURVEY_MAPPING):
    """Rebuild a form state from a backend record, on top of ``base_state`` defaults."""
    state = dict(base_state)
    state.update(copy.deepcopy(record.get(mapping.remainder_column) or {}))
    for field_name, column in mapping.columns:
        if record.get(column) is not None:
            state[field_name] = record[column]
    return state


class SubmissionPipeline:
    """Create-or-update a backend record from a form state.

    The pipeline remembers the version the backend last reported for each
    record it wrote and sends it with the next update, so a write based on a
    stale copy is refused instead of silently overwriting someone else's.
    """

    def __init__(self, record_store, draft_store=None, mapping: RecordMapping = SURVEY_MAPPING,
                 on_submitted: Optional[Callable[[int], None]] = None):
        self.record_store = record_store
        self.draft_store = draft_store
        self.mapping = mapping
        self.on_submitted = on_submitted
        self.known_versions: Dict[int, int] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def save(self, form_state, mode, existing_id=None, draft_name=None) -> int:
        """Write ``form_state`` with status ``mode`` and return the record id.

        Raises:
            SubmissionValidationError: Required fields are blank; nothing was sent
            SubmissionError: The backend write failed; nothing else was changed
        """
        status = SurveyStatus(mode).value
        missing = missing_required_fields(form_state, self.mapping.required_fields)
        if missing:
            self.logger.warning(f"Refusing to save {self.mapping.table} record, missing: {missing}")
            raise SubmissionValidationError(missing)

        row = build_row(form_state, status, self.mapping)
        try:
            if existing_id is not None:
                reply = self.record_store.update(self.mapping.table, existing_id, row,
                                                 version=self.known_versions.get(existing_id))
                record_id = existing_id
            else:
                reply = self.record_store.insert(self.mapping.table, row)
                record_id = reply['id']
        except RecordConflictError as e:
            self.logger.warning(f"Stale write rejected for {self.mapping.table} {existing_id}: {e}")
            raise SubmissionError("This record was changed elsewhere; reload it before saving again",
                                  conflict=True) from e
        except RecordStoreError as e:
            raise SubmissionError(str(e)) from e

        if reply.get('version') is not None:
            self.known_versions[record_id] = reply['version']
        self.logger.info(f"Saved {self.mapping.table} record {record_id} as {status}")

        if status == SurveyStatus.SUBMITTED.value:
            self._finish_submission(record_id, draft_name)
        return record_id

    def _finish_submission(self, record_id, draft_name):
        if self.draft_store is not None and draft_name:
            try:
                self.draft_store.delete(draft_name)
            except DraftStorageError as e:
                self.logger.warning(f"Record {record_id} submitted but draft {draft_name!r} was not removed: {e}")
        if self.on_submitted is not None:
            self.on_submitted(record_id)
