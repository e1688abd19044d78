"""Survey wizard handlers: edits, drafts, backend saves, captures and PDF export."""
import logging

from shared.enums import FormType
from shared.utils import CorruptedImageError
from ..sections import APPROVAL_ROLES, SURVEY_SECTION_IDS, add_drawing, add_photo
from ..state import InvalidFieldPath, SurveyFormStateMachine, initial_survey_state
from ..services.draft_store import DraftStore, DraftStorageError
from ..services.image_service import CameraUnavailableError
from ..services.pdf_service import PDFExportError
from ..services.record_store import RecordStoreError
from ..services.submission import (
    SURVEY_MAPPING, SubmissionError, SubmissionPipeline, SubmissionValidationError, form_state_from_record,
)

GENERIC_RETRY_MESSAGE = "Please check your connection and try again."


class SurveyHandler:
    """Handles one survey wizard.

    Every failure ends in an error toast; nothing raises to the view and the
    form state is left as it was before the failed action.
    """

    FORM_TYPE = FormType.ESKOM_SURVEY.value
    MAPPING = SURVEY_MAPPING
    ROUTE = '/eskom-survey'
    DONE_ROUTE = '/dashboard'
    SECTIONS = SURVEY_SECTION_IDS

    def __init__(self, app):
        self.app = app
        self.logger = logging.getLogger(self.__class__.__name__)
        self.machine = SurveyFormStateMachine(self.initial_state(), self.SECTIONS)
        self.draft_store = DraftStore.for_form(app.storage, self.FORM_TYPE)
        self.pipeline = SubmissionPipeline(app.record_store, self.draft_store, self.MAPPING,
                                           on_submitted=self._on_submitted)
        self.record_id = None
        self.draft_name = None

    def initial_state(self):
        return initial_survey_state()

    @property
    def state(self):
        return self.machine.state

    @property
    def location(self):
        """Route of the edit view; carries ``?id=`` once a backend record exists."""
        if self.record_id is None:
            return self.ROUTE
        return f"{self.ROUTE}?id={self.record_id}"

    def set_field(self, path, value):
        try:
            return self.machine.set_field(path, value)
        except InvalidFieldPath as e:
            self.app.notifier.error("Could not update field", str(e))
            return None

    def new_form(self):
        self.machine = SurveyFormStateMachine(self.initial_state(), self.SECTIONS)
        self.record_id = None
        self.draft_name = None

    def update_location(self, latitude, longitude, address=None):
        self.machine.location_update(latitude, longitude, address)

    # Drafts

    def list_drafts(self):
        try:
            return self.draft_store.names()
        except DraftStorageError as e:
            self.app.notifier.error("Failed to load drafts", str(e))
            return []

    def save_draft(self, name=None):
        """Save the current state locally; returns the draft name, or None on failure."""
        name = (name or '').strip() or self.draft_name or DraftStore.generate_name()
        try:
            self.draft_store.set(name, self.machine.state)
        except DraftStorageError as e:
            self.app.notifier.error("Failed to save draft", str(e))
            return None
        self.draft_name = name
        if self.record_id is not None:
            self._link_draft()
        self.app.notifier.success("Draft saved", f'Saved as "{name}"')
        return name

    def load_draft(self, name):
        try:
            state = self.draft_store.get(name)
            linked_id = self.draft_store.record_id(name)
        except DraftStorageError as e:
            self.app.notifier.error("Failed to load draft", str(e))
            return False
        if state is None:
            self.app.notifier.error("Draft not found", name)
            return False
        self.machine.load({**self.initial_state(), **state})
        self.machine.go_to(self.SECTIONS[0])
        if linked_id is not None:
            self.record_id = linked_id
        elif name != self.draft_name:
            self.record_id = None
        self.draft_name = name
        self.app.notifier.success("Draft loaded", name)
        return True

    def delete_draft(self, name):
        try:
            removed = self.draft_store.delete(name)
        except DraftStorageError as e:
            self.app.notifier.error("Failed to delete draft", str(e))
            return False
        if self.draft_name == name:
            self.draft_name = None
        if removed:
            self.app.notifier.success("Draft deleted", name)
        return removed

    # Backend

    def load_record(self, record_id):
        try:
            record = self.app.record_store.get(self.MAPPING.table, record_id)
        except RecordStoreError as e:
            self.app.notifier.error("Failed to load record", f"{e} {GENERIC_RETRY_MESSAGE}")
            return False
        self.machine.load(form_state_from_record(record, self.initial_state(), self.MAPPING))
        self.record_id = record_id
        self.pipeline.known_versions[record_id] = record.get('version')
        return True

    def save_to_backend(self):
        return self._save('draft')

    def submit(self):
        return self._save('submitted')

    def _save(self, mode):
        try:
            record_id = self.pipeline.save(self.machine.state, mode, existing_id=self.record_id,
                                           draft_name=self.draft_name)
        except SubmissionValidationError as e:
            self.app.notifier.error("Missing required fields", ', '.join(e.missing))
            return None
        except SubmissionError as e:
            message = str(e) if e.conflict else f"{e} {GENERIC_RETRY_MESSAGE}"
            self.app.notifier.error("Failed to save", message)
            return None
        self.record_id = record_id
        if mode == 'submitted':
            self.app.notifier.success("Submitted successfully")
        else:
            if self.draft_name:
                self._link_draft()
            self.app.notifier.success("Saved successfully")
        return record_id

    def _link_draft(self):
        try:
            self.draft_store.link_record(self.draft_name, self.record_id)
        except DraftStorageError as e:
            self.logger.warning(f"Draft {self.draft_name!r} not linked to record {self.record_id}: {e}")

    def _on_submitted(self, record_id):
        self.logger.info(f"Record {record_id} submitted, leaving the edit view")
        self.draft_name = None
        self.app.navigate(self.DONE_ROUTE)

    # Captures

    def capture_photo(self, field_name, camera=None, path=None, choose_file=None):
        """Capture from ``camera`` (falling back to ``choose_file``) or from ``path``."""
        try:
            if camera is not None:
                data_uri = self.app.image_service.capture_with_fallback(camera, choose_file or (lambda: path))
            else:
                data_uri = self.app.image_service.capture_from_file(path)
        except (CorruptedImageError, CameraUnavailableError, OSError) as e:
            self.app.notifier.error("Failed to capture image", str(e))
            return None
        if data_uri is None:
            return None
        return add_photo(self.machine, field_name, data_uri)

    def capture_signature(self, role, strokes, size=(400, 150)):
        if role not in dict(APPROVAL_ROLES):
            self.app.notifier.error("Could not save signature", f"Unknown role: {role}")
            return None
        data_uri = self._render_drawing(strokes, size, "Could not save signature")
        if data_uri is None:
            return None
        return self.set_field(f"{role}.signature", data_uri)

    def capture_drawing(self, strokes, size=(800, 600), additional=False):
        data_uri = self._render_drawing(strokes, size, "Could not save drawing")
        if data_uri is None:
            return None
        if additional:
            return add_drawing(self.machine, data_uri)
        return self.set_field('roomLayoutDrawing', data_uri)

    def _render_drawing(self, strokes, size, title):
        try:
            return self.app.image_service.capture_drawing(strokes, size)
        except (ValueError, TypeError, CorruptedImageError) as e:
            self.app.notifier.error(title, str(e))
            return None

    # Export

    def export_pdf(self, output_dir=None):
        output_dir = output_dir or self.app.config.get_pdf_output_dir()
        try:
            path = self.app.pdf_service.export(self.machine.state, output_dir)
        except PDFExportError as e:
            self.app.notifier.error("Failed to generate PDF", str(e))
            return None
        self.app.notifier.success("PDF generated successfully", str(path))
        return path
