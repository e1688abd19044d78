"""Installation wizard handler; same draft and save lifecycle as the survey."""
from shared.enums import FormType
from ..sections import INSTALLATION_SECTION_IDS
from ..state import initial_installation_state
from ..services.submission import INSTALLATION_MAPPING
from .survey_handler import SurveyHandler


class InstallationHandler(SurveyHandler):
    FORM_TYPE = FormType.INSTALLATION.value
    MAPPING = INSTALLATION_MAPPING
    ROUTE = '/installation'
    SECTIONS = INSTALLATION_SECTION_IDS

    def initial_state(self):
        return initial_installation_state()

    def capture_signature(self, role, strokes, size=(400, 150)):
        """The engineer is the only signer; ``role`` is accepted for the common interface."""
        data_uri = self._render_drawing(strokes, size, "Could not save signature")
        if data_uri is None:
            return None
        return self.set_field('engineerSignature', data_uri)

    def export_pdf(self, output_dir=None):
        self.app.notifier.error("PDF export is only available for site surveys")
        return None
