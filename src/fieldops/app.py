"""Field client application object wiring services and handlers together."""
import logging

from .config_manager import ConfigManager
from .logging_config import setup_logging
from .notifications import Notifier
from .session import init_session_context
from .services.api_service import APIService
from .services.auth_service import AuthError, AuthService
from .services.field_registry import FieldRegistry
from .services.image_service import ImageService
from .services.local_storage import LocalStorage
from .services.pdf_service import PDFService
from .services.record_store import RecordStore
from .handlers.allocation_handler import AllocationHandler
from .handlers.config_handler import ConfigHandler
from .handlers.installation_handler import InstallationHandler
from .handlers.survey_handler import SurveyHandler


class FieldOpsApp:
    """Owns the services and handlers of one client process.

    Collaborators can be passed in; anything omitted is built from
    ``config``. ``navigate`` receives route strings when a handler leaves
    its view.
    """

    def __init__(self, config=None, storage=None, auth_service=None, api_service=None,
                 record_store=None, navigate=None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.config = config or ConfigManager()
        self.notifier = Notifier()
        self.storage = storage or LocalStorage(self.config.get_local_db_path())
        self.auth_service = auth_service or AuthService(
            self.config.api_base_url, data_dir=self.config.get_data_dir(), timeout=self.config.api_timeout
        )
        self.api_service = api_service or APIService(
            self.config.api_base_url, timeout=self.config.api_timeout, auth_service=self.auth_service
        )
        self.record_store = record_store or RecordStore(self.api_service)
        self.session = init_session_context(self.auth_service)
        self.image_service = ImageService(
            max_dimension=self.config.image_max_dimension,
            quality=self.config.image_compression_quality,
            stroke_width=self.config.drawing_stroke_width,
        )
        self.pdf_service = PDFService.from_config(self.config)
        self.field_registry = FieldRegistry(self.storage)
        self._navigate = navigate
        self.route = '/'

        self.survey_handler = SurveyHandler(self)
        self.installation_handler = InstallationHandler(self)
        self.allocation_handler = AllocationHandler(self)
        self.config_handler = ConfigHandler(self)
        self.logger.info("Field client initialized")

    def navigate(self, route):
        self.route = route
        self.logger.info(f"Navigating to {route}")
        if self._navigate is not None:
            self._navigate(route)

    def startup(self):
        """Load the session once; returns whether the user is signed in."""
        try:
            return self.session.initialize()
        except AuthError as e:
            self.notifier.error("Could not reach the server", str(e))
            return False


def main():
    config = ConfigManager()
    setup_logging(log_file=config.get_log_path())
    app = FieldOpsApp(config=config)
    app.startup()
    return app


if __name__ == '__main__':
    main()
