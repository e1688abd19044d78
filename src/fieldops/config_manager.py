"""Configuration Manager for the field client."""
from pathlib import Path
from appdirs import user_data_dir
from pydantic_settings import BaseSettings

APP_NAME = 'fieldops'
APP_AUTHOR = 'fieldops'


class ConfigManager(BaseSettings):
    """Manages client configuration settings using Pydantic BaseSettings.

    Every setting can be overridden with a ``FIELDOPS_`` environment variable,
    e.g. ``FIELDOPS_API_BASE_URL``.
    """

    # API settings
    api_timeout: float = 10.0
    api_base_url: str = 'http://localhost:5000'

    # Storage settings
    data_dir: str = ''
    local_db_name: str = 'fieldops_local.db'
    log_file_name: str = 'fieldops.log'

    # PDF settings
    organization_name: str = 'Akhanya IT'
    report_title: str = 'Eskom OT IP/MPLS Network Site Survey Report'
    pdf_page_format: str = 'A4'
    pdf_margin_mm: float = 15.0
    pdf_output_dir: str = ''

    # Image settings
    image_max_dimension: int = 1600
    image_compression_quality: int = 80
    drawing_stroke_width: int = 3

    class Config:
        env_prefix = 'FIELDOPS_'
        case_sensitive = False

    def get_data_dir(self) -> Path:
        """Directory for local drafts and configuration, created on demand."""
        path = Path(self.data_dir) if self.data_dir else Path(user_data_dir(APP_NAME, APP_AUTHOR))
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_local_db_path(self) -> Path:
        return self.get_data_dir() / self.local_db_name

    def get_log_path(self) -> Path:
        return self.get_data_dir() / self.log_file_name

    def get_pdf_output_dir(self) -> Path:
        path = Path(self.pdf_output_dir) if self.pdf_output_dir else self.get_data_dir() / 'exports'
        path.mkdir(parents=True, exist_ok=True)
        return path
