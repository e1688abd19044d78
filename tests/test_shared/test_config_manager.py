"""Tests for configuration manager."""
import pytest
from pydantic import ValidationError
from src.fieldops.config_manager import ConfigManager


class TestConfigManager:
    """Test configuration manager."""

    def test_default_values(self):
        """Test that default values are set correctly."""
        config = ConfigManager()
        assert config.api_timeout == 10.0
        assert config.pdf_page_format == 'A4'
        assert config.image_max_dimension == 1600

    def test_environment_override(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv('FIELDOPS_API_TIMEOUT', '3.5')
        monkeypatch.setenv('FIELDOPS_ORGANIZATION_NAME', 'Grid Works')

        config = ConfigManager()
        assert config.api_timeout == 3.5
        assert config.organization_name == 'Grid Works'

    def test_invalid_env_values(self, monkeypatch):
        """Test that invalid environment values are rejected."""
        monkeypatch.setenv('FIELDOPS_API_TIMEOUT', 'invalid')

        with pytest.raises(ValidationError):
            ConfigManager()

    def test_data_dirs(self, tmp_path):
        """Test that data and export directories are created under data_dir."""
        config = ConfigManager(data_dir=str(tmp_path / 'data'))
        assert config.get_data_dir() == tmp_path / 'data'
        assert config.get_local_db_path() == tmp_path / 'data' / 'fieldops_local.db'

        exports = config.get_pdf_output_dir()
        assert exports == tmp_path / 'data' / 'exports'
        assert exports.is_dir()

    def test_explicit_pdf_output_dir(self, tmp_path):
        config = ConfigManager(data_dir=str(tmp_path), pdf_output_dir=str(tmp_path / 'reports'))
        assert config.get_pdf_output_dir() == tmp_path / 'reports'
