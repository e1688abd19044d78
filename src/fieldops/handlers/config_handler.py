"""Form field configuration screen handlers."""
import logging
from datetime import date
from pathlib import Path

from shared.enums import FormType
from ..services.field_registry import RegistryError


class ConfigHandler:
    """Wraps the field registry for the admin screen, reporting outcomes as toasts."""

    def __init__(self, app):
        self.app = app
        self.registry = app.field_registry
        self.logger = logging.getLogger(self.__class__.__name__)
        self.active_tab = FormType.ESKOM_SURVEY.value
        self.active_section = self._first_section()

    def _first_section(self):
        try:
            sections = self.registry.sections(self.active_tab)
        except RegistryError as e:
            self.app.notifier.error("Failed to load configuration", str(e))
            return ''
        return sections[0] if sections else ''

    def _run(self, success_message, operation, *args):
        try:
            result = operation(*args)
        except RegistryError as e:
            self.app.notifier.error(str(e))
            return None
        if success_message:
            self.app.notifier.success(success_message)
        return result

    def select_tab(self, form_type):
        self.active_tab = form_type
        self.active_section = self._first_section()

    def section_fields(self, include_inactive=True):
        if not self.active_section:
            return []
        return self._run(None, self.registry.fields_for_section, self.active_tab, self.active_section,
                         include_inactive) or []

    def add_section(self, name):
        sections = self._run("Section added successfully", self.registry.add_section, self.active_tab, name)
        if sections is not None:
            self.active_section = name.strip()
        return sections

    def delete_section(self, name):
        sections = self._run("Section deleted successfully", self.registry.delete_section, self.active_tab, name)
        if sections is not None:
            self.active_section = sections[0] if sections else ''
        return sections

    def add_field(self, label, field_type='text', required=True, **extra):
        draft = {'label': label, 'type': field_type, 'required': required, **extra}
        return self._run("Field added successfully", self.registry.add_field, self.active_tab,
                         self.active_section, draft)

    def update_field(self, field):
        return self._run("Field updated successfully", self.registry.update_field, self.active_tab, field)

    def delete_field(self, field_id):
        return self._run("Field deleted successfully", self.registry.delete_field, self.active_tab, field_id)

    def toggle_active(self, field_id, active):
        state = 'activated' if active else 'deactivated'
        return self._run(f"Field {state} successfully", self.registry.toggle_active, self.active_tab,
                         field_id, active)

    def move_field_up(self, field_id):
        return self._run(None, self.registry.move_field, self.active_tab, field_id, 'up')

    def move_field_down(self, field_id):
        return self._run(None, self.registry.move_field, self.active_tab, field_id, 'down')

    def export_config(self, output_dir):
        """Write ``form-config-<date>.json`` into ``output_dir``."""
        path = Path(output_dir) / f"form-config-{date.today().isoformat()}.json"
        text = self._run(None, self.registry.export_config)
        if text is None:
            return None
        try:
            path.write_text(text, encoding='utf-8')
        except OSError as e:
            self.app.notifier.error("Failed to export configuration", str(e))
            return None
        self.app.notifier.success("Configuration exported", str(path))
        return path

    def import_config(self, path):
        try:
            text = Path(path).read_text(encoding='utf-8')
        except OSError as e:
            self.app.notifier.error("Failed to read configuration file", str(e))
            return None
        imported = self._run("Configuration imported successfully", self.registry.import_config, text)
        if imported is not None:
            self.active_section = self._first_section()
        return imported
