"""Admin-configurable form fields, one bucket per form type.

Each bucket holds an ordered list of section names and a list of field
configs tagged with a section. Within a section the ``order`` values are
always exactly ``0..N-1``. The registry is stored in local storage under the
``form-config`` scope and is independent of the hard-coded survey and
installation wizards.
"""
import copy
import json
import logging
import re
import time

from pydantic import ValidationError as PydanticValidationError

from shared.enums import FormType
from shared.schemas import FieldConfig
from .local_storage import LocalStorageError

CONFIG_SCOPE = 'form-config'

REGIONS = ["Gauteng", "Western Cape", "KwaZulu-Natal", "Eastern Cape", "Limpopo",
           "Mpumalanga", "North West", "Free State", "Northern Cape"]


def _field(id, label, section, order, type='text', required=False, placeholder='', options=None):
    return {
        'id': id, 'type': type, 'label': label, 'placeholder': placeholder, 'required': required,
        'options': options, 'section': section, 'order': order, 'active': True,
    }


DEFAULT_CONFIG = {
    FormType.ASSESSMENT.value: {
        'sections': ["Basic Information", "Site Details", "Requirements", "Technical Details"],
        'fields': [
            _field('siteName', 'Site Name', 'Basic Information', 0, required=True, placeholder='Enter site name'),
            _field('siteLocation', 'Site Location', 'Basic Information', 1, required=True,
                   placeholder='Enter site location'),
        ],
    },
    FormType.INSTALLATION.value: {
        'sections': ["Basic Information", "Equipment", "Installation Details", "Verification"],
        'fields': [
            _field('installationDate', 'Installation Date', 'Basic Information', 0, type='date', required=True),
            _field('equipmentType', 'Equipment Type', 'Equipment', 0, type='select', required=True,
                   options=["Router", "Switch", "Firewall", "Other"]),
        ],
    },
    FormType.ESKOM_SURVEY.value: {
        'sections': [
            "Site Information", "Site Visit Attendees", "Site Survey Outcome", "Site Identification",
            "Equipment Location", "Access Procedure", "Equipment Room General", "Cabinet Space Planning",
            "Transport Platforms", "DC Power Distribution", "Installation Requirements",
            "Optical Distribution Frame", "Annexures",
        ],
        'fields': [
            _field('siteName', 'Site Name', 'Site Information', 0, required=True, placeholder='Enter site name'),
            _field('region', 'Region', 'Site Information', 1, type='select', required=True, options=REGIONS),
            _field('date', 'Date', 'Site Information', 2, type='date', required=True),
            _field('buildingPhoto', 'Building Photo', 'Site Information', 3, required=True,
                   placeholder='Full front view photo of building where IP/MPLS equipment will be situated'),
            _field('attendeeName1', 'Attendee 1 Name', 'Site Visit Attendees', 0),
            _field('attendeeCompany1', 'Attendee 1 Company', 'Site Visit Attendees', 1),
            _field('attendeeDepartment1', 'Attendee 1 Department', 'Site Visit Attendees', 2),
            _field('attendeeCellphone1', 'Attendee 1 Cellphone', 'Site Visit Attendees', 3),
            _field('oemContractorName', 'OEM Contractor Name', 'Site Survey Outcome', 0),
            _field('oemContractorDate', 'OEM Contractor Date', 'Site Survey Outcome', 1, type='date'),
            _field('oemContractorStatus', 'OEM Contractor Status', 'Site Survey Outcome', 2, type='select',
                   options=["Accepted", "Rejected"]),
            _field('oemContractorComments', 'OEM Contractor Comments', 'Site Survey Outcome', 3, type='textarea'),
        ],
    },
}


class RegistryError(Exception):
    """Raised when a registry edit would break its rules."""
    pass


def slugify(label):
    return re.sub(r'\s+', '_', label.strip().lower())


def resequence(fields, section):
    """Renumber ``order`` of one section's fields to 0..N-1, keeping their relative order."""
    in_section = sorted((f for f in fields if f['section'] == section), key=lambda f: f['order'])
    for position, item in enumerate(in_section):
        item['order'] = position
    return fields


class FieldRegistry:
    def __init__(self, storage):
        self.storage = storage
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_config(self, form_type):
        """Return a copy of one bucket: ``{'sections': [...], 'fields': [...]}``."""
        if form_type not in DEFAULT_CONFIG:
            raise RegistryError(f"Unknown form type: {form_type}")
        try:
            stored = self.storage.get(CONFIG_SCOPE, form_type)
        except LocalStorageError as e:
            raise RegistryError(f"Could not load form configuration: {e}") from e
        return copy.deepcopy(stored if stored is not None else DEFAULT_CONFIG[form_type])

    def sections(self, form_type):
        return self.get_config(form_type)['sections']

    def fields_for_section(self, form_type, section, include_inactive=False):
        fields = [f for f in self.get_config(form_type)['fields'] if f['section'] == section]
        if not include_inactive:
            fields = [f for f in fields if f.get('active', True)]
        return sorted(fields, key=lambda f: f['order'])

    def add_section(self, form_type, name):
        name = (name or '').strip()
        if not name:
            raise RegistryError("Section name cannot be empty")
        config = self.get_config(form_type)
        if name in config['sections']:
            raise RegistryError("Section with this name already exists")
        config['sections'].append(name)
        self._save(form_type, config)
        return config['sections']

    def delete_section(self, form_type, name):
        config = self.get_config(form_type)
        if name not in config['sections']:
            raise RegistryError(f"Unknown section: {name}")
        if any(f['section'] == name for f in config['fields']):
            raise RegistryError("Cannot delete section with fields. Please delete all fields first.")
        config['sections'].remove(name)
        self._save(form_type, config)
        return config['sections']

    def add_field(self, form_type, section, draft):
        """Append a field built from ``draft`` (label, type, required, ...) to the end of ``section``."""
        label = (draft.get('label') or '').strip()
        if not label:
            raise RegistryError("Field name cannot be empty")
        config = self.get_config(form_type)
        if section not in config['sections']:
            raise RegistryError("Please select or create a section first")

        existing_ids = {f['id'] for f in config['fields']}
        field_id = draft.get('id') or f"{slugify(label)}_{int(time.time() * 1000)}"
        base_id, suffix = field_id, 1
        while field_id in existing_ids:
            field_id = f"{base_id}_{suffix}"
            suffix += 1

        new_field = self._validate({
            'type': 'text',
            'placeholder': f"Enter {label.lower()}",
            'required': True,
            **draft,
            'id': field_id,
            'label': label,
            'section': section,
            'order': sum(1 for f in config['fields'] if f['section'] == section),
            'active': True,
        })
        config['fields'].append(new_field)
        self._save(form_type, config)
        self.logger.info(f"Added field {field_id} to {form_type}/{section}")
        return new_field

    def update_field(self, form_type, updated):
        """Replace a field's settings; moving it to another section appends it there."""
        config = self.get_config(form_type)
        current = self._find(config, updated.get('id'))
        new_section = updated.get('section', current['section'])
        if new_section not in config['sections']:
            raise RegistryError(f"Unknown section: {new_section}")

        merged = {**current, **updated}
        if new_section != current['section']:
            merged['order'] = sum(1 for f in config['fields'] if f['section'] == new_section)
        else:
            merged['order'] = current['order']
        merged = self._validate(merged)

        config['fields'] = [merged if f['id'] == merged['id'] else f for f in config['fields']]
        resequence(config['fields'], current['section'])
        self._save(form_type, config)
        return merged

    def toggle_active(self, form_type, field_id, active):
        config = self.get_config(form_type)
        self._find(config, field_id)['active'] = bool(active)
        self._save(form_type, config)

    def move_field(self, form_type, field_id, direction):
        """Swap a field with its neighbour in ``direction`` ('up' or 'down'); no-op at the ends."""
        if direction not in ('up', 'down'):
            raise RegistryError(f"Invalid direction: {direction}")
        config = self.get_config(form_type)
        item = self._find(config, field_id)
        siblings = sorted((f for f in config['fields'] if f['section'] == item['section']),
                          key=lambda f: f['order'])
        index = siblings.index(item)
        neighbour_index = index - 1 if direction == 'up' else index + 1
        if not 0 <= neighbour_index < len(siblings):
            return False
        neighbour = siblings[neighbour_index]
        item['order'], neighbour['order'] = neighbour['order'], item['order']
        self._save(form_type, config)
        return True

    def delete_field(self, form_type, field_id):
        config = self.get_config(form_type)
        item = self._find(config, field_id)
        config['fields'] = [f for f in config['fields'] if f['id'] != field_id]
        resequence(config['fields'], item['section'])
        self._save(form_type, config)
        self.logger.info(f"Deleted field {field_id} from {form_type}")

    def export_config(self):
        """All three buckets as a JSON document."""
        return json.dumps({form_type: self.get_config(form_type) for form_type in DEFAULT_CONFIG}, indent=2)

    def import_config(self, text):
        """Replace the configuration with an exported JSON document; all or nothing."""
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise RegistryError(f"Invalid configuration file: {e}") from e
        if not isinstance(data, dict):
            raise RegistryError("Configuration must be a JSON object")

        buckets = {}
        for form_type, bucket in data.items():
            if form_type not in DEFAULT_CONFIG:
                raise RegistryError(f"Unknown form type: {form_type}")
            if not isinstance(bucket, dict):
                raise RegistryError(f"{form_type}: bucket must be an object")
            sections = bucket.get('sections', [])
            if (not isinstance(sections, list) or not all(isinstance(s, str) and s for s in sections)
                    or len(set(sections)) != len(sections)):
                raise RegistryError(f"{form_type}: sections must be unique non-empty names")
            fields = [self._validate(f) for f in bucket.get('fields', [])]
            if len({f['id'] for f in fields}) != len(fields):
                raise RegistryError(f"{form_type}: duplicate field ids")
            for item in fields:
                if item['section'] not in sections:
                    raise RegistryError(f"{form_type}: field {item['id']} references unknown section {item['section']}")
            for section in sections:
                resequence(fields, section)
            buckets[form_type] = {'sections': sections, 'fields': fields}

        for form_type, bucket in buckets.items():
            self._save(form_type, bucket)
        return list(buckets)

    def reset(self, form_type):
        self._save(form_type, copy.deepcopy(DEFAULT_CONFIG[form_type]))

    def _find(self, config, field_id):
        for item in config['fields']:
            if item['id'] == field_id:
                return item
        raise RegistryError(f"Unknown field: {field_id}")

    def _validate(self, data):
        if not isinstance(data, dict):
            raise RegistryError("Field must be an object")
        try:
            return FieldConfig(**data).model_dump()
        except PydanticValidationError as e:
            messages = '; '.join(f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors())
            raise RegistryError(f"Invalid field: {messages}") from e

    def _save(self, form_type, config):
        try:
            self.storage.set(CONFIG_SCOPE, form_type, config)
        except LocalStorageError as e:
            raise RegistryError(f"Could not save form configuration: {e}") from e
