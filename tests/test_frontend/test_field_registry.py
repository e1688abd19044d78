"""Tests for the admin-configurable field registry and its screen handler."""
import json
import pytest
from src.fieldops.services.field_registry import FieldRegistry, RegistryError, DEFAULT_CONFIG, slugify
from src.fieldops.handlers.config_handler import ConfigHandler

SURVEY = 'eskomSurvey'


@pytest.fixture
def registry(local_storage):
    return FieldRegistry(local_storage)


def orders(registry, section, form_type=SURVEY):
    return [f['order'] for f in registry.fields_for_section(form_type, section, include_inactive=True)]


def ids(registry, section, form_type=SURVEY):
    return [f['id'] for f in registry.fields_for_section(form_type, section, include_inactive=True)]


def test_defaults_until_saved(registry, local_storage):
    assert registry.sections(SURVEY) == DEFAULT_CONFIG[SURVEY]['sections']
    assert local_storage.keys('form-config') == []

    config = registry.get_config(SURVEY)
    config['sections'].append('Scratch')
    assert 'Scratch' not in registry.sections(SURVEY)

    with pytest.raises(RegistryError):
        registry.get_config('projects')


def test_add_field_appends_with_next_order(registry):
    field = registry.add_field(SURVEY, 'Site Information', {'label': 'Access Code', 'type': 'number'})

    assert field['id'].startswith('access_code_')
    assert field['order'] == 4
    assert field['required'] is True
    assert field['placeholder'] == 'Enter access code'
    assert orders(registry, 'Site Information') == [0, 1, 2, 3, 4]


def test_add_field_ids_are_unique(registry):
    first = registry.add_field(SURVEY, 'Annexures', {'label': 'Note', 'id': 'note'})
    second = registry.add_field(SURVEY, 'Annexures', {'label': 'Note', 'id': 'note'})
    assert (first['id'], second['id']) == ('note', 'note_1')


def test_add_field_validation(registry):
    with pytest.raises(RegistryError, match='Field name cannot be empty'):
        registry.add_field(SURVEY, 'Annexures', {'label': '  '})
    with pytest.raises(RegistryError, match='select or create a section'):
        registry.add_field(SURVEY, 'Nowhere', {'label': 'X'})
    with pytest.raises(RegistryError, match='Invalid field'):
        registry.add_field(SURVEY, 'Annexures', {'label': 'X', 'type': 'signature'})


def test_move_field_swaps_neighbours(registry):
    """Test that moving keeps orders 0..N-1 and stops at the ends."""
    before = ids(registry, 'Site Information')

    assert registry.move_field(SURVEY, before[2], 'up') is True
    assert ids(registry, 'Site Information') == [before[0], before[2], before[1], before[3]]
    assert orders(registry, 'Site Information') == [0, 1, 2, 3]

    assert registry.move_field(SURVEY, before[0], 'up') is False
    assert registry.move_field(SURVEY, before[3], 'down') is False
    with pytest.raises(RegistryError):
        registry.move_field(SURVEY, before[0], 'sideways')


def test_delete_field_resequences(registry):
    before = ids(registry, 'Site Visit Attendees')
    registry.delete_field(SURVEY, before[1])
    assert ids(registry, 'Site Visit Attendees') == [before[0], before[2], before[3]]
    assert orders(registry, 'Site Visit Attendees') == [0, 1, 2]

    with pytest.raises(RegistryError, match='Unknown field'):
        registry.delete_field(SURVEY, before[1])


def test_update_field_moving_sections(registry):
    """Test moving a field appends it to the new section and closes the gap."""
    source = ids(registry, 'Site Survey Outcome')
    moved = registry.update_field(SURVEY, {'id': source[0], 'section': 'Annexures', 'label': 'Contractor'})

    assert moved['section'] == 'Annexures'
    assert moved['order'] == 0
    assert moved['label'] == 'Contractor'
    assert ids(registry, 'Site Survey Outcome') == source[1:]
    assert orders(registry, 'Site Survey Outcome') == [0, 1, 2]

    with pytest.raises(RegistryError):
        registry.update_field(SURVEY, {'id': source[1], 'section': 'Nowhere'})


def test_update_field_keeps_order_within_section(registry):
    field_id = ids(registry, 'Site Information')[1]
    updated = registry.update_field(SURVEY, {'id': field_id, 'order': 99, 'required': False})
    assert updated['order'] == 1
    assert updated['required'] is False


def test_toggle_active_hides_field(registry):
    field_id = ids(registry, 'Site Information')[0]
    registry.toggle_active(SURVEY, field_id, False)
    visible = [f['id'] for f in registry.fields_for_section(SURVEY, 'Site Information')]
    assert field_id not in visible
    assert field_id in ids(registry, 'Site Information')


def test_sections(registry):
    """Test section rules: unique names, and no deletion while fields remain."""
    registry.add_section(SURVEY, '  Photos  ')
    assert registry.sections(SURVEY)[-1] == 'Photos'

    with pytest.raises(RegistryError, match='already exists'):
        registry.add_section(SURVEY, 'Photos')
    with pytest.raises(RegistryError, match='cannot be empty'):
        registry.add_section(SURVEY, '')

    with pytest.raises(RegistryError, match='Cannot delete section with fields'):
        registry.delete_section(SURVEY, 'Site Information')
    assert 'Site Information' in registry.sections(SURVEY)

    registry.delete_section(SURVEY, 'Photos')
    assert 'Photos' not in registry.sections(SURVEY)


def test_buckets_are_independent(registry):
    registry.add_section('installation', 'Handover')
    assert 'Handover' not in registry.sections(SURVEY)
    assert 'Handover' not in registry.sections('assessment')


def test_export_import_round_trip(registry, local_storage):
    registry.add_field(SURVEY, 'Annexures', {'label': 'Drawing Ref', 'id': 'drawing_ref'})
    exported = registry.export_config()
    assert set(json.loads(exported)) == {'assessment', 'installation', 'eskomSurvey'}

    fresh = FieldRegistry(local_storage)
    fresh.reset(SURVEY)
    assert 'drawing_ref' not in ids(fresh, 'Annexures')

    assert sorted(fresh.import_config(exported)) == ['assessment', 'eskomSurvey', 'installation']
    assert 'drawing_ref' in ids(fresh, 'Annexures')


def test_import_is_all_or_nothing(registry):
    bad = {
        'installation': {'sections': ['A'], 'fields': []},
        'eskomSurvey': {'sections': ['A'], 'fields': [
            {'id': 'x', 'label': 'X', 'section': 'B', 'order': 0},
        ]},
    }
    with pytest.raises(RegistryError, match='unknown section'):
        registry.import_config(json.dumps(bad))
    assert registry.sections('installation') == DEFAULT_CONFIG['installation']['sections']

    with pytest.raises(RegistryError, match='Invalid configuration file'):
        registry.import_config('{broken')
    with pytest.raises(RegistryError, match='Unknown form type'):
        registry.import_config(json.dumps({'projects': {}}))


def test_import_resequences_orders(registry):
    data = {'assessment': {'sections': ['A'], 'fields': [
        {'id': 'b', 'label': 'B', 'section': 'A', 'order': 7},
        {'id': 'a', 'label': 'A', 'section': 'A', 'order': 3},
    ]}}
    registry.import_config(json.dumps(data))
    assert ids(registry, 'A', 'assessment') == ['a', 'b']
    assert orders(registry, 'A', 'assessment') == [0, 1]


def test_slugify():
    assert slugify('  Access  Code ') == 'access_code'


class TestConfigHandler:
    """Test the configuration screen reports outcomes as toasts."""

    def test_add_field_and_section(self, mock_app):
        handler = ConfigHandler(mock_app)
        assert handler.active_section == 'Site Information'

        handler.add_section('Extras')
        assert handler.active_section == 'Extras'
        assert mock_app.notifier.last.title == 'Section added successfully'

        field = handler.add_field('Gate Code', field_type='number', required=False)
        assert field['section'] == 'Extras'
        assert mock_app.notifier.last.title == 'Field added successfully'
        assert [f['id'] for f in handler.section_fields()] == [field['id']]

    def test_errors_become_error_toasts(self, mock_app):
        handler = ConfigHandler(mock_app)
        assert handler.delete_section('Site Information') is None
        assert mock_app.notifier.last.level == 'error'
        assert 'Cannot delete section' in mock_app.notifier.last.title

        assert handler.add_field('') is None
        assert mock_app.notifier.last.title == 'Field name cannot be empty'

    def test_toggle_move_delete(self, mock_app):
        handler = ConfigHandler(mock_app)
        first, second = [f['id'] for f in handler.section_fields()[:2]]

        handler.toggle_active(second, False)
        assert mock_app.notifier.last.title == 'Field deactivated successfully'

        assert handler.move_field_up(second) is True
        assert [f['id'] for f in handler.section_fields()[:2]] == [second, first]

        handler.delete_field(second)
        assert mock_app.notifier.last.title == 'Field deleted successfully'
        assert [f['order'] for f in handler.section_fields()] == [0, 1, 2]

    def test_select_tab(self, mock_app):
        handler = ConfigHandler(mock_app)
        handler.select_tab('installation')
        assert handler.active_section == 'Basic Information'

    def test_export_and_import_files(self, mock_app, tmp_path):
        handler = ConfigHandler(mock_app)
        handler.add_section('Extras')
        path = handler.export_config(tmp_path)
        assert path.name.startswith('form-config-')
        assert mock_app.notifier.last.title == 'Configuration exported'

        handler.delete_section('Extras')
        assert handler.import_config(path) is not None
        assert 'Extras' in mock_app.field_registry.sections('eskomSurvey')

        assert handler.import_config(tmp_path / 'missing.json') is None
        assert mock_app.notifier.last.title == 'Failed to read configuration file'
