"""Tests for the submission pipeline."""
from datetime import date
import pytest
from unittest.mock import Mock
from src.fieldops.services.draft_store import DraftStore, DraftStorageError
from src.fieldops.services.record_store import RecordStoreError
from src.fieldops.services.submission import (
    SubmissionPipeline, SubmissionError, SubmissionValidationError,
    INSTALLATION_MAPPING, SURVEY_MAPPING, build_row, form_state_from_record, split_form_state
)
from src.fieldops.state import initial_survey_state, initial_installation_state


@pytest.fixture
def form_state():
    state = initial_survey_state(date(2025, 1, 10))
    state.update(siteName='Apollo Substation', region='Gauteng', siteType='sub-tx')
    return state


def test_split_form_state(form_state):
    """Test promoted fields become columns and the rest stays in the remainder."""
    columns, remainder = split_form_state(form_state)
    assert columns['site_name'] == 'Apollo Substation'
    assert columns['site_type'] == 'sub-tx'
    assert columns['gps_coordinates'] == ''
    assert 'siteName' not in remainder
    assert remainder['transportLinks'] == form_state['transportLinks']


def test_build_row_and_back(form_state):
    row = build_row(form_state, 'draft')
    assert row['status'] == 'draft'
    record = {**row, 'id': 4, 'version': 2}
    rebuilt = form_state_from_record(record, initial_survey_state(date(2025, 1, 10)))
    assert rebuilt == form_state


def test_form_state_from_record_fills_defaults():
    record = {'site_name': 'Komati', 'installation_date': '2025-02-01', 'details': {'engineerName': 'T'}}
    state = form_state_from_record(record, initial_installation_state(date(2025, 1, 1)), INSTALLATION_MAPPING)
    assert state['siteName'] == 'Komati'
    assert state['installationDate'] == '2025-02-01'
    assert state['engineerName'] == 'T'
    assert state['verification']['testing'] is False


def test_missing_fields_make_no_backend_call(record_store, form_state):
    """Test the validation gate runs before any write."""
    pipeline = SubmissionPipeline(record_store)
    form_state['region'] = '  '
    form_state['date'] = ''

    with pytest.raises(SubmissionValidationError) as exc_info:
        pipeline.save(form_state, 'submitted')
    assert exc_info.value.missing == ['date', 'region']
    assert record_store.calls == []


def test_insert_then_update_reuses_id(record_store, form_state):
    """Test saving twice with the returned id updates the same record."""
    pipeline = SubmissionPipeline(record_store)

    record_id = pipeline.save(form_state, 'draft')
    form_state['finalNotes'] = 'Second save'
    assert pipeline.save(form_state, 'draft', existing_id=record_id) == record_id

    assert [call[0] for call in record_store.calls] == ['insert', 'update']
    assert len(record_store.tables['site_surveys']) == 1
    record = record_store.tables['site_surveys'][record_id]
    assert record['survey_data']['finalNotes'] == 'Second save'
    assert record['version'] == 2
    assert pipeline.known_versions[record_id] == 2


def test_saves_without_id_create_separate_records(record_store, form_state):
    pipeline = SubmissionPipeline(record_store)

    first = pipeline.save(form_state, 'draft')
    second = pipeline.save(form_state, 'draft')

    assert first != second
    assert [call[0] for call in record_store.calls] == ['insert', 'insert']
    assert sorted(record_store.tables['site_surveys']) == sorted([first, second])


def test_stale_version_is_a_conflict(record_store, form_state):
    pipeline = SubmissionPipeline(record_store)
    record_id = pipeline.save(form_state, 'draft')

    # Someone else saves the record meanwhile
    record_store.update('site_surveys', record_id, {'region': 'Limpopo'})

    with pytest.raises(SubmissionError) as exc_info:
        pipeline.save(form_state, 'submitted', existing_id=record_id)
    assert exc_info.value.conflict is True
    assert record_store.tables['site_surveys'][record_id]['region'] == 'Limpopo'


def test_submit_deletes_draft_and_notifies(record_store, local_storage, form_state):
    """Test a successful submit removes the draft and reports the record id."""
    drafts = DraftStore(local_storage)
    drafts.set('Draft_x', form_state)
    submitted = []
    pipeline = SubmissionPipeline(record_store, drafts, on_submitted=submitted.append)

    record_id = pipeline.save(form_state, 'submitted', draft_name='Draft_x')

    assert submitted == [record_id]
    assert drafts.get('Draft_x') is None
    assert record_store.tables['site_surveys'][record_id]['status'] == 'submitted'


def test_draft_save_keeps_draft(record_store, local_storage, form_state):
    drafts = DraftStore(local_storage)
    drafts.set('Draft_x', form_state)
    on_submitted = Mock()
    pipeline = SubmissionPipeline(record_store, drafts, on_submitted=on_submitted)

    pipeline.save(form_state, 'draft', draft_name='Draft_x')
    assert drafts.get('Draft_x') == form_state
    on_submitted.assert_not_called()


def test_backend_failure_keeps_draft(record_store, local_storage, form_state):
    """Test a failed write leaves the draft in place for a retry."""
    drafts = DraftStore(local_storage)
    drafts.set('Draft_x', form_state)
    on_submitted = Mock()
    pipeline = SubmissionPipeline(record_store, drafts, on_submitted=on_submitted)
    record_store.fail_next = RecordStoreError('Could not reach the server')

    with pytest.raises(SubmissionError) as exc_info:
        pipeline.save(form_state, 'submitted', draft_name='Draft_x')
    assert exc_info.value.conflict is False
    assert drafts.get('Draft_x') == form_state
    on_submitted.assert_not_called()

    record_id = pipeline.save(form_state, 'submitted', draft_name='Draft_x')
    on_submitted.assert_called_once_with(record_id)


def test_draft_cleanup_failure_does_not_fail_submit(record_store, form_state):
    drafts = Mock()
    drafts.delete.side_effect = DraftStorageError('locked')
    on_submitted = Mock()
    pipeline = SubmissionPipeline(record_store, drafts, on_submitted=on_submitted)

    record_id = pipeline.save(form_state, 'submitted', draft_name='Draft_x')
    on_submitted.assert_called_once_with(record_id)


def test_unknown_mode_is_rejected(record_store, form_state):
    with pytest.raises(ValueError):
        SubmissionPipeline(record_store).save(form_state, 'archived')


def test_installation_mapping(record_store):
    pipeline = SubmissionPipeline(record_store, mapping=INSTALLATION_MAPPING)
    state = initial_installation_state(date(2025, 2, 1))
    state['siteName'] = 'Komati Repeater'

    record_id = pipeline.save(state, 'draft')
    record = record_store.tables['site_installations'][record_id]
    assert record['installation_date'] == '2025-02-01'
    assert record['details']['installationType'] == 'new'
    assert SURVEY_MAPPING.table not in record_store.tables
