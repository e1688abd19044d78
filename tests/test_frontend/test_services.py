"""Tests for the client's HTTP services, session context and notifier."""
import json
import logging
import pytest
import requests
from unittest.mock import Mock, patch
from src.fieldops.services.api_service import APIService
from src.fieldops.services.auth_service import AuthService, AuthError
from src.fieldops.services.record_store import RecordStore, RecordStoreError, RecordConflictError
from src.fieldops.session import SessionContext, init_session_context, get_session_context
from src.fieldops.notifications import Notifier
from src.fieldops.logging_config import ColorFormatter, setup_logging


def make_response(status_code=200, data=None):
    response = Mock()
    response.status_code = status_code
    response.reason = 'Error' if status_code >= 400 else 'OK'
    if data is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = data
    return response


class TestAPIService:
    """Test retry and header handling."""

    def test_get_retries_server_errors(self):
        session = Mock()
        session.request.side_effect = [make_response(503, {}), make_response(200, {'ok': True})]
        api = APIService('http://server/', retry_delay=0, session=session)

        response = api.get('/api/sites')
        assert response.status_code == 200
        assert session.request.call_count == 2
        assert session.request.call_args[0] == ('GET', 'http://server/api/sites')

    def test_get_raises_after_last_attempt(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError('down')
        api = APIService(max_retries=3, retry_delay=0, session=session)

        with pytest.raises(requests.exceptions.ConnectionError):
            api.get('/api/sites')
        assert session.request.call_count == 3

    def test_writes_are_sent_once(self):
        session = Mock()
        session.request.return_value = make_response(500, {})
        api = APIService(retry_delay=0, session=session)

        assert api.post('/api/surveys', json={}).status_code == 500
        assert session.request.call_count == 1

    def test_auth_headers_are_merged(self):
        session = Mock()
        session.request.return_value = make_response(200, {})
        auth = Mock()
        auth.get_headers.return_value = {'Authorization': 'Bearer abc'}
        api = APIService(auth_service=auth, session=session, timeout=4)

        api.put('/api/surveys/1', json={}, headers={'If-Match': '"2"'})
        kwargs = session.request.call_args[1]
        assert kwargs['headers'] == {'If-Match': '"2"', 'Authorization': 'Bearer abc'}
        assert kwargs['timeout'] == 4

    def test_fixed_access_token(self):
        api = APIService(access_token='static')
        assert api._get_auth_headers() == {'Authorization': 'Bearer static'}


class TestRecordStore:
    """Test the record store's mapping of tables and errors."""

    def test_insert_posts_to_table_endpoint(self):
        api = Mock()
        api.post.return_value = make_response(201, {'id': 3, 'version': 1})
        store = RecordStore(api)

        assert store.insert('site_surveys', {'site_name': 'A'}) == {'id': 3, 'version': 1}
        api.post.assert_called_once_with('/api/surveys', json={'site_name': 'A'})

    def test_update_sends_if_match(self):
        api = Mock()
        api.put.return_value = make_response(200, {'id': 3, 'version': 3})
        store = RecordStore(api)

        store.update('site_installations', 3, {'status': 'submitted'}, version=2)
        api.put.assert_called_once_with('/api/installations/3', json={'status': 'submitted'},
                                        headers={'If-Match': '"2"'})

        store.update('site_installations', 3, {'status': 'submitted'})
        assert api.put.call_args[1]['headers'] == {}

    def test_conflict_and_errors(self):
        api = Mock()
        api.put.return_value = make_response(409, {'error': 'stale', 'current_version': 5})
        api.post.return_value = make_response(400, {'error': 'site_name is required'})
        api.get.side_effect = requests.exceptions.Timeout('slow')
        store = RecordStore(api)

        with pytest.raises(RecordConflictError) as exc_info:
            store.update('site_surveys', 1, {}, version=4)
        assert exc_info.value.current_version == 5

        with pytest.raises(RecordStoreError, match='site_name is required') as exc_info:
            store.insert('site_surveys', {})
        assert exc_info.value.status_code == 400

        with pytest.raises(RecordStoreError, match='Could not reach the server'):
            store.get('site_surveys', 1)

    def test_error_without_json_body(self):
        api = Mock()
        api.get.return_value = make_response(502)
        with pytest.raises(RecordStoreError, match='status 502'):
            RecordStore(api).get('eskom_sites', 1)

    def test_select_drops_empty_filters(self):
        api = Mock()
        api.get.return_value = make_response(200, {'sites': [{'id': 1}]})
        store = RecordStore(api)

        assert store.select('eskom_sites', region='Gauteng', search='') == [{'id': 1}]
        api.get.assert_called_once_with('/api/sites', params={'region': 'Gauteng', 'per_page': 500})

    def test_changes_and_regions(self):
        api = Mock()
        api.get.side_effect = [
            make_response(200, {'changes': [{'id': 8}], 'latest_id': 8}),
            make_response(200, {'regions': ['Gauteng']}),
        ]
        store = RecordStore(api)

        assert store.changes(since=5, table='engineer_allocations') == ([{'id': 8}], 8)
        assert api.get.call_args_list[0][1]['params'] == {'since': 5, 'table': 'engineer_allocations'}
        assert store.regions() == ['Gauteng']

    def test_unknown_table(self):
        with pytest.raises(RecordStoreError, match='Unknown table'):
            RecordStore(Mock()).insert('projects', {})


class TestAuthService:
    """Test token persistence and session fetch."""

    def test_login_persists_token(self, tmp_path):
        with patch('src.fieldops.services.auth_service.requests.post') as post:
            post.return_value = make_response(200, {'token': 'tok', 'user': {'email': 'a@example.com'}})
            auth = AuthService('http://server', data_dir=tmp_path)
            assert auth.login('a@example.com', 'pw') == (True, None)

        stored = json.loads((tmp_path / 'auth_token.json').read_text())
        assert stored['token'] == 'tok'
        assert AuthService('http://server', data_dir=tmp_path).get_headers() == {'Authorization': 'Bearer tok'}

    def test_login_failure_message(self, tmp_path):
        with patch('src.fieldops.services.auth_service.requests.post') as post:
            post.return_value = make_response(401, {'error': 'Invalid email or password'})
            auth = AuthService('http://server', data_dir=tmp_path)
            assert auth.login('a@example.com', 'bad') == (False, 'Invalid email or password')

            post.side_effect = requests.exceptions.ConnectionError('refused')
            success, error = auth.login('a@example.com', 'pw')
            assert success is False
            assert error.startswith('Connection error')

    def test_fetch_session_clears_rejected_token(self, tmp_path):
        auth = AuthService('http://server', data_dir=tmp_path)
        assert auth.fetch_session() is None

        auth.token = 'old'
        auth._save_token()
        with patch('src.fieldops.services.auth_service.requests.get') as get:
            get.return_value = make_response(200, {'authenticated': False, 'user': None})
            assert auth.fetch_session() is None
        assert auth.token is None
        assert not (tmp_path / 'auth_token.json').exists()

    def test_fetch_session_connection_error(self, tmp_path):
        auth = AuthService('http://server', data_dir=tmp_path)
        auth.token = 'tok'
        with patch('src.fieldops.services.auth_service.requests.get') as get:
            get.side_effect = requests.exceptions.ConnectionError('refused')
            with pytest.raises(AuthError):
                auth.fetch_session()
        assert auth.token == 'tok'

    def test_unreadable_token_file_is_ignored(self, tmp_path):
        (tmp_path / 'auth_token.json').write_text('{not json')
        assert AuthService('http://server', data_dir=tmp_path).is_authenticated() is False


class TestSessionContext:
    """Test the process-wide session context."""

    def test_initialize_and_subscribe(self):
        auth = Mock()
        auth.fetch_session.return_value = {'id': 1, 'email': 'a@example.com', 'role': 'admin'}
        context = SessionContext(auth)
        seen = []
        unsubscribe = context.subscribe(lambda ctx: seen.append(ctx.role))

        assert context.initialize() is True
        assert context.is_admin
        assert seen == ['admin']

        unsubscribe()
        context.logout()
        assert seen == ['admin']
        assert context.is_authenticated is False
        assert context.role is None
        auth.logout.assert_called_once()

    def test_user_is_a_copy(self):
        auth = Mock()
        auth.fetch_session.return_value = {'id': 2, 'role': 'engineer'}
        context = SessionContext(auth)
        context.initialize()

        context.user['role'] = 'admin'
        assert context.role == 'engineer'
        assert context.is_admin is False
        with pytest.raises(AttributeError):
            context.role = 'admin'

    def test_login(self):
        auth = Mock()
        auth.login.return_value = (True, None)
        auth.user = {'id': 3, 'role': 'engineer'}
        context = SessionContext(auth)

        assert context.login('e@example.com', 'pw') == (True, None)
        assert context.role == 'engineer'

        auth.login.return_value = (False, 'Invalid email or password')
        context.logout()
        assert context.login('e@example.com', 'bad') == (False, 'Invalid email or password')
        assert context.is_authenticated is False

    def test_initialize_propagates_connection_errors(self):
        auth = Mock()
        auth.fetch_session.side_effect = AuthError('down')
        with pytest.raises(AuthError):
            SessionContext(auth).initialize()

    def test_global_context(self):
        context = init_session_context(Mock())
        assert get_session_context() is context


class TestNotifier:
    def test_toasts_reach_listeners(self):
        notifier = Notifier(history_size=2)
        received = []
        notifier.subscribe(received.append)

        notifier.success('Saved')
        notifier.error('Failed', 'try again')
        notifier.success('Saved again')

        assert [toast.level for toast in received] == ['success', 'error', 'success']
        assert [toast.title for toast in notifier.history] == ['Failed', 'Saved again']
        assert notifier.last.title == 'Saved again'


class TestClientLogging:
    @pytest.fixture
    def root_logger(self):
        logger = logging.getLogger()
        handlers, level = list(logger.handlers), logger.level
        yield logger
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)

    def test_log_file_receives_records(self, root_logger, tmp_path, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        log_file = tmp_path / 'client.log'

        setup_logging(log_file=log_file)
        logging.getLogger('SurveyHandler').warning('Draft test1 not linked')
        for handler in root_logger.handlers:
            handler.flush()

        assert root_logger.level == logging.DEBUG
        assert logging.getLogger('PIL').level == logging.WARNING
        text = log_file.read_text(encoding='utf-8')
        assert 'Client logging initialized (level: DEBUG)' in text
        assert 'SurveyHandler' in text and 'Draft test1 not linked' in text
        assert '\033[' not in text

    def test_console_only_by_default(self, root_logger):
        setup_logging()
        assert len(root_logger.handlers) == 1

    def test_color_formatter_leaves_record_alone(self):
        record = logging.LogRecord('x', logging.ERROR, __file__, 1, 'boom', None, None)
        formatted = ColorFormatter('%(levelname)s %(message)s').format(record)
        assert formatted.startswith('\033[31mERROR')
        assert record.levelname == 'ERROR'
