"""Pytest configuration and fixtures for field operations tests."""
import pytest
import tempfile
import os
from unittest.mock import Mock
from backend.app import create_app
from backend.models import db, AppConfig, User, EngineerProfile, Site
from shared.enums import UserRole


@pytest.fixture(scope='session', autouse=True)
def log_dir(tmp_path_factory):
    """Keep the backend's rotating log out of the source tree."""
    path = tmp_path_factory.mktemp('logs')
    os.environ['LOG_DIR'] = str(path)
    return path


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    # Create temporary database for testing
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()

    yield app

    # Cleanup
    with app.app_context():
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def make_user(app, email, role, token=None, name=None):
    """Create a user directly, optionally with a bearer token; returns the user id."""
    with app.app_context():
        user = User(email=email, password_hash='hash', role=role)
        db.session.add(user)
        db.session.flush()
        if role == UserRole.ENGINEER:
            db.session.add(EngineerProfile(user_id=user.id, name=name or email, email=email))
        if token:
            db.session.add(AppConfig(key=f'token_{token}', value=str(user.id), category='user_token'))
        db.session.commit()
        return user.id


@pytest.fixture
def user_factory(app):
    """Create users against the test app: ``user_factory(email, role, token=None, name=None)``."""
    def factory(email, role, token=None, name=None):
        return make_user(app, email, role, token=token, name=name)
    return factory


@pytest.fixture
def admin_headers(app):
    make_user(app, 'admin@example.com', UserRole.ADMIN, token='admin-token')
    return {'Authorization': 'Bearer admin-token'}


@pytest.fixture
def engineer_headers(app):
    make_user(app, 'engineer@example.com', UserRole.ENGINEER, token='engineer-token', name='Thabo Mokoena')
    return {'Authorization': 'Bearer engineer-token'}


@pytest.fixture
def sites(app):
    """Three catalog sites in two regions; returns their ids."""
    with app.app_context():
        rows = [
            Site(name='Apollo Substation', region='Gauteng', type='sub-tx', contact_name='J. Dlamini'),
            Site(name='Beta Substation', region='Gauteng', type='sub-tx'),
            Site(name='Camden Power Station', region='Mpumalanga', type='ps-coal'),
        ]
        db.session.add_all(rows)
        db.session.commit()
        return [row.id for row in rows]


class MockApp:
    """Stand-in for FieldOpsApp with real local storage and mocked remote services."""

    def __init__(self, storage, tmp_path):
        from src.fieldops.notifications import Notifier
        from src.fieldops.services.field_registry import FieldRegistry
        from src.fieldops.services.image_service import ImageService
        from src.fieldops.services.pdf_service import PDFService

        self.storage = storage
        self.notifier = Notifier()
        self.record_store = Mock()
        self.image_service = ImageService(max_dimension=400)
        self.pdf_service = PDFService()
        self.field_registry = FieldRegistry(storage)
        self.config = Mock()
        self.config.get_pdf_output_dir.return_value = tmp_path
        self.navigate = Mock()


@pytest.fixture
def local_storage(tmp_path):
    from src.fieldops.services.local_storage import LocalStorage

    storage = LocalStorage(tmp_path / 'local.db')
    yield storage
    storage.close()


@pytest.fixture
def mock_app(local_storage, tmp_path):
    return MockApp(local_storage, tmp_path)


class FakeRecordStore:
    """In-memory record store with the backend's versioning rules.

    Set ``fail_next`` to an exception instance to make the next write raise it.
    """

    def __init__(self):
        from src.fieldops.services.record_store import RecordConflictError
        self.conflict_error = RecordConflictError
        self.tables = {}
        self.calls = []
        self.fail_next = None
        self._next_id = 1

    def _check_failure(self):
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def insert(self, table, row):
        self.calls.append(('insert', table, None))
        self._check_failure()
        record = {**row, 'id': self._next_id, 'version': 1}
        self._next_id += 1
        self.tables.setdefault(table, {})[record['id']] = record
        return dict(record)

    def update(self, table, record_id, row, version=None):
        self.calls.append(('update', table, record_id))
        self._check_failure()
        record = self.tables[table][record_id]
        if version is not None and version != record['version']:
            raise self.conflict_error('Record was modified by someone else', 409,
                                      {'current_version': record['version']})
        record.update(row)
        record['version'] += 1
        return dict(record)

    def get(self, table, record_id):
        return dict(self.tables[table][record_id])

    def select(self, table, per_page=500, **filters):
        rows = self.tables.get(table, {}).values()
        return [dict(row) for row in rows if all(row.get(k) == v for k, v in filters.items())]


@pytest.fixture
def record_store():
    return FakeRecordStore()
