"""Tests for registration, sessions and stored roles."""
from backend.models import db, AppConfig, User, EngineerProfile
from shared.enums import UserRole


def register(client, email, password='correct-horse', name=''):
    return client.post('/api/auth/register', json={'email': email, 'password': password, 'name': name})


def test_first_account_is_admin_then_engineers(client, app):
    """Test that roles are provisioned on registration."""
    response = register(client, 'Owner@Example.com')
    assert response.status_code == 201
    assert response.get_json()['user']['role'] == 'admin'
    assert response.get_json()['user']['email'] == 'owner@example.com'

    response = register(client, 'tech@example.com', name='Sipho Zulu')
    assert response.status_code == 201
    user = response.get_json()['user']
    assert user['role'] == 'engineer'
    assert user['name'] == 'Sipho Zulu'
    assert user['profile_id'] is not None

    with app.app_context():
        assert EngineerProfile.query.count() == 1


def test_register_validation(client):
    assert register(client, 'not-an-email').status_code == 400
    assert register(client, 'short@example.com', password='abc').status_code == 400

    register(client, 'taken@example.com')
    response = register(client, 'TAKEN@example.com')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'User already exists'


def test_login_session_logout(client, app):
    """Test the token lifecycle through login, session and logout."""
    register(client, 'admin@example.com')

    response = client.post('/api/auth/login', json={'email': 'admin@example.com', 'password': 'wrong'})
    assert response.status_code == 401

    response = client.post('/api/auth/login', json={'email': 'admin@example.com', 'password': 'correct-horse'})
    assert response.status_code == 200
    token = response.get_json()['token']
    headers = {'Authorization': f'Bearer {token}'}

    session = client.get('/api/auth/session', headers=headers).get_json()
    assert session['authenticated'] is True
    assert session['user']['role'] == 'admin'

    assert client.get('/api/auth/me', headers=headers).get_json()['email'] == 'admin@example.com'

    response = client.post('/api/auth/logout', headers=headers)
    assert response.status_code == 200
    with app.app_context():
        assert AppConfig.query.filter_by(category='user_token').count() == 0

    assert client.get('/api/auth/session', headers=headers).get_json() == {'authenticated': False, 'user': None}
    assert client.get('/api/auth/me', headers=headers).status_code == 401


def test_login_requires_credentials(client):
    response = client.post('/api/auth/login', json={'email': 'a@example.com'})
    assert response.status_code == 400


def test_admin_sets_role(client, app, admin_headers, engineer_headers):
    """Test that only admins change stored roles, and the change takes effect."""
    with app.app_context():
        engineer = User.query.filter_by(email='engineer@example.com').first().id

    response = client.put(f'/api/users/{engineer}/role', json={'role': 'admin'}, headers=engineer_headers)
    assert response.status_code == 403

    response = client.put(f'/api/users/{engineer}/role', json={'role': 'superuser'}, headers=admin_headers)
    assert response.status_code == 400

    response = client.put(f'/api/users/{engineer}/role', json={'role': 'admin'}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()['role'] == 'admin'

    # The engineer's existing token now carries admin rights
    assert client.get('/api/dashboard', headers=engineer_headers).status_code == 200


def test_role_is_not_inferred_from_email(client, user_factory):
    """Test that an admin-looking email with an engineer role stays an engineer."""
    user_factory('admin.lookalike@akhanya.co.za', UserRole.ENGINEER, token='lookalike')
    headers = {'Authorization': 'Bearer lookalike'}

    assert client.get('/api/dashboard', headers=headers).status_code == 403
    session = client.get('/api/auth/session', headers=headers).get_json()
    assert session['user']['role'] == 'engineer'


def test_user_without_role_is_denied_admin_routes(client, app):
    with app.app_context():
        user = User(email='legacy@example.com', password_hash='hash')
        db.session.add(user)
        db.session.flush()
        db.session.add(AppConfig(key='token_legacy', value=str(user.id), category='user_token'))
        db.session.commit()

    response = client.get('/api/dashboard', headers={'Authorization': 'Bearer legacy'})
    assert response.status_code == 403
