"""Authentication blueprint for user sessions and role checks."""
from functools import wraps
from flask import Blueprint, request, jsonify, g
import logging
import secrets
from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import generate_password_hash, check_password_hash
from ..models import db, AppConfig, User, EngineerProfile
from shared.enums import UserRole
from shared.schemas import LoginRequest, RegisterRequest, UserResponse
from shared.validation import Validator, ValidationError

bp = Blueprint('auth', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

TOKEN_CATEGORY = 'user_token'

# Reachable without a bearer token
PUBLIC_PATHS = ('/api/auth/login', '/api/auth/register', '/api/auth/session')


def serialize_user(user):
    """Serialize a user with its authoritative role."""
    data = UserResponse.model_validate(user).model_dump(mode='json')
    data['name'] = user.profile.name if user.profile else ''
    data['profile_id'] = user.profile.id if user.profile else None
    return data


def token_from_request():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return None


def current_user():
    return getattr(g, 'user', None)


def require_role(*roles):
    """Restrict a view to users whose stored role is one of ``roles``."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify({'error': 'Authentication required'}), 401
            if user.role not in roles:
                logger.warning(f"User {user.id} with role {user.role} denied access to {request.path}")
                return jsonify({'error': 'Insufficient permissions'}), 403
            return view(*args, **kwargs)
        return wrapper
    return decorator


admin_required = require_role(UserRole.ADMIN)


@bp.route('/auth/register', methods=['POST'])
def register():
    """Register a new user.

    The first account on an empty database is provisioned as admin, every
    later account as engineer. Admins change roles explicitly afterwards.
    """
    try:
        payload = RegisterRequest(**(request.get_json(silent=True) or {}))
        email = Validator.validate_email(payload.email).lower()
    except PydanticValidationError as e:
        return jsonify({'error': '; '.join(err['msg'] for err in e.errors())}), 400
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'User already exists'}), 400

    role = UserRole.ADMIN if User.query.count() == 0 else UserRole.ENGINEER

    try:
        user = User(email=email, password_hash=generate_password_hash(payload.password), role=role)
        db.session.add(user)
        db.session.flush()
        if role == UserRole.ENGINEER:
            db.session.add(EngineerProfile(user_id=user.id, name=payload.name or email, email=email))
        db.session.commit()
        logger.info(f"Registered user {user.id} with role {role.value}")

        return jsonify({
            'message': 'User registered successfully',
            'user': serialize_user(user)
        }), 201
    except Exception as e:
        logger.error(f"Failed to register user: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({'error': 'Failed to register user'}), 500


@bp.route('/auth/login', methods=['POST'])
def login():
    """Sign in with email and password and return a bearer token."""
    try:
        payload = LoginRequest(**(request.get_json(silent=True) or {}))
    except PydanticValidationError:
        return jsonify({'error': 'Email and password are required'}), 400

    user = User.query.filter_by(email=payload.email.strip().lower()).first()

    if not user or not check_password_hash(user.password_hash, payload.password):
        logger.warning(f"Failed login attempt for {payload.email}")
        return jsonify({'error': 'Invalid email or password'}), 401

    token = secrets.token_urlsafe(32)

    # key: 'token_<token>', value: user_id
    try:
        db.session.add(AppConfig(
            key=f'token_{token}',
            value=str(user.id),
            description=f'Token for user {user.email}',
            category=TOKEN_CATEGORY
        ))
        db.session.commit()

        return jsonify({'token': token, 'user': serialize_user(user)})
    except Exception as e:
        logger.error(f"Failed to store session token: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({'error': 'Failed to sign in'}), 500


@bp.route('/auth/logout', methods=['POST'])
def logout():
    """Logout user by invalidating token."""
    token = token_from_request()
    if not token:
        return jsonify({'error': 'Token required'}), 400

    try:
        config_entry = AppConfig.query.filter_by(key=f'token_{token}', category=TOKEN_CATEGORY).first()
        if config_entry:
            db.session.delete(config_entry)
            db.session.commit()
            return jsonify({'message': 'Logged out successfully'})
        return jsonify({'error': 'Invalid token'}), 400
    except Exception as e:
        logger.error(f"Failed to log out: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({'error': 'Failed to log out'}), 500


@bp.route('/auth/session', methods=['GET'])
def session():
    """Report the session bound to the presented token, if any."""
    user = current_user()
    if user is None:
        return jsonify({'authenticated': False, 'user': None})
    return jsonify({'authenticated': True, 'user': serialize_user(user)})


@bp.route('/auth/me', methods=['GET'])
def me():
    """Get current user info."""
    user = current_user()
    if user is None:
        return jsonify({'error': 'Not authenticated'}), 401
    return jsonify(serialize_user(user))


@bp.route('/users/<int:user_id>/role', methods=['PUT'])
@admin_required
def set_role(user_id):
    """Set a user's authoritative role."""
    user = db.get_or_404(User, user_id)
    data = request.get_json(silent=True) or {}
    try:
        role = UserRole(data.get('role'))
    except ValueError:
        return jsonify({'error': f"role must be one of: {', '.join(r.value for r in UserRole)}"}), 400

    user.role = role
    db.session.commit()
    logger.info(f"Role of user {user.id} set to {role.value}")
    return jsonify(serialize_user(user))


def init_auth(app):
    """Initialize authentication for the Flask app."""
    @app.before_request
    def check_auth():
        if not request.path.startswith('/api'):
            return

        g.user = None
        token = token_from_request()
        if token:
            config_entry = AppConfig.query.filter_by(key=f'token_{token}', category=TOKEN_CATEGORY).first()
            if config_entry:
                g.user = db.session.get(User, int(config_entry.value))

        if g.user is not None or request.path in PUBLIC_PATHS:
            return

        return jsonify({'error': 'Authentication required'}), 401
