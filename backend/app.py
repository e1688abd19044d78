"""Flask application factory for the field operations backend."""
from flask import Flask, jsonify
import logging
from pathlib import Path
from sqlalchemy import event
from sqlalchemy.engine import Engine
from werkzeug.exceptions import HTTPException
from .models import db
from .blueprints import auth, sites, engineers, surveys, installations, allocations, changes, dashboard
from .cli import init_db_command, create_user_command, seed_sites_command, migrate_roles_command
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite leaves foreign keys off unless asked per connection."""
    if type(dbapi_connection).__module__.startswith('sqlite3'):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


def create_app(test_config=None):
    """Flask application factory for the field operations backend.

    Creates and configures a Flask application instance with:
    - SQLAlchemy database integration
    - Blueprint registration for API endpoints
    - Bearer-token authentication
    - CLI command registration
    - Logging configuration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    setup_logging()
    logger.info("Starting Flask application initialization")

    app = Flask(__name__, instance_relative_config=True)

    if test_config is None:
        config_loaded = app.config.from_pyfile('config.py', silent=True)
        if config_loaded:
            logger.info("Loaded configuration from instance/config.py")
        else:
            logger.debug("No instance config file found, using defaults")
    else:
        app.config.from_mapping(test_config)
        logger.info("Loaded test configuration")

    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    if 'SQLALCHEMY_DATABASE_URI' not in app.config:
        db_path = Path(app.instance_path) / 'fieldops.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{db_path}'
    logger.info(f"Using database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    db.init_app(app)

    logger.info("Registering API blueprints")
    for module in (auth, sites, engineers, surveys, installations, allocations, changes, dashboard):
        app.register_blueprint(module.bp)
        logger.debug(f"Registered {module.bp.name} blueprint")

    auth.init_auth(app)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """Return JSON instead of HTML for HTTP errors on the API."""
        return jsonify({'error': e.description}), e.code

    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)
    app.cli.add_command(seed_sites_command)
    app.cli.add_command(migrate_roles_command)
    logger.info("CLI commands registered: init-db, create-user, seed-sites, migrate-roles")

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
