"""Backend utility functions for the field operations API."""
from flask import jsonify
from .models import db, User, EngineerProfile, Site, SiteSurvey, SiteInstallation, EngineerAllocation
from shared.validation import ValidationError
import logging


logger = logging.getLogger(__name__)

FOREIGN_KEY_MODELS = {
    'users': User,
    'engineer_profiles': EngineerProfile,
    'eskom_sites': Site,
    'site_surveys': SiteSurvey,
    'site_installations': SiteInstallation,
    'engineer_allocations': EngineerAllocation,
}


def api_error(message, status_code=400, log_level='warning', details=None):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (dict, optional): Additional details, logged and returned to the client

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    body = {'error': message}
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
        body['details'] = details
    else:
        log_func(f"API Error ({status_code}): {message}")

    return jsonify(body), status_code


def handle_api_exception(e, operation="operation", status_code=500):
    """
    Handle exceptions in API endpoints with consistent logging and responses.

    Args:
        e (Exception): The exception that occurred
        operation (str): Description of the operation being performed
        status_code (int): HTTP status code to return

    Returns:
        Flask response: JSON error response
    """
    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    db.session.rollback()
    return api_error(f"Failed to {operation}", status_code, 'error')


def validate_foreign_key(table_name, column_name, value):
    """
    Validate that a foreign key reference exists.

    Args:
        table_name (str): Name of the table being referenced
        column_name (str): Name of the column being referenced
        value: The value to check for existence

    Returns:
        bool: True if reference exists or value is None, False otherwise
    """
    if value is None:
        return True

    model = FOREIGN_KEY_MODELS.get(table_name)
    if model is None:
        logger.warning(f"Unknown table for FK validation: {table_name}")
        return False
    return db.session.get(model, value) is not None


def parse_if_match(header_value):
    """Parse an ``If-Match`` header carrying a record version.

    Accepts ``3``, ``"3"`` and ``W/"3"``. Returns None when the header is
    absent, in which case the write is last-writer-wins.

    Raises:
        ValidationError: If the header is present but not an integer version
    """
    if header_value is None or not header_value.strip():
        return None
    value = header_value.strip()
    if value.startswith('W/'):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"If-Match must carry an integer record version, got {header_value!r}")
