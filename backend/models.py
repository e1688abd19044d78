from flask_sqlalchemy import SQLAlchemy
import logging
from shared.models import (
    Base, User, EngineerProfile, Site, SiteSurvey, SiteInstallation,
    EngineerAllocation, AppConfig, ChangeEvent
)
from shared.enums import ChangeAction

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)


def record_change(table_name, record_id, action):
    """Append a change-feed row to the current session.

    The row is committed together with the change it describes, so
    subscribers never see an event for a write that rolled back.
    """
    if not isinstance(action, ChangeAction):
        action = ChangeAction(action)
    event = ChangeEvent(table_name=table_name, record_id=record_id, action=action)
    db.session.add(event)
    logger.debug(f"Queued change event {action.value} for {table_name}:{record_id}")
    return event
