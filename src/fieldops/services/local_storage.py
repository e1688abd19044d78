"""Client-local key-value storage on SQLite.

Values are stored as JSON under a ``(scope, key)`` pair. There is no locking:
the last writer wins.
"""
import logging
from pathlib import Path
from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shared.models import LocalEntry, now


class LocalStorageError(Exception):
    pass


class LocalStorage:
    def __init__(self, db_path):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f'sqlite:///{self.db_path}')
        LocalEntry.__table__.create(self.engine, checkfirst=True)
        self.Session = sessionmaker(bind=self.engine)
        self.logger.info(f"Local storage ready at {self.db_path}")

    def get(self, scope, key, default=None):
        try:
            with self.Session() as session:
                entry = session.execute(
                    select(LocalEntry).where(LocalEntry.scope == scope, LocalEntry.key == key)
                ).scalar_one_or_none()
                return entry.value if entry is not None else default
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Failed to read {scope}/{key}: {e}") from e

    def set(self, scope, key, value):
        try:
            with self.Session() as session:
                entry = session.execute(
                    select(LocalEntry).where(LocalEntry.scope == scope, LocalEntry.key == key)
                ).scalar_one_or_none()
                if entry is None:
                    session.add(LocalEntry(scope=scope, key=key, value=value))
                else:
                    entry.value = value
                    entry.updated_at = now()
                session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise LocalStorageError(f"Failed to write {scope}/{key}: {e}") from e

    def delete(self, scope, key):
        """Remove an entry; returns False when it did not exist."""
        try:
            with self.Session() as session:
                entry = session.execute(
                    select(LocalEntry).where(LocalEntry.scope == scope, LocalEntry.key == key)
                ).scalar_one_or_none()
                if entry is None:
                    return False
                session.delete(entry)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Failed to delete {scope}/{key}: {e}") from e

    def keys(self, scope):
        try:
            with self.Session() as session:
                return list(session.execute(
                    select(LocalEntry.key).where(LocalEntry.scope == scope).order_by(LocalEntry.key)
                ).scalars())
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Failed to list {scope}: {e}") from e

    def close(self):
        self.engine.dispose()
