from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Index, text, Enum, CheckConstraint, JSON
from sqlalchemy.orm import relationship, declarative_base
from shared.enums import SurveyStatus, AllocationStatus, PriorityLevel, UserRole, ChangeAction

Base = declarative_base()

# Global timezone configuration - South African Standard Time
# Change this variable to use a different timezone if needed
from zoneinfo import ZoneInfo
APP_TIMEZONE = ZoneInfo('Africa/Johannesburg')


def enum_values(enum_cls):
    """Store enum values (not member names) so server defaults stay lowercase."""
    return [member.value for member in enum_cls]


def now():
    """Return current datetime in application timezone (timezone-aware).

    Note: When stored in SQLite, timezone info is stripped (SQLite limitation).
    All stored datetimes should be treated as application time, even though they're stored naive.
    """
    return datetime.now(APP_TIMEZONE)


class TimestampMixin:
    """Mixin providing created/updated timestamps."""

    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class User(Base, TimestampMixin):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, nullable=False)
    email = Column(String(120), unique=True, nullable=False, server_default="")
    password_hash = Column(String(256), nullable=False, server_default="")
    # Nullable only for accounts created before roles were provisioned; see migrate-roles
    role = Column(Enum(UserRole, values_callable=enum_values), nullable=True)
    profile = relationship('EngineerProfile', backref='user', uselist=False, lazy='select')


class EngineerProfile(Base, TimestampMixin):
    __tablename__ = 'engineer_profiles'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    name = Column(String(200), nullable=False, server_default="")
    email = Column(String(120), server_default="")
    experience = Column(String(200), server_default="")
    regions = Column(JSON, server_default="[]")
    specializations = Column(JSON, server_default="[]")
    status = Column(String(30), server_default="available")
    vehicle = Column(String(120), server_default="")
    average_rating = Column(Float, server_default="0.0")
    total_reviews = Column(Integer, server_default="0")


class Site(Base, TimestampMixin):
    """Site catalog entry an engineer can be allocated to."""
    __tablename__ = 'eskom_sites'
    id = Column(Integer, primary_key=True, nullable=False)
    name = Column(String(200), nullable=False, server_default="Untitled")
    region = Column(String(100), server_default="", index=True)
    type = Column(String(50), server_default="")
    contact_name = Column(String(200), server_default="")
    contact_phone = Column(String(50), server_default="")
    contact_email = Column(String(120), server_default="")
    allocations = relationship('EngineerAllocation', backref='site', lazy='select', cascade='all, delete-orphan')


class SiteSurvey(Base, TimestampMixin):
    """Backend survey record.

    Columns promoted out of the form state for filtering; everything else
    lives in the ``survey_data`` JSON blob.
    """
    __tablename__ = 'site_surveys'
    id = Column(Integer, primary_key=True, nullable=False)
    site_name = Column(String(200), nullable=False, server_default="")
    region = Column(String(100), nullable=False, server_default="", index=True)
    date = Column(String(20), nullable=False, server_default="")
    site_id = Column(String(100), server_default="", index=True)
    site_type = Column(String(50), server_default="")
    address = Column(Text, server_default="")
    gps_coordinates = Column(String(100), server_default="")
    building_photo = Column(Text, server_default="")
    status = Column(Enum(SurveyStatus, values_callable=enum_values), default=SurveyStatus.DRAFT, nullable=False, server_default=text("'draft'"))
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    survey_data = Column(JSON, server_default="{}")
    version = Column(Integer, nullable=False, default=1, server_default="1")

Index('idx_site_surveys_status', SiteSurvey.status)


class SiteInstallation(Base, TimestampMixin):
    """Backend installation record, same shape rules as SiteSurvey."""
    __tablename__ = 'site_installations'
    id = Column(Integer, primary_key=True, nullable=False)
    site_name = Column(String(200), nullable=False, server_default="")
    site_id = Column(String(100), server_default="", index=True)
    installation_date = Column(String(20), server_default="")
    status = Column(Enum(SurveyStatus, values_callable=enum_values), default=SurveyStatus.DRAFT, nullable=False, server_default=text("'draft'"))
    engineer_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    details = Column(JSON, server_default="{}")
    version = Column(Integer, nullable=False, default=1, server_default="1")


class EngineerAllocation(Base, TimestampMixin):
    __tablename__ = 'engineer_allocations'
    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    site_id = Column(Integer, ForeignKey('eskom_sites.id', ondelete='CASCADE'), nullable=False, index=True)
    site_name = Column(String(200), nullable=False, server_default="")
    region = Column(String(100), server_default="")
    address = Column(Text, server_default="")
    priority = Column(Enum(PriorityLevel, values_callable=enum_values), default=PriorityLevel.MEDIUM, nullable=False, server_default=text("'medium'"))
    status = Column(Enum(AllocationStatus, values_callable=enum_values), default=AllocationStatus.PENDING, nullable=False, server_default=text("'pending'"))
    scheduled_date = Column(String(20), server_default="")
    distance = Column(Float, nullable=True)

Index('idx_allocation_user_status', EngineerAllocation.user_id, EngineerAllocation.status)


class AppConfig(Base):
    __tablename__ = 'app_config'
    id = Column(Integer, primary_key=True, nullable=False)
    key = Column(String(100), unique=True, nullable=False, server_default="")
    value = Column(Text, server_default="")
    description = Column(String(300), server_default="")
    category = Column(String(50), server_default="")
    updated_at = Column(DateTime, default=now, onupdate=now)


class ChangeEvent(Base):
    """Append-only change log read by change-feed subscribers."""
    __tablename__ = 'change_events'
    id = Column(Integer, primary_key=True, nullable=False)
    table_name = Column(String(50), nullable=False, index=True)
    record_id = Column(Integer, nullable=False)
    action = Column(Enum(ChangeAction, values_callable=enum_values), nullable=False)
    created_at = Column(DateTime, default=now, index=True)


class LocalEntry(Base):
    """Client-side key-value row, scoped by storage key (drafts, form config)."""
    __tablename__ = 'local_entries'
    id = Column(Integer, primary_key=True, nullable=False)
    scope = Column(String(100), nullable=False)
    key = Column(String(200), nullable=False)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=now, onupdate=now)

    __table_args__ = (
        Index('idx_local_entries_scope_key', 'scope', 'key', unique=True),
        CheckConstraint("length(key) > 0", name='chk_local_entry_key_not_empty'),
    )
