"""Pydantic schemas for validation and serialization."""
from datetime import datetime
from typing import Optional, List, Dict, Any
import json
import logging
from pydantic import BaseModel, Field, field_validator, ConfigDict
import bleach
from shared.enums import SurveyStatus, AllocationStatus, PriorityLevel, UserRole, FieldType, ChangeAction
from shared.validation import ValidationError, Validator

logger = logging.getLogger(__name__)

DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'


def sanitize_html(text: str) -> str:
    """Secure HTML sanitization using bleach library."""
    if not text:
        return text
    if '<' not in text and '>' not in text and '&' not in text:
        return text

    allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']
    allowed_attributes = {}
    return bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)


def validate_gps(value: Optional[str]) -> Optional[str]:
    """Accept an empty value or a ``"lat, lng"`` pair within range."""
    if not value:
        return value
    try:
        Validator.validate_coordinates(value)
    except ValidationError as e:
        raise ValueError(str(e))
    return value.strip()


def validate_string_length(value: str, field_name: str, min_length: int = 0, max_length: Optional[int] = None) -> str:
    """Validate string length constraints."""
    if not isinstance(value, str):
        raise ValidationError(f"Validation failed: {field_name} must be a string")
    value = value.strip()
    if len(value) < min_length:
        raise ValidationError(f"Validation failed: {field_name} must be at least {min_length} characters")
    if max_length and len(value) > max_length:
        raise ValidationError(f"Validation failed: {field_name} must be no more than {max_length} characters")
    return value


def ensure_json_object(value: Any, field_name: str) -> Dict[str, Any]:
    """Accept a dict or a JSON object string and return a dict."""
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON supplied for {field_name}: {value[:100]}...")
            raise ValueError(f"{field_name} must be a JSON object")
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a JSON object")
    return value


# Survey record schemas
class SurveyRecordBase(BaseModel):
    site_name: str = Field(..., min_length=1, max_length=200)
    region: str = Field(..., min_length=1, max_length=100)
    date: str = Field(..., pattern=DATE_PATTERN)
    site_id: Optional[str] = Field(default="", max_length=100)
    site_type: Optional[str] = Field(default="", max_length=50)
    address: Optional[str] = Field(default="", max_length=1000)
    gps_coordinates: Optional[str] = Field(default="", max_length=100)
    building_photo: Optional[str] = Field(default="")
    status: SurveyStatus = Field(default=SurveyStatus.DRAFT)
    survey_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('site_name', 'region')
    @classmethod
    def validate_required_text(cls, v, info):
        return validate_string_length(v, info.field_name, 1, 200)

    @field_validator('address')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v:
            return sanitize_html(v)
        return v or ""

    @field_validator('gps_coordinates')
    @classmethod
    def check_gps(cls, v):
        return validate_gps(v)

    @field_validator('survey_data', mode='before')
    @classmethod
    def parse_survey_data(cls, v):
        return ensure_json_object(v, 'survey_data')

    model_config = ConfigDict(use_enum_values=True)


class SurveyRecordCreate(SurveyRecordBase):
    pass


class SurveyRecordUpdate(BaseModel):
    site_name: Optional[str] = Field(None, min_length=1, max_length=200)
    region: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    site_id: Optional[str] = Field(None, max_length=100)
    site_type: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=1000)
    gps_coordinates: Optional[str] = Field(None, max_length=100)
    building_photo: Optional[str] = None
    status: Optional[SurveyStatus] = None
    survey_data: Optional[Dict[str, Any]] = None

    @field_validator('address')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v:
            return sanitize_html(v)
        return v

    @field_validator('gps_coordinates')
    @classmethod
    def check_gps(cls, v):
        return validate_gps(v)

    @field_validator('survey_data', mode='before')
    @classmethod
    def parse_survey_data(cls, v):
        if v is None:
            return v
        return ensure_json_object(v, 'survey_data')

    model_config = ConfigDict(use_enum_values=True)


class SurveyRecordResponse(SurveyRecordBase):
    id: int
    user_id: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


# Installation record schemas
class InstallationRecordCreate(BaseModel):
    site_name: str = Field(..., min_length=1, max_length=200)
    site_id: Optional[str] = Field(default="", max_length=100)
    installation_date: str = Field(..., pattern=DATE_PATTERN)
    status: SurveyStatus = Field(default=SurveyStatus.DRAFT)
    details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('details', mode='before')
    @classmethod
    def parse_details(cls, v):
        return ensure_json_object(v, 'details')

    model_config = ConfigDict(use_enum_values=True)


class InstallationRecordUpdate(BaseModel):
    site_name: Optional[str] = Field(None, min_length=1, max_length=200)
    site_id: Optional[str] = Field(None, max_length=100)
    installation_date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    status: Optional[SurveyStatus] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(use_enum_values=True)


class InstallationRecordResponse(InstallationRecordCreate):
    id: int
    engineer_id: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


# Engineer profile schemas
class EngineerProfileBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default="", max_length=120)
    experience: Optional[str] = Field(default="", max_length=200)
    regions: List[str] = Field(default_factory=list)
    specializations: List[str] = Field(default_factory=list)
    status: str = Field(default="available", max_length=30)
    vehicle: Optional[str] = Field(default="", max_length=120)
    user_id: Optional[int] = Field(None, gt=0)


class EngineerProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=120)
    experience: Optional[str] = Field(None, max_length=200)
    regions: Optional[List[str]] = None
    specializations: Optional[List[str]] = None
    status: Optional[str] = Field(None, max_length=30)
    vehicle: Optional[str] = Field(None, max_length=120)


class EngineerProfileResponse(EngineerProfileBase):
    id: int
    average_rating: Optional[float] = 0.0
    total_reviews: Optional[int] = 0

    model_config = ConfigDict(from_attributes=True)


# Allocation schemas
class AllocationBatchCreate(BaseModel):
    """Allocate several catalog sites to one engineer in a single request."""
    user_id: int = Field(..., gt=0)
    site_ids: List[int] = Field(..., min_length=1)
    priority: PriorityLevel = Field(default=PriorityLevel.MEDIUM)
    status: AllocationStatus = Field(default=AllocationStatus.ALLOCATED)
    scheduled_date: Optional[str] = Field(None, pattern=DATE_PATTERN)

    model_config = ConfigDict(use_enum_values=True)


class AllocationUpdate(BaseModel):
    user_id: Optional[int] = Field(None, gt=0)
    priority: Optional[PriorityLevel] = None
    status: Optional[AllocationStatus] = None
    scheduled_date: Optional[str] = Field(None, pattern=DATE_PATTERN)

    model_config = ConfigDict(use_enum_values=True)


class AllocationResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    site_id: int
    site_name: str
    region: Optional[str] = ""
    address: Optional[str] = ""
    priority: PriorityLevel
    status: AllocationStatus
    scheduled_date: Optional[str] = ""
    distance: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


# Site catalog schemas
class SiteResponse(BaseModel):
    id: int
    name: str
    region: Optional[str] = ""
    type: Optional[str] = ""
    contact_name: Optional[str] = ""
    contact_phone: Optional[str] = ""
    contact_email: Optional[str] = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Change feed
class ChangeEventResponse(BaseModel):
    id: int
    table_name: str
    record_id: int
    action: ChangeAction
    created_at: datetime

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


# Auth
class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=120)
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(default="", max_length=200)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=120)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: int
    email: str
    role: Optional[UserRole] = None

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


# Admin-configurable form fields (client side registry)
class FieldConfig(BaseModel):
    id: str = Field(..., min_length=1)
    type: FieldType = Field(default=FieldType.TEXT)
    label: str = Field(..., min_length=1, max_length=200)
    placeholder: Optional[str] = Field(default="", max_length=200)
    required: bool = False
    options: Optional[List[str]] = None
    section: str = Field(..., min_length=1)
    order: int = Field(default=0, ge=0)
    active: bool = True

    @field_validator('label')
    @classmethod
    def validate_label(cls, v):
        return validate_string_length(v, 'label', 1, 200)

    model_config = ConfigDict(use_enum_values=True)
