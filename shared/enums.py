import enum


class SurveyStatus(str, enum.Enum):
    """Survey record status values.

    Used in SiteSurvey and SiteInstallation models to track the record
    lifecycle. Records start as drafts and become submitted exactly once.
    """
    DRAFT = "draft"
    SUBMITTED = "submitted"


class AllocationStatus(str, enum.Enum):
    """Engineer allocation status values."""
    PENDING = "pending"
    ALLOCATED = "allocated"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PriorityLevel(str, enum.Enum):
    """Priority levels for site allocations."""
    CRITICAL = "critical"
    HIGH = "high"
    LOW = "low"
    MEDIUM = "medium"


class UserRole(str, enum.Enum):
    """User roles for access control.

    Stored once on the user row when the account is provisioned.
    """
    ADMIN = "admin"
    ENGINEER = "engineer"


class FormType(str, enum.Enum):
    """Form types that carry their own drafts and field configuration."""
    ASSESSMENT = "assessment"
    INSTALLATION = "installation"
    ESKOM_SURVEY = "eskomSurvey"


class FieldType(str, enum.Enum):
    """Input types available to admin-configured form fields."""
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DATE = "date"


class SiteType(str, enum.Enum):
    """Site types offered by the survey's site identification section."""
    SUB_TX = "sub-tx"
    RS = "rs"
    PS_COAL = "ps-coal"
    OTHER = "other"


class ChangeAction(str, enum.Enum):
    """Kinds of row changes published on the change feed."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
