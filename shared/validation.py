"""Input validation utilities."""
import re
import bleach


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


# Fields a survey must carry before it may be written to the backend
REQUIRED_SURVEY_FIELDS = ('siteName', 'date', 'region')
REQUIRED_INSTALLATION_FIELDS = ('siteName', 'installationDate')


def missing_required_fields(form_state, required_fields=REQUIRED_SURVEY_FIELDS):
    """Return the required top-level fields that are absent or blank.

    A field counts as missing when it is not present, None, or a string
    containing only whitespace. Order follows ``required_fields`` so the
    message shown to the user is stable.
    """
    missing = []
    for field_name in required_fields:
        value = form_state.get(field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field_name)
    return missing


class Validator:
    """Input validation utilities."""

    # Common validation patterns (pre-compiled for performance)
    # Email pattern: local part must start/end with alphanumeric, no consecutive dots/special chars
    # Domain parts must start/end with alphanumeric, no consecutive dots/hyphens
    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9]+([._%+-][a-zA-Z0-9]+)*@([a-zA-Z0-9]+([.-][a-zA-Z0-9]+)*\.)+[a-zA-Z]{2,}$')
    PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9\s-]{8,14}$')
    DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

    @staticmethod
    def validate_required(value, field_name):
        """Validate that a required field is not empty."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field_name} is required")
        return value

    @staticmethod
    def validate_string_length(value, field_name, min_length=0, max_length=None):
        """Validate string length constraints."""
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string")

        if len(value) < min_length:
            raise ValidationError(f"{field_name} must be at least {min_length} characters")

        if max_length and len(value) > max_length:
            raise ValidationError(f"{field_name} must be no more than {max_length} characters")

        return value.strip()

    @staticmethod
    def validate_email(email):
        """Validate email format."""
        email = email.strip()
        if not Validator.EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        return email

    @staticmethod
    def validate_phone(phone):
        """Validate a cellphone number (South African and international forms)."""
        phone_stripped = phone.strip()
        if not Validator.PHONE_PATTERN.match(phone_stripped):
            raise ValidationError("Invalid phone number format")
        return phone_stripped

    @staticmethod
    def validate_date(value, field_name):
        """Validate an ISO ``YYYY-MM-DD`` date string."""
        if not isinstance(value, str) or not Validator.DATE_PATTERN.match(value.strip()):
            raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")
        return value.strip()

    @staticmethod
    def validate_coordinates(text):
        """Validate a ``"lat, lng"`` GPS coordinate string.

        Returns:
            tuple: (latitude, longitude) as floats
        """
        parts = [part.strip() for part in str(text).split(',')]
        if len(parts) != 2:
            raise ValidationError("GPS coordinates must be 'latitude, longitude'")
        try:
            lat_val, lng_val = float(parts[0]), float(parts[1])
        except ValueError:
            raise ValidationError("GPS coordinates must be numbers")

        if not (-90 <= lat_val <= 90):
            raise ValidationError("Latitude must be between -90 and 90")

        if not (-180 <= lng_val <= 180):
            raise ValidationError("Longitude must be between -180 and 180")

        return lat_val, lng_val

    @staticmethod
    def validate_choice(value, field_name, valid_choices):
        """Validate that value is in list of valid choices."""
        if value not in valid_choices:
            raise ValidationError(f"{field_name} must be one of: {', '.join(str(c) for c in valid_choices)}")
        return value

    @staticmethod
    def sanitize_html(text):
        """Secure HTML sanitization using bleach library.

        Optimized with early returns for simple cases to avoid expensive
        HTML parsing when not needed.
        """
        if not text:
            return text

        # Fast path: if text contains no HTML tags or special characters, return as-is
        if '<' not in text and '>' not in text and '&' not in text:
            return text

        # Allow only safe tags and attributes, no CSS or JavaScript
        allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']
        allowed_attributes = {}

        return bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)

    @staticmethod
    def validate_site_data(data):
        """Validate site catalog data."""
        validated = {}

        validated['name'] = Validator.validate_required(
            Validator.validate_string_length(data.get('name', ''), 'Site name', 1, 200),
            'Site name'
        )

        if 'region' in data:
            validated['region'] = Validator.validate_string_length(data['region'] or '', 'Region', 0, 100)

        if 'type' in data:
            validated['type'] = Validator.validate_string_length(data['type'] or '', 'Site type', 0, 50)

        if 'contact_name' in data:
            validated['contact_name'] = Validator.sanitize_html(
                Validator.validate_string_length(data['contact_name'] or '', 'Contact name', 0, 200)
            )

        if data.get('contact_phone'):
            validated['contact_phone'] = Validator.validate_phone(data['contact_phone'])

        if data.get('contact_email'):
            validated['contact_email'] = Validator.validate_email(data['contact_email'])

        return validated
