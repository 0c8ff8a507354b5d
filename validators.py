"""
Input Validation & Sanitization Utilities
Provides validation for recurring job series payloads and scheduling requests
"""
from datetime import date, datetime
from typing import Dict, Any, List, Optional, Tuple
import logging

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

SERIES_TEXT_FIELDS = {
    'series_name': 255,
    'service_type': 100,
    'description': 5000,
    'notes': 5000,
}
SERIES_ID_FIELDS = ['client_id', 'property_id', 'default_crew_id', 'job_template_id']
SERIES_INT_FIELDS = ['recurrence_interval', 'recurrence_day_of_week', 'recurrence_day_of_month']
SERIES_DATE_FIELDS = ['start_date', 'end_date']

USER_SETTABLE_STATUSES = {'scheduled', 'skipped'}


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None or data[field] == '']

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Tuple[bool, Optional[str]]:
    """
    Validate string length is within acceptable range

    Args:
        value: String to validate
        min_length: Minimum allowed length
        max_length: Maximum allowed length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Value must be a string"

    if len(value) < min_length:
        return False, f"Value too short (minimum {min_length} characters)"

    if len(value) > max_length:
        return False, f"Value too long (maximum {max_length} characters)"

    return True, None


def validate_number_range(value: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate number is within acceptable range

    Args:
        value: Number to validate
        min_value: Minimum allowed value
        max_value: Maximum allowed value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, "Value must be a number"

    if min_value is not None and value < min_value:
        return False, f"Value too small (minimum {min_value})"

    if max_value is not None and value > max_value:
        return False, f"Value too large (maximum {max_value})"

    return True, None


def validate_date_range(start_date: date, end_date: Optional[date]) -> Tuple[bool, Optional[str]]:
    """Check that an optional end date does not precede the start date"""
    if end_date is not None and start_date is not None and end_date < start_date:
        return False, "end_date must be on or after start_date"
    return True, None


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input by removing potentially dangerous characters

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        return str(value)

    # Remove null bytes
    sanitized = value.replace('\x00', '')

    # Trim whitespace
    sanitized = sanitized.strip()

    # Limit length
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def parse_date(value: Any, field: str) -> Optional[date]:
    """
    Parse a calendar date from an ISO string, date or datetime.

    Raises:
        ValidationError: if the value cannot be read as a date
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date string", field)
    try:
        return date_parser.isoparse(value).date()
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} is not a valid date: {value!r}", field)


def _parse_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an integer", field)


def clean_series_payload(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Normalize a recurring series payload into typed column values.

    Only keys present in ``data`` are returned, so the result can be used
    for partial updates. Pattern-specific consistency is checked later when
    the recurrence rule is built.

    Args:
        data: Raw request payload
        partial: When True, required fields may be omitted

    Returns:
        Dictionary of cleaned field values

    Raises:
        ValidationError: on the first malformed field
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    if not partial:
        is_valid, error = validate_required_fields(
            data, ['series_name', 'client_id', 'recurrence_pattern', 'start_date']
        )
        if not is_valid:
            raise ValidationError(error)

    cleaned: Dict[str, Any] = {}

    for field, max_length in SERIES_TEXT_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if value is None:
            cleaned[field] = None
            continue
        is_valid, error = validate_string_length(value, max_length=max_length)
        if not is_valid:
            raise ValidationError(f"Invalid {field}: {error}", field)
        cleaned[field] = sanitize_string(value, max_length) or None

    if 'series_name' in cleaned and not cleaned['series_name']:
        raise ValidationError("series_name must not be empty", 'series_name')

    for field in SERIES_ID_FIELDS:
        if field in data:
            value = data[field]
            cleaned[field] = str(value) if value not in (None, '') else None

    if 'recurrence_pattern' in data:
        pattern = data['recurrence_pattern']
        cleaned['recurrence_pattern'] = pattern.strip().lower() if isinstance(pattern, str) else pattern

    for field in SERIES_INT_FIELDS:
        if field in data:
            cleaned[field] = _parse_int(data[field], field)

    for field in SERIES_DATE_FIELDS:
        if field in data:
            cleaned[field] = parse_date(data[field], field)

    if 'estimated_duration_hours' in data:
        hours = data['estimated_duration_hours']
        if hours in (None, ''):
            cleaned['estimated_duration_hours'] = None
        else:
            is_valid, error = validate_number_range(hours, min_value=0, max_value=999)
            if not is_valid:
                raise ValidationError(f"Invalid estimated_duration_hours: {error}", 'estimated_duration_hours')
            cleaned['estimated_duration_hours'] = float(hours)

    if 'client_id' in cleaned and not cleaned['client_id']:
        raise ValidationError("client_id is required", 'client_id')
    if 'start_date' in cleaned and cleaned['start_date'] is None:
        raise ValidationError("start_date is required", 'start_date')

    return cleaned


def validate_horizon_days(value: Any, max_days: Optional[int] = None) -> int:
    """
    Validate the forward horizon for instance generation.

    Raises:
        ValidationError: if the horizon is not a positive integer
    """
    horizon = _parse_int(value, 'horizon_days')
    if horizon is None:
        raise ValidationError("horizon_days is required", 'horizon_days')
    if horizon <= 0:
        raise ValidationError("horizon_days must be greater than zero", 'horizon_days')
    if max_days is not None and horizon > max_days:
        raise ValidationError(f"horizon_days may not exceed {max_days}", 'horizon_days')
    return horizon


def validate_instance_status_request(data: Dict[str, Any]) -> str:
    """Validate a user-initiated instance status change and return the target status"""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    status = data.get('status')
    if status not in USER_SETTABLE_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(USER_SETTABLE_STATUSES))}", 'status'
        )
    return status
