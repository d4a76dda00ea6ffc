# architect/intake.py
import re
from typing import Dict, List

from architect.errors import ValidationError

MAX_FIELD_LENGTH = 2000

CORE_FIELDS = [
    "Goal",
    "Audience",
    "Inputs",
    "Output_Format",
    "Constraints",
]

OPTIONAL_FIELDS = [
    "Style",
    "Guardrails",
    "Business_Context",
    "Brand_Voice",
    "Success_Metrics",
]

# Same pipeline, two intake schemas: the short one gates generation, the long one drives the interview.
REQUIRED_FIELD_PROFILES: Dict[str, List[str]] = {
    "core": CORE_FIELDS,
    "extended": CORE_FIELDS + OPTIONAL_FIELDS,
}

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def validate_string(value, max_length: int, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} exceeds {max_length} chars")
    return value.strip()


def validate_uuid(value, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    if not _UUID_RE.match(value):
        raise ValidationError(f"{field_name} must be valid UUID")
    return value


def validate_collected(collected) -> Dict[str, str]:
    if collected is None:
        return {}
    if not isinstance(collected, dict):
        raise ValidationError("Collected must be object")
    return {str(k): validate_string(v, MAX_FIELD_LENGTH, str(k)) for k, v in collected.items()}


def required_fields(profile: str) -> List[str]:
    try:
        return list(REQUIRED_FIELD_PROFILES[profile])
    except KeyError:
        raise ValueError(f"Unknown intake profile: {profile}") from None


def missing_fields(collected: Dict[str, str], profile: str) -> List[str]:
    return [f for f in required_fields(profile) if not (collected.get(f) or "").strip()]


def require_fields(collected: Dict[str, str], profile: str) -> None:
    missing = missing_fields(collected, profile)
    if missing:
        raise ValidationError(f"{missing[0]} required")
