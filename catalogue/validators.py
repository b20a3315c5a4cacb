from typing import Optional

from catalogue.errors import InvalidField
from catalogue.models import Role

# Characters the flat-file format cannot carry inside a field.
FORBIDDEN_CHARS = (",", "\n", "\r")


class FieldValidator:
    """Checks operator input before it reaches the flat files."""

    @staticmethod
    def validate_id(raw: Optional[str], label: str = "ID") -> str:
        value = (raw or "").strip()
        if not value:
            raise InvalidField(f"{label} cannot be empty.")
        return FieldValidator.validate_field(value, label)

    @staticmethod
    def validate_field(raw: Optional[str], label: str = "Field") -> str:
        value = (raw or "").strip()
        if any(ch in value for ch in FORBIDDEN_CHARS):
            raise InvalidField(f"{label} cannot contain commas or line breaks.")
        return value

    @staticmethod
    def validate_role(raw: Optional[str]) -> str:
        value = (raw or "").strip().lower()
        if value not in {r.value for r in Role}:
            raise InvalidField("Role must be 'user' or 'admin'.")
        return value

    @staticmethod
    def validate_flag(raw: Optional[str]) -> str:
        value = (raw or "").strip().lower()
        if value not in ("true", "false"):
            raise InvalidField("Availability must be 'true' or 'false'.")
        return value
