from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError, format_errors


def parse_json_field(raw: Optional[str], annotation: Any, field: str) -> Any:
    """Validate a JSON document sent as a multipart string field.

    Returns ``None`` when the field was not sent.
    """
    if raw is None or raw == "":
        return None
    try:
        return TypeAdapter(annotation).validate_json(raw)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid JSON data in form field {field}: {format_errors(exc.errors())}")
