"""Parameter checks for tool arguments.

These only check argument shape (presence, type, length limits). Field
semantics such as the allowed context types or the importance range are
enforced by the store and surface as store validation errors.
"""

from typing import Any

from .errors import ParameterError


def require_string(value: Any, field_name: str) -> str:
    """Check that a required argument is a string.

    Raises:
        ParameterError: If value is missing or not a string
    """
    if value is None:
        raise ParameterError(f"{field_name} is required")
    if not isinstance(value, str):
        raise ParameterError(
            f"{field_name} must be a string, got {type(value).__name__}"
        )
    return value


def validate_id(value: Any, field_name: str = "id") -> str:
    """Check that a context id argument is a non-empty string.

    Raises:
        ParameterError: If value is not a non-empty string
    """
    value = require_string(value, field_name)
    if not value.strip():
        raise ParameterError(f"{field_name} cannot be empty")
    return value


def validate_id_list(value: Any, field_name: str = "ids") -> list[str]:
    """Check that an argument is a list of context ids.

    Raises:
        ParameterError: If value is not a list of non-empty strings
    """
    if not isinstance(value, list):
        raise ParameterError(f"{field_name} must be a list of context ids")
    return [validate_id(item, f"{field_name}[{i}]") for i, item in enumerate(value)]


def validate_limit_range(
    value: Any,
    min_val: int,
    max_val: int,
    param_name: str = "limit",
) -> int:
    """Validate an integer argument is within the allowed range.

    Raises:
        ParameterError: If value is not an int or is out of range
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParameterError(f"{param_name} must be an integer, got {value!r}")
    if not min_val <= value <= max_val:
        raise ParameterError(
            f"{param_name.capitalize()} {value} out of range. "
            f"Must be between {min_val} and {max_val}."
        )
    return value


def validate_content_length(
    content: str, max_length: int, field_name: str = "content"
) -> None:
    """Validate content does not exceed ``max_length`` characters.

    Raises:
        ParameterError: If content is too long
    """
    if len(content) > max_length:
        raise ParameterError(
            f"{field_name.capitalize()} too long ({len(content)} chars). "
            f"Maximum is {max_length}."
        )


def validate_tag_list(value: Any, field_name: str = "tags") -> list[Any]:
    """Check that tags, when given, are passed as a list.

    Raises:
        ParameterError: If value is not a list
    """
    if not isinstance(value, list):
        raise ParameterError(f"{field_name} must be a list of strings")
    return value
