"""
Input validation functions for config tree keys, paths, and values.

Validators return ``(is_valid, error_message)`` tuples so callers decide
whether a failure is fatal (tree mutation) or merely reported (CLI input).
"""

import math
from typing import Any

PATH_DELIMITER = "."

_SCALAR_TYPES = (str, int, float, bool, type(None))


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Config key")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_key(key: Any) -> tuple[bool, str]:
    """
    Validate a single mapping key.

    Validation rules:
        - Must be a string
        - Cannot be empty
        - Cannot contain the path delimiter
    """
    if not isinstance(key, str):
        return (
            False,
            format_validation_error(
                "Config key", f"must be a string, got {type(key).__name__}"
            ),
        )

    if not key:
        return (False, format_validation_error("Config key", "cannot be empty"))

    if PATH_DELIMITER in key:
        return (
            False,
            format_validation_error(
                "Config key", f"'{key}' cannot contain '{PATH_DELIMITER}'"
            ),
        )

    return (True, "")


def validate_path(path: str) -> tuple[bool, str]:
    """
    Validate a delimited tree path.

    The empty string is the root path and is valid.  Any other path must
    not have empty segments (e.g. ``'a..b'`` or ``'.a'``).
    """
    if not isinstance(path, str):
        return (
            False,
            format_validation_error(
                "Config path", f"must be a string, got {type(path).__name__}"
            ),
        )

    if path == "":
        return (True, "")

    if any(segment == "" for segment in path.split(PATH_DELIMITER)):
        return (
            False,
            format_validation_error(
                "Config path", f"'{path}' cannot have empty segments"
            ),
        )

    return (True, "")


def validate_value(value: Any, _where: str = "") -> tuple[bool, str]:
    """
    Validate a config value recursively.

    Accepted values are scalars (str, int, float, bool, None), lists of
    accepted values, and mappings with valid keys and accepted values.
    Infinities and NaN are rejected.
    """
    if isinstance(value, float) and not math.isfinite(value):
        at = f" at '{_where}'" if _where else ""
        return (
            False,
            format_validation_error(
                "Config value", f"{value!r}{at} is not a finite number"
            ),
        )

    if isinstance(value, _SCALAR_TYPES):
        return (True, "")

    if isinstance(value, list):
        for index, item in enumerate(value):
            ok, reason = validate_value(item, f"{_where}[{index}]")
            if not ok:
                return (False, reason)
        return (True, "")

    if isinstance(value, dict):
        for key, child in value.items():
            ok, reason = validate_key(key)
            if not ok:
                at = f" (at '{_where}')" if _where else ""
                return (False, reason + at)
            child_where = f"{_where}{PATH_DELIMITER}{key}" if _where else key
            ok, reason = validate_value(child, child_where)
            if not ok:
                return (False, reason)
        return (True, "")

    at = f" at '{_where}'" if _where else ""
    return (
        False,
        format_validation_error(
            "Config value", f"of type {type(value).__name__}{at} is not supported"
        ),
    )
