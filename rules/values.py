"""
Value helpers shared by the rule handlers.

Command text is untyped; values written into message fields are
coerced to int, float or bool when they look like one.
"""

import re
from typing import Any

NUMBER_RE = re.compile(r"^\d*\.?\d+$", re.ASCII)


def parse_type(value: Any) -> Any:
    """
    Coerce a command-text value.

    "42" -> 42, "3.5" -> 3.5, "true"/"false" -> bool, anything else is
    returned unchanged.
    """
    if not isinstance(value, str):
        return value
    if NUMBER_RE.match(value):
        return float(value) if "." in value else int(value)
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def format_value(value: Any) -> str:
    """Render a field value back into command text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
