"""Text processing utilities."""

import re

from changetrail.core.constants import LABEL_SEPARATOR


_CASE_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


def to_label(name: str, separator: str = LABEL_SEPARATOR) -> str:
    """Derive a display label from a field name.

    Inserts the separator before every uppercase letter that follows a
    lowercase letter, then upper-cases the result.

    Args:
        name: Field identifier (camelCase or snake_case)
        separator: Separator inserted at case boundaries

    Returns:
        Upper-case label

    Examples:
        >>> to_label("createdAt")
        'CREATED_AT'
        >>> to_label("created_at")
        'CREATED_AT'
        >>> to_label("URLValue")
        'URLVALUE'
    """
    if not name:
        return name
    return _CASE_BOUNDARY.sub(separator, name).upper()
