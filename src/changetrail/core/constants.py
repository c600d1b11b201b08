"""Package-wide constants.

This module defines constants used throughout the package
to avoid magic numbers and ensure consistency.
"""

# Column lengths
MAX_TABLE_NAME_LENGTH = 255
MAX_ENTITY_ID_LENGTH = 255
MAX_ACTING_USER_LENGTH = 255
MAX_FIELD_NAME_LENGTH = 255
MAX_ACTION_LENGTH = 10

# Declarative defaults
DEFAULT_LOOKUP_METHOD = "find_by_id"
DEFAULT_DIFF_STRATEGY = "default"
LIST_DIFF_STRATEGY = "list"

# Query endpoint
DEFAULT_QUERY_LIMIT = 500

# Separator inserted by the label transform
LABEL_SEPARATOR = "_"
