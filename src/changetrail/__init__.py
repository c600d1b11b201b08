"""changetrail - automatic audit trail for create/update/delete operations."""

__version__ = "0.1.0"
