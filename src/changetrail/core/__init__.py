"""Core infrastructure: constants, errors, logging, and database."""
