"""Turn database exceptions into messages that can be shown to API clients."""

import re

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

GENERIC_MESSAGE = "Something went wrong"

# PostgreSQL: Key (name)=(Books) already exists.
_PG_UNIQUE_KEY = re.compile(r"Key \((?P<field>[^)]+)\)=")
# SQLite: UNIQUE constraint failed: categories.name
_SQLITE_UNIQUE_KEY = re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(?P<field>\w+)")


def _unique_field(detail: str) -> str | None:
    """Extract the offending column name from a unique-violation message."""
    for pattern in (_PG_UNIQUE_KEY, _SQLITE_UNIQUE_KEY):
        match = pattern.search(detail)
        if match:
            return match.group("field")
    return None


def db_error_message(error: SQLAlchemyError) -> str:
    """Return a human-readable message for a database error.

    Unique violations become "<Field> already exists", foreign key
    violations point at the missing referenced record and check
    constraint violations name the rejected value. Anything else is
    reported generically so driver internals never leak to clients.

    Args:
        error: The exception raised by SQLAlchemy.

    Returns:
        The message to put in the error response.
    """
    if not isinstance(error, IntegrityError):
        return GENERIC_MESSAGE

    detail = str(error.orig) if error.orig is not None else str(error)
    lowered = detail.lower()

    if "unique" in lowered or "duplicate key" in lowered:
        field = _unique_field(detail)
        if field:
            return f"{field.replace('_', ' ').capitalize()} already exists"
        return "Record already exists"

    if "foreign key" in lowered:
        return "Referenced record does not exist or is still in use"

    if "check constraint" in lowered:
        return "Value out of allowed range"

    return GENERIC_MESSAGE
