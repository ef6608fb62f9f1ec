"""
Identifier parsing.

Record ids are UUIDs; callers may pass either a ``UUID`` or its string
form.  A malformed id addresses no record, so it parses to ``None`` and
the lookup behaves as not-found.
"""

from uuid import UUID


def parse_id(value: UUID | str | None) -> UUID | None:
    """
    Parse a record id.

    Example:
        >>> parse_id("550e8400-e29b-41d4-a716-446655440000")
        UUID('550e8400-e29b-41d4-a716-446655440000')
        >>> parse_id("not-an-id") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
