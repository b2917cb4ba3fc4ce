"""ID generation for sessions."""

from __future__ import annotations

from uuid import uuid4, UUID


def new_session_id() -> UUID:
    """Generate a new random UUID v4 for an observer session."""
    return uuid4()
