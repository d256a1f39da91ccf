"""
Shared utility functions.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def generate_id() -> str:
    """
    Generate an opaque unique ID.

    Returns:
        32 hex characters (16 random bytes).
    """
    return secrets.token_hex(16)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """Serialize a datetime the way rows store timestamps."""
    return moment.astimezone(timezone.utc).isoformat()


def utc_now_iso() -> str:
    return isoformat(utc_now())


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(value)
        except ValueError:
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
