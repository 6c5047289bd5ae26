"""
Timestamp normalization.
Repository exports often carry naive timestamps; they are read as UTC so
they compare with the aware windows the scoring engine builds.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import field_validator


def to_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None or moment.tzinfo.utcoffset(moment) is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_fields(*fields: str):
    """Pydantic after-validator that routes the given datetime fields through to_utc."""
    def _validate(cls, value):
        return to_utc(value)

    return field_validator(*fields, mode="after")(_validate)
