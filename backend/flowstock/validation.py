# Overview: Query-string parsing helpers shared by the API routes.

from __future__ import annotations

from datetime import datetime

from flask import request

from .errors import ValidationError
from .time_utils import parse_iso_datetime

# Largest value accepted for quantities, prices and ids (signed 32-bit INTEGER)
MAX_INTEGER = 2**31 - 1


def date_arg(name: str) -> datetime | None:
    """ISO-8601 query parameter as UTC-naive datetime; 400 on garbage."""
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name} format, expected ISO-8601") from None


def int_arg(name: str, default: int | None) -> int | None:
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
    if abs(value) > MAX_INTEGER:
        raise ValidationError(f"{name} is out of range", {"max": MAX_INTEGER})
    return value


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
