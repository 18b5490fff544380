"""Lenient readers that turn raw tabular cells into typed values.

A malformed cell never fails the record it belongs to: it is logged and read
as absent. ``read_bool`` is the exception and reads an unparseable value as
``False``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

Row = Mapping[str, str | None]

_TRUE_VALUES = {"true"}
_FALSE_VALUES = {"false"}


def read_string(row: Row, key: str) -> str | None:
    value = row.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def read_decimal(row: Row, key: str) -> Decimal | None:
    value = read_string(row, key)
    if value is None:
        return None
    try:
        number = Decimal(value)
    except InvalidOperation:
        logger.warning("Invalid number format for field %s: %s", key, value)
        return None
    if not number.is_finite():
        logger.warning("Non-finite number for field %s: %s", key, value)
        return None
    return number


def read_int(row: Row, key: str) -> int | None:
    value = read_string(row, key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer for field %s: %s", key, value)
        return None


def read_bool(row: Row, key: str) -> bool | None:
    value = read_string(row, key)
    if value is None:
        return None
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered not in _FALSE_VALUES:
        logger.warning("Invalid boolean for field %s: %s", key, value)
    return False


def split_list(row: Row, key: str, separator: str = "|") -> list[str]:
    """Split a multi-valued cell, dropping blank items."""
    value = read_string(row, key)
    if value is None:
        return []
    return [item.strip() for item in value.split(separator) if item.strip()]
