"""Tests for the lenient cell readers."""

from __future__ import annotations

from decimal import Decimal

from investorhub.coercion import read_bool, read_decimal, read_int, read_string, split_list


def test_read_string_trims_and_blanks_to_none() -> None:
    row = {"a": "  Acme  ", "b": "   ", "c": None}
    assert read_string(row, "a") == "Acme"
    assert read_string(row, "b") is None
    assert read_string(row, "c") is None
    assert read_string(row, "missing") is None


def test_read_decimal() -> None:
    row = {"ok": "1234.5600", "bad": "12,5", "inf": "Infinity"}
    assert read_decimal(row, "ok") == Decimal("1234.5600")
    assert read_decimal(row, "bad") is None
    assert read_decimal(row, "inf") is None
    assert read_decimal(row, "missing") is None


def test_read_int() -> None:
    row = {"ok": " 42 ", "bad": "4.2"}
    assert read_int(row, "ok") == 42
    assert read_int(row, "bad") is None


def test_read_bool_defaults_to_false_on_garbage() -> None:
    row = {"t": "TRUE", "f": "false", "junk": "yes", "blank": ""}
    assert read_bool(row, "t") is True
    assert read_bool(row, "f") is False
    assert read_bool(row, "junk") is False
    assert read_bool(row, "blank") is None


def test_split_list() -> None:
    row = {"sectors": "FinTech| HealthTech ||", "empty": ""}
    assert split_list(row, "sectors") == ["FinTech", "HealthTech"]
    assert split_list(row, "empty") == []
    assert split_list(row, "missing") == []
