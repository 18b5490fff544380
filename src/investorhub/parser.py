"""Parse uploaded CSV or JSON files into investor records.

CSV files carry a header row naming the fields. Nested structures use dotted
paths (``hqLocation.city``, ``financials.invMin``) and repeated contacts use
indexed paths (``contacts[0].firstName``). List cells are ``|``-separated.

JSON files hold either an array of records or a single record object.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from decimal import Decimal
from enum import StrEnum
from pathlib import PurePath
from typing import Any

from pydantic import TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from investorhub.coercion import Row, read_bool, read_decimal, read_int, read_string, split_list
from investorhub.errors import MalformedInputError, UnsupportedFormatError
from investorhub.models import (
    Address,
    Contact,
    Descriptions,
    Financials,
    InvestorRecord,
)

logger = logging.getLogger(__name__)


class FileFormat(StrEnum):
    CSV = "csv"
    JSON = "json"


_EXTENSIONS = {".csv": FileFormat.CSV, ".json": FileFormat.JSON}
_CONTENT_TYPES = {
    "text/csv": FileFormat.CSV,
    "application/csv": FileFormat.CSV,
    "application/vnd.ms-excel": FileFormat.CSV,
    "application/json": FileFormat.JSON,
    "text/json": FileFormat.JSON,
}

_SCALAR_STRINGS = (
    "id",
    "name",
    "status",
    "type",
    "macroType",
    "website",
    "image",
    "creatorEmail",
    "adminEmail",
)
_LIST_FIELDS = (
    "preferredGeographicalAreas",
    "preferredInvestmentTypes",
    "sectors",
    "verticals",
    "macroAreas",
)

_CONTACT_KEY = re.compile(r"^contacts\[(?P<index>[^\]]*)\]\.(?P<field>\w+)$")

_record_list = TypeAdapter(list[InvestorRecord])


def detect_format(filename: str | None, content_type: str | None) -> FileFormat:
    """Pick the format from the file extension, falling back to the content type."""
    if filename:
        suffix = PurePath(filename).suffix.lower()
        if suffix in _EXTENSIONS:
            return _EXTENSIONS[suffix]
    if content_type:
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type in _CONTENT_TYPES:
            return _CONTENT_TYPES[media_type]
    if not filename and not content_type:
        raise UnsupportedFormatError("Cannot determine file type. Supported formats: CSV, JSON")
    raise UnsupportedFormatError(
        f"Unsupported file format: {content_type or filename}. Supported formats: CSV, JSON"
    )


def parse_file(
    data: bytes,
    filename: str | None = None,
    content_type: str | None = None,
) -> list[InvestorRecord]:
    """Parse *data* into records, preserving input order."""
    file_format = detect_format(filename, content_type)
    logger.info("Parsing file %s as %s", filename or "<upload>", file_format.value)
    if file_format is FileFormat.CSV:
        return parse_csv(data)
    return parse_json(data)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def split_csv_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one CSV line, honouring double quotes and ``""`` escapes."""
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    values.append("".join(current).strip())
    return values


def parse_csv(data: bytes) -> list[InvestorRecord]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedInputError(f"CSV file is not valid UTF-8: {exc}") from exc

    lines = [line.removesuffix("\r") for line in text.split("\n")]
    lines = [line for line in lines if line.strip()]
    if not lines:
        raise MalformedInputError("CSV file is empty")

    headers = split_csv_line(lines[0])
    records: list[InvestorRecord] = []
    for row_number, line in enumerate(lines[1:], start=1):
        values = split_csv_line(line)
        if len(values) != len(headers):
            logger.warning(
                "Row %d has %d values, expected %d (headers). "
                "Row will be processed with available data.",
                row_number,
                len(values),
                len(headers),
            )
        row = dict(zip(headers, values))
        records.append(row_to_record(row, headers))

    logger.info("Parsed %d investors from CSV", len(records))
    return records


def row_to_record(row: Row, headers: list[str] | None = None) -> InvestorRecord:
    """Build a record from a header-keyed CSV row.

    Nested objects are created when *headers* (defaulting to the row's own
    keys) name at least one of their dotted keys, even if a short row leaves
    all of them empty.
    """
    columns = list(row) if headers is None else headers
    data: dict[str, Any] = {}
    for key in _SCALAR_STRINGS:
        if key in row:
            data[key] = read_string(row, key)
    for key in _LIST_FIELDS:
        if key in row:
            data[key] = split_list(row, key)
    if "isOld" in row:
        data["isOld"] = read_bool(row, "isOld")
    if "completenessScore" in row:
        data["completenessScore"] = read_int(row, "completenessScore")
    if "impressions" in row:
        impressions = read_int(row, "impressions")
        if impressions is not None:
            data["impressions"] = impressions

    data["hqLocation"] = _nested(row, columns, "hqLocation", Address, read_string)
    data["financials"] = _nested(row, columns, "financials", Financials, read_decimal)
    data["descriptions"] = _nested(row, columns, "descriptions", Descriptions, read_string)
    data["contacts"] = _contacts(row)
    return InvestorRecord.model_validate(data)


def _nested(
    row: Row,
    columns: list[str],
    prefix: str,
    model: type[Address] | type[Financials] | type[Descriptions],
    reader: Callable[[Row, str], Any],
) -> Any:
    dotted = f"{prefix}."
    if not any(column.startswith(dotted) for column in columns):
        return None
    values: dict[str, Any] = {}
    for name in model.model_fields:
        key = dotted + to_camel(name)
        if key in row:
            values[name] = reader(row, key)
    return model(**values)


def _contacts(row: Row) -> list[Contact]:
    grouped: dict[int, dict[str, str | None]] = {}
    for key, value in row.items():
        if not key.startswith("contacts["):
            continue
        match = _CONTACT_KEY.match(key)
        if match is None:
            logger.warning("Invalid contact column: %s", key)
            continue
        try:
            index = int(match.group("index"))
        except ValueError:
            logger.warning("Invalid contact index in key: %s", key)
            continue
        grouped.setdefault(index, {})[match.group("field")] = value

    contacts: list[Contact] = []
    for index in sorted(grouped):
        fields = grouped[index]
        contact = Contact(
            first_name=read_string(fields, "firstName"),
            last_name=read_string(fields, "lastName"),
            email=read_string(fields, "email"),
            phone=read_string(fields, "phone"),
            mobile=read_string(fields, "mobile"),
            fax=read_string(fields, "fax"),
            role=read_string(fields, "role"),
            order_num=read_int(fields, "orderNum"),
        )
        if contact.first_name or contact.last_name:
            contacts.append(contact)
    return contacts


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def load_json(data: bytes | str) -> Any:
    """Decode JSON text, keeping every fractional number as an exact ``Decimal``.

    A leading UTF-8 byte order mark is ignored.
    """
    try:
        text = data.decode("utf-8-sig") if isinstance(data, bytes) else data.removeprefix("\ufeff")
        return json.loads(text, parse_float=Decimal)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error("Failed to parse JSON: %s", exc)
        raise MalformedInputError(f"Failed to parse JSON: {exc}") from exc


def parse_json(data: bytes | str) -> list[InvestorRecord]:
    payload = load_json(data)
    try:
        records = _record_list.validate_python(payload)
    except ValidationError:
        try:
            records = [InvestorRecord.model_validate(payload)]
        except ValidationError as exc:
            logger.error("Failed to parse JSON as investor(s): %s", exc)
            raise MalformedInputError(f"Failed to parse JSON: {exc}") from exc

    logger.info("Parsed %d investors from JSON", len(records))
    return records


def parse_json_array(data: bytes | str) -> list[InvestorRecord]:
    """Validate a JSON array of records, as posted to the bulk endpoint.

    Unlike ``parse_json`` a single object is not accepted, and invalid records
    raise pydantic's ``ValidationError`` unchanged.
    """
    return _record_list.validate_python(load_json(data))
