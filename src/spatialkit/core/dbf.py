"""
dBase III (.dbf) codec for shapefile attribute tables.

Field mapping
-------------
======  ========  ==========================================
Python  DBF type  Notes
======  ========  ==========================================
str     C         width = longest encoded value (max 254)
int     N         decimals 0
float   F         shortest round-trip text (``repr``)
bool    L         'T' / 'F'
======  ========  ==========================================

Missing values are written as blanks and decode back to ``None``. Field
names longer than 10 characters are truncated, with a warning.

Character fields are blank-padded, so the codec is lossy for text: an
empty string decodes as ``None`` and trailing spaces are stripped.
"""

from __future__ import annotations

import datetime
import struct
import warnings
from typing import Any

from spatialkit.core.features import AttributeTable, Field
from spatialkit.errors import MalformedFileError


DBF_VERSION = 0x03
HEADER_TERMINATOR = b"\x0d"
EOF_MARKER = b"\x1a"
MAX_FIELD_WIDTH = 254
MAX_NAME_LENGTH = 10
MAX_FLOAT_DECIMALS = 15
DEFAULT_ENCODING = "utf-8"

_HEADER = struct.Struct("<4BIHH20x")
_DESCRIPTOR = struct.Struct("<11sc4xBB14x")

_TYPE_CODES = {str: b"C", int: b"N", float: b"F", bool: b"L"}


def _format_value(field: Field, value: Any, encoding: str) -> bytes:
    if value is None:
        return b""
    if field.dtype is bool:
        return b"T" if value else b"F"
    if field.dtype is int:
        return str(value).encode("ascii")
    if field.dtype is float:
        return repr(float(value)).encode("ascii")
    return value.encode(encoding)


def _float_decimals(cells: list[bytes], width: int) -> int:
    """Widest fractional part among written float cells."""
    digits = 0
    for cell in cells:
        mantissa = cell.split(b"e", 1)[0]
        if b"." in mantissa:
            digits = max(digits, len(mantissa.split(b".", 1)[1]))
    return min(digits, MAX_FLOAT_DECIMALS, max(width - 2, 0))


def _field_names(table: AttributeTable) -> list[str]:
    names = []
    for field in table.fields:
        name = field.name
        if len(name.encode("ascii", "replace")) > MAX_NAME_LENGTH:
            short = name[:MAX_NAME_LENGTH]
            warnings.warn(
                f"DBF field name '{name}' truncated to '{short}'",
                UserWarning,
            )
            name = short
        if name in names:
            raise ValueError(f"Field names collide after truncation: '{name}'")
        names.append(name)
    return names


def encode_dbf(table: AttributeTable, encoding: str = DEFAULT_ENCODING) -> bytes:
    """
    Encode an attribute table as dBase III bytes.

    Parameters
    ----------
    table : AttributeTable
        Table to encode.
    encoding : str, optional
        Text encoding for character fields. Default UTF-8 (write a matching
        ``.cpg`` file alongside).

    Returns
    -------
    bytes
        Complete .dbf contents.

    Raises
    ------
    ValueError
        If a value is wider than 254 bytes once encoded.
    """
    names = _field_names(table)

    cells = [
        [_format_value(f, row[f.name], encoding) for f in table.fields]
        for row in table
    ]
    widths = []
    decimals = []
    for j, field in enumerate(table.fields):
        width = max([len(r[j]) for r in cells] + [1])
        if field.dtype is bool:
            width = 1
        if width > MAX_FIELD_WIDTH:
            raise ValueError(f"Field '{field.name}' needs width {width}, max is {MAX_FIELD_WIDTH}")
        widths.append(width)
        decimals.append(_float_decimals([r[j] for r in cells], width) if field.dtype is float else 0)

    header_length = _HEADER.size + _DESCRIPTOR.size * len(table.fields) + 1
    record_length = 1 + sum(widths)
    today = datetime.date.today()

    out = bytearray(_HEADER.pack(
        DBF_VERSION, today.year - 1900, today.month, today.day,
        len(table), header_length, record_length,
    ))
    for name, field, width, dec in zip(names, table.fields, widths, decimals):
        out += _DESCRIPTOR.pack(name.encode("ascii", "replace"), _TYPE_CODES[field.dtype], width, dec)
    out += HEADER_TERMINATOR

    for row in cells:
        out += b" "
        for field, cell, width in zip(table.fields, row, widths):
            if field.dtype in (int, float):
                out += cell.rjust(width, b" ")
            else:
                out += cell.ljust(width, b" ")
    out += EOF_MARKER
    return bytes(out)


def _parse_value(field: Field, raw: bytes, encoding: str) -> Any:
    text = raw.decode(encoding)
    if field.dtype is str:
        return text.rstrip(" \x00") or None
    text = text.strip()
    if not text or set(text) <= {"*", "?"}:
        return None
    if field.dtype is bool:
        if text in ("Y", "y", "T", "t"):
            return True
        if text in ("N", "n", "F", "f"):
            return False
        raise ValueError(f"invalid logical value {text!r}")
    if field.dtype is int:
        try:
            return int(text)
        except ValueError:
            pass
        # Some writers pad integer fields as "12.0"
        value = float(text)
        if not value.is_integer():
            raise ValueError(f"non-integer value {text!r} in integer field")
        return int(value)
    return float(text)


def decode_dbf(data: bytes, encoding: str = DEFAULT_ENCODING) -> AttributeTable:
    """
    Decode dBase III bytes into an AttributeTable.

    Numeric fields with decimals and 'F' fields decode as float, other 'N'
    fields as int, 'L' as bool, everything else as str. Deleted records are
    skipped.

    Raises
    ------
    MalformedFileError
        On a truncated header, descriptor array or record block, or on a
        value that cannot be parsed for its field type.
    """
    buf = bytes(data)
    if len(buf) < _HEADER.size:
        raise MalformedFileError(
            f"Truncated DBF header: need {_HEADER.size} bytes, got {len(buf)}", offset=len(buf)
        )
    _, _, _, _, n_records, header_length, record_length = _HEADER.unpack_from(buf, 0)
    if header_length > len(buf):
        raise MalformedFileError(
            f"DBF header declares {header_length} bytes but buffer holds {len(buf)}", offset=8
        )

    fields = []
    widths = []
    offset = _HEADER.size
    while offset < header_length and buf[offset:offset + 1] != HEADER_TERMINATOR:
        if offset + _DESCRIPTOR.size > header_length:
            raise MalformedFileError("Truncated field descriptor", offset=offset)
        raw_name, type_code, width, dec = _DESCRIPTOR.unpack_from(buf, offset)
        name = raw_name.split(b"\x00", 1)[0].decode("ascii", "replace").strip()
        if type_code == b"L":
            dtype = bool
        elif type_code == b"F" or (type_code == b"N" and dec > 0):
            dtype = float
        elif type_code == b"N":
            dtype = int
        else:
            dtype = str
        fields.append(Field(name, dtype))
        widths.append(width)
        offset += _DESCRIPTOR.size

    if record_length != 1 + sum(widths):
        raise MalformedFileError(
            f"Record length {record_length} does not match field widths", offset=10
        )

    end = header_length + n_records * record_length
    if end > len(buf):
        raise MalformedFileError(
            f"Truncated DBF records: need {end} bytes, got {len(buf)}", offset=len(buf)
        )

    rows = []
    for i in range(n_records):
        start = header_length + i * record_length
        if buf[start:start + 1] == b"*":
            continue
        pos = start + 1
        row = {}
        for field, width in zip(fields, widths):
            try:
                row[field.name] = _parse_value(field, buf[pos:pos + width], encoding)
            except (UnicodeDecodeError, ValueError) as e:
                raise MalformedFileError(f"Field '{field.name}': {e}", offset=pos, record=i) from e
            pos += width
        rows.append(row)

    return AttributeTable(fields, rows)


__all__ = ["encode_dbf", "decode_dbf"]
