"""
Error types raised by spatialkit.

All errors derive from ``SpatialError`` and from ``ValueError``, so callers
that only know about builtin exceptions still catch them. Every error is
local to the call that raised it; nothing here is retried automatically.

::

                          SpatialError (ValueError)
                                   |
    +-----------+-------------+----+---------+-------------+-----------+
    |           |             |              |             |           |
 Degenerate  Unsupported  Malformed      EmptyInput   CRSMismatch  InvalidCoordinate
 Geometry    CRS          File                                      AttributeSchema
"""

from __future__ import annotations

from typing import Optional


class SpatialError(ValueError):
    """Base class for all spatialkit errors."""


class DegenerateGeometryError(SpatialError):
    """A ring or polygon cannot represent a valid area."""


class UnsupportedCRSError(SpatialError):
    """A CRS descriptor is not recognized by the projection adapter."""


class MalformedFileError(SpatialError):
    """
    A shapefile or dBase buffer cannot be decoded.

    Attributes
    ----------
    offset : int or None
        Byte offset into the buffer where decoding failed, if known.
    record : int or None
        0-based record index being decoded, if known.
    """

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        record: Optional[int] = None,
    ):
        self.offset = offset
        self.record = record
        details = []
        if record is not None:
            details.append(f"record {record}")
        if offset is not None:
            details.append(f"offset {offset}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class EmptyInputError(SpatialError):
    """An input that must contain features contains none."""


class CRSMismatchError(SpatialError):
    """Two collections were combined without sharing a CRS."""


class InvalidCoordinateError(SpatialError):
    """A coordinate is not finite or is out of geographic range."""


class AttributeSchemaError(SpatialError):
    """An attribute value does not fit the table's field schema."""


__all__ = [
    "SpatialError",
    "DegenerateGeometryError",
    "UnsupportedCRSError",
    "MalformedFileError",
    "EmptyInputError",
    "CRSMismatchError",
    "InvalidCoordinateError",
    "AttributeSchemaError",
]
