"""Tests for the dBase attribute table codec."""

import struct
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from spatialkit.core.dbf import decode_dbf, encode_dbf
from spatialkit.core.features import AttributeTable, Field
from spatialkit.errors import MalformedFileError


@pytest.fixture
def table():
    return AttributeTable(
        [Field("name", str), Field("pop", int), Field("share", float), Field("active", bool)],
        [
            {"name": "Mission", "pop": 60000, "share": 0.25, "active": True},
            {"name": "Noe Valley", "pop": None, "share": -1.5, "active": False},
            {"name": None, "pop": 7, "share": None, "active": None},
        ],
    )


class TestRoundTrip:
    """encode_dbf followed by decode_dbf."""

    def test_values_and_types(self, table):
        decoded = decode_dbf(encode_dbf(table))
        assert decoded == table
        assert [f.dtype for f in decoded.fields] == [str, int, float, bool]

    def test_non_ascii_text(self):
        table = AttributeTable([Field("name", str)], [{"name": "Zürich"}, {"name": "São Paulo"}])
        assert decode_dbf(encode_dbf(table)).column("name") == ["Zürich", "São Paulo"]

    def test_latin1_encoding(self):
        table = AttributeTable([Field("name", str)], [{"name": "Zürich"}])
        data = encode_dbf(table, encoding="latin-1")
        assert decode_dbf(data, encoding="latin-1").column("name") == ["Zürich"]

    def test_empty_table(self):
        table = AttributeTable([Field("name", str)], [])
        assert len(decode_dbf(encode_dbf(table))) == 0

    def test_long_field_name_truncated(self):
        table = AttributeTable([Field("neighborhood", str)], [{"neighborhood": "x"}])
        with pytest.warns(UserWarning, match="truncated"):
            data = encode_dbf(table)
        assert decode_dbf(data).field_names == ["neighborho"]

    def test_integer_beyond_float_precision(self):
        table = AttributeTable([Field("id", int)], [{"id": 2**53 + 1}, {"id": -(2**62)}])
        assert decode_dbf(encode_dbf(table)).column("id") == [2**53 + 1, -(2**62)]

    @pytest.mark.parametrize("value", [1e-20, 1e300, -2.5e-308, 0.1 + 0.2, 123456789.123456789])
    def test_float_extremes(self, value):
        table = AttributeTable([Field("v", float)], [{"v": value}])
        assert decode_dbf(encode_dbf(table)).column("v") == [value]

    def test_text_padding_is_lossy(self):
        table = AttributeTable([Field("name", str)], [{"name": ""}, {"name": "trail  "}])
        assert decode_dbf(encode_dbf(table)).column("name") == [None, "trail"]

    def test_truncation_collision(self):
        table = AttributeTable(
            [Field("population_2010", int), Field("population_2020", int)],
            [{"population_2010": 1, "population_2020": 2}],
        )
        with pytest.warns(UserWarning):
            with pytest.raises(ValueError, match="collide"):
                encode_dbf(table)


class TestLayout:
    """Byte-level checks on encoded tables."""

    def test_header(self, table):
        data = encode_dbf(table)
        version, _, _, _, n_records, header_length, record_length = struct.unpack_from("<4BIHH", data)
        assert version == 0x03
        assert n_records == 3
        assert header_length == 32 + 32 * 4 + 1
        assert data[header_length - 1:header_length] == b"\x0d"
        assert len(data) == header_length + 3 * record_length + 1
        assert data[-1:] == b"\x1a"

    def test_field_descriptors(self, table):
        data = encode_dbf(table)
        codes = [data[32 + 32 * i + 11:32 + 32 * i + 12] for i in range(4)]
        assert codes == [b"C", b"N", b"F", b"L"]

    def test_float_decimals_follow_values(self, table):
        data = encode_dbf(table)
        share = 32 + 32 * 2
        width, decimals = data[share + 16], data[share + 17]
        assert width == len("-1.5")
        assert decimals == 2


class TestDecode:
    """Decoding details and malformed input."""

    def test_deleted_records_skipped(self, table):
        data = bytearray(encode_dbf(table))
        header_length = struct.unpack_from("<H", data, 8)[0]
        data[header_length] = ord("*")
        decoded = decode_dbf(bytes(data))
        assert len(decoded) == 2
        assert decoded[0]["name"] == "Noe Valley"

    @pytest.mark.parametrize("raw,expected", [(b"Y", True), (b"t", True), (b"N", False), (b"?", None)])
    def test_logical_values(self, raw, expected):
        data = bytearray(encode_dbf(AttributeTable([Field("flag", bool)], [{"flag": True}])))
        header_length = struct.unpack_from("<H", data, 8)[0]
        data[header_length + 1] = raw[0]
        assert decode_dbf(bytes(data))[0]["flag"] is expected

    def test_invalid_logical_value(self):
        data = bytearray(encode_dbf(AttributeTable([Field("flag", bool)], [{"flag": True}])))
        header_length = struct.unpack_from("<H", data, 8)[0]
        data[header_length + 1] = ord("x")
        with pytest.raises(MalformedFileError) as exc:
            decode_dbf(bytes(data))
        assert exc.value.record == 0

    def test_integer_written_with_decimal_point(self):
        data = bytearray(encode_dbf(AttributeTable([Field("n", int)], [{"n": 1234}])))
        header_length = struct.unpack_from("<H", data, 8)[0]
        data[header_length + 1:header_length + 5] = b"12.0"
        assert decode_dbf(bytes(data))[0]["n"] == 12

    @pytest.mark.parametrize("cut", [0, 20, 40, 100])
    def test_truncated(self, table, cut):
        with pytest.raises(MalformedFileError):
            decode_dbf(encode_dbf(table)[:cut])

    def test_truncated_records(self, table):
        data = encode_dbf(table)
        with pytest.raises(MalformedFileError, match="Truncated DBF records"):
            decode_dbf(data[:-10])
