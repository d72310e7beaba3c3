from datetime import datetime, timedelta, timezone

import pytest

from datapull.conversions import (
    ConversionError,
    Point,
    UInt128,
    convert_to_time,
    decimal_to_int,
    pad_number_with_zeros,
    point_from_str,
    uint128_from_bytes,
    uint128_from_hex,
    uint256_from_bytes,
    uint256_from_hex,
)


def test_uint128_low_byte_is_little_endian():
    value = uint128_from_bytes(bytes([1]) + bytes(15))
    assert value == UInt128(low=1, high=0)


def test_uint128_high_half():
    value = uint128_from_bytes(bytes(8) + bytes([1]) + bytes(7))
    assert value == UInt128(low=0, high=1)


@pytest.mark.parametrize("number", [0, 1, 2**64, 2**128 - 1, 123456789 << 40])
def test_uint128_round_trip(number):
    assert int(uint128_from_bytes(number.to_bytes(16, "little"))) == number


@pytest.mark.parametrize("number", [0, 2**200 + 5, 2**256 - 1])
def test_uint256_round_trip(number):
    assert int(uint256_from_bytes(number.to_bytes(32, "little"))) == number


def test_uint128_from_hex_matches_bytes():
    raw = bytes(range(16))
    assert uint128_from_hex(raw.hex()) == uint128_from_bytes(raw)
    assert uint128_from_hex(raw.hex().upper()) == uint128_from_bytes(raw)


def test_uint256_from_hex_matches_bytes():
    raw = bytes(range(32))
    assert uint256_from_hex(raw.hex()) == uint256_from_bytes(raw)


@pytest.mark.parametrize("text", ["zz" * 16, "0" * 31, "01 02"])
def test_bad_hex_raises(text):
    with pytest.raises(ConversionError):
        uint128_from_hex(text)


def test_short_data_raises():
    with pytest.raises(ConversionError):
        uint128_from_bytes(bytes(15))
    with pytest.raises(ConversionError):
        uint256_from_hex("00" * 16)


@pytest.mark.parametrize("text", ["(1.5, 2.5)", "1.5,2.5", " ( 1.5 ,\t2.5 ) "])
def test_point_from_str(text):
    assert point_from_str(text) == Point(1.5, 2.5)


@pytest.mark.parametrize("text", ["1,2,3", "(1)", "a,b", ""])
def test_point_from_str_rejects(text):
    with pytest.raises(ConversionError):
        point_from_str(text)


@pytest.mark.parametrize("number,length", [("12", 5), ("12345", 3), ("", 2), ("7", 0)])
def test_pad_number_with_zeros_invariants(number, length):
    result = pad_number_with_zeros(number, length)
    assert result.startswith(number)
    assert len(result) == max(len(number), length)
    assert set(result[len(number):]) <= {"0"}


def test_decimal_to_int_concatenates_digits():
    assert decimal_to_int("12.34", 2) == 1234


@pytest.mark.parametrize("number", [0, 5, -17, 99999])
@pytest.mark.parametrize("scale", [0, 2, 4])
def test_decimal_whole_number_scales(number, scale):
    assert decimal_to_int(str(number), scale) == number * 10**scale


def test_decimal_short_fraction_is_padded():
    assert decimal_to_int("1.5", 3) == decimal_to_int("1.500", 3)


@pytest.mark.parametrize("value", ["1.2.3", "abc", "1.x", "99999999999999999999"])
def test_decimal_to_int_rejects(value):
    with pytest.raises(ConversionError):
        decimal_to_int(value, 2)


def test_convert_datetime_passthrough():
    moment = datetime(2024, 5, 6, 7, 8, 9)
    assert convert_to_time(moment) is moment


def test_convert_plain_datetime_string():
    assert convert_to_time("2024-01-02 03:04:05") == datetime(
        2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc
    )


def test_convert_fractional_seconds():
    result = convert_to_time("2024-01-02 03:04:05.123456")
    assert result.microsecond == 123456


def test_convert_date_only():
    assert convert_to_time("2024-01-02") == datetime(2024, 1, 2, tzinfo=timezone.utc)


def test_convert_rfc3339_with_offset():
    result = convert_to_time("2024-01-02T03:04:05+02:00")
    assert result == datetime(
        2024, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=2))
    )


def test_convert_rfc822():
    assert convert_to_time("02 Jan 06 15:04 UTC") == datetime(
        2006, 1, 2, 15, 4, tzinfo=timezone.utc
    )


def test_convert_rfc850():
    assert convert_to_time("Monday, 02-Jan-06 15:04:05 UTC") == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc
    )


def test_convert_bytes_equals_string():
    text = "2024-01-02 03:04:05"
    assert convert_to_time(text.encode()) == convert_to_time(text)


@pytest.mark.parametrize("stamp", [0, 1700000000, 1700000000.9])
def test_convert_unix_timestamp(stamp):
    assert convert_to_time(stamp).timestamp() == int(stamp)


@pytest.mark.parametrize("value", ["not a time", b"2024-13-45", "2024-02-30"])
def test_convert_bad_text_raises(value):
    with pytest.raises(ConversionError):
        convert_to_time(value)


@pytest.mark.parametrize("value", [[1, 2], None, True])
def test_convert_unsupported_type_raises(value):
    with pytest.raises(ConversionError):
        convert_to_time(value)