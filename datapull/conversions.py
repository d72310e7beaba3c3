"""Value conversions used when buffering rows for ClickHouse columns."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

__all__ = [
    "ConversionError",
    "UInt128",
    "UInt256",
    "Point",
    "uint128_from_bytes",
    "uint128_from_hex",
    "uint256_from_bytes",
    "uint256_from_hex",
    "point_from_str",
    "pad_number_with_zeros",
    "decimal_to_int",
    "convert_to_time",
]

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_HEX_RE = re.compile(r"[0-9a-fA-F]*")
_INT_RE = re.compile(r"[+-]?\d+")


class ConversionError(ValueError):
    """Raised when a value cannot be converted to the requested form."""


@dataclass(frozen=True)
class UInt128:
    """Unsigned 128-bit integer split into two 64-bit halves."""

    low: int = 0
    high: int = 0

    def __int__(self) -> int:
        return (self.high << 64) | self.low


@dataclass(frozen=True)
class UInt256:
    """Unsigned 256-bit integer split into two 128-bit halves."""

    low: UInt128 = UInt128()
    high: UInt128 = UInt128()

    def __int__(self) -> int:
        return (int(self.high) << 128) | int(self.low)


@dataclass(frozen=True)
class Point:
    """A two-dimensional point."""

    x: float
    y: float


def _u64(data: bytes, start: int) -> int:
    return int.from_bytes(data[start:start + 8], "little")


def uint128_from_bytes(data: bytes) -> UInt128:
    """Read a little-endian UInt128 from the first 16 bytes of data."""
    data = bytes(data)
    if len(data) < 16:
        raise ConversionError(f"need 16 bytes for UInt128, got {len(data)}")
    return UInt128(low=_u64(data, 0), high=_u64(data, 8))


def uint256_from_bytes(data: bytes) -> UInt256:
    """Read a little-endian UInt256 from the first 32 bytes of data."""
    data = bytes(data)
    if len(data) < 32:
        raise ConversionError(f"need 32 bytes for UInt256, got {len(data)}")
    return UInt256(
        low=UInt128(low=_u64(data, 0), high=_u64(data, 8)),
        high=UInt128(low=_u64(data, 16), high=_u64(data, 24)),
    )


def _decode_hex(text: str) -> bytes:
    if not isinstance(text, str) or len(text) % 2 or not _HEX_RE.fullmatch(text):
        raise ConversionError(f"failed to decode string : {text}")
    return bytes.fromhex(text)


def uint128_from_hex(text: str) -> UInt128:
    """Decode a hexadecimal string holding little-endian UInt128 bytes."""
    return uint128_from_bytes(_decode_hex(text))


def uint256_from_hex(text: str) -> UInt256:
    """Decode a hexadecimal string holding little-endian UInt256 bytes."""
    return uint256_from_bytes(_decode_hex(text))


def point_from_str(text: str) -> Point:
    """Parse a point written as "(x, y)" or "x,y"."""
    compact = "".join(text.split()).strip("()")
    parts = compact.split(",")
    if len(parts) != 2:
        raise ConversionError(f"{text} is not then point format")
    try:
        return Point(x=float(parts[0]), y=float(parts[1]))
    except ValueError:
        raise ConversionError(f"{text} is not then point format") from None


def pad_number_with_zeros(number: str, length: int) -> str:
    """Append zeros to number until it is at least length characters long."""
    return number.ljust(length, "0")


def decimal_to_int(value: str, scale: int) -> int:
    """Turn a decimal string into an int64 scaled by 10**scale.

    A fraction longer than scale is kept whole, not rounded.
    """
    parts = value.split(".")
    if len(parts) > 2:
        raise ConversionError(f"{value} is not valid decimal")
    if len(parts) == 1:
        digits = value + "0" * max(scale, 0)
    else:
        digits = parts[0] + pad_number_with_zeros(parts[1], scale)
    if not _INT_RE.fullmatch(digits):
        raise ConversionError(f"{value} is not the type int32 or int64")
    result = int(digits)
    if not _INT64_MIN <= result <= _INT64_MAX:
        raise ConversionError(f"{value} is not the type int32 or int64")
    return result


_MONTHS = {
    name: number
    for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
_WEEKDAYS = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"

_PLAIN_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2}) (\d{1,2}):(\d{2}):(\d{2})(?:[.,](\d+))?"
)
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(Z|[+-]\d{2}:\d{2})"
)
_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_RFC822_RE = re.compile(
    r"(\d{2}) ([A-Za-z]{3}) (\d{2}) (\d{1,2}):(\d{2}) ([A-Z]{3,5})"
)
_RFC850_RE = re.compile(
    rf"(?i:{_WEEKDAYS}), (\d{{2}})-([A-Za-z]{{3}})-(\d{{2}}) "
    r"(\d{1,2}):(\d{2}):(\d{2}) ([A-Z]{3,5})"
)


def _micros(fraction: str | None) -> int:
    if not fraction:
        return 0
    return int(fraction[:6].ljust(6, "0"))


def _two_digit_year(text: str) -> int:
    year = int(text)
    return year + (1900 if year >= 69 else 2000)


def _month(text: str) -> int:
    month = _MONTHS.get(text.lower())
    if month is None:
        raise ValueError(f"unknown month {text}")
    return month


def _offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    hours, minutes = int(text[1:3]), int(text[4:6])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _parse_text(text: str) -> datetime | None:
    # Zone abbreviations in the RFC 822/850 forms are read as UTC offsets of zero.
    try:
        if m := _PLAIN_RE.fullmatch(text):
            y, mo, d, h, mi, s, frac = m.groups()
            return datetime(int(y), int(mo), int(d), int(h), int(mi), int(s),
                            _micros(frac), tzinfo=timezone.utc)
        if m := _RFC3339_RE.fullmatch(text):
            y, mo, d, h, mi, s, frac, zone = m.groups()
            return datetime(int(y), int(mo), int(d), int(h), int(mi), int(s),
                            _micros(frac), tzinfo=_offset(zone))
        if m := _DATE_RE.fullmatch(text):
            y, mo, d = m.groups()
            return datetime(int(y), int(mo), int(d), tzinfo=timezone.utc)
        if m := _RFC822_RE.fullmatch(text):
            d, mon, y, h, mi, _zone = m.groups()
            return datetime(_two_digit_year(y), _month(mon), int(d),
                            int(h), int(mi), tzinfo=timezone.utc)
        if m := _RFC850_RE.fullmatch(text):
            d, mon, y, h, mi, s, _zone = m.groups()
            return datetime(_two_digit_year(y), _month(mon), int(d),
                            int(h), int(mi), int(s), tzinfo=timezone.utc)
    except ValueError:
        return None
    return None


def convert_to_time(value: Any) -> datetime:
    """Convert a datetime, text, bytes or Unix timestamp to a datetime.

    Text without a zone is read as UTC; timestamps give an aware local time.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        result = _parse_text(value)
        if result is None:
            raise ConversionError(f"cannot parse string '{value}' as time")
        return result
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", errors="replace")
        result = _parse_text(text)
        if result is None:
            raise ConversionError(f"cannot parse bytes '{text}' as time")
        return result
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(int(value), tz=timezone.utc).astimezone()
    raise ConversionError(f"cannot convert type {type(value).__name__} to time")