"""In-memory buffer holding the values of one ClickHouse column."""

from __future__ import annotations

import ipaddress
import struct
import uuid
from datetime import timedelta
from typing import Any, Callable, Iterator

from .column_types import ColumnKind, ColumnType, input_type_name
from .conversions import (
    ConversionError,
    convert_to_time,
    decimal_to_int,
    point_from_str,
    uint128_from_hex,
    uint256_from_hex,
)

__all__ = ["ColumnBuffer"]

_Converter = Callable[["ColumnBuffer", Any], Any]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _integer(bits: int, signed: bool, label: str) -> _Converter:
    if signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1

    def convert(_buffer: ColumnBuffer, value: Any) -> int:
        if not _is_int(value) or not low <= value <= high:
            raise ConversionError(f"{value} is not the type {label}")
        return value

    return convert


def _float32(_buffer: ColumnBuffer, value: Any) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConversionError(f"{value} is not the type float32")
    try:
        return struct.unpack("<f", struct.pack("<f", float(value)))[0]
    except OverflowError:
        raise ConversionError(f"{value} is not the type float32") from None


def _float64(_buffer: ColumnBuffer, value: Any) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConversionError(f"{value} is not the type float64")
    return float(value)


def _require_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ConversionError(f"{value} is not the type string")
    return value


def _string(_buffer: ColumnBuffer, value: Any) -> str:
    return _require_str(value)


def _fixed_string(_buffer: ColumnBuffer, value: Any) -> bytes:
    return _require_str(value).encode("utf-8")


def _array(_buffer: ColumnBuffer, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConversionError(f"{value} is not the type []string")
    return list(value)


def _parse_ip(value: Any) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    text = _require_str(value)
    try:
        return ipaddress.ip_address(text)
    except ValueError as exc:
        raise ConversionError(str(exc)) from None


def _ipv4(_buffer: ColumnBuffer, value: Any) -> ipaddress.IPv4Address:
    address = _parse_ip(value)
    if isinstance(address, ipaddress.IPv4Address):
        return address
    if address.ipv4_mapped is not None:
        return address.ipv4_mapped
    raise ConversionError(f"{value} is not an IPv4 address")


def _ipv6(_buffer: ColumnBuffer, value: Any) -> ipaddress.IPv6Address:
    address = _parse_ip(value)
    if isinstance(address, ipaddress.IPv4Address):
        return ipaddress.IPv6Address(f"::ffff:{address}")
    return address


def _time(_buffer: ColumnBuffer, value: Any):
    return convert_to_time(value)


def _uuid(_buffer: ColumnBuffer, value: Any) -> uuid.UUID:
    text = _require_str(value)
    try:
        return uuid.UUID(text)
    except ValueError as exc:
        raise ConversionError(f"invalid UUID {text}: {exc}") from None


def _map(_buffer: ColumnBuffer, value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ConversionError(f"{value} is not the type map[string]string")
    return dict(value)


def _bool(_buffer: ColumnBuffer, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConversionError(f"{value} is not the type bool")
    return value


def _tuple(_buffer: ColumnBuffer, value: Any) -> tuple:
    if not isinstance(value, (list, tuple)):
        raise ConversionError(f"{value} is not the type tuple")
    return tuple(value)


def _decimal_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ConversionError(f"{value} is need convert to string")
    return value


def _decimal32(buffer: ColumnBuffer, value: Any) -> int:
    number = decimal_to_int(_decimal_text(value), buffer.scale)
    # The scaled value is narrowed to 32 bits the way a fixed-width cast would.
    return ((number + (1 << 31)) % (1 << 32)) - (1 << 31)


def _decimal64(buffer: ColumnBuffer, value: Any) -> int:
    return decimal_to_int(_decimal_text(value), buffer.scale)


def _hex128(_buffer: ColumnBuffer, value: Any):
    text = _require_str(value)
    try:
        return uint128_from_hex(text)
    except ConversionError:
        raise ConversionError(
            f"{value} is not the type hexadecimal characters string"
        ) from None


def _hex256(_buffer: ColumnBuffer, value: Any):
    text = _require_str(value)
    try:
        return uint256_from_hex(text)
    except ConversionError:
        raise ConversionError(
            f"{value} is not the type hexadecimal characters string"
        ) from None


def _point(_buffer: ColumnBuffer, value: Any):
    return point_from_str(_require_str(value))


def _interval(_buffer: ColumnBuffer, value: Any) -> timedelta:
    if not isinstance(value, timedelta):
        raise ConversionError(f"{value} is not then type of interval")
    return value


def _nothing(_buffer: ColumnBuffer, value: Any) -> None:
    if value is not None:
        raise ConversionError(f"{value} is not the type Nothing")
    return None


_CONVERTERS: dict[ColumnKind, _Converter] = {
    ColumnKind.INT8: _integer(8, True, "int8"),
    ColumnKind.INT16: _integer(16, True, "int16"),
    ColumnKind.INT32: _integer(32, True, "int32"),
    ColumnKind.INT64: _integer(64, True, "int64"),
    ColumnKind.INT128: _integer(128, True, "Int128"),
    ColumnKind.INT256: _integer(256, True, "Int256"),
    ColumnKind.UINT8: _integer(8, False, "uint8"),
    ColumnKind.UINT16: _integer(16, False, "uint16"),
    ColumnKind.UINT32: _integer(32, False, "uint32"),
    ColumnKind.UINT64: _integer(64, False, "uint64"),
    ColumnKind.UINT128: _hex128,
    ColumnKind.UINT256: _hex256,
    ColumnKind.FLOAT32: _float32,
    ColumnKind.FLOAT64: _float64,
    ColumnKind.STRING: _string,
    ColumnKind.FIXED_STRING: _fixed_string,
    ColumnKind.ARRAY: _array,
    ColumnKind.IPV4: _ipv4,
    ColumnKind.IPV6: _ipv6,
    ColumnKind.DATETIME: _time,
    ColumnKind.DATETIME64: _time,
    ColumnKind.DATE: _time,
    ColumnKind.DATE32: _time,
    ColumnKind.UUID: _uuid,
    ColumnKind.ENUM8: _integer(8, True, "int8"),
    ColumnKind.ENUM16: _integer(16, True, "int16"),
    ColumnKind.MAP: _map,
    ColumnKind.BOOL: _bool,
    ColumnKind.TUPLE: _tuple,
    ColumnKind.DECIMAL32: _decimal32,
    ColumnKind.DECIMAL64: _decimal64,
    ColumnKind.DECIMAL128: _hex128,
    ColumnKind.DECIMAL256: _hex256,
    ColumnKind.POINT: _point,
    ColumnKind.INTERVAL: _interval,
    ColumnKind.NOTHING: _nothing,
}


class ColumnBuffer:
    """Values of one column collected before they are inserted."""

    def __init__(self, name: str, column_type: ColumnType | str, *args: int) -> None:
        self.name = name
        self.column_type = ColumnType.parse(column_type)
        self.precision = 0
        self.scale = 0
        kind = self.column_type.kind
        if self.column_type.is_decimal():
            if len(args) != 2:
                raise ValueError("decimal type must have precision and scale define")
            self.precision, self.scale = int(args[0]), int(args[1])
        elif kind is ColumnKind.DATETIME64 and args:
            self.precision = int(args[0])
        self._convert = _CONVERTERS[kind]
        self._values: list[Any] = []

    def append(self, value: Any) -> None:
        """Convert value to the column's type and add it."""
        if value is None and self.column_type.nullable:
            self._values.append(None)
            return
        self._values.append(self._convert(self, value))

    def reset(self) -> None:
        """Drop every buffered value."""
        self._values.clear()

    def input_type(self) -> str:
        """The type name sent with this column's data."""
        return input_type_name(self.column_type, self.precision, self.scale)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __repr__(self) -> str:
        return (f"ColumnBuffer(name={self.name!r}, type={str(self.column_type)!r}, "
                f"rows={len(self._values)})")