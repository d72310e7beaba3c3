"""ClickHouse column type names accepted by the column buffers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "UnsupportedColumnTypeError",
    "ColumnKind",
    "ColumnType",
    "input_type_name",
]

_NULLABLE_PREFIX = "Nullable("


class UnsupportedColumnTypeError(ValueError):
    """Raised for a column type that has no buffer."""


class ColumnKind(Enum):
    """Base ClickHouse column types; the value is the type's name."""

    INT8 = "Int8"
    INT16 = "Int16"
    INT32 = "Int32"
    INT64 = "Int64"
    INT128 = "Int128"
    INT256 = "Int256"
    UINT8 = "UInt8"
    UINT16 = "UInt16"
    UINT32 = "UInt32"
    UINT64 = "UInt64"
    UINT128 = "UInt128"
    UINT256 = "UInt256"
    FLOAT32 = "Float32"
    FLOAT64 = "Float64"
    STRING = "String"
    FIXED_STRING = "FixedString"
    ARRAY = "Array"
    IPV4 = "IPv4"
    IPV6 = "IPv6"
    DATETIME = "DateTime"
    DATETIME64 = "DateTime64"
    DATE = "Date"
    DATE32 = "Date32"
    UUID = "UUID"
    ENUM8 = "Enum8"
    ENUM16 = "Enum16"
    MAP = "Map"
    BOOL = "Bool"
    TUPLE = "Tuple"
    DECIMAL32 = "Decimal32"
    DECIMAL64 = "Decimal64"
    DECIMAL128 = "Decimal128"
    DECIMAL256 = "Decimal256"
    POINT = "Point"
    INTERVAL = "Interval"
    NOTHING = "Nothing"

    @property
    def can_be_nullable(self) -> bool:
        """Whether a Nullable(...) buffer exists for this kind."""
        return self not in _NOT_NULLABLE

    @property
    def is_decimal(self) -> bool:
        """Whether this kind is one of the Decimal types."""
        return self in _DECIMALS


_NOT_NULLABLE = frozenset({
    ColumnKind.FIXED_STRING,
    ColumnKind.ARRAY,
    ColumnKind.MAP,
    ColumnKind.TUPLE,
    ColumnKind.POINT,
    ColumnKind.INTERVAL,
})

_DECIMALS = frozenset({
    ColumnKind.DECIMAL32,
    ColumnKind.DECIMAL64,
    ColumnKind.DECIMAL128,
    ColumnKind.DECIMAL256,
})

_BY_NAME = {kind.value: kind for kind in ColumnKind}


@dataclass(frozen=True)
class ColumnType:
    """A supported column type, optionally wrapped in Nullable."""

    kind: ColumnKind
    nullable: bool = False

    def __post_init__(self) -> None:
        if self.nullable and not self.kind.can_be_nullable:
            raise UnsupportedColumnTypeError(
                f"clickHouse not supported for Nullable({self.kind.value})"
            )

    @classmethod
    def parse(cls, text: str | ColumnType) -> ColumnType:
        """Read a type name such as "Int32" or "Nullable(Int32)"."""
        if isinstance(text, ColumnType):
            return text
        if not isinstance(text, str):
            raise UnsupportedColumnTypeError(f"clickHouse not supported for {text}")
        name = text.strip()
        nullable = False
        if name.startswith(_NULLABLE_PREFIX) and name.endswith(")"):
            name = name[len(_NULLABLE_PREFIX):-1].strip()
            nullable = True
        kind = _BY_NAME.get(name)
        if kind is None or (nullable and not kind.can_be_nullable):
            raise UnsupportedColumnTypeError(f"clickHouse not supported for {text}")
        return cls(kind, nullable)

    def __str__(self) -> str:
        if self.nullable:
            return f"{_NULLABLE_PREFIX}{self.kind.value})"
        return self.kind.value

    def is_decimal(self) -> bool:
        """Whether the type is a Decimal type, nullable or not."""
        return self.kind.is_decimal


def input_type_name(column_type: ColumnType | str, precision: int, scale: int) -> str:
    """The type name sent with a column of data when inserting.

    Decimal columns are sent as Decimal(precision,scale); others by name.
    """
    column_type = ColumnType.parse(column_type)
    if not column_type.is_decimal():
        return str(column_type)
    name = f"Decimal({precision},{scale})"
    if column_type.nullable:
        return f"{_NULLABLE_PREFIX}{name})"
    return name