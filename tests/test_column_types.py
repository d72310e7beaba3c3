import pytest

from datapull.column_types import (
    ColumnKind,
    ColumnType,
    UnsupportedColumnTypeError,
    input_type_name,
)


@pytest.mark.parametrize("kind", list(ColumnKind))
def test_parse_plain_round_trip(kind):
    parsed = ColumnType.parse(kind.value)
    assert parsed.kind is kind
    assert parsed.nullable is False
    assert str(parsed) == kind.value


@pytest.mark.parametrize("kind", [k for k in ColumnKind if k.can_be_nullable])
def test_parse_nullable_round_trip(kind):
    text = f"Nullable({kind.value})"
    parsed = ColumnType.parse(text)
    assert parsed.kind is kind
    assert parsed.nullable is True
    assert str(parsed) == text
    assert ColumnType.parse(str(parsed)) == parsed


@pytest.mark.parametrize(
    "kind",
    [
        ColumnKind.FIXED_STRING,
        ColumnKind.ARRAY,
        ColumnKind.MAP,
        ColumnKind.TUPLE,
        ColumnKind.POINT,
        ColumnKind.INTERVAL,
    ],
)
def test_nullable_not_supported_for_some_kinds(kind):
    with pytest.raises(UnsupportedColumnTypeError):
        ColumnType.parse(f"Nullable({kind.value})")
    with pytest.raises(UnsupportedColumnTypeError):
        ColumnType(kind, nullable=True)


@pytest.mark.parametrize("text", ["Varchar", "int32", "", "Nullable()", "LowCardinality(String)"])
def test_unknown_types_raise(text):
    with pytest.raises(UnsupportedColumnTypeError, match="clickHouse not supported for"):
        ColumnType.parse(text)


def test_parse_accepts_column_type_instance():
    original = ColumnType(ColumnKind.INT64, nullable=True)
    assert ColumnType.parse(original) is original


def test_is_decimal():
    decimals = {ColumnKind.DECIMAL32, ColumnKind.DECIMAL64,
                ColumnKind.DECIMAL128, ColumnKind.DECIMAL256}
    for kind in ColumnKind:
        assert ColumnType(kind).is_decimal() == (kind in decimals)
    assert ColumnType.parse("Nullable(Decimal64)").is_decimal() is True


def test_input_type_name_decimal():
    assert input_type_name(ColumnType.parse("Decimal64"), 10, 2) == "Decimal(10,2)"


def test_input_type_name_nullable_decimal():
    result = input_type_name("Nullable(Decimal128)", 18, 4)
    assert result == "Nullable(Decimal(18,4))"


def test_input_type_name_non_decimal_keeps_name():
    for text in ["Int32", "Nullable(String)", "DateTime64", "Map"]:
        assert input_type_name(ColumnType.parse(text), 5, 1) == text


def test_equal_types_hash_equal():
    a = ColumnType.parse("Nullable(UUID)")
    b = ColumnType(ColumnKind.UUID, nullable=True)
    assert a == b
    assert len({a, b}) == 1