"""Operations on the local ClickHouse database that receives pulled data."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Protocol, Sequence

__all__ = [
    "SqlExecutor",
    "FilterCondition",
    "TableInfo",
    "ClickHouseClient",
]

_SINGLE_NODE_CLUSTERS = ("", "default")


class SqlExecutor(Protocol):
    """What the client needs from a ClickHouse connection."""

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> None:
        ...

    def query(
        self, sql: str, params: Mapping[str, Any] | None = None
    ) -> Sequence[Sequence[Any]]:
        ...


@dataclass(frozen=True)
class FilterCondition:
    """An incremental-pull filter: a column and the last value pulled."""

    column: str
    value: str = ""


@dataclass(frozen=True)
class TableInfo:
    """A table's code (its name in the database) and its descriptive name."""

    table_code: str
    table_name: str = ""


class ClickHouseClient:
    """Maintenance queries against the destination ClickHouse database."""

    def __init__(self, executor: SqlExecutor, database: str, cluster: str | None) -> None:
        self.executor = executor
        self.database = database
        self.cluster = cluster or ""

    def is_clustered(self) -> bool:
        """Whether statements must be sent ON CLUSTER."""
        return self.cluster not in _SINGLE_NODE_CLUSTERS

    def clear_table_data(self, table_name: str) -> None:
        """Remove every row of table_name."""
        if self.is_clustered():
            sql = f"TRUNCATE TABLE IF EXISTS {table_name} ON CLUSTER {self.cluster}"
        else:
            sql = f"TRUNCATE TABLE {table_name}"
        self.executor.execute(sql, None)

    def clear_duplicate_data(
        self, table_name: str, key_columns: str, timestamp_column: str
    ) -> None:
        """Delete the older copy of rows whose key columns occur more than once."""
        on_cluster = f" ON CLUSTER {self.cluster}" if self.is_clustered() else ""
        sql = (
            f"Alter table {table_name}{on_cluster} delete where "
            f"({key_columns},{timestamp_column}) in "
            f"(SELECT {key_columns},min({timestamp_column}) {timestamp_column} "
            f"from {table_name} group by {key_columns} HAVING count(*)>1)"
        )
        self.executor.execute(sql, None)

    def table_names(self) -> list[TableInfo]:
        """List the tables of the database with their comments."""
        sql = "select name,comment from system.tables where database={database:String}"
        rows = self.executor.query(sql, {"database": self.database})
        return [TableInfo(table_code=row[0], table_name=row[1]) for row in rows]

    def max_filter(
        self, table_name: str, conditions: Iterable[FilterCondition]
    ) -> list[FilterCondition]:
        """Return the conditions with each value set to the column's maximum."""
        conditions = list(conditions)
        if not conditions:
            raise ValueError("no filter conditions given")
        columns = ",".join(
            f"cast(max({c.column}) as varchar) {c.column} " for c in conditions
        )
        rows = self.executor.query(f"select {columns} from {table_name}", None)
        if not rows:
            return conditions
        first = rows[0]
        return [
            condition if value is None else replace(condition, value=str(value))
            for condition, value in zip(conditions, first)
        ]