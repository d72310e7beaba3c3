"""Tables pulled by a job and their run logs kept in the metadata database."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .jobs import NotFoundError, Status, format_run_info, time_spent

__all__ = [
    "PullTable",
    "PullTableLog",
    "TableStore",
]


@dataclass
class PullTable:
    """A source table, or query, that a job pulls into a destination table."""

    job_id: int = 0
    table_id: int = 0
    table_code: str = ""
    table_name: str = ""
    dest_table: str = ""
    select_sql: str = ""
    filter_col: str = ""
    filter_val: str = ""
    key_col: str = ""
    buffer: int = 0
    status: str = ""
    last_run: int = 0
    run_info: str = ""


@dataclass
class PullTableLog:
    """One pull of a table; times are Unix seconds."""

    job_id: int = 0
    table_id: int = 0
    start_time: int = 0
    stop_time: int = 0
    time_spent: str = ""
    status: str = ""
    record_count: int = 0
    error_info: str = ""


_TABLE_COLUMNS = (
    "job_id,table_id,table_code,table_name,dest_table,select_sql,"
    "filter_col,filter_val,key_col,buffer,status,last_run"
)

_NEXT_TABLE_ID = (
    "WITH cet_table AS (SELECT table_id FROM pull_table WHERE job_id = ?) "
    "SELECT MIN(a.table_id)+1 FROM (SELECT table_id FROM cet_table UNION ALL SELECT 0) a "
    "LEFT JOIN cet_table b ON a.table_id+1 = b.table_id WHERE b.table_id IS NULL"
)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _ids(ids: Iterable[int] | str | None) -> list[int]:
    if ids is None:
        return []
    if isinstance(ids, str):
        return [int(part) for part in ids.split(",") if part.strip()]
    return [int(i) for i in ids]


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


class TableStore:
    """Pull tables and table logs stored through a database connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add_table(self, table: PullTable) -> int:
        """Insert table under the lowest free id of its job and return that id."""
        with self._conn:
            (table_id,) = self._conn.execute(_NEXT_TABLE_ID, (table.job_id,)).fetchone()
            self._conn.execute(
                "INSERT INTO pull_table(job_id,table_id,table_code,table_name,dest_table,"
                "select_sql,filter_col,filter_val,key_col,buffer,status) "
                "VALUES (?,?,?,?,?,?,?,?,?,?,?)",
                (table.job_id, table_id, table.table_code, table.table_name,
                 table.dest_table, table.select_sql, table.filter_col,
                 table.filter_val, table.key_col, table.buffer, _plain(table.status)),
            )
        return table_id

    def table_by_id(self, job_id: int, table_id: int) -> PullTable:
        row = self._conn.execute(
            f"SELECT {_TABLE_COLUMNS} FROM pull_table WHERE job_id = ? AND table_id = ?",
            (job_id, table_id),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"jobID {job_id},tableID {table_id} does not exist")
        return PullTable(*row)

    def table_ids(self, job_id: int, table_name: str = "", table_code: str = "") -> list[int]:
        """Ids of the job's tables whose name or code contains the given text."""
        sql = "SELECT table_id FROM pull_table WHERE job_id = ?"
        params: list[Any] = [job_id]
        if table_name or table_code:
            sql += " AND (table_name LIKE ? OR table_code LIKE ?)"
            params += [f"%{table_name}%", f"%{table_code}%"]
        sql += " ORDER BY table_id"
        return [row[0] for row in self._conn.execute(sql, params)]

    def tables(self, job_id: int, ids: Iterable[int] | str | None) -> list[PullTable]:
        """The job's tables among ids, ordered by id, with last-run information."""
        id_list = _ids(ids)
        if not id_list:
            return []
        marks = ",".join("?" * len(id_list))
        columns = ",".join(f"a.{c}" for c in _TABLE_COLUMNS.split(","))
        rows = self._conn.execute(
            f"SELECT {columns},COALESCE(c.status,''),COALESCE(c.error_info,'') "
            "FROM pull_table a LEFT JOIN pull_table_log c "
            "ON a.job_id = c.job_id AND a.table_id = c.table_id "
            "AND a.last_run = c.start_time "
            f"WHERE a.job_id = ? AND a.table_id IN ({marks}) ORDER BY a.table_id",
            (job_id, *id_list),
        ).fetchall()
        result = []
        for *fields, run_status, run_error in rows:
            table = PullTable(*fields)
            table.run_info = format_run_info(table.last_run, run_status, run_error)
            result.append(table)
        return result

    def alter_table(self, table: PullTable) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_table SET table_code=?,table_name=?,dest_table=?,select_sql=?,"
                "filter_col=?,filter_val=?,key_col=?,buffer=?,status=? "
                "WHERE job_id = ? AND table_id = ?",
                (table.table_code, table.table_name, table.dest_table, table.select_sql,
                 table.filter_col, table.filter_val, table.key_col, table.buffer,
                 _plain(table.status), table.job_id, table.table_id),
            )

    def delete_table(self, job_id: int, table_id: int) -> None:
        """Delete a table and its logs in one transaction."""
        with self._conn:
            for name in ("pull_table", "pull_table_log"):
                self._conn.execute(
                    f"DELETE FROM {name} WHERE job_id = ? AND table_id = ?",
                    (job_id, table_id),
                )

    def set_table_status(self, job_id: int, table_id: int, status: Status | str) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_table SET status = ? WHERE job_id = ? AND table_id = ?",
                (_plain(status), job_id, table_id),
            )

    def set_filter_value(self, job_id: int, table_id: int, filter_val: str) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_table SET filter_val = ? WHERE job_id = ? AND table_id = ?",
                (filter_val, job_id, table_id),
            )

    def enabled_tables(self, job_id: int) -> list[PullTable]:
        """The job's enabled tables; last_run is not loaded."""
        columns = _TABLE_COLUMNS.rsplit(",", 1)[0]
        rows = self._conn.execute(
            f"SELECT {columns} FROM pull_table WHERE job_id = ? AND status = ? "
            "ORDER BY table_id",
            (job_id, Status.ENABLED.value),
        ).fetchall()
        return [PullTable(*row) for row in rows]

    def set_last_run(self, job_id: int, table_id: int, start_time: int) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_table SET last_run = ? WHERE job_id = ? AND table_id = ?",
                (start_time, job_id, table_id),
            )

    def source_ddl(self, job_id: int, table_id: int) -> str:
        """The stored DDL of the source table, or "" when there is none."""
        row = self._conn.execute(
            "SELECT source_ddl FROM pull_table WHERE job_id = ? AND table_id = ?",
            (job_id, table_id),
        ).fetchone()
        return row[0] if row else ""

    def start_log(self, job_id: int, table_id: int, now: int | None = None) -> int:
        """Record the start of a pull and return its start time."""
        start_time = _now(now)
        with self._conn:
            self._conn.execute(
                "INSERT INTO pull_table_log(job_id, table_id, start_time) VALUES (?, ?, ?)",
                (job_id, table_id, start_time),
            )
        return start_time

    def stop_log(
        self,
        job_id: int,
        table_id: int,
        start_time: int,
        record_count: int = 0,
        error_info: str = "",
        now: int | None = None,
    ) -> None:
        """Record the end of a pull; it failed if error_info is not empty."""
        status = "failed" if error_info else "completed"
        with self._conn:
            self._conn.execute(
                "UPDATE pull_table_log SET stop_time = ?, status = ?, error_info = ?, "
                "record_count = ? WHERE job_id = ? AND table_id = ? AND start_time = ?",
                (_now(now), status, error_info, record_count, job_id, table_id,
                 start_time),
            )

    def log_ids(self, job_id: int, table_id: int, status: str | None = "") -> list[int]:
        """Start times of the table's logs, newest first, optionally by status."""
        sql = "SELECT start_time FROM pull_table_log WHERE job_id = ? AND table_id = ?"
        params: list[Any] = [job_id, table_id]
        if status:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY start_time DESC"
        return [row[0] for row in self._conn.execute(sql, params)]

    def logs(
        self, job_id: int, table_id: int, ids: Iterable[int] | str | None
    ) -> list[PullTableLog]:
        """The table's logs with the given start times, newest first."""
        id_list = _ids(ids)
        if not id_list:
            return []
        marks = ",".join("?" * len(id_list))
        rows = self._conn.execute(
            "SELECT job_id,table_id,start_time,stop_time,status,error_info,record_count "
            "FROM pull_table_log WHERE job_id = ? AND table_id = ? "
            f"AND start_time IN ({marks}) ORDER BY start_time DESC",
            (job_id, table_id, *id_list),
        ).fetchall()
        return [
            PullTableLog(job_id=j, table_id=t, start_time=start, stop_time=stop,
                         time_spent=time_spent(start, stop), status=status,
                         record_count=count, error_info=error)
            for j, t, start, stop, status, error, count in rows
        ]

    def clear_logs(self, job_id: int, table_id: int) -> None:
        """Delete every log of the table except the newest."""
        with self._conn:
            self._conn.execute(
                "DELETE FROM pull_table_log WHERE job_id = ? AND table_id = ? "
                "AND start_time < (SELECT COALESCE(MAX(start_time),0) FROM pull_table_log "
                "WHERE job_id = ? AND table_id = ?)",
                (job_id, table_id, job_id, table_id),
            )

    def delete_log(self, job_id: int, table_id: int, start_time: int) -> None:
        with self._conn:
            self._conn.execute(
                "DELETE FROM pull_table_log WHERE job_id = ? AND table_id = ? "
                "AND start_time = ?",
                (job_id, table_id, start_time),
            )