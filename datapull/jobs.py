"""Pull jobs and their run logs kept in the metadata database."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

__all__ = [
    "Status",
    "NotFoundError",
    "PullJob",
    "PullJobLog",
    "JobStore",
    "create_schema",
    "time_spent",
    "format_run_info",
]


class Status(str, Enum):
    """Whether a job or table is scheduled."""

    ENABLED = "enabled"
    DISABLED = "disabled"

    def __str__(self) -> str:
        return self.value


class NotFoundError(LookupError):
    """Raised when a requested job does not exist."""


@dataclass
class PullJob:
    """A scheduled job that pulls tables from one data source."""

    user_id: int = 0
    job_id: int = 0
    job_name: str = ""
    plugin_uuid: str = ""
    ds_id: int = 0
    cron_expression: str = ""
    skip_hour: str = ""
    is_debug: str = ""
    status: str = ""
    last_run: int = 0
    run_info: str = ""
    load_status: str = ""


@dataclass
class PullJobLog:
    """One run of a job; times are Unix seconds."""

    job_id: int = 0
    start_time: int = 0
    stop_time: int = 0
    time_spent: str = ""
    status: str = ""
    error_info: str = ""


_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS pull_job (
        user_id INTEGER NOT NULL DEFAULT 0,
        job_id INTEGER PRIMARY KEY,
        job_name TEXT NOT NULL DEFAULT '',
        plugin_uuid TEXT NOT NULL DEFAULT '',
        ds_id INTEGER NOT NULL DEFAULT 0,
        cron_expression TEXT NOT NULL DEFAULT '',
        skip_hour TEXT NOT NULL DEFAULT '',
        is_debug TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT '',
        last_run INTEGER NOT NULL DEFAULT 0)""",
    """CREATE TABLE IF NOT EXISTS pull_job_log (
        job_id INTEGER NOT NULL,
        start_time INTEGER NOT NULL,
        stop_time INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT '',
        error_info TEXT NOT NULL DEFAULT '')""",
    """CREATE TABLE IF NOT EXISTS pull_table (
        job_id INTEGER NOT NULL,
        table_id INTEGER NOT NULL,
        table_code TEXT NOT NULL DEFAULT '',
        table_name TEXT NOT NULL DEFAULT '',
        dest_table TEXT NOT NULL DEFAULT '',
        select_sql TEXT NOT NULL DEFAULT '',
        filter_col TEXT NOT NULL DEFAULT '',
        filter_val TEXT NOT NULL DEFAULT '',
        key_col TEXT NOT NULL DEFAULT '',
        buffer INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT '',
        last_run INTEGER NOT NULL DEFAULT 0,
        source_ddl TEXT NOT NULL DEFAULT '',
        PRIMARY KEY (job_id, table_id))""",
    """CREATE TABLE IF NOT EXISTS pull_table_log (
        job_id INTEGER NOT NULL,
        table_id INTEGER NOT NULL,
        start_time INTEGER NOT NULL,
        stop_time INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT '',
        record_count INTEGER NOT NULL DEFAULT 0,
        error_info TEXT NOT NULL DEFAULT '')""",
)

_JOB_COLUMNS = (
    "user_id,job_id,job_name,plugin_uuid,ds_id,cron_expression,"
    "skip_hour,is_debug,status,last_run"
)

_NEXT_JOB_ID = (
    "SELECT MIN(a.job_id)+1 FROM (SELECT job_id FROM pull_job UNION ALL SELECT 0) a "
    "LEFT JOIN pull_job b ON a.job_id+1 = b.job_id WHERE b.job_id IS NULL"
)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the job, table and log tables if they are missing."""
    with conn:
        for statement in _SCHEMA:
            conn.execute(statement)


def time_spent(start_time: int, stop_time: int) -> str:
    """Duration between two Unix times written like "1h2m5s"."""
    seconds = int(stop_time) - int(start_time)
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    hours, rest = divmod(abs(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def format_run_info(last_run: int, status: str, error: str) -> str:
    """Summary of the last run: "[time]status:error", "[time]status" or ""."""
    if last_run <= 0:
        return ""
    stamp = datetime.fromtimestamp(last_run).strftime("%Y-%m-%d %H:%M:%S")
    if error:
        return f"[{stamp}]{status}:{error}"
    if status:
        return f"[{stamp}]{status}"
    return ""


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _id_list(ids: Iterable[int] | str | None) -> list[int]:
    if ids is None:
        return []
    if isinstance(ids, str):
        return [int(part) for part in ids.split(",") if part.strip()]
    return [int(i) for i in ids]


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


class JobStore:
    """Pull jobs and job logs stored through a database connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add_job(self, job: PullJob) -> int:
        """Insert job under the lowest free job id and return that id."""
        with self._conn:
            (job_id,) = self._conn.execute(_NEXT_JOB_ID).fetchone()
            self._conn.execute(
                "INSERT INTO pull_job(user_id,job_id,job_name,plugin_uuid,ds_id,"
                "cron_expression,skip_hour,is_debug,status) VALUES (?,?,?,?,?,?,?,?,?)",
                (job.user_id, job_id, job.job_name, job.plugin_uuid, job.ds_id,
                 job.cron_expression, job.skip_hour, _plain(job.is_debug),
                 _plain(job.status)),
            )
        return job_id

    def job_by_id(self, job_id: int) -> PullJob:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM pull_job WHERE job_id = ?", (job_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"jobID {job_id} does not exist")
        return PullJob(*row)

    def job_by_name(self, user_id: int, job_name: str) -> PullJob:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM pull_job WHERE user_id = ? AND job_name = ?",
            (user_id, job_name),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"user_id {user_id}, job_name {job_name} does not exist")
        return PullJob(*row)

    def update_job(self, job: PullJob) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_job SET job_name=?,plugin_uuid=?,ds_id=?,cron_expression=?,"
                "skip_hour=?,is_debug=?,status=? WHERE job_id = ?",
                (job.job_name, job.plugin_uuid, job.ds_id, job.cron_expression,
                 job.skip_hour, _plain(job.is_debug), _plain(job.status), job.job_id),
            )

    def delete_job(self, job_id: int) -> None:
        """Delete a job with its tables and every log of both, in one transaction."""
        with self._conn:
            for table in ("pull_table", "pull_job", "pull_job_log", "pull_table_log"):
                self._conn.execute(f"DELETE FROM {table} WHERE job_id = ?", (job_id,))

    def jobs(self, user_id: int, ids: Iterable[int] | str | None) -> list[PullJob]:
        """The user's jobs among ids, ordered by id, with last-run information."""
        id_list = _id_list(ids)
        if not id_list:
            return []
        marks = ",".join("?" * len(id_list))
        columns = ",".join(f"a.{c}" for c in _JOB_COLUMNS.split(","))
        rows = self._conn.execute(
            f"SELECT {columns},COALESCE(c.status,''),COALESCE(c.error_info,'') "
            "FROM pull_job a LEFT JOIN pull_job_log c "
            "ON a.job_id = c.job_id AND a.last_run = c.start_time "
            f"WHERE a.user_id = ? AND a.job_id IN ({marks}) ORDER BY a.job_id",
            (user_id, *id_list),
        ).fetchall()
        result = []
        for *fields, run_status, run_error in rows:
            job = PullJob(*fields)
            job.run_info = format_run_info(job.last_run, run_status, run_error)
            result.append(job)
        return result

    def job_ids(self, user_id: int, job_name: str = "") -> list[int]:
        """Ids of the user's jobs whose name contains job_name."""
        sql = "SELECT job_id FROM pull_job WHERE user_id = ?"
        params: list[Any] = [user_id]
        if job_name:
            sql += " AND job_name LIKE ?"
            params.append(f"%{job_name}%")
        sql += " ORDER BY job_id"
        return [row[0] for row in self._conn.execute(sql, params)]

    def set_job_status(self, job_id: int, status: Status | str) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_job SET status = ? WHERE job_id = ?", (_plain(status), job_id)
            )

    def enabled_jobs(self) -> list[PullJob]:
        rows = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM pull_job WHERE status = ?", (Status.ENABLED.value,)
        ).fetchall()
        return [PullJob(*row) for row in rows]

    def set_last_run(self, job_id: int, start_time: int) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_job SET last_run = ? WHERE job_id = ?", (start_time, job_id)
            )

    def start_log(self, job_id: int, now: int | None = None) -> int:
        """Record the start of a run and return its start time."""
        start_time = _now(now)
        with self._conn:
            self._conn.execute(
                "INSERT INTO pull_job_log(job_id, start_time) VALUES (?, ?)",
                (job_id, start_time),
            )
        return start_time

    def stop_log(
        self, job_id: int, start_time: int, error_info: str = "", now: int | None = None
    ) -> None:
        """Record the end of a run; it failed if error_info is not empty."""
        status = "failed" if error_info else "completed"
        with self._conn:
            self._conn.execute(
                "UPDATE pull_job_log SET stop_time = ?, status = ?, error_info = ? "
                "WHERE job_id = ? AND start_time = ?",
                (_now(now), status, error_info, job_id, start_time),
            )

    def log_ids(self, job_id: int, status: str | None = "") -> list[int]:
        """Start times of the job's logs, newest first, optionally by status."""
        if status:
            rows = self._conn.execute(
                "SELECT start_time FROM pull_job_log WHERE job_id = ? AND status = ? "
                "ORDER BY start_time DESC",
                (job_id, status),
            )
        else:
            rows = self._conn.execute(
                "SELECT start_time FROM pull_job_log WHERE job_id = ? "
                "ORDER BY start_time DESC",
                (job_id,),
            )
        return [row[0] for row in rows]

    def logs(self, job_id: int, ids: Iterable[int] | str | None) -> list[PullJobLog]:
        """The job's logs with the given start times, newest first."""
        id_list = _id_list(ids)
        if not id_list:
            return []
        marks = ",".join("?" * len(id_list))
        rows = self._conn.execute(
            "SELECT job_id,start_time,stop_time,status,error_info FROM pull_job_log "
            f"WHERE job_id = ? AND start_time IN ({marks}) ORDER BY start_time DESC",
            (job_id, *id_list),
        ).fetchall()
        return [
            PullJobLog(job_id=j, start_time=start, stop_time=stop,
                       time_spent=time_spent(start, stop), status=status,
                       error_info=error)
            for j, start, stop, status, error in rows
        ]

    def clear_logs(self, job_id: int) -> None:
        """Delete every log of the job except the newest."""
        with self._conn:
            self._conn.execute(
                "DELETE FROM pull_job_log WHERE job_id = ? AND start_time < "
                "(SELECT COALESCE(MAX(start_time),0) FROM pull_job_log WHERE job_id = ?)",
                (job_id, job_id),
            )

    def delete_log(self, job_id: int, start_time: int) -> None:
        with self._conn:
            self._conn.execute(
                "DELETE FROM pull_job_log WHERE job_id = ? AND start_time = ?",
                (job_id, start_time),
            )