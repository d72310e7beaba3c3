"""Request parsing, paging and responses for managing pull jobs and tables."""

from __future__ import annotations

import functools
import sqlite3
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

import msgpack

from .jobs import JobStore, PullJob, PullJobLog
from .tables import PullTable, TableStore

__all__ = [
    "ParamError",
    "Response",
    "DataSet",
    "PageBuffer",
    "PageCache",
    "JobRequest",
    "JobLogRequest",
    "TableRequest",
    "PullController",
    "parse_job_request",
    "parse_job_log_request",
    "parse_table_request",
    "format_datetime",
    "parse_datetime",
]

DEFAULT_PAGE_SIZE = 50
_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ParamError(ValueError):
    """Raised when a request parameter is missing or has the wrong type."""


@dataclass
class DataSet:
    """A page of packed records and the total number of records."""

    total: int = 0
    arr_data: bytes | None = None


@dataclass
class Response:
    """Outcome of an operation; a negative code means failure."""

    code: int = 0
    info: str = "success"
    data: DataSet | None = None

    @property
    def ok(self) -> bool:
        return self.code >= 0

    @classmethod
    def success(cls, data: DataSet | None = None) -> Response:
        return cls(code=0, info="success", data=data)

    @classmethod
    def failure(cls, info: str) -> Response:
        return cls(code=-1, info=info)

    @classmethod
    def of_int(cls, value: int) -> Response:
        """A successful response carrying an integer in its code."""
        return cls(code=int(value), info="success")

    @classmethod
    def of_str(cls, text: str) -> Response:
        """A successful response carrying text in its info."""
        return cls(code=0, info=text)


def format_datetime(timestamp: int) -> str:
    """Unix seconds as local "YYYY-MM-DD HH:MM:SS"."""
    return datetime.fromtimestamp(int(timestamp)).strftime(_DATETIME_FORMAT)


def parse_datetime(text: str) -> int:
    """Local "YYYY-MM-DD HH:MM:SS" as Unix seconds."""
    try:
        return int(datetime.strptime(text, _DATETIME_FORMAT).timestamp())
    except (TypeError, ValueError):
        raise ParamError(f"cannot parse {text!r} as a date and time") from None


@dataclass(frozen=True)
class PageBuffer:
    """The ids matched by one query, split into pages."""

    operator_id: int
    query_param: str
    page_size: int
    ids: tuple[int, ...] = ()

    @property
    def total(self) -> int:
        return len(self.ids)

    def page_ids(self, page_index: int) -> list[int]:
        """The ids on the zero-based page page_index."""
        if self.page_size <= 0:
            raise ParamError(f"invalid page size {self.page_size}")
        start = page_index * self.page_size
        if page_index < 0 or start >= self.total:
            raise IndexError(f"page index {page_index} out of range")
        return list(self.ids[start:start + self.page_size])


class PageCache:
    """The last query's page buffer of each operator."""

    def __init__(self) -> None:
        self._buffers: dict[int, PageBuffer] = {}
        self._lock = threading.Lock()

    def page(
        self,
        operator_id: int,
        query_param: str,
        page_size: int,
        ids_loader: Callable[[], Iterable[int]],
        refresh: bool = False,
    ) -> PageBuffer:
        """The operator's buffer, reloaded when the query changed or refresh is set."""
        with self._lock:
            buffer = self._buffers.get(operator_id)
        if buffer is None or buffer.query_param != query_param or refresh:
            buffer = PageBuffer(operator_id, query_param, page_size, tuple(ids_loader()))
            with self._lock:
                self._buffers[operator_id] = buffer
        return buffer


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ParamError(f"{key} is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise ParamError(f"{key} is not an integer")


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ParamError(f"{key} is not a string")
    return value


def _paging(data: Mapping[str, Any]) -> tuple[int, int]:
    page_index = _int(data, "page_index") or 1
    page_size = _int(data, "page_size") or DEFAULT_PAGE_SIZE
    return page_index, page_size


@dataclass
class JobRequest:
    """A request about pull jobs."""

    operator_id: int = 0
    operator_code: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    page_index: int = 1
    job: PullJob = field(default_factory=PullJob)

    def query_param(self) -> str:
        return f"pageSize:{self.page_size}, job_name:{self.job.job_name}"


@dataclass
class JobLogRequest:
    """A request about job logs; times are "YYYY-MM-DD HH:MM:SS" text."""

    operator_id: int = 0
    operator_code: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    page_index: int = 1
    job_id: int = 0
    start_time: str = ""
    stop_time: str = ""
    time_spent: str = ""
    status: str = ""
    error_info: str = ""

    def query_param(self) -> str:
        return f"job_id:{self.job_id}, status:{self.status}, page_size:{self.page_size}"


@dataclass
class TableRequest:
    """A request about the tables of the job named job_name."""

    operator_id: int = 0
    operator_code: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    page_index: int = 1
    job_name: str = ""
    table: PullTable = field(default_factory=PullTable)

    def query_param(self) -> str:
        return (f"pageSize:{self.page_size},tableCode:{self.table.table_code},"
                f"TableName:{self.table.table_name}")


def parse_job_request(data: Mapping[str, Any]) -> JobRequest:
    """Read a job request; page_index defaults to 1 and page_size to 50."""
    operator_id = _int(data, "operator_id")
    job = PullJob(
        user_id=operator_id,
        job_id=_int(data, "job_id"),
        job_name=_str(data, "job_name"),
        plugin_uuid=_str(data, "plugin_uuid"),
        ds_id=_int(data, "ds_id"),
        cron_expression=_str(data, "cron_expression"),
        skip_hour=_str(data, "skip_hour"),
        is_debug=_str(data, "is_debug"),
        status=_str(data, "status"),
        last_run=_int(data, "last_run"),
    )
    page_index, page_size = _paging(data)
    return JobRequest(operator_id=operator_id, page_size=page_size,
                      page_index=page_index, job=job)


def parse_job_log_request(data: Mapping[str, Any]) -> JobLogRequest:
    """Read a job log request; page_index defaults to 1 and page_size to 50."""
    page_index, page_size = _paging(data)
    return JobLogRequest(
        operator_id=_int(data, "operator_id"),
        page_size=page_size,
        page_index=page_index,
        job_id=_int(data, "job_id"),
        start_time=_str(data, "start_time"),
        stop_time=_str(data, "stop_time"),
        time_spent=_str(data, "time_spent"),
        status=_str(data, "status"),
        error_info=_str(data, "error_info"),
    )


def parse_table_request(data: Mapping[str, Any]) -> TableRequest:
    """Read a table request; job_name is required."""
    job_name = _str(data, "job_name")
    if not job_name:
        raise ParamError("require job_name")
    table = PullTable(
        table_id=_int(data, "table_id"),
        table_name=_str(data, "table_name"),
        table_code=_str(data, "table_code"),
        dest_table=_str(data, "dest_table"),
        select_sql=_str(data, "select_sql"),
        filter_col=_str(data, "filter_col"),
        filter_val=_str(data, "filter_val"),
        key_col=_str(data, "key_col"),
        buffer=_int(data, "buffer"),
        status=_str(data, "status"),
        last_run=_int(data, "last_run"),
    )
    page_index, page_size = _paging(data)
    return TableRequest(operator_id=_int(data, "operator_id"), page_size=page_size,
                        page_index=page_index, job_name=job_name, table=table)


_HANDLED = (sqlite3.Error, LookupError, ValueError)


def _respond(method: Callable[..., Response | None]) -> Callable[..., Response]:
    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        try:
            result = method(*args, **kwargs)
        except _HANDLED as exc:
            return Response.failure(str(exc))
        return Response.success() if result is None else result

    return wrapper


def _pack(records: list[dict[str, Any]], total: int) -> Response:
    return Response.success(DataSet(total=total, arr_data=msgpack.packb(records)))


def _job_log_record(log: PullJobLog) -> dict[str, Any]:
    return {
        "job_id": log.job_id,
        "start_time": format_datetime(log.start_time),
        "stop_time": format_datetime(log.stop_time),
        "time_spent": log.time_spent,
        "status": log.status,
        "error_info": log.error_info,
    }


class PullController:
    """Answers job, job log and table requests with responses."""

    def __init__(self, jobs: JobStore, tables: TableStore) -> None:
        self.jobs = jobs
        self.tables = tables
        self._job_pages = PageCache()
        self._job_log_pages = PageCache()
        self._table_pages = PageCache()

    @_respond
    def add_job(self, request: JobRequest) -> Response:
        return Response.of_int(self.jobs.add_job(request.job))

    @_respond
    def alter_job(self, request: JobRequest) -> None:
        self.jobs.update_job(request.job)

    @_respond
    def delete_job(self, request: JobRequest) -> None:
        self.jobs.delete_job(request.job.job_id)

    @_respond
    def get_jobs(self, request: JobRequest, online_ids: Iterable[int] = ()) -> Response:
        """A page of the operator's jobs, each marked loaded or unloaded."""
        user_id = request.job.user_id
        buffer = self._job_pages.page(
            request.operator_id, request.query_param(), request.page_size,
            lambda: self.jobs.job_ids(user_id, request.job.job_name),
            request.page_index == 1,
        )
        if buffer.total == 0:
            return Response.success(DataSet(total=0, arr_data=None))
        online = set(online_ids)
        jobs = self.jobs.jobs(user_id, buffer.page_ids(request.page_index - 1))
        for job in jobs:
            job.load_status = "loaded" if job.job_id in online else "unloaded"
        return _pack([asdict(job) for job in jobs], buffer.total)

    @_respond
    def set_job_status(self, request: JobRequest) -> None:
        self.jobs.set_job_status(request.job.job_id, request.job.status)

    @_respond
    def clear_job_log(self, request: JobLogRequest) -> None:
        self.jobs.clear_logs(request.job_id)

    @_respond
    def delete_job_log(self, request: JobLogRequest) -> None:
        self.jobs.delete_log(request.job_id, parse_datetime(request.start_time))

    @_respond
    def query_job_logs(self, request: JobLogRequest) -> Response:
        """A page of a job's logs, newest first, with times as text."""
        buffer = self._job_log_pages.page(
            request.operator_id, request.query_param(), request.page_size,
            lambda: self.jobs.log_ids(request.job_id, request.status),
            request.page_index == 1,
        )
        if buffer.total == 0:
            return Response.success(DataSet(total=0, arr_data=None))
        logs = self.jobs.logs(request.job_id, buffer.page_ids(request.page_index - 1))
        return _pack([_job_log_record(log) for log in logs], buffer.total)

    def resolve_table_request(self, request: TableRequest, operator_id: int) -> PullJob:
        """Look up the request's job by name and bind the table to it."""
        job = self.jobs.job_by_name(operator_id, request.job_name)
        request.operator_id = operator_id
        request.table.job_id = job.job_id
        return job

    @_respond
    def append_table(self, request: TableRequest) -> Response:
        return Response.of_int(self.tables.add_table(request.table))

    @_respond
    def modify_table(self, request: TableRequest) -> None:
        self.tables.alter_table(request.table)

    @_respond
    def remove_table(self, request: TableRequest) -> None:
        self.tables.delete_table(request.table.job_id, request.table.table_id)

    @_respond
    def query_tables(self, request: TableRequest) -> Response:
        """A page of the job's tables matching the name or code."""
        table = request.table
        buffer = self._table_pages.page(
            request.operator_id, request.query_param(), request.page_size,
            lambda: self.tables.table_ids(table.job_id, table.table_name, table.table_code),
            request.page_index == 1,
        )
        if buffer.total == 0:
            return Response.success(DataSet(total=0, arr_data=None))
        tables = self.tables.tables(table.job_id, buffer.page_ids(request.page_index - 1))
        return _pack([asdict(t) for t in tables], buffer.total)

    @_respond
    def set_filter_value(self, request: TableRequest) -> None:
        table = request.table
        self.tables.set_filter_value(table.job_id, table.table_id, table.filter_val)

    @_respond
    def alter_table_status(self, request: TableRequest) -> None:
        table = request.table
        self.tables.set_table_status(table.job_id, table.table_id, table.status)

    @_respond
    def source_table_ddl(self, request: TableRequest) -> Response:
        table = request.table
        return Response.of_str(self.tables.source_ddl(table.job_id, table.table_id))