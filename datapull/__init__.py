"""Pull-job metadata and run logs, paged requests, and ClickHouse column buffers."""

__version__ = "0.1.0"

__all__ = [
    "conversions",
    "column_types",
    "column_buffer",
    "clickhouse",
    "jobs",
    "tables",
    "control",
]