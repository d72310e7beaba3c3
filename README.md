# datapull

Building blocks for data-pull jobs that copy tables from a source database
into ClickHouse. The package keeps job and table definitions with their run
logs, answers paged management requests, and checks and converts values
column by column before an insert.

## Modules

- `datapull.conversions`: value parsing.
  - `uint128_from_bytes` / `uint128_from_hex` and `uint256_from_bytes` /
    `uint256_from_hex` read little-endian `UInt128` / `UInt256` values.
  - `point_from_str` reads `"(x, y)"` or `"x,y"` into a `Point`.
  - `pad_number_with_zeros` right-pads a digit string with zeros.
  - `decimal_to_int(value, scale)` turns `"12.5"` into a 64-bit integer scaled
    by `10**scale`.
  - `convert_to_time` accepts a `datetime`, text (`YYYY-MM-DD HH:MM:SS[.ffffff]`,
    RFC 3339, `YYYY-MM-DD`, RFC 822, RFC 850), bytes, or a Unix timestamp.
    Text without a zone is read as UTC. A timestamp gives an aware local time.
  - Every failure raises `ConversionError`, a `ValueError`.
- `datapull.column_types`: `ColumnKind` lists the supported ClickHouse types.
  - `ColumnType.parse("Nullable(Int32)")` builds a `ColumnType`. Unknown types
    raise `UnsupportedColumnTypeError`, and so do nullable forms that have no
    buffer, such as `Nullable(Array)`.
  - `input_type_name` gives the type name sent with the data, for example
    `Decimal(18,4)` or `Nullable(Decimal(9,2))` for decimal columns.
- `datapull.column_buffer`: `ColumnBuffer(name, column_type, *args)` holds one
  column's values.
  - Decimal types need precision and scale. `DateTime64` takes an optional
    precision.
  - `append` checks and converts each value, and on a nullable column it
    accepts `None`.
  - `reset` drops the values, and `input_type` gives the insert type name.
  - `len()` and iteration give the count and the buffered values.
- `datapull.clickhouse`: `ClickHouseClient(executor, database, cluster)` runs
  statements through any object that has `execute(sql, params)` and
  `query(sql, params)`. Statements carry `ON CLUSTER` unless the cluster is
  empty or `default`.
  - `clear_table_data` truncates a table.
  - `clear_duplicate_data` deletes the older copy of rows whose keys repeat.
  - `table_names` lists the tables as `TableInfo`.
  - `max_filter` returns `FilterCondition`s updated to each column's maximum.
- `datapull.jobs`: `create_schema(conn)` creates the metadata tables in a
  `sqlite3` connection.
  - `JobStore` adds jobs under the lowest free id, looks them up by id or by
    user and name, and updates them. A missing job raises `NotFoundError`.
  - `JobStore.delete_job` removes a job together with its tables and all of
    their logs.
  - `JobStore` also lists, filters and enables jobs, and records run logs with
    `start_log` / `stop_log`.
  - `time_spent` formats a duration such as `1h2m5s`. `format_run_info` builds
    a last-run summary.
- `datapull.tables`: `TableStore` does the same for the tables of a job and
  their pull logs, including the filter value and the stored source DDL.
- `datapull.control`: `parse_job_request`, `parse_job_log_request` and
  `parse_table_request` read request maps into request objects. `page_index`
  defaults to 1 and `page_size` to 50. A bad parameter raises `ParamError`, and
  a table request needs `job_name`.
  - `PullController` answers each request with a `Response` whose negative
    `code` means failure.
  - List queries are paged through a `PageCache` kept per operator. The cache
    reloads when the query changes or page 1 is asked for.
  - Each page is packed with msgpack into `DataSet.arr_data`.
  - Call `resolve_table_request` before a table operation to bind the request
    to its job.

## Install

```
pip install .
pip install ".[test]"   # with pytest
```

## Example

```python
import sqlite3

from datapull.jobs import JobStore, create_schema
from datapull.tables import TableStore
from datapull.control import PullController, parse_job_request

conn = sqlite3.connect(":memory:")
create_schema(conn)
controller = PullController(JobStore(conn), TableStore(conn))

request = parse_job_request({"job_name": "orders", "cron_expression": "0 * * * *"})
response = controller.add_job(request)
print(response.code)   # the new job id, 1
```

```python
from datapull.column_types import ColumnType
from datapull.column_buffer import ColumnBuffer

buf = ColumnBuffer("amount", ColumnType.parse("Decimal32"), 9, 2)
buf.append("12.5")
print(list(buf), buf.input_type())   # [1250] Decimal(9,2)
```

## What it does not do

The package does not include any of the following:

- a scheduler or a worker that runs jobs on their cron expressions;
- drivers for source databases;
- a ClickHouse connection, so you supply the executor;
- a command-line tool or a server.

It stores metadata only through a `sqlite3` connection.

## Tests

```
pytest
```