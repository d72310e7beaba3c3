import sqlite3

import pytest

from datapull.jobs import NotFoundError, Status, create_schema, format_run_info, time_spent
from datapull.tables import PullTable, PullTableLog, TableStore


@pytest.fixture
def store():
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    yield TableStore(conn)
    conn.close()


def _table(job_id=7, code="orders", name="Orders", status=Status.ENABLED):
    return PullTable(
        job_id=job_id,
        table_code=code,
        table_name=name,
        dest_table=f"dst_{code}",
        select_sql=f"select * from {code}",
        filter_col="updated_at",
        filter_val="",
        key_col="id",
        buffer=1000,
        status=status,
    )


def test_add_table_uses_lowest_free_id(store):
    ids = [store.add_table(_table(code=c)) for c in ("a", "b", "c")]
    assert ids == [1, 2, 3]
    store.delete_table(7, 2)
    assert store.add_table(_table(code="d")) == 2


def test_table_ids_are_per_job(store):
    store.add_table(_table(job_id=1))
    assert store.add_table(_table(job_id=2)) == 1


def test_table_by_id_round_trip(store):
    table_id = store.add_table(_table())
    loaded = store.table_by_id(7, table_id)
    assert loaded.table_code == "orders"
    assert loaded.dest_table == "dst_orders"
    assert loaded.buffer == 1000
    assert loaded.status == Status.ENABLED.value
    assert loaded.last_run == 0


def test_table_by_id_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.table_by_id(7, 99)


def test_table_ids_filter(store):
    store.add_table(_table(code="orders", name="Orders"))
    store.add_table(_table(code="items", name="Items"))
    store.add_table(_table(job_id=8, code="orders"))
    assert store.table_ids(7) == [1, 2]
    assert store.table_ids(7, table_name="Item", table_code="Item") == [2]
    assert store.table_ids(7, table_name="zzz", table_code="zzz") == []


def test_tables_with_run_info(store):
    t1 = store.add_table(_table(code="a"))
    t2 = store.add_table(_table(code="b"))
    start = store.start_log(7, t1, now=1_700_000_000)
    store.set_last_run(7, t1, start)
    store.stop_log(7, t1, start, record_count=5, error_info="boom", now=1_700_000_010)
    result = store.tables(7, f"{t2},{t1}")
    assert [t.table_id for t in result] == [t1, t2]
    assert result[0].run_info == format_run_info(start, "failed", "boom")
    assert result[1].run_info == ""


def test_tables_empty_ids(store):
    store.add_table(_table())
    assert store.tables(7, "") == []
    assert store.tables(7, None) == []


def test_alter_table(store):
    table_id = store.add_table(_table())
    changed = store.table_by_id(7, table_id)
    changed.table_name = "Renamed"
    changed.buffer = 50
    changed.status = Status.DISABLED
    store.alter_table(changed)
    loaded = store.table_by_id(7, table_id)
    assert loaded.table_name == "Renamed"
    assert loaded.buffer == 50
    assert loaded.status == "disabled"


def test_delete_table_removes_logs(store):
    table_id = store.add_table(_table())
    store.start_log(7, table_id, now=100)
    store.delete_table(7, table_id)
    assert store.log_ids(7, table_id) == []
    with pytest.raises(NotFoundError):
        store.table_by_id(7, table_id)


def test_status_filter_and_enabled_tables(store):
    t1 = store.add_table(_table(code="a"))
    t2 = store.add_table(_table(code="b"))
    store.set_table_status(7, t2, Status.DISABLED)
    store.set_filter_value(7, t1, '[{"column":"x","value":"3"}]')
    store.set_last_run(7, t1, 12345)
    enabled = store.enabled_tables(7)
    assert [t.table_id for t in enabled] == [t1]
    assert enabled[0].filter_val == '[{"column":"x","value":"3"}]'
    assert enabled[0].last_run == 0
    assert store.table_by_id(7, t1).last_run == 12345


def test_source_ddl_default_empty(store):
    table_id = store.add_table(_table())
    assert store.source_ddl(7, table_id) == ""
    assert store.source_ddl(7, 42) == ""


def test_logs_round_trip(store):
    table_id = store.add_table(_table())
    s1 = store.start_log(7, table_id, now=1000)
    store.stop_log(7, table_id, s1, record_count=12, now=1065)
    s2 = store.start_log(7, table_id, now=2000)
    store.stop_log(7, table_id, s2, error_info="bad", now=2003)
    assert store.log_ids(7, table_id) == [s2, s1]
    assert store.log_ids(7, table_id, "completed") == [s1]
    logs = store.logs(7, table_id, [s1, s2])
    assert logs[0] == PullTableLog(
        job_id=7, table_id=table_id, start_time=s2, stop_time=2003,
        time_spent=time_spent(s2, 2003), status="failed", record_count=0,
        error_info="bad",
    )
    assert logs[1].status == "completed"
    assert logs[1].record_count == 12


def test_clear_logs_keeps_newest(store):
    table_id = store.add_table(_table())
    for t in (10, 20, 30):
        store.start_log(7, table_id, now=t)
    store.start_log(7, table_id + 1, now=5)
    store.clear_logs(7, table_id)
    assert store.log_ids(7, table_id) == [30]
    assert store.log_ids(7, table_id + 1) == [5]


def test_delete_log(store):
    table_id = store.add_table(_table())
    store.start_log(7, table_id, now=10)
    store.start_log(7, table_id, now=20)
    store.delete_log(7, table_id, 10)
    assert store.log_ids(7, table_id) == [20]