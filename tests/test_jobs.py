import sqlite3

import pytest

from datapull.jobs import (
    JobStore,
    NotFoundError,
    PullJob,
    Status,
    create_schema,
    format_run_info,
    time_spent,
)


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn):
    return JobStore(conn)


def make_job(name="job", user_id=7, status=Status.ENABLED):
    return PullJob(user_id=user_id, job_name=name, plugin_uuid="uuid-1", ds_id=3,
                   cron_expression="0 * * * *", skip_hour="1,2", is_debug="no",
                   status=status)


def test_add_job_fills_lowest_gap(store):
    first = store.add_job(make_job("a"))
    second = store.add_job(make_job("b"))
    assert (first, second) == (1, 2)
    store.delete_job(first)
    assert store.add_job(make_job("c")) == first


def test_job_by_id_round_trip(store):
    job_id = store.add_job(make_job("alpha"))
    job = store.job_by_id(job_id)
    assert job.job_name == "alpha"
    assert job.skip_hour == "1,2"
    assert job.is_debug == "no"
    assert job.status == "enabled"
    assert job.last_run == 0


def test_job_by_name(store):
    job_id = store.add_job(make_job("alpha", user_id=9))
    assert store.job_by_name(9, "alpha").job_id == job_id
    with pytest.raises(NotFoundError):
        store.job_by_name(8, "alpha")


def test_job_by_id_missing(store):
    with pytest.raises(NotFoundError):
        store.job_by_id(42)


def test_update_job(store):
    job_id = store.add_job(make_job("alpha"))
    job = store.job_by_id(job_id)
    job.job_name = "beta"
    job.cron_expression = "*/5 * * * *"
    store.update_job(job)
    updated = store.job_by_id(job_id)
    assert updated.job_name == "beta"
    assert updated.cron_expression == "*/5 * * * *"


def test_delete_job_removes_related_rows(store, conn):
    job_id = store.add_job(make_job("alpha"))
    conn.execute("INSERT INTO pull_table(job_id, table_id) VALUES (?, 1)", (job_id,))
    conn.execute("INSERT INTO pull_table_log(job_id, table_id, start_time) VALUES (?, 1, 5)",
                 (job_id,))
    conn.commit()
    store.start_log(job_id, now=100)
    store.delete_job(job_id)
    for table in ("pull_job", "pull_job_log", "pull_table", "pull_table_log"):
        count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        assert count == 0


def test_jobs_filters_by_user_and_ids(store):
    a = store.add_job(make_job("a", user_id=7))
    b = store.add_job(make_job("b", user_id=7))
    store.add_job(make_job("c", user_id=8))
    assert [j.job_name for j in store.jobs(7, [b, a])] == ["a", "b"]
    assert [j.job_id for j in store.jobs(7, f"{a},{b}")] == [a, b]
    assert store.jobs(7, []) == []


def test_jobs_run_info_from_last_log(store):
    job_id = store.add_job(make_job("a"))
    assert store.jobs(7, [job_id])[0].run_info == ""
    start = store.start_log(job_id, now=1_700_000_000)
    store.stop_log(job_id, start, "boom", now=1_700_000_010)
    store.set_last_run(job_id, start)
    info = store.jobs(7, [job_id])[0].run_info
    assert info.startswith("[")
    assert info.endswith("]failed:boom")


def test_job_ids_name_filter(store):
    a = store.add_job(make_job("orders_daily"))
    store.add_job(make_job("users"))
    assert store.job_ids(7, "orders") == [a]
    assert len(store.job_ids(7, "")) == 2
    assert store.job_ids(99) == []


def test_set_job_status_and_enabled_jobs(store):
    a = store.add_job(make_job("a"))
    b = store.add_job(make_job("b"))
    store.set_job_status(b, Status.DISABLED)
    assert [j.job_id for j in store.enabled_jobs()] == [a]
    assert store.job_by_id(b).status == "disabled"


def test_logs_lifecycle(store):
    job_id = store.add_job(make_job("a"))
    first = store.start_log(job_id, now=1000)
    store.stop_log(job_id, first, "", now=1010)
    second = store.start_log(job_id, now=2000)
    store.stop_log(job_id, second, "bad", now=2003)
    assert store.log_ids(job_id) == [second, first]
    assert store.log_ids(job_id, "completed") == [first]
    logs = store.logs(job_id, store.log_ids(job_id))
    assert [log.start_time for log in logs] == [second, first]
    assert logs[0].status == "failed"
    assert logs[0].error_info == "bad"
    assert logs[1].status == "completed"
    assert logs[1].time_spent == time_spent(first, 1010)


def test_clear_logs_keeps_newest(store):
    job_id = store.add_job(make_job("a"))
    for now in (10, 20, 30):
        store.start_log(job_id, now=now)
    store.clear_logs(job_id)
    assert store.log_ids(job_id) == [30]


def test_delete_log(store):
    job_id = store.add_job(make_job("a"))
    store.start_log(job_id, now=10)
    store.start_log(job_id, now=20)
    store.delete_log(job_id, 10)
    assert store.log_ids(job_id) == [20]


def test_time_spent():
    assert time_spent(100, 100) == "0s"
    assert time_spent(0, 3725) == "1h2m5s"
    assert time_spent(10, 5) == "-5s"


def test_format_run_info_without_run():
    assert format_run_info(0, "completed", "boom") == ""


def test_format_run_info_status_only():
    info = format_run_info(1_700_000_000, "completed", "")
    assert info.endswith("]completed")
    assert ":" not in info.split("]", 1)[1]