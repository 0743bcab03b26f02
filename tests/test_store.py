import json
from datetime import timedelta

from sparktimer.models import Session, SparkState
from sparktimer.store import TABLE_NAME, SparkStore

from tests.conftest import T0


def test_missing_spark_loads_as_none(store):
    assert store.load_schedule("tee-time-timer") is None


def test_round_trip_keeps_session_and_schedule(store, abc_schedule):
    session = Session(
        anchor=T0 + timedelta(minutes=30),
        session_start_time=T0,
        is_active=True,
        completed_activity_ids={"c", "b"},
    )
    assert store.save_schedule("tee-time-timer", SparkState(schedule=abc_schedule, session=session))

    loaded = store.load_schedule("tee-time-timer")
    assert loaded.schedule == abc_schedule
    assert loaded.session == session
    assert loaded.session.session_start_time == T0


def test_document_uses_iso_datetimes_and_sorted_ids(store, abc_schedule):
    session = Session(session_start_time=T0, is_active=True, completed_activity_ids={"c", "a"})
    store.save_schedule("tee-time-timer", SparkState(schedule=abc_schedule, session=session))

    with store.get_db_connection() as conn:
        row = conn.execute(f"SELECT data FROM {TABLE_NAME} WHERE spark_id = ?", ("tee-time-timer",)).fetchone()
    document = json.loads(row["data"])

    assert document["session"]["completed_activity_ids"] == ["a", "c"]
    assert document["session"]["session_start_time"].startswith("2025-06-01T08:00:00")
    assert document["schedule"]["anchor_mode"] == "deadline"


def test_save_overwrites_previous_state(store, abc_schedule):
    store.save_schedule("tee-time-timer", SparkState(schedule=abc_schedule))
    store.save_schedule("tee-time-timer", SparkState(schedule=abc_schedule, session=Session(is_active=True, session_start_time=T0)))

    assert store.load_schedule("tee-time-timer").session.is_active
    assert store.spark_ids() == ["tee-time-timer"]


def test_corrupt_document_is_ignored(store):
    with store.get_db_connection() as conn:
        conn.execute(
            f"INSERT INTO {TABLE_NAME} (spark_id, data, updated_at) VALUES (?, ?, ?)",
            ("minute-minder", "{not json", T0.isoformat()),
        )
        conn.commit()
    assert store.load_schedule("minute-minder") is None


def test_delete(store, abc_schedule):
    store.save_schedule("tee-time-timer", SparkState(schedule=abc_schedule))
    assert store.delete("tee-time-timer")
    assert store.load_schedule("tee-time-timer") is None


def test_state_survives_a_new_store_instance(settings, abc_schedule):
    SparkStore(settings.store_db_path).save_schedule("tee-time-timer", SparkState(schedule=abc_schedule))
    assert SparkStore(settings.store_db_path).load_schedule("tee-time-timer").schedule == abc_schedule
