import os

import pandas as pd
import pytest

from tip_estimator.errors import UpstreamUnavailableError
from tip_estimator.predictor import Predictor
from tip_estimator.table_store import AggregateTable, TableStore


def test_publish_and_read(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    version = store.publish(aggregate_frame, source="unit-test")

    assert store.versions() == [version]
    assert store.latest_version() == version

    table = store.read()
    assert isinstance(table, AggregateTable)
    assert table.version == version
    assert len(table) == len(aggregate_frame)
    pd.testing.assert_frame_equal(table.frame, aggregate_frame, check_dtype=False)

    meta = store.meta()
    assert meta["rows"] == len(aggregate_frame)
    assert meta["source"] == "unit-test"


def test_rows_are_typed(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    store.publish(aggregate_frame)

    row = store.read().rows[0]
    assert row.PULocationID == 1
    assert row.day_of_week == "Monday"
    assert row.total_rides == 2
    assert row.avg_tip == pytest.approx(3.0)


def test_republish_is_equivalent(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    first = store.publish(aggregate_frame)
    second = store.publish(aggregate_frame)

    assert store.versions() == sorted([first, second])
    assert store.latest_version() == second
    pd.testing.assert_frame_equal(store.read(first).frame, store.read(second).frame)


def test_failed_write_keeps_previous_version(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    good = store.publish(aggregate_frame)

    with pytest.raises(RuntimeError):
        with store.open_writer() as writer:
            writer.write(aggregate_frame)
            raise RuntimeError("boom")

    assert store.versions() == [good]
    assert store.latest_version() == good
    # No staging leftovers
    assert not [d for d in os.listdir(store.root) if d.startswith(".staging-")]


def test_pointer_failure_discards_moved_version(tmp_path, aggregate_frame, monkeypatch):
    store = TableStore(str(tmp_path), "tips")
    good = store.publish(aggregate_frame)

    def broken_pointer(version):
        raise OSError("disk full")

    monkeypatch.setattr(store, "_write_pointer", broken_pointer)
    with pytest.raises(OSError):
        store.publish(aggregate_frame)

    assert store.versions() == [good]
    assert store.latest_version() == good


def test_invalid_table_is_not_published(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    good = store.publish(aggregate_frame)

    bad = aggregate_frame.copy()
    bad.loc[0, 'Borough'] = 'Unknown'
    with pytest.raises(ValueError):
        store.publish(bad)

    dupes = pd.concat([aggregate_frame, aggregate_frame.iloc[:1]])
    with pytest.raises(ValueError):
        store.publish(dupes)

    assert store.latest_version() == good


def test_writer_must_write(tmp_path):
    store = TableStore(str(tmp_path), "tips")
    with pytest.raises(ValueError):
        with store.open_writer():
            pass
    assert store.versions() == []


def test_read_without_publish(tmp_path):
    store = TableStore(str(tmp_path), "tips")
    with pytest.raises(UpstreamUnavailableError):
        store.read()


def test_read_unknown_version(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    store.publish(aggregate_frame)
    with pytest.raises(UpstreamUnavailableError):
        store.read("19990101T000000000000Z-abcdef")


def test_prune_keeps_newest(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    versions = [store.publish(aggregate_frame) for _ in range(4)]

    removed = store.prune(keep=2)

    assert store.versions() == sorted(versions)[-2:]
    assert len(removed) == 2
    assert store.latest_version() in store.versions()


def test_loaded_snapshot_ignores_later_publish(tmp_path, aggregate_frame):
    store = TableStore(str(tmp_path), "tips")
    first = store.publish(aggregate_frame)
    predictor = Predictor(store.read())

    rebuilt = aggregate_frame.copy()
    rebuilt['avg_tip'] = rebuilt['avg_tip'] + 10.0
    second = store.publish(rebuilt)

    assert store.latest_version() == second
    assert predictor.table.version == first
    assert predictor.predict("Monday", "Morning", "Manhattan").q50 == pytest.approx(2.0)
