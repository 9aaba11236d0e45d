from kombucha.db import session_scope
from kombucha.errors import DecodeFailure, PersistenceFailure
from kombucha.store import BatchCounter, KeyValueStore

import pytest


def test_json_round_trip(store):
    store.write_json("thing", [{"a": 1}, {"b": None}])

    assert store.read_json("thing") == [{"a": 1}, {"b": None}]
    assert store.read_json("missing", []) == []


def test_write_replaces_value(store):
    store.write_json("thing", 1)
    store.write_json("thing", 2)

    assert store.read_json("thing") == 2


def test_unencodable_value_is_persistence_failure(store):
    with pytest.raises(PersistenceFailure):
        store.write_json("thing", {"when": object()})


def test_corrupt_value_is_decode_failure(store):
    with session_scope() as conn:
        conn.execute("INSERT INTO kv_store (key, value) VALUES ('thing', 'nope{')")

    with pytest.raises(DecodeFailure):
        store.read_json("thing")


def test_counter_starts_at_one_and_survives_new_store(store):
    counter = BatchCounter(store)
    assert counter.current() == 0
    assert counter.next() == 1
    assert counter.next() == 2

    assert BatchCounter(KeyValueStore()).next() == 3


def test_counter_treats_zero_as_unset(store):
    store.write_json("nextBatchNumber", 0)

    assert BatchCounter(store).next() == 1


def test_delete_removes_key(store):
    store.write_json("thing", "x")
    store.delete("thing")

    assert store.read_json("thing") is None
