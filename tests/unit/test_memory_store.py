from __future__ import annotations

import pytest

from printmatch_import.db.memory import InMemoryStore
from printmatch_import.db.store import StoreError, StoreUnavailableError


def test_insert_assigns_ids_and_fetch_filters():
    store = InMemoryStore()
    a = store.insert("clientes", {"nombre_empresa": "A", "user_id": "u1"})
    store.insert("clientes", {"nombre_empresa": "B", "user_id": "u2"})
    assert a == "clientes-1"
    assert store.fetch_all("clientes", ["id", "nombre_empresa"], {"user_id": "u1"}) == [
        {"id": "clientes-1", "nombre_empresa": "A"}
    ]


def test_seeded_rows_are_copied():
    seed = {"clientes": [{"id": "c-1"}]}
    store = InMemoryStore(seed)
    store.update("clientes", {"id": "c-1"}, {"rif": "J-1"})
    assert "rif" not in seed["clientes"][0]
    assert store.fetch_all("clientes", ["rif"]) == [{"rif": "J-1"}]


def test_update_without_match_fails():
    with pytest.raises(StoreError):
        InMemoryStore().update("clientes", {"id": "x"}, {"rif": "J"})


def test_fail_on_specific_call_number():
    store = InMemoryStore()
    store.fail_on[("insert", "t", 2)] = StoreError("boom")
    store.insert("t", {})
    with pytest.raises(StoreError, match="boom"):
        store.insert("t", {})
    store.insert("t", {})
    assert len(store.tables["t"]) == 2


def test_fail_on_every_call():
    store = InMemoryStore()
    store.fail_on[("fetch_all", "clientes")] = StoreUnavailableError("down")
    with pytest.raises(StoreUnavailableError):
        store.fetch_all("clientes", ["id"])
