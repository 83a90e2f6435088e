from datetime import date, datetime
from decimal import Decimal

import pytest

from sheetflow.cache import Cache, key_prefix, make_key
from sheetflow.errors import SheetFlowQueryError

class Clock():
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

def test_ttl():
    clock = Clock()
    cache = Cache(60, clock=clock)
    cache.set("Users:{}", [{"name": "Ann"}])
    clock.now = 30
    assert(cache.get("Users:{}") == [{"name": "Ann"}])
    assert("Users:{}" in cache)
    clock.now = 61
    assert(cache.get("Users:{}") is None)
    assert("Users:{}" not in cache)
    # expired entries are dropped when read
    assert(len(cache) == 0)

def test_per_entry_ttl():
    clock = Clock()
    cache = Cache(60, clock=clock)
    cache.set("a", [], ttl=5)
    clock.now = 5
    assert(cache.get("a") is None)

def test_copies():
    cache = Cache()
    value = [{"name": "Ann"}]
    cache.set("k", value)
    value[0]["name"] = "Bob"
    got = cache.get("k")
    assert(got == [{"name": "Ann"}])
    got.append({"name": "Cy"})
    assert(cache.get("k") == [{"name": "Ann"}])

def test_eviction():
    cache = Cache(60, max_entries=2)
    cache.set("a", [])
    cache.set("b", [])
    cache.set("c", [])
    assert(len(cache) == 2)
    assert("a" not in cache)
    assert("b" in cache and "c" in cache)
    # re-setting makes an entry the newest
    cache.set("b", [{"x": 1}])
    cache.set("d", [])
    assert("c" not in cache)
    assert(cache.get("b") == [{"x": 1}])

def test_delete_clear():
    cache = Cache()
    cache.set("a", [])
    cache.set("b", [])
    cache.delete("a")
    cache.delete("missing")
    assert(len(cache) == 1)
    cache.clear()
    assert(len(cache) == 0)

def test_bad_ttl():
    with pytest.raises(ValueError):
        Cache(0)
    with pytest.raises(ValueError):
        Cache(-1)

def test_make_key():
    a = make_key("Users", {"where": {"age": {"$gte": 18}, "country": "UK"}, "limit": 5})
    b = make_key("Users", {"limit": 5, "where": {"country": "UK", "age": {"$gte": 18}}})
    assert(a == b)
    assert(a.startswith("Users:"))
    assert(make_key("Orders", {"limit": 5}) != make_key("Users", {"limit": 5}))
    assert(make_key("Users", None) == make_key("Users", {}))
    assert(make_key("Users", {}).startswith(key_prefix("Users")))

def test_key_values():
    # a date and the same text as a string are different queries
    d = make_key("Users", {"where": {"joined": date(2024, 1, 2)}})
    s = make_key("Users", {"where": {"joined": "2024-01-02"}})
    t = make_key("Users", {"where": {"joined": datetime(2024, 1, 2)}})
    assert(len({d, s, t}) == 3)
    assert(make_key("Users", {"where": {"id": {"$in": {2, 1}}}}) ==
           make_key("Users", {"where": {"id": {"$in": [1, 2]}}}))
    with pytest.raises(SheetFlowQueryError):
        make_key("Users", {"where": {"age": Decimal("30")}})
    with pytest.raises(SheetFlowQueryError):
        make_key("Users", {"where": {"owner": object()}})

def test_invalidate():
    cache = Cache()
    cache.set(make_key("Users", {"limit": 1}), [])
    cache.set(make_key("Users", {"limit": 2}), [])
    cache.set(make_key("Users:archive", {"limit": 1}), [])
    cache.set(make_key("Orders", {}), [])
    assert(cache.invalidate(key_prefix("Users")) == 2)
    assert(len(cache) == 2)
    assert(make_key("Users:archive", {"limit": 1}) in cache)
    assert(cache.invalidate(key_prefix("Users")) == 0)
