import json
import logging

import pytest

from sheetflow.events import Listeners, Notification
from sheetflow.log import JsonFormatter

def test_order():
    listeners = Listeners()
    calls = []
    listeners.add("afterCreate", lambda n: calls.append(("first", n.payload["data"])))
    listeners.add("afterCreate", lambda n: calls.append(("second", n.payload["data"])))
    n = listeners.emit("afterCreate", "Users", data={"name": "Ann"})
    assert(n == Notification("afterCreate", "Users", {"data": {"name": "Ann"}}))
    assert(calls == [("first", {"name": "Ann"}), ("second", {"name": "Ann"})])
    assert(len(listeners) == 2)

def test_remove():
    listeners = Listeners()
    f = listeners.add("ready", lambda n: None)
    assert(listeners.remove("ready", f))
    assert(not listeners.remove("ready", f))
    assert(len(listeners) == 0)

def test_bad_registration():
    listeners = Listeners()
    with pytest.raises(ValueError):
        listeners.add("beforeCreate", lambda n: None)
    with pytest.raises(TypeError):
        listeners.add("ready", "not callable")
    with pytest.raises(ValueError):
        listeners.emit("afterSave")

def test_listener_errors_propagate():
    listeners = Listeners()
    def boom(n):
        raise RuntimeError("listener failed")
    listeners.add("afterDelete", boom)
    with pytest.raises(RuntimeError):
        listeners.emit("afterDelete", "Users", count=1)

def test_json_logs():
    record = logging.LogRecord("sheetflow.table", logging.INFO, __file__, 1, "bound %s", ("Users",), None)
    record.table = "Users"
    out = json.loads(JsonFormatter().format(record))
    assert(out["message"] == "bound Users")
    assert(out["level"] == "INFO")
    assert(out["logger"] == "sheetflow.table")
    assert(out["table"] == "Users")
    assert("args" not in out)
