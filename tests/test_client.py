from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

import sheetflow.client
from sheetflow import SheetFlow
from sheetflow.errors import SheetFlowConfigurationError, SheetFlowConnectionError, SheetFlowError
from sheetflow.table import TableState

def test_config_errors():
    with pytest.raises(SheetFlowConfigurationError):
        SheetFlow({})
    with pytest.raises(SheetFlowConfigurationError):
        SheetFlow({"spreadsheet_id": "sid", "credentials": {"client_email": "svc@example.iam.gserviceaccount.com"}})
    with pytest.raises(SheetFlowConfigurationError):
        SheetFlow({"spreadsheet_id": "sid", "credentials": {"credentials_file": "/no/such/key.json"}})

def test_connect(service):
    flow = SheetFlow({"spreadsheetId": "sid"}, service=service)
    seen = []
    flow.add_listener("ready", seen.append)
    assert(not flow.connected)
    flow.connect()
    flow.connect()
    assert(flow.connected)
    assert(len(seen) == 1)
    assert(seen[0].payload == {"spreadsheet_id": "sid", "title": "Book"})
    service.spreadsheets.return_value.get.assert_called_once()

def test_connect_with_access(service):
    access = MagicMock()
    access.get_service.return_value = service
    flow = SheetFlow({"spreadsheet_id": "sid"}, access=access)
    flow.connect()
    access.get_service.assert_called_once()

def test_connect_failure(service):
    service.spreadsheets.return_value.get.return_value.execute.side_effect = \
        HttpError(httplib2.Response({"status": "404"}), b"not found")
    flow = SheetFlow({"spreadsheet_id": "sid"}, service=service)
    with pytest.raises(SheetFlowConnectionError):
        flow.connect()
    assert(not flow.connected)

def test_define_table(service):
    flow = SheetFlow({"spreadsheet_id": "sid"}, service=service)
    users = flow.define_table("Users", {"name": "string:required", "age": "number:min(0)"})
    # defining a table connects when needed
    assert(flow.connected)
    assert("Users" in flow)
    assert(flow["Users"] is users)
    assert(users.state is TableState.BOUND)
    assert(list(flow.tables) == ["Users"])
    assert([r["name"] for r in users.find()] == ["Ann", "Bob"])
    with pytest.raises(SheetFlowError):
        flow.define_table("Users")
    with pytest.raises(SheetFlowConfigurationError):
        flow.define_table("Bad", {"name": "string:sometimes"})

def test_shared_cache(service):
    flow = SheetFlow({"spreadsheet_id": "sid", "options": {"cache": {"enabled": True, "ttl": 30}}}, service=service)
    assert(flow.cache is not None)
    assert(flow.cache.ttl == 30)
    users = flow.define_table("Users", {"name": "string"})
    batch_get = service.spreadsheets.return_value.values.return_value.batchGet
    reads = batch_get.call_count
    users.find()
    users.find()
    assert(batch_get.call_count == reads + 1)

def test_no_cache_by_default(service):
    flow = SheetFlow({"spreadsheet_id": "sid"}, service=service)
    assert(flow.cache is None)

def test_events_reach_client_listeners(service):
    flow = SheetFlow({"spreadsheet_id": "sid"}, service=service)
    created = []

    @flow.on("afterCreate")
    def on_create(n):
        created.append(n)

    users = flow.define_table("Users", {"name": "string:required"}, timestamps=True)
    users.create({"name": "Cy"})
    assert(len(created) == 1)
    assert(created[0].table == "Users")
    assert("createdAt" in created[0].payload["data"])
    assert(flow.remove_listener("afterCreate", on_create))
    users.create({"name": "Di"})
    assert(len(created) == 1)

def test_logging_configured(service, monkeypatch):
    calls = []
    monkeypatch.setattr(sheetflow.client, "configure_logging", lambda *args: calls.append(args))
    SheetFlow({"spreadsheet_id": "sid", "logging": {"level": "debug", "format": "json"}}, service=service)
    assert(calls == [("DEBUG", True)])
    SheetFlow({"spreadsheet_id": "sid"}, service=service)
    assert(len(calls) == 1)
