from __future__ import annotations

import asyncio
import copy
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from config import RelaySettings
from main import create_app
from smartsheet_gateway import SmartsheetGateway

API_BASE = "https://api.smartsheet.test/2.0"
SOURCE_SHEET_ID = 100
DESTINATION_SHEET_ID = 200


def make_sheet(sheet_id: int, columns, rows, name: str = "Sheet") -> Dict[str, Any]:
    """Build a Smartsheet-shaped sheet.

    ``columns`` is a list of ``(id, title)``; ``rows`` a list of
    ``(id, row_number, {column_id: display_value})``.
    """
    return {
        "id": sheet_id,
        "name": name,
        "permalink": f"https://app.smartsheet.test/sheets/{sheet_id}",
        "columns": [{"id": cid, "title": title, "index": i} for i, (cid, title) in enumerate(columns)],
        "rows": [
            {
                "id": rid,
                "rowNumber": number,
                "cells": [
                    {"columnId": cid, "value": values.get(cid), "displayValue": values.get(cid)}
                    if values.get(cid) is not None
                    else {"columnId": cid}
                    for cid, _title in columns
                ],
            }
            for rid, number, values in rows
        ],
    }


class FakeSmartsheet:
    """In-memory stand-in for the Smartsheet REST API, served via httpx.MockTransport."""

    def __init__(self, sheets: Dict[int, Dict[str, Any]], webhooks: Optional[List[Dict[str, Any]]] = None):
        self.sheets = sheets
        self.webhooks: List[Dict[str, Any]] = list(webhooks or [])
        self.requests: List[httpx.Request] = []
        self.failures: Dict[tuple, int] = {}
        self._next_webhook_id = 9000

    # Test helpers -----------------------------------------------------
    def fail(self, method: str, path: str, status: int = 500) -> None:
        self.failures[(method, path)] = status

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    def cell(self, sheet_id: int, row_id: int, column_id: int) -> Optional[Dict[str, Any]]:
        for row in self.sheets[sheet_id]["rows"]:
            if row["id"] == row_id:
                for cell in row["cells"]:
                    if cell["columnId"] == column_id:
                        return cell
        return None

    # Transport --------------------------------------------------------
    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path[len("/2.0"):]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)

        status = self.failures.get((request.method, path))
        if status is not None:
            return httpx.Response(status, json={"errorCode": 4000, "message": "Simulated failure"})

        match = re.fullmatch(r"/sheets/(\d+)", path)
        if match and request.method == "GET":
            return self._get_sheet(int(match.group(1)), request)

        match = re.fullmatch(r"/sheets/(\d+)/rows", path)
        if match and request.method == "PUT":
            return self._update_rows(int(match.group(1)), json.loads(request.content))

        if path == "/webhooks" and request.method == "GET":
            return httpx.Response(
                200,
                json={"pageNumber": 1, "totalCount": len(self.webhooks), "data": self.webhooks},
            )

        if path == "/webhooks" and request.method == "POST":
            body = json.loads(request.content)
            hook = dict(body, id=self._next_webhook_id, enabled=False, status="NEW_NOT_VERIFIED")
            self._next_webhook_id += 1
            self.webhooks.append(hook)
            return httpx.Response(200, json={"message": "SUCCESS", "resultCode": 0, "result": hook})

        match = re.fullmatch(r"/webhooks/(\d+)", path)
        if match and request.method == "PUT":
            hook = next((h for h in self.webhooks if h["id"] == int(match.group(1))), None)
            if hook is None:
                return httpx.Response(404, json={"errorCode": 1006, "message": "Not Found"})
            hook.update(json.loads(request.content))
            hook["status"] = "ENABLED" if hook.get("enabled") else "DISABLED_BY_OWNER"
            return httpx.Response(200, json={"message": "SUCCESS", "resultCode": 0, "result": hook})

        return httpx.Response(404, json={"errorCode": 1006, "message": "Not Found"})

    def _get_sheet(self, sheet_id: int, request: httpx.Request) -> httpx.Response:
        if sheet_id not in self.sheets:
            return httpx.Response(404, json={"errorCode": 1006, "message": "Not Found"})
        sheet = copy.deepcopy(self.sheets[sheet_id])

        params = request.url.params
        if "rowIds" in params:
            wanted = {int(v) for v in params["rowIds"].split(",")}
            sheet["rows"] = [r for r in sheet["rows"] if r["id"] in wanted]
        if "columnIds" in params:
            wanted = {int(v) for v in params["columnIds"].split(",")}
            sheet["columns"] = [c for c in sheet["columns"] if c["id"] in wanted]
            for row in sheet["rows"]:
                row["cells"] = [c for c in row["cells"] if c["columnId"] in wanted]
        if "pageSize" in params:
            sheet["rows"] = sheet["rows"][: int(params["pageSize"])]
        return httpx.Response(200, json=sheet)

    def _update_rows(self, sheet_id: int, body: List[Dict[str, Any]]) -> httpx.Response:
        updated = []
        for row_update in body:
            row = next((r for r in self.sheets[sheet_id]["rows"] if r["id"] == row_update["id"]), None)
            if row is None:
                return httpx.Response(404, json={"errorCode": 1006, "message": "Not Found"})
            for change in row_update["cells"]:
                cell = next((c for c in row["cells"] if c["columnId"] == change["columnId"]), None)
                if cell is None:
                    cell = {"columnId": change["columnId"]}
                    row["cells"].append(cell)
                value = change["value"]
                if value is None:
                    cell.pop("value", None)
                    cell.pop("displayValue", None)
                else:
                    cell["value"] = value
                    cell["displayValue"] = str(value)
            updated.append(row)
        return httpx.Response(200, json={"message": "SUCCESS", "resultCode": 0, "result": updated})


@pytest.fixture
def fake() -> FakeSmartsheet:
    source = make_sheet(
        SOURCE_SHEET_ID,
        columns=[(11, "Status"), (12, "Owner")],
        rows=[
            (501, 5, {11: "Done", 12: "Ann"}),
            (502, 6, {12: "Bob"}),
        ],
        name="Source",
    )
    destination = make_sheet(
        DESTINATION_SHEET_ID,
        columns=[(42, "Status"), (43, "Owner")],
        rows=[
            (999, 5, {42: "Open"}),
            (1000, 6, {42: "Stale", 43: "Bob"}),
        ],
        name="Destination",
    )
    return FakeSmartsheet({SOURCE_SHEET_ID: source, DESTINATION_SHEET_ID: destination})


@pytest.fixture
def gateway(fake):
    gw = SmartsheetGateway("test-token", base_url=API_BASE, transport=httpx.MockTransport(fake.handle))
    yield gw
    asyncio.run(gw.aclose())


@pytest.fixture
def settings() -> RelaySettings:
    return RelaySettings(
        access_token="test-token",
        source_sheet_id=SOURCE_SHEET_ID,
        destination_sheet_id=DESTINATION_SHEET_ID,
        webhook_name="relay-test",
        callback_url="https://relay.example.com/",
        api_base=API_BASE,
    )


@pytest.fixture
def client(settings, gateway):
    app = create_app(settings, gateway, bootstrap=False)
    return TestClient(app)


def cell_event(row_id: int, column_id: int, **extra) -> Dict[str, Any]:
    event = {"objectType": "cell", "eventType": "updated", "rowId": row_id, "columnId": column_id}
    event.update(extra)
    return event


def event_batch(*events, scope: str = "sheet", scope_object_id: int = SOURCE_SHEET_ID) -> Dict[str, Any]:
    return {
        "nonce": "4b2ed6fc-fb0e-4a10-bb6d-f4ee8e5c9a31",
        "timestamp": "2026-10-17T12:00:00.000+00:00",
        "webhookId": 9000,
        "scope": scope,
        "scopeObjectId": scope_object_id,
        "events": list(events),
    }
