import io
import json
import re
import sys
import zipfile
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from mp_sync.utils.alerting import AlertManager
from mp_sync.utils.api_client import ApiRequestConfig, ApiResponse, HttpClient, MarketplaceClient
from mp_sync.utils.pipeline import SyncContext
from mp_sync.utils.runtime import RuntimeEnvironment


# =============================================================================
# HTTP
# =============================================================================

def json_response(data, status=200) -> ApiResponse:
    return ApiResponse(status=status, content=json.dumps(data, ensure_ascii=False).encode("utf-8"))


def make_zip(entries: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, text in entries.items():
            archive.writestr(name, text.encode("utf-8") if isinstance(text, str) else text)
    return buffer.getvalue()


class ScriptedHttpClient(HttpClient):
    """
    HttpClient that answers from a script instead of the network.

    `responses` is either a list consumed in order (items may be exceptions
    to raise) or a callable (method, url, headers, payload) -> ApiResponse.
    """

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def _send(self, method, url, headers, payload):
        self.calls.append({"method": method, "url": url, "headers": dict(headers), "payload": payload})
        if callable(self.responses):
            result = self.responses(method, url, headers, payload)
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def bodies(self):
        return [json.loads(c["payload"]) if c["payload"] else None for c in self.calls]


class FakeSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture()
def config():
    return ApiRequestConfig(base_url="https://api.example.test", auth_headers={"Authorization": "tok"}, log_prefix="test")


@pytest.fixture()
def fake_sleep():
    return FakeSleep()


# =============================================================================
# Google Sheets
# =============================================================================

class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeSheetsService:
    """
    In-memory stand-in for the Sheets v4 service.

    Supports the calls the sink makes: spreadsheets().get/batchUpdate and
    spreadsheets().values().get/update/clear. Values come back as strings
    with trailing empty rows dropped, like the real API.
    """

    def __init__(self):
        self.sheets = {}
        self.calls = []
        self._next_id = 100

    # setup helpers
    def add_sheet(self, title, values=None, row_count=1000, column_count=26):
        self.sheets[title] = {
            "sheetId": self._next_id,
            "rowCount": row_count,
            "columnCount": column_count,
            "values": [list(row) for row in (values or [])],
        }
        self._next_id += 1
        return self.sheets[title]

    def values_of(self, title):
        return self.sheets[title]["values"]

    def calls_of(self, kind):
        return [c for c in self.calls if c[0] == kind]

    # API surface
    def spreadsheets(self):
        return _Spreadsheets(self)

    def _parse_range(self, a1):
        match = re.match(r"^'((?:[^']|'')*)'(?:!([A-Z]+)(\d+))?", a1)
        title = match.group(1).replace("''", "'")
        row = int(match.group(3)) if match.group(3) else 1
        return title, row

    def _sheet_by_id(self, sheet_id):
        for sheet in self.sheets.values():
            if sheet["sheetId"] == sheet_id:
                return sheet
        raise KeyError(sheet_id)


class _Spreadsheets:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, fields=None, **kwargs):
        def run():
            self.service.calls.append(("get", spreadsheetId))
            return {"sheets": [
                {"properties": {
                    "sheetId": s["sheetId"],
                    "title": title,
                    "gridProperties": {"rowCount": s["rowCount"], "columnCount": s["columnCount"]},
                }}
                for title, s in self.service.sheets.items()
            ]}
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            self.service.calls.append(("batchUpdate", body))
            replies = []
            for request in body["requests"]:
                if "addSheet" in request:
                    props = request["addSheet"]["properties"]
                    grid = props.get("gridProperties", {})
                    sheet = self.service.add_sheet(
                        props["title"],
                        row_count=grid.get("rowCount", 1000),
                        column_count=grid.get("columnCount", 26),
                    )
                    replies.append({"addSheet": {"properties": {
                        "sheetId": sheet["sheetId"],
                        "title": props["title"],
                        "gridProperties": {"rowCount": sheet["rowCount"], "columnCount": sheet["columnCount"]},
                    }}})
                elif "deleteDimension" in request:
                    rng = request["deleteDimension"]["range"]
                    sheet = self.service._sheet_by_id(rng["sheetId"])
                    del sheet["values"][rng["startIndex"]:rng["endIndex"]]
                    sheet["rowCount"] -= rng["endIndex"] - rng["startIndex"]
                    replies.append({})
                elif "appendDimension" in request:
                    grow = request["appendDimension"]
                    sheet = self.service._sheet_by_id(grow["sheetId"])
                    key = "rowCount" if grow["dimension"] == "ROWS" else "columnCount"
                    sheet[key] += grow["length"]
                    replies.append({})
                else:
                    raise AssertionError(f"unexpected request {request}")
            return {"replies": replies}
        return _Request(run)

    def values(self):
        return _Values(self.service)


class _Values:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, range, **kwargs):
        def run():
            self.service.calls.append(("values.get", range))
            title, _row = self.service._parse_range(range)
            rows = [["" if v is None else str(v) for v in row] for row in self.service.sheets[title]["values"]]
            while rows and not any(rows[-1]):
                rows.pop()
            return {"range": range, "values": rows} if rows else {"range": range}
        return _Request(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        def run():
            self.service.calls.append(("values.update", range, body["values"]))
            title, row = self.service._parse_range(range)
            sheet = self.service.sheets[title]
            values = sheet["values"]
            for offset, new_row in enumerate(body["values"]):
                index = row - 1 + offset
                if index >= sheet["rowCount"]:
                    raise AssertionError(f"row {index + 1} exceeds grid of {sheet['rowCount']} rows")
                if len(new_row) > sheet["columnCount"]:
                    raise AssertionError("row exceeds grid columns")
                while len(values) <= index:
                    values.append([])
                values[index] = list(new_row)
            return {"updatedRows": len(body["values"])}
        return _Request(run)

    def clear(self, spreadsheetId, range, body):
        def run():
            self.service.calls.append(("values.clear", range))
            title, _row = self.service._parse_range(range)
            self.service.sheets[title]["values"] = []
            return {}
        return _Request(run)


@pytest.fixture()
def sheets_service():
    return FakeSheetsService()


# =============================================================================
# Run context
# =============================================================================

@pytest.fixture()
def make_context(tmp_path, fake_sleep, monkeypatch):
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)

    def build(http_client, runtime=RuntimeEnvironment.LOCAL, sheets_service=None):
        return SyncContext(
            runtime=runtime,
            http_client=http_client,
            client=MarketplaceClient(http_client, max_attempts=3, retry_delay=0, sleep=fake_sleep),
            output_dir=str(tmp_path / "output"),
            sheets_service=sheets_service,
            spreadsheet_id="sheet-id" if sheets_service is not None else None,
            alerts=AlertManager(),
            sleep=fake_sleep,
        )

    return build
