"""
Tabular Sink Module
Writes report rows to a local CSV file or a Google Sheets tab, safe to re-run.

Upsert is delete-matching-then-write. Neither target is transactional: if a
run dies between the delete and the write, re-running the feature restores
the rows for that key.
"""

import os
import re
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build

from mp_sync.utils.api_client import MarketplaceError
from mp_sync.utils.csv_codec import COMMA, decode_document_with_header, encode_document
from mp_sync.utils.dates import PeriodWindow, parse_sheet_date
from mp_sync.utils.runtime import RuntimeEnvironment

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

DECIMAL_PATTERN = re.compile(r"^-?\d+\.\d+$")


class SinkUnavailableError(MarketplaceError):
    """The sink's backing service is not configured. Raised before any write."""
    pass


class WriteMode(str, Enum):
    APPEND = "append"
    OVERWRITE = "overwrite"


# =============================================================================
# Row keys
# =============================================================================

def row_key(row: Sequence[Any], indices: Sequence[int]) -> Tuple[str, ...]:
    """Key tuple of the cells at `indices`, as trimmed strings."""
    return tuple(
        "" if i >= len(row) or row[i] is None else str(row[i]).strip()
        for i in indices
    )


@dataclass(frozen=True)
class KeyMatch:
    """
    Predicate selecting existing rows to replace.

    `columns`/`values` must match exactly. When `date_column` is set, the
    date cell must also fall within [date_from, date_to] inclusive; cells
    that do not parse as a date never match.
    """
    columns: Sequence[str] = ()
    values: Sequence[Any] = ()
    date_column: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def __post_init__(self):
        if len(self.columns) != len(self.values):
            raise ValueError("KeyMatch columns and values must have the same length")
        if self.date_column and (self.date_from is None or self.date_to is None):
            raise ValueError("KeyMatch with date_column needs date_from and date_to")
        if not self.columns and not self.date_column:
            raise ValueError("KeyMatch needs at least one column")

    @classmethod
    def for_period(cls, columns, values, date_column: str, period: PeriodWindow) -> "KeyMatch":
        return cls(tuple(columns), tuple(values), date_column, period.start, period.end)

    @classmethod
    def for_day(cls, columns, values, date_column: str, day: date) -> "KeyMatch":
        return cls.for_period(columns, values, date_column, PeriodWindow.single_day(day))

    def matcher(self, header: Sequence[str]) -> Callable[[Sequence[Any]], bool]:
        """
        Bind the predicate to a header.

        Raises:
            KeyError: If a key column is not in the header
        """
        positions = {str(name): i for i, name in enumerate(header)}
        for column in list(self.columns) + ([self.date_column] if self.date_column else []):
            if column not in positions:
                raise KeyError(f"Key column not found in sheet header: {column}")

        key_idx = [positions[c] for c in self.columns]
        expected = tuple(str(v).strip() for v in self.values)
        date_idx = positions[self.date_column] if self.date_column else None

        def matches(row):
            if row_key(row, key_idx) != expected:
                return False
            if date_idx is None:
                return True
            day = parse_sheet_date(row[date_idx] if date_idx < len(row) else None)
            return day is not None and self.date_from <= day <= self.date_to

        return matches


@dataclass
class SinkWriteRequest:
    header: List[str]
    rows: List[List[Any]]
    mode: WriteMode = WriteMode.APPEND
    key_match: Optional[KeyMatch] = None

    def __post_init__(self):
        width = len(self.header)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"Row {i} has {len(row)} cells, header has {width}")


# =============================================================================
# Sinks
# =============================================================================

class TabularSink:
    """Write target for report rows."""

    def write(self, request: SinkWriteRequest) -> int:
        """Write the request; returns the number of data rows written."""
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


class CsvFileSink(TabularSink):
    """
    Delimited text file. The file is always rewritten in full.

    APPEND keeps the existing rows (minus those matching key_match) and adds
    the new ones after them. Values are written as given.
    """

    def __init__(self, path: str, delimiter: str = COMMA):
        self.path = path
        self.delimiter = delimiter

    def describe(self):
        return self.path

    def _read_existing(self) -> Tuple[List[str], List[List[str]]]:
        if not os.path.exists(self.path):
            return [], []
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            return decode_document_with_header(f.read(), self.delimiter)

    def write(self, request):
        existing: List[List[Any]] = []

        if request.mode == WriteMode.APPEND:
            old_header, existing = self._read_existing()
            if existing and old_header != list(request.header):
                logger.warning(f"Header of {self.path} differs from the report header, rewriting it")
            if existing and request.key_match:
                matches = request.key_match.matcher(old_header or request.header)
                before = len(existing)
                existing = [row for row in existing if not matches(row)]
                dropped = before - len(existing)
                if dropped:
                    logger.info(f"Replacing {dropped} existing rows in {self.path}")

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        text = encode_document(request.header, existing + list(request.rows), self.delimiter)
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

        logger.info(f"Wrote {len(request.rows)} rows to {self.path} ({len(existing)} kept)")
        return len(request.rows)


def normalize_cell(value: Any) -> Any:
    """Sheet cell value: None -> '', decimals with a comma separator."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return str(value).replace(".", ",")
    if isinstance(value, str) and DECIMAL_PATTERN.match(value.strip()):
        return value.strip().replace(".", ",")
    return value


def _a1(sheet_name: str, a1_range: str = "") -> str:
    safe = sheet_name.replace("'", "''")
    return f"'{safe}'!{a1_range}" if a1_range else f"'{safe}'"


def _runs(indices: Sequence[int]) -> List[Tuple[int, int]]:
    """Collapse sorted indices into (start, end_exclusive) runs."""
    runs: List[Tuple[int, int]] = []
    for i in indices:
        if runs and runs[-1][1] == i:
            runs[-1] = (runs[-1][0], i + 1)
        else:
            runs.append((i, i + 1))
    return runs


class SheetsSink(TabularSink):
    """
    One tab of a Google spreadsheet, through the Sheets v4 API.

    Row 1 holds the header. APPEND deletes existing rows matching key_match
    (one batchUpdate, bottom-up) and writes the new rows after the last
    remaining row. OVERWRITE clears the tab first.
    """

    def __init__(self, service, spreadsheet_id: str, sheet_name: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def describe(self):
        return f"sheet '{self.sheet_name}'"

    def _sheet_properties(self) -> Optional[dict]:
        meta = self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields="sheets(properties(sheetId,title,gridProperties(rowCount,columnCount)))",
        ).execute()
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == self.sheet_name:
                return props
        return None

    def _ensure_sheet(self, columns: int) -> Tuple[int, int, int]:
        """Return (sheetId, rowCount, columnCount), creating the tab if missing."""
        props = self._sheet_properties()
        if props is None:
            logger.info(f"Creating sheet '{self.sheet_name}'")
            reply = self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{
                    "addSheet": {
                        "properties": {
                            "title": self.sheet_name,
                            "gridProperties": {"rowCount": 1000, "columnCount": max(columns, 26)},
                        }
                    }
                }]},
            ).execute()
            props = reply["replies"][0]["addSheet"]["properties"]

        grid = props.get("gridProperties") or {}
        return int(props["sheetId"]), int(grid.get("rowCount", 0)), int(grid.get("columnCount", 0))

    def _read_values(self) -> List[List[Any]]:
        resp = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=_a1(self.sheet_name),
        ).execute()
        return resp.get("values", [])

    def _update(self, a1_range: str, values: List[List[Any]]) -> None:
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=_a1(self.sheet_name, a1_range),
            valueInputOption="USER_ENTERED",
            body={"values": values},
        ).execute()

    def _grow_requests(self, sheet_id, rows_needed, cols_needed, row_count, col_count) -> List[dict]:
        requests = []
        if rows_needed > row_count:
            requests.append({"appendDimension": {
                "sheetId": sheet_id, "dimension": "ROWS", "length": rows_needed - row_count}})
        if cols_needed > col_count:
            requests.append({"appendDimension": {
                "sheetId": sheet_id, "dimension": "COLUMNS", "length": cols_needed - col_count}})
        return requests

    def write(self, request):
        if self.service is None or not self.spreadsheet_id:
            raise SinkUnavailableError(
                "Google Sheets service is not available. Set SPREADSHEET_ID and GOOGLE_APPLICATION_CREDENTIALS."
            )

        header = list(request.header)
        rows = [[normalize_cell(v) for v in row] for row in request.rows]
        sheet_id, row_count, col_count = self._ensure_sheet(len(header))

        if request.mode == WriteMode.OVERWRITE:
            self.service.spreadsheets().values().clear(
                spreadsheetId=self.spreadsheet_id, range=_a1(self.sheet_name), body={}
            ).execute()
            grow = self._grow_requests(sheet_id, len(rows) + 1, len(header), row_count, col_count)
            if grow:
                self._batch_update(grow)
            self._update("A1", [header] + rows)
            logger.info(f"Overwrote sheet '{self.sheet_name}' with {len(rows)} rows")
            return len(rows)

        existing = self._read_values()
        current_header = [str(v) for v in existing[0]] if existing else []
        data_rows = existing[1:]

        requests = []
        matched: List[int] = []
        if request.key_match and data_rows:
            # Existing rows are laid out under the header already in the sheet
            matches = request.key_match.matcher(current_header or header)
            matched = [i for i, row in enumerate(data_rows) if matches(row)]

        if matched:
            # Grid row 0 is the header; delete from the bottom so indices stay valid
            for start, end in reversed(_runs(matched)):
                requests.append({"deleteDimension": {"range": {
                    "sheetId": sheet_id,
                    "dimension": "ROWS",
                    "startIndex": start + 1,
                    "endIndex": end + 1,
                }}})
            logger.info(f"Deleting {len(matched)} existing rows from sheet '{self.sheet_name}'")

        remaining = len(data_rows) - len(matched)
        first_row = remaining + 2  # 1-based, after header and remaining rows
        requests.extend(self._grow_requests(
            sheet_id, first_row - 1 + len(rows), len(header), row_count - len(matched), col_count
        ))

        if requests:
            self._batch_update(requests)
        if current_header != header:
            logger.info(f"Writing header to sheet '{self.sheet_name}'")
            self._update("A1", [header])
        if rows:
            self._update(f"A{first_row}", rows)

        logger.info(f"Wrote {len(rows)} rows to sheet '{self.sheet_name}' at row {first_row}")
        return len(rows)

    def _batch_update(self, requests: List[dict]) -> None:
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": requests},
        ).execute()


# =============================================================================
# Factories
# =============================================================================

def get_sheets_service(credentials_path: Optional[str] = None):
    """
    Build a Sheets v4 service from a service account JSON file.

    Args:
        credentials_path: Defaults to GOOGLE_APPLICATION_CREDENTIALS

    Raises:
        SinkUnavailableError: If no credentials file is configured or found
    """
    credentials_path = credentials_path or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if not credentials_path or not os.path.exists(credentials_path):
        raise SinkUnavailableError(
            f"Google service account file not found: {credentials_path or 'GOOGLE_APPLICATION_CREDENTIALS not set'}"
        )

    creds = service_account.Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


@dataclass
class SinkTarget:
    """Where one feature writes, for either runtime."""
    file_path: str
    sheet_name: str
    delimiter: str = COMMA


def build_sink(
    runtime: RuntimeEnvironment,
    target: SinkTarget,
    service=None,
    spreadsheet_id: Optional[str] = None
) -> TabularSink:
    """Pick the sink implementation for the runtime."""
    if runtime == RuntimeEnvironment.SHEETS:
        return SheetsSink(service, spreadsheet_id, target.sheet_name)
    return CsvFileSink(target.file_path, target.delimiter)
