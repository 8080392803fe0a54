"""Utilities for parsing tabular uploads (CSV/TSV/XLSX) into entity candidates."""

from __future__ import annotations

import csv
import io
import os
from dataclasses import dataclass, field
from typing import Iterable

from werkzeug.datastructures import FileStorage

from stockapp.utils.csv_schema import (
    PURCHASE_HEADER_ALIASES,
    PURCHASE_REQUIRED_FIELDS,
    STOCK_HEADER_ALIASES,
    STOCK_REQUIRED_FIELDS,
    resolve_import_mappings,
)


class TabularImportError(ValueError):
    """Raised when tabular uploads cannot be parsed."""


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    issues: list[dict[str, object]] = field(default_factory=list)

    def skip(self, row: dict[str, object], reason: str) -> None:
        self.skipped += 1
        self.issues.append({"row": row.get("_row_number"), "reason": reason})

    def to_dict(self) -> dict[str, object]:
        return {"imported": self.imported, "skipped": self.skipped, "issues": self.issues}


def _rows_to_csv_text(rows: Iterable[Iterable[object]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    return output.getvalue()


def parse_tabular_upload(file_storage: FileStorage) -> str:
    """Return CSV text for a CSV, TSV, or XLSX upload."""

    if not file_storage or not file_storage.filename:
        raise TabularImportError("No file uploaded.")

    _, ext = os.path.splitext(file_storage.filename)
    ext = ext.lower()

    if ext == ".csv":
        try:
            return file_storage.stream.read().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise TabularImportError("CSV import files must be UTF-8 encoded.") from exc

    if ext == ".tsv":
        try:
            text = file_storage.stream.read().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise TabularImportError("TSV import files must be UTF-8 encoded.") from exc
        reader = csv.reader(io.StringIO(text), delimiter="\t")
        return _rows_to_csv_text(reader)

    if ext == ".xlsx":
        from openpyxl import load_workbook

        data = file_storage.stream.read()
        workbook = load_workbook(filename=io.BytesIO(data), read_only=True, data_only=True)
        sheet = workbook.active
        return _rows_to_csv_text(sheet.iter_rows(values_only=True))

    raise TabularImportError("Unsupported file type. Upload a CSV, TSV, or XLSX file.")


def read_csv_rows(csv_text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO((csv_text or "").strip()))
    return [[cell.strip() for cell in row] for row in reader]


def _map_rows(csv_text: str, aliases) -> list[dict[str, object]]:
    rows = read_csv_rows(csv_text)
    if len(rows) < 2:
        return []
    headers = rows[0]
    mapping = resolve_import_mappings(headers, aliases)
    mapped: list[dict[str, object]] = []
    for row_number, row in enumerate(rows[1:], start=2):
        if not any(row):
            continue
        candidate: dict[str, object] = {"_row_number": row_number}
        for field_name, index in mapping.items():
            candidate[field_name] = row[index] if index < len(row) else ""
        mapped.append(candidate)
    return mapped


def _missing_fields(candidate: dict[str, object], required: Iterable[str]) -> list[str]:
    return [name for name in required if not str(candidate.get(name) or "").strip()]


def convert_rows_to_purchase_items(
    csv_text: str,
) -> tuple[list[dict[str, object]], ImportResult]:
    """Return purchase candidates with every required column present.

    Rows missing a required value are counted as skipped rather than failing
    the whole import. A missing status column defaults to ``considering``
    downstream.
    """

    result = ImportResult()
    candidates: list[dict[str, object]] = []
    for candidate in _map_rows(csv_text, PURCHASE_HEADER_ALIASES):
        missing = _missing_fields(candidate, PURCHASE_REQUIRED_FIELDS)
        if missing:
            result.skip(candidate, f"Missing required field(s): {', '.join(missing)}")
            continue
        candidates.append(candidate)
    return candidates, result


def convert_rows_to_stock_items(
    csv_text: str,
) -> tuple[list[dict[str, object]], ImportResult]:
    result = ImportResult()
    candidates: list[dict[str, object]] = []
    for candidate in _map_rows(csv_text, STOCK_HEADER_ALIASES):
        missing = _missing_fields(candidate, STOCK_REQUIRED_FIELDS)
        if missing:
            result.skip(candidate, f"Missing required field(s): {', '.join(missing)}")
            continue
        candidates.append(candidate)
    return candidates, result
