"""CSV export utilities."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from flask import Response, stream_with_context


def _serialize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _row_values(row, columns: list[tuple[str, str]]) -> list[str]:
    values = []
    for field, _ in columns:
        if isinstance(row, dict):
            value = row.get(field)
        else:
            value = getattr(row, field, None)
        values.append(_serialize_value(value))
    return values


def rows_to_csv_text(rows: Iterable[object], columns: Iterable[tuple[str, str]]) -> str:
    """Render rows as CSV; values containing the delimiter or quotes are quoted."""

    columns = list(columns)
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow([header for _, header in columns])
    for row in rows:
        writer.writerow(_row_values(row, columns))
    return output.getvalue()


def export_rows_to_csv(
    rows: Iterable[object],
    columns: Iterable[tuple[str, str]],
    filename: str,
) -> Response:
    columns = list(columns)
    headers = [header for _, header in columns]

    def generate():
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(headers)
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)
        for row in rows:
            writer.writerow(_row_values(row, columns))
            yield output.getvalue()
            output.seek(0)
            output.truncate(0)

    response = Response(stream_with_context(generate()), mimetype="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
