"""Stock-take report documents."""

from __future__ import annotations

import io
from datetime import datetime
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from stockapp.services.stock_take import ReportLine
from stockapp.utils.csv_export import rows_to_csv_text

REPORT_COLUMNS: list[tuple[str, str]] = [
    ("item_name", "Item Name"),
    ("previous_qty", "Previous Qty"),
    ("counted_qty", "Counted Qty"),
    ("difference", "Difference"),
]


def build_report_workbook(
    lines: Sequence[ReportLine], report_date: datetime | None = None
) -> Workbook:
    report_date = report_date or datetime.utcnow()
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Stock Take"

    sheet.append(["STOCK TAKE REPORT"])
    sheet["A1"].font = Font(bold=True, size=16)
    sheet.append([f"Date: {report_date.date().isoformat()}"])
    sheet.append([f"Total Items Changed: {len(lines)}"])
    sheet.append([])

    sheet.append([header for _, header in REPORT_COLUMNS])
    header_row = sheet.max_row
    for cell in sheet[header_row]:
        cell.font = Font(bold=True)

    for line in lines:
        sheet.append(
            [line.item_name, line.previous_qty, line.counted_qty, line.difference]
        )

    for index, width in enumerate((40, 14, 14, 12), start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    return workbook


def render_report_xlsx(
    lines: Sequence[ReportLine], report_date: datetime | None = None
) -> bytes:
    output = io.BytesIO()
    build_report_workbook(lines, report_date).save(output)
    return output.getvalue()


def render_report_csv(lines: Sequence[ReportLine]) -> str:
    return rows_to_csv_text((line.to_dict() for line in lines), REPORT_COLUMNS)


def report_filename(report_date: datetime | None = None, extension: str = "xlsx") -> str:
    report_date = report_date or datetime.utcnow()
    return f"stock-take-report-{report_date.strftime('%Y-%m-%d')}.{extension}"
