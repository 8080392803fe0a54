import io
from decimal import Decimal

import pytest
from openpyxl import Workbook
from werkzeug.datastructures import FileStorage

from stockapp.errors import ValidationError
from stockapp.services.validation import parse_link, parse_price, parse_quantity
from stockapp.utils.csv_export import rows_to_csv_text
from stockapp.utils.csv_schema import (
    PURCHASE_HEADER_ALIASES,
    normalize_header,
    resolve_import_mappings,
)
from stockapp.utils.tabular_import import (
    TabularImportError,
    convert_rows_to_purchase_items,
    parse_tabular_upload,
)


def test_normalize_header_folds_spacing_and_case():
    assert normalize_header(" Item Name ") == "itemname"
    assert normalize_header("item_name") == "itemname"


def test_resolve_import_mappings_uses_aliases():
    mapping = resolve_import_mappings(
        ["Name", "Supplier", "Qty", "Price"], PURCHASE_HEADER_ALIASES
    )
    assert mapping == {"item_name": 0, "where_to_buy": 1, "quantity": 2, "price": 3}


def test_purchase_rows_missing_price_are_skipped():
    candidates, result = convert_rows_to_purchase_items(
        "item_name,where_to_buy,price,quantity\nGlue,Shop,,2\nTape,Shop,1.50,1\n"
    )

    assert [c["item_name"] for c in candidates] == ["Tape"]
    assert result.skipped == 1
    assert "price" in result.issues[0]["reason"]


def test_csv_export_quotes_commas_and_quotes():
    text = rows_to_csv_text(
        [{"item_name": 'Paint, "red"', "price": Decimal("2.50")}],
        [("item_name", "item_name"), ("price", "price")],
    )
    assert text.splitlines()[1] == '"Paint, ""red""",2.50'


def test_xlsx_upload_becomes_csv_text():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["item_name", "quantity"])
    sheet.append(["Glue", 3])
    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)

    text = parse_tabular_upload(FileStorage(stream=buffer, filename="items.xlsx"))

    assert text.splitlines() == ["item_name,quantity", "Glue,3"]


def test_upload_without_file_is_rejected():
    with pytest.raises(TabularImportError):
        parse_tabular_upload(None)


@pytest.mark.parametrize("value", ["0", "-2", "1.5", "abc", "100000"])
def test_parse_quantity_rejects_out_of_range(value):
    with pytest.raises(ValidationError):
        parse_quantity(value)


def test_parse_price_rounds_to_cents():
    assert parse_price("3.456") == Decimal("3.46")
    with pytest.raises(ValidationError):
        parse_price("1000000")


def test_parse_link_requires_http():
    assert parse_link("https://example.com/item") == "https://example.com/item"
    assert parse_link("") is None
    with pytest.raises(ValidationError):
        parse_link("ftp://example.com")
