import os
import sys
from decimal import Decimal

import pytest
from sqlalchemy import text

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockapp import create_app
from stockapp.errors import (
    ConcurrentUpdate,
    InsufficientStock,
    RemoteWriteFailure,
    ValidationError,
)
from stockapp.extensions import db
from stockapp.models import StockItem, StockTransaction, TransactionType, User
from stockapp.services import stock_ledger
from stockapp.services.record_store import RecordStore


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_DIR": str(tmp_path),
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    user = User(username="workshop")
    user.set_password("password")
    db.session.add(user)
    db.session.commit()
    return RecordStore(user.id)


@pytest.fixture
def glue(store):
    return stock_ledger.add_stock_item(
        store,
        {
            "item_name": "Glue Sticks",
            "total_quantity": "10",
            "location": "Shelf A",
            "purchase_price": "2.50",
        },
    )


def test_new_stock_item_starts_fully_available(glue):
    assert glue.total_quantity == 10
    assert glue.available_quantity == 10
    assert glue.user_id is not None


def test_stock_in_raises_available_and_total(store, glue):
    transaction = stock_ledger.apply_transaction(
        store, glue, TransactionType.IN, 5, "Delivery", "Ms. Lee"
    )

    assert glue.available_quantity == 15
    assert glue.total_quantity == 15
    assert transaction.type == TransactionType.IN
    assert transaction.quantity == 5
    assert transaction.stock_item_id == glue.id


def test_stock_out_lowers_available_only(store, glue):
    stock_ledger.apply_transaction(store, glue, TransactionType.OUT, 4, "Class use", "Ms. Lee")

    assert glue.available_quantity == 6
    assert glue.total_quantity == 10


def test_stock_out_beyond_available_changes_nothing(store, glue):
    with pytest.raises(InsufficientStock) as excinfo:
        stock_ledger.apply_transaction(
            store, glue, TransactionType.OUT, 11, "Class use", "Ms. Lee"
        )

    assert excinfo.value.requested == 11
    assert excinfo.value.available == 10
    db.session.refresh(glue)
    assert glue.available_quantity == 10
    assert glue.total_quantity == 10
    assert StockTransaction.query.count() == 0


def test_transaction_requires_performer(store, glue):
    with pytest.raises(ValidationError) as excinfo:
        stock_ledger.apply_transaction(store, glue, TransactionType.IN, 1, "", "  ")
    assert excinfo.value.field == "performed_by"


def test_unknown_transaction_type_is_rejected(store, glue):
    with pytest.raises(ValidationError):
        stock_ledger.apply_transaction(store, glue, "sideways", 1, "", "Ms. Lee")


def test_correcting_stock_out_restores_quantities(store, glue):
    original = stock_ledger.apply_transaction(
        store, glue, TransactionType.OUT, 4, "Class use", "Ms. Lee"
    )

    correction = stock_ledger.correct_transaction(store, original, "Ms. Lee")

    assert correction.type == TransactionType.IN
    assert correction.quantity == 4
    assert correction.corrects_transaction_id == original.id
    assert glue.available_quantity == 10
    assert glue.total_quantity == 10
    # the original entry is untouched
    db.session.refresh(original)
    assert original.type == TransactionType.OUT
    assert original.quantity == 4


def test_correcting_stock_in_takes_back_the_total(store, glue):
    original = stock_ledger.apply_transaction(
        store, glue, TransactionType.IN, 5, "Delivery", "Ms. Lee"
    )

    stock_ledger.correct_transaction(store, original, "Ms. Lee", "Wrong item")

    assert glue.available_quantity == 10
    assert glue.total_quantity == 10
    assert StockTransaction.query.count() == 2


def test_transaction_is_corrected_only_once(store, glue):
    original = stock_ledger.apply_transaction(
        store, glue, TransactionType.OUT, 2, "Class use", "Ms. Lee"
    )
    stock_ledger.correct_transaction(store, original, "Ms. Lee")

    with pytest.raises(ValidationError):
        stock_ledger.correct_transaction(store, original, "Ms. Lee")
    assert glue.available_quantity == 10


def test_stale_stock_row_raises_concurrent_update(store, glue):
    db.session.execute(
        text("UPDATE stock_item SET version_id = version_id + 1 WHERE id = :id"),
        {"id": glue.id},
    )

    with pytest.raises(ConcurrentUpdate):
        stock_ledger.apply_transaction(store, glue, TransactionType.IN, 1, "", "Ms. Lee")


def test_update_stock_item_leaves_quantities_alone(store, glue):
    stock_ledger.update_stock_item(
        store, glue, {"location": "Cabinet 2", "total_quantity": "99"}
    )

    assert glue.location == "Cabinet 2"
    assert glue.total_quantity == 10


def test_other_users_cannot_touch_stock(app, store, glue):
    other = User(username="other")
    other.set_password("password")
    db.session.add(other)
    db.session.commit()
    other_store = RecordStore(other.id)

    assert other_store.get(StockItem, glue.id) is None
    with pytest.raises(PermissionError):
        stock_ledger.delete_stock_item(other_store, glue)


def test_list_transactions_filters_by_type(store, glue):
    stock_ledger.apply_transaction(store, glue, TransactionType.IN, 3, "Delivery", "Ms. Lee")
    stock_ledger.apply_transaction(store, glue, TransactionType.OUT, 1, "Class", "Ms. Lee")

    outs = stock_ledger.list_transactions(store, type=TransactionType.OUT)

    assert [tx.quantity for tx in outs] == [1]


def test_import_stock_skips_inconsistent_rows(store):
    csv_text = (
        "Item Name,Total,Available,Location,Price\n"
        "Scissors,12,10,Drawer 1,4.00\n"
        "Rulers,5,8,Drawer 2,1.00\n"
        "Tape,3,,Drawer 3,1.00\n"
    )

    result = stock_ledger.import_stock_items(store, csv_text)

    assert result.imported == 1
    assert result.skipped == 2
    scissors = StockItem.query.one()
    assert scissors.item_name == "Scissors"
    assert scissors.total_quantity == 12
    assert scissors.available_quantity == 10


def test_autoflush_failure_inside_unit_of_work_is_translated(store, glue):
    with pytest.raises(RemoteWriteFailure):
        with store.unit_of_work():
            store.insert(
                StockItem,
                item_name="Broken Row",
                total_quantity=1,
                available_quantity=5,
                location="Shelf B",
                purchase_price=Decimal("1.00"),
            )
            # the query autoflushes the row above
            store.select(StockItem)

    assert [item.item_name for item in StockItem.query.all()] == ["Glue Sticks"]
