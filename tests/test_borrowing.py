from datetime import date

import pytest

from stockapp import create_app
from stockapp.errors import AlreadyReturned, InsufficientStock, ValidationError
from stockapp.extensions import db
from stockapp.models import BorrowRecord, BorrowStatus, User
from stockapp.services import borrowing, stock_ledger
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
    user = User(username="lender")
    user.set_password("password")
    db.session.add(user)
    db.session.commit()
    return RecordStore(user.id)


@pytest.fixture
def camera(store):
    return stock_ledger.add_stock_item(
        store,
        {
            "item_name": "Camera",
            "total_quantity": "3",
            "location": "Media Room",
            "purchase_price": "250",
        },
    )


def test_borrow_takes_units_out_of_available(store, camera):
    record = borrowing.borrow(
        store, camera, {"borrower_name": "Sam", "quantity": "2"}
    )

    assert record.status == BorrowStatus.BORROWED
    assert record.item_name == "Camera"
    assert camera.available_quantity == 1
    assert camera.total_quantity == 3
    assert camera.borrowed_quantity == 2


def test_borrow_more_than_available_is_rejected(store, camera):
    with pytest.raises(InsufficientStock):
        borrowing.borrow(store, camera, {"borrower_name": "Sam", "quantity": "4"})

    assert camera.available_quantity == 3
    assert BorrowRecord.query.count() == 0


def test_borrower_name_is_required(store, camera):
    with pytest.raises(ValidationError) as excinfo:
        borrowing.borrow(store, camera, {"quantity": "1"})
    assert excinfo.value.field == "borrower_name"


def test_return_restores_available(store, camera):
    record = borrowing.borrow(store, camera, {"borrower_name": "Sam", "quantity": "2"})

    borrowing.return_item(store, record)

    assert record.status == BorrowStatus.RETURNED
    assert record.actual_return_date is not None
    assert camera.available_quantity == 3


def test_record_returns_only_once(store, camera):
    record = borrowing.borrow(store, camera, {"borrower_name": "Sam", "quantity": "1"})
    borrowing.return_item(store, record)

    with pytest.raises(AlreadyReturned):
        borrowing.return_item(store, record)
    assert camera.available_quantity == 3


def test_return_never_lifts_available_above_total(store, camera):
    record = borrowing.borrow(store, camera, {"borrower_name": "Sam", "quantity": "2"})
    # a stock take found the units on the shelf while they were still borrowed
    camera.available_quantity = 3
    db.session.commit()

    borrowing.return_item(store, record)

    assert camera.available_quantity == 3


def test_overdue_records_only_lists_open_borrows(store, camera):
    late = borrowing.borrow(
        store,
        camera,
        {"borrower_name": "Sam", "quantity": "1", "expected_return_date": "2026-01-10"},
    )
    borrowing.borrow(
        store,
        camera,
        {"borrower_name": "Alex", "quantity": "1", "expected_return_date": "2026-03-01"},
    )
    returned = borrowing.borrow(
        store,
        camera,
        {"borrower_name": "Kim", "quantity": "1", "expected_return_date": "2026-01-05"},
    )
    borrowing.return_item(store, returned)

    overdue = borrowing.overdue_records(store, today=date(2026, 2, 1))

    assert [record.id for record in overdue] == [late.id]


def test_list_records_filters_by_status_and_search(store, camera):
    borrowing.borrow(store, camera, {"borrower_name": "Sam", "quantity": "1"})
    returned = borrowing.borrow(store, camera, {"borrower_name": "Alex", "quantity": "1"})
    borrowing.return_item(store, returned)

    assert len(borrowing.list_records(store, status=BorrowStatus.BORROWED)) == 1
    assert [r.borrower_name for r in borrowing.list_records(store, search="ale")] == ["Alex"]
