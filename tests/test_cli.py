from datetime import date, timedelta

import pytest

from stockapp import create_app
from stockapp.extensions import db
from stockapp.models import User
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
    user = User(username="office")
    user.set_password("password")
    db.session.add(user)
    db.session.commit()
    return RecordStore(user.id)


def test_overdue_borrows_command(app, store):
    item = stock_ledger.add_stock_item(
        store,
        {"item_name": "Projector", "total_quantity": 2, "location": "AV", "purchase_price": "400"},
    )
    yesterday = date.today() - timedelta(days=1)
    borrowing.borrow(
        store,
        item,
        {"borrower_name": "Dana", "quantity": 1, "expected_return_date": yesterday.isoformat()},
    )

    result = app.test_cli_runner().invoke(args=["overdue-borrows", "office"])

    assert result.exit_code == 0
    assert "Dana: 1 x Projector" in result.output


def test_low_stock_command(app, store):
    stock_ledger.add_stock_item(
        store,
        {"item_name": "Batteries", "total_quantity": 3, "location": "AV", "purchase_price": "1"},
    )

    result = app.test_cli_runner().invoke(args=["low-stock", "office", "--threshold", "5"])

    assert result.exit_code == 0
    assert "Batteries: 3 available" in result.output


def test_unknown_user_exits_nonzero(app):
    result = app.test_cli_runner().invoke(args=["low-stock", "nobody"])
    assert result.exit_code == 1
