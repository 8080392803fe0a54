import io

import pytest

from stockapp import create_app
from stockapp.extensions import db
from stockapp.models import User


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
def client(app):
    return app.test_client()


def register(client, username="mr_ray", password="secret123"):
    return client.post(
        "/auth/register", json={"username": username, "password": password}
    )


def create_purchase(client, **overrides):
    payload = {
        "item_name": "Soldering Iron",
        "where_to_buy": "Electronics Depot",
        "price": "35.00",
        "quantity": "3",
    }
    payload.update(overrides)
    return client.post("/api/purchases/", json=payload)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_blueprints_registered(app):
    for name in [
        "auth",
        "purchasing",
        "stock",
        "transactions",
        "borrowing",
        "stock_take",
        "courses",
        "dashboard",
    ]:
        assert name in app.blueprints


def test_superuser_is_created_at_startup(app):
    assert User.query.filter_by(username=app.config["ADMIN_USER"]).first() is not None


def test_api_requires_login(client):
    response = client.get("/api/purchases/")
    assert response.status_code == 401
    assert "error" in response.get_json()


def test_register_login_and_logout(client):
    assert register(client).status_code == 201
    assert client.get("/auth/me").get_json()["username"] == "mr_ray"

    client.post("/auth/logout")
    assert client.get("/api/stock/").status_code == 401

    bad = client.post("/auth/login", json={"username": "mr_ray", "password": "nope"})
    assert bad.status_code == 401
    good = client.post("/auth/login", json={"username": "mr_ray", "password": "secret123"})
    assert good.status_code == 200


def test_register_rejects_taken_name_and_short_password(client):
    register(client)
    client.post("/auth/logout")

    assert register(client).status_code == 409
    short = register(client, username="other", password="abc")
    assert short.status_code == 400
    assert short.get_json()["field"] == "password"


def test_validation_error_names_the_field(client):
    register(client)

    response = create_purchase(client, quantity="0")

    assert response.status_code == 400
    assert response.get_json()["field"] == "quantity"


def test_duplicate_purchase_returns_conflict(client):
    register(client)
    create_purchase(client)

    response = create_purchase(client, item_name="soldering iron")
    assert response.status_code == 409
    assert response.get_json()["duplicate"] is True

    confirmed = create_purchase(client, item_name="soldering iron", confirm_duplicate=True)
    assert confirmed.status_code == 201


def test_arrival_creates_stock_row(client):
    register(client)
    item = create_purchase(client).get_json()

    response = client.post(
        f"/api/purchases/{item['id']}/status", json={"status": "arrived", "location": "Lab 3"}
    )

    body = response.get_json()
    assert response.status_code == 200
    assert body["item"]["status"] == "arrived"
    assert body["stock_item"]["location"] == "Lab 3"
    assert body["stock_item"]["available_quantity"] == 3

    again = client.post(f"/api/purchases/{item['id']}/status", json={"status": "stored"})
    assert again.get_json()["stock_item"] is None
    assert len(client.get("/api/stock/").get_json()["items"]) == 1


def test_stock_movements_and_insufficient_stock(client):
    register(client)
    stock = client.post(
        "/api/stock/",
        json={
            "item_name": "Multimeter",
            "total_quantity": 5,
            "location": "Lab 1",
            "purchase_price": "20",
        },
    ).get_json()

    out = client.post(
        f"/api/stock/{stock['id']}/transactions",
        json={"type": "out", "quantity": 2, "performed_by": "Mr. Ray"},
    )
    assert out.status_code == 201
    assert out.get_json()["item"]["available_quantity"] == 3

    too_many = client.post(
        f"/api/stock/{stock['id']}/transactions",
        json={"type": "out", "quantity": 9, "performed_by": "Mr. Ray"},
    )
    assert too_many.status_code == 409
    assert too_many.get_json()["available"] == 3

    transaction_id = out.get_json()["transaction"]["id"]
    correction = client.post(
        f"/api/transactions/{transaction_id}/correct", json={"performed_by": "Mr. Ray"}
    )
    assert correction.status_code == 201
    assert correction.get_json()["corrects_transaction_id"] == transaction_id

    history = client.get(f"/api/transactions/?stock_item_id={stock['id']}").get_json()
    assert len(history["transactions"]) == 2


def test_users_only_see_their_own_rows(client):
    register(client, username="alice")
    stock = client.post(
        "/api/stock/",
        json={"item_name": "Oscilloscope", "total_quantity": 1, "location": "Lab", "purchase_price": "300"},
    ).get_json()
    client.post("/auth/logout")

    register(client, username="bob")
    assert client.get(f"/api/stock/{stock['id']}").status_code == 404
    assert client.get("/api/stock/").get_json()["items"] == []


def test_borrow_and_return_flow(client):
    register(client)
    stock = client.post(
        "/api/stock/",
        json={"item_name": "Tablet", "total_quantity": 2, "location": "Cart", "purchase_price": "150"},
    ).get_json()

    borrowed = client.post(
        "/api/borrows/",
        json={"stock_item_id": stock["id"], "borrower_name": "Pat", "quantity": 2},
    )
    assert borrowed.status_code == 201
    record_id = borrowed.get_json()["id"]

    assert client.get(f"/api/stock/{stock['id']}").get_json()["available_quantity"] == 0

    assert client.post(f"/api/borrows/{record_id}/return").status_code == 200
    again = client.post(f"/api/borrows/{record_id}/return")
    assert again.status_code == 409


def test_stock_take_flow_and_report(client):
    register(client)
    stock = client.post(
        "/api/stock/",
        json={"item_name": "Breadboard", "total_quantity": 10, "location": "Lab", "purchase_price": "5"},
    ).get_json()

    assert client.post("/api/stock-take/start").status_code == 201
    count = client.post(
        "/api/stock-take/count", json={"stock_item_id": stock["id"], "counted_quantity": 7}
    )
    assert count.get_json()["quantity_difference"] == -3

    submitted = client.post("/api/stock-take/submit").get_json()
    assert submitted["changed"] == 1
    assert submitted["report"][0]["difference"] == -3
    assert client.get("/api/stock-take/").get_json()["session"] is None

    report = client.get("/api/stock-take/report")
    assert report.status_code == 200
    assert report.mimetype.endswith("spreadsheetml.sheet")

    csv_report = client.get("/api/stock-take/report?format=csv")
    assert b"Breadboard,10,7,-3" in csv_report.data


def test_stock_take_without_session_is_not_found(client):
    register(client)
    assert client.post("/api/stock-take/submit").status_code == 404


def test_course_reservation_flow(client):
    register(client)
    course = client.post(
        "/api/courses/", json={"course_name": "Robotics", "course_date": "2026-11-20"}
    ).get_json()
    item = client.post(
        f"/api/courses/{course['id']}/items", json={"item_name": "Servo", "quantity_reserved": 6}
    ).get_json()

    response = client.post(f"/api/courses/{course['id']}/items/{item['id']}/outstock")

    assert response.get_json()["status"] == "outstocked"
    detail = client.get(f"/api/courses/{course['id']}").get_json()
    assert detail["items"][0]["quantity_outstocked"] == 6


def test_purchase_import_and_export(client):
    register(client)
    upload = io.BytesIO(
        b"Item Name,Where To Buy,Price,Quantity\n"
        b"Wire Spool,Electronics Depot,9.99,2\n"
        b"Solder,Electronics Depot,,1\n"
    )

    response = client.post(
        "/api/purchases/import",
        data={"file": (upload, "purchases.csv")},
        content_type="multipart/form-data",
    )

    assert response.get_json()["imported"] == 1
    assert response.get_json()["skipped"] == 1

    export = client.get("/api/purchases/export.csv")
    lines = export.get_data(as_text=True).splitlines()
    assert lines[0].startswith("item_code,item_name")
    assert "Wire Spool" in lines[1]


def test_import_rejects_unknown_file_type(client):
    register(client)
    response = client.post(
        "/api/purchases/import",
        data={"file": (io.BytesIO(b"x"), "purchases.pdf")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400


def test_dashboard_and_search(client):
    register(client)
    create_purchase(client, item_name="Arduino Kit")
    client.post(
        "/api/stock/",
        json={"item_name": "Jumper Wires", "total_quantity": 2, "location": "Lab", "purchase_price": "3"},
    )

    summary = client.get("/api/dashboard").get_json()
    assert summary["total_purchases"] == 1
    assert summary["low_stock_items"] == 1

    found = client.get("/api/search?q=arduino").get_json()
    assert [row["item_name"] for row in found["purchases"]] == ["Arduino Kit"]


def test_json_export_returns_rows(client):
    register(client)
    create_purchase(client)

    rows = client.get("/api/purchases/export.json").get_json()

    assert [row["item_name"] for row in rows] == ["Soldering Iron"]


def test_missing_record_is_not_found(client):
    register(client)

    response = client.get("/api/purchases/999")

    assert response.status_code == 404
    assert response.get_json()["error"] == "Purchase item not found."


def test_programming_errors_are_server_errors(app, client):
    def broken():
        return {}["missing"]

    app.add_url_rule("/broken", "broken", broken)

    response = client.get("/broken")

    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal Server Error"}


def test_responses_carry_request_id(app, client, tmp_path):
    response = client.get("/health")

    assert len(response.headers["X-Request-ID"]) == 12
    assert (tmp_path / "stock_tracker.log").exists()
