import pytest

from stockapp import create_app
from stockapp.errors import ValidationError
from stockapp.extensions import db
from stockapp.models import CourseItem, CourseItemStatus, CourseStatus, User
from stockapp.services import course_reservations
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
    user = User(username="planner")
    user.set_password("password")
    db.session.add(user)
    db.session.commit()
    return RecordStore(user.id)


@pytest.fixture
def course(store):
    return course_reservations.create_course(
        store,
        {"course_name": "Pottery Basics", "course_date": "2026-11-02", "instructor": "Jo"},
    )


def _reserve(store, course, quantity=10):
    return course_reservations.add_course_item(
        store, course, {"item_name": "Clay", "quantity_reserved": str(quantity)}
    )


def test_course_defaults_to_planned(course):
    assert course.status == CourseStatus.PLANNED
    assert course.course_date.isoformat() == "2026-11-02"


def test_course_date_is_required(store):
    with pytest.raises(ValidationError) as excinfo:
        course_reservations.create_course(store, {"course_name": "Weaving"})
    assert excinfo.value.field == "course_date"


def test_courses_list_newest_first(store, course):
    later = course_reservations.create_course(
        store, {"course_name": "Glazing", "course_date": "2026-12-01"}
    )

    assert [c.id for c in course_reservations.list_courses(store)] == [later.id, course.id]


def test_new_reservation_is_unsettled(store, course):
    item = _reserve(store, course)

    assert item.status == CourseItemStatus.RESERVED
    assert item.quantity_returned == 0
    assert item.quantity_outstocked == 0


def test_return_to_stock_returns_everything(store, course):
    item = _reserve(store, course)

    course_reservations.return_to_stock(store, item)

    assert item.quantity_returned == 10
    assert item.status == CourseItemStatus.RETURNED


def test_outstock_then_return_settles_nothing_more(store, course):
    item = _reserve(store, course)

    course_reservations.outstock(store, item)
    assert item.quantity_outstocked == 10
    assert item.status == CourseItemStatus.OUTSTOCKED

    course_reservations.return_to_stock(store, item)
    assert item.quantity_returned == 0
    assert item.quantity_returned + item.quantity_outstocked <= item.quantity_reserved


def test_reserved_cannot_drop_below_settled(store, course):
    item = _reserve(store, course)
    course_reservations.outstock(store, item)

    with pytest.raises(ValidationError):
        course_reservations.update_course_item(store, item, {"quantity_reserved": "5"})
    assert item.quantity_reserved == 10


def test_raising_reserved_rederives_status(store, course):
    item = _reserve(store, course)
    course_reservations.outstock(store, item)

    course_reservations.update_course_item(store, item, {"quantity_reserved": "12"})

    assert item.quantity_reserved == 12
    assert item.status == CourseItemStatus.PARTIAL


def test_deleting_course_removes_its_items(store, course):
    _reserve(store, course)

    course_reservations.delete_course(store, course)

    assert CourseItem.query.count() == 0


def test_derive_status():
    assert course_reservations.derive_status(5, 0, 0) == CourseItemStatus.RESERVED
    assert course_reservations.derive_status(5, 5, 0) == CourseItemStatus.RETURNED
    assert course_reservations.derive_status(5, 0, 5) == CourseItemStatus.OUTSTOCKED
    assert course_reservations.derive_status(5, 2, 1) == CourseItemStatus.PARTIAL
