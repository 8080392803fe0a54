"""Course and course reservation endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.models import Course, CourseItem
from stockapp.services import course_reservations

bp = Blueprint("courses", __name__, url_prefix="/api/courses")

bp.before_request(login_guard)


def _get_course(course_id: int) -> Course:
    course = current_store().get(Course, course_id)
    if course is None:
        raise NotFound("Course not found.")
    return course


def _get_course_item(course_id: int, item_id: int) -> CourseItem:
    item = current_store().get(CourseItem, item_id)
    if item is None or item.course_id != course_id:
        raise NotFound("Course item not found.")
    return item


@bp.get("/")
def list_courses():
    courses = course_reservations.list_courses(current_store())
    return jsonify({"courses": [course.to_dict() for course in courses]})


@bp.post("/")
def create_course():
    course = course_reservations.create_course(current_store(), request_payload())
    return jsonify(course.to_dict()), 201


@bp.get("/<int:course_id>")
def get_course(course_id: int):
    course = _get_course(course_id)
    payload = course.to_dict()
    payload["items"] = [
        item.to_dict()
        for item in course_reservations.list_course_items(current_store(), course)
    ]
    return jsonify(payload)


@bp.patch("/<int:course_id>")
def update_course(course_id: int):
    course = course_reservations.update_course(
        current_store(), _get_course(course_id), request_payload()
    )
    return jsonify(course.to_dict())


@bp.delete("/<int:course_id>")
def delete_course(course_id: int):
    course_reservations.delete_course(current_store(), _get_course(course_id))
    return "", 204


@bp.post("/<int:course_id>/items")
def add_item(course_id: int):
    item = course_reservations.add_course_item(
        current_store(), _get_course(course_id), request_payload()
    )
    return jsonify(item.to_dict()), 201


@bp.patch("/<int:course_id>/items/<int:item_id>")
def update_item(course_id: int, item_id: int):
    item = course_reservations.update_course_item(
        current_store(), _get_course_item(course_id, item_id), request_payload()
    )
    return jsonify(item.to_dict())


@bp.delete("/<int:course_id>/items/<int:item_id>")
def delete_item(course_id: int, item_id: int):
    course_reservations.delete_course_item(
        current_store(), _get_course_item(course_id, item_id)
    )
    return "", 204


@bp.post("/<int:course_id>/items/<int:item_id>/return")
def return_item(course_id: int, item_id: int):
    item = course_reservations.return_to_stock(
        current_store(), _get_course_item(course_id, item_id)
    )
    return jsonify(item.to_dict())


@bp.post("/<int:course_id>/items/<int:item_id>/outstock")
def outstock_item(course_id: int, item_id: int):
    item = course_reservations.outstock(
        current_store(), _get_course_item(course_id, item_id)
    )
    return jsonify(item.to_dict())
