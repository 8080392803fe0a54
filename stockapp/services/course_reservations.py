"""Courses and the materials reserved for them."""

from __future__ import annotations

import logging
from typing import Mapping

from stockapp.errors import ValidationError
from stockapp.models import Course, CourseItem, CourseItemStatus, CourseStatus
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import (
    optional_text,
    parse_date,
    parse_quantity,
    parse_status,
    require_text,
    validate_course,
    validate_course_item,
)

logger = logging.getLogger(__name__)


def derive_status(reserved: int, returned: int, outstocked: int) -> str:
    if returned == 0 and outstocked == 0:
        return CourseItemStatus.RESERVED
    if returned == reserved:
        return CourseItemStatus.RETURNED
    if outstocked == reserved:
        return CourseItemStatus.OUTSTOCKED
    return CourseItemStatus.PARTIAL


def return_to_stock(store: RecordStore, course_item: CourseItem) -> CourseItem:
    """Return everything that was not already outstocked."""

    outstocked = course_item.quantity_outstocked or 0
    returned = course_item.quantity_reserved - outstocked
    status = CourseItemStatus.PARTIAL if outstocked > 0 else CourseItemStatus.RETURNED
    with store.unit_of_work():
        store.update(course_item, quantity_returned=returned, status=status)
    logger.info(
        "Returned %s x %s from course %s", returned, course_item.item_name, course_item.course_id
    )
    return course_item


def outstock(store: RecordStore, course_item: CourseItem) -> CourseItem:
    """Consume everything that was not already returned."""

    returned = course_item.quantity_returned or 0
    outstocked = course_item.quantity_reserved - returned
    status = CourseItemStatus.PARTIAL if returned > 0 else CourseItemStatus.OUTSTOCKED
    with store.unit_of_work():
        store.update(course_item, quantity_outstocked=outstocked, status=status)
    logger.info(
        "Outstocked %s x %s for course %s", outstocked, course_item.item_name, course_item.course_id
    )
    return course_item


def create_course(store: RecordStore, data: Mapping) -> Course:
    cleaned = validate_course(data)
    with store.unit_of_work():
        course = store.insert(Course, **cleaned)
    return course


def update_course(store: RecordStore, course: Course, data: Mapping) -> Course:
    patch = {}
    if "course_name" in data:
        patch["course_name"] = require_text(
            data, "course_name", "Course name", max_length=100
        )
    if "description" in data:
        patch["description"] = optional_text(
            data, "description", "Description", max_length=500
        )
    if "course_date" in data:
        patch["course_date"] = parse_date(
            data.get("course_date"), "course_date", label="Course date", required=True
        )
    if "instructor" in data:
        patch["instructor"] = optional_text(
            data, "instructor", "Instructor name", max_length=100
        )
    if "status" in data:
        patch["status"] = parse_status(data.get("status"), CourseStatus.ALL_STATUSES)
    with store.unit_of_work():
        store.update(course, **patch)
    return course


def delete_course(store: RecordStore, course: Course) -> None:
    with store.unit_of_work():
        store.delete(course)


def list_courses(store: RecordStore) -> list[Course]:
    return store.select(Course, order_by=(Course.course_date.desc(), Course.id.desc()))


def add_course_item(store: RecordStore, course: Course, data: Mapping) -> CourseItem:
    cleaned = validate_course_item(data)
    with store.unit_of_work():
        item = store.insert(
            CourseItem,
            course=course,
            quantity_returned=0,
            quantity_outstocked=0,
            status=CourseItemStatus.RESERVED,
            **cleaned,
        )
    return item


def update_course_item(store: RecordStore, course_item: CourseItem, data: Mapping) -> CourseItem:
    patch = {}
    if "item_name" in data:
        patch["item_name"] = require_text(data, "item_name", "Item name", max_length=100)
    if "notes" in data:
        patch["notes"] = optional_text(data, "notes", "Notes", max_length=500)
    if "quantity_reserved" in data:
        reserved = parse_quantity(data.get("quantity_reserved"), "quantity_reserved")
        settled = (course_item.quantity_returned or 0) + (
            course_item.quantity_outstocked or 0
        )
        if reserved < settled:
            raise ValidationError(
                "quantity_reserved",
                f"Quantity cannot drop below the {settled} already returned or outstocked",
            )
        patch["quantity_reserved"] = reserved
        patch["status"] = derive_status(
            reserved,
            course_item.quantity_returned or 0,
            course_item.quantity_outstocked or 0,
        )
    with store.unit_of_work():
        store.update(course_item, **patch)
    return course_item


def delete_course_item(store: RecordStore, course_item: CourseItem) -> None:
    with store.unit_of_work():
        store.delete(course_item)


def list_course_items(store: RecordStore, course: Course) -> list[CourseItem]:
    return store.select(
        CourseItem,
        course_id=course.id,
        order_by=(CourseItem.created_at.asc(), CourseItem.id.asc()),
    )
