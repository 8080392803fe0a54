"""Per-user access to the stock tracker tables.

Every row in the tracker belongs to exactly one user. ``RecordStore`` wraps the
SQLAlchemy session so that reads are always filtered by the owner and writes
always stamp it, and so that database failures reach the services as
:class:`~stockapp.errors.RemoteWriteFailure` after the session was rolled back.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from stockapp.errors import ConcurrentUpdate, RemoteWriteFailure
from stockapp.extensions import db

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, user_id: int, session=None):
        if user_id is None:
            raise ValueError("A record store needs an owning user.")
        self.user_id = user_id
        self.session = session or db.session

    def query(self, model):
        return self.session.query(model).filter(model.user_id == self.user_id)

    def select(self, model, *criteria, order_by=None, **filters) -> list:
        query = self.query(model).filter_by(**filters)
        if criteria:
            query = query.filter(*criteria)
        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                query = query.order_by(*order_by)
            else:
                query = query.order_by(order_by)
        return query.all()

    def get(self, model, record_id: Any):
        if record_id is None:
            return None
        try:
            record_id = int(record_id)
        except (TypeError, ValueError):
            return None
        return self.query(model).filter(model.id == record_id).first()

    def insert(self, model, **values):
        values["user_id"] = self.user_id
        row = model(**values)
        self.session.add(row)
        return row

    def update(self, row, **patch):
        self._check_owner(row)
        for key, value in patch.items():
            setattr(row, key, value)
        return row

    def delete(self, row) -> None:
        self._check_owner(row)
        self.session.delete(row)

    def commit(self) -> None:
        with self._translate_errors():
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @contextmanager
    def unit_of_work(self) -> Iterator["RecordStore"]:
        """Commit everything staged in the block at once, or nothing."""

        try:
            # Autoflush inside the block fails the same way a commit does.
            with self._translate_errors():
                yield self
        except Exception:
            self.session.rollback()
            raise
        self.commit()

    def _check_owner(self, row) -> None:
        owner = getattr(row, "user_id", None)
        if owner is not None and owner != self.user_id:
            raise PermissionError("Record belongs to another user.")

    @contextmanager
    def _translate_errors(self):
        try:
            yield
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Concurrent update rejected for user %s: %s", self.user_id, exc)
            raise ConcurrentUpdate() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Database write failed for user %s", self.user_id)
            raise RemoteWriteFailure() from exc
