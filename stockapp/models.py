from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from stockapp.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<User {self.username}>"


class PurchaseStatus:
    CONSIDERING = "considering"
    NOT_CONSIDER = "not_consider"
    WAITING_DELIVERY = "waiting_delivery"
    ARRIVED = "arrived"
    STORED = "stored"

    ALL_STATUSES = [CONSIDERING, NOT_CONSIDER, WAITING_DELIVERY, ARRIVED, STORED]
    # Reaching either of these moves the purchase into stock.
    RECEIVED_STATES = {ARRIVED, STORED}
    TRANSITIONS = {
        CONSIDERING: {NOT_CONSIDER, WAITING_DELIVERY, ARRIVED},
        WAITING_DELIVERY: {ARRIVED},
        ARRIVED: {STORED},
        NOT_CONSIDER: set(),
        STORED: set(),
    }
    LABELS = {
        CONSIDERING: "Considering",
        NOT_CONSIDER: "Not Considered",
        WAITING_DELIVERY: "Waiting Delivery",
        ARRIVED: "Arrived",
        STORED: "Stored",
    }

    @classmethod
    def is_expected(cls, old: str, new: str) -> bool:
        return old == new or new in cls.TRANSITIONS.get(old, set())


class PurchaseItem(db.Model):
    __tablename__ = "purchase_item"

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_item_quantity_positive"),
        db.CheckConstraint("price >= 0", name="ck_purchase_item_price_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    item_code = db.Column(db.String(32), nullable=False, index=True)
    item_name = db.Column(db.String(100), nullable=False)
    where_to_buy = db.Column(db.String(200), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    quantity = db.Column(db.Integer, nullable=False)
    link = db.Column(db.String(2048), nullable=True)
    status = db.Column(db.String(32), nullable=False, default=PurchaseStatus.CONSIDERING)
    course_tag = db.Column(db.String(50), nullable=True)
    is_present = db.Column(db.Boolean, nullable=True)
    last_checked = db.Column(db.DateTime, nullable=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_item.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    stock_item = db.relationship("StockItem")

    @property
    def status_label(self) -> str:
        return PurchaseStatus.LABELS.get(self.status, self.status.replace("_", " ").title())

    @property
    def is_locked(self) -> bool:
        return self.status in PurchaseStatus.RECEIVED_STATES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "where_to_buy": self.where_to_buy,
            "price": float(self.price or 0),
            "quantity": self.quantity,
            "link": self.link,
            "status": self.status,
            "status_label": self.status_label,
            "course_tag": self.course_tag,
            "is_present": self.is_present,
            "last_checked": _iso(self.last_checked),
            "stock_item_id": self.stock_item_id,
            "is_locked": self.is_locked,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<PurchaseItem {self.item_name} status={self.status}>"


class StockStatus:
    AVAILABLE = "available"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

    @classmethod
    def for_quantity(cls, available: int, threshold: int) -> str:
        if available <= 0:
            return cls.OUT_OF_STOCK
        if available < threshold:
            return cls.LOW_STOCK
        return cls.AVAILABLE


class StockItem(db.Model):
    __tablename__ = "stock_item"

    __table_args__ = (
        db.CheckConstraint(
            "available_quantity >= 0", name="ck_stock_item_available_non_negative"
        ),
        db.CheckConstraint(
            "available_quantity <= total_quantity",
            name="ck_stock_item_available_within_total",
        ),
        db.CheckConstraint(
            "purchase_price >= 0", name="ck_stock_item_price_non_negative"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    item_name = db.Column(db.String(100), nullable=False)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    available_quantity = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(100), nullable=False, default="Warehouse")
    course_tag = db.Column(db.String(50), nullable=True)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    is_present = db.Column(db.Boolean, nullable=True)
    last_checked = db.Column(db.DateTime, nullable=True)
    version_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Concurrent quantity edits fail with StaleDataError instead of silently
    # overwriting each other.
    __mapper_args__ = {"version_id_col": version_id}

    transactions = db.relationship(
        "StockTransaction",
        back_populates="stock_item",
        cascade="all, delete-orphan",
        order_by="StockTransaction.id",
    )
    borrow_records = db.relationship(
        "BorrowRecord",
        back_populates="stock_item",
        cascade="all, delete-orphan",
        order_by="BorrowRecord.id",
    )

    @property
    def borrowed_quantity(self) -> int:
        return sum(
            record.quantity
            for record in self.borrow_records
            if record.status == BorrowStatus.BORROWED
        )

    def stock_status(self, threshold: int = 5) -> str:
        return StockStatus.for_quantity(self.available_quantity or 0, threshold)

    def to_dict(self, low_stock_threshold: int = 5) -> dict:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "total_quantity": self.total_quantity,
            "available_quantity": self.available_quantity,
            "location": self.location,
            "course_tag": self.course_tag,
            "purchase_price": float(self.purchase_price or 0),
            "is_present": self.is_present,
            "last_checked": _iso(self.last_checked),
            "stock_status": self.stock_status(low_stock_threshold),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return (
            f"<StockItem {self.item_name} "
            f"available={self.available_quantity}/{self.total_quantity}>"
        )


class TransactionType:
    IN = "in"
    OUT = "out"

    ALL_TYPES = [IN, OUT]


class StockTransaction(db.Model):
    __tablename__ = "stock_transaction"

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_transaction_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_item.id"), nullable=False, index=True
    )
    type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(500), nullable=False, default="")
    performed_by = db.Column(db.String(100), nullable=False)
    date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    corrects_transaction_id = db.Column(
        db.Integer, db.ForeignKey("stock_transaction.id"), nullable=True
    )

    stock_item = db.relationship("StockItem", back_populates="transactions")
    corrects = db.relationship("StockTransaction", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_item_id": self.stock_item_id,
            "item_name": self.stock_item.item_name if self.stock_item else None,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "performed_by": self.performed_by,
            "date": _iso(self.date),
            "corrects_transaction_id": self.corrects_transaction_id,
        }

    def __repr__(self):
        return (
            f"<StockTransaction item={self.stock_item_id} "
            f"{self.type} qty={self.quantity}>"
        )


class BorrowStatus:
    BORROWED = "borrowed"
    RETURNED = "returned"

    ALL_STATUSES = [BORROWED, RETURNED]


class BorrowRecord(db.Model):
    __tablename__ = "borrow_record"

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_borrow_record_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_item.id"), nullable=False, index=True
    )
    item_name = db.Column(db.String(100), nullable=False)
    borrower_name = db.Column(db.String(100), nullable=False)
    borrower_contact = db.Column(db.String(100), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    borrow_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expected_return_date = db.Column(db.Date, nullable=True)
    actual_return_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=BorrowStatus.BORROWED)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    stock_item = db.relationship("StockItem", back_populates="borrow_records")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_item_id": self.stock_item_id,
            "item_name": self.item_name,
            "borrower_name": self.borrower_name,
            "borrower_contact": self.borrower_contact,
            "quantity": self.quantity,
            "borrow_date": _iso(self.borrow_date),
            "expected_return_date": _iso(self.expected_return_date),
            "actual_return_date": _iso(self.actual_return_date),
            "status": self.status,
            "notes": self.notes,
        }

    def __repr__(self):
        return (
            f"<BorrowRecord {self.item_name} x{self.quantity} "
            f"by={self.borrower_name} status={self.status}>"
        )


class CourseStatus:
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL_STATUSES = [PLANNED, IN_PROGRESS, COMPLETED, CANCELLED]


class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    course_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    course_date = db.Column(db.Date, nullable=False)
    instructor = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=CourseStatus.PLANNED)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    items = db.relationship(
        "CourseItem",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseItem.created_at",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "course_name": self.course_name,
            "description": self.description,
            "course_date": _iso(self.course_date),
            "instructor": self.instructor,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Course {self.course_name} {self.course_date}>"


class CourseItemStatus:
    RESERVED = "reserved"
    RETURNED = "returned"
    OUTSTOCKED = "outstocked"
    PARTIAL = "partial"

    ALL_STATUSES = [RESERVED, RETURNED, OUTSTOCKED, PARTIAL]


class CourseItem(db.Model):
    __tablename__ = "course_item"

    __table_args__ = (
        db.CheckConstraint(
            "quantity_reserved > 0", name="ck_course_item_reserved_positive"
        ),
        db.CheckConstraint(
            "quantity_returned >= 0 AND quantity_outstocked >= 0",
            name="ck_course_item_settled_non_negative",
        ),
        db.CheckConstraint(
            "quantity_returned + quantity_outstocked <= quantity_reserved",
            name="ck_course_item_settled_within_reserved",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    course_id = db.Column(
        db.Integer, db.ForeignKey("course.id", ondelete="CASCADE"), nullable=False
    )
    item_name = db.Column(db.String(100), nullable=False)
    quantity_reserved = db.Column(db.Integer, nullable=False)
    quantity_returned = db.Column(db.Integer, nullable=False, default=0)
    quantity_outstocked = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=CourseItemStatus.RESERVED)
    notes = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    course = db.relationship("Course", back_populates="items")

    @property
    def quantity_outstanding(self) -> int:
        return (
            (self.quantity_reserved or 0)
            - (self.quantity_returned or 0)
            - (self.quantity_outstocked or 0)
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "course_id": self.course_id,
            "item_name": self.item_name,
            "quantity_reserved": self.quantity_reserved,
            "quantity_returned": self.quantity_returned,
            "quantity_outstocked": self.quantity_outstocked,
            "quantity_outstanding": self.quantity_outstanding,
            "status": self.status,
            "notes": self.notes,
        }

    def __repr__(self):
        return (
            f"<CourseItem {self.item_name} reserved={self.quantity_reserved} "
            f"returned={self.quantity_returned} outstocked={self.quantity_outstocked}>"
        )


class StockTakeSession(db.Model):
    __tablename__ = "stock_take_session"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=True)

    lines = db.relationship(
        "StockTakeLine",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="StockTakeLine.id",
    )

    @property
    def is_open(self) -> bool:
        return self.submitted_at is None

    @property
    def checked_count(self) -> int:
        return sum(1 for line in self.lines if line.is_checked)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "started_at": _iso(self.started_at),
            "submitted_at": _iso(self.submitted_at),
            "total_lines": len(self.lines),
            "checked_lines": self.checked_count,
            "lines": [line.to_dict() for line in self.lines],
        }


class StockTakeLine(db.Model):
    __tablename__ = "stock_take_line"

    __table_args__ = (
        db.UniqueConstraint("session_id", "stock_item_id", name="uq_stock_take_line_item"),
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_take_session.id", ondelete="CASCADE"),
        nullable=False,
    )
    # No FK: the snapshot outlives stock rows deleted mid-session.
    stock_item_id = db.Column(db.Integer, nullable=False)
    item_name = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(100), nullable=True)
    snapshot_available = db.Column(db.Integer, nullable=False)
    snapshot_total = db.Column(db.Integer, nullable=False)
    counted_quantity = db.Column(db.Integer, nullable=True)
    is_checked = db.Column(db.Boolean, nullable=False, default=False)
    quantity_difference = db.Column(db.Integer, nullable=True)

    session = db.relationship("StockTakeSession", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "stock_item_id": self.stock_item_id,
            "item_name": self.item_name,
            "location": self.location,
            "snapshot_available": self.snapshot_available,
            "snapshot_total": self.snapshot_total,
            "counted_quantity": self.counted_quantity,
            "is_checked": self.is_checked,
            "quantity_difference": self.quantity_difference,
        }


def _iso(value):
    return value.isoformat() if value is not None else None
