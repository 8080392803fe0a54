"""Create the stock tracker tables.

Revision ID: 20261017_create_stock_tracker_tables
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_create_stock_tracker_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def _owner():
    return sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "stock_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.String(length=100), nullable=False, server_default="Warehouse"),
        sa.Column("course_tag", sa.String(length=50), nullable=True),
        sa.Column("purchase_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_present", sa.Boolean(), nullable=True),
        sa.Column("last_checked", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("available_quantity >= 0", name="ck_stock_item_available_non_negative"),
        sa.CheckConstraint(
            "available_quantity <= total_quantity", name="ck_stock_item_available_within_total"
        ),
        sa.CheckConstraint("purchase_price >= 0", name="ck_stock_item_price_non_negative"),
    )
    op.create_index("ix_stock_item_user_id", "stock_item", ["user_id"])

    op.create_table(
        "purchase_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("item_code", sa.String(length=32), nullable=False),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("where_to_buy", sa.String(length=200), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("link", sa.String(length=2048), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="considering"),
        sa.Column("course_tag", sa.String(length=50), nullable=True),
        sa.Column("is_present", sa.Boolean(), nullable=True),
        sa.Column("last_checked", sa.DateTime(), nullable=True),
        sa.Column(
            "stock_item_id",
            sa.Integer(),
            sa.ForeignKey("stock_item.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_item_quantity_positive"),
        sa.CheckConstraint("price >= 0", name="ck_purchase_item_price_non_negative"),
    )
    op.create_index("ix_purchase_item_user_id", "purchase_item", ["user_id"])
    op.create_index("ix_purchase_item_item_code", "purchase_item", ["item_code"])

    op.create_table(
        "stock_transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("stock_item_id", sa.Integer(), sa.ForeignKey("stock_item.id"), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("performed_by", sa.String(length=100), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column(
            "corrects_transaction_id",
            sa.Integer(),
            sa.ForeignKey("stock_transaction.id"),
            nullable=True,
        ),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transaction_quantity_positive"),
    )
    op.create_index("ix_stock_transaction_user_id", "stock_transaction", ["user_id"])
    op.create_index("ix_stock_transaction_stock_item_id", "stock_transaction", ["stock_item_id"])

    op.create_table(
        "borrow_record",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("stock_item_id", sa.Integer(), sa.ForeignKey("stock_item.id"), nullable=False),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("borrower_name", sa.String(length=100), nullable=False),
        sa.Column("borrower_contact", sa.String(length=100), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("borrow_date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("expected_return_date", sa.Date(), nullable=True),
        sa.Column("actual_return_date", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="borrowed"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_borrow_record_quantity_positive"),
    )
    op.create_index("ix_borrow_record_user_id", "borrow_record", ["user_id"])
    op.create_index("ix_borrow_record_stock_item_id", "borrow_record", ["stock_item_id"])

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("course_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("course_date", sa.Date(), nullable=False),
        sa.Column("instructor", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="planned"),
        *_timestamps(),
    )
    op.create_index("ix_course_user_id", "course", ["user_id"])

    op.create_table(
        "course_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("course.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("quantity_reserved", sa.Integer(), nullable=False),
        sa.Column("quantity_returned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity_outstocked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="reserved"),
        sa.Column("notes", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity_reserved > 0", name="ck_course_item_reserved_positive"),
        sa.CheckConstraint(
            "quantity_returned >= 0 AND quantity_outstocked >= 0",
            name="ck_course_item_settled_non_negative",
        ),
        sa.CheckConstraint(
            "quantity_returned + quantity_outstocked <= quantity_reserved",
            name="ck_course_item_settled_within_reserved",
        ),
    )
    op.create_index("ix_course_item_user_id", "course_item", ["user_id"])

    op.create_table(
        "stock_take_session",
        sa.Column("id", sa.Integer(), primary_key=True),
        _owner(),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_stock_take_session_user_id", "stock_take_session", ["user_id"])

    op.create_table(
        "stock_take_line",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("stock_take_session.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stock_item_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("snapshot_available", sa.Integer(), nullable=False),
        sa.Column("snapshot_total", sa.Integer(), nullable=False),
        sa.Column("counted_quantity", sa.Integer(), nullable=True),
        sa.Column("is_checked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("quantity_difference", sa.Integer(), nullable=True),
        sa.UniqueConstraint("session_id", "stock_item_id", name="uq_stock_take_line_item"),
    )


def downgrade() -> None:
    op.drop_table("stock_take_line")
    op.drop_index("ix_stock_take_session_user_id", table_name="stock_take_session")
    op.drop_table("stock_take_session")
    op.drop_index("ix_course_item_user_id", table_name="course_item")
    op.drop_table("course_item")
    op.drop_index("ix_course_user_id", table_name="course")
    op.drop_table("course")
    op.drop_index("ix_borrow_record_stock_item_id", table_name="borrow_record")
    op.drop_index("ix_borrow_record_user_id", table_name="borrow_record")
    op.drop_table("borrow_record")
    op.drop_index("ix_stock_transaction_stock_item_id", table_name="stock_transaction")
    op.drop_index("ix_stock_transaction_user_id", table_name="stock_transaction")
    op.drop_table("stock_transaction")
    op.drop_index("ix_purchase_item_item_code", table_name="purchase_item")
    op.drop_index("ix_purchase_item_user_id", table_name="purchase_item")
    op.drop_table("purchase_item")
    op.drop_index("ix_stock_item_user_id", table_name="stock_item")
    op.drop_table("stock_item")
    op.drop_table("user")
