"""negotiation core tables

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-17 09:12:41.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f70001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "requirements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("negotiability", sa.String(16), nullable=False),
        sa.Column("negotiation_window", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("available_quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 2), nullable=True),
        sa.Column("posting_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("available_quantity >= 0", name="ck_requirements_available_nonnegative"),
    )
    op.create_index("ix_requirements_owner_status", "requirements", ["owner_id", "status"])

    op.create_table(
        "offers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("requirement_id", sa.Uuid(), sa.ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requirement_owner_id", sa.String(64), nullable=False),
        sa.Column("offer_user_id", sa.String(64), nullable=False),
        sa.Column("author_id", sa.String(64), nullable=False),
        sa.Column("offered_unit_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("offered_quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("original_price", sa.Numeric(18, 2), nullable=True),
        sa.Column("original_quantity", sa.Numeric(18, 4), nullable=True),
        sa.Column("negotiability", sa.String(16), nullable=False),
        sa.Column("negotiation_window", sa.Integer(), nullable=True),
        sa.Column("is_counter_offer", sa.Boolean(), nullable=False),
        sa.Column("parent_offer_id", sa.Uuid(), sa.ForeignKey("offers.id", ondelete="CASCADE"), nullable=True),
        sa.Column("root_offer_id", sa.Uuid(), sa.ForeignKey("offers.id", ondelete="CASCADE"), nullable=True),
        sa.Column("counteroffer_count", sa.Integer(), nullable=False),
        sa.Column("counteroffer_number", sa.Integer(), nullable=True),
        sa.Column("offer_status", sa.String(16), nullable=False),
        sa.Column("offer_expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("offer_message", sa.Text(), nullable=True),
        sa.Column("delivery_terms", sa.Text(), nullable=True),
        sa.Column("payment_terms", sa.Text(), nullable=True),
        sa.Column("offer_priority", sa.String(8), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("offered_quantity > 0", name="ck_offers_quantity_positive"),
        sa.CheckConstraint("offered_unit_price >= 0", name="ck_offers_price_nonnegative"),
        sa.CheckConstraint("counteroffer_count >= 0", name="ck_offers_counteroffer_count_nonnegative"),
    )
    op.create_index(
        "uq_offers_live_root",
        "offers",
        ["requirement_id", "offer_user_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL AND parent_offer_id IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL AND parent_offer_id IS NULL"),
    )
    op.create_index("ix_offers_status_expiry", "offers", ["offer_status", "offer_expiry_date"])
    op.create_index("ix_offers_root", "offers", ["root_offer_id"])
    op.create_index("ix_offers_requirement", "offers", ["requirement_id"])

    op.create_table(
        "bids",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("requirement_id", sa.Uuid(), sa.ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bidder_id", sa.String(64), nullable=False),
        sa.Column("price", sa.Numeric(18, 2), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("original_price", sa.Numeric(18, 2), nullable=True),
        sa.Column("original_quantity", sa.Numeric(18, 4), nullable=True),
        sa.Column("allocated_percentage", sa.Numeric(7, 4), nullable=True),
        sa.Column("allocated_quantity", sa.Numeric(18, 4), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_bids_quantity_positive"),
        sa.CheckConstraint("price >= 0", name="ck_bids_price_nonnegative"),
    )
    op.create_index(
        "uq_bids_active_bidder",
        "bids",
        ["requirement_id", "bidder_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_index("ix_bids_requirement_status", "bids", ["requirement_id", "status"])

    op.create_table(
        "offer_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("performed_by", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_offer_history_entity", "offer_history", ["entity_type", "entity_id", "performed_at"])

    op.create_table(
        "offer_notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.String(64), nullable=False),
        sa.Column("notification_type", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_offer_notifications_recipient",
        "offer_notifications",
        ["recipient_id", "is_read", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_offer_notifications_recipient", table_name="offer_notifications")
    op.drop_table("offer_notifications")
    op.drop_index("ix_offer_history_entity", table_name="offer_history")
    op.drop_table("offer_history")
    op.drop_index("ix_bids_requirement_status", table_name="bids")
    op.drop_index("uq_bids_active_bidder", table_name="bids")
    op.drop_table("bids")
    op.drop_index("ix_offers_requirement", table_name="offers")
    op.drop_index("ix_offers_root", table_name="offers")
    op.drop_index("ix_offers_status_expiry", table_name="offers")
    op.drop_index("uq_offers_live_root", table_name="offers")
    op.drop_table("offers")
    op.drop_index("ix_requirements_owner_status", table_name="requirements")
    op.drop_table("requirements")
