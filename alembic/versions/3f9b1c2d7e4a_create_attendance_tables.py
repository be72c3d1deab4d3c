"""create_attendance_tables

Revision ID: 3f9b1c2d7e4a
Revises:
Create Date: 2026-10-18 09:12:41.318205

"""

from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9b1c2d7e4a"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create events, wallet_records and mint_records tables."""
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("luma_event_id", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("date", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("location", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("organizer", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("image_url", sqlmodel.sql.sqltypes.AutoString(length=1024), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_events_luma_event_id"), "events", ["luma_event_id"], unique=True)
    op.create_index(op.f("ix_events_date"), "events", ["date"], unique=False)
    op.create_index(op.f("ix_events_organizer"), "events", ["organizer"], unique=False)
    op.create_index(op.f("ix_events_active"), "events", ["active"], unique=False)

    op.create_table(
        "wallet_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(length=320), nullable=False),
        sa.Column("wallet_address", sqlmodel.sql.sqltypes.AutoString(length=42), nullable=False),
        sa.Column("keystore", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    # Unique: one custodial wallet per attendee email
    op.create_index(op.f("ix_wallet_records_email"), "wallet_records", ["email"], unique=True)

    op.create_table(
        "mint_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("token_id", sa.BigInteger(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("attendee_email", sqlmodel.sql.sqltypes.AutoString(length=320), nullable=False),
        sa.Column("wallet_address", sqlmodel.sql.sqltypes.AutoString(length=42), nullable=False),
        sa.Column("tx_hash", sqlmodel.sql.sqltypes.AutoString(length=66), nullable=True),
        sa.Column("minted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        # Unique: at most one attendance NFT per (event, attendee)
        sa.UniqueConstraint("event_id", "attendee_email", name="uq_mint_records_event_attendee"),
    )
    op.create_index(op.f("ix_mint_records_token_id"), "mint_records", ["token_id"], unique=False)
    op.create_index(op.f("ix_mint_records_event_id"), "mint_records", ["event_id"], unique=False)
    op.create_index(
        op.f("ix_mint_records_attendee_email"), "mint_records", ["attendee_email"], unique=False
    )
    op.create_index(op.f("ix_mint_records_minted_at"), "mint_records", ["minted_at"], unique=False)


def downgrade() -> None:
    """Drop attendance tables."""
    op.drop_index(op.f("ix_mint_records_minted_at"), table_name="mint_records")
    op.drop_index(op.f("ix_mint_records_attendee_email"), table_name="mint_records")
    op.drop_index(op.f("ix_mint_records_event_id"), table_name="mint_records")
    op.drop_index(op.f("ix_mint_records_token_id"), table_name="mint_records")
    op.drop_table("mint_records")

    op.drop_index(op.f("ix_wallet_records_email"), table_name="wallet_records")
    op.drop_table("wallet_records")

    op.drop_index(op.f("ix_events_active"), table_name="events")
    op.drop_index(op.f("ix_events_organizer"), table_name="events")
    op.drop_index(op.f("ix_events_date"), table_name="events")
    op.drop_index(op.f("ix_events_luma_event_id"), table_name="events")
    op.drop_table("events")
