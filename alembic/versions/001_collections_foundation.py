"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 001_collections_foundation (Alembic Migration)

Responsibilities:
  - Crear machines, collections, collection_history y collection_removals.
  - Enforzar en DB las invariantes de estado (CHECK constraints).
  - Índices para las queries reales (ventana de duplicados, pendientes,
    historial por cobranza).

Collaborators:
  - PostgreSQL 14+
  - infrastructure/repositories/postgres (usa este esquema como contrato)

Policy:
  - Convención de nombres:
      pk_<tabla> / uq_<tabla>_<col> / ix_<tabla>_<col>
      fk_<tabla>_<col>__<ref_tabla> / ck_<tabla>_<regla>
  - collection_removals NO tiene FK: sobrevive al registro borrado.
============================================================
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_collections_foundation"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # =========================================================
    # 1) MACHINES (referencia de solo lectura para el engine)
    # =========================================================
    op.create_table(
        "machines",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column(
            "is_active", sa.Boolean, nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_machines"),
        sa.UniqueConstraint("code", name="uq_machines_code"),
    )

    # =========================================================
    # 2) COLLECTIONS
    # =========================================================
    op.create_table(
        "collections",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("machine_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("operator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("manager_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("collected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'collected'"),
        ),
        sa.Column(
            "source",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'realtime'"),
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column("distance_from_machine", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_collections"),
        sa.ForeignKeyConstraint(
            ["machine_id"],
            ["machines.id"],
            name="fk_collections_machine_id__machines",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint(
            "status IN ('collected', 'received', 'cancelled')",
            name="ck_collections_status",
        ),
        sa.CheckConstraint(
            "source IN ('realtime', 'manual_history', 'excel_import')",
            name="ck_collections_source",
        ),
        sa.CheckConstraint(
            "status <> 'collected' OR amount IS NULL",
            name="ck_collections_collected_without_amount",
        ),
        sa.CheckConstraint(
            "status <> 'received' OR (amount IS NOT NULL "
            "AND manager_id IS NOT NULL AND received_at IS NOT NULL)",
            name="ck_collections_received_complete",
        ),
        # El techo es MAX_COLLECTION_AMOUNT (configurable); acá solo el signo.
        sa.CheckConstraint(
            "amount IS NULL OR amount >= 0",
            name="ck_collections_amount_non_negative",
        ),
        sa.CheckConstraint(
            "notes IS NULL OR char_length(notes) <= 1000",
            name="ck_collections_notes_length",
        ),
    )

    # Ventana de duplicados: machine_id + rango de collected_at.
    op.create_index(
        "ix_collections_machine_id_collected_at",
        "collections",
        ["machine_id", "collected_at"],
    )
    op.create_index("ix_collections_status", "collections", ["status"])
    op.create_index(
        "ix_collections_operator_id_collected_at",
        "collections",
        ["operator_id", "collected_at"],
    )

    # =========================================================
    # 3) COLLECTION_HISTORY (append-only)
    # =========================================================
    op.create_table(
        "collection_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("changed_by_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("field_name", sa.String(50), nullable=False),
        sa.Column("old_value", sa.Text, nullable=True),
        sa.Column("new_value", sa.Text, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_collection_history"),
        sa.ForeignKeyConstraint(
            ["collection_id"],
            ["collections.id"],
            name="fk_collection_history_collection_id__collections",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_collection_history_collection_id_created_at",
        "collection_history",
        ["collection_id", "created_at"],
    )

    # =========================================================
    # 4) COLLECTION_REMOVALS (append-only, sin FK)
    # =========================================================
    op.create_table(
        "collection_removals",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("removed_by_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "field_name",
            sa.String(50),
            nullable=False,
            server_default=sa.text("'deleted'"),
        ),
        sa.Column(
            "new_value",
            sa.Text,
            nullable=False,
            server_default=sa.text("'deleted'"),
        ),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column(
            "snapshot",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "purged_history_count",
            sa.Integer,
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_collection_removals"),
    )
    op.create_index(
        "ix_collection_removals_collection_id",
        "collection_removals",
        ["collection_id"],
    )


def downgrade() -> None:
    op.drop_table("collection_removals")
    op.drop_table("collection_history")
    op.drop_table("collections")
    op.drop_table("machines")
