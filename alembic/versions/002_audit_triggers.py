"""
============================================================
TARJETA CRC (Class / Responsibilities / Collaborators)
============================================================
Class: 002_audit_triggers (Alembic Migration)

Responsibilities:
  - collection_history: rechazar UPDATE siempre; rechazar DELETE salvo que
    la transacción haya seteado vendcash.allow_history_purge = 'on'.
  - collection_removals: rechazar UPDATE y DELETE siempre.
  - collections: un registro cancelado no cambia de estado.

Collaborators:
  - PostgresCollectionHistoryRepository.purge_for_collection (setea el flag
    con set_config(..., true), local a la transacción)
============================================================
"""

from typing import Sequence, Union

from alembic import op

revision: str = "002_audit_triggers"
down_revision: Union[str, None] = "001_collections_foundation"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION vendcash_guard_collection_history()
        RETURNS trigger AS $$
        BEGIN
            IF TG_OP = 'UPDATE' THEN
                RAISE EXCEPTION 'collection_history is append-only'
                    USING ERRCODE = 'restrict_violation';
            END IF;
            IF TG_OP = 'DELETE'
               AND coalesce(current_setting('vendcash.allow_history_purge', true), 'off') <> 'on' THEN
                RAISE EXCEPTION 'collection_history rows can only be purged by collection removal'
                    USING ERRCODE = 'restrict_violation';
            END IF;
            RETURN OLD;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_collection_history_append_only
        BEFORE UPDATE OR DELETE ON collection_history
        FOR EACH ROW EXECUTE FUNCTION vendcash_guard_collection_history();
        """
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION vendcash_guard_collection_removals()
        RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'collection_removals is append-only'
                USING ERRCODE = 'restrict_violation';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_collection_removals_append_only
        BEFORE UPDATE OR DELETE ON collection_removals
        FOR EACH ROW EXECUTE FUNCTION vendcash_guard_collection_removals();
        """
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION vendcash_guard_cancelled_terminal()
        RETURNS trigger AS $$
        BEGIN
            IF OLD.status = 'cancelled' AND NEW.status <> 'cancelled' THEN
                RAISE EXCEPTION 'cancelled collections are terminal'
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_collections_cancelled_terminal
        BEFORE UPDATE OF status ON collections
        FOR EACH ROW EXECUTE FUNCTION vendcash_guard_cancelled_terminal();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_collections_cancelled_terminal ON collections")
    op.execute(
        "DROP TRIGGER IF EXISTS trg_collection_removals_append_only ON collection_removals"
    )
    op.execute(
        "DROP TRIGGER IF EXISTS trg_collection_history_append_only ON collection_history"
    )
    op.execute("DROP FUNCTION IF EXISTS vendcash_guard_cancelled_terminal()")
    op.execute("DROP FUNCTION IF EXISTS vendcash_guard_collection_removals()")
    op.execute("DROP FUNCTION IF EXISTS vendcash_guard_collection_history()")
