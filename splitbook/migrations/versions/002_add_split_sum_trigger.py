"""Add split sum integrity trigger (DB enforcement of sum(shares) == parent amount).

Revision: 002_add_split_sum_trigger
Created:  2026-10-19

split_service.py guarantees that the breakdown of a split parent sums to
its amount exactly. This trigger re-checks it at COMMIT on PostgreSQL, so a
write that bypasses the service layer cannot leave a split unbalanced.

Why a trigger and not a CHECK constraint:
  CHECK constraints are evaluated per-row and cannot aggregate sibling rows
  against a parent column.

Trigger design:
  Function : fn_check_split_share_sum()
    - Resolves the affected transaction_id from NEW or OLD.
    - Skips parents that no longer exist or are no longer split
      (split_type = 'none' after DELETE /splits/{id}).
    - Raises SQLSTATE 23514 (check_violation) if SUM(amount) differs.

  Trigger  : trg_split_shares_sum_check
    - CONSTRAINT TRIGGER, AFTER INSERT OR UPDATE OR DELETE ON split_shares
    - DEFERRABLE INITIALLY DEFERRED: fires at COMMIT. update_split deletes
      the old shares and writes new ones in one transaction; only the final
      state is checked.

Append-only: never edit after it has been applied; add a new migration.
"""

from __future__ import annotations

from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_split_sum_trigger"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


_CREATE_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_check_split_share_sum()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
    v_transaction_id INTEGER;
    v_share_sum      NUMERIC(14, 2);
    v_parent_amount  NUMERIC(14, 2);
    v_split_type     VARCHAR(10);
BEGIN
    IF TG_OP = 'DELETE' THEN
        v_transaction_id := OLD.transaction_id;
    ELSE
        v_transaction_id := NEW.transaction_id;
    END IF;

    SELECT amount, split_type
    INTO v_parent_amount, v_split_type
    FROM transactions
    WHERE id = v_transaction_id;

    -- Parent gone (cascade) or un-split: nothing to reconcile.
    IF NOT FOUND OR v_split_type = 'none' THEN
        RETURN NULL;
    END IF;

    SELECT COALESCE(SUM(amount), 0)
    INTO v_share_sum
    FROM split_shares
    WHERE transaction_id = v_transaction_id;

    IF v_share_sum <> v_parent_amount THEN
        RAISE EXCEPTION
            'split shares sum to % but transaction % has amount %',
            v_share_sum, v_transaction_id, v_parent_amount
            USING ERRCODE = '23514';
    END IF;

    RETURN NULL;
END;
$$;
"""

_CREATE_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_split_shares_sum_check
    AFTER INSERT OR UPDATE OR DELETE
    ON split_shares
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_split_share_sum();
"""

_DROP_TRIGGER = "DROP TRIGGER IF EXISTS trg_split_shares_sum_check ON split_shares;"
_DROP_FUNCTION = "DROP FUNCTION IF EXISTS fn_check_split_share_sum();"


def upgrade() -> None:
    """Function first; the trigger references it."""
    op.execute(_CREATE_FUNCTION)
    op.execute(_CREATE_TRIGGER)


def downgrade() -> None:
    op.execute(_DROP_TRIGGER)
    op.execute(_DROP_FUNCTION)
