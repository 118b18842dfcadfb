"""Tenancy schema: accounts, workspaces, teams, three membership tiers, audit trail.

Revision ID: 0001_tenancy_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_tenancy_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

MEMBERSHIP_TABLES = [
    ("account_memberships", "account_id", "accounts"),
    ("workspace_memberships", "workspace_id", "workspaces"),
    ("team_memberships", "team_id", "teams"),
]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _json(name: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), nullable=False, server_default="{}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Users and accounts (circular: owner_id / current_workspace_id)
    # -----------------------------------------------------------------------

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("current_workspace_id", postgresql.UUID(as_uuid=True), nullable=True),
        _json("settings"),
        _json("metadata"),
        *_timestamps(),
    )
    op.create_index("ix_users_status", "users", ["status"])

    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("plan", sa.Text(), nullable=False, server_default="free"),
        sa.Column("billing_email", sa.Text(), nullable=True),
        sa.Column(
            "owner_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_accounts_owner_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _json("settings"),
        _json("metadata"),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_ends_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_accounts_status", "accounts", ["status"])
    op.create_index("ix_accounts_owner_id", "accounts", ["owner_id"])

    # -----------------------------------------------------------------------
    # 2. Workspaces and teams (slug unique per parent)
    # -----------------------------------------------------------------------

    op.create_table(
        "workspaces",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        _json("settings"),
        _json("metadata"),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "slug", name="uq_workspaces_account_id_slug"),
    )
    op.create_index("ix_workspaces_account_id", "workspaces", ["account_id"])
    op.create_index("ix_workspaces_status", "workspaces", ["status"])

    op.create_foreign_key(
        "fk_users_current_workspace_id",
        "users",
        "workspaces",
        ["current_workspace_id"],
        ["id"],
        ondelete="SET NULL",
    )
    op.create_index("ix_users_current_workspace_id", "users", ["current_workspace_id"])

    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "workspace_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        _json("settings"),
        _json("metadata"),
        *_timestamps(),
        sa.UniqueConstraint("workspace_id", "slug", name="uq_teams_workspace_id_slug"),
    )
    op.create_index("ix_teams_account_id", "teams", ["account_id"])
    op.create_index("ix_teams_workspace_id", "teams", ["workspace_id"])
    op.create_index("ix_teams_status", "teams", ["status"])

    # -----------------------------------------------------------------------
    # 3. Memberships (one per user per parent)
    # -----------------------------------------------------------------------

    for table, parent_col, parent_table in MEMBERSHIP_TABLES:
        op.create_table(
            table,
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column(
                parent_col,
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey(f"{parent_table}.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "user_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("role", sa.Text(), nullable=False, server_default="member"),
            sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
            sa.Column(
                "invited_by_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("users.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("lock_version", sa.Integer(), nullable=False, server_default="1"),
            _json("metadata"),
            *_timestamps(),
            sa.UniqueConstraint(parent_col, "user_id", name=f"uq_{table}_{parent_col}_user_id"),
        )
        op.create_index(f"ix_{table}_{parent_col}", table, [parent_col])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_status", table, ["status"])

    # -----------------------------------------------------------------------
    # 4. Audit trail
    # -----------------------------------------------------------------------

    op.create_table(
        "audit_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("subject_kind", sa.Text(), nullable=True),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "workspace_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("workspaces.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _json("metadata"),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_subject", "audit_events", ["subject_kind", "subject_id"])
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])
    op.create_index("ix_audit_events_account_id", "audit_events", ["account_id"])
    op.create_index("ix_audit_events_workspace_id", "audit_events", ["workspace_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])

    # Append-only. The only permitted UPDATE is the ON DELETE SET NULL of a
    # tenant reference when a user, account or workspace is destroyed.
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_event_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            IF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'Audit events are immutable. DELETE is not permitted.';
            END IF;
            IF NEW.action IS DISTINCT FROM OLD.action
                OR NEW.subject_kind IS DISTINCT FROM OLD.subject_kind
                OR NEW.subject_id IS DISTINCT FROM OLD.subject_id
                OR NEW.metadata IS DISTINCT FROM OLD.metadata
                OR NEW.ip_address IS DISTINCT FROM OLD.ip_address
                OR NEW.user_agent IS DISTINCT FROM OLD.user_agent
                OR NEW.created_at IS DISTINCT FROM OLD.created_at
                OR (NEW.user_id IS NOT NULL AND NEW.user_id IS DISTINCT FROM OLD.user_id)
                OR (NEW.account_id IS NOT NULL AND NEW.account_id IS DISTINCT FROM OLD.account_id)
                OR (NEW.workspace_id IS NOT NULL AND NEW.workspace_id IS DISTINCT FROM OLD.workspace_id)
            THEN
                RAISE EXCEPTION 'Audit events are immutable. UPDATE is not permitted.';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER audit_events_immutable
        BEFORE UPDATE OR DELETE ON audit_events
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_event_mutation()
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_events_immutable ON audit_events")
    op.execute("DROP FUNCTION IF EXISTS prevent_audit_event_mutation()")
    op.drop_table("audit_events")

    for table, _, _ in reversed(MEMBERSHIP_TABLES):
        op.drop_table(table)

    op.drop_table("teams")
    op.drop_constraint("fk_users_current_workspace_id", "users", type_="foreignkey")
    op.drop_table("workspaces")
    op.drop_table("accounts")
    op.drop_table("users")
