"""Initial database schema.

Every entity is a row of ``(id, data jsonb, created_at, updated_at)``;
customers also carry an optimistic-locking ``version``.

Revision ID: 001
Revises:
Create Date: 2025-07-02

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENTITY_TABLES = ("customers", "segments", "policies", "customer_policies", "claims")

# (index name, table, document field); names are matched by the record store
# when translating unique violations.
UNIQUE_DOCUMENT_FIELDS = (
    ("customers_email_key", "customers", "email"),
    ("customers_phone_key", "customers", "phone"),
    ("segments_name_key", "segments", "name"),
    ("policies_name_key", "policies", "name"),
)


def _document_table(name: str, *, versioned: bool = False) -> None:
    columns = [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]
    if versioned:
        columns.append(
            sa.Column("version", sa.Integer(), nullable=False, server_default="1")
        )
    op.create_table(name, *columns, sa.PrimaryKeyConstraint("id", name=f"pk_{name}"))

    op.create_index(f"ix_{name}_created_at", name, ["created_at"])
    op.create_index(
        f"ix_{name}_data_gin", name, ["data"], postgresql_using="gin"
    )


def upgrade() -> None:
    """Create initial database schema."""
    for table in ENTITY_TABLES:
        _document_table(table, versioned=table == "customers")

    for index_name, table, field_name in UNIQUE_DOCUMENT_FIELDS:
        op.create_index(
            index_name,
            table,
            [sa.text(f"(data->>'{field_name}')")],
            unique=True,
        )

    op.create_index(
        "ix_customer_policies_customer_id",
        "customer_policies",
        [sa.text("(data->>'customer_id')")],
    )
    op.create_index(
        "ix_claims_customer_policy_id",
        "claims",
        [sa.text("(data->>'customer_policy_id')")],
    )
    # One pending claim per held policy.
    op.create_index(
        "claims_pending_customer_policy_key",
        "claims",
        [sa.text("(data->>'customer_policy_id')")],
        unique=True,
        postgresql_where=sa.text("data->>'status' = 'Pending'"),
    )

    op.create_table(
        "policy_number_sequences",
        sa.Column("scope", sa.Text(), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("scope", name="pk_policy_number_sequences"),
    )


def downgrade() -> None:
    """Drop initial database schema."""
    op.drop_table("policy_number_sequences")
    for table in reversed(ENTITY_TABLES):
        op.drop_table(table)
