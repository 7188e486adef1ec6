"""Initial schema: route overrides, schemas and security schemes.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "openapi_routes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("route_name", sa.String(255), nullable=True),
        sa.Column("http_method", sa.String(10), nullable=False),
        sa.Column("uri", sa.String(500), nullable=False),
        sa.Column("controller", sa.String(255), nullable=True),
        sa.Column("action", sa.String(255), nullable=True),
        sa.Column("operation_id", sa.String(255), nullable=True),
        sa.Column("summary", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("deprecated", sa.Boolean, nullable=True),
        sa.Column("external_docs_url", sa.String(500), nullable=True),
        sa.Column("external_docs_description", sa.String(255), nullable=True),
        sa.Column("request_body_description", sa.String(255), nullable=True),
        sa.Column("request_body_example", sa.JSON, nullable=True),
        sa.Column("request_body_required", sa.Boolean, nullable=True),
        sa.Column("request_body_schema", sa.JSON, nullable=True),
        sa.Column("response_descriptions", sa.JSON, nullable=True),
        sa.Column("response_examples", sa.JSON, nullable=True),
        sa.Column("custom_parameters", sa.JSON, nullable=True),
        sa.Column("security_requirements", sa.JSON, nullable=True),
        sa.Column("is_hidden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("auto_detected_data", sa.JSON, nullable=True),
        sa.Column("last_scanned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("http_method", "uri", name="unique_route"),
    )
    op.create_index("ix_openapi_routes_route_name", "openapi_routes", ["route_name"])
    op.create_index("ix_openapi_routes_http_method", "openapi_routes", ["http_method"])
    op.create_index("ix_openapi_routes_uri", "openapi_routes", ["uri"])

    op.create_table(
        "openapi_schemas",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("source_class", sa.String(255), nullable=True),
        sa.Column("schema", sa.JSON, nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("example", sa.JSON, nullable=True),
        sa.Column("refs", sa.JSON, nullable=True),
        sa.Column("is_auto_generated", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_openapi_schemas_source_class", "openapi_schemas", ["source_class"])

    op.create_table(
        "openapi_security_schemes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("api_key_name", sa.String(255), nullable=True),
        sa.Column("api_key_in", sa.String(16), nullable=True),
        sa.Column("scheme", sa.String(64), nullable=True),
        sa.Column("bearer_format", sa.String(64), nullable=True),
        sa.Column("flows", sa.JSON, nullable=True),
        sa.Column("open_id_connect_url", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("middleware", sa.JSON, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("openapi_security_schemes")
    op.drop_index("ix_openapi_schemas_source_class", table_name="openapi_schemas")
    op.drop_table("openapi_schemas")
    op.drop_index("ix_openapi_routes_uri", table_name="openapi_routes")
    op.drop_index("ix_openapi_routes_http_method", table_name="openapi_routes")
    op.drop_index("ix_openapi_routes_route_name", table_name="openapi_routes")
    op.drop_table("openapi_routes")
