import sqlalchemy as sa

TABLE_PREFIX = "openapi_"

metadata = sa.MetaData()


def _json() -> sa.JSON:
    # Python None is stored as SQL NULL, never as a JSON null.
    return sa.JSON(none_as_null=True)


routes = sa.Table(
    f"{TABLE_PREFIX}routes",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("route_name", sa.String(255), nullable=True, index=True),
    sa.Column("http_method", sa.String(10), nullable=False, index=True),
    sa.Column("uri", sa.String(500), nullable=False, index=True),
    sa.Column("controller", sa.String(255), nullable=True),
    sa.Column("action", sa.String(255), nullable=True),
    sa.Column("operation_id", sa.String(255), nullable=True),
    sa.Column("summary", sa.String(500), nullable=True),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("tags", _json(), nullable=True),
    sa.Column("deprecated", sa.Boolean, nullable=True),
    sa.Column("external_docs_url", sa.String(500), nullable=True),
    sa.Column("external_docs_description", sa.String(255), nullable=True),
    sa.Column("request_body_description", sa.String(255), nullable=True),
    sa.Column("request_body_example", _json(), nullable=True),
    sa.Column("request_body_required", sa.Boolean, nullable=True),
    sa.Column("request_body_schema", _json(), nullable=True),
    sa.Column("response_descriptions", _json(), nullable=True),
    sa.Column("response_examples", _json(), nullable=True),
    sa.Column("custom_parameters", _json(), nullable=True),
    sa.Column("security_requirements", _json(), nullable=True),
    sa.Column("is_hidden", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("auto_detected_data", _json(), nullable=True),
    sa.Column("last_scanned_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("http_method", "uri", name="unique_route"),
)

schemas = sa.Table(
    f"{TABLE_PREFIX}schemas",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String(255), nullable=False, unique=True),
    sa.Column("source_class", sa.String(255), nullable=True, index=True),
    sa.Column("schema", _json(), nullable=False),
    sa.Column("title", sa.String(255), nullable=True),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("example", _json(), nullable=True),
    sa.Column("refs", _json(), nullable=True),
    sa.Column("is_auto_generated", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
)

security_schemes = sa.Table(
    f"{TABLE_PREFIX}security_schemes",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String(255), nullable=False, unique=True),
    sa.Column("type", sa.String(32), nullable=False),
    sa.Column("api_key_name", sa.String(255), nullable=True),
    sa.Column("api_key_in", sa.String(16), nullable=True),
    sa.Column("scheme", sa.String(64), nullable=True),
    sa.Column("bearer_format", sa.String(64), nullable=True),
    sa.Column("flows", _json(), nullable=True),
    sa.Column("open_id_connect_url", sa.String(500), nullable=True),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("middleware", _json(), nullable=True),
    sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
)

ROUTE_FIELDS = (
    "route_name",
    "http_method",
    "uri",
    "controller",
    "action",
    "operation_id",
    "summary",
    "description",
    "tags",
    "deprecated",
    "external_docs_url",
    "external_docs_description",
    "request_body_description",
    "request_body_example",
    "request_body_required",
    "request_body_schema",
    "response_descriptions",
    "response_examples",
    "custom_parameters",
    "security_requirements",
    "is_hidden",
    "auto_detected_data",
    "last_scanned_at",
)

SECURITY_SCHEME_FIELDS = (
    "name",
    "type",
    "api_key_name",
    "api_key_in",
    "scheme",
    "bearer_format",
    "flows",
    "open_id_connect_url",
    "description",
    "middleware",
    "is_default",
)
