# -------------------------
# Prompt Constants
# -------------------------

# Exact text the model must answer with when the request references
# anything outside the described schema. The SQL guard rejects it as non-SELECT.
UNKNOWN_SCHEMA_SENTINEL = "ERROR: Unknown table or column"

# Row limit the model applies when the user does not ask for one
DEFAULT_ROW_LIMIT = 30

USER_PROMPT_TEMPLATE = "Generate SQL for: {prompt}"

# -------------------------
# Request Constants
# -------------------------

MAX_PROMPT_LENGTH = 2000

# -------------------------
# SQL Guard Constants
# -------------------------

FORBIDDEN_KEYWORDS = (
    "insert", "update", "delete", "drop", "alter", "create",
    "truncate", "merge", "exec", "execute", "grant", "revoke",
)

# -------------------------
# Catalog Queries
# -------------------------

BASE_TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
      AND table_type = 'BASE TABLE'
"""

TABLE_COLUMNS_QUERY = """
    SELECT
        table_name,
        column_name,
        data_type
    FROM information_schema.columns
    WHERE table_schema = $1
      AND table_name = ANY($2::text[])
    ORDER BY table_name, ordinal_position
"""
