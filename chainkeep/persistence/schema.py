"""SQL schema definitions for the SQLite key/value store."""

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_KV_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL DEFAULT (strftime('%s', 'now'))
);
"""

SCHEMA_STATEMENTS = [
    CREATE_KV_TABLE,
]
