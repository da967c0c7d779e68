# ABOUTME: SQL DDL statements for the metarr configuration database.
# ABOUTME: Defines the provider_config table and the list of migrations applied after it.

SCHEMA_V1 = """
-- One row per configured provider
CREATE TABLE provider_config (
    provider_name TEXT PRIMARY KEY,
    enabled       INTEGER NOT NULL DEFAULT 1,
    api_key       TEXT,
    base_url      TEXT,
    priority      INTEGER NOT NULL DEFAULT 100,
    language      TEXT NOT NULL DEFAULT 'en',
    -- Adapter-specific settings such as FanArt.tv personal keys, as a JSON object
    options       TEXT NOT NULL DEFAULT '{}',
    date_added    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
    date_modified TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX idx_provider_config_priority ON provider_config(priority);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# (version, sql) pairs applied in order to databases below that version.
# Each script inserts its own schema_version row.
MIGRATIONS: list[tuple[int, str]] = []
