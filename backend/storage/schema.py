"""Database schema for PulseDeck.

All tables are created with IF NOT EXISTS so initialization is idempotent.
"""

SCHEMA_SQL = """
-- ============================================================
-- PulseDeck Database Schema
-- ============================================================

-- WORKSPACES
-- Tenancy root. Rows are created on first write for a workspace id.
CREATE TABLE IF NOT EXISTS workspaces (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

-- MAPPING TEMPLATES
-- mapping is a JSON array of {"source_column", "target_field"} objects
CREATE TABLE IF NOT EXISTS mapping_templates (
    id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    platform TEXT NOT NULL,
    name TEXT NOT NULL,
    mapping TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_templates_workspace ON mapping_templates(workspace_id, platform);
CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_one_default
    ON mapping_templates(workspace_id, platform) WHERE is_default = 1;

-- UPLOAD JOBS
-- One ingestion attempt. Counters only move forward.
CREATE TABLE IF NOT EXISTS upload_jobs (
    id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    platform TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    stored_filename TEXT NOT NULL,
    content_type TEXT,
    file_size INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'queued'
        CHECK (status IN ('queued', 'processing', 'completed', 'failed')),
    progress INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
    rows_total INTEGER NOT NULL DEFAULT 0,
    rows_processed INTEGER NOT NULL DEFAULT 0,
    rows_success INTEGER NOT NULL DEFAULT 0,
    rows_error INTEGER NOT NULL DEFAULT 0,
    error_text TEXT,
    mapping_template_id TEXT REFERENCES mapping_templates(id) ON DELETE SET NULL,
    date_from TEXT,
    date_to TEXT,
    retry_of TEXT,
    started_at TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (rows_processed <= rows_total),
    CHECK (rows_success + rows_error = rows_processed)
);

CREATE INDEX IF NOT EXISTS idx_upload_jobs_workspace ON upload_jobs(workspace_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_upload_jobs_status ON upload_jobs(status);

-- UPLOAD ROW ERRORS
-- Rows rejected by validation, kept for the completion screen
CREATE TABLE IF NOT EXISTS upload_row_errors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    upload_job_id TEXT NOT NULL REFERENCES upload_jobs(id) ON DELETE CASCADE,
    row_number INTEGER NOT NULL,
    reason TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_row_errors_job ON upload_row_errors(upload_job_id, row_number);

-- CAMPAIGNS
-- identity_key is 'id:<platform campaign id>' when the export carries one,
-- otherwise 'name:<campaign name>'
CREATE TABLE IF NOT EXISTS campaigns (
    id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    platform TEXT NOT NULL,
    platform_campaign_id TEXT,
    name TEXT NOT NULL,
    identity_key TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (workspace_id, platform, identity_key)
);

CREATE INDEX IF NOT EXISTS idx_campaigns_workspace ON campaigns(workspace_id, platform);

-- AD SETS
CREATE TABLE IF NOT EXISTS ad_sets (
    id TEXT PRIMARY KEY,
    campaign_id TEXT NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (campaign_id, name)
);

-- ADS
CREATE TABLE IF NOT EXISTS ads (
    id TEXT PRIMARY KEY,
    ad_set_id TEXT NOT NULL REFERENCES ad_sets(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (ad_set_id, name)
);

-- METRICS_DAILY
-- THE FACT TABLE - one row per (campaign_id, date), upserted by ingestion
CREATE TABLE IF NOT EXISTS metrics_daily (
    campaign_id TEXT NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    workspace_id TEXT NOT NULL,
    platform TEXT NOT NULL,
    impressions INTEGER NOT NULL DEFAULT 0 CHECK (impressions >= 0),
    clicks INTEGER NOT NULL DEFAULT 0 CHECK (clicks >= 0),
    spend REAL NOT NULL DEFAULT 0 CHECK (spend >= 0),
    conversions REAL NOT NULL DEFAULT 0 CHECK (conversions >= 0),
    revenue REAL NOT NULL DEFAULT 0 CHECK (revenue >= 0),
    upload_job_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (campaign_id, date)
);

CREATE INDEX IF NOT EXISTS idx_metrics_workspace_date ON metrics_daily(workspace_id, date);
CREATE INDEX IF NOT EXISTS idx_metrics_platform ON metrics_daily(workspace_id, platform, date);
"""

TABLES = (
    "workspaces",
    "mapping_templates",
    "upload_jobs",
    "upload_row_errors",
    "campaigns",
    "ad_sets",
    "ads",
    "metrics_daily",
)
