"""SQLite schema for the capgraph index."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    tenant_id TEXT,
    name TEXT NOT NULL,
    url TEXT
);

CREATE TABLE IF NOT EXISTS files (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    language TEXT,
    line_count INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS symbols (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    file_id TEXT NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    parent_id TEXT REFERENCES symbols(id) ON DELETE SET NULL,
    signature TEXT,
    documentation TEXT,
    line_start INTEGER,
    line_end INTEGER,
    cyclomatic_complexity INTEGER DEFAULT 1,
    line_count INTEGER DEFAULT 0,
    visibility TEXT DEFAULT 'PUBLIC',
    is_exported INTEGER DEFAULT 0,
    deleted_at TEXT
);

-- One row per call/use site: multiplicity between a pair is meaningful.
CREATE TABLE IF NOT EXISTS symbol_references (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    source_symbol_id TEXT NOT NULL REFERENCES symbols(id) ON DELETE CASCADE,
    target_symbol_id TEXT,
    source_file_id TEXT REFERENCES files(id) ON DELETE CASCADE,
    reference_type TEXT NOT NULL,
    is_external INTEGER DEFAULT 0,
    external_package TEXT,
    target_name TEXT,
    line INTEGER
);

CREATE TABLE IF NOT EXISTS capabilities (
    id TEXT PRIMARY KEY,
    tenant_id TEXT,
    name TEXT NOT NULL,
    description TEXT
);

CREATE TABLE IF NOT EXISTS symbol_capability_links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol_id TEXT NOT NULL REFERENCES symbols(id) ON DELETE CASCADE,
    capability_id TEXT NOT NULL REFERENCES capabilities(id) ON DELETE CASCADE,
    link_type TEXT NOT NULL DEFAULT 'IMPLEMENTS',
    confidence REAL NOT NULL DEFAULT 1.0,
    is_auto_linked INTEGER NOT NULL DEFAULT 0,
    evidence TEXT NOT NULL DEFAULT '[]',
    linked_by TEXT,
    linked_at TEXT NOT NULL,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now')),
    UNIQUE (symbol_id, capability_id)
);

-- Daily health snapshot: re-running the same day overwrites the row.
CREATE TABLE IF NOT EXISTS capability_health (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    capability_id TEXT NOT NULL REFERENCES capabilities(id) ON DELETE CASCADE,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    symbol_count INTEGER DEFAULT 0,
    total_complexity INTEGER DEFAULT 0,
    avg_complexity REAL DEFAULT 0,
    max_complexity INTEGER DEFAULT 0,
    total_line_count INTEGER DEFAULT 0,
    documented_symbols INTEGER DEFAULT 0,
    documentation_ratio REAL DEFAULT 0,
    test_coverage REAL DEFAULT 0,
    test_symbol_count INTEGER DEFAULT 0,
    lint_issue_count INTEGER DEFAULT 0,
    type_error_count INTEGER DEFAULT 0,
    deprecated_usage_count INTEGER DEFAULT 0,
    files_changed INTEGER DEFAULT 0,
    symbols_added INTEGER DEFAULT 0,
    symbols_modified INTEGER DEFAULT 0,
    symbols_removed INTEGER DEFAULT 0,
    total_churn INTEGER DEFAULT 0,
    incoming_dependencies INTEGER DEFAULT 0,
    outgoing_dependencies INTEGER DEFAULT 0,
    coupling_score REAL DEFAULT 0,
    cohesion_score REAL DEFAULT 0,
    complexity_score REAL DEFAULT 0,
    quality_score REAL DEFAULT 0,
    stability_score REAL DEFAULT 0,
    maintainability_score REAL DEFAULT 0,
    overall_health_score REAL DEFAULT 0,
    health_status TEXT NOT NULL,
    health_trend TEXT NOT NULL,
    trend_delta REAL DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now')),
    UNIQUE (capability_id, repository_id, date)
);

CREATE TABLE IF NOT EXISTS capability_evolution (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    capability_id TEXT NOT NULL REFERENCES capabilities(id) ON DELETE CASCADE,
    repository_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    event_type TEXT NOT NULL,
    event_date TEXT NOT NULL,
    commit_sha TEXT NOT NULL,
    commit_message TEXT,
    commit_author TEXT,
    symbols_affected TEXT NOT NULL DEFAULT '[]',
    symbols_added INTEGER DEFAULT 0,
    symbols_modified INTEGER DEFAULT 0,
    symbols_removed INTEGER DEFAULT 0,
    files_affected TEXT NOT NULL DEFAULT '[]',
    files_changed INTEGER DEFAULT 0,
    complexity_delta REAL DEFAULT 0,
    line_count_delta INTEGER DEFAULT 0,
    health_score_delta REAL DEFAULT 0,
    breaking_change INTEGER DEFAULT 0,
    requires_review INTEGER DEFAULT 0,
    change_category TEXT NOT NULL DEFAULT 'MAINTENANCE',
    significance TEXT NOT NULL,
    summary TEXT,
    description TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    created_at TEXT DEFAULT (datetime('now'))
);

-- Persisted call-graph snapshots, flagged stale on structural change
CREATE TABLE IF NOT EXISTS dependency_graphs (
    repository_id TEXT NOT NULL,
    graph_type TEXT NOT NULL,
    root_id TEXT NOT NULL,
    graph_data TEXT NOT NULL,
    node_count INTEGER DEFAULT 0,
    edge_count INTEGER DEFAULT 0,
    max_depth INTEGER DEFAULT 0,
    commit_sha TEXT,
    computed_at TEXT NOT NULL,
    is_stale INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (repository_id, graph_type, root_id)
);

-- TTL key/value cache for computed graphs
CREATE TABLE IF NOT EXISTS graph_cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_symbols_repo ON symbols(repository_id);
CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file_id);
CREATE INDEX IF NOT EXISTS idx_refs_source ON symbol_references(source_symbol_id);
CREATE INDEX IF NOT EXISTS idx_refs_target ON symbol_references(target_symbol_id);
CREATE INDEX IF NOT EXISTS idx_refs_repo_type ON symbol_references(repository_id, reference_type);
CREATE INDEX IF NOT EXISTS idx_links_capability ON symbol_capability_links(capability_id);
CREATE INDEX IF NOT EXISTS idx_health_lookup ON capability_health(capability_id, repository_id, date);
CREATE INDEX IF NOT EXISTS idx_evolution_capability ON capability_evolution(capability_id, event_date);
"""
