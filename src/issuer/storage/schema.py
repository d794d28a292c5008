"""SQLite schema for the entity store."""

from issuer.models import Kind

SCHEMA_VERSION = "1"

SCHEMA = """
-- Statuses table
CREATE TABLE IF NOT EXISTS issue_statuses (
    id INTEGER NOT NULL
        CONSTRAINT pk_issue_statuses
        PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
        CONSTRAINT un_issue_statuses_name
        UNIQUE
);

-- Issues table
CREATE TABLE IF NOT EXISTS issues (
    id INTEGER NOT NULL
        CONSTRAINT pk_issues
        PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status INTEGER NOT NULL
        CONSTRAINT fk_issues_status
        REFERENCES issue_statuses (id)
        ON UPDATE RESTRICT
        ON DELETE RESTRICT,
    parent INTEGER DEFAULT NULL
        CONSTRAINT fk_issues_parent
        REFERENCES issues (id)
        ON UPDATE CASCADE
        ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status);
CREATE INDEX IF NOT EXISTS idx_issues_parent ON issues(parent);

-- Blocking edges table
CREATE TABLE IF NOT EXISTS issue_blockings (
    id INTEGER NOT NULL
        CONSTRAINT pk_issue_blockings
        PRIMARY KEY AUTOINCREMENT,
    blocker INTEGER NOT NULL
        CONSTRAINT fk_issue_blocker
        REFERENCES issues (id)
        ON UPDATE CASCADE
        ON DELETE CASCADE,
    blocked INTEGER NOT NULL
        CONSTRAINT fk_issue_blocked
        REFERENCES issues (id)
        ON UPDATE CASCADE
        ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_issue_blockings_blocker ON issue_blockings(blocker);
CREATE INDEX IF NOT EXISTS idx_issue_blockings_blocked ON issue_blockings(blocked);

-- Metadata table
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

INSERT OR IGNORE INTO metadata (key, value) VALUES ('schema_version', '1');
"""

# kind -> (table, {model attribute: column})
TABLES: dict[str, tuple[str, dict[str, str]]] = {
    Kind.STATUS: ("issue_statuses", {"id": "id", "name": "name"}),
    Kind.ISSUE: ("issues", {
        "id": "id",
        "title": "title",
        "description": "description",
        "status_id": "status",
        "parent_id": "parent",
    }),
    Kind.BLOCKING_EDGE: ("issue_blockings", {
        "id": "id",
        "blocker_id": "blocker",
        "blocked_id": "blocked",
    }),
}
