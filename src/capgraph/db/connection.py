"""Locating, opening and configuring the capgraph index database.

Everything capgraph persists lives in one SQLite file: the extracted records
loaded by ``capgraph load``, capability links and health history, and the
call-graph cache.  By default that file sits next to the project config::

    <project>/.capgraph/index.db
    <project>/.capgraph/config.json
"""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from capgraph.db.schema import SCHEMA_SQL

INDEX_DIR = ".capgraph"
INDEX_FILE = "index.db"
CONFIG_FILE = "config.json"
DB_DIR_ENV = "CAPGRAPH_DB_DIR"

_PRAGMAS = (
    ("synchronous", "NORMAL"),
    ("cache_size", "-32000"),
    ("foreign_keys", "ON"),
    ("temp_store", "MEMORY"),
)

# SQLite caps bound parameters per statement (999 on older builds)
_IN_CHUNK = 400


def find_project_root(start: str = ".") -> Path:
    """Walk up from *start* to the nearest directory holding .git or .capgraph.

    Falls back to *start* itself when neither marker is found.
    """
    origin = Path(start).resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / INDEX_DIR).is_dir() or (candidate / ".git").exists():
            return candidate
    return origin


def _config_path(project_root: Path | None) -> Path:
    root = project_root if project_root is not None else find_project_root()
    return root / INDEX_DIR / CONFIG_FILE


def load_project_config(project_root: Path | None = None) -> dict:
    """Parsed ``.capgraph/config.json``, or ``{}`` when absent or unreadable."""
    path = _config_path(project_root)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def write_project_config(config: dict, project_root: Path | None = None) -> Path:
    """Merge *config* over the existing project config and save it."""
    path = _config_path(project_root)
    merged = {**load_project_config(path.parent.parent), **config}
    path.parent.mkdir(exist_ok=True)
    path.write_text(json.dumps(merged, indent=2), encoding="utf-8")
    return path


def get_db_path(project_root: Path | None = None) -> Path:
    """Where the index lives.

    The ``CAPGRAPH_DB_DIR`` environment variable wins, then a ``db_dir`` entry
    in the project config, then ``<project_root>/.capgraph``.  The directory
    is created if needed.
    """
    db_dir = os.environ.get(DB_DIR_ENV)
    if not db_dir:
        root = project_root if project_root is not None else find_project_root()
        db_dir = load_project_config(root).get("db_dir") or root / INDEX_DIR
    db_dir = Path(db_dir)
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir / INDEX_FILE


def get_connection(db_path: Path | None = None, readonly: bool = False) -> sqlite3.Connection:
    """Open the index with ``sqlite3.Row`` rows and capgraph's pragmas.

    Writable connections switch the journal to WAL so CLI reads never block
    on a concurrent load.
    """
    path = Path(db_path) if db_path is not None else get_db_path()
    if readonly:
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True, timeout=30)
    else:
        conn = sqlite3.connect(str(path), timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    for name, value in _PRAGMAS:
        conn.execute(f"PRAGMA {name}={value}")
    return conn


def ensure_schema(conn: sqlite3.Connection):
    conn.executescript(SCHEMA_SQL)


def batched_in(conn, sql, ids, *, post=(), chunk_size=_IN_CHUNK):
    """Run *sql* once per chunk of *ids*, substituting the ``{ph}`` marker.

    *post* parameters are bound after the id list on every chunk::

        batched_in(conn, "SELECT * FROM symbols WHERE id IN ({ph}) AND kind = ?", ids, post=["CLASS"])

    Rows from all chunks are concatenated.
    """
    ids = list(ids)
    rows = []
    for start in range(0, len(ids), chunk_size):
        chunk = ids[start:start + chunk_size]
        query = sql.replace("{ph}", ", ".join("?" * len(chunk)))
        rows.extend(conn.execute(query, [*chunk, *post]).fetchall())
    return rows


def db_exists(project_root: Path | None = None) -> bool:
    """True once ``capgraph load`` has written a non-empty index."""
    path = get_db_path(project_root)
    return path.is_file() and path.stat().st_size > 0


@contextmanager
def open_db(readonly: bool = False, project_root: Path | None = None):
    """Yield a connection to the project index, committing on clean exit.

    Writable connections create any missing tables first.
    """
    conn = get_connection(get_db_path(project_root), readonly=readonly)
    try:
        if not readonly:
            ensure_schema(conn)
        yield conn
        if not readonly:
            conn.commit()
    finally:
        conn.close()
