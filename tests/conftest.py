"""Shared test fixtures and helpers for capgraph tests.

Provides:
- Record builders: sym(), call(), payload()
- In-memory index: make_db(), seed(), and the ``conn`` fixture
- Service fixtures: store, cap_store, cache, builder, engine, linker, scorer, tracker
- CliRunner fixtures: cli_runner, invoke_cli(), project (temp project root)
- JSON validation helpers: parse_json_output(), assert_json_envelope()
"""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import date, datetime, timezone

import pytest
from click.testing import CliRunner

from capgraph.capability.evolution import EvolutionTracker
from capgraph.capability.health import HealthScorer
from capgraph.capability.linker import CapabilityLinker
from capgraph.db.capability_store import CapabilityStore
from capgraph.db.connection import ensure_schema
from capgraph.db.ingest import load_records
from capgraph.db.store import SymbolStore
from capgraph.graph.cache import GraphCache
from capgraph.graph.callgraph import CallGraphBuilder
from capgraph.graph.queries import GraphQueryEngine

REPO = "r1"
TODAY = date(2026, 3, 10)

# ===========================================================================
# Record builders
# ===========================================================================


def sym(sid, name=None, file_id="f1", kind="FUNCTION", repo=REPO, **extra):
    """One symbol record as accepted by ``load_records``."""
    record = {
        "id": sid,
        "repository_id": repo,
        "file_id": file_id,
        "name": name or sid,
        "kind": kind,
    }
    record.update(extra)
    return record


def call(src, tgt, ref_type="CALL", repo=REPO, **extra):
    """One reference record from *src* to *tgt*."""
    record = {
        "repository_id": repo,
        "source_symbol_id": src,
        "target_symbol_id": tgt,
        "reference_type": ref_type,
    }
    record.update(extra)
    return record


def external(src, package, name, repo=REPO):
    return call(src, None, is_external=True, external_package=package, target_name=name, repo=repo)


def payload(symbols=(), references=(), capabilities=(), files=None, repositories=None):
    """A full ingest document with one repository and two files by default."""
    return {
        "repositories": repositories if repositories is not None else [
            {"id": REPO, "name": "api", "tenant_id": "t1"},
        ],
        "files": files if files is not None else [
            {"id": "f1", "repository_id": REPO, "path": "src/app.py"},
            {"id": "f2", "repository_id": REPO, "path": "src/util.py"},
        ],
        "symbols": list(symbols),
        "references": list(references),
        "capabilities": list(capabilities),
    }


# ===========================================================================
# In-memory index
# ===========================================================================


def make_db() -> sqlite3.Connection:
    """Create an in-memory SQLite DB with the capgraph schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    ensure_schema(conn)
    return conn


def seed(conn, symbols=(), references=(), capabilities=(), **kwargs):
    """Load records into *conn*; returns the per-table counts."""
    return load_records(conn, payload(symbols, references, capabilities, **kwargs))


class FakeClock:
    """Settable replacement for ``time.time``."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def conn():
    c = make_db()
    yield c
    c.close()


@pytest.fixture
def store(conn):
    return SymbolStore(conn)


@pytest.fixture
def cap_store(conn):
    return CapabilityStore(conn)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(conn, clock):
    return GraphCache(conn, clock=clock)


@pytest.fixture
def builder(store, cache):
    return CallGraphBuilder(store, cache)


@pytest.fixture
def engine(store):
    return GraphQueryEngine(store)


@pytest.fixture
def linker(store, cap_store):
    return CapabilityLinker(store, cap_store)


@pytest.fixture
def scorer(store, cap_store):
    return HealthScorer(store, cap_store, today=lambda: TODAY)


@pytest.fixture
def tracker(store, cap_store):
    return EvolutionTracker(
        store, cap_store, clock=lambda: datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    )


# ===========================================================================
# CliRunner helpers
# ===========================================================================


@pytest.fixture
def cli_runner():
    """Provide a Click CliRunner for in-process CLI testing."""
    return CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch):
    """An empty project root (marked by .git) used as the working directory."""
    root = tmp_path / "proj"
    (root / ".git").mkdir(parents=True)
    monkeypatch.delenv("CAPGRAPH_DB_DIR", raising=False)
    monkeypatch.chdir(root)
    return root


def write_records(root, doc) -> str:
    path = root / "records.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return str(path)


def invoke_cli(runner, args, cwd=None, json_mode=False):
    """Invoke the capgraph CLI via CliRunner.

    Args:
        runner: CliRunner instance
        args: list of CLI arguments (e.g. ["cycles", "r1"])
        cwd: directory to run in
        json_mode: if True, prepend --json flag
    Returns:
        click.testing.Result
    """
    from capgraph.cli import cli

    full_args = ["--json"] if json_mode else []
    full_args.extend(args)

    old_cwd = os.getcwd()
    try:
        if cwd:
            os.chdir(str(cwd))
        result = runner.invoke(cli, full_args, catch_exceptions=False)
    finally:
        os.chdir(old_cwd)
    return result


# ===========================================================================
# JSON validation helpers
# ===========================================================================


def parse_json_output(result, command=None):
    """Parse JSON from a CliRunner result, failing with context on error."""
    assert result.exit_code == 0, f"Command {command or '?'} failed (exit {result.exit_code}):\n{result.output}"
    try:
        return json.loads(result.output)
    except json.JSONDecodeError as e:
        pytest.fail(f"Invalid JSON from {command or '?'}: {e}\nOutput was:\n{result.output[:500]}")


def assert_json_envelope(data, command=None):
    """Validate that a parsed JSON dict follows the capgraph envelope contract."""
    assert isinstance(data, dict), f"Expected dict, got {type(data)}"
    for key in ("schema", "schema_version", "command", "version", "summary"):
        assert key in data, f"Missing '{key}' key in envelope"
    assert "timestamp" in data.get("_meta", {}), "Missing 'timestamp' in _meta"
    if command:
        assert data["command"] == command, f"Expected command={command}, got {data['command']}"
    assert isinstance(data["summary"], dict), f"summary should be dict, got {type(data['summary'])}"
