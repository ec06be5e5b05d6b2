"""End-to-end CLI tests: load an index, then run each command group.

Covers:
- Exit codes for a missing index, unknown symbols and unknown capabilities
- JSON envelope contract on every command group
- Text output for call trees and cycles
- --tenant scoping
"""

from __future__ import annotations

import pytest

from conftest import (
    assert_json_envelope,
    call,
    external,
    invoke_cli,
    parse_json_output,
    payload,
    sym,
    write_records,
)
from capgraph.exit_codes import (
    EXIT_CAPABILITY_NOT_FOUND,
    EXIT_INDEX_MISSING,
    EXIT_SYMBOL_NOT_FOUND,
)

RECORDS = payload(
    [
        sym("main", cyclomatic_complexity=3, documentation="Entry point"),
        sym("helper", file_id="f2"),
        sym("billing_charge", "chargeBilling", cyclomatic_complexity=6),
        sym("loop_a"),
        sym("loop_b"),
    ],
    [
        call("main", "helper", source_file_id="f1"),
        call("main", "billing_charge", source_file_id="f1"),
        call("loop_a", "loop_b"),
        call("loop_b", "loop_a"),
        external("main", "requests", "get"),
    ],
    [{"id": "c1", "name": "billing", "tenant_id": "t1"}],
)


@pytest.fixture
def indexed(project, cli_runner):
    path = write_records(project, RECORDS)
    result = invoke_cli(cli_runner, ["load", path])
    assert result.exit_code == 0, result.output
    return project


def _json(cli_runner, args, command):
    data = parse_json_output(invoke_cli(cli_runner, args, json_mode=True), command)
    assert_json_envelope(data, command)
    return data


# ---------------------------------------------------------------------------
# Index lifecycle
# ---------------------------------------------------------------------------


class TestIndex:
    def test_missing_index(self, project, cli_runner):
        result = invoke_cli(cli_runner, ["cycles", "r1"])
        assert result.exit_code == EXIT_INDEX_MISSING
        assert "capgraph load" in result.output

    def test_load_json(self, project, cli_runner):
        path = write_records(project, RECORDS)
        data = _json(cli_runner, ["load", path], "load")
        assert data["summary"]["symbols"] == 5
        assert data["summary"]["references"] == 5
        assert (project / ".capgraph" / "index.db").exists()

    def test_load_invalid_json(self, project, cli_runner):
        path = project / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        result = invoke_cli(cli_runner, ["load", str(path)])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_reload_replaces_references(self, indexed, cli_runner):
        doc = payload([sym("main"), sym("helper", file_id="f2")], [])
        invoke_cli(cli_runner, ["load", write_records(indexed, doc)])
        data = _json(cli_runner, ["edges", "r1"], "edges")
        assert data["edges"] == []

    def test_help_lists_categories(self, cli_runner):
        result = invoke_cli(cli_runner, ["--help"])
        assert result.exit_code == 0
        for heading in ("Call Graphs:", "Capabilities:", "health", "callgraph"):
            assert heading in result.output


# ---------------------------------------------------------------------------
# Call graphs
# ---------------------------------------------------------------------------


class TestCallGraphCommands:
    def test_callgraph_json(self, indexed, cli_runner):
        data = _json(cli_runner, ["callgraph", "r1", "main", "--depth", "2"], "callgraph")
        graph = data["graph"]
        assert graph["totalNodes"] == 3
        assert graph["root"]["name"] == "main"
        assert [c["name"] for c in graph["root"]["children"]] == ["helper", "chargeBilling"]
        assert graph["externalCalls"] == [{"package": "requests", "symbol": "get"}]
        assert data["summary"]["total_nodes"] == 3

    def test_callgraph_text(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["callgraph", "r1", "main", "--no-external"])
        assert result.exit_code == 0
        assert "main" in result.output
        assert "helper" in result.output

    def test_callgraph_unknown_symbol(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["callgraph", "r1", "nope"])
        assert result.exit_code == EXIT_SYMBOL_NOT_FOUND
        assert "nope" in result.output

    def test_snapshot_then_invalidate(self, indexed, cli_runner):
        invoke_cli(cli_runner, ["callgraph", "r1", "main", "--snapshot", "--commit", "abc123"])
        data = _json(cli_runner, ["invalidate", "r1"], "invalidate")
        assert data["summary"]["snapshots_marked"] == 1
        assert data["summary"]["cache_keys_dropped"] == 1

    def test_file_graph(self, indexed, cli_runner):
        data = _json(cli_runner, ["file-graph", "r1", "f2"], "file-graph")
        assert data["summary"]["graphs"] == 1

    def test_callers(self, indexed, cli_runner):
        data = _json(cli_runner, ["callers", "r1", "helper"], "callers")
        assert data["summary"]["count"] == 1

    def test_callees_unknown_symbol(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["callees", "r1", "nope"])
        assert result.exit_code == EXIT_SYMBOL_NOT_FOUND

    def test_edges(self, indexed, cli_runner):
        data = _json(cli_runner, ["edges", "r1", "--source-file", "f1"], "edges")
        assert data["summary"] == {"edges": 2, "calls": 2}

    def test_path_found(self, indexed, cli_runner):
        data = _json(cli_runner, ["path", "r1", "main", "helper"], "path")
        assert data["summary"] == {"found": True, "hops": 1}
        assert [n["id"] for n in data["path"]] == ["main", "helper"]

    def test_path_not_found(self, indexed, cli_runner):
        data = _json(cli_runner, ["path", "r1", "helper", "main"], "path")
        assert data["summary"]["found"] is False
        assert data["path"] is None

    def test_cycles(self, indexed, cli_runner):
        data = _json(cli_runner, ["cycles", "r1"], "cycles")
        assert data["summary"]["cycles"] == 1
        assert {s["id"] for s in data["cycles"][0]["symbols"]} == {"loop_a", "loop_b"}

    def test_cycles_text(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["cycles", "r1"])
        assert result.exit_code == 0
        assert "loop_a" in result.output

    def test_hotspots(self, indexed, cli_runner):
        data = _json(cli_runner, ["hotspots", "r1", "-n", "1"], "hotspots")
        # main, loop_a and loop_b all score 2; ties go by id
        assert [h["symbol"]["id"] for h in data["hotspots"]] == ["loop_a"]

    def test_tenant_scoping(self, indexed, cli_runner):
        ok = invoke_cli(cli_runner, ["--tenant", "t1", "callgraph", "r1", "main"])
        assert ok.exit_code == 0
        hidden = invoke_cli(cli_runner, ["--tenant", "t2", "callgraph", "r1", "main"])
        assert hidden.exit_code == EXIT_SYMBOL_NOT_FOUND


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class TestCapabilityCommands:
    def test_link_and_unlink(self, indexed, cli_runner):
        data = _json(cli_runner, ["link", "main", "c1", "--confidence", "0.8"], "link")
        assert data["link"]["confidence"] == 0.8
        assert data["link"]["linkType"] == "IMPLEMENTS"
        data = _json(cli_runner, ["unlink", "main", "c1"], "unlink")
        assert data["summary"]["removed"] is True

    def test_infer_links_apply(self, indexed, cli_runner):
        data = _json(cli_runner, ["infer-links", "r1", "--capability", "c1", "--apply"], "infer-links")
        assert data["summary"] == {"capabilities": 1, "proposed": 1, "applied": 1}
        assert data["results"][0]["inferredLinks"][0]["symbolId"] == "billing_charge"

    def test_health_compute(self, indexed, cli_runner):
        invoke_cli(cli_runner, ["link", "main", "c1"])
        data = _json(cli_runner, ["health", "c1", "r1", "--compute"], "health")
        assert data["currentHealth"]["symbolCount"] == 1
        assert data["summary"]["status"] in {"HEALTHY", "WARNING", "CRITICAL"}
        assert set(data["trend"]) == {"direction", "delta7d", "delta30d", "volatility"}

    def test_health_text_without_snapshots(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["health", "c1", "r1"])
        assert result.exit_code == 0
        assert "No health snapshots" in result.output

    def test_health_unknown_capability(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["health", "nope", "r1", "--compute"])
        assert result.exit_code == EXIT_CAPABILITY_NOT_FOUND

    def test_record_event_and_evolution(self, indexed, cli_runner):
        data = _json(
            cli_runner,
            ["record-event", "c1", "r1", "SYMBOLS_MODIFIED", "--commit", "abc123",
             "--symbol", "main", "--breaking"],
            "record-event",
        )
        assert data["summary"] == {"significance": "CRITICAL", "requires_review": True}

        data = _json(cli_runner, ["evolution", "--capability", "c1"], "evolution")
        assert data["summary"]["events"] == 1
        assert data["capabilityName"] == "billing"
        assert data["eventsByType"] == {"SYMBOLS_MODIFIED": 1}

    def test_evolution_unknown_capability(self, indexed, cli_runner):
        result = invoke_cli(cli_runner, ["evolution", "--capability", "nope"])
        assert result.exit_code == EXIT_CAPABILITY_NOT_FOUND

    def test_detect_evolution_without_baseline(self, indexed, cli_runner):
        data = _json(cli_runner, ["detect-evolution", "c1", "r1", "--commit", "abc123"], "detect-evolution")
        assert data["summary"]["events"] == 0
