"""Plain-text tables and JSON envelopes for command output."""

from __future__ import annotations

import json as _json
from datetime import datetime, timezone

# Envelope schema versioning (semver: major.minor.patch)
ENVELOPE_SCHEMA_VERSION = "1.0.0"
ENVELOPE_SCHEMA_NAME = "capgraph-envelope-v1"

KIND_ABBREV = {
    "FUNCTION": "fn",
    "METHOD": "meth",
    "CLASS": "cls",
    "INTERFACE": "iface",
    "TYPE_ALIAS": "type",
    "ENUM": "enum",
    "ENUM_MEMBER": "member",
    "VARIABLE": "var",
    "CONSTANT": "const",
    "PROPERTY": "prop",
    "GETTER": "get",
    "SETTER": "set",
    "CONSTRUCTOR": "ctor",
    "NAMESPACE": "ns",
    "MODULE": "mod",
}


def abbrev_kind(kind: str) -> str:
    return KIND_ABBREV.get(kind, kind.lower())


def format_table(headers: list[str], rows: list[list[str]], budget: int = 0) -> str:
    if not rows:
        return "(none)"
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[: len(widths)]):
            widths[i] = max(widths[i], len(str(cell)))
    lines = [
        "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)),
        "  ".join("-" * w for w in widths),
    ]
    shown = rows[:budget] if budget and len(rows) > budget else rows
    for row in shown:
        lines.append("  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    if len(shown) < len(rows):
        lines.append(f"(+{len(rows) - len(shown)} more)")
    return "\n".join(lines)


def format_tree(node: dict, level: int = 0) -> list[str]:
    """Render a ``CallGraphNode.to_dict()`` tree as indented lines."""
    lines = [
        f"{'  ' * level}{abbrev_kind(node['kind'])} {node['name']}  "
        f"{node['filePath']}  (cc={node['complexity']}, calls={node['callCount']})"
    ]
    for child in node["children"]:
        lines.extend(format_tree(child, level + 1))
    return lines


def to_json(data) -> str:
    """Serialize data to a JSON string with deterministic key ordering."""
    return _json.dumps(data, indent=2, default=str, sort_keys=True)


def json_envelope(command: str, summary: dict | None = None, **payload) -> dict:
    """Wrap command output in a self-describing envelope::

        {
            "schema":         "capgraph-envelope-v1",
            "schema_version": "1.0.0",
            "command":        "callgraph",
            "version":        "<current>",
            "summary":        { ... },
            "_meta":          {"timestamp": "2026-02-12T14:30:00Z"},
            ...payload
        }

    The timestamp lives under ``_meta`` so the content keys are identical
    across repeated runs.
    """
    out: dict = {
        "schema": ENVELOPE_SCHEMA_NAME,
        "schema_version": ENVELOPE_SCHEMA_VERSION,
        "command": command,
        "version": _get_version(),
        "summary": summary or {},
    }
    out.update(payload)
    out["_meta"] = {
        "timestamp": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
    }
    return out


def _get_version() -> str:
    from capgraph import __version__

    return __version__
