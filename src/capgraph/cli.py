"""Click CLI entry point with lazy-loaded subcommands."""

import importlib
import logging

import click

# Lazy-loading command group: imports command modules only when invoked.
# This avoids importing networkx on every CLI call.
_COMMANDS = {
    "load":             ("capgraph.commands.cmd_load",      "load"),
    "callgraph":        ("capgraph.commands.cmd_callgraph", "callgraph"),
    "file-graph":       ("capgraph.commands.cmd_callgraph", "file_graph"),
    "invalidate":       ("capgraph.commands.cmd_callgraph", "invalidate"),
    "callers":          ("capgraph.commands.cmd_callers",   "callers"),
    "callees":          ("capgraph.commands.cmd_callers",   "callees"),
    "edges":            ("capgraph.commands.cmd_edges",     "edges"),
    "path":             ("capgraph.commands.cmd_path",      "path_cmd"),
    "cycles":           ("capgraph.commands.cmd_cycles",    "cycles"),
    "hotspots":         ("capgraph.commands.cmd_hotspots",  "hotspots"),
    "link":             ("capgraph.commands.cmd_link",      "link"),
    "unlink":           ("capgraph.commands.cmd_link",      "unlink"),
    "infer-links":      ("capgraph.commands.cmd_link",      "infer_links"),
    "health":           ("capgraph.commands.cmd_health",    "health"),
    "evolution":        ("capgraph.commands.cmd_evolution", "evolution"),
    "record-event":     ("capgraph.commands.cmd_evolution", "record_event"),
    "detect-evolution": ("capgraph.commands.cmd_evolution", "detect_evolution"),
}

# Command categories for organized --help display
_CATEGORIES = {
    "Index": ["load", "invalidate"],
    "Call Graphs": ["callgraph", "file-graph", "callers", "callees", "edges", "path", "cycles", "hotspots"],
    "Capabilities": ["link", "unlink", "infer-links", "health", "evolution", "record-event", "detect-evolution"],
}


class LazyGroup(click.Group):
    """A Click group that lazy-loads command modules on first access."""

    def list_commands(self, ctx):
        return sorted(_COMMANDS.keys())

    def get_command(self, ctx, cmd_name):
        if cmd_name not in _COMMANDS:
            return None
        module_path, attr_name = _COMMANDS[cmd_name]
        mod = importlib.import_module(module_path)
        return getattr(mod, attr_name)

    def format_help(self, ctx, formatter):
        """Categorized help display instead of flat alphabetical list."""
        self.format_usage(ctx, formatter)
        formatter.write("\n")
        if self.help:
            formatter.write(self.help + "\n\n")
        self.format_options(ctx, formatter)
        formatter.write("\n")
        for cat_name, cmds in _CATEGORIES.items():
            formatter.write(f"  {cat_name}:\n")
            for cmd_name in cmds:
                cmd = self.get_command(ctx, cmd_name)
                help_text = cmd.get_short_help_str(limit=60) if cmd else ""
                formatter.write(f"    {cmd_name:20s} {help_text}\n")
            formatter.write("\n")
        formatter.write("  Run `capgraph <command> --help` for details on any command.\n")


@click.group(cls=LazyGroup)
@click.version_option(package_name="capgraph")
@click.option("--json", "json_mode", is_flag=True, help="Output in JSON format")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.option("--tenant", default=None, help="Restrict reads to one tenant's repositories and capabilities")
@click.pass_context
def cli(ctx, json_mode, verbose, tenant):
    """capgraph: call graphs and capability health for an extracted code index."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_mode
    ctx.obj["tenant"] = tenant
