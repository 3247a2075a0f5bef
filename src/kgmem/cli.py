"""kgmem CLI: knowledge graph memory backed by a JSONL file.

Commands:
    kgmem init                 create kgmem.toml
    kgmem serve                start stdio MCP server
    kgmem status               memory file location and counts
    kgmem graph                dump the whole graph as JSON
    kgmem search QUERY         substring search over entities
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from kgmem.config import MemoryConfig, init_config, load_config, setup_logging
from kgmem.errors import KGMemError
from kgmem.graph import GraphStore
from kgmem.mcp import run_server

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(root: str | None = None, memory_file: str | None = None) -> MemoryConfig:
    try:
        return load_config(root, memory_file=memory_file)
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _store(cfg: MemoryConfig) -> GraphStore:
    return GraphStore(cfg.memory_file, skip_malformed=cfg.skip_malformed)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(None, "--version", "-v", package_name="kgmem")
def cli() -> None:
    """kgmem: knowledge graph memory for MCP clients."""


# ---------------------------------------------------------------------------
# kgmem init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
@click.option("--file", "memory_file", default="memory.json", show_default=True, help="Memory file name")
def init(root: str, memory_file: str) -> None:
    """Create kgmem.toml in the current project."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, memory_file=memory_file)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("kgmem.toml already exists, skipping init")

    cfg = load_config(root_path)
    click.echo(f"Memory file : {cfg.memory_file}")


# ---------------------------------------------------------------------------
# kgmem serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--root", default=None, help="Override project root (default: auto-detect from cwd)")
@click.option("--file", "memory_file", default=None, help="Memory file (overrides MEMORY_FILE_PATH and kgmem.toml)")
def serve(root: str | None, memory_file: str | None) -> None:
    """Start stdio MCP server (connect via your MCP client config)."""
    cfg = _load_cfg(root, memory_file)
    setup_logging(cfg.log_level)
    run_server(cfg)


# ---------------------------------------------------------------------------
# kgmem status
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--root", default=None, help="Override project root")
def status(root: str | None) -> None:
    """Show memory file location and graph counts."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg(root)
    console = Console()

    table = Table(title="kgmem", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    from importlib.metadata import version as _pkg_version
    try:
        _ver = _pkg_version("kgmem")
    except Exception:
        _ver = "unknown"
    table.add_row("Version", _ver)
    table.add_row("Config", str(cfg.config_path) if cfg.config_path.exists() else "[dim]none[/dim]")
    table.add_row("Memory file", str(cfg.memory_file))

    if not cfg.memory_file.exists():
        table.add_row("Entities", "[dim]no memory file yet[/dim]")
        console.print(table)
        return

    try:
        stats = _store(cfg).stats()
    except KGMemError as exc:
        raise click.ClickException(str(exc)) from exc

    table.add_row("Entities", str(stats.entities))
    table.add_row("Relations", str(stats.relations))
    table.add_row("Observations", str(stats.observations))
    if stats.skipped_lines:
        table.add_row("Skipped lines", f"[yellow]⚠ {stats.skipped_lines}[/yellow]")
    else:
        table.add_row("Skipped lines", "0")
    console.print(table)


# ---------------------------------------------------------------------------
# kgmem graph / search
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--root", default=None, help="Override project root")
def graph(root: str | None) -> None:
    """Print the whole knowledge graph as JSON."""
    cfg = _load_cfg(root)
    try:
        kg = _store(cfg).read_graph()
    except KGMemError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(kg.to_dict(), indent=2, ensure_ascii=False))


@cli.command()
@click.argument("query")
@click.option("--root", default=None, help="Override project root")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON instead of tables")
def search(query: str, root: str | None, as_json: bool) -> None:
    """Case-insensitive substring search over names, types and observations.

    \b
    kgmem search france
    kgmem search "works at" --json
    """
    cfg = _load_cfg(root)
    try:
        result = _store(cfg).search_nodes(query)
    except KGMemError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    if not result.entities:
        click.echo("(no results)")
        return

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    console = Console()
    entities = Table(title=f"Entities matching {query!r}", show_header=True, header_style="bold")
    entities.add_column("Name", no_wrap=True)
    entities.add_column("Type", style="dim")
    entities.add_column("Observations")
    for e in result.entities:
        entities.add_row(escape(e.name), escape(e.entity_type), escape("\n".join(e.observations)))
    console.print(entities)

    if result.relations:
        relations = Table(title="Relations", show_header=True, header_style="bold")
        relations.add_column("From")
        relations.add_column("Relation", style="dim")
        relations.add_column("To")
        for r in result.relations:
            relations.add_row(escape(r.source), escape(r.relation_type), escape(r.target))
        console.print(relations)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
