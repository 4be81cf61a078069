"""transmute CLI — thin driver over the translation engine."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from transmute import __version__
from transmute.errors import TransmuteError

console = Console()
err_console = Console(stderr=True)

OUTPUT_SUFFIXES = {"python": ".py", "javascript": ".js"}


def _fail(message: str) -> None:
    err_console.print(f"[red]Error:[/] {escape(message)}", highlight=False)
    raise SystemExit(1)


def _config(ctx: click.Context, **overrides):
    from transmute.config import load_config

    try:
        return load_config(ctx.obj.get("config_path"), **overrides)
    except TransmuteError as e:
        _fail(str(e))


def _catalog(config):
    from transmute.catalog import load_catalog

    try:
        return load_catalog(config.catalog_paths, include_defaults=config.include_default_catalog)
    except TransmuteError as e:
        _fail(str(e))


def _read_unit(path: str, language: str | None):
    from transmute.adapters import parse_unit

    try:
        return parse_unit(path, Path(path).read_text(errors="replace"), language)
    except TransmuteError as e:
        _fail(str(e))


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Log engine decisions to stderr")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """transmute — structural, idiom-aware translation between program notations.

    Recognizes library idioms and legacy constructs in a program's IR,
    rewrites them through a mapping catalog for a target ecosystem, and
    reports how much of the result is a faithful translation.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )


# ── Translate ────────────────────────────────────────────────────────


@main.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--target", "-t", required=True, help="Target ecosystem id (e.g. python, httpx, vue)")
@click.option("--notation", "-n", default=None, help="Target notation renderer (python, javascript)")
@click.option("--language", "-l", default=None, help="Source language tag; detected when omitted")
@click.option("--catalog", "-c", "catalogs", multiple=True, type=click.Path(exists=True), help="Extra catalog file")
@click.option("--no-default-catalog", is_flag=True, help="Do not load the built-in catalog")
@click.option("--workers", "-w", type=int, default=None, help="Parallel workers")
@click.option("--ranking-url", default=None, help="Ranking service endpoint")
@click.option("--output", "-o", default=None, type=click.Path(file_okay=False), help="Write translated units here")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def translate(
    ctx: click.Context,
    files: tuple[str, ...],
    target: str,
    notation: str | None,
    language: str | None,
    catalogs: tuple[str, ...],
    no_default_catalog: bool,
    workers: int | None,
    ranking_url: str | None,
    output: str | None,
    as_json: bool,
):
    """Translate source FILES for a target ecosystem."""
    from transmute.engine.pipeline import BatchTranslator, SourceFile, Translator
    from transmute.engine.ranking import RankingClient

    config = _config(
        ctx,
        notation=notation,
        workers=workers,
        ranking_url=ranking_url,
        catalog_paths=catalogs or None,
        include_default_catalog=False if no_default_catalog else None,
    )
    catalog = _catalog(config)
    try:
        translator = Translator(
            catalog,
            notation=config.notation,
            ranking=RankingClient(config.ranking_url, config.ranking_timeout),
            ancestor_depth=config.ancestor_depth,
        )
        batch = BatchTranslator(translator, workers=config.workers, unit_timeout=config.unit_timeout)
        sources = [SourceFile(f, Path(f).read_text(errors="replace"), language) for f in files]
        results = batch.translate_sources(sources, target)
    except TransmuteError as e:
        _fail(str(e))

    if output:
        out_dir = Path(output)
        out_dir.mkdir(parents=True, exist_ok=True)
        suffix = OUTPUT_SUFFIXES.get(config.notation, ".txt")
        for result in results:
            if result.ok:
                (out_dir / Path(result.unit_name).with_suffix(suffix).name).write_text(result.code)

    if as_json:
        click.echo(json.dumps({r.unit_name: r.to_dict() for r in results}, indent=2))
    else:
        _print_results(results, target, config.notation, show_code=not output)

    if any(not r.ok for r in results):
        raise SystemExit(1)


def _print_results(results, target: str, notation: str, show_code: bool):
    console.print(f"\n[bold blue]transmute[/] — {len(results)} unit(s) to {notation}/{target}\n")
    for result in results:
        if show_code and result.ok:
            console.print(Panel(Text(result.code.rstrip() or "(empty)"), title=escape(result.unit_name)))

    table = Table(title="Translation Results")
    table.add_column("Unit", style="cyan")
    table.add_column("Confidence", justify="right", style="green")
    table.add_column("Warnings", justify="right")
    table.add_column("Status")
    for result in results:
        status = "[green]OK[/]" if result.ok else f"[red]{escape(result.error or '')}[/]"
        table.add_row(escape(result.unit_name), f"{result.confidence:.2f}", str(len(result.warnings)), status)
    console.print(table)

    for result in results:
        for w in result.warnings:
            console.print(f"  [yellow]![/] {escape(result.unit_name)} {w.node_id}: {escape(w.reason)}", highlight=False)


# ── Inspect ──────────────────────────────────────────────────────────


@main.command(name="ir")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--language", "-l", default=None, help="Source language tag; detected when omitted")
@click.option("--annotate", is_flag=True, help="Include matcher annotations")
@click.pass_context
def dump_ir(ctx: click.Context, file: str, language: str | None, annotate: bool):
    """Print the canonical IR of FILE as JSON."""
    from transmute.engine.matcher import StructuralMatcher
    from transmute.ir.annotations import AnnotationLedger
    from transmute.ir.serialization import dumps
    from transmute.ir.symbols import SymbolTable

    unit = _read_unit(file, language)
    ledger = None
    if annotate:
        config = _config(ctx)
        ledger = AnnotationLedger()
        StructuralMatcher(_catalog(config).patterns, config.ancestor_depth).match(
            SymbolTable.build(unit.root), ledger, unit_name=unit.name
        )
    click.echo(dumps(unit.root, ledger=ledger))
    for diagnostic in unit.diagnostics:
        err_console.print(f"[yellow]![/] {escape(f'{file}:{diagnostic}')}", highlight=False)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--language", "-l", default=None, help="Source language tag; detected when omitted")
@click.pass_context
def matches(ctx: click.Context, file: str, language: str | None):
    """List the pattern matches the matcher accepts in FILE."""
    from transmute.engine.matcher import StructuralMatcher
    from transmute.ir.symbols import SymbolTable

    config = _config(ctx)
    unit = _read_unit(file, language)
    table = SymbolTable.build(unit.root)
    report = StructuralMatcher(_catalog(config).patterns, config.ancestor_depth).match(table, unit_name=unit.name)

    if not report.matches:
        console.print("[yellow]No pattern matches found.[/]")
        return

    out = Table(title=f"Matches ({len(report.matches)} accepted, {len(report.suppressed)} suppressed)")
    out.add_column("Anchor", style="dim")
    out.add_column("Pattern", style="cyan")
    out.add_column("Category")
    out.add_column("Nodes", justify="right")
    out.add_column("Safety")
    for m in report.matches:
        out.add_row(m.anchor_id, m.pattern_id, m.category, str(m.span), "preserve" if m.safety_critical else "")
    console.print(out)
    for w in report.warnings:
        console.print(f"  [yellow]![/] {w.node_id}: {escape(w.reason)}", highlight=False)


# ── Catalog ──────────────────────────────────────────────────────────


@main.group()
def catalog():
    """Inspect and validate pattern/mapping catalogs."""


@catalog.command(name="check")
@click.argument("catalog_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--standalone", is_flag=True, help="Check without layering on the built-in catalog")
def check_catalog(catalog_path: str, standalone: bool):
    """Validate a catalog file: schema gate, then semantic checks."""
    from transmute.catalog.loader import DEFAULT_CATALOG_PATH, catalog_from_data, read_document
    from transmute.catalog.schema_validator import validate_schema
    from transmute.catalog.semantic_validator import Severity, validate_catalog

    console.print(f"\n[bold blue]transmute[/] — Checking catalog: {escape(catalog_path)}\n")

    try:
        data = read_document(catalog_path)
    except TransmuteError as e:
        _fail(str(e))

    # Gate 1: Schema
    schema_issues = validate_schema(data)
    if schema_issues:
        console.print("[red]Schema validation FAILED:[/]")
        for issue in schema_issues:
            console.print(f"  [red]x[/] {escape(issue)}", highlight=False)
        raise SystemExit(1)
    console.print("  [green]v[/] Schema validation passed")

    # Gate 2: Construction (patterns, fragment templates)
    try:
        base = None if standalone else catalog_from_data(read_document(DEFAULT_CATALOG_PATH), str(DEFAULT_CATALOG_PATH))
        loaded = catalog_from_data(data, catalog_path, base=base)
    except TransmuteError as e:
        console.print(f"  [red]x[/] {escape(str(e))}", highlight=False)
        raise SystemExit(1)
    console.print(f"  [green]v[/] {len(loaded.patterns)} pattern(s), {len(loaded.mappings)} mapping(s) loaded")

    # Gate 3: Semantic
    result = validate_catalog(loaded)
    markers = {Severity.ERROR: "[red]x[/]", Severity.WARNING: "[yellow]![/]", Severity.INFO: "[dim]i[/]"}
    for issue in result.issues:
        console.print(f"  {markers[issue.severity]} {escape(f'[{issue.code}] {issue.message}')}", highlight=False)
    console.print(Panel(Text(result.summary()), title="Catalog Check"))
    if not result.passed:
        raise SystemExit(1)


@catalog.command(name="show")
@click.option("--target", "-t", default=None, help="Only mappings for this target ecosystem")
@click.option("--library", "-L", default=None, help="Also list the target ecosystems declared for this source library")
@click.pass_context
def show_catalog(ctx: click.Context, target: str | None, library: str | None):
    """List the loaded patterns and mappings."""
    loaded = _catalog(_config(ctx))

    patterns = Table(title=f"Patterns ({len(loaded.patterns)})")
    patterns.add_column("#", style="dim", width=3)
    patterns.add_column("Id", style="cyan")
    patterns.add_column("Category")
    patterns.add_column("Stability")
    for i, p in enumerate(loaded.patterns):
        patterns.add_row(str(i), p.id, p.category or "(from library)", p.stability.value)
    console.print(patterns)

    shown = [m for m in loaded.mappings if target is None or m.target_ecosystem == target]
    mappings = Table(title=f"Mappings ({len(shown)})")
    mappings.add_column("Id", style="cyan")
    mappings.add_column("Category")
    mappings.add_column("Target")
    mappings.add_column("Priority", justify="right")
    mappings.add_column("Preserving")
    for m in shown:
        mappings.add_row(m.id, m.source_category, m.target_ecosystem, str(m.priority), "yes" if m.behavior_preserving else "no")
    console.print(mappings)

    if library:
        targets = loaded.target_ecosystems_for(library)
        if targets:
            console.print(f"Target ecosystems for [cyan]{escape(library)}[/]: {escape(', '.join(targets))}")
        else:
            console.print(f"[yellow]No target ecosystems declared for {escape(library)}.[/]")


@catalog.command(name="suggest")
@click.argument("category")
@click.option("--target", "-t", required=True, help="Target ecosystem id")
@click.option("--pattern", "-p", "pattern_id", default=None, help="Pattern id the category came from")
@click.option("--json", "as_json", is_flag=True, help="Print suggestions as JSON")
@click.pass_context
def suggest_catalog(ctx: click.Context, category: str, target: str, pattern_id: str | None, as_json: bool):
    """Rank the ways CATEGORY could be carried to a target ecosystem."""
    loaded = _catalog(_config(ctx))
    suggestions = loaded.suggestions(category, target, pattern_id)

    if as_json:
        click.echo(json.dumps([s.to_dict() for s in suggestions], indent=2))
        return

    out = Table(title=f"Suggestions for {escape(category)} -> {escape(target)}")
    out.add_column("Kind", style="cyan", no_wrap=True)
    out.add_column("Confidence", justify="right", style="green")
    out.add_column("Mapping", no_wrap=True)
    out.add_column("Description")
    for s in suggestions:
        out.add_row(s.kind.value, f"{s.confidence:.1f}", s.mapping.id if s.mapping else "", escape(s.description))
    console.print(out)


# ── Schema ───────────────────────────────────────────────────────────


@main.command(name="schema")
def dump_schema():
    """Print the JSON Schema for catalog documents."""
    from transmute.catalog.schema import get_schema

    click.echo(json.dumps(get_schema(), indent=2))


if __name__ == "__main__":
    main()
