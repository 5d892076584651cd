"""
Command Line Interface for DreamCut Analyzer.

Turns a creative request plus optional media attachments into a validated
production plan, and offers helpers to inspect configuration, providers and
saved documents.

Example:
    dreamcut analyze "make a 30s product teaser, 16:9, energetic mood" --offline
    dreamcut analyze "turn this into a highlight reel" --asset video:match.mp4 -o plan.json
"""

from __future__ import annotations

import json
import logging
import sys
from importlib import metadata
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from dreamcut import __version__
from dreamcut.ai.client import UnconfiguredProvider, build_registry
from dreamcut.config import AppConfig, ConfigError, GapAnalysisDepth, get_config, load_config
from dreamcut.core.models import MediaKind, OutputType
from dreamcut.core.report import FinalAnalysisOutput
from dreamcut.core.validation import SchemaValidationError, validate_stage
from dreamcut.pipeline import AnalysisPipeline, PipelineError, PipelineProgress, PipelineResult
from dreamcut.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()

URL_SCHEMES = ("http", "https", "file", "s3", "gs")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print styled header."""
    console.print(f"\n[bold cyan]{text}[/bold cyan]\n")


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {text}")


def create_progress() -> Progress:
    """Create standard progress bar setup."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )


def parse_asset_option(value: str, index: int) -> dict[str, Any]:
    """Parse ``kind:locator[:description]`` into an asset descriptor.

    A trailing ``:description`` is split off only when it contains no "/",
    so URLs such as ``video:https://cdn.example.com/clip.mp4`` stay intact.

    Example:
        >>> parse_asset_option("image:hero.jpg:Product on a white table", 1)
        {'id': 'asset_1', 'source': 'hero.jpg', 'kind': 'image', 'description': 'Product on a white table'}
    """
    kind, sep, rest = value.partition(":")
    if not sep or not rest:
        raise click.BadParameter(f"Expected kind:locator[:description], got '{value}'")
    if kind.lower() not in {k.value for k in MediaKind}:
        raise click.BadParameter(f"Unknown asset kind '{kind}'")

    locator, sep, description = rest.rpartition(":")
    if not sep or not locator or "/" in description or locator.lower() in URL_SCHEMES:
        locator, description = rest, ""

    descriptor: dict[str, Any] = {"id": f"asset_{index}", "source": locator, "kind": kind.lower()}
    if description.strip():
        descriptor["description"] = description.strip()
    return descriptor


def load_assets_file(path: Path) -> list[Any]:
    """Read a JSON list of asset descriptors (or ``{"assets": [...]}``)."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("assets", [])
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must hold a list of asset descriptors")
    return data


def apply_overrides(
    config: AppConfig,
    model: str | None,
    no_grammar: bool,
    no_reframing: bool,
    gap_depth: str | None,
    no_ai_synthesis: bool,
) -> AppConfig:
    """Return a copy of the configuration with command-line overrides applied."""
    query_updates: dict[str, Any] = {}
    synthesis_updates: dict[str, Any] = {}
    if model:
        query_updates["model_preference"] = model
        synthesis_updates["model_preference"] = model
    if no_grammar:
        query_updates["enable_grammar_correction"] = False
    if no_reframing:
        query_updates["enable_creative_reframing"] = False
    if gap_depth:
        synthesis_updates["gap_analysis_depth"] = GapAnalysisDepth(gap_depth)
    if no_ai_synthesis:
        synthesis_updates["enable_ai_synthesis"] = False

    return config.model_copy(
        update={
            "query": config.query.model_copy(update=query_updates),
            "synthesis": config.synthesis.model_copy(update=synthesis_updates),
        }
    )


def print_result_summary(result: PipelineResult) -> None:
    """Print the summary panel and the asset utilization table."""
    output = result.output
    metadata_section = output.analysis_metadata
    understanding = output.global_understanding
    status = metadata_section.completion_status.value
    style = "green" if status == "complete" else "yellow"

    lines = [
        f"[bold]{understanding.project_overview.title}[/bold]",
        f"Output: {output.query_summary.parsed_intent.primary_output.value}",
        f"Status: [{style}]{status}[/{style}]",
        f"Confidence: {metadata_section.analyzer_confidence:.0%}",
        f"Quality score: {metadata_section.quality_score}/10",
        f"Critical gaps: {metadata_section.critical_gap_count}",
        "",
        understanding.unified_creative_direction.direction,
    ]
    console.print(Panel("\n".join(lines), title="Production Plan", border_style=style))

    utilization = understanding.asset_utilization
    if output.assets_analysis.total_assets:
        table = Table(title="Asset Utilization")
        table.add_column("Asset", style="cyan")
        table.add_column("Kind")
        table.add_column("Status")
        table.add_column("Bucket", style="green")
        table.add_column("Alignment", justify="right")
        for asset in output.assets_analysis.individual_assets:
            table.add_row(
                asset.asset_id,
                asset.kind.value,
                asset.status.value,
                asset.alignment.utilization,
                f"{asset.alignment.alignment_score:.2f}",
            )
        console.print(table)
        console.print(f"Utilization rate: {utilization.utilization_rate:.0%}")

    steps = output.pipeline_recommendations.recommended_workflow
    if steps:
        table = Table(title="Recommended Workflow")
        table.add_column("#", justify="right")
        table.add_column("Step", style="cyan")
        table.add_column("Duration")
        table.add_column("Skill")
        for step in steps:
            table.add_row(str(step.step_number), step.name, step.estimated_duration, step.skill_level)
        console.print(table)

    for warning in result.warnings:
        print_warning(warning)


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Custom config file")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, debug: bool, config_path: Path | None, quiet: bool
) -> None:
    """
    DreamCut Analyzer - turn a creative request into a production plan.

    Reads a free-form request and any attached media, and produces one
    validated JSON document describing intent, constraints, asset usage,
    gaps and a recommended workflow.
    """
    try:
        config = load_config(config_path) if config_path else get_config()
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = config.logging.level
    setup_logging(level=level, log_file=config.logging.log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug or config.debug
    ctx.obj["quiet"] = quiet


# =============================================================================
# ANALYZE COMMAND - Main workflow
# =============================================================================


@cli.command()
@click.argument("query")
@click.option(
    "--asset",
    "asset_specs",
    multiple=True,
    help="Attachment as kind:locator[:description] (repeatable)",
)
@click.option(
    "--assets-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with a list of asset descriptors",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write the JSON document here")
@click.option("--json", "as_json", is_flag=True, help="Print the JSON document instead of a summary")
@click.option("--offline", is_flag=True, help="Use the deterministic offline provider")
@click.option("--model", help="Provider to try first (query analysis and synthesis)")
@click.option("--no-grammar", is_flag=True, help="Disable grammar correction")
@click.option("--no-reframing", is_flag=True, help="Disable creative reframing")
@click.option(
    "--gap-depth",
    type=click.Choice([depth.value for depth in GapAnalysisDepth]),
    help="Gap analysis depth",
)
@click.option("--no-ai-synthesis", is_flag=True, help="Skip the AI creative direction call")
@click.option(
    "--output-type",
    type=click.Choice([t.value for t in OutputType]),
    help="Force the output medium",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    query: str,
    asset_specs: tuple[str, ...],
    assets_file: Path | None,
    output: Path | None,
    as_json: bool,
    offline: bool,
    model: str | None,
    no_grammar: bool,
    no_reframing: bool,
    gap_depth: str | None,
    no_ai_synthesis: bool,
    output_type: str | None,
) -> None:
    """
    Analyze a creative request and its attachments.

    Example:
        dreamcut analyze "turn this into a highlight reel" --asset video:match.mp4
    """
    quiet = ctx.obj["quiet"] or as_json
    config = apply_overrides(
        ctx.obj["config"], model, no_grammar, no_reframing, gap_depth, no_ai_synthesis
    )

    assets: list[Any] = load_assets_file(assets_file) if assets_file else []
    offset = len(assets)
    assets.extend(
        parse_asset_option(spec, offset + index) for index, spec in enumerate(asset_specs, start=1)
    )

    pipeline = AnalysisPipeline(config, build_registry(config, offline=offline))
    selected = OutputType(output_type) if output_type else None

    if not quiet:
        print_header("DreamCut Analyzer")
        if offline:
            print_warning("Offline mode: using rule-based responses")

    try:
        if quiet:
            result = pipeline.run_sync(query, assets, selected_output_type=selected)
        else:
            progress = create_progress()
            with progress:
                task = progress.add_task("Starting...", total=100)

                def on_progress(update: PipelineProgress) -> None:
                    progress.update(task, completed=update.percent, description=update.message)

                result = pipeline.run_sync(query, assets, on_progress, selected)
    except PipelineError as e:
        if as_json:
            click.echo(json.dumps(e.to_dict(), indent=2))
        else:
            print_error(f"Pipeline failed at stage '{e.stage}': {e.message}")
            if isinstance(e.cause, SchemaValidationError):
                console.print(e.cause.to_report(), markup=False)
        sys.exit(1)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.to_json(), encoding="utf-8")

    if as_json:
        click.echo(result.to_json())
        return

    if not ctx.obj["quiet"]:
        print_result_summary(result)
    if output:
        print_success(f"Plan saved to {output}")


# =============================================================================
# VALIDATE COMMAND
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(file: Path) -> None:
    """
    Validate a saved final document.

    Example:
        dreamcut validate plan.json
    """
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print_error(f"{file} is not valid JSON: {e}")
        sys.exit(1)

    try:
        document = validate_stage(FinalAnalysisOutput, data, stage="assembly")
    except SchemaValidationError as e:
        print_error(f"{file} is not a valid analysis document")
        console.print(e.to_report(), markup=False)
        sys.exit(1)

    print_success(
        f"{file} is valid ({document.analysis_metadata.completion_status.value}, "
        f"quality {document.analysis_metadata.quality_score}/10)"
    )


# =============================================================================
# PROVIDERS COMMAND
# =============================================================================


@cli.command()
@click.pass_context
def providers(ctx: click.Context) -> None:
    """Show the provider catalog and each stage's fallback order."""
    config: AppConfig = ctx.obj["config"]
    registry = build_registry(config)

    table = Table(title="Providers")
    table.add_column("Name", style="cyan")
    table.add_column("Backend")
    table.add_column("Model")
    table.add_column("Ready", justify="center")
    for spec in config.providers:
        provider = registry.get(spec.name)
        ready = not isinstance(provider, UnconfiguredProvider)
        table.add_row(
            spec.name,
            spec.backend.value,
            spec.model or "-",
            "[green]yes[/green]" if ready else f"[red]no[/red] ({spec.api_key_env or 'no key'})",
        )
    console.print(table)

    orders = Table(title="Stage Fallback Order")
    orders.add_column("Stage", style="cyan")
    orders.add_column("Preference")
    orders.add_column("Order")
    orders.add_row(
        "query_analysis", config.query.model_preference, " → ".join(config.query.provider_order)
    )
    for kind in MediaKind:
        orders.add_row(
            f"asset_analysis ({kind.value})",
            "auto",
            " → ".join(config.assets.providers_for_kind(kind.value)) or "-",
        )
    orders.add_row(
        "synthesis",
        config.synthesis.model_preference,
        " → ".join(config.synthesis.provider_order)
        if config.synthesis.enable_ai_synthesis
        else "disabled",
    )
    console.print(orders)


# =============================================================================
# CONFIG GROUP
# =============================================================================


@cli.group()
def config() -> None:
    """Inspect configuration settings."""


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Display current configuration."""
    cfg: AppConfig = ctx.obj["config"]
    print_header("Current Configuration")

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    sections = {
        "ai": cfg.ai,
        "query": cfg.query,
        "assets": cfg.assets,
        "synthesis": cfg.synthesis,
        "scoring": cfg.scoring,
        "logging": cfg.logging,
    }
    for section_name, section in sections.items():
        for key, value in section.model_dump(mode="json").items():
            if isinstance(value, list):
                value = ", ".join(str(item) for item in value)
            table.add_row(f"{section_name}.{key}", str(value))
    table.add_row("providers", ", ".join(cfg.provider_names()))
    table.add_row("debug", str(cfg.debug))

    console.print(table)


# =============================================================================
# VERSION COMMAND
# =============================================================================


@cli.command()
def version() -> None:
    """Show version and dependency information."""
    print_header("DreamCut Analyzer")

    console.print(f"Version: [bold]{__version__}[/bold]")
    console.print(f"Python: {sys.version.split()[0]}")

    console.print("\n[bold]Dependencies:[/bold]")
    for name in ("pydantic", "pydantic-settings", "click", "rich", "httpx", "google-genai", "PyYAML"):
        try:
            installed = metadata.version(name)
        except metadata.PackageNotFoundError:
            console.print(f"  [red]✗[/red] {name}")
        else:
            console.print(f"  [green]✓[/green] {name} {installed}")


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
