"""ReMixr command-line interface."""

from __future__ import annotations

import json
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .auditor import audit
from .catalog import FeatureCatalog, default_catalog
from .composer import CompositionEngine
from .exceptions import CompositionError, RemixrError
from .logging import configure_logging
from .models import MANIFEST_FILE, ExtensionType, Framework, HostAccess, Identity
from .templates import TEMPLATES, create_project, generate_from_prompt
from .validator import validate
from .workspace import load_project, write_project

app = typer.Typer(
    name="remixr",
    help="ReMixr: compose browser extensions from features and validate their manifests",
    add_completion=False,
)
console = Console()


def _get_version_string() -> str:
    """Get version string from package metadata or pyproject.toml."""
    try:
        return get_version("remixr")
    except PackageNotFoundError:
        pass

    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        content = pyproject_path.read_text()
        match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', content)
        if match:
            return f"{match.group(1)} (development)"

    return "unknown"


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"ReMixr version {_get_version_string()}")
        raise typer.Exit


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """ReMixr: compose browser extensions from features and validate their manifests."""
    configure_logging(verbose=verbose)


def _load_catalog(pack: Path | None) -> FeatureCatalog:
    catalog = default_catalog()
    if pack is not None:
        catalog = catalog.merged(FeatureCatalog.from_yaml(pack))
    return catalog


def _read_manifest(directory: Path) -> object:
    """Load manifest.json as raw JSON so malformed manifests can still be reported."""
    manifest_path = directory / MANIFEST_FILE
    if not manifest_path.exists():
        console.print(f"[red]Error:[/red] No {MANIFEST_FILE} in {directory}")
        raise typer.Exit(1)
    try:
        return json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {MANIFEST_FILE} is not valid JSON: {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def new(
    directory: Path = typer.Argument(..., help="Directory for the new project"),
    template: str = typer.Option(
        "blank",
        "--template",
        "-t",
        help=f"Starter template ({', '.join(TEMPLATES)})",
    ),
    name: str | None = typer.Option(None, "--name", help="Extension name"),
    prompt: str | None = typer.Option(
        None,
        "--prompt",
        "-p",
        help="Describe the extension; picks a template by keyword",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing project without asking",
    ),
) -> None:
    """Create a new extension project from a template or a description."""
    try:
        if (directory / MANIFEST_FILE).exists() and not force:
            console.print(
                f"[yellow]Warning:[/yellow] A project already exists at {directory}",
            )
            if not typer.confirm("Overwrite existing files?"):
                console.print("Creation cancelled")
                return

        if prompt:
            project = generate_from_prompt(prompt, name=name)
        else:
            project = create_project(template, name=name)

        written = write_project(project, directory)
        console.print(f"[green]✓[/green] Created '{project.name}' at {directory}")
        for path in written:
            console.print(f"  • {path}")

    except RemixrError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def compose(
    directory: Path = typer.Argument(
        ...,
        help="Extension project directory",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    feature: list[str] = typer.Option(
        [],
        "--feature",
        "-f",
        help="Feature id to add (can be repeated)",
    ),
    extension_type: ExtensionType = typer.Option(
        ExtensionType.NONE,
        "--type",
        "-t",
        help="Extension entry-point type",
    ),
    host: HostAccess = typer.Option(
        HostAccess.NONE,
        "--host",
        help="Host access mode",
    ),
    host_pattern: list[str] = typer.Option(
        [],
        "--host-pattern",
        help="Host match pattern for custom host access (can be repeated)",
    ),
    framework: Framework = typer.Option(
        Framework.NONE,
        "--framework",
        help="Replace the entry UI files with framework boilerplate",
    ),
    name: str | None = typer.Option(None, "--name", help="New extension name"),
    description: str | None = typer.Option(
        None,
        "--description",
        help="New extension description",
    ),
    catalog_path: Path | None = typer.Option(
        None,
        "--catalog",
        help="Additional feature pack (YAML)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would change without writing files",
    ),
) -> None:
    """Add features and entry points to an extension project."""
    try:
        if host_pattern and host == HostAccess.NONE:
            host = HostAccess.CUSTOM

        catalog = _load_catalog(catalog_path)
        identity = Identity(name=name, description=description) if (name or description) else None
        selection = catalog.select(
            feature,
            extension_type=extension_type,
            host_access=host,
            host_patterns=tuple(host_pattern),
            framework=framework,
            identity=identity,
        )

        project = load_project(directory)
        result = CompositionEngine(catalog).compose(project, selection)
        changed = sorted(
            path
            for path, content in result.project.files.items()
            if project.files.get(path) != content
        )

        if framework != Framework.NONE:
            console.print(
                "[yellow]Warning:[/yellow] entry UI files were regenerated; "
                "manual edits to them are discarded.",
            )

        if dry_run:
            console.print("[bold blue]Dry run - files that would change:[/bold blue]")
            for path in changed:
                status = "modified" if path in project.files else "created"
                console.print(f"  • {path} ({status})")
            console.print(f"\n[bold]{MANIFEST_FILE}:[/bold]")
            console.print(result.project.files[MANIFEST_FILE], markup=False)
            return

        write_project(result.project, directory, previous=project)
        console.print(f"[green]✓[/green] Composed '{result.project.name}'")
        if result.applied:
            console.print(f"  Features: {', '.join(result.applied)}")
        for path in changed:
            console.print(f"  • {path}")

        report = validate(result.project.manifest())
        if not report.valid:
            console.print(
                f"[yellow]Warning:[/yellow] manifest has {len(report.errors)} "
                "validation error(s); run 'remixr validate' for details",
            )

    except CompositionError as e:
        console.print(f"[red]Error:[/red] composition failed at '{e.step}': {escape(str(e))}")
        raise typer.Exit(1) from e
    except RemixrError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except ValidationError as e:
        console.print(f"[red]Error:[/red] invalid selection: {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command("validate")
def validate_command(
    directory: Path = typer.Argument(
        ...,
        help="Extension project directory",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Treat warnings as failures",
    ),
) -> None:
    """Check manifest.json against the manifest version 3 rules."""
    report = validate(_read_manifest(directory))

    table = Table(title="Manifest Validation")
    table.add_column("Level", style="cyan")
    table.add_column("Kind")
    table.add_column("Message")
    for finding in report.errors:
        table.add_row("[red]ERROR[/red]", finding.kind.value, finding.message)
    for finding in report.warnings:
        table.add_row("[yellow]WARNING[/yellow]", finding.kind.value, finding.message)

    if report.errors or report.warnings:
        console.print(table)

    if report.valid:
        console.print("[green]✓[/green] Manifest is valid")
    else:
        console.print(f"[red]✗[/red] Manifest has {len(report.errors)} error(s)")

    if not report.valid or (strict and report.warnings):
        raise typer.Exit(1)


@app.command("audit")
def audit_command(
    directory: Path = typer.Argument(
        ...,
        help="Extension project directory",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
) -> None:
    """Score the permissions a manifest requests."""
    report = audit(_read_manifest(directory))

    color = {"low": "green", "medium": "yellow", "high": "red"}[report.risk_level.value]
    console.print(
        f"[bold]Permission score:[/bold] [{color}]{report.score}/100[/{color}] "
        f"({report.risk_level.value} risk)",
    )
    for recommendation in report.recommendations:
        console.print(f"  • {recommendation}")


@app.command()
def features(
    catalog_path: Path | None = typer.Option(
        None,
        "--catalog",
        help="Additional feature pack (YAML)",
    ),
) -> None:
    """List the features available for composition."""
    try:
        catalog = _load_catalog(catalog_path)
    except RemixrError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    table = Table(title="ReMixr Features")
    table.add_column("Id", style="cyan")
    table.add_column("Permissions", style="green")
    table.add_column("File")
    table.add_column("Description")
    for descriptor in catalog:
        table.add_row(
            descriptor.id,
            ", ".join(sorted(descriptor.grants)) or "-",
            descriptor.target_file or "-",
            descriptor.description,
        )
    console.print(table)


@app.command()
def templates() -> None:
    """List the starter templates."""
    table = Table(title="ReMixr Templates")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Keywords")
    for template in TEMPLATES.values():
        table.add_row(template.id, template.name, ", ".join(template.keywords) or "-")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"ReMixr version {_get_version_string()}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
