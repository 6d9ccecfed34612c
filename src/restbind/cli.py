"""CLI entry point for restbind."""

import json
import sys
from pathlib import Path

import click
import yaml

from restbind.analysis.source import analyze_source
from restbind.analysis.validator import AnalysisResult
from restbind.generator.source import render_client_module
from restbind.generator.validator import validate_files


def _analyze(sources: tuple[Path, ...]) -> list[AnalysisResult]:
    try:
        return analyze_source(list(sources))
    except SyntaxError as e:
        raise click.ClickException(f"{e.filename}:{e.lineno}: {e.msg}") from e
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _module_name(source: Path) -> str:
    return source.with_suffix("").name


@click.group()
def main():
    """restbind: check interface declarations and generate API clients."""
    pass


@main.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(sources: tuple[Path, ...]):
    """Validate the interfaces declared in SOURCES."""
    results = _analyze(sources)
    click.echo(f"Found {len(results)} interfaces.")

    fatal = 0
    for result in results:
        for diagnostic in result.diagnostics:
            click.echo(diagnostic.format())
            fatal += diagnostic.fatal
    if fatal:
        click.echo(f"{fatal} errors.", err=True)
        sys.exit(1)
    click.echo("No errors.")


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--format", "fmt", default="yaml", type=click.Choice(["yaml", "json"]), help="Output format.")
def dump(source: Path, fmt: str):
    """Print the normalized model of each interface in SOURCE."""
    results = _analyze((source,))
    data = [result.model_dump(mode="json") for result in results]
    if fmt == "json":
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), nl=False)


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the generated module.")
@click.option("--module", default=None, help="Import path of SOURCE in generated code (default: its file name).")
def generate(source: Path, output: Path, module: str | None):
    """Generate client classes for the interfaces in SOURCE."""
    click.echo(f"Analyzing {source}...")
    results = _analyze((source,))
    click.echo(f"Found {len(results)} interfaces.")
    for result in results:
        for diagnostic in result.fatal:
            click.echo(diagnostic.format(), err=True)

    text = render_client_module(results, module or _module_name(source))
    errors = validate_files({f"{output.stem}.py": text})
    if errors:
        for filename, message in errors.items():
            click.echo(f"{filename}: {message}", err=True)
        raise click.ClickException("Generated code failed validation.")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Client module saved to {output}")
