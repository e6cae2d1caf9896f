"""Command-line interface for closure-captures.

Provides CLI commands for expanding and checking capture invocations.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from closure_captures import __version__
from closure_captures.core.capture import (
    CaptureCompiler,
    CaptureConfig,
    CaptureError,
    ScopeInfo,
    diagnostics_to_records,
    format_plan_summary,
    render,
)
from closure_captures.io import get_logger, log_json


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("closure_captures")


def _report(error: CaptureError, source: Optional[str]) -> None:
    for diagnostic in error.diagnostics:
        click.echo(render(diagnostic, source), err=True)
        click.echo("", err=True)


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


@click.group()
@click.version_option(version=__version__, prog_name="closure-captures")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Capture configuration file (YAML)")
@click.option("--log-file", type=click.Path(dir_okay=False),
              help="Also write logs to a timestamped file")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    debug: bool,
    config_path: Optional[str],
    log_file: Optional[str],
) -> None:
    """closure-captures: explicit capture lists for Python closures.

    Expands capture!(...) and capture_only!(...) invocations into plain
    Python.

    Examples:

        # Expand a module to stdout
        closure-captures expand handlers.py

        # Check several modules, with a JSON-lines report
        closure-captures check src/*.py --report captures.jsonl

        # Inspect one invocation
        closure-captures show "clone a, move b, lambda: a + b"
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    logger = setup_logging(verbose, debug)

    if log_file:
        level = logging.DEBUG if debug else logging.INFO
        logger, actual_path = get_logger("closure_captures", log_file, level=level)
        logger.info(f"Logging to {actual_path}")
    ctx.obj["logger"] = logger

    try:
        config = CaptureConfig.from_yaml(Path(config_path)) if config_path else CaptureConfig()
    except (ValueError, TypeError) as exc:
        raise click.BadParameter(str(exc), param_hint="--config") from exc
    ctx.obj["config"] = config
    ctx.obj["compiler"] = CaptureCompiler(config, logger=logger)


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--out", "-o", "output_path", type=click.Path(dir_okay=False),
              help="Output file (default: stdout)")
@click.pass_context
def expand(ctx: click.Context, input_path: str, output_path: Optional[str]) -> None:
    """Expand every capture invocation in INPUT_PATH."""
    compiler: CaptureCompiler = ctx.obj["compiler"]
    try:
        expanded = compiler.expand_file(
            Path(input_path), Path(output_path) if output_path else None
        )
    except CaptureError as error:
        _report(error, _read(input_path))
        sys.exit(1)

    if output_path:
        click.echo(f"Expanded {input_path} -> {output_path}")
    else:
        click.echo(expanded, nl=False)


@cli.command()
@click.argument("input_paths", nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
@click.option("--report", type=click.Path(dir_okay=False),
              help="Append diagnostics to this file as JSON lines")
@click.pass_context
def check(ctx: click.Context, input_paths: Tuple[str, ...], report: Optional[str]) -> None:
    """Check capture invocations without writing output.

    Exits with status 1 if any file has diagnostics.
    """
    logger = ctx.obj["logger"]
    compiler: CaptureCompiler = ctx.obj["compiler"]

    failed = 0
    records = []
    for input_path in input_paths:
        source = _read(input_path)
        diagnostics = compiler.check_source(source, input_path)
        if not diagnostics:
            logger.info(f"{input_path}: ok")
            continue
        failed += 1
        _report(CaptureError(diagnostics), source)
        records.extend(diagnostics_to_records(diagnostics, filename=input_path))

    if report:
        count = log_json(report, records)
        logger.info(f"Wrote {count} diagnostic record(s) to {report}")

    if failed:
        click.echo(f"{failed} of {len(input_paths)} file(s) failed", err=True)
        sys.exit(1)
    click.echo(f"{len(input_paths)} file(s) ok")


@cli.command()
@click.argument("capture_list")
@click.option("--only", is_flag=True, help="Compile as capture_only!")
@click.option("--entry-point", "-e", default=None, help="Entry point name (default: capture)")
@click.option("--local", "locals_", multiple=True,
              help="Name bound in an enclosing function (repeatable)")
@click.option("--global", "globals_", multiple=True,
              help="Module-level name (repeatable)")
@click.pass_context
def show(
    ctx: click.Context,
    capture_list: str,
    only: bool,
    entry_point: Optional[str],
    locals_: Tuple[str, ...],
    globals_: Tuple[str, ...],
) -> None:
    """Print the plan and expansion of one CAPTURE_LIST.

    CAPTURE_LIST is the text between the invocation's parentheses.
    """
    compiler: CaptureCompiler = ctx.obj["compiler"]
    if only and entry_point:
        raise click.UsageError("--only and --entry-point are mutually exclusive")
    name = "capture_only" if only else (entry_point or "capture")
    try:
        compiler.config.entry_point(name)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--entry-point") from exc

    scope = None
    if locals_ or globals_:
        scope = ScopeInfo(
            locals=frozenset(locals_),
            globals=frozenset(globals_) if globals_ else None,
        )

    try:
        expansion = compiler.expand(capture_list, entry_point=name, scope=scope)
    except CaptureError as error:
        _report(error, capture_list)
        sys.exit(1)

    click.echo(format_plan_summary(expansion.plan, expansion))


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
