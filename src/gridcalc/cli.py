"""Command-line interface for gridcalc."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import yaml

from gridcalc import __version__
from gridcalc.formulas import (
    FormulaError,
    ParseResult,
    Value,
    display_value,
    evaluate,
    extract_refs,
    tokenize,
    validate_syntax,
)
from gridcalc.formulas.lexer import body_start


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet cell formula engine."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _load_depth(directory: Path) -> int:
    from gridcalc.config import load_config

    try:
        return int(load_config(directory)["max_resolution_depth"])
    except (ValueError, yaml.YAMLError) as e:
        raise click.ClickException(str(e))


def _value_json(value: Value | None) -> dict[str, Any] | None:
    if value is None:
        return None
    return {"type": type(value).__name__, "display": display_value(value)}


def _result_json(result: ParseResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "value": _value_json(result.value),
        "error_message": result.error_message,
        "error_position": result.error_position,
        "error_code": result.error_code,
    }


def _report(result: ParseResult, as_json: bool) -> None:
    """Print *result*; exit non-zero when it is a failure."""
    if as_json:
        click.echo(json.dumps(_result_json(result), indent=2))
        if not result.success:
            raise SystemExit(1)
        return

    if not result.success:
        raise click.ClickException(
            f"{result.error_message} (position {result.error_position})"
        )
    click.echo(display_value(result.value))


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("expression")
@click.option("--sheet", "sheet_file", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML sheet to resolve cell references against.")
@click.option("--cell", "origin", default=None, help="Reference of the cell that owns EXPRESSION.")
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON.")
def eval_cmd(expression: str, sheet_file: str | None, origin: str | None, as_json: bool) -> None:
    """Evaluate EXPRESSION and print its value."""
    accessor = None
    if sheet_file is not None:
        path = Path(sheet_file)
        max_depth = _load_depth(path.parent)
        accessor = _load_sheet(path, max_depth)
    else:
        max_depth = _load_depth(Path("."))

    _report(evaluate(expression, accessor, origin, max_depth=max_depth), as_json)


@main.command()
@click.argument("expression")
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON.")
def check(expression: str, as_json: bool) -> None:
    """Check that EXPRESSION is well-formed without evaluating it."""
    result = validate_syntax(expression)
    if as_json or not result.success:
        _report(result, as_json)
        return
    click.echo("OK")


@main.command()
@click.argument("expression")
@click.option("--json", "as_json", is_flag=True, help="Output tokens as JSON.")
def tokens(expression: str, as_json: bool) -> None:
    """Print the tokens of EXPRESSION."""
    try:
        toks = tokenize(expression, body_start(expression))
    except FormulaError as e:
        raise click.ClickException(str(e))

    if as_json:
        out = [
            {"kind": t.kind.value, "lexeme": t.lexeme, "position": t.position}
            for t in toks
        ]
        click.echo(json.dumps(out, indent=2))
        return

    for t in toks:
        click.echo(f"{t.position:4d}  {t.kind.value:14s} {t.lexeme}")


@main.command()
@click.argument("expression")
def refs(expression: str) -> None:
    """List the cell references EXPRESSION mentions, in order."""
    try:
        found = extract_refs(expression)
    except FormulaError as e:
        raise click.ClickException(str(e))
    for ref in found:
        click.echo(ref)


# ---------------------------------------------------------------------------
# Sheets
# ---------------------------------------------------------------------------


def _load_sheet(path: Path, max_depth: int):
    from gridcalc.sheet import load_sheet

    try:
        return load_sheet(path, max_depth=max_depth)
    except (ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Cannot load {path}: {e}")


@main.command()
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output cells as JSON.")
@click.option("--log-dir", default=None, type=click.Path(file_okay=False), help="Write structured events under this directory.")
def sheet(sheet_file: str, as_json: bool, log_dir: str | None) -> None:
    """Load SHEET_FILE, recalculate it and print every non-empty cell."""
    from gridcalc.logging import set_log_dir

    path = Path(sheet_file)
    max_depth = _load_depth(path.parent)
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        try:
            set_log_dir(Path(log_dir))
        except (ValueError, yaml.YAMLError) as e:
            raise click.ClickException(str(e))

    try:
        grid = _load_sheet(path, max_depth)
    finally:
        if log_dir is not None:
            set_log_dir(None)

    cells = [c for c in grid.iter_cells() if c.expression]

    if as_json:
        out = {
            "name": grid.name,
            "rows": grid.rows,
            "columns": grid.columns,
            "cells": [
                {
                    "ref": c.reference,
                    "expression": c.expression,
                    "value": _value_json(c.value),
                    "error": c.error,
                }
                for c in cells
            ],
        }
        click.echo(json.dumps(out, indent=2))
        return

    click.echo(f"Sheet: {grid.name} ({grid.rows}x{grid.columns})")
    if not cells:
        click.echo("No cells.")
        return
    for c in cells:
        if c.error is not None:
            click.echo(f"  {c.reference:6s} ERROR {c.error}")
        else:
            click.echo(f"  {c.reference:6s} {display_value(c.value)}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--cell", default=None, help="Filter by cell reference.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    cell: str | None,
    limit: int,
) -> None:
    """Show the structured event log written under DIRECTORY."""
    from gridcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_events(level=level, event_type=event_type, cell=cell, limit=limit)

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)
