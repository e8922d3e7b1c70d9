"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys

import typer

from termprobe.core.catalog import load_catalog
from termprobe.core.detector import DEFAULT_DETECTION_TIMEOUT_S, detect_termcap
from termprobe.core.errors import TermprobeError
from termprobe.core.model import DetectionResult
from termprobe.transports.rawmode import RawModeController
from termprobe.transports.terminal import TerminalInput, TerminalOutput

app = typer.Typer(help="Detect optional terminal features by querying the terminal")


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Log detection details to stderr"),
) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )


def _open_terminal() -> tuple[TerminalInput | None, TerminalOutput | None]:
    try:
        return TerminalInput.from_file(sys.stdin), TerminalOutput.from_file(sys.stdout)
    except (AttributeError, ValueError, OSError):
        # Captured or replaced stdio without a real descriptor.
        return None, None


def _run_detection(timeout_s: float) -> DetectionResult:
    source, sink = _open_terminal()
    if source is None:
        return asyncio.run(detect_termcap(None, None, timeout_s))
    with RawModeController(source.fd):
        return asyncio.run(detect_termcap(source, sink, timeout_s))


def _format_value(value: object) -> str:
    if value is None:
        return "<unknown>"
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


@app.command("detect")
def detect(
    timeout: float = typer.Option(
        DEFAULT_DETECTION_TIMEOUT_S,
        "--timeout",
        envvar="TERMPROBE_TIMEOUT",
        min=0.0,
        help="Seconds to wait for terminal replies",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Query the terminal and print the detected capabilities."""
    try:
        result = _run_detection(timeout)
    except TermprobeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    fields = dataclasses.asdict(result)
    if as_json:
        typer.echo(json.dumps(fields, indent=2))
        return
    for name, value in fields.items():
        typer.echo(f"{name}: {_format_value(value)}")


@app.command("features")
def list_features() -> None:
    """List the terminal features queried during detection."""
    try:
        catalog = load_catalog()
    except TermprobeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    for feature in catalog.features:
        role = "sentinel" if feature.is_sentinel else feature.field
        typer.echo(f"{feature.id}: {feature.name} -> {role}")
        typer.echo(f"  query: {feature.query!r}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
