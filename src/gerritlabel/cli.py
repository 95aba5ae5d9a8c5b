# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

import json
import logging
from collections import Counter
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import load_config, resolve_credentials
from .errors import GerritLabelError
from .gerrit.models import LabeledChange
from .pipeline import run

app = typer.Typer(
    help="Label Gerrit changes by the files they touch",
    add_completion=False,
)
console = Console(markup=False, highlight=False, emoji=False)
err_console = Console(stderr=True, markup=False, highlight=False, emoji=False)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"gerrit-label version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _format_change(change: LabeledChange) -> Text:
    """Render one change as 'project - subject [labels]'."""
    line = Text()
    line.append(change.project, style="blue")
    line.append(" - ")
    line.append(change.subject, style="green")
    line.append(" [")
    line.append(", ".join(change.labels), style="yellow")
    line.append("]")
    return line


def _display_summary(changes: List[LabeledChange], out: Console) -> None:
    counts = Counter(label for change in changes for label in change.labels)

    table = Table(title="Label Summary")
    table.add_column("Label", style="yellow")
    table.add_column("Changes", style="white", justify="right")
    for label, count in counts.most_common():
        table.add_row(label, str(count))
    table.add_row("(unlabeled)", str(sum(1 for c in changes if not c.labels)), style="dim")

    out.print()
    out.print(table)


@app.command()
def label(
    config_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON configuration with endpoint, queryString and labelMap",
    ),
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Gerrit query overriding the configured queryString"
    ),
    user: Optional[str] = typer.Option(
        None, "--user", help="HTTP username (or set GERRIT_USERNAME env var)"
    ),
    password: Optional[str] = typer.Option(
        None, "--password", help="HTTP password (or set GERRIT_PASSWORD env var)"
    ),
    netrc_file: Optional[Path] = typer.Option(
        None, "--netrc-file", help="Read credentials from this .netrc file"
    ),
    no_netrc: bool = typer.Option(
        False, "--no-netrc", help="Do not look up credentials in .netrc"
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print one JSON record per change"
    ),
    summary: bool = typer.Option(
        False, "--summary", help="Print a table of label counts after the changes (to stderr with --json)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """
    Fetch changes from a Gerrit server and label them.

    For every change of a project listed in the label map, the files of
    its current revision are matched against that project's label
    patterns. Each change is printed with the labels it matched.
    """
    _configure_logging(verbose)

    try:
        config = load_config(config_file, query_string=query)
        auth = resolve_credentials(
            config.endpoint,
            user,
            password,
            netrc_file=netrc_file,
            use_netrc=not no_netrc,
        )
    except GerritLabelError as e:
        err_console.print(f"Error: {e}")
        raise typer.Exit(1) from e

    def emit(change: LabeledChange) -> None:
        if as_json:
            typer.echo(json.dumps(change.to_record()))
        else:
            console.print(_format_change(change))

    result = run(config, callback=emit, auth=auth)

    if result.error is not None:
        err_console.print(f"Error: {result.error}")
        raise typer.Exit(1)

    if summary:
        # Keep stdout parseable when it carries JSON records.
        _display_summary(result.changes, err_console if as_json else console)


if __name__ == "__main__":
    app()
