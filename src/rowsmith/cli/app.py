"""
Root Typer application for the rowsmith CLI.

Commands:
    rowsmith dialect --dsn sqlite:app.db      dialect facts of a live connection
    rowsmith dialect --driver sqlsrv          dialect facts for a driver tag
    rowsmith exec "SELECT ..." --dsn ... -p 5 run one statement, print rows
    rowsmith settings                         effective ROWSMITH_* defaults
"""

from __future__ import annotations

from dataclasses import asdict

import typer
from typer import Typer

from rowsmith.cli.utils import console, fail, make_registry, output_dict, output_rows
from rowsmith.core.dialect import detect_dialect
from rowsmith.core.errors import RowsmithError
from rowsmith.core.logging import configure_logging
from rowsmith.core.settings import RowsmithSettings

app = Typer(
    name="rowsmith",
    help="rowsmith: fluent SQL query builder and row persistence.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from rowsmith import __version__

        typer.echo(f"rowsmith {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug events."),
) -> None:
    """rowsmith CLI: inspect dialects and run statements."""
    settings = RowsmithSettings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("dialect")
def dialect(
    dsn: str | None = typer.Option(None, "--dsn", "-d", help="Connection string to open and probe."),
    driver: str | None = typer.Option(None, "--driver", help="Driver tag to look up without connecting."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the dialect facts (quoting, limit style, RETURNING) for a connection."""
    if driver is not None:
        facts = detect_dialect(driver)
    else:
        try:
            facts = make_registry(dsn).dialect()
        except RowsmithError as exc:
            fail(exc.message)
        except Exception as exc:  # driver errors: report, don't traceback
            fail(str(exc))
    output_dict(asdict(facts), as_json=json_out, title="Dialect")


@app.command("exec")
def exec_sql(
    sql: str = typer.Argument(..., help="Statement to execute; use ? for parameters."),
    dsn: str | None = typer.Option(None, "--dsn", "-d", help="Connection string."),
    params: list[str] = typer.Option([], "--param", "-p", help="Positional parameter (repeatable)."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Execute one raw statement and print any rows it returns."""
    registry = make_registry(dsn)
    try:
        registry.raw_execute(sql, list(params))
    except RowsmithError as exc:
        fail(exc.message)
    except Exception as exc:  # driver errors: report, don't traceback
        fail(str(exc))

    rows = []
    statement = registry.last_statement
    while (row := statement.fetch_row()) is not None:
        rows.append(row)

    if not json_out:
        console.print(f"[dim]{registry.get_last_query()}[/dim]")
    output_rows(rows, as_json=json_out, title="Rows")


@app.command("settings")
def show_settings(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the defaults new connections start from (ROWSMITH_* / .env)."""
    output_dict(RowsmithSettings().model_dump(), as_json=json_out, title="Settings")


if __name__ == "__main__":
    app()
