"""TetherDB CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer
from sqlalchemy.engine import make_url

import tetherdb
from tetherdb.cli.commands import relations
from tetherdb.cli.context import CLIContext, get_database_url
from tetherdb.schema.inspector import SchemaInspector
from tetherdb.schema.models import RELATIONS_COLLECTION

app = typer.Typer(
    name="tetherdb",
    help="TetherDB CLI - Relations kept in step with your foreign keys",
    no_args_is_help=True,
)
app.add_typer(relations.app, name="relations")


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="TETHERDB_URL",
            help="Database URL (PostgreSQL, MySQL or SQLite)",
        ),
    ] = None,
    echo: Annotated[bool, typer.Option("--echo", "-e", help="Echo SQL statements")] = False,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON (machine-readable)")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")
    ] = False,
) -> None:
    """Resolve the database and output mode for the command that follows."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)

    ctx.obj = CLIContext(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"TetherDB v{tetherdb.__version__}")


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the relation metadata table if it doesn't exist."""
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        db.initialize()
        cli_ctx.formatter.print_success(
            f"Metadata table {RELATIONS_COLLECTION} ready",
            {"database": make_url(cli_ctx.database_url).render_as_string(hide_password=True)},
        )


@app.command()
def collections(ctx: typer.Context) -> None:
    """List collections with their primary key and columns."""
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        inspector = SchemaInspector(db.engine)
        overviews = [
            inspector.collection(table)
            for table in inspector.tables()
            if table != RELATIONS_COLLECTION
        ]
        cli_ctx.formatter.print_collections(overviews)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
