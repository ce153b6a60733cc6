"""Per-invocation CLI state: where the database is and how to print."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import typer

from tetherdb import TetherDB
from tetherdb.cli.output import OutputFormatter

URL_ENV_VAR = "TETHERDB_URL"
DEFAULT_DATABASE_URL = "sqlite:///./tetherdb.db"


def get_database_url(url: str | None) -> str:
    """Resolve database URL: ``--database``, then ``TETHERDB_URL``, then a local SQLite file."""
    return url or os.getenv(URL_ENV_VAR) or DEFAULT_DATABASE_URL


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    The CLI is a trusted caller: every command runs without an
    accountability, with the permissions of an administrator.
    """

    database_url: str
    echo: bool = False
    json_output: bool = False
    _db: TetherDB | None = field(default=None, init=False, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        return OutputFormatter(self.json_output)

    @contextmanager
    def session(self) -> Iterator[TetherDB]:
        """Open the database for one command.

        Any error is printed and turned into exit code 1; the connection is
        closed either way.
        """
        if self._db is None:
            self._db = TetherDB(self.database_url, echo=self.echo)
        try:
            yield self._db
        except Exception as e:
            self.formatter.print_error(e)
            raise typer.Exit(code=1) from e
        finally:
            self._db.close()
            self._db = None
