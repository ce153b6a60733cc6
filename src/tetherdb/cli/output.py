"""Terminal and JSON rendering of relations and errors."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tetherdb.core.types import CollectionOverview, Relation
from tetherdb.exceptions import ForbiddenError, InvalidPayloadError, TetherDBError

console = Console()

ERROR_TITLES = {
    ForbiddenError: "Forbidden",
    InvalidPayloadError: "Invalid payload",
}


def _dump(data: Any) -> None:
    print(json.dumps(data, default=str, indent=2))


class OutputFormatter:
    """Prints command results as rich tables, or as JSON with ``--json``."""

    def __init__(self, json_mode: bool = False) -> None:
        self.json_mode = json_mode

    def print_relations(self, title: str, relations: list[Relation]) -> None:
        if self.json_mode:
            _dump([r.to_dict() for r in relations])
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        for col in ("Collection", "Field", "Related", "Constraint", "On Delete", "Reverse"):
            table.add_column(col)
        for relation in relations:
            schema = relation.schema_
            table.add_row(
                relation.collection,
                relation.field,
                relation.related_collection or "",
                (schema.constraint_name or "") if schema else "",
                str(schema.on_delete or "") if schema else "",
                (relation.meta.one_field or "") if relation.meta else "",
            )
        console.print(table)

    def print_relation(self, relation: Relation) -> None:
        """Print one relation: the foreign key part, then the meta part."""
        if self.json_mode:
            _dump(relation.to_dict())
            return

        console.print(f"\n[bold]Relation:[/bold] {relation.collection}.{relation.field}")
        console.print(f"Related collection: {relation.related_collection or '-'}")

        if relation.schema_:
            console.print("\n[bold]Foreign key:[/bold]")
            for key, value in relation.schema_.model_dump(mode="json").items():
                console.print(f"  {key}: {value}", style="dim")
        else:
            console.print("\nNo foreign key (alias relation)")

        if relation.meta:
            console.print("\n[bold]Meta:[/bold]")
            for key, value in relation.meta.model_dump(mode="json").items():
                console.print(f"  {key}: {value}", style="dim")

    def print_collections(self, collections: list[CollectionOverview]) -> None:
        if self.json_mode:
            _dump([c.model_dump(mode="json") for c in collections])
            return

        table = Table(title="Collections", show_header=True, header_style="bold magenta")
        for col in ("Collection", "Primary Key", "Fields"):
            table.add_column(col)
        for overview in collections:
            fields = ", ".join(f"{f.field} ({f.db_type})" for f in overview.fields.values())
            table.add_row(overview.collection, overview.primary or "-", fields)
        console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        if self.json_mode:
            _dump({"success": True, "message": message, **(details or {})})
            return

        console.print(f"✓ {message}", style="green")
        for key, value in (details or {}).items():
            console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print an error; payload errors keep their exact message."""
        if self.json_mode:
            if isinstance(error, TetherDBError):
                _dump(error.to_dict())
            else:
                _dump({"error": type(error).__name__, "message": str(error), "context": {}})
            return

        body = str(error)
        if isinstance(error, TetherDBError) and error.context:
            body += "\n\n" + "\n".join(f"{k}: {v}" for k, v in error.context.items())
        title = ERROR_TITLES.get(type(error), "Error")
        console.print(Panel(body, title=f"[red]{title}[/red]", border_style="red"))
