"""Relation management commands."""

from typing import Annotated, Any

import typer

from tetherdb.cli.context import CLIContext
from tetherdb.cli.parsing import parse_meta
from tetherdb.core.types import OnDeleteActionType, Relation

app = typer.Typer(help="Manage relations between collections")

CollectionArg = Annotated[str, typer.Argument(help="Owning collection")]
FieldArg = Annotated[str, typer.Argument(help="Foreign key field")]
OnDeleteOption = Annotated[
    OnDeleteActionType | None,
    typer.Option(
        "--on-delete",
        case_sensitive=False,
        help="Action when the related row is deleted",
    ),
]
MetaOption = Annotated[
    str | None,
    typer.Option(
        "--meta",
        "-m",
        help='Meta attributes as JSON (e.g. \'{"one_field": "articles"}\') or @file.json',
    ),
]


def _payload(on_delete: OnDeleteActionType | None, meta: str | None) -> dict[str, Any]:
    return {
        "schema": {"on_delete": on_delete} if on_delete else None,
        "meta": parse_meta(meta),
    }


def _summary(relation: Relation) -> dict[str, Any]:
    schema = relation.schema_
    return {
        "collection": relation.collection,
        "field": relation.field,
        "related_collection": relation.related_collection,
        "constraint_name": schema.constraint_name if schema else None,
        "on_delete": schema.on_delete if schema else None,
        "meta_id": relation.meta.id if relation.meta else None,
    }


@app.command("list")
def relations_list(
    ctx: typer.Context,
    collection: Annotated[
        str | None, typer.Argument(help="Only relations owned by this collection")
    ] = None,
) -> None:
    """List relations, merged from metadata and foreign keys."""
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        relations = db.list_relations(collection)
        title = f"Relations of {collection}" if collection else "Relations"
        cli_ctx.formatter.print_relations(f"{title} ({len(relations)} total)", relations)


@app.command("get")
def relations_get(ctx: typer.Context, collection: CollectionArg, field: FieldArg) -> None:
    """Show one relation."""
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        cli_ctx.formatter.print_relation(db.get_relation(collection, field))


@app.command("create")
def relations_create(
    ctx: typer.Context,
    collection: CollectionArg,
    field: FieldArg,
    related: Annotated[
        str | None,
        typer.Option("--related", "-r", help="Related collection (adds a foreign key)"),
    ] = None,
    on_delete: OnDeleteOption = None,
    meta: MetaOption = None,
) -> None:
    """Create a relation.

    Examples:

        # Many-to-one with a foreign key
        tetherdb relations create articles author_id --related authors --on-delete SET_NULL

        # With a reverse field on the related collection
        tetherdb relations create articles author_id -r authors -m '{"one_field": "articles"}'
    """
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        payload = {"collection": collection, "field": field, "related_collection": related}
        relation = db.create_relation({**payload, **_payload(on_delete, meta)})
        cli_ctx.formatter.print_success(
            f"Created relation {collection}.{field}", _summary(relation)
        )


@app.command("update")
def relations_update(
    ctx: typer.Context,
    collection: CollectionArg,
    field: FieldArg,
    on_delete: OnDeleteOption = None,
    meta: MetaOption = None,
) -> None:
    """Update meta attributes or the ON DELETE action of a relation."""
    cli_ctx: CLIContext = ctx.obj
    with cli_ctx.session() as db:
        relation = db.update_relation(collection, field, _payload(on_delete, meta))
        cli_ctx.formatter.print_success(
            f"Updated relation {collection}.{field}", _summary(relation)
        )


@app.command("delete")
def relations_delete(
    ctx: typer.Context,
    collection: CollectionArg,
    field: FieldArg,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Delete a relation and its foreign key."""
    cli_ctx: CLIContext = ctx.obj
    if not force and not cli_ctx.json_output:
        typer.confirm(f"Delete relation {collection}.{field}?", abort=True)

    with cli_ctx.session() as db:
        db.delete_relation(collection, field)
        cli_ctx.formatter.print_success(f"Deleted relation {collection}.{field}")
