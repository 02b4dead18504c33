"""
Tugrik CLI - inspect a document store.

Commands:
- tugrik collections → List collections with document counts
- tugrik count Person → Count documents in a collection
- tugrik find Person --where name=Ann → List matching OIDs
- tugrik show Person::abc → Print a stored document
- tugrik pointers Person::abc → Show pointer records owned by an OID

Works on raw documents, so no composite types need to be registered.
"""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from tugrik.core.config import Settings, setup_logging, settings
from tugrik.core.errors import TugrikError
from tugrik.core.identifiers import collection_of
from tugrik.core.types import LEDGER_COLLECTION, OID_FIELD
from tugrik.session import Session

app = typer.Typer(
    name="tugrik",
    help="Tugrik - inspect stored object graphs",
    no_args_is_help=True,
)
console = Console()

state: dict[str, Optional[str]] = {"database": None, "dsn": None, "log_level": None}


@app.callback()
def main(
    database: Optional[str] = typer.Option(None, "--database", "-d", help="Database name (TUGRIK_DATABASE)"),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Connection string (TUGRIK_DSN)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Select the database to inspect."""
    state["database"] = database
    state["dsn"] = dsn
    state["log_level"] = log_level


def get_session() -> Session:
    """Open a session from CLI options layered over the environment."""
    overrides = {k: v for k, v in state.items() if v}
    config = Settings(**{**settings.model_dump(), **overrides})
    # quiet by default; TUGRIK_LOG_FILE still applies
    setup_logging(state["log_level"] or "WARNING", config=config)
    try:
        return Session(config)
    except TugrikError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def parse_where(pairs: list[str]) -> dict:
    """Turn key=value options into an equality query; values are JSON when they parse."""
    query = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        try:
            query[key] = json.loads(raw)
        except json.JSONDecodeError:
            query[key] = raw
    return query


@app.command()
def collections():
    """List collections with document counts."""
    with get_session() as session:
        names = session.documents.list_collections()
        if not names:
            console.print("[dim]No collections found[/dim]")
            return

        table = Table(title=f"Collections in {session.config.database}")
        table.add_column("Collection", style="cyan")
        table.add_column("Documents", style="green", justify="right")
        for name in names:
            table.add_row(name, str(session.count(name)))
        console.print(table)


@app.command()
def count(
    collection: str = typer.Argument(..., help="Collection (type) name"),
):
    """Count documents in a collection."""
    with get_session() as session:
        console.print(session.count(collection))


@app.command()
def find(
    collection: str = typer.Argument(..., help="Collection (type) name"),
    where: list[str] = typer.Option([], "--where", "-w", help="Equality filter key=value (repeatable)"),
):
    """List OIDs of documents matching the filters."""
    query = parse_where(where)
    with get_session() as session:
        try:
            rows = session.find(collection, query)
        except TugrikError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        if not rows:
            console.print("[dim]No documents found[/dim]")
            return
        for row in rows:
            console.print(row.get(OID_FIELD, "-"))


@app.command()
def show(
    oid: str = typer.Argument(..., help="Object identifier, e.g. Person::1f0c..."),
):
    """Print the stored document for an OID."""
    with get_session() as session:
        try:
            document = session.find_one(collection_of(oid), {OID_FIELD: oid})
        except TugrikError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        if document is None:
            console.print(f"[red]Not found: {oid}[/red]")
            raise typer.Exit(code=1)
        console.print(Syntax(json.dumps(document, indent=2, ensure_ascii=False), "json"))


@app.command()
def pointers(
    oid: str = typer.Argument(..., help="Owner OID"),
):
    """Show pointer records owned by an OID."""
    with get_session() as session:
        records = session.pointers(oid)
        if not records:
            console.print(f"[dim]No pointers recorded in {LEDGER_COLLECTION} for {oid}[/dim]")
            return

        table = Table(title=f"Pointers from {oid}")
        table.add_column("Path", style="cyan")
        table.add_column("Owned", style="green")
        for record in sorted(records, key=lambda r: r.path):
            table.add_row(record.path, record.owned)
        console.print(table)


if __name__ == "__main__":
    app()
