"""RepairDesk CLI.

Commands:
- init: Initialize database schema
- create-org: Register a tenant
- list-orgs: Show tenants
- trash: List soft-deleted rows of one entity for a tenant
- restore: Restore one soft-deleted row
- wipe-tenant: Hard-delete every row owned by a tenant
- serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from repairdesk.config import get_config
from repairdesk.db.connection import close_db, get_session, init_db
from repairdesk.exceptions import TenantWipeError
from repairdesk.models import OrganizationCreate
from repairdesk.storage.organizations import (
    create_organization,
    get_organization_by_slug,
    list_organizations,
)
from repairdesk.storage.tenant import ENTITIES, TenantStorage
from repairdesk.storage.wipe import delete_all_data_for_tenant

app = typer.Typer(
    name="repairdesk",
    help="RepairDesk - multi-tenant repair shop lifecycle tooling",
    no_args_is_help=True,
)

console = Console()


def _run(coro):
    """Run a coroutine and release the engine bound to its event loop."""

    async def _wrapped():
        try:
            return await coro
        finally:
            await close_db()

    return asyncio.run(_wrapped())


def _entity_name(entity: str) -> str:
    name = ENTITIES.get(entity)
    if name is None:
        console.print(
            f"[red]Unknown entity {entity!r}.[/red] Choose from: {', '.join(ENTITIES)}"
        )
        raise typer.Exit(1)
    return name


async def _require_org(session, slug: str):
    org = await get_organization_by_slug(session, slug)
    if org is None:
        console.print(f"[red]Organization {slug!r} not found[/red]")
        raise typer.Exit(1)
    return org


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    _run(init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="create-org")
def create_org(
    name: str = typer.Argument(..., help="Organization display name"),
    slug: str | None = typer.Option(None, "--slug", help="URL slug (derived from name if omitted)"),
):
    """Register a new organization (tenant)."""

    async def _create():
        async with get_session() as session:
            return await create_organization(session, OrganizationCreate(name=name, slug=slug))

    org = _run(_create())
    console.print(f"[bold green]✓[/bold green] Created organization {org.name} (id={org.id}, slug={org.slug})")


@app.command(name="list-orgs")
def list_orgs():
    """List organizations."""

    async def _list():
        async with get_session() as session:
            return await list_organizations(session)

    orgs = _run(_list())
    if not orgs:
        console.print("[yellow]No organizations yet[/yellow]")
        return

    table = Table(title="Organizations")
    table.add_column("ID", justify="right")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Created")
    for org in orgs:
        table.add_row(str(org.id), org.slug, org.name, str(org.created_at))
    console.print(table)


@app.command()
def trash(
    org_slug: str = typer.Argument(..., help="Organization slug"),
    entity: str = typer.Argument(..., help=f"One of: {', '.join(ENTITIES)}"),
):
    """List soft-deleted rows for a tenant."""
    name = _entity_name(entity)

    async def _trash():
        async with get_session() as session:
            org = await _require_org(session, org_slug)
            storage = TenantStorage(session, org.id)
            return await getattr(storage, f"get_deleted_{name}s")()

    rows = _run(_trash())
    if not rows:
        console.print(f"[green]Trash is empty for {entity}[/green]")
        return

    table = Table(title=f"Deleted {entity} ({org_slug})")
    table.add_column("ID", justify="right")
    table.add_column("Deleted at")
    for row in rows:
        table.add_row(str(row.id), str(row.deleted_at))
    console.print(table)


@app.command()
def restore(
    org_slug: str = typer.Argument(..., help="Organization slug"),
    entity: str = typer.Argument(..., help=f"One of: {', '.join(ENTITIES)}"),
    entity_id: int = typer.Argument(..., help="Row id"),
):
    """Restore one soft-deleted row. Dependents stay in the trash."""
    name = _entity_name(entity)

    async def _restore():
        async with get_session() as session:
            org = await _require_org(session, org_slug)
            storage = TenantStorage(session, org.id)
            return await getattr(storage, f"restore_{name}")(entity_id)

    row = _run(_restore())
    if row is None:
        console.print(f"[red]No deleted {name} with id {entity_id} in {org_slug}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Restored {name} {entity_id}")


@app.command(name="wipe-tenant")
def wipe_tenant(
    org_slug: str = typer.Argument(..., help="Organization slug"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
):
    """Permanently delete every row owned by a tenant. Cannot be undone."""
    if not yes:
        typer.confirm(
            f"This permanently deletes ALL data for {org_slug}. Continue?",
            abort=True,
        )

    async def _wipe():
        async with get_session() as session:
            org = await _require_org(session, org_slug)
            org_id = org.id
        return await delete_all_data_for_tenant(org_id)

    try:
        summary = _run(_wipe())
    except TenantWipeError as e:
        console.print(f"[bold red]✗ Wipe failed:[/bold red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Wiped {org_slug}")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in summary.deleted.items():
        table.add_row(name, str(count))
    console.print(table)
    console.print(f"[bold green]✓[/bold green] Removed {summary.total} rows")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the HTTP API."""
    import uvicorn

    typer.echo(f"Starting RepairDesk API on http://{host}:{port}")
    uvicorn.run("repairdesk.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
