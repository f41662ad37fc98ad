# -*- coding: utf-8 -*-
"""Location: ./wpgateway/admin_cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

wpgateway-admin - operator commands for the gateway database.

This module is exposed as a console-script via:

    [project.scripts]
    wpgateway-admin = "wpgateway.admin_cli:main"

Commands:
    - init-db: create tables and seed plans
    - create-tenant: register a tenant
    - create-connection: onboard a WordPress site and print its first api key
    - list-keys / revoke-key: api key management
    - set-tenant-status: suspend, reactivate or delete a tenant
    - usage: monthly usage of a tenant
    - rotate-root-key: re-encrypt every stored secret under a new root key
    - cleanup-logs: delete usage logs past retention

Cache invalidation from this CLI reaches running gateways only when they share
a Redis cache; with the in-memory backend, cached snapshots expire by TTL.
"""

# Standard
import asyncio
import sys
from typing import Any, Awaitable, Optional

# Third-Party
from redis.exceptions import RedisError
from rich.console import Console
from rich.table import Table
import typer
from typing_extensions import Annotated

# First-Party
from wpgateway import __version__
from wpgateway.cache import build_cache
from wpgateway.config import settings
from wpgateway.db import init_db, SessionLocal
from wpgateway.services.api_key_service import ApiKeyError, ApiKeyService
from wpgateway.services.auth_service import AuthResolver
from wpgateway.services.connection_service import ConnectionCreate, ConnectionService, ConnectionServiceError
from wpgateway.services.encryption_service import DecryptionError, EncryptionService, get_encryption_service
from wpgateway.services.quota_service import QuotaEnforcer
from wpgateway.services.rate_limiter import RateLimiter
from wpgateway.services.store import GatewayStore
from wpgateway.services.tenant_service import TenantError, TenantService
from wpgateway.services.usage_service import cleanup_old_logs, get_usage_stats

app = typer.Typer(help="Administration commands for the WordPress MCP gateway")
console = Console()


class AdminContext:
    """Services used by the admin commands, built on first use."""

    def __init__(self, vault: Optional[EncryptionService] = None):
        self.cache = build_cache(settings)
        self.store = GatewayStore(SessionLocal)
        self.vault = vault or get_encryption_service()
        self.resolver = AuthResolver(self.store, self.cache, self.vault, QuotaEnforcer(self.store), RateLimiter(self.cache))
        self.api_keys = ApiKeyService(self.cache)
        self.tenants = TenantService(resolver=self.resolver)
        self.connections = ConnectionService(self.vault, self.api_keys, resolver=self.resolver)


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")
    raise typer.Exit(1)


async def _close_after(ctx: AdminContext, operation: Awaitable[Any]) -> Any:
    try:
        return await operation
    finally:
        await ctx.cache.close()


def _run(ctx: AdminContext, operation: Awaitable[Any]) -> Any:
    """Run an async service call and release the cache in the same event loop.

    Args:
        ctx: Admin services.
        operation: Awaitable to run.

    Returns:
        Any: The result of ``operation``.
    """
    try:
        return asyncio.run(_close_after(ctx, operation))
    except RedisError as e:
        _fail(f"Saved, but cached credentials could not be invalidated: {e}")


def _tenant_id(ctx: AdminContext, email: str) -> str:
    with SessionLocal() as db:
        user = ctx.tenants.get_by_email(db, email)
    if user is None:
        _fail(f"No tenant with email {email}")
    return user.id


@app.command("version")
def version() -> None:
    """Print the gateway version."""
    console.print(f"wpgateway {__version__}")


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables and seed the plan catalogue."""
    init_db()
    console.print("[green]✓ Database initialized[/green]")


@app.command("create-tenant")
def create_tenant(
    email: Annotated[str, typer.Argument(help="Tenant login email")],
    plan: Annotated[str, typer.Option("--plan", help="Plan id")] = "free",
    name: Annotated[Optional[str], typer.Option("--name", help="Display name")] = None,
    password: Annotated[Optional[str], typer.Option("--password", help="Optional password")] = None,
) -> None:
    """Register a tenant.

    Args:
        email: Tenant login email.
        plan: Plan id.
        name: Display name.
        password: Optional password.
    """
    try:
        with SessionLocal() as db:
            user = TenantService().register(db, email, password=password, name=name, plan=plan)
    except TenantError as e:
        _fail(str(e))
    console.print(f"[green]✓ Tenant {user.email} created[/green] (id {user.id}, plan {user.plan})")


@app.command("create-connection")
def create_connection(
    email: Annotated[str, typer.Argument(help="Owning tenant email")],
    name: Annotated[str, typer.Argument(help="Connection name")],
    site_url: Annotated[str, typer.Argument(help="WordPress site URL")],
    username: Annotated[str, typer.Argument(help="WordPress username")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, help="Application password")],
    environment: Annotated[str, typer.Option("--env", help="Key environment: live or test")] = "live",
) -> None:
    """Onboard a WordPress site and print its first api key.

    Args:
        email: Owning tenant email.
        name: Connection name.
        site_url: WordPress site URL.
        username: WordPress username.
        password: Application password.
        environment: Key environment.
    """
    if environment not in ("live", "test"):
        _fail("--env must be live or test")
    ctx = AdminContext()
    user_id = _tenant_id(ctx, email)
    try:
        data = ConnectionCreate(name=name, site_url=site_url, username=username, password=password)
        with SessionLocal() as db:
            connection, record, plaintext = ctx.connections.create_connection(db, user_id, data, environment=environment)  # type: ignore[arg-type]
    except (ConnectionServiceError, ValueError) as e:
        _fail(str(e))
    console.print(f"[green]✓ Connection {connection.name} created[/green] (id {connection.id})")
    console.print(f"API key (shown once): [bold]{plaintext}[/bold]")
    console.print(f"Key prefix: {record.key_prefix}")


@app.command("list-keys")
def list_keys(email: Annotated[str, typer.Argument(help="Tenant email")]) -> None:
    """List a tenant's api keys.

    Args:
        email: Tenant email.
    """
    ctx = AdminContext()
    user_id = _tenant_id(ctx, email)
    with SessionLocal() as db:
        keys = ctx.api_keys.list_api_keys(db, user_id)
    table = Table(title=f"API keys of {email}")
    for column in ("id", "prefix", "name", "active", "expires", "last used"):
        table.add_column(column)
    for key in keys:
        table.add_row(key.id, key.key_prefix, key.name, "yes" if key.is_active else "no", str(key.expires_at or "-"), str(key.last_used_at or "-"))
    console.print(table)


@app.command("revoke-key")
def revoke_key(key_id: Annotated[str, typer.Argument(help="API key id")]) -> None:
    """Revoke an api key. Revoking twice is harmless.

    Args:
        key_id: Key id.
    """
    ctx = AdminContext()
    try:
        with SessionLocal() as db:
            changed = _run(ctx, ctx.api_keys.revoke_api_key(db, key_id))
    except ApiKeyError as e:
        _fail(str(e))
    console.print("[green]✓ Key revoked[/green]" if changed else "[yellow]Key was already revoked[/yellow]")


@app.command("set-tenant-status")
def set_tenant_status(
    email: Annotated[str, typer.Argument(help="Tenant email")],
    status: Annotated[str, typer.Argument(help="active, suspended or deleted")],
) -> None:
    """Change a tenant's status.

    Args:
        email: Tenant email.
        status: New status.
    """
    ctx = AdminContext()
    user_id = _tenant_id(ctx, email)
    try:
        with SessionLocal() as db:
            _run(ctx, ctx.tenants.set_status(db, user_id, status))
    except TenantError as e:
        _fail(str(e))
    console.print(f"[green]✓ Tenant {email} is now {status}[/green]")


@app.command("usage")
def usage(email: Annotated[str, typer.Argument(help="Tenant email")]) -> None:
    """Show a tenant's usage for the current month.

    Args:
        email: Tenant email.
    """
    ctx = AdminContext()
    with SessionLocal() as db:
        user = ctx.tenants.get_by_email(db, email)
        if user is None:
            _fail(f"No tenant with email {email}")
        limits = ctx.resolver.quota.plan_limits(user.plan)
        stats = get_usage_stats(db, user.id, limits.monthly_limit)
    table = Table(title=f"Usage of {email} ({stats['period']})")
    table.add_column("metric")
    table.add_column("value", justify="right")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("rotate-root-key")
def rotate_root_key(
    new_key: Annotated[str, typer.Option("--new-key", prompt=True, hide_input=True, confirmation_prompt=True, help="New root key")],
) -> None:
    """Re-encrypt every stored connection secret under a new root key.

    Set ENCRYPTION_KEY to the new key before restarting the gateway.

    Args:
        new_key: The new root key.
    """
    if len(new_key) < 16:
        _fail("The new root key must be at least 16 characters")
    ctx = AdminContext()
    target = get_encryption_service(new_key)
    try:
        with SessionLocal() as db:
            count = _run(ctx, ctx.connections.rotate_root_key(db, target))
    except DecryptionError:
        _fail("A stored secret did not decrypt under the current root key; nothing was changed")
    console.print(f"[green]✓ Re-encrypted {count} connection(s)[/green]")
    console.print("[yellow]⚠ Set ENCRYPTION_KEY to the new key and restart every gateway instance.[/yellow]")


@app.command("cleanup-logs")
def cleanup_logs(days: Annotated[Optional[int], typer.Option("--days", help="Retention in days")] = None) -> None:
    """Delete usage logs older than the retention period.

    Args:
        days: Retention in days. Defaults to USAGE_RETENTION_DAYS.
    """
    with SessionLocal() as db:
        deleted = cleanup_old_logs(db, days)
    console.print(f"[green]✓ Deleted {deleted} log row(s)[/green]")


def main() -> None:  # noqa: D401
    """Entry point for the *wpgateway-admin* console script."""
    app()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
