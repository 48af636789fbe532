"""Flask CLI commands for tenant administration and token inspection."""

from __future__ import annotations

import logging
import secrets

import click
from flask.cli import with_appcontext

from authsvc.api.deps import get_auth_service
from authsvc.models.app import APP_CODE_RE, App
from authsvc.services._shared.durations import InvalidDuration, duration_seconds
from authsvc.uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)


def _validate_code(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if not APP_CODE_RE.match(value):
        raise click.BadParameter("must match ^[a-z0-9-]+$")
    return value


def _validate_lifetime(ctx: click.Context, param: click.Parameter, value: str) -> str:
    try:
        duration_seconds(value)
    except InvalidDuration as exc:
        raise click.BadParameter(str(exc)) from exc
    return value


@click.group("apps")
def apps_cli() -> None:
    """Manage tenant apps."""


@apps_cli.command("create")
@click.option("--code", required=True, callback=_validate_code, help="Public app code.")
@click.option("--name", required=True, help="Display name.")
@click.option(
    "--access-lifetime", default="30m", show_default=True, callback=_validate_lifetime
)
@click.option(
    "--refresh-lifetime", default="14d", show_default=True, callback=_validate_lifetime
)
@with_appcontext
def create_app_command(
    code: str, name: str, access_lifetime: str, refresh_lifetime: str
) -> None:
    """Register a tenant app with a freshly generated signing secret."""
    with SQLAlchemyUnitOfWork() as uow:
        if uow.apps.exists_by_code(code):
            raise click.UsageError(f"App code already exists: {code}")
        app = uow.apps.add(
            App(
                code=code,
                name=name,
                jwt_secret=secrets.token_urlsafe(48),
                access_token_lifetime=access_lifetime,
                refresh_token_lifetime=refresh_lifetime,
            )
        )
        app_id = app.id
    LOGGER.info("App created", extra={"app_id": app_id, "app_code": code})
    click.echo(f"Created app {code} (id={app_id})")


@apps_cli.command("list")
@click.option("--active-only", is_flag=True, help="Hide deactivated apps.")
@with_appcontext
def list_apps_command(active_only: bool) -> None:
    """List registered apps."""
    filters = {"is_active": True} if active_only else None
    with SQLAlchemyUnitOfWork() as uow:
        rows = [
            (a.id, a.code, a.name, a.access_token_lifetime, a.refresh_token_lifetime, a.is_active)
            for a in uow.apps.list(filters=filters, sort=["code"])
        ]
    if not rows:
        click.echo("(no apps)")
        return
    for app_id, code, name, access, refresh, active in rows:
        state = "active" if active else "inactive"
        click.echo(
            f"{app_id:>4}  {code:<24} access={access:<5} refresh={refresh:<5} {state}  {name}"
        )


@apps_cli.command("family")
@click.argument("token_family")
@with_appcontext
def family_command(token_family: str) -> None:
    """Print every refresh token of a family, oldest first."""
    records = get_auth_service().engine.store.list_family(token_family)
    if not records:
        click.echo("(no tokens)")
        return
    for rec in records:
        reason = rec.revoked_reason.value if rec.revoked_reason else "-"
        state = "revoked" if rec.revoked else "active"
        click.echo(
            f"{rec.jti}  user={rec.user_id}  created={rec.created_at.isoformat()}  "
            f"expires={rec.expires_at.isoformat()}  {state}  reason={reason}"
        )
