from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional

import click

from . import __version__
from .config import SFConfig
from .env_loader import load_env_files
from .exceptions import MissingCredentialsError, SformError
from .logging_config import configure_logging
from .models import ModelDescriptor
from .orm import SalesforceORM

_logger = logging.getLogger(__name__)

# Load .env very early, so everything else sees env vars
load_env_files()

_CREDENTIALS_HELP = (
    "Set these environment variables (or create a .env file):\n"
    "  SF_USERNAME=...              # Salesforce login\n"
    "  SF_PASSWORD=...\n"
    "  SF_SECURITY_TOKEN=...        # optional when your IP is trusted\n"
    "  SF_LOGIN_URL=https://login.salesforce.com  # test.salesforce.com for sandboxes\n"
    "  SF_API_VERSION=60.0          # optional"
)


def _make_orm() -> SalesforceORM:
    try:
        return SalesforceORM.from_config(SFConfig.from_env())
    except MissingCredentialsError as e:
        needed = ", ".join(e.missing)
        raise click.ClickException(
            f"Missing Salesforce credentials: {needed}\n\n{_CREDENTIALS_HELP}"
        ) from e


def _split_fields(value: Optional[str]) -> List[str]:
    return [f.strip() for f in (value or "").split(",") if f.strip()]


def _dump(data: Any, pretty: bool) -> str:
    return json.dumps(data, indent=2 if pretty else None, default=str)


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
@click.version_option(__version__, "--version", prog_name="sform")
@click.option(
    "-v",
    "--verbose",
    "loglevel",
    flag_value=logging.INFO,
    default=None,
    help="Enable INFO logs.",
)
@click.option(
    "-vv",
    "--very-verbose",
    "loglevel",
    flag_value=logging.DEBUG,
    help="Enable DEBUG logs.",
)
@click.pass_context
def cli(ctx: click.Context, loglevel: Optional[int]) -> None:
    """sform CLI. Use subcommands like 'login', 'query' or 'search'."""
    configure_logging(loglevel)
    _logger.debug("CLI start, version=%s", __version__)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("login")
def cmd_login() -> None:
    """Open a SOAP session and show where it points."""
    orm = _make_orm()
    try:
        client = asyncio.run(orm.session.ensure_ready())
    except SformError as e:
        click.echo(f"❌  Login failed: {e}", err=True)
        raise click.Abort() from None

    click.echo("✅  Logged in to Salesforce.")
    click.echo(f"Server URL: {getattr(client, 'server_url', '?')}")
    click.echo(f"User Id: {getattr(client, 'user_id', '?')}")


@cli.command("query")
@click.argument("soql")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
def cmd_query(soql: str, pretty: bool) -> None:
    """Run a raw SOQL statement through queryAll."""
    orm = _make_orm()
    try:
        res = asyncio.run(orm.query(soql))
    except SformError as e:
        click.echo(f"Error: {e}", err=True)
        return
    if res.error is not None:
        click.echo(f"Error: {res.error}", err=True)
        return
    click.echo(_dump(res.result, pretty))


@cli.command("search")
@click.argument("model")
@click.option("--fields", "fields", required=True, help="Comma-separated model fields.")
@click.option("--where", "where", required=True, help="SOQL WHERE clause (not escaped).")
@click.option("--extra", "extra", default=None, help="Comma-separated extra fields to select.")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
def cmd_search(model: str, fields: str, where: str, extra: Optional[str], pretty: bool) -> None:
    """Search MODEL records matching --where and print them as JSON."""
    orm = _make_orm()
    orm.add_model(ModelDescriptor(model, tuple(_split_fields(fields))))
    try:
        records = asyncio.run(orm.search(model, where, _split_fields(extra)))
    except SformError as e:
        raise click.ClickException(str(e)) from e
    click.echo(_dump([r.to_dict() for r in records], pretty))


@cli.command("get")
@click.argument("model")
@click.argument("record_id")
@click.option("--fields", "fields", required=True, help="Comma-separated model fields.")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
def cmd_get(model: str, record_id: str, fields: str, pretty: bool) -> None:
    """Fetch one MODEL record by RECORD_ID."""
    orm = _make_orm()
    orm.add_model(ModelDescriptor(model, tuple(_split_fields(fields))))
    try:
        record = asyncio.run(orm.get(model, record_id))
    except SformError as e:
        raise click.ClickException(str(e)) from e
    click.echo(_dump(record.to_dict(), pretty))
