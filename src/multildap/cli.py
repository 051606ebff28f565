"""Administrative command-line interface."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import structlog
import uvicorn
from pydantic import TypeAdapter
from safir.asyncio import run_with_asyncio
from safir.click import display_help
from safir.slack.blockkit import SlackMessage

from .dependencies.config import config_dependency
from .exceptions import APIError
from .factory import Factory
from .main import create_openapi
from .models.ldap import ServerStatus

__all__ = [
    "help",
    "lookup",
    "main",
    "openapi_schema",
    "run",
    "status",
]

_config_path_option = click.option(
    "--config-path",
    envvar="MULTILDAP_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Administrative command-line interface for multildap."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.argument("username")
@_config_path_option
@run_with_asyncio
async def lookup(*, username: str, config_path: Path | None) -> None:
    """Show how the LDAP servers resolve a user."""
    if config_path:
        config_dependency.set_config_path(config_path)
    config = await config_dependency()
    async with Factory.standalone(config) as factory:
        identity_service = factory.create_identity_service()
        try:
            user = await identity_service.get_user(username)
        except APIError as e:
            raise click.ClickException(str(e)) from e
    sys.stdout.write(user.model_dump_json(by_alias=True, indent=2) + "\n")


@main.command()
@click.option(
    "--output",
    default=None,
    type=click.Path(path_type=Path),
    help="Output path (output to stdout if not given).",
)
def openapi_schema(*, output: Path | None) -> None:
    """Generate the OpenAPI schema."""
    schema = create_openapi()
    if output:
        output.parent.mkdir(exist_ok=True)
        output.write_text(schema)
    else:
        sys.stdout.write(schema)


@main.command()
@click.option(
    "--port", default=8080, type=int, help="Port to run the application on."
)
def run(*, port: int) -> None:
    """Run the application (for testing only)."""
    uvicorn.run(
        "multildap.main:create_app",
        factory=True,
        port=port,
        reload=True,
        reload_dirs=["src"],
    )


@main.command()
@click.option(
    "--alert",
    default=False,
    is_flag=True,
    help="Report unavailable servers to Slack",
)
@_config_path_option
@run_with_asyncio
async def status(*, alert: bool, config_path: Path | None) -> None:
    """Check the availability of each LDAP server."""
    if config_path:
        config_dependency.set_config_path(config_path)
    config = await config_dependency()
    logger = structlog.get_logger(config.name)
    async with Factory.standalone(config) as factory:
        slack = factory.create_slack_client() if alert else None
        if alert and not slack:
            msg = "Slack alerting requested but not configured"
            raise click.UsageError(msg)
        federation = factory.create_federation_service()
        statuses = await federation.ping()
        unavailable = [
            f"{s.host}:{s.port}: {s.error}"
            for s in statuses
            if not s.available
        ]
        if slack and unavailable:
            message = "Unavailable LDAP servers found:\n• " + "\n• ".join(
                unavailable
            )
            await slack.post(SlackMessage(message=message))
            logger.debug("Reported unavailable servers to Slack")
    adapter = TypeAdapter(list[ServerStatus])
    sys.stdout.write(adapter.dump_json(statuses, indent=2).decode() + "\n")
