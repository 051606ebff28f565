"""Create multildap components."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from bonsai.asyncio import AIOConnectionPool
from httpx import AsyncClient
from safir.dependencies.http_client import http_client_dependency
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .config import Config
from .services.federation import FederationService
from .services.identity import IdentityService
from .services.roles import RoleResolver
from .services.teams import TeamResolver
from .storage.ldap import LDAPStorage, create_ldap_client
from .storage.organization import (
    HTTPOrganizationStore,
    OrganizationStore,
    StaticOrganizationStore,
)
from .storage.team import HTTPTeamStore, StaticTeamStore, TeamStore

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process application context.

    This object caches all of the per-process singletons that can be reused
    for every request and only need to be recreated if the application
    configuration changes.
    """

    config: Config
    """multildap's configuration."""

    http_client: AsyncClient
    """Shared HTTP client."""

    ldap_pools: list[list[AIOConnectionPool]]
    """Connection pools for each LDAP server, one per host of the server."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the multildap configuration.

        Parameters
        ----------
        config
            The multildap configuration.

        Returns
        -------
        ProcessContext
            Shared context for a multildap process.
        """
        ldap_pools = [
            [
                AIOConnectionPool(create_ldap_client(server, host))
                for host in server.hosts
            ]
            for server in config.servers
        ]
        return cls(
            config=config,
            http_client=await http_client_dependency(),
            ldap_pools=ldap_pools,
        )

    async def aclose(self) -> None:
        """Clean up a process context.

        Called during shutdown, or before recreating the process context using
        a different configuration.
        """
        for pools in self.ldap_pools:
            for pool in pools:
                await pool.close()


class Factory:
    """Build multildap components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for errors.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for multildap components.

        Intended for command-line use. Do not use this factory inside the web
        application, since it closes the shared HTTP client on exit.

        Parameters
        ----------
        config
            multildap configuration.

        Yields
        ------
        Factory
            The factory. Must be used as an async context manager.

        Examples
        --------
        .. code-block:: python

           async with Factory.standalone(config) as factory:
               federation = factory.create_federation_service()
               statuses = await federation.ping()
        """
        logger = structlog.get_logger(config.name)
        context = await ProcessContext.from_config(config)
        factory = cls(context, logger)
        try:
            async with aclosing(factory):
                yield factory
        finally:
            await http_client_dependency.aclose()

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._context.aclose()

    def create_federation_service(self) -> FederationService:
        """Create the service for the federation of LDAP servers.

        Returns
        -------
        FederationService
            Service covering every configured LDAP server, in configuration
            order.
        """
        connectors = [
            LDAPStorage(server, pools, self._logger)
            for server, pools in zip(
                self._context.config.servers,
                self._context.ldap_pools,
                strict=True,
            )
        ]
        return FederationService(connectors=connectors, logger=self._logger)

    def create_identity_service(self) -> IdentityService:
        """Create the service that resolves the full identity of a user.

        Returns
        -------
        IdentityService
            Newly-created identity service.
        """
        organizations = self.create_organization_store()
        return IdentityService(
            federation=self.create_federation_service(),
            role_resolver=RoleResolver(organizations, self._logger),
            team_resolver=self.create_team_resolver(),
            logger=self._logger,
        )

    def create_organization_store(self) -> OrganizationStore:
        """Create the source of organization names.

        Returns
        -------
        OrganizationStore
            A store that queries the organization API if one is configured,
            and otherwise one that uses the configured names.
        """
        config = self._context.config.organizations
        if config.url:
            return HTTPOrganizationStore(
                url=str(config.url),
                http_client=self._context.http_client,
                logger=self._logger,
            )
        return StaticOrganizationStore(config.names)

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a client for sending messages to Slack.

        Returns
        -------
        safir.slack.webhook.SlackWebhookClient or None
            Configured Slack client if a Slack webhook was configured,
            otherwise `None`.
        """
        config = self._context.config
        if not config.slack_webhook:
            return None
        return SlackWebhookClient(
            config.slack_webhook, config.name, self._logger
        )

    def create_team_resolver(self) -> TeamResolver | None:
        """Create the resolver for team memberships.

        Returns
        -------
        TeamResolver or None
            Newly-created resolver, or `None` if team synchronization is not
            enabled.
        """
        config = self._context.config.teams
        if not config:
            return None
        store: TeamStore
        if config.url:
            store = HTTPTeamStore(
                url=str(config.url),
                http_client=self._context.http_client,
                logger=self._logger,
            )
        else:
            store = StaticTeamStore(config.mappings)
        return TeamResolver(store, self._logger)

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
