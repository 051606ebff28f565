"""Operations over the whole LDAP federation."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from ..config import ServerConfig
from ..exceptions import (
    AuthenticationFailedError,
    LDAPError,
    UserNotFoundError,
)
from ..models.ldap import ExternalUserInfo, ServerStatus
from ..storage.ldap import LDAPStorage
from .status import StatusAggregator

__all__ = ["FederationService"]


class FederationService:
    """Treat an ordered list of LDAP servers as one directory.

    The federation is priority-ordered, not merged: the first server in the
    configuration that knows a user is authoritative for that user, even if
    later servers also have an entry for the same login. Servers are queried
    one at a time and the search stops at the first match, so lower-priority
    servers are only queried when needed.

    A server that cannot be reached is skipped and the search continues with
    the next one. Errors from individual servers are therefore only logged,
    never raised.

    Parameters
    ----------
    connectors
        Storage layers for each LDAP server, in configuration order.
    logger
        Logger to use.
    """

    def __init__(
        self, *, connectors: list[LDAPStorage], logger: BoundLogger
    ) -> None:
        self._connectors = connectors
        self._logger = logger
        self._status = StatusAggregator(connectors, logger)

    @property
    def configs(self) -> list[ServerConfig]:
        """Configurations of the servers, in priority order."""
        return [c.config for c in self._connectors]

    async def authenticate(
        self, login: str, password: str
    ) -> ExternalUserInfo:
        """Authenticate a user against the federation.

        Parameters
        ----------
        login
            Login of the user.
        password
            Password of the user.

        Returns
        -------
        ExternalUserInfo
            Information about the user from the first server that accepted
            the credentials.

        Raises
        ------
        AuthenticationFailedError
            Raised if no server accepted the credentials.
        """
        logger = self._logger.bind(user=login)
        for connector in self._connectors:
            try:
                user = await connector.authenticate(login, password)
            except LDAPError as e:
                self._log_skipped(connector, e, logger)
                continue
            if user:
                self._log_found(connector, "User authenticated", logger)
                return user
        logger.info("Authentication failed on all LDAP servers")
        raise AuthenticationFailedError(f"Invalid credentials for {login}")

    async def find_user(
        self, login: str
    ) -> tuple[ExternalUserInfo, ServerConfig]:
        """Find a user in the federation.

        Parameters
        ----------
        login
            Login of the user.

        Returns
        -------
        tuple of ExternalUserInfo and ServerConfig
            The user and the configuration of the server that found it, which
            is needed to interpret the user's group mappings.

        Raises
        ------
        UserNotFoundError
            Raised if no reachable server has a user with that login.
        """
        logger = self._logger.bind(user=login)
        for connector in self._connectors:
            try:
                users = await connector.search([login])
            except LDAPError as e:
                self._log_skipped(connector, e, logger)
                continue
            if users:
                self._log_found(connector, "Found user", logger)
                return users[0], connector.config
        logger.info("User not found on any LDAP server")
        raise UserNotFoundError()

    async def find_users(self, logins: list[str]) -> list[ExternalUserInfo]:
        """Find several users in the federation.

        Every server is searched. If more than one server has a user with
        the same login, the entry from the first server wins.

        Parameters
        ----------
        logins
            Logins of the users.

        Returns
        -------
        list of ExternalUserInfo
            Users that were found. Unknown logins are omitted.
        """
        found: dict[str, ExternalUserInfo] = {}
        for connector in self._connectors:
            try:
                users = await connector.search(logins)
            except LDAPError as e:
                self._log_skipped(connector, e, self._logger)
                continue
            for user in users:
                found.setdefault(user.login, user)
        return list(found.values())

    async def ping(self) -> list[ServerStatus]:
        """Check the availability of every server.

        Returns
        -------
        list of ServerStatus
            One entry per configured server, in configuration order.
        """
        return await self._status.ping()

    def _log_found(
        self, connector: LDAPStorage, msg: str, logger: BoundLogger
    ) -> None:
        config = connector.config
        logger.debug(msg, ldap_host=config.host, ldap_port=config.port)

    def _log_skipped(
        self, connector: LDAPStorage, exc: LDAPError, logger: BoundLogger
    ) -> None:
        config = connector.config
        logger.warning(
            "Skipping unavailable LDAP server",
            error=str(exc),
            ldap_host=config.host,
            ldap_port=config.port,
        )
