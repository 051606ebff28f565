"""LDAP storage layer for multildap."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import bonsai
from bonsai import LDAPClient, LDAPSearchScope
from bonsai.asyncio import AIOConnectionPool, AIOLDAPConnection
from bonsai.utils import escape_filter_exp
from structlog.stdlib import BoundLogger

from ..config import ServerConfig
from ..constants import WILDCARD_GROUP_DN
from ..exceptions import LDAPError
from ..models.ldap import ExternalUserInfo

T = TypeVar("T")
"""Result type of an operation run against an LDAP connection."""

_Entry = dict[str, Any]
"""Type of a single LDAP search result."""

_UNREACHABLE_ERRORS = (
    bonsai.ConnectionError,
    bonsai.TimeoutError,
    TimeoutError,
)
"""Errors after which the next host of a server is tried."""

__all__ = ["LDAPStorage", "create_ldap_client"]


def create_ldap_client(
    config: ServerConfig,
    host: str,
    *,
    user: str | None = None,
    password: str | None = None,
) -> LDAPClient:
    """Create a bonsai client for one host of an LDAP server.

    Parameters
    ----------
    config
        Configuration of the LDAP server.
    host
        One of the hosts of that server.
    user
        DN to bind as. If not given, use the configured bind DN, or an
        anonymous bind if there is none.
    password
        Password for ``user``.

    Returns
    -------
    bonsai.LDAPClient
        Client configured for TLS and authentication.
    """
    client = LDAPClient(config.url_for_host(host), tls=config.start_tls)
    if config.skip_verify_ssl:
        client.set_cert_policy("never")
    if config.root_ca_cert:
        client.set_ca_cert(str(config.root_ca_cert))
    if not user and config.bind_dn and "%s" not in config.bind_dn:
        user = config.bind_dn
        if config.bind_password:
            password = config.bind_password.get_secret_value()
    if user:
        client.set_credentials("SIMPLE", user=user, password=password)
    return client


class LDAPStorage:
    """LDAP storage layer for one server of the federation.

    Parameters
    ----------
    config
        Configuration for this LDAP server.
    pools
        Connection pools for searches, one per configured host of the server
        and in the same order.
    logger
        Logger for debug messages and errors.
    """

    def __init__(
        self,
        config: ServerConfig,
        pools: list[AIOConnectionPool],
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._pools = pools
        self._logger = logger.bind(
            ldap_host=config.host, ldap_port=config.port
        )

    @property
    def config(self) -> ServerConfig:
        """Configuration of this LDAP server."""
        return self._config

    async def authenticate(
        self, login: str, password: str
    ) -> ExternalUserInfo | None:
        """Check a password for a user of this LDAP server.

        Parameters
        ----------
        login
            Login of the user.
        password
            Password to check.

        Returns
        -------
        ExternalUserInfo or None
            The user if the password was correct, or `None` if the user does
            not exist in this server, the password was wrong, or the user
            matched none of the configured group mappings.

        Raises
        ------
        LDAPError
            Raised if the server could not be reached or the search failed.
        """
        logger = self._logger.bind(user=login)

        # An empty password would turn the bind into an anonymous bind, which
        # would succeed.
        if not password:
            logger.debug("Rejecting empty password")
            return None

        if self._config.bind_dn and "%s" in self._config.bind_dn:
            dn = self._config.bind_dn.replace("%s", login)
            conn = await self._bind(dn, password, logger)
            if not conn:
                return None
            try:
                users = await self._with_timeout(
                    self._search(conn, [login], logger)
                )
            except (bonsai.TimeoutError, TimeoutError) as e:
                raise LDAPError(self._describe_error(e), login) from e
            except bonsai.LDAPError as e:
                logger.exception("Cannot query LDAP", error=str(e))
                raise LDAPError(f"Error querying LDAP: {e}", login) from e
            finally:
                conn.close()
            user = users[0] if users else None
        else:
            users = await self.search([login])
            if not users:
                logger.debug("User not found")
                return None
            user = users[0]
            conn = await self._bind(user.auth_id, password, logger)
            if not conn:
                return None
            conn.close()

        if user and user.is_disabled:
            logger.info("User matched no group mappings, denying login")
            return None
        return user

    async def ping(self) -> None:
        """Check that the server is responding.

        Raises
        ------
        LDAPError
            Raised if no host of the server responded in time.
        """
        await self._run(lambda conn: conn.whoami(), self._logger)

    async def search(self, logins: list[str]) -> list[ExternalUserInfo]:
        """Search for users by login.

        Parameters
        ----------
        logins
            Logins to search for.

        Returns
        -------
        list of ExternalUserInfo
            Users found, in the order returned by the server. Logins that
            were not found are silently omitted.

        Raises
        ------
        LDAPError
            Raised if the server could not be reached or the search failed.
        """
        if not logins:
            return []
        logger = self._logger.bind(users=logins)
        return await self._run(
            lambda conn: self._search(conn, logins, logger), logger
        )

    async def _bind(
        self, dn: str, password: str, logger: BoundLogger
    ) -> AIOLDAPConnection | None:
        """Open a connection bound as a user.

        Returns
        -------
        bonsai.asyncio.AIOLDAPConnection or None
            Connection, which the caller must close, or `None` if the
            credentials were rejected.

        Raises
        ------
        LDAPError
            Raised if no host of the server could be reached.
        """
        errors = []
        for host in self._config.hosts:
            client = create_ldap_client(
                self._config, host, user=dn, password=password
            )
            try:
                return await self._with_timeout(
                    client.connect(is_async=True)
                )
            except bonsai.AuthenticationError:
                logger.debug("Invalid credentials", ldap_dn=dn)
                return None
            except _UNREACHABLE_ERRORS as e:
                error = self._describe_error(e)
                logger.debug("Cannot bind to LDAP host", error=error)
                errors.append(f"{host}: {error}")
            except bonsai.LDAPError as e:
                logger.exception("Cannot bind to LDAP", error=str(e))
                raise LDAPError(f"Error binding to LDAP: {e}", dn) from e
        raise LDAPError("Cannot connect to LDAP: " + "; ".join(errors), dn)

    def _build_user(
        self, entry: _Entry, groups: list[str], logger: BoundLogger
    ) -> ExternalUserInfo | None:
        """Convert a user entry into user information.

        Group mappings are applied in configuration order. The first mapping
        that matches for a given organization determines the role in that
        organization.
        """
        attributes = self._config.attributes
        login = self._get_attribute(entry, attributes.username)
        if not login:
            msg = "LDAP user entry has no username, ignoring"
            logger.warning(msg, ldap_dn=str(entry.get("dn", "")))
            return None
        given_name = self._get_attribute(entry, attributes.name)
        surname = self._get_attribute(entry, attributes.surname)
        user = ExternalUserInfo(
            login=login,
            name=f"{given_name} {surname}".strip(),
            email=self._get_attribute(entry, attributes.email),
            auth_id=str(entry.get("dn", "")),
            groups=groups,
        )

        for mapping in self._config.groups:
            if mapping.org_id in user.org_roles:
                continue
            if not self._is_member_of(groups, mapping.group_dn):
                continue
            user.org_roles[mapping.org_id] = mapping.org_role
            if not user.is_grafana_admin:
                if mapping.grafana_admin is not None:
                    user.is_grafana_admin = mapping.grafana_admin

        if self._config.groups and not user.org_roles:
            logger.debug("User matched no group mappings", ldap_user=login)
            user.is_disabled = True
        return user

    def _describe_error(self, exc: Exception) -> str:
        if isinstance(exc, (bonsai.TimeoutError, TimeoutError)):
            timeout = self._config.timeout
            return f"LDAP server did not respond within {timeout}s"
        return str(exc) or type(exc).__name__

    def _get_attribute(self, entry: _Entry, attr: str) -> str:
        """Get the first value of an attribute, or the empty string."""
        values = entry.get(attr)
        if not values:
            return ""
        return str(values[0])

    async def _get_groups(
        self, conn: AIOLDAPConnection, entry: _Entry, logger: BoundLogger
    ) -> list[str]:
        """Get the DNs of the groups of which a user is a member.

        If a group search filter is configured, the groups are found by
        searching the group trees. Otherwise, they are taken from the
        membership attribute of the user entry.
        """
        if not self._config.group_search_filter:
            values = entry.get(self._config.attributes.member_of) or []
            return [str(v) for v in values]

        attr = self._config.group_search_filter_user_attribute
        if not attr:
            attr = self._config.attributes.username
        value = self._get_attribute(entry, attr)
        search = self._config.group_search_filter.replace(
            "%s", escape_filter_exp(value)
        )
        groups = []
        for base_dn in self._config.group_search_base_dns:
            results = await conn.search(
                base=base_dn,
                scope=LDAPSearchScope.SUB,
                filter_exp=search,
                attrlist=["cn"],
                timeout=self._config.timeout,
            )
            logger.debug(
                "LDAP groups found",
                ldap_base=base_dn,
                ldap_search=search,
                ldap_results=results,
            )
            groups.extend(str(r["dn"]) for r in results if r.get("dn"))
        return groups

    def _is_member_of(self, groups: list[str], group_dn: str) -> bool:
        if group_dn == WILDCARD_GROUP_DN:
            return True
        group_dn = group_dn.lower()
        return any(g.lower() == group_dn for g in groups)

    async def _run(
        self,
        operation: Callable[[AIOLDAPConnection], Awaitable[T]],
        logger: BoundLogger,
    ) -> T:
        """Run an operation on a pooled connection.

        Each host of the server is tried in order until one of them can be
        reached.

        Parameters
        ----------
        operation
            Operation to perform, given a connection.
        logger
            Logger to use.

        Returns
        -------
        Any
            Result of the operation.

        Raises
        ------
        LDAPError
            Raised if no host could be reached in time or the operation
            failed.

        Notes
        -----
        The bonsai connection pool does not keep track of failed connections
        and will keep returning the same connection even if the LDAP server
        has stopped responding (due to a firewall timeout, for example).
        Working around this requires catching the connection error and
        explicitly closing the connection. An operation is attempted at most
        twice per host if the connection was closed, but a timeout moves on
        to the next host immediately.
        """
        errors = []
        for host, pool in zip(self._config.hosts, self._pools, strict=True):
            host_logger = logger.bind(ldap_url=self._config.url_for_host(host))
            try:
                try:
                    return await self._with_timeout(
                        self._run_on_pool(pool, operation)
                    )
                except bonsai.ConnectionError:
                    host_logger.debug("Reopening LDAP connection after error")
                    return await self._with_timeout(
                        self._run_on_pool(pool, operation)
                    )
            except _UNREACHABLE_ERRORS as e:
                error = self._describe_error(e)
                host_logger.warning("Cannot reach LDAP host", error=error)
                errors.append(error)
            except bonsai.LDAPError as e:
                host_logger.exception("Cannot query LDAP", error=str(e))
                raise LDAPError(f"Error querying LDAP: {e}") from e

        # A single host is the usual case, so avoid cluttering the error.
        if len(errors) == 1:
            raise LDAPError(errors[0])
        raise LDAPError("; ".join(errors))

    async def _run_on_pool(
        self,
        pool: AIOConnectionPool,
        operation: Callable[[AIOLDAPConnection], Awaitable[T]],
    ) -> T:
        async with pool.spawn() as conn:
            try:
                return await operation(conn)
            except (bonsai.ConnectionError, asyncio.CancelledError):
                conn.close()
                raise

    async def _search(
        self,
        conn: AIOLDAPConnection,
        logins: list[str],
        logger: BoundLogger,
    ) -> list[ExternalUserInfo]:
        """Search for users with an open connection."""
        search = "".join(
            self._config.search_filter.replace("%s", escape_filter_exp(login))
            for login in logins
        )
        search = f"(|{search})"
        attributes = self._config.attributes
        attrlist = [
            attributes.username,
            attributes.surname,
            attributes.email,
            attributes.name,
            attributes.member_of,
        ]
        if self._config.group_search_filter_user_attribute:
            attrlist.append(self._config.group_search_filter_user_attribute)

        entries: list[_Entry] = []
        seen = set()
        for base_dn in self._config.search_base_dns:
            results = await conn.search(
                base=base_dn,
                scope=LDAPSearchScope.SUB,
                filter_exp=search,
                attrlist=attrlist,
                timeout=self._config.timeout,
            )
            logger.debug(
                "LDAP entries for users",
                ldap_base=base_dn,
                ldap_search=search,
                ldap_results=results,
            )
            for result in results:
                dn = str(result.get("dn", ""))
                if dn in seen:
                    continue
                seen.add(dn)
                entries.append(result)

        users = []
        for entry in entries:
            groups = await self._get_groups(conn, entry, logger)
            user = self._build_user(entry, groups, logger)
            if user:
                users.append(user)
        return users

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._config.timeout)
