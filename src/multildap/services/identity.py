"""Resolution of the full identity of an LDAP user."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from ..config import AttributeMap
from ..models.identity import AttributeDiff, LDAPUserView
from ..models.ldap import ExternalUserInfo
from .federation import FederationService
from .roles import RoleResolver
from .teams import TeamResolver

__all__ = ["IdentityService", "build_attribute_diffs"]


def build_attribute_diffs(
    user: ExternalUserInfo, attributes: AttributeMap
) -> dict[str, AttributeDiff]:
    """Pair each identity field with the attribute configured for it.

    The user's full name is split at the first run of whitespace into the
    given name and the surname.

    Parameters
    ----------
    user
        User information from LDAP.
    attributes
        Attribute mapping of the server that found the user.

    Returns
    -------
    dict of AttributeDiff
        Diffs keyed by ``name``, ``surname``, ``email``, and ``login``.
    """
    words = user.name.split()
    given_name = words[0] if words else ""
    surname = " ".join(words[1:])
    return {
        "name": AttributeDiff(
            cfg_attr_value=attributes.name, ldap_value=given_name
        ),
        "surname": AttributeDiff(
            cfg_attr_value=attributes.surname, ldap_value=surname
        ),
        "email": AttributeDiff(
            cfg_attr_value=attributes.email, ldap_value=user.email
        ),
        "login": AttributeDiff(
            cfg_attr_value=attributes.username, ldap_value=user.login
        ),
    }


class IdentityService:
    """Resolve everything known about a user from the LDAP federation.

    Parameters
    ----------
    federation
        The LDAP federation.
    role_resolver
        Resolver for organization roles.
    team_resolver
        Resolver for team memberships, or `None` if team synchronization is
        not enabled.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        federation: FederationService,
        role_resolver: RoleResolver,
        team_resolver: TeamResolver | None,
        logger: BoundLogger,
    ) -> None:
        self._federation = federation
        self._roles = role_resolver
        self._teams = team_resolver
        self._logger = logger

    async def get_user(self, login: str) -> LDAPUserView:
        """Resolve a user.

        Parameters
        ----------
        login
            Login of the user.

        Returns
        -------
        LDAPUserView
            The resolved user. ``teams`` is `None` if team synchronization is
            not enabled and otherwise a (possibly empty) list.

        Raises
        ------
        OrganizationNotFoundError
            Raised if one of the user's roles is for an unknown organization.
        UserNotFoundError
            Raised if the user was not found on any LDAP server.
        """
        user, server = await self._federation.find_user(login)
        roles = await self._roles.resolve(user.org_roles, server.groups)
        teams = None
        if self._teams:
            teams = await self._teams.augment(roles)
        self._logger.debug(
            "Resolved LDAP user",
            user=login,
            ldap_host=server.host,
            org_ids=[r.org_id for r in roles],
        )
        return LDAPUserView(
            **build_attribute_diffs(user, server.attributes),
            is_grafana_admin=bool(user.is_grafana_admin),
            is_disabled=user.is_disabled,
            roles=roles,
            teams=teams,
        )
