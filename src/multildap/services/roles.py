"""Resolution of organization roles."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from structlog.stdlib import BoundLogger

from ..config import GroupToOrgRole
from ..exceptions import OrganizationNotFoundError
from ..models.enums import OrgRole
from ..models.identity import ResolvedRole
from ..storage.organization import OrganizationStore

__all__ = ["RoleResolver"]


class RoleResolver:
    """Turn the organization roles of a user into a displayable list.

    Parameters
    ----------
    organizations
        Source of organization names.
    logger
        Logger to use.
    """

    def __init__(
        self, organizations: OrganizationStore, logger: BoundLogger
    ) -> None:
        self._organizations = organizations
        self._logger = logger

    async def resolve(
        self,
        org_roles: Mapping[int, OrgRole],
        groups: Sequence[GroupToOrgRole],
    ) -> list[ResolvedRole]:
        """Resolve organization roles.

        Organizations are processed in ascending order of ID, so both the
        result and the organization reported as missing are deterministic.

        Parameters
        ----------
        org_roles
            Role of the user in each organization, keyed by organization ID.
        groups
            Group mappings of the LDAP server that found the user. The
            first mapping that grants exactly the user's role in an
            organization is reported as the source of that role.

        Returns
        -------
        list of ResolvedRole
            Resolved roles, sorted by organization ID.

        Raises
        ------
        OrganizationNotFoundError
            Raised if any organization does not exist. No roles are returned
            in that case, even if other organizations were found.
        """
        roles = []
        for org_id in sorted(org_roles):
            role = org_roles[org_id]
            name = await self._organizations.get_name(org_id)
            if name is None:
                self._logger.warning(
                    "Organization from LDAP group mapping not found",
                    org_id=org_id,
                )
                raise OrganizationNotFoundError(org_id)
            group_dn = next(
                (
                    g.group_dn
                    for g in groups
                    if g.org_id == org_id and g.org_role == role
                ),
                "",
            )
            roles.append(
                ResolvedRole(
                    org_id=org_id,
                    org_role=role,
                    org_name=name,
                    group_dn=group_dn,
                )
            )
        return roles
