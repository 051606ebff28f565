"""Resolution of team memberships."""

from __future__ import annotations

from collections.abc import Sequence

from structlog.stdlib import BoundLogger

from ..exceptions import ExternalUserInfoError
from ..models.identity import ResolvedRole, Team
from ..storage.team import TeamStore

__all__ = ["TeamResolver"]


class TeamResolver:
    """Find the teams a user belongs to via their LDAP groups.

    This service only exists if team synchronization is enabled. Team
    information is an enhancement, so a failed lookup for one role is logged
    and treated as finding no teams rather than failing the request.

    Parameters
    ----------
    teams
        Source of team information.
    logger
        Logger to use.
    """

    def __init__(self, teams: TeamStore, logger: BoundLogger) -> None:
        self._teams = teams
        self._logger = logger

    async def augment(self, roles: Sequence[ResolvedRole]) -> list[Team]:
        """Find the teams for a list of resolved roles.

        Parameters
        ----------
        roles
            Resolved organization roles of a user.

        Returns
        -------
        list of Team
            Teams synchronized from the groups that granted those roles, in
            the order of the roles. May be empty.
        """
        teams = []
        for role in roles:
            try:
                found = await self._teams.get_teams(
                    role.group_dn, role.org_id, role.org_name
                )
            except ExternalUserInfoError as e:
                self._logger.warning(
                    "Cannot look up teams, ignoring",
                    error=str(e),
                    group_dn=role.group_dn,
                    org_id=role.org_id,
                )
                continue
            teams.extend(found)
        return teams
