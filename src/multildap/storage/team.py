"""Lookups of teams synchronized from LDAP groups."""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from typing import override

from httpx import AsyncClient, HTTPError
from pydantic import TypeAdapter, ValidationError
from structlog.stdlib import BoundLogger

from ..config import TeamMapping
from ..constants import HTTP_TIMEOUT
from ..exceptions import TeamLookupError, TeamLookupWebError
from ..models.identity import Team

__all__ = [
    "HTTPTeamStore",
    "StaticTeamStore",
    "TeamStore",
]


class TeamStore(metaclass=ABCMeta):
    """Abstract base class for sources of team information."""

    @abstractmethod
    async def get_teams(
        self, group_dn: str, org_id: int, org_name: str
    ) -> list[Team]:
        """Get the teams synchronized from an LDAP group.

        Parameters
        ----------
        group_dn
            DN of the LDAP group.
        org_id
            ID of the organization in which to look for teams.
        org_name
            Name of that organization, already resolved by the caller.

        Returns
        -------
        list of Team
            Teams whose membership comes from that group. May be empty.

        Raises
        ------
        TeamLookupError
            Raised if the source of team information failed.
        """


class StaticTeamStore(TeamStore):
    """Teams listed in the configuration.

    Parameters
    ----------
    mappings
        Configured mappings of LDAP groups to teams.
    """

    def __init__(self, mappings: list[TeamMapping]) -> None:
        self._mappings = mappings

    @override
    async def get_teams(
        self, group_dn: str, org_id: int, org_name: str
    ) -> list[Team]:
        return [
            Team(team_name=m.team_name, org_name=org_name, group_dn=m.group_dn)
            for m in self._mappings
            if m.org_id == org_id and m.group_dn.lower() == group_dn.lower()
        ]


class HTTPTeamStore(TeamStore):
    """Look up teams with a REST API.

    The API is expected to return a JSON list of teams, each with
    ``teamName``, ``orgName``, and ``groupDN`` keys, from
    :samp:`GET {url}/teams` with ``groupDN`` and ``orgId`` query parameters.

    Parameters
    ----------
    url
        Base URL of the team API.
    http_client
        HTTP client to use.
    logger
        Logger to use.
    """

    def __init__(
        self, *, url: str, http_client: AsyncClient, logger: BoundLogger
    ) -> None:
        self._url = url.rstrip("/") + "/teams"
        self._http_client = http_client
        self._logger = logger
        self._adapter = TypeAdapter(list[Team])

    @override
    async def get_teams(
        self, group_dn: str, org_id: int, org_name: str
    ) -> list[Team]:
        params = {"groupDN": group_dn, "orgId": str(org_id)}
        try:
            r = await self._http_client.get(
                self._url, params=params, timeout=HTTP_TIMEOUT
            )
            r.raise_for_status()
            teams = self._adapter.validate_python(r.json())
        except (ValidationError, ValueError) as e:
            error = f"{type(e).__name__}: {e!s}"
            msg = f"Team data for {group_dn} invalid: {error}"
            raise TeamLookupError(msg) from e
        except HTTPError as e:
            raise TeamLookupWebError.from_exception(e) from e
        self._logger.debug(
            f"Teams for {group_dn}",
            group_dn=group_dn,
            org_id=org_id,
            teams=[t.team_name for t in teams],
        )
        return teams
