"""Lookups of organizations."""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from typing import override

from httpx import AsyncClient, HTTPError
from structlog.stdlib import BoundLogger

from ..constants import HTTP_TIMEOUT
from ..exceptions import OrganizationLookupError, OrganizationLookupWebError

__all__ = [
    "HTTPOrganizationStore",
    "OrganizationStore",
    "StaticOrganizationStore",
]


class OrganizationStore(metaclass=ABCMeta):
    """Abstract base class for sources of organization information."""

    @abstractmethod
    async def get_name(self, org_id: int) -> str | None:
        """Get the name of an organization.

        Parameters
        ----------
        org_id
            ID of the organization.

        Returns
        -------
        str or None
            Name of the organization, or `None` if it does not exist.

        Raises
        ------
        OrganizationLookupError
            Raised if the source of organization information failed.
        """


class StaticOrganizationStore(OrganizationStore):
    """Organizations listed in the configuration.

    Parameters
    ----------
    names
        Mapping of organization IDs to names.
    """

    def __init__(self, names: dict[int, str]) -> None:
        self._names = names

    @override
    async def get_name(self, org_id: int) -> str | None:
        return self._names.get(org_id)


class HTTPOrganizationStore(OrganizationStore):
    """Look up organizations with a REST API.

    The API is expected to return a JSON object with a ``name`` key from
    :samp:`GET {url}/orgs/{id}`, and a 404 error for unknown organizations.

    Parameters
    ----------
    url
        Base URL of the organization API.
    http_client
        HTTP client to use.
    logger
        Logger to use.
    """

    def __init__(
        self, *, url: str, http_client: AsyncClient, logger: BoundLogger
    ) -> None:
        self._url = url.rstrip("/")
        self._http_client = http_client
        self._logger = logger

    @override
    async def get_name(self, org_id: int) -> str | None:
        url = f"{self._url}/orgs/{org_id}"
        try:
            r = await self._http_client.get(url, timeout=HTTP_TIMEOUT)
            if r.status_code == 404:
                self._logger.debug("Organization not found", org_id=org_id)
                return None
            r.raise_for_status()
            result = r.json()
            self._logger.debug(
                f"Organization data for {org_id}",
                org_id=org_id,
                org_url=url,
                org_result=result,
            )
            return str(result["name"])
        except (KeyError, TypeError, ValueError) as e:
            error = f"{type(e).__name__}: {e!s}"
            msg = f"Organization data for {org_id} invalid: {error}"
            raise OrganizationLookupError(msg) from e
        except HTTPError as e:
            raise OrganizationLookupWebError.from_exception(e) from e
