"""Aggregation of LDAP server health probes."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from structlog.stdlib import BoundLogger

from ..exceptions import LDAPError
from ..models.ldap import ServerStatus
from ..storage.ldap import LDAPStorage

__all__ = ["StatusAggregator"]


class StatusAggregator:
    """Probe every server of the federation concurrently.

    Each probe is assigned the slot of the report matching the position of
    its server in the configuration, so the report is always in
    configuration order no matter which probes finish first. Two servers may
    share a host, so results are never matched up by host and port.

    Parameters
    ----------
    connectors
        Storage layers for each LDAP server, in configuration order.
    logger
        Logger to use.
    """

    def __init__(
        self, connectors: Sequence[LDAPStorage], logger: BoundLogger
    ) -> None:
        self._connectors = connectors
        self._logger = logger

    async def ping(self) -> list[ServerStatus]:
        """Probe all of the servers.

        Returns
        -------
        list of ServerStatus
            Status of each server, in configuration order.
        """
        statuses: list[ServerStatus | None] = [None] * len(self._connectors)

        async def probe(index: int, connector: LDAPStorage) -> None:
            statuses[index] = await self._probe(connector)

        await asyncio.gather(
            *(probe(i, c) for i, c in enumerate(self._connectors))
        )
        return [s for s in statuses if s is not None]

    async def _probe(self, connector: LDAPStorage) -> ServerStatus:
        config = connector.config
        logger = self._logger.bind(
            ldap_host=config.host, ldap_port=config.port
        )

        # The storage layer applies the timeout to each host separately, so
        # allow that much time for the server as a whole.
        timeout = config.timeout * len(config.hosts)
        try:
            await asyncio.wait_for(connector.ping(), timeout=timeout)
        except LDAPError as e:
            error = str(e)
        except TimeoutError:
            error = f"LDAP server did not respond within {timeout}s"
        except Exception as e:
            logger.exception("LDAP probe failed", error=str(e))
            error = f"{type(e).__name__}: {e!s}"
        else:
            logger.debug("LDAP server is available")
            return ServerStatus(
                host=config.host, port=config.port, available=True
            )

        logger.warning("LDAP server is unavailable", error=error)
        return ServerStatus(
            host=config.host, port=config.port, available=False, error=error
        )
