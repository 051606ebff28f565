"""Mock bonsai LDAP API for testing."""

from __future__ import annotations

import asyncio
import re
from collections import defaultdict
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import patch

import bonsai

from multildap import factory
from multildap.storage import ldap

_Entry = dict[str, list[str]]

__all__ = [
    "MockLDAP",
    "MockLDAPClient",
    "MockLDAPConnection",
    "MockLDAPPool",
    "MockLDAPServer",
    "patch_ldap",
]


@dataclass
class MockLDAPServer:
    """Contents and behavior of one mock LDAP host."""

    entries: dict[str, list[_Entry]] = field(
        default_factory=lambda: defaultdict(list)
    )
    """Entries by the base DN under which they are found."""

    passwords: dict[str, str] = field(default_factory=dict)
    """Passwords by bind DN."""

    error: Exception | None = None
    """If set, every operation raises this exception."""

    transient: bool = False
    """Whether ``error`` is cleared after it has been raised once."""

    calls: int = 0
    """Number of operations attempted, including failed ones."""

    delay: float = 0.0
    """Seconds to wait before answering every operation."""

    searches: list[tuple[str, str]] = field(default_factory=list)
    """Base DN and filter of every search performed, in order."""

    binds: list[str] = field(default_factory=list)
    """DN of every authenticated connection, in order."""

    def add_entry(self, base_dn: str, dn: str, **attrs: list[str]) -> None:
        """Add an entry.

        Parameters
        ----------
        base_dn
            Base DN of searches that should find this entry.
        dn
            DN of the entry.
        **attrs
            Attributes of the entry.
        """
        self.entries[base_dn].append({"dn": [dn], **attrs})

    async def respond(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            error = self.error
            if self.transient:
                self.error = None
            raise error

    def search(
        self, base: str, filter_exp: str, attrlist: list[str]
    ) -> list[dict[str, Any]]:
        self.searches.append((base, filter_exp))
        terms = re.findall(r"\(([^()=]+)=([^()]*)\)", filter_exp)
        require_all = filter_exp.startswith("(&")
        results = []
        for entry in self.entries.get(base, []):
            matches = [
                _unescape(value) in entry.get(attr, [])
                for attr, value in terms
            ]
            if all(matches) if require_all else any(matches):
                result: dict[str, Any] = {"dn": entry["dn"][0]}
                result.update({a: entry[a] for a in attrlist if a in entry})
                results.append(result)
        return results


class MockLDAPConnection:
    """Mock of an open bonsai connection to one mock LDAP host."""

    def __init__(self, server: MockLDAPServer, user: str | None) -> None:
        self.server = server
        self.user = user
        self.closed = False

    def close(self) -> None:
        self.closed = True

    async def search(
        self,
        base: str,
        scope: bonsai.LDAPSearchScope,
        filter_exp: str,
        attrlist: list[str],
        timeout: float,
    ) -> list[dict[str, Any]]:
        assert scope == bonsai.LDAPSearchScope.SUB
        assert timeout > 0
        await self.server.respond()
        return self.server.search(base, filter_exp, attrlist)

    async def whoami(self) -> str:
        await self.server.respond()
        return f"dn:{self.user}" if self.user else "anonymous"


class MockLDAPClient:
    """Mock of `bonsai.LDAPClient` that connects to mock LDAP hosts."""

    def __init__(self, mock: MockLDAP, url: str, tls: bool = False) -> None:
        self.url = url
        self.tls = tls
        self.cert_policy: str | None = None
        self.ca_cert: str | None = None
        self.user: str | None = None
        self.password: str | None = None
        self._mock = mock

    def set_ca_cert(self, name: str) -> None:
        self.ca_cert = name

    def set_cert_policy(self, policy: str) -> None:
        self.cert_policy = policy

    def set_credentials(
        self, mechanism: str, *, user: str, password: str | None
    ) -> None:
        assert mechanism == "SIMPLE"
        self.user = user
        self.password = password

    async def connect(self, *, is_async: bool) -> MockLDAPConnection:
        assert is_async
        server = self._mock.get_server(self.url)
        await server.respond()
        if self.user:
            if server.passwords.get(self.user) != self.password:
                raise bonsai.AuthenticationError("Invalid credentials")
            server.binds.append(self.user)
        return MockLDAPConnection(server, self.user)


class MockLDAPPool:
    """Mock of `bonsai.asyncio.AIOConnectionPool`."""

    def __init__(self, client: MockLDAPClient) -> None:
        self.client = client
        self.closed = False
        self._mock = client._mock

    async def close(self) -> None:
        self.closed = True

    @asynccontextmanager
    async def spawn(self) -> AsyncIterator[MockLDAPConnection]:
        server = self._mock.get_server(self.client.url)
        yield MockLDAPConnection(server, self.client.user)


class MockLDAP:
    """Registry of mock LDAP hosts, keyed by URL.

    Hosts that were never added behave like a host that refuses
    connections.
    """

    def __init__(self) -> None:
        self.servers: dict[str, MockLDAPServer] = {}
        self.clients: list[MockLDAPClient] = []
        self.pools: list[MockLDAPPool] = []

    def add_server(self, url: str) -> MockLDAPServer:
        """Add a mock LDAP host.

        Parameters
        ----------
        url
            URL of the host, such as ``ldap://ldap.example.com:389``.

        Returns
        -------
        MockLDAPServer
            The new host, to which entries can be added.
        """
        server = MockLDAPServer()
        self.servers[url] = server
        return server

    def create_client(self, url: str, tls: bool = False) -> MockLDAPClient:
        client = MockLDAPClient(self, url, tls)
        self.clients.append(client)
        return client

    def create_pool(self, client: MockLDAPClient) -> MockLDAPPool:
        pool = MockLDAPPool(client)
        self.pools.append(pool)
        return pool

    def get_server(self, url: str) -> MockLDAPServer:
        if url not in self.servers:
            raise bonsai.ConnectionError(f"Can't contact LDAP server {url}")
        return self.servers[url]


def patch_ldap() -> Iterator[MockLDAP]:
    """Mock the bonsai API for testing.

    Returns
    -------
    MockLDAP
        The mock LDAP API.
    """
    mock_ldap = MockLDAP()
    with patch.object(ldap, "LDAPClient", side_effect=mock_ldap.create_client):
        with patch.object(
            factory, "AIOConnectionPool", side_effect=mock_ldap.create_pool
        ):
            yield mock_ldap


def _unescape(value: str) -> str:
    return re.sub(
        r"\\([0-9a-fA-F]{2})", lambda m: chr(int(m.group(1), 16)), value
    )
