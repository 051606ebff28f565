"""Tests for the LDAP debug routes."""

from __future__ import annotations

import bonsai
import pytest
from httpx import AsyncClient

from ..support.config import reconfigure
from ..support.ldap import MockLDAP, MockLDAPServer
from ..support.users import (
    ADMINS_GROUP,
    EDITORS_GROUP,
    VIEWERS_GROUP,
    add_test_user,
)


@pytest.mark.asyncio
async def test_get_user(
    client: AsyncClient, ldap_server: MockLDAPServer
) -> None:
    add_test_user(
        ldap_server,
        "ldap-admin",
        name="ldap-admin",
        surname="",
        groups=[ADMINS_GROUP, EDITORS_GROUP],
    )

    r = await client.get("/api/admin/ldap/ldap-admin")
    assert r.status_code == 200
    assert r.json() == {
        "name": {"cfgAttrValue": "givenName", "ldapValue": "ldap-admin"},
        "surname": {"cfgAttrValue": "sn", "ldapValue": ""},
        "email": {
            "cfgAttrValue": "email",
            "ldapValue": "ldap-admin@example.com",
        },
        "login": {"cfgAttrValue": "cn", "ldapValue": "ldap-admin"},
        "isGrafanaAdmin": True,
        "isDisabled": False,
        "roles": [
            {
                "orgId": 1,
                "orgRole": "Admin",
                "orgName": "Main Org.",
                "groupDN": ADMINS_GROUP,
            }
        ],
        "teams": None,
    }


@pytest.mark.asyncio
async def test_get_user_not_found(
    client: AsyncClient, ldap_server: MockLDAPServer
) -> None:
    r = await client.get("/api/admin/ldap/ghost")
    assert r.status_code == 404
    assert r.json() == {"message": "No user was found on the LDAP server(s)"}


@pytest.mark.asyncio
async def test_get_user_missing_org(
    client: AsyncClient, ldap_server: MockLDAPServer
) -> None:
    add_test_user(ldap_server, "viewer", groups=[VIEWERS_GROUP])

    r = await client.get("/api/admin/ldap/viewer")
    assert r.status_code == 400
    assert r.json() == {
        "error": "Unable to find organization with ID '2'",
        "message": (
            "An oganization was not found - Please verify your LDAP"
            " configuration"
        ),
    }


@pytest.mark.asyncio
async def test_get_user_disabled(
    client: AsyncClient, ldap_server: MockLDAPServer
) -> None:
    add_test_user(ldap_server, "nobody", groups=["cn=other,dc=org"])

    r = await client.get("/api/admin/ldap/nobody")
    assert r.status_code == 200
    data = r.json()
    assert data["isDisabled"] is True
    assert data["isGrafanaAdmin"] is False
    assert data["roles"] == []


@pytest.mark.asyncio
async def test_get_user_teams(
    client: AsyncClient, ldap_server: MockLDAPServer
) -> None:
    await reconfigure("teams")
    add_test_user(ldap_server, "editor", groups=[EDITORS_GROUP])

    r = await client.get("/api/admin/ldap/editor")
    assert r.status_code == 200
    assert r.json()["teams"] == [
        {
            "teamName": "editors",
            "orgName": "Main Org.",
            "groupDN": EDITORS_GROUP,
        },
        {
            "teamName": "reviewers",
            "orgName": "Main Org.",
            "groupDN": EDITORS_GROUP,
        },
    ]


@pytest.mark.asyncio
async def test_status(client: AsyncClient, mock_ldap: MockLDAP) -> None:
    await reconfigure("multi")
    mock_ldap.add_server("ldap://ldap.example.com:389")
    mock_ldap.add_server("ldap://ldap2.example.com:389")
    third = mock_ldap.add_server("ldap://ldap3.example.com:389")
    third.error = bonsai.ConnectionError("something is awfully wrong")

    r = await client.get("/api/admin/ldap/status")
    assert r.status_code == 200
    data = r.json()
    assert data[:2] == [
        {
            "host": "ldap.example.com",
            "port": 389,
            "available": True,
            "error": "",
        },
        {
            "host": "ldap2.example.com",
            "port": 389,
            "available": True,
            "error": "",
        },
    ]
    assert data[2]["host"] == "ldap3.example.com"
    assert data[2]["port"] == 389
    assert data[2]["available"] is False
    assert "something is awfully wrong" in data[2]["error"]


@pytest.mark.asyncio
async def test_no_servers(client: AsyncClient) -> None:
    await reconfigure("empty")

    r = await client.get("/api/admin/ldap/ghost")
    assert r.status_code == 404
    assert r.json() == {"message": "No user was found on the LDAP server(s)"}

    r = await client.get("/api/admin/ldap/status")
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.asyncio
async def test_not_enabled(client: AsyncClient) -> None:
    await reconfigure("disabled")

    for route in ("/api/admin/ldap/status", "/api/admin/ldap/someone"):
        r = await client.get(route)
        assert r.status_code == 400
        assert r.json() == {"message": "LDAP is not enabled"}
