"""Tests for resolving the full identity of a user."""

from __future__ import annotations

import pytest
import respx
from httpx import Response

from multildap.config import AttributeMap
from multildap.exceptions import (
    OrganizationLookupError,
    OrganizationNotFoundError,
    UserNotFoundError,
)
from multildap.factory import Factory
from multildap.models.enums import OrgRole
from multildap.models.identity import AttributeDiff, ResolvedRole, Team
from multildap.models.ldap import ExternalUserInfo
from multildap.services.identity import build_attribute_diffs

from ..support.config import configure
from ..support.ldap import MockLDAP, MockLDAPServer
from ..support.users import (
    ADMINS_GROUP,
    EDITORS_GROUP,
    VIEWERS_GROUP,
    add_test_user,
)


def test_build_attribute_diffs() -> None:
    attributes = AttributeMap()
    user = ExternalUserInfo(
        login="someone", name="Jean  Paul Sartre", email="jp@example.com"
    )
    diffs = build_attribute_diffs(user, attributes)
    assert diffs == {
        "name": AttributeDiff(cfg_attr_value="givenName", ldap_value="Jean"),
        "surname": AttributeDiff(
            cfg_attr_value="sn", ldap_value="Paul Sartre"
        ),
        "email": AttributeDiff(
            cfg_attr_value="email", ldap_value="jp@example.com"
        ),
        "login": AttributeDiff(cfg_attr_value="cn", ldap_value="someone"),
    }

    user = ExternalUserInfo(login="someone")
    diffs = build_attribute_diffs(user, attributes)
    assert diffs["name"].ldap_value == ""
    assert diffs["surname"].ldap_value == ""


@pytest.mark.asyncio
async def test_get_user(
    factory: Factory, ldap_server: MockLDAPServer
) -> None:
    add_test_user(
        ldap_server, "ldap-admin", groups=[ADMINS_GROUP, EDITORS_GROUP]
    )
    identity_service = factory.create_identity_service()

    user = await identity_service.get_user("ldap-admin")
    assert user.name.ldap_value == "John"
    assert user.surname.ldap_value == "Doe"
    assert user.login.ldap_value == "ldap-admin"
    assert user.is_grafana_admin
    assert not user.is_disabled
    assert user.roles == [
        ResolvedRole(
            org_id=1,
            org_role=OrgRole.admin,
            org_name="Main Org.",
            group_dn=ADMINS_GROUP,
        )
    ]
    assert user.teams is None

    with pytest.raises(UserNotFoundError):
        await identity_service.get_user("ghost")

    # The viewers group maps to organization 2, which does not exist.
    add_test_user(ldap_server, "viewer", groups=[VIEWERS_GROUP])
    with pytest.raises(OrganizationNotFoundError) as excinfo:
        await identity_service.get_user("viewer")
    assert excinfo.value.org_id == 2


@pytest.mark.asyncio
async def test_get_user_teams(mock_ldap: MockLDAP) -> None:
    config = configure("teams")
    ldap_server = mock_ldap.add_server("ldap://ldap.example.com:389")
    add_test_user(ldap_server, "editor", groups=[EDITORS_GROUP])
    add_test_user(ldap_server, "viewer", groups=[VIEWERS_GROUP])

    async with Factory.standalone(config) as factory:
        identity_service = factory.create_identity_service()
        user = await identity_service.get_user("editor")
        assert user.teams == [
            Team(
                team_name="editors",
                org_name="Main Org.",
                group_dn=EDITORS_GROUP,
            ),
            Team(
                team_name="reviewers",
                org_name="Main Org.",
                group_dn=EDITORS_GROUP,
            ),
        ]

        # Team sync is enabled, so no teams is an empty list, not null.
        user = await identity_service.get_user("viewer")
        assert user.roles[0].org_name == "Second Org."
        assert user.teams == []


@pytest.mark.asyncio
async def test_get_user_api(
    mock_ldap: MockLDAP, respx_mock: respx.Router
) -> None:
    config = configure("lookup-api")
    ldap_server = mock_ldap.add_server("ldap://ldap.example.com:389")
    add_test_user(ldap_server, "editor", groups=[EDITORS_GROUP])
    add_test_user(ldap_server, "viewer", groups=[VIEWERS_GROUP])
    base_url = "https://grafana.example.com/api"
    respx_mock.get(f"{base_url}/orgs/1").mock(
        return_value=Response(200, json={"id": 1, "name": "Main Org."})
    )
    respx_mock.get(f"{base_url}/orgs/2").mock(return_value=Response(502))
    teams = [
        {"teamName": "ops", "orgName": "Main Org.", "groupDN": EDITORS_GROUP}
    ]
    respx_mock.get(f"{base_url}/teams").mock(
        return_value=Response(200, json=teams)
    )

    async with Factory.standalone(config) as factory:
        identity_service = factory.create_identity_service()
        user = await identity_service.get_user("editor")
        assert user.roles[0].org_name == "Main Org."
        assert user.teams == [
            Team(team_name="ops", org_name="Main Org.", group_dn=EDITORS_GROUP)
        ]

        # Failures of the organization API are not absorbed.
        with pytest.raises(OrganizationLookupError):
            await identity_service.get_user("viewer")
