"""Models for the resolved identity of an LDAP user."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import OrgRole

__all__ = [
    "AttributeDiff",
    "LDAPUserView",
    "ResolvedRole",
    "Team",
]


class CamelCaseModel(BaseModel):
    """Base model that serializes with camel-case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AttributeDiff(CamelCaseModel):
    """An identity field and the LDAP configuration that produced it."""

    cfg_attr_value: Annotated[
        str,
        Field(
            title="Configured attribute",
            description="LDAP attribute configured for this field",
            examples=["givenName"],
        ),
    ]

    ldap_value: Annotated[
        str,
        Field(
            title="LDAP value",
            description="Value of this field for the user",
            examples=["John"],
        ),
    ]


class ResolvedRole(CamelCaseModel):
    """A role of the user in an organization."""

    org_id: Annotated[int, Field(title="Organization ID", examples=[1])]

    org_role: Annotated[OrgRole, Field(title="Role in the organization")]

    org_name: Annotated[
        str, Field(title="Organization name", examples=["Main Org."])
    ]

    group_dn: Annotated[
        str,
        Field(
            title="Group DN",
            description=(
                "DN of the first configured group mapping granting this role,"
                " or empty if no mapping grants exactly this role"
            ),
            examples=["cn=admins,ou=groups,dc=example,dc=org"],
            alias="groupDN",
        ),
    ]


class Team(CamelCaseModel):
    """A team synchronized from an LDAP group."""

    team_name: Annotated[str, Field(title="Team name", examples=["ops"])]

    org_name: Annotated[
        str, Field(title="Organization name", examples=["Main Org."])
    ]

    group_dn: Annotated[
        str,
        Field(
            title="Group DN",
            examples=["cn=ops,ou=groups,dc=example,dc=org"],
            alias="groupDN",
        ),
    ]


class LDAPUserView(CamelCaseModel):
    """Everything known about a user from the LDAP federation.

    Each identity field is reported together with the attribute it was read
    from, for debugging the LDAP configuration.
    """

    name: Annotated[AttributeDiff, Field(title="Given name")]

    surname: Annotated[AttributeDiff, Field(title="Surname")]

    email: Annotated[AttributeDiff, Field(title="Email address")]

    login: Annotated[AttributeDiff, Field(title="Login")]

    is_grafana_admin: Annotated[
        bool, Field(title="Server administrator")
    ] = False

    is_disabled: Annotated[
        bool,
        Field(
            title="Disabled",
            description="Whether the user matched no group mapping",
        ),
    ] = False

    roles: Annotated[
        list[ResolvedRole],
        Field(
            title="Organization roles",
            description="Roles of the user, sorted by organization ID",
        ),
    ] = []

    teams: Annotated[
        list[Team] | None,
        Field(
            title="Teams",
            description=(
                "Teams the user belongs to through group membership, or null"
                " if team synchronization is not enabled"
            ),
        ),
    ] = None
