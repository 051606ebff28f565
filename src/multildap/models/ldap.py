"""Data models for LDAP."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated

from pydantic import BaseModel, Field

from .enums import OrgRole

__all__ = ["ExternalUserInfo", "ServerStatus"]


@dataclass
class ExternalUserInfo:
    """Data for a user found in one of the LDAP servers.

    This is produced fresh by each lookup and is never stored.
    """

    login: str
    """Login name of the user."""

    name: str = ""
    """Full name, built from the given name and surname attributes."""

    email: str = ""
    """Email address."""

    auth_id: str = ""
    """DN of the user's entry in LDAP."""

    groups: list[str] = field(default_factory=list)
    """DNs of the groups of which the user is a member."""

    org_roles: dict[int, OrgRole] = field(default_factory=dict)
    """Role of the user in each organization, keyed by organization ID."""

    is_grafana_admin: bool | None = None
    """Whether the user is a server administrator, or `None` if unknown."""

    is_disabled: bool = False
    """Whether the user matched none of the configured group mappings."""


class ServerStatus(BaseModel):
    """Result of probing one LDAP server."""

    host: Annotated[
        str, Field(title="Host", description="Configured host of the server")
    ]

    port: Annotated[int, Field(title="Port", examples=[389])]

    available: Annotated[
        bool,
        Field(title="Available", description="Whether the server responded"),
    ]

    error: Annotated[
        str,
        Field(
            title="Error",
            description="Why the server is unavailable, or empty if it is up",
            examples=["LDAP server did not respond within 10.0s"],
        ),
    ] = ""
