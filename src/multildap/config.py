"""Configuration for multildap.

multildap is configured by a YAML file listing the LDAP servers of the
federation in priority order, along with the group to organization role
mappings for each server and the sources of organization and team
information. A few settings (logging and Slack alerting) may also be set via
environment variables, which take precedence over the configuration file.

Only the settings with explicit ``validation_alias`` settings support
configuration via environment variable.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self, override

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging

from .constants import (
    DEFAULT_LDAP_PORT,
    DEFAULT_LDAPS_PORT,
    DEFAULT_SEARCH_FILTER,
    LDAP_TIMEOUT,
)
from .models.enums import OrgRole

__all__ = [
    "AttributeMap",
    "CamelCaseSettings",
    "Config",
    "EnvFirstSettings",
    "GroupToOrgRole",
    "OrganizationsConfig",
    "ServerConfig",
    "TeamMapping",
    "TeamsConfig",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all multildap configuration
    models that support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables to
        take precedent.
        """
        return (env_settings, init_settings)


class CamelCaseModel(BaseModel):
    """Base class for configuration models without environment support."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )


class AttributeMap(CamelCaseModel):
    """Mapping of identity fields to LDAP attribute names."""

    name: str = Field(
        "givenName",
        title="Given name attribute",
        description="LDAP attribute holding the user's given name",
    )

    surname: str = Field(
        "sn",
        title="Surname attribute",
        description="LDAP attribute holding the user's surname",
    )

    email: str = Field(
        "email",
        title="Email attribute",
        description="LDAP attribute holding the user's email address",
    )

    username: str = Field(
        "cn",
        title="Username attribute",
        description="LDAP attribute holding the user's login name",
    )

    member_of: str = Field(
        "memberOf",
        title="Group membership attribute",
        description=(
            "LDAP attribute of the user entry listing the DNs of the groups"
            " of which the user is a member. Only used if"
            " ``groupSearchFilter`` is not set."
        ),
    )


class GroupToOrgRole(CamelCaseModel):
    """Grant of an organization role to members of an LDAP group."""

    group_dn: str = Field(
        ...,
        title="Group DN",
        description=(
            "DN of the LDAP group whose members receive this role, or ``*``"
            " to match every user"
        ),
        validation_alias=AliasChoices("groupDn", "groupDN", "group_dn"),
        min_length=1,
    )

    org_id: int = Field(
        1,
        title="Organization ID",
        description="Numeric ID of the organization in which to grant a role",
        ge=1,
    )

    org_role: OrgRole = Field(
        ..., title="Organization role", description="Role to grant"
    )

    grafana_admin: bool | None = Field(
        None,
        title="Server administrator",
        description=(
            "If set, whether members of this group are server"
            " administrators. Leave unset to not change the admin flag."
        ),
    )


class ServerConfig(CamelCaseModel):
    """Configuration for one LDAP server in the federation."""

    host: str = Field(
        ...,
        title="LDAP host",
        description=(
            "Hostname of the LDAP server. Several hostnames may be given"
            " separated by spaces, in which case they are tried in order"
            " until one accepts the connection."
        ),
        min_length=1,
    )

    port: int = Field(
        0,
        title="LDAP port",
        description=(
            "Port of the LDAP server. Defaults to 389, or to 636 if"
            " ``useSsl`` is set."
        ),
        ge=0,
        le=65535,
    )

    use_ssl: bool = Field(
        False, title="Use LDAPS", description="Connect with LDAP over SSL"
    )

    start_tls: bool = Field(
        False,
        title="Use StartTLS",
        description="Upgrade a plain LDAP connection with StartTLS",
    )

    skip_verify_ssl: bool = Field(
        False,
        title="Skip certificate verification",
        description="Do not verify the certificate of the LDAP server",
    )

    root_ca_cert: Path | None = Field(
        None,
        title="CA certificate",
        description="Path to the CA certificate used to verify the server",
    )

    bind_dn: str | None = Field(
        None,
        title="Bind DN",
        description=(
            "DN to bind as with simple bind when searching. ``%s`` is"
            " replaced with the login of the user when authenticating. If"
            " not set, searches use an anonymous bind."
        ),
    )

    bind_password: SecretStr | None = Field(
        None,
        title="Bind password",
        description="Password for simple binds as ``bindDn``",
    )

    timeout: float = Field(
        LDAP_TIMEOUT,
        title="Timeout",
        description=(
            "Timeout in seconds for each connect, bind, search, or probe"
            " against this server"
        ),
        gt=0,
    )

    search_filter: str = Field(
        DEFAULT_SEARCH_FILTER,
        title="User search filter",
        description=(
            "LDAP filter used to find users. ``%s`` is replaced with the"
            " login being searched for."
        ),
    )

    search_base_dns: list[str] = Field(
        ...,
        title="User search base DNs",
        description="Base DNs under which to search for users, in order",
        validation_alias=AliasChoices(
            "searchBaseDns", "searchBaseDNs", "search_base_dns"
        ),
        min_length=1,
    )

    group_search_filter: str | None = Field(
        None,
        title="Group search filter",
        description=(
            "If set, find group memberships by searching for groups with this"
            " filter instead of reading ``memberOf`` from the user entry."
            " ``%s`` is replaced with the value of"
            " ``groupSearchFilterUserAttribute``."
        ),
    )

    group_search_filter_user_attribute: str | None = Field(
        None,
        title="Group search user attribute",
        description=(
            "Attribute of the user entry substituted into"
            " ``groupSearchFilter``. Defaults to the login."
        ),
    )

    group_search_base_dns: list[str] = Field(
        [],
        title="Group search base DNs",
        description="Base DNs under which to search for groups",
        validation_alias=AliasChoices(
            "groupSearchBaseDns", "groupSearchBaseDNs", "group_search_base_dns"
        ),
    )

    attributes: AttributeMap = Field(
        AttributeMap(),
        title="Attribute mapping",
        description="LDAP attributes holding each identity field",
    )

    groups: list[GroupToOrgRole] = Field(
        [],
        title="Group mappings",
        description=(
            "Mappings from LDAP groups to organization roles. Order matters:"
            " for each organization, the first matching mapping wins."
        ),
    )

    @model_validator(mode="before")
    @classmethod
    def _validate_port(cls, data: Any) -> Any:
        """Supply the default port based on whether SSL is used."""
        if not isinstance(data, dict):
            return data
        if not data.get("port"):
            use_ssl = data.get("useSsl", data.get("use_ssl", False))
            data = dict(data)
            data["port"] = DEFAULT_LDAPS_PORT if use_ssl else DEFAULT_LDAP_PORT
        return data

    @model_validator(mode="after")
    def _validate_bind(self) -> Self:
        # A bind DN containing %s is a template for binding as the user
        # being authenticated and needs no password of its own.
        if self.bind_dn and "%s" not in self.bind_dn:
            if not self.bind_password:
                raise ValueError("bindPassword required if bindDn is set")
        if self.use_ssl and self.start_tls:
            raise ValueError("Only one of useSsl and startTls may be set")
        return self

    @property
    def hosts(self) -> list[str]:
        """Hostnames to try, in order."""
        return self.host.split()

    def url_for_host(self, host: str) -> str:
        """Construct the LDAP URL for one of the configured hosts.

        Parameters
        ----------
        host
            One of the hostnames from `hosts`.

        Returns
        -------
        str
            URL suitable for passing to `bonsai.LDAPClient`.
        """
        scheme = "ldaps" if self.use_ssl else "ldap"
        return f"{scheme}://{host}:{self.port}"


class OrganizationsConfig(CamelCaseModel):
    """Sources of organization names."""

    names: dict[int, str] = Field(
        {},
        title="Organization names",
        description="Static mapping of organization IDs to their names",
    )

    url: HttpUrl | None = Field(
        None,
        title="Organization API URL",
        description=(
            "If set, look up organizations via :samp:`GET {url}/orgs/{id}`"
            " instead of using ``names``"
        ),
    )


class TeamMapping(CamelCaseModel):
    """Static synchronization of an LDAP group to a team."""

    group_dn: str = Field(
        ...,
        title="Group DN",
        validation_alias=AliasChoices("groupDn", "groupDN", "group_dn"),
    )

    org_id: int = Field(..., title="Organization ID", ge=1)

    team_name: str = Field(..., title="Team name", min_length=1)


class TeamsConfig(CamelCaseModel):
    """Configuration for team synchronization.

    The presence of this section enables team lookups. Its absence means team
    synchronization is not enabled and the team membership of users is
    reported as unknown.
    """

    mappings: list[TeamMapping] = Field(
        [],
        title="Static team mappings",
        description="Teams synchronized from LDAP groups",
    )

    url: HttpUrl | None = Field(
        None,
        title="Team API URL",
        description=(
            "If set, look up teams via :samp:`GET {url}/teams` with"
            " ``groupDN`` and ``orgId`` query parameters instead of using"
            " ``mappings``"
        ),
    )


class Config(EnvFirstSettings):
    """Configuration for multildap."""

    name: str = Field(
        "multildap",
        title="Name of application",
        description="Used as the logger name and in application metadata",
    )

    path_prefix: str = Field(
        "",
        title="URL prefix for routes",
        description="Prefix prepended to all application routes",
    )

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("MULTILDAP_LOG_LEVEL", "logLevel"),
    )

    log_profile: Profile = Field(
        Profile.production,
        title="Logging profile",
        description=(
            "Logging profile. ``production`` logs JSON; ``development``"
            " logs human-readable messages."
        ),
        validation_alias=AliasChoices("MULTILDAP_LOG_PROFILE", "logProfile"),
    )

    enabled: bool = Field(
        True,
        title="Enable LDAP",
        description=(
            "Whether LDAP lookups are enabled. If false, the LDAP routes"
            " answer that LDAP is not enabled. This is separate from the list"
            " of servers, which may be empty."
        ),
    )

    servers: list[ServerConfig] = Field(
        [],
        title="LDAP servers",
        description=(
            "LDAP servers of the federation in priority order. The first"
            " server that knows a user is authoritative for that user."
        ),
    )

    organizations: OrganizationsConfig = Field(
        OrganizationsConfig(),
        title="Organizations",
        description="Where to find the names of organizations",
    )

    teams: TeamsConfig | None = Field(
        None,
        title="Team synchronization",
        description="Team lookup configuration, or null if not enabled",
    )

    slack_alerts: bool = Field(
        False,
        title="Enable Slack alerts",
        description=(
            "Whether to enable Slack alerts. If true, ``slack_webhook`` must"
            " also be set."
        ),
        validation_alias=AliasChoices("MULTILDAP_SLACK_ALERTS", "slackAlerts"),
    )

    slack_webhook: SecretStr | None = Field(
        None,
        title="Slack webhook for alerts",
        description="If set, alerts will be posted to this Slack webhook",
        validation_alias=AliasChoices(
            "MULTILDAP_SLACK_WEBHOOK", "slackWebhook"
        ),
    )

    @field_validator("path_prefix")
    @classmethod
    def _validate_path_prefix(cls, v: str) -> str:
        if v and not v.startswith("/"):
            raise ValueError("pathPrefix must start with /")
        return v.rstrip("/")

    @model_validator(mode="after")
    def _validate_slack(self) -> Self:
        if self.slack_alerts and not self.slack_webhook:
            raise ValueError("slackWebhook required if slackAlerts is set")
        return self

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f) or {})

    def configure_logging(self) -> None:
        """Configure logging based on the multildap configuration."""
        configure_logging(
            name=self.name, profile=self.log_profile, log_level=self.log_level
        )
