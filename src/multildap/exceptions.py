"""Exceptions for multildap."""

from __future__ import annotations

from typing import ClassVar

from fastapi import status
from safir.slack.blockkit import SlackException, SlackWebException
from safir.slack.webhook import SlackIgnoredException

__all__ = [
    "APIError",
    "AuthenticationFailedError",
    "ExternalUserInfoError",
    "LDAPError",
    "NotConfiguredError",
    "OrganizationLookupError",
    "OrganizationLookupWebError",
    "OrganizationNotFoundError",
    "TeamLookupError",
    "TeamLookupWebError",
    "UserNotFoundError",
]


class APIError(SlackIgnoredException):
    """An error that is reported directly to the client of the API.

    These errors are caused by the request or by configuration and are not
    reported to Slack.

    The body of the error response has a ``message`` key holding the summary
    message of the error class and, if the exception carries more detail, an
    ``error`` key holding that detail.

    Parameters
    ----------
    error
        Detailed description of the error, if any.
    """

    message: ClassVar[str] = "Unknown error"
    """Summary message returned to the client."""

    status_code: ClassVar[int] = status.HTTP_400_BAD_REQUEST
    """The status code to use for this HTTP error."""

    def __init__(self, error: str | None = None) -> None:
        super().__init__(error or self.message)
        self.error = error

    def to_dict(self) -> dict[str, str]:
        """Convert the exception to the body of an error response."""
        result = {"message": self.message}
        if self.error:
            result["error"] = self.error
        return result


class NotConfiguredError(APIError):
    """LDAP is disabled in the configuration."""

    message = "LDAP is not enabled"


class OrganizationNotFoundError(APIError):
    """A role refers to an organization that does not exist.

    This means the group mappings of the LDAP server that returned the user
    reference an organization ID that is not known, which is a
    misconfiguration.

    Parameters
    ----------
    org_id
        ID of the organization that could not be found.
    """

    message = (
        "An oganization was not found - Please verify your LDAP configuration"
    )

    def __init__(self, org_id: int) -> None:
        super().__init__(f"Unable to find organization with ID '{org_id}'")
        self.org_id = org_id


class UserNotFoundError(APIError):
    """No server in the federation has a user with the requested login."""

    message = "No user was found on the LDAP server(s)"
    status_code = status.HTTP_404_NOT_FOUND


class AuthenticationFailedError(Exception):
    """No server in the federation accepted the provided credentials."""


class ExternalUserInfoError(SlackException):
    """Error in external user information source.

    This is the base exception for any error in retrieving information from
    an LDAP server or from the organization and team APIs. External sources
    of data may be affected by an external outage.
    """


class LDAPError(ExternalUserInfoError):
    """An LDAP server was unreachable, timed out, or returned invalid data."""


class OrganizationLookupError(ExternalUserInfoError):
    """The organization API returned an invalid reply."""


class OrganizationLookupWebError(SlackWebException, OrganizationLookupError):
    """A web request to the organization API failed."""


class TeamLookupError(ExternalUserInfoError):
    """The team API returned an invalid reply."""


class TeamLookupWebError(SlackWebException, TeamLookupError):
    """A web request to the team API failed."""
