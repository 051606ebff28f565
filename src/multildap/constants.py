"""Constants for multildap."""

__all__ = [
    "CONFIG_PATH",
    "DEFAULT_LDAP_PORT",
    "DEFAULT_LDAPS_PORT",
    "DEFAULT_SEARCH_FILTER",
    "HTTP_TIMEOUT",
    "LDAP_TIMEOUT",
    "WILDCARD_GROUP_DN",
]

CONFIG_PATH = "/etc/multildap/multildap.yaml"
"""Default configuration path."""

DEFAULT_LDAP_PORT = 389
"""Port used for plain or StartTLS LDAP connections if none is configured."""

DEFAULT_LDAPS_PORT = 636
"""Port used for LDAP over SSL if none is configured."""

DEFAULT_SEARCH_FILTER = "(cn=%s)"
"""User search filter if none is configured.

``%s`` is replaced with the escaped login being searched for.
"""

HTTP_TIMEOUT = 20.0
"""Timeout (in seconds) for requests to the organization and team APIs."""

LDAP_TIMEOUT = 10.0
"""Default timeout (in seconds) for each LDAP network operation.

Each server may override this with its own ``timeout`` setting. The timeout
bounds every connect, bind, search, and probe separately so that one
unresponsive server cannot stall calls to the rest of the federation.
"""

WILDCARD_GROUP_DN = "*"
"""Group DN in a group mapping that matches every user."""
