"""Models for health checks."""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field

__all__ = [
    "HealthCheck",
    "HealthStatus",
]


class HealthStatus(str, Enum):
    """Status of health check.

    The health check only verifies that the application is running and
    configured. Availability of the LDAP servers is reported separately by
    the status route, since one unavailable server does not make the
    federation unhealthy.
    """

    HEALTHY = "healthy"


class HealthCheck(BaseModel):
    """Results of an internal health check."""

    status: Annotated[HealthStatus, Field(title="Health status")]

    servers: Annotated[
        int, Field(title="Number of configured LDAP servers", ge=0)
    ]
