"""Models for error responses."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

__all__ = ["ErrorResponse"]


class ErrorResponse(BaseModel):
    """Body of an error response from the LDAP debug API."""

    message: Annotated[str, Field(title="Summary of the error")]

    error: Annotated[
        str | None,
        Field(title="Details of the error, if any"),
    ] = None
