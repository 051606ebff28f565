"""Enums used in multildap models."""

from __future__ import annotations

from enum import Enum

__all__ = ["OrgRole"]


class OrgRole(str, Enum):
    """Role of a user within an organization."""

    viewer = "Viewer"
    """May view dashboards and data."""

    editor = "Editor"
    """May also create and modify content."""

    admin = "Admin"
    """May also manage the organization and its members."""
