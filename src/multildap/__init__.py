"""Federated LDAP identity resolution and health checks."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("multildap")
except PackageNotFoundError:
    # Package not installed.
    __version__ = "0.0.0"
