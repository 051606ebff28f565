"""Config dependency for FastAPI."""

from __future__ import annotations

import os
from pathlib import Path

from ..config import Config
from ..constants import CONFIG_PATH

__all__ = ["ConfigDependency", "config_dependency"]


class ConfigDependency:
    """Provides the multildap configuration as a dependency.

    The configuration file is read from ``MULTILDAP_CONFIG_PATH``, or from
    the default path if that is not set, the first time it is needed.
    Loading it also configures logging.
    """

    def __init__(self) -> None:
        self._path = Path(os.getenv("MULTILDAP_CONFIG_PATH", CONFIG_PATH))
        self._config: Config | None = None

    async def __call__(self) -> Config:
        return self.config()

    def config(self) -> Config:
        """Return the configuration, loading it if needed.

        Unlike calling the dependency, this is not async, so the command-line
        interface and synchronous test helpers can use it.
        """
        if self._config is None:
            self._config = self._load()
        return self._config

    def set_config_path(self, path: Path) -> None:
        """Switch to a different configuration file and load it.

        Parameters
        ----------
        path
            Path to the new configuration file.
        """
        self._path = path
        self._config = self._load()

    def _load(self) -> Config:
        config = Config.from_file(self._path)
        config.configure_logging()
        return config


config_dependency = ConfigDependency()
"""The dependency that will return the current configuration."""
