"""Discovery records that let agent clients find a running WebSocket listener.

A client scans ``<config-dir>/ide/*.lock``; each file is named after the port
of one live server and holds a small JSON record describing it.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"


def resolve_config_dir(
    environ: Mapping[str, str] | None = None,
    *,
    home: Path | None = None,
    platform: str | None = None,
) -> Path:
    """Resolve the agent client's configuration directory.

    Resolution order: the ``CLAUDE_CONFIG_DIR`` override, then the modern
    location (``$XDG_CONFIG_HOME/claude``, ``%APPDATA%\\claude`` on Windows),
    then the legacy ``~/.claude``. The first directory that exists wins; when
    neither exists the modern location is returned.

    Args:
        environ: Environment to read, defaults to ``os.environ``.
        home: Home directory, defaults to :meth:`Path.home`.
        platform: Platform tag, defaults to ``sys.platform``.

    Returns:
        The configuration directory. It is not created here.

    """
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)

    home_dir = Path.home() if home is None else home
    if (platform or sys.platform) == "win32":
        base = env.get("APPDATA") or str(home_dir / "AppData" / "Roaming")
    else:
        base = env.get("XDG_CONFIG_HOME") or str(home_dir / ".config")
    modern = Path(base) / "claude"
    legacy = home_dir / ".claude"

    for candidate in (modern, legacy):
        if candidate.is_dir():
            return candidate
    return modern


class DiscoveryRecord(BaseModel):
    """JSON body of a ``<port>.lock`` discovery file."""

    model_config = ConfigDict(populate_by_name=True)

    pid: int
    workspace_folders: list[str] = Field(default_factory=list, alias="workspaceFolders")
    ide_name: str = Field(alias="ideName")
    transport: Literal["ws"] = "ws"

    def to_json(self) -> str:
        """Serialize with the wire field names."""
        return self.model_dump_json(by_alias=True)


class DiscoveryPublisher:
    """Write, update and remove the discovery record for one listener."""

    def __init__(self, config_dir: Path | None = None, ide_name: str = "Vault") -> None:
        """Create a publisher.

        Args:
            config_dir: Configuration directory; resolved from the environment
                when omitted.
            ide_name: Name written into the record.

        """
        self.config_dir = config_dir if config_dir is not None else resolve_config_dir()
        self.ide_name = ide_name
        self._path: Path | None = None

    @property
    def ide_dir(self) -> Path:
        """Folder holding one lock file per running server."""
        return self.config_dir / "ide"

    @property
    def path(self) -> Path | None:
        """Path of the published record, or ``None`` before publishing."""
        return self._path

    def publish(self, port: int, workspace_folders: list[str] | None = None) -> Path:
        """Write the record for ``port``, creating directories as needed.

        Raises:
            OSError: If the directory or file cannot be written.

        """
        self.ide_dir.mkdir(parents=True, exist_ok=True)
        path = self.ide_dir / f"{port}.lock"
        record = DiscoveryRecord(
            pid=os.getpid(),
            workspace_folders=list(workspace_folders or []),
            ide_name=self.ide_name,
        )
        path.write_text(record.to_json(), encoding="utf-8")
        self._path = path
        logger.info("Discovery record written to %s", path)
        return path

    def read(self) -> DiscoveryRecord | None:
        """Load the published record, or ``None`` if there is none."""
        if self._path is None or not self._path.exists():
            return None
        return DiscoveryRecord.model_validate_json(
            self._path.read_text(encoding="utf-8")
        )

    def update_workspace_folders(self, workspace_folders: list[str]) -> None:
        """Rewrite ``workspaceFolders`` in the published record.

        Does nothing when no record has been published.
        """
        record = self.read()
        if record is None or self._path is None:
            logger.debug("No discovery record to update")
            return
        record.workspace_folders = list(workspace_folders)
        self._path.write_text(record.to_json(), encoding="utf-8")
        logger.debug("Discovery record workspace set to %s", workspace_folders)

    def remove(self) -> None:
        """Delete the published record; a missing file is ignored."""
        if self._path is None:
            return
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        else:
            logger.info("Discovery record removed from %s", self._path)
        self._path = None
