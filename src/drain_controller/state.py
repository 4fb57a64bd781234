"""Persistence of recorded drain state between runs.

The state file records, for every drain the controller created, the
declaration it was created or last updated with plus the computed URL.
It is the controller's only memory of what exists remotely.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import SyslogDrainSpec
from .spec_loader import SpecLoadError, read_yaml_documents

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


class StateLoadError(Exception):
    """Raised when the state file cannot be read or is malformed."""

    pass


def _file_mode(path: Path) -> int:
    """Permission bits for a saved state file.

    An existing file keeps its mode; a new one gets 0666 less the umask,
    as ``open()`` would give it.
    """
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


class StateStore:
    """YAML-backed map of drain name to recorded declaration."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._drains: dict[str, SyslogDrainSpec] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def drains(self) -> dict[str, SyslogDrainSpec]:
        """Recorded drains keyed by name (a copy)."""
        return dict(self._drains)

    def get(self, name: str) -> SyslogDrainSpec | None:
        return self._drains.get(name)

    def put(self, spec: SyslogDrainSpec) -> None:
        self._drains[spec.name] = spec.model_copy()

    def remove(self, name: str) -> bool:
        return self._drains.pop(name, None) is not None

    def load(self) -> StateStore:
        """Load recorded state. A missing file means nothing is recorded."""
        if not self._path.exists():
            logger.info("No state file, starting empty", extra={"state_path": str(self._path)})
            self._drains = {}
            return self

        try:
            documents = read_yaml_documents(self._path, MAX_STATE_FILE_SIZE_BYTES, label="State")
        except SpecLoadError as e:
            raise StateLoadError(str(e)) from e

        if not documents:
            self._drains = {}
            return self
        if len(documents) > 1 or not isinstance(documents[0], dict):
            raise StateLoadError(f"State file must contain a single YAML mapping: {self._path}")

        raw = documents[0]
        version = raw.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateLoadError(
                f"Unsupported state format version {version!r} in {self._path}, "
                f"expected {STATE_FORMAT_VERSION}"
            )

        records = raw.get("drains") or {}
        if not isinstance(records, dict):
            raise StateLoadError(f"'drains' must be a mapping in {self._path}")

        drains: dict[str, SyslogDrainSpec] = {}
        for name, record in records.items():
            try:
                spec = SyslogDrainSpec.from_state(record)
            except ValidationError as e:
                raise StateLoadError(f"Invalid state record '{name}' in {self._path}: {e}") from e
            if spec.name != name:
                raise StateLoadError(
                    f"State record key '{name}' does not match drain name '{spec.name}'"
                )
            drains[name] = spec

        self._drains = drains
        logger.info(
            "Loaded state",
            extra={"state_path": str(self._path), "drain_count": len(drains)},
        )
        return self

    def save(self) -> None:
        """Write recorded state atomically (temp file then rename)."""
        payload = {
            "version": STATE_FORMAT_VERSION,
            "drains": {name: self._drains[name].to_state() for name in sorted(self._drains)},
        }
        content = yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)

        directory = self._path.parent if str(self._path.parent) else Path(".")
        directory.mkdir(parents=True, exist_ok=True)

        mode = _file_mode(self._path)
        fd, tmp_name = tempfile.mkstemp(prefix=".drains-state-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(
            "Saved state",
            extra={"state_path": str(self._path), "drain_count": len(self._drains)},
        )
