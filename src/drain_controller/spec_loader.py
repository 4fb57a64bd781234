"""Spec file loading with validation.

Declared drains are read from YAML in one of two shapes:

Kubernetes-style documents, one drain per document::

    apiVersion: drains/v1
    kind: SyslogDrain
    metadata: {name: logs1}
    spec: {name: logs1, cluster: prod, hostname: logs.example.com, port: 514, scheme: tcp}

or a flat list::

    drains:
      - {name: logs1, cluster: prod, ...}

All file operations enforce a size limit. Input validation is performed at
the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import SyslogDrainSpec

logger = logging.getLogger(__name__)

SPEC_KIND = "SyslogDrain"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def read_yaml_documents(path: Path, max_size: int, label: str = "Spec") -> list[Any]:
    """Read every YAML document from a size-limited file.

    Raises:
        SpecLoadError: If the file is missing, too large, unreadable or not YAML.
    """
    if not path.exists():
        raise SpecLoadError(f"{label} file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat {label.lower()} file {path}: {e}") from e

    if file_size > max_size:
        raise SpecLoadError(f"{label} file exceeds maximum size of {max_size} bytes: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read {label.lower()} file {path}: {e}") from e

    try:
        return [doc for doc in yaml.safe_load_all(content) if doc is not None]
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e


def _extract_drain_entries(document: Any, path: Path) -> list[Any]:
    if not isinstance(document, dict):
        raise SpecLoadError(f"Spec document must be a YAML mapping: {path}")

    if "apiVersion" in document and "spec" in document:
        kind = document.get("kind", SPEC_KIND)
        if kind != SPEC_KIND:
            raise SpecLoadError(f"Unsupported kind '{kind}' in {path}, expected '{SPEC_KIND}'")
        return [document["spec"]]

    if "drains" in document:
        drains = document["drains"]
        if not isinstance(drains, list):
            raise SpecLoadError(f"'drains' must be a list: {path}")
        return drains

    raise SpecLoadError(
        f"Spec document must contain either apiVersion/kind/spec or a 'drains' list: {path}"
    )


def parse_drain(data: Any, source: str) -> SyslogDrainSpec:
    """Validate a single declared drain mapping.

    Raises:
        SpecLoadError: If the data is not a valid declaration.
    """
    if not isinstance(data, dict):
        raise SpecLoadError(f"Drain entry must be a mapping in {source}")

    if "url" in data:
        raise SpecLoadError(f"'url' is computed and cannot be declared in {source}")

    try:
        return SyslogDrainSpec.model_validate(data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e


def load_specs(path: Path) -> list[SyslogDrainSpec]:
    """Load and validate all declared drains from a YAML file.

    Args:
        path: The spec file.

    Returns:
        Validated declarations in file order.

    Raises:
        SpecLoadError: If the file cannot be loaded, fails validation, or
            declares the same drain name twice.
    """
    specs: list[SyslogDrainSpec] = []
    seen: set[str] = set()

    for document in read_yaml_documents(path, MAX_SPEC_FILE_SIZE_BYTES):
        for index, entry in enumerate(_extract_drain_entries(document, path)):
            spec = parse_drain(entry, f"{path} (entry {index})")
            if spec.name in seen:
                raise SpecLoadError(f"Duplicate drain name '{spec.name}' in {path}")
            seen.add(spec.name)
            specs.append(spec)

    logger.info("Loaded %d drain spec(s) from %s", len(specs), path)
    return specs
