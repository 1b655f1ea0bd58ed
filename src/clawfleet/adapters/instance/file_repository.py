"""Filesystem-backed storage for instance metadata."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List

from clawfleet.domain.errors import ConfigError, UnknownInstance
from clawfleet.domain.instance import Instance, validate_instance_name
from clawfleet.ports.instance_repository import InstanceRepository

METADATA_FILENAME = "metadata.json"


class FileInstanceRepository(InstanceRepository):
    """Stores one ``<root>/<name>/metadata.json`` document per instance."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self.skipped: Dict[str, str] = {}

    @property
    def root(self) -> Path:
        return self._root

    def get(self, name: str) -> Instance:
        try:
            validate_instance_name(name)
        except ValueError as exc:
            raise UnknownInstance(name) from exc
        path = self._metadata_path(name)
        if not path.exists():
            raise UnknownInstance(name)
        return self._read(path, name)

    def put(self, instance: Instance) -> None:
        path = self._metadata_path(instance.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(instance.to_dict(), ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        _atomic_write(path, payload)

    def list(self) -> List[Instance]:
        self.skipped = {}
        if not self._root.exists():
            return []
        instances: List[Instance] = []
        for entry in sorted(self._root.iterdir()):
            path = entry / METADATA_FILENAME
            if not entry.is_dir() or not path.exists():
                continue
            try:
                instances.append(self._read(path, entry.name))
            except ConfigError as exc:
                self.skipped[entry.name] = str(exc)
        return instances

    def _metadata_path(self, name: str) -> Path:
        return self._root / name / METADATA_FILENAME

    def _read(self, path: Path, name: str) -> Instance:
        try:
            data = json.loads(path.read_text("utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"metadata for '{name}' is not valid JSON: {exc}") from exc
        try:
            return Instance.from_dict(data, name=name)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc


def _atomic_write(path: Path, data: str) -> None:
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


__all__ = ["FileInstanceRepository"]
