from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_HOME = ROOT / ".test_place" / "clawfleet-home"
os.environ.setdefault("CLAWFLEET_HOME", str(SANDBOX_HOME))
SANDBOX_HOME.mkdir(parents=True, exist_ok=True)
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from clawfleet.adapters.instance import FileInstanceRepository  # noqa: E402
from clawfleet.settings import RuntimeSettings  # noqa: E402


@pytest.fixture()
def runtime_settings(tmp_path: Path) -> RuntimeSettings:
    base = tmp_path / "runtime"
    settings = RuntimeSettings(
        home_dir=base,
        instances_dir=base / "instances",
        log_dir=base / "logs",
    )
    for directory in (settings.home_dir, settings.instances_dir, settings.log_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture()
def repository(runtime_settings: RuntimeSettings) -> FileInstanceRepository:
    return FileInstanceRepository(runtime_settings.instances_dir)
