"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for convox_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from drain_controller.models import SyslogDrainSpec  # noqa: E402


@pytest.fixture
def drain_data() -> dict:
    """Declared drain from the reference scenario."""
    return {
        "name": "logs1",
        "cluster": "prod",
        "hostname": "logs.example.com",
        "port": 514,
        "scheme": "tcp",
        "private": True,
    }


@pytest.fixture
def drain_spec(drain_data: dict) -> SyslogDrainSpec:
    """Validated declaration built from drain_data."""
    return SyslogDrainSpec.model_validate(drain_data)
