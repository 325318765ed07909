# tests/conftest.py

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure src/ is on sys.path for test imports like `import embodiment`, `import env`.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"

if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from embodiment.testing import FakeWorldClient, make_scheduler  # noqa: E402


@pytest.fixture
def sched():
    """(scheduler, manual clock) pair starting at t=0 ms."""
    return make_scheduler()


@pytest.fixture
def client() -> FakeWorldClient:
    return FakeWorldClient()
