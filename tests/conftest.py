from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from toolscribe.core.ids import IdentifierResolver  # noqa: E402


@pytest.fixture
def sequential_ids() -> Callable[[], IdentifierResolver]:
    """Build resolvers handing out ``call-1``, ``call-2``... for generated ids."""

    def _factory(prefix: str = "call") -> IdentifierResolver:
        counter = iter(range(1, 1_000_000))
        return IdentifierResolver(lambda: f"{prefix}-{next(counter)}")

    return _factory
