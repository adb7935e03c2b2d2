import sys
from pathlib import Path

import pytest

# Ensure `local_competitors` is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from local_competitors.core.budget import PLACES_CHANNEL, BudgetGuard  # noqa: E402


@pytest.fixture
def guard():
    return BudgetGuard({PLACES_CHANNEL: 1000}, window_seconds=600)
