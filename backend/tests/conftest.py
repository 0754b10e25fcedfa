import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def no_directory_throttle(monkeypatch):
    """Tests never wait out the Nominatim politeness interval."""
    from services import geocoding

    monkeypatch.setattr(geocoding, "_MIN_INTERVAL_SEC", 0.0)
