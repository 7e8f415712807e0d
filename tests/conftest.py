"""
Pytest configuration and shared fixtures.
"""

import os
import random

import pytest

from src.simulator.models import SimulatorParameters
from src.simulator.slot_filler import SlotFiller


@pytest.fixture(autouse=True, scope="function")
def reset_environment():
    """
    Keep auth and WHATIF_* settings out of tests unless a test sets them.

    Auth is disabled by default; any WHATIF_* variables from the developer's
    shell are removed for the duration of the test.
    """
    saved = {
        key: value for key, value in os.environ.items()
        if key.startswith("WHATIF_") or key in ("API_AUTH_ENABLED", "API_KEY")
    }
    for key in saved:
        del os.environ[key]
    os.environ["API_AUTH_ENABLED"] = "false"

    yield

    for key in list(os.environ):
        if key.startswith("WHATIF_") or key in ("API_AUTH_ENABLED", "API_KEY"):
            del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def slot_filler(rng):
    return SlotFiller(rng=rng)


@pytest.fixture
def mystery_params():
    """Normalized mystery request with a character and setting."""
    from src.simulator.engine import normalize_parameters

    return normalize_parameters({
        "character": {"name": "Mara", "traits": ["Curious", "stubborn"]},
        "setting": {"era": "1920s", "place": "a quiet village", "mood": "uneasy"},
        "event": "a letter arrives",
        "genre": "mystery",
        "tone": "dark",
    })


@pytest.fixture
def empty_params():
    from src.simulator.engine import normalize_parameters

    return normalize_parameters(SimulatorParameters())
