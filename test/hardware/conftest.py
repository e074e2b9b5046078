import os

import pytest

from ut181a.device import enumerate_candidates


@pytest.fixture(scope="session")
def attached_meters():
    """Meters currently attached over USB."""
    return enumerate_candidates()


@pytest.fixture(scope="session")
def meter_serial(attached_meters):
    """Serial string of the meter to test, from UT181A_SERIAL if set.

    Skips when no meter is attached, or when several are and none is chosen.
    """
    serial = os.environ.get("UT181A_SERIAL")
    if not attached_meters:
        pytest.skip("No UT181A attached")
    if serial is None and len(attached_meters) > 1:
        pytest.skip("Several meters attached, set UT181A_SERIAL to pick one")
    return serial
