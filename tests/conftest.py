import pytest

from tests.handshake_helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
