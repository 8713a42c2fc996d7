import pytest

from tests.fakes import FakeClock


@pytest.fixture
def fake_clock():
    return FakeClock()
