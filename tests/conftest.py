import pytest

from tests.helpers import FakeTransport


@pytest.fixture
def fake_transport():
    return FakeTransport()
