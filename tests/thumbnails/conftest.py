import pytest

from tests.thumbnails.factories import FakeModeratorClient


@pytest.fixture
def fake_client():
    return FakeModeratorClient()
