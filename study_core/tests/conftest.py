import pytest

from study_core.tests.fakes import FakeHistoryStore


@pytest.fixture
def store():
    return FakeHistoryStore()


@pytest.fixture
def events():
    return []
