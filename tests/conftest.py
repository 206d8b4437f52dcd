import pytest

from storefront.storage import MemoryStorage

from tests.fakes import FakeRateProvider


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def rates() -> FakeRateProvider:
    return FakeRateProvider()
