import pytest

from retail_dashboard.domain.time_window import TimeWindow
from retail_dashboard.services.refresh import RefreshCoordinator
from tests.factories import BUSINESS_TZ, NOW, FakeRecordSource


@pytest.fixture
def window():
    return TimeWindow(now=NOW)


@pytest.fixture
def make_coordinator():
    def _build(source: FakeRecordSource, **kwargs) -> RefreshCoordinator:
        kwargs.setdefault("timeout", 1.0)
        kwargs.setdefault("tz", BUSINESS_TZ)
        kwargs.setdefault("clock", lambda: NOW)
        return RefreshCoordinator(source, **kwargs)

    return _build
