import pytest

from oscdmx.config_loader import FadeConfig, OscTargetConfig, StoreConfig
from tests.osc_test_framework import FakeClock, FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "dmx_levels.json"


@pytest.fixture
def make_setter(store_path, clock):
    """Build a LevelSetter wired to a FakeTransport; returns (setter, transport)."""
    from oscdmx.level_setter import LevelSetter

    def _make(transport=None, steps=100, persist_on_failure=True):
        transport = transport or FakeTransport()
        setter = LevelSetter(
            OscTargetConfig(host="127.0.0.1", port=7770),
            StoreConfig(path=store_path, persist_on_failure=persist_on_failure),
            FadeConfig(steps=steps),
            transport_factory=lambda cfg: transport,
            sleep=clock,
        )
        return setter, transport

    return _make
