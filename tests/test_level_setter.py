import json

import pytest

from oscdmx.errors import SocketCreationError, ValidationError
from oscdmx.level_store import LevelStore
from tests.osc_test_framework import FakeTransport


def _stored(store_path):
    with LevelStore.open(store_path) as store:
        return store.load()


def test_immediate_set_scenario(make_setter, store_path):
    setter, transport = make_setter()
    result = setter.set_level(1, 1, 255, 0, from_level=0)

    assert result and result.ok
    assert len(transport.datagrams) == 1
    msg = transport.messages[0]
    assert msg.address == "/dmx/universe/1"
    assert msg.params == [1, 255]
    assert transport.datagrams[0][16:20] == b",ii\x00"
    assert _stored(store_path) == {1: {1: 255}}
    assert json.loads(store_path.read_text()) == {"1": {"1": 255}}
    assert transport.started == 1 and transport.stopped == 1


def test_fade_scenario(make_setter, store_path, clock):
    setter, transport = make_setter()
    result = setter.set_level(2, 5, 50, 2.0, from_level=200)

    assert result.ok
    assert result.start_level == 200 and result.end_level == 50
    assert len(transport.datagrams) == 101
    assert transport.levels[0] == 200
    assert transport.levels[-1] == 50
    assert all(m.address == "/dmx/universe/2" for m in transport.messages)
    assert clock.sleeps and all(s == pytest.approx(0.02) for s in clock.sleeps)
    assert _stored(store_path) == {2: {5: 50}}


def test_implicit_start_uses_remembered_level(make_setter):
    setter, transport = make_setter()
    setter.set_level(0, 7, 128, 0)

    setter, transport = make_setter()
    result = setter.set_level(0, 7, 0, 1.0)

    assert result.start_level == 128
    assert transport.levels[0] == 128
    assert transport.levels[-1] == 0


def test_implicit_start_defaults_to_zero(make_setter):
    setter, transport = make_setter()
    result = setter.set_level(3, 3, 100, 0.5)
    assert result.start_level == 0
    assert transport.levels[0] == 0


def test_explicit_start_overrides_memory(make_setter):
    setter, _ = make_setter()
    setter.set_level(1, 1, 200, 0)
    setter, transport = make_setter()
    setter.set_level(1, 1, 100, 1.0, from_level=10)
    assert transport.levels[0] == 10


@pytest.mark.parametrize(
    "args",
    [
        dict(universe=-1, channel=1, to_level=0),
        dict(universe=0, channel=0, to_level=0),
        dict(universe=0, channel=513, to_level=0),
        dict(universe=0, channel=1, to_level=256),
        dict(universe=0, channel=1, to_level=-1),
        dict(universe=0, channel=1, to_level=10, from_level=300),
        dict(universe=0, channel=1, to_level=10, duration=-0.1),
        dict(universe=0, channel=1, to_level=10, duration=float("nan")),
        dict(universe="1", channel=1, to_level=10),
    ],
)
def test_validation_fails_before_io(args, store_path, clock):
    from oscdmx.config_loader import OscTargetConfig, StoreConfig
    from oscdmx.level_setter import LevelSetter

    created = []
    setter = LevelSetter(
        OscTargetConfig(host="127.0.0.1", port=7770),
        StoreConfig(path=store_path),
        transport_factory=lambda cfg: created.append(cfg),
        sleep=clock,
    )
    with pytest.raises(ValidationError):
        setter.set_level(**args)
    assert created == []
    assert not store_path.exists()


def test_socket_creation_failure_sends_and_stores_nothing(make_setter, store_path):
    setter, transport = make_setter(transport=FakeTransport(fail_start=True))
    with pytest.raises(SocketCreationError):
        setter.set_level(1, 1, 255, 0)
    assert transport.datagrams == []
    assert not store_path.exists()


def test_send_failure_still_persists_target(make_setter, store_path):
    setter, transport = make_setter(transport=FakeTransport(fail_at={0}))
    result = setter.set_level(1, 2, 77, 0)

    assert not result
    assert not result.delivered and result.persisted
    assert result.failed == 1
    assert _stored(store_path) == {1: {2: 77}}
    assert transport.stopped == 1


def test_send_failure_without_persist_on_failure(make_setter, store_path):
    setter, _ = make_setter(transport=FakeTransport(fail_at={5}), persist_on_failure=False)
    result = setter.set_level(1, 2, 77, 1.0)
    assert not result.delivered
    assert result.persisted
    assert not store_path.exists()


def test_persistence_failure_is_overall_failure(make_setter, store_path):
    store_path.mkdir()
    setter, transport = make_setter()
    result = setter.set_level(1, 1, 10, 0)

    assert result.delivered
    assert not result.persisted
    assert not result.ok
    assert transport.levels == [10]


def test_corrupt_store_self_heals(make_setter, store_path):
    store_path.write_text("not json at all")
    setter, transport = make_setter()
    result = setter.set_level(1, 1, 30, 1.0)

    assert result.ok
    assert result.start_level == 0
    assert _stored(store_path) == {1: {1: 30}}
    assert len(list(store_path.parent.glob("dmx_levels.json.bak.*"))) == 1


def test_configured_step_count(make_setter):
    setter, transport = make_setter(steps=10)
    setter.set_level(1, 1, 90, 1.0, from_level=0)
    assert transport.levels == [0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 90]


def test_non_utf8_store_does_not_escape(make_setter, store_path):
    store_path.write_bytes(b"\xff\xff")
    setter, transport = make_setter()
    result = setter.set_level(1, 1, 10, 0)

    assert result.ok
    assert transport.levels == [10]
    assert _stored(store_path) == {1: {1: 10}}
    assert len(list(store_path.parent.glob("dmx_levels.json.bak.*"))) == 1


class _ExplodingTransport(FakeTransport):
    def send(self, datagram):
        raise RuntimeError("driver crashed")


def test_transport_closed_when_fade_raises(make_setter, store_path):
    setter, transport = make_setter(transport=_ExplodingTransport())
    with pytest.raises(RuntimeError, match="driver crashed"):
        setter.set_level(1, 1, 10, 1.0)
    assert transport.started == 1 and transport.stopped == 1
    assert not store_path.exists()


def test_transport_closed_when_store_raises(make_setter, monkeypatch):
    def broken_load(self):
        raise RuntimeError("store exploded")

    monkeypatch.setattr(LevelStore, "load", broken_load)
    setter, transport = make_setter()
    with pytest.raises(RuntimeError, match="store exploded"):
        setter.set_level(1, 1, 10, 0)
    assert transport.datagrams == []
    assert transport.stopped == 1


@pytest.mark.parametrize("duration", ["1.5", True, None, [1]])
def test_duration_must_be_numeric(make_setter, store_path, duration):
    setter, transport = make_setter()
    with pytest.raises(ValidationError, match="must be a number"):
        setter.set_level(1, 1, 10, duration)
    assert transport.started == 0
    assert not store_path.exists()
