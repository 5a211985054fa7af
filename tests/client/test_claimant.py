import threading

import pytest

from keto_tokens.client.claimant import Claimant, ClaimStatus
from keto_tokens.cloud.registration import COMPLETED_TAG_VALUE
from keto_tokens.config.models import ClientConfig
from keto_tokens.errors import ConfigInvalidError, NotFoundError, TimedOutError
from keto_tokens.config.loader import build_config
from keto_tokens.observers.dispatcher import EventBus

TAG = "KubeletToken"
TOKEN = "abcdef.0123456789abcdef"


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _claimant(store, capture=None, clock=None, **kw):
    cfg = ClientConfig(**{"interval_seconds": 0.01, **kw})
    bus = EventBus([capture]) if capture is not None else None
    if clock is None:
        return Claimant(cfg, store, bus=bus)
    return Claimant(cfg, store, bus=bus, clock=clock, sleep=clock.sleep)


def test_claims_offered_token(make_tag_store, capture):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {TAG: TOKEN}})
    clock = FakeClock()

    result = _claimant(store, capture, clock).start()

    assert result.status is ClaimStatus.CLAIMED
    assert result.claimed
    assert result.token == TOKEN
    assert result.node == "i-1"
    assert store.nodes["i-1"][TAG] == COMPLETED_TAG_VALUE
    # first poll happens before any wait
    assert clock.sleeps == []
    assert capture.kinds() == ["TokenClaimed"]


def test_already_consumed_is_not_an_error(make_tag_store, capture):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {TAG: COMPLETED_TAG_VALUE}})

    result = _claimant(store, capture, FakeClock()).start()

    assert result.status is ClaimStatus.ALREADY_CONSUMED
    assert not result.claimed
    assert result.token is None
    assert store.writes == []
    assert capture.kinds() == ["TokenAlreadyConsumed"]


def test_times_out_when_no_token_arrives(make_tag_store, capture):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {}})
    clock = FakeClock()

    with pytest.raises(TimedOutError):
        _claimant(store, capture, clock, interval_seconds=5, timeout_seconds=12).start()

    # waits are clipped to the deadline
    assert clock.sleeps == [5, 5, 2]
    assert store.writes == []
    assert capture.kinds() == ["ClaimWaiting", "ClaimTimedOut"]
    assert capture.events[-1].timeout_s == 12


def test_waits_for_token_written_later(make_tag_store, capture):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {}})
    timer = threading.Timer(0.05, lambda: store.set_node_tags("i-1", {TAG: TOKEN}))
    timer.start()
    try:
        result = _claimant(store, capture, timeout_seconds=5).start()
    finally:
        timer.cancel()

    assert result.token == TOKEN
    assert store.nodes["i-1"][TAG] == COMPLETED_TAG_VALUE
    assert capture.kinds() == ["ClaimWaiting", "TokenClaimed"]


def test_real_timeout(make_tag_store):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {}})
    with pytest.raises(TimedOutError):
        _claimant(store, timeout_seconds=0.05).start()


def test_custom_tag_name(make_tag_store):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {TAG: "Success", "Boot": TOKEN}})
    result = _claimant(store, clock=FakeClock(), tag_name="Boot").start()
    assert result.token == TOKEN
    assert store.nodes["i-1"]["Boot"] == COMPLETED_TAG_VALUE


def test_tag_store_errors_propagate(make_tag_store):
    store = make_tag_store(node_id="i-unknown")
    with pytest.raises(NotFoundError):
        _claimant(store, clock=FakeClock(), timeout_seconds=30).start()


def test_write_failure_propagates(make_tag_store):
    store = make_tag_store(node_id="i-1", node_tags={"i-1": {TAG: TOKEN}})
    store.fail_writes.add("i-1")
    with pytest.raises(RuntimeError):
        _claimant(store, clock=FakeClock()).start()
    assert store.nodes["i-1"][TAG] == TOKEN


def test_zero_timeout_means_wait_forever():
    assert ClientConfig(timeout_seconds=0).timeout_seconds is None


@pytest.mark.parametrize("bad", [
    {"tag_name": " "},
    {"interval_seconds": 0},
    {"timeout_seconds": -1},
])
def test_invalid_client_config(bad):
    with pytest.raises(ConfigInvalidError):
        build_config(ClientConfig, bad)
