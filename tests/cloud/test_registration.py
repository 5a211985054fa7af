import pytest

from keto_tokens.cloud.registration import (
    COMPLETED_TAG_VALUE,
    RegistrationState,
    RegistrationTag,
    TagState,
)
from keto_tokens.errors import NotFoundError


def test_from_raw():
    assert RegistrationState.from_raw(None) == RegistrationState(TagState.ABSENT)
    assert RegistrationState.from_raw("Success") == RegistrationState(TagState.CLAIMED)
    offered = RegistrationState.from_raw("abcdef.0123456789abcdef")
    assert offered.state is TagState.OFFERED
    assert offered.token == "abcdef.0123456789abcdef"


def test_present():
    assert not RegistrationState(TagState.ABSENT).present
    assert RegistrationState(TagState.OFFERED, "t").present
    assert RegistrationState(TagState.CLAIMED).present


def test_empty_value_counts_as_offered():
    # any present value, even an empty one, means the node was already handled
    assert RegistrationState.from_raw("").state is TagState.OFFERED


def test_offer_then_claim(make_tag_store):
    store = make_tag_store(node_tags={"i-1": {"Role": "compute"}})
    reg = RegistrationTag(store, "KubeletToken")

    assert reg.read("i-1").state is TagState.ABSENT
    reg.offer("i-1", "abcdef.0123456789abcdef")
    assert reg.read("i-1") == RegistrationState(TagState.OFFERED, "abcdef.0123456789abcdef")

    reg.mark_claimed("i-1")
    assert reg.read("i-1").state is TagState.CLAIMED
    assert store.nodes["i-1"] == {"Role": "compute", "KubeletToken": COMPLETED_TAG_VALUE}


def test_offer_refuses_completion_marker(make_tag_store):
    store = make_tag_store(node_tags={"i-1": {}})
    with pytest.raises(ValueError):
        RegistrationTag(store).offer("i-1", COMPLETED_TAG_VALUE)
    assert store.writes == []


def test_custom_tag_name(make_tag_store):
    store = make_tag_store(node_tags={"i-1": {"KubeletToken": "Success"}})
    reg = RegistrationTag(store, "BootToken")
    assert reg.read("i-1").state is TagState.ABSENT


def test_unknown_node(make_tag_store):
    with pytest.raises(NotFoundError):
        RegistrationTag(make_tag_store()).read("i-missing")
