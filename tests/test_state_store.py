"""Tests for the durable state store."""

from scanjobs.services.state_store import StateStore


def test_set_get_delete(store):
    """Values round-trip as whole JSON documents."""
    assert store.get("missing") is None
    assert store.get("missing", {}) == {}

    store.set("job", {"id": "a", "queue": [1, 2, 3]})
    assert store.get("job") == {"id": "a", "queue": [1, 2, 3]}

    store.set("job", {"id": "b"})
    assert store.get("job") == {"id": "b"}

    assert store.delete("job") is True
    assert store.get("job") is None
    assert store.delete("job") is False


def test_token_expires(store, clock):
    store.set_token("oauth_state", "xyz", ttl=60)
    assert store.get_token("oauth_state") == "xyz"

    clock.advance(61)
    assert store.get_token("oauth_state") is None
    # Expired token was removed
    assert store.delete_token("oauth_state") is False


def test_tokens_do_not_shadow_options(store):
    store.set_token("job", "ephemeral", ttl=60)

    assert store.get("job") is None
    assert store.get_token("job") == "ephemeral"


def test_state_token_is_single_use(store):
    token = store.generate_state_token(ttl=60)

    assert store.validate_state_token(token) is True
    assert store.validate_state_token(token) is False
    assert store.validate_state_token("") is False
    assert store.validate_state_token("forged") is False


def test_state_token_expiry(store, clock):
    token = store.generate_state_token(ttl=10)
    clock.advance(10)

    assert store.validate_state_token(token) is False


def test_purge_expired_tokens(session_factory, clock):
    store = StateStore(session_factory, clock=clock)
    store.set_token("a", 1, ttl=5)
    store.set_token("b", 2, ttl=50)
    store.set("durable", 3)

    clock.advance(10)

    assert store.purge_expired_tokens() == 1
    assert store.get_token("b") == 2
    assert store.get("durable") == 3
