"""Auth test fixtures: Valkey backed by a plain dict."""

from unittest.mock import Mock

import pytest

from clients.valkey_client import ValkeyClient


@pytest.fixture
def store() -> dict:
    """Key -> (value, expire_seconds) as written through the fake client."""
    return {}


@pytest.fixture
def valkey(store):
    """ValkeyClient double whose JSON helpers read and write `store`."""
    client = Mock(spec=ValkeyClient)

    def set_json(key, value, expire_seconds=None):
        store[key] = (value, expire_seconds)

    def get_json(key):
        entry = store.get(key)
        return entry[0] if entry else None

    def take_json(key):
        entry = store.pop(key, None)
        return entry[0] if entry else None

    def delete(key):
        return store.pop(key, None) is not None

    client.set_json.side_effect = set_json
    client.get_json.side_effect = get_json
    client.take_json.side_effect = take_json
    client.delete.side_effect = delete
    return client
