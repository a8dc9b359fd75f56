"""Tests for ConfigDataStore."""

import pytest

from deploy_verifier.config_store import ConfigDataStore


@pytest.mark.unit
class TestCreateOrReplace:

    def test_creates_when_absent(self, fake_kube):
        store = ConfigDataStore(fake_kube)

        store.create_or_replace("app-config", {"k": "v1"})

        assert fake_kube.calls == [("create_config_map", "app-config")]
        assert store.get("app-config") == {"k": "v1"}

    def test_replaces_when_present(self, fake_kube):
        store = ConfigDataStore(fake_kube)

        store.create_or_replace("app-config", {"k": "v1"})
        store.create_or_replace("app-config", {"k": "v2"})

        assert fake_kube.calls[-1] == ("replace_config_map", "app-config")
        assert store.get("app-config") == {"k": "v2"}

    def test_replace_does_not_merge_keys(self, fake_kube):
        store = ConfigDataStore(fake_kube)

        store.create_or_replace("app-config", {"a": "1", "b": "2"})
        store.create_or_replace("app-config", {"b": "3"})

        assert store.get("app-config") == {"b": "3"}

    def test_caller_mapping_is_not_shared(self, fake_kube):
        store = ConfigDataStore(fake_kube)
        data = {"k": "v1"}

        store.create_or_replace("app-config", data)
        data["k"] = "changed"

        assert store.get("app-config") == {"k": "v1"}


@pytest.mark.unit
def test_delete(fake_kube):
    store = ConfigDataStore(fake_kube)
    store.create_or_replace("app-config", {"k": "v"})

    assert store.delete("app-config") is True
    assert store.delete("app-config") is False
    assert store.get("app-config") is None
