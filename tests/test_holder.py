import pytest

import unifi_client
from unifi_client import ClientHolder, ConfigError


def test_instance_before_initialize_fails():
    holder = ClientHolder()
    assert not holder.is_initialized
    with pytest.raises(ConfigError, match="not initialized"):
        holder.instance()


def test_initialize_once(make_client):
    holder = ClientHolder()
    client = make_client()

    assert holder.initialize(client) is client
    assert holder.instance() is client


def test_second_initialize_keeps_first_client(make_client):
    holder = ClientHolder()
    first, second = make_client(), make_client()
    holder.initialize(first)

    with pytest.raises(ConfigError, match="already initialized"):
        holder.initialize(second)
    assert holder.instance() is first


def test_reinitialize_with_same_client_is_noop(make_client):
    holder = ClientHolder()
    client = make_client()
    holder.initialize(client)

    assert holder.initialize(client) is client
    assert holder.instance() is client


def test_initialize_with_none():
    with pytest.raises(ConfigError):
        ClientHolder().initialize(None)


def test_module_functions_use_process_wide_holder(make_client, monkeypatch):
    monkeypatch.setattr(unifi_client.holder, "_global", ClientHolder())
    with pytest.raises(ConfigError):
        unifi_client.instance()

    client = make_client()
    unifi_client.initialize(client)

    assert unifi_client.is_initialized()
    assert unifi_client.instance() is client
    assert unifi_client.global_holder().instance() is client


def test_global_instance_shares_session_with_caller(make_client, os_controller):
    holder = ClientHolder()
    client = make_client()
    holder.initialize(client.clone())

    holder.instance().login()
    assert client.is_authenticated
