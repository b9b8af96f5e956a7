# unifi_client/holder.py

import logging
import threading

from .errors import ConfigError

logger = logging.getLogger(__name__)


class ClientHolder:
    """
    A slot for one shared UnifiClient, set once.

    initialize() with a client stores it. Calling it again with the very same
    client object does nothing; calling it with any other client raises
    ConfigError and the first client stays in place. instance() before
    initialize() raises ConfigError.
    """
    def __init__(self):
        self._client = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self):
        return self._client is not None

    def initialize(self, client):
        if client is None:
            raise ConfigError("cannot initialize global client with None")
        with self._lock:
            if self._client is client:
                return client
            if self._client is not None:
                raise ConfigError("global client already initialized")
            self._client = client
        logger.info("Global UniFi client initialized for %s", client.config.controller_url)
        return client

    def instance(self):
        client = self._client
        if client is None:
            raise ConfigError("global client not initialized")
        return client


# process-wide slot used by initialize() / instance()
_global = ClientHolder()


def initialize(client):
    return _global.initialize(client)


def instance():
    return _global.instance()


def is_initialized():
    return _global.is_initialized


def global_holder():
    return _global
