# client_factory.py

import os
import logging

from unifi_client import ConfigError, UnifiClient, initialize

logger = logging.getLogger(__name__)

TRUTHY = ("1", "true", "yes", "on")


class UnifiSettings:
    """
    Controller settings for the portal, loaded from environment variables.
    The password is never copied here; the client reads UNIFI_PASSWORD itself.
    """
    password_env = "UNIFI_PASSWORD"

    def __init__(self, environ=None):
        environ = os.environ if environ is None else environ
        self.controller_url = environ.get("UNIFI_CONTROLLER_URL") # e.g. https://unifi.example:8443
        self.username = environ.get("UNIFI_USERNAME")
        self.site = environ.get("UNIFI_SITE", "default") # site name (not friendly name)
        self.accept_invalid_certs = environ.get("UNIFI_ACCEPT_INVALID_CERTS", "false").lower() in TRUTHY
        self.timeout = environ.get("UNIFI_TIMEOUT", "30")
        self.variant = environ.get("UNIFI_VARIANT") or None # legacy | unifi_os; detected if unset
        self._has_password = bool(environ.get(self.password_env))

    def validate(self):
        """
        Validates that all required configuration values are present.
        Raises ConfigError if any are missing.
        """
        missing = []
        for attr in ["controller_url", "username"]:
            if not getattr(self, attr):
                missing.append(attr)
        if not self._has_password:
            missing.append("password")
        if missing:
            raise ConfigError(f"Missing required UniFi config: {', '.join(missing)}")


def get_client(settings=None, transport=None):
    settings = settings or UnifiSettings()
    settings.validate()
    client = UnifiClient.from_options(
        controller_url=settings.controller_url,
        username=settings.username,
        password_env=settings.password_env,
        site=settings.site,
        accept_invalid_certs=settings.accept_invalid_certs,
        timeout=settings.timeout,
        variant=settings.variant,
        transport=transport,
    )
    logger.info("UniFi client configured for %s (site %s)", settings.controller_url, settings.site)
    return client


def init_global_client(settings=None, transport=None):
    """Builds the client from the environment and stores it as the process-wide instance."""
    return initialize(get_client(settings, transport))
