# unifi_client/config.py

import os
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlsplit

from .errors import ConfigError
from .secret import PasswordSource
from .variant import ControllerVariant

__version__ = "0.3.0"

DEFAULT_SITE = "default"
DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = f"unifi-client/{__version__}"


@dataclass(frozen=True)
class ClientConfig:
    """
    Validated, immutable connection parameters for one controller.
    Build it with build_config(); the password is held separately in a
    PasswordSource so it never ends up in the config's repr.
    """
    controller_url: str # scheme://host[:port] without trailing slash
    username: str
    site: str = DEFAULT_SITE # site name (not friendly name)
    verify_ssl: bool = True
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    variant: Optional[ControllerVariant] = None # None means detect at first login
    transport: Any = field(default=None, compare=False, repr=False) # requests.Session-like override


def _validate_url(controller_url):
    if controller_url is None or not str(controller_url).strip():
        raise ConfigError("Controller URL is required")
    url = str(controller_url).strip()
    try:
        parts = urlsplit(url)
        parts.port # raises ValueError for a malformed port
    except ValueError as e:
        raise ConfigError(f"Invalid controller URL: {e}") from e
    if parts.scheme not in ("http", "https"):
        raise ConfigError(f"Invalid controller URL: {url!r} is not an absolute http(s) URL")
    if not parts.hostname:
        raise ConfigError(f"Invalid controller URL: {url!r} has no host")
    if parts.query or parts.fragment:
        raise ConfigError(f"Invalid controller URL: {url!r} must not include a query or fragment")
    return url.rstrip("/")


def _resolve_password(password, password_env, prompt):
    if password is not None and password_env is not None:
        raise ConfigError("Specify either password or password_env, not both")

    if password is not None:
        if not password.strip():
            raise ConfigError("Password is required")
        return PasswordSource.of(password)

    if password_env is not None:
        value = os.environ.get(password_env)
        if not value or not value.strip():
            raise ConfigError(f"Password environment variable {password_env} is not set")
        return PasswordSource.of(value)

    # neither given: prompt at first login
    return PasswordSource.deferred(prompt)


def build_config(
    controller_url,
    username,
    password=None,
    password_env=None,
    site=DEFAULT_SITE,
    accept_invalid_certs=False,
    timeout=DEFAULT_TIMEOUT,
    transport=None,
    user_agent=None,
    variant=None,
    prompt=None,
):
    """
    Validates every recognized option and returns (ClientConfig, PasswordSource).

    controller_url       absolute http(s) URL of the controller, e.g. https://unifi.example:8443
    username             controller admin username, must not be blank
    password             password value; mutually exclusive with password_env
    password_env         name of an environment variable holding the password, read now
    site                 site name used for site-scoped endpoints, default "default"
    accept_invalid_certs skip TLS certificate verification, default False
    timeout              per-request timeout in seconds, default 30
    transport            requests.Session (or compatible) to send requests with
    user_agent           User-Agent header, default "unifi-client/<version>"
    variant              "legacy" or "unifi_os" to skip login endpoint detection
    prompt               callable used to ask for the password when none is configured

    Raises ConfigError on invalid input. Performs no network I/O.
    """
    url = _validate_url(controller_url)

    if username is None or not str(username).strip():
        raise ConfigError("Username is required")

    if site is None or not str(site).strip():
        raise ConfigError("Site is required")

    try:
        timeout = float(timeout)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid timeout: {timeout!r}") from e
    if timeout <= 0:
        raise ConfigError(f"Invalid timeout: {timeout!r} (must be positive)")

    try:
        variant = ControllerVariant.parse(variant)
    except ValueError as e:
        raise ConfigError(f"Unknown controller variant: {variant!r}") from e

    password_source = _resolve_password(password, password_env, prompt)

    config = ClientConfig(
        controller_url=url,
        username=str(username).strip(),
        site=str(site).strip(),
        verify_ssl=not accept_invalid_certs,
        timeout=timeout,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        variant=variant,
        transport=transport,
    )
    return config, password_source
