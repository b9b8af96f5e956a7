"""
Client library for the UniFi Network controller API.

    from unifi_client import UnifiClient

    client = UnifiClient.from_options(
        controller_url="https://unifi.example:8443",
        username="admin",
        password_env="UNIFI_PASSWORD",
    )
    guest = client.guests.authorize("00:11:22:33:44:55", minutes=60)

Sessions are established on first use and renewed automatically once when the
controller rejects them.
"""

from .client import UnifiClient
from .config import ClientConfig, __version__, build_config
from .errors import (
    ApiError,
    AuthenticationError,
    ConfigError,
    DecodeError,
    InvalidEndpointError,
    SiteNotFoundError,
    TransportError,
    UnifiError,
)
from .holder import ClientHolder, global_holder, initialize, instance, is_initialized
from .models import GuestEntry, GuestStatus, Site, SubsystemHealth, Voucher, VoucherStatus
from .secret import PasswordSource, Secret
from .session import AuthState, AuthStatus, SessionArtifacts
from .variant import ControllerVariant

__all__ = [
    "ApiError",
    "AuthState",
    "AuthStatus",
    "AuthenticationError",
    "ClientConfig",
    "ClientHolder",
    "ConfigError",
    "ControllerVariant",
    "DecodeError",
    "GuestEntry",
    "GuestStatus",
    "InvalidEndpointError",
    "PasswordSource",
    "Secret",
    "SessionArtifacts",
    "Site",
    "SiteNotFoundError",
    "SubsystemHealth",
    "TransportError",
    "UnifiClient",
    "UnifiError",
    "Voucher",
    "VoucherStatus",
    "build_config",
    "global_holder",
    "initialize",
    "instance",
    "is_initialized",
    "__version__",
]
