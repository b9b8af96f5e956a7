# unifi_client/variant.py

import enum
import logging

import jwt

logger = logging.getLogger(__name__)

# statuses that mean "this login endpoint does not exist on this controller"
WRONG_ENDPOINT_STATUSES = (404, 405)


class ControllerVariant(enum.Enum):
    """
    The two login/request contracts a controller can speak.
    LEGACY is the standalone Network application, UNIFI_OS is the Network
    application hosted on a UniFi OS console (UDM, UCG, Cloud Key Gen2+).
    """
    LEGACY = "legacy"
    UNIFI_OS = "unifi_os"

    @property
    def login_path(self):
        if self is ControllerVariant.UNIFI_OS:
            return "/api/auth/login"
        return "/api/login"

    @property
    def cookie_name(self):
        if self is ControllerVariant.UNIFI_OS:
            return "TOKEN"
        return "unifises"

    @property
    def api_prefix(self):
        if self is ControllerVariant.UNIFI_OS:
            return "/proxy/network"
        return ""

    @classmethod
    def parse(cls, value):
        if value is None or isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {"os": cls.UNIFI_OS, "unifios": cls.UNIFI_OS, "network": cls.LEGACY}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


def detection_order(hint=None):
    """
    Login contracts to try, in order. A configured hint is the only candidate;
    otherwise the OS-hosted login is attempted first and the legacy one second.
    """
    if hint is not None:
        return [hint]
    return [ControllerVariant.UNIFI_OS, ControllerVariant.LEGACY]


def is_wrong_endpoint(response) -> bool:
    return response.status_code in WRONG_ENDPOINT_STATUSES


def csrf_from_token_cookie(token):
    """
    Extracts the csrfToken claim from a UniFi OS TOKEN cookie (a JWT).
    The signature is not verified: the client only reads back its own session.
    """
    if not token:
        return None
    try:
        decoded_jwt = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.debug("TOKEN cookie is not a decodable JWT: %s", e)
        return None
    return decoded_jwt.get("csrfToken")
