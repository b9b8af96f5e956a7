# unifi_client/errors.py


class UnifiError(Exception):
    """Base class for every error raised by the UniFi client."""


class ConfigError(UnifiError):
    """Invalid client configuration or misuse of the global client."""


class AuthenticationError(UnifiError):
    """Login was rejected, or the session stayed unauthorized after a re-login."""


class ApiError(UnifiError):
    """
    The controller answered with an error that is not an authorization failure.
    Carries the HTTP status and the controller-provided message.
    """
    def __init__(self, status_code, message):
        super().__init__(f"API error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class SiteNotFoundError(ApiError):
    def __init__(self, site):
        super().__init__(404, f"Site not found: {site}")
        self.site = site


class TransportError(UnifiError):
    """Network failure or timeout while talking to the controller."""


class DecodeError(UnifiError):
    """The controller sent a body this client could not decode."""


class InvalidEndpointError(UnifiError):
    """The endpoint passed to the request executor is not a plain path."""
