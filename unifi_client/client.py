# unifi_client/client.py

import logging
from urllib.parse import urlsplit

from .config import build_config
from .errors import ApiError, AuthenticationError, DecodeError, InvalidEndpointError
from .guests import GuestApi
from .secret import PasswordSource
from .session import CSRF_HEADER, SessionManager
from .sites import SiteApi
from .vouchers import VoucherApi

logger = logging.getLogger(__name__)

SESSION_REJECTED_STATUSES = (401, 403)
LOGIN_REQUIRED_MARKER = "api.err.LoginRequired"
MAX_ERROR_TEXT = 300


def _envelope_meta(response):
    """Returns the "meta" object of a {"meta": ..., "data": ...} body, or None."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("meta"), dict):
        return body["meta"]
    return None


def _session_rejected(response) -> bool:
    if response.status_code in SESSION_REJECTED_STATUSES:
        return True
    meta = _envelope_meta(response)
    return meta is not None and meta.get("msg") == LOGIN_REQUIRED_MARKER


def _error_message(response):
    meta = _envelope_meta(response)
    if meta is not None and meta.get("msg"):
        return meta["msg"]
    text = (response.text or "").strip()
    return text[:MAX_ERROR_TEXT] or response.reason or "Unknown API error"


def _normalize_endpoint(path):
    if not path or not isinstance(path, str):
        raise InvalidEndpointError(f"endpoint must be a non-empty path, got {path!r}")
    parts = urlsplit(path)
    if parts.scheme or parts.netloc:
        raise InvalidEndpointError(f"endpoint must be a path, not a URL: {path!r}")
    if parts.query or parts.fragment or "?" in path or "#" in path:
        raise InvalidEndpointError(f"endpoint must not include query or fragment: {path!r} (pass params instead)")
    return path if path.startswith("/") else f"/{path}"


class UnifiClient:
    """
    Client for the UniFi Network controller API.

    Every request goes through execute(), which logs in on first use, attaches
    the session cookie and CSRF token, and re-authenticates and retries once
    when the controller reports the session is no longer valid.

    Clones (clone(), copy.copy(), with_site()) share the same session, so a
    re-login done through one clone is seen by all of them.
    """
    def __init__(self, config, password_source=None, session=None, site=None):
        self.config = config
        if session is None:
            session = SessionManager(config, password_source or PasswordSource.deferred())
        self._session = session
        self.site = site or config.site

    @classmethod
    def from_options(cls, **options):
        """Builds the configuration from keyword options (see build_config) and returns a client."""
        config, password_source = build_config(**options)
        return cls(config, password_source)

    @classmethod
    def connect(cls, **options):
        """Like from_options() but logs in right away, so bad credentials fail here."""
        client = cls.from_options(**options)
        client.login()
        return client

    # sharing

    def clone(self):
        return UnifiClient(self.config, session=self._session, site=self.site)

    def __copy__(self):
        return self.clone()

    def with_site(self, site):
        """Returns a clone whose site-scoped paths point at another site."""
        if not site or not str(site).strip():
            raise ValueError("site must not be empty")
        return UnifiClient(self.config, session=self._session, site=str(site).strip())

    def shares_session_with(self, other) -> bool:
        return self._session is other._session

    # auth

    @property
    def auth_state(self):
        return self._session.state

    @property
    def is_authenticated(self) -> bool:
        return self._session.state.is_authenticated

    @property
    def variant(self):
        return self._session.variant

    def login(self):
        self._session.login()

    def ensure_authenticated(self):
        return self._session.ensure_authenticated()

    # paths

    def site_path(self, suffix):
        """Site-scoped endpoint, e.g. site_path("stat/guest") -> /api/s/default/stat/guest"""
        return f"/api/s/{self.site}/{suffix.lstrip('/')}"

    def api_url(self, path, variant=None):
        """Absolute URL for an endpoint, including the variant's API prefix."""
        variant = variant or self.variant
        prefix = variant.api_prefix if variant is not None else ""
        return f"{self.config.controller_url}{prefix}{_normalize_endpoint(path)}"

    # request execution

    def _send(self, method, path, artifacts, body, params):
        headers = {"Cookie": artifacts.cookie.reveal()}
        if artifacts.csrf_token is not None:
            headers[CSRF_HEADER] = artifacts.csrf_token.reveal()

        kwargs = {"headers": headers}
        if body is not None:
            kwargs["json"] = body
        if params:
            kwargs["params"] = params

        url = self.api_url(path, artifacts.variant)
        logger.debug("%s %s", method, url)
        return self._session.send(method, url, **kwargs)

    def execute(self, method, path, body=None, params=None):
        """
        Sends one authenticated request and returns the requests.Response.

        Retries exactly once, after a fresh login, when the first attempt is
        rejected with 401/403 or api.err.LoginRequired. Raises
        AuthenticationError if the retry is rejected too, ApiError for other
        non-2xx answers and TransportError for network failures and timeouts.
        """
        method = method.upper()
        path = _normalize_endpoint(path)

        artifacts = self._session.ensure_authenticated()
        response = self._send(method, path, artifacts, body, params)

        if _session_rejected(response):
            logger.warning("%s %s rejected with %s; re-authenticating", method, path, response.status_code)
            artifacts = self._session.reauthenticate(artifacts)
            response = self._send(method, path, artifacts, body, params)
            if _session_rejected(response):
                raise AuthenticationError(
                    f"{method} {path} still unauthorized after re-authentication "
                    f"(status code: {response.status_code})"
                )

        if not response.ok:
            raise ApiError(response.status_code, _error_message(response))

        self._session.rotate_csrf(artifacts, response)
        return response

    def request_json(self, method, path, body=None, params=None, model=None):
        """
        execute() and decode the JSON answer. The usual {"meta", "data"} envelope
        is unwrapped and "data" returned; meta.rc other than "ok" raises ApiError.
        With a model callable, it is applied to the data (to each item of a list).
        """
        response = self.execute(method, path, body=body, params=params)
        return self._decode(response, model)

    def get_json(self, path, params=None, model=None):
        return self.request_json("GET", path, params=params, model=model)

    def post_json(self, path, body=None, model=None):
        return self.request_json("POST", path, body=body, model=model)

    def _decode(self, response, model):
        if not response.content:
            return None
        try:
            document = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON in response from {response.url}: {e}") from e

        data = document
        if isinstance(document, dict) and isinstance(document.get("meta"), dict):
            meta = document["meta"]
            if meta.get("rc") != "ok":
                raise ApiError(response.status_code, meta.get("msg") or "Unknown API error")
            data = document.get("data")

        if model is None:
            return data
        try:
            if isinstance(data, list):
                return [model(item) for item in data]
            return model(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Unexpected response shape from {response.url}: {e!r}") from e

    # resource APIs

    @property
    def guests(self):
        return GuestApi(self)

    @property
    def sites(self):
        return SiteApi(self)

    @property
    def vouchers(self):
        return VoucherApi(self)

    def close(self):
        """Closes the shared transport and forgets credentials for every clone."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self):
        return (
            f"UnifiClient(controller_url={self.config.controller_url!r}, "
            f"username={self.config.username!r}, site={self.site!r}, "
            f"state={self.auth_state.status.value})"
        )
