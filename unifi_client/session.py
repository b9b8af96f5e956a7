# unifi_client/session.py

import enum
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Optional

import requests
import urllib3

from .errors import ApiError, AuthenticationError, TransportError
from .secret import Secret
from .variant import ControllerVariant, csrf_from_token_cookie, detection_order, is_wrong_endpoint

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"
UPDATED_CSRF_HEADER = "X-Updated-CSRF-Token"
LEGACY_CSRF_COOKIE = "csrf_token"
CREDENTIALS_REJECTED_STATUSES = (400, 401, 403)
MAX_ERROR_TEXT = 300


class AuthStatus(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionArtifacts:
    """Everything a successful login hands back. Replaced as a unit, never edited."""
    cookie: Secret # value for the Cookie request header
    csrf_token: Optional[Secret]
    variant: ControllerVariant
    authenticated_at: float


@dataclass(frozen=True)
class AuthState:
    status: AuthStatus
    artifacts: Optional[SessionArtifacts] = None
    reason: Optional[str] = None # set when FAILED

    @property
    def is_authenticated(self):
        return self.status is AuthStatus.AUTHENTICATED


UNAUTHENTICATED = AuthState(AuthStatus.UNAUTHENTICATED)
AUTHENTICATING = AuthState(AuthStatus.AUTHENTICATING)


class ReadWriteLock:
    """
    Many readers or one writer. Waiting writers block new readers so a login
    is not starved by a steady stream of authenticated requests.
    Not reentrant.
    """
    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _cookie_header(response):
    return "; ".join(f"{cookie.name}={cookie.value}" for cookie in response.cookies)


def _login_envelope_error(response):
    """Returns meta.msg when a login body is a {"meta": {"rc": "error"}} envelope."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or not isinstance(body.get("meta"), dict):
        return None
    meta = body["meta"]
    if meta.get("rc", "ok") != "ok":
        return meta.get("msg") or "Unknown error"
    return None


def _login_error_message(response):
    message = _login_envelope_error(response)
    if message:
        return message
    text = (response.text or "").strip()
    return text[:MAX_ERROR_TEXT] or response.reason or "Unknown error"


class SessionManager:
    """
    Authentication state shared by a client and all of its clones.

    Owns the transport, the password source, the cached controller variant and
    the current AuthState. Readers check the state under a shared lock; logins
    and re-logins take the lock exclusively and re-check before touching the
    network, so a stampede of callers produces a single login request.
    """
    def __init__(self, config, password_source, transport=None):
        self.config = config
        self._password = password_source
        self.transport = transport or config.transport or requests.Session()
        self._lock = ReadWriteLock()
        self._state = UNAUTHENTICATED
        self._variant = config.variant

        if not config.verify_ssl:
            # verification is off on purpose for this controller
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def variant(self) -> Optional[ControllerVariant]:
        return self._variant

    def send(self, method, url, **kwargs):
        """Sends one request through the shared transport with config defaults applied."""
        headers = {"User-Agent": self.config.user_agent, "Accept": "application/json"}
        headers.update(kwargs.pop("headers", None) or {})
        try:
            return self.transport.request(
                method,
                url,
                headers=headers,
                timeout=self.config.timeout,
                verify=self.config.verify_ssl,
                **kwargs,
            )
        except requests.Timeout as e:
            raise TransportError(f"{method} {url} timed out after {self.config.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    def ensure_authenticated(self) -> SessionArtifacts:
        """
        Returns valid session artifacts, logging in first if there are none.
        No network call when already authenticated. Raises AuthenticationError
        without a network call while the state is FAILED; call login() to retry.
        """
        with self._lock.read():
            state = self._state
            if state.is_authenticated:
                return state.artifacts

        with self._lock.write():
            state = self._state
            if state.is_authenticated:
                # someone else logged in while we waited for the lock
                return state.artifacts
            if state.status is AuthStatus.FAILED:
                raise AuthenticationError(state.reason)
            return self._login_locked()

    def login(self) -> SessionArtifacts:
        """Forces a fresh login. This is also the way out of the FAILED state."""
        with self._lock.write():
            return self._login_locked()

    def reauthenticate(self, stale: SessionArtifacts) -> SessionArtifacts:
        """
        Replaces artifacts the controller just rejected. If another caller has
        already replaced them, the newer artifacts are returned as they are.
        """
        with self._lock.write():
            state = self._state
            if state.is_authenticated and state.artifacts is not stale:
                return state.artifacts
            if state.status is AuthStatus.FAILED:
                raise AuthenticationError(state.reason)
            self._state = UNAUTHENTICATED
            logger.info("Session rejected by controller; logging in again")
            return self._login_locked()

    def rotate_csrf(self, used: SessionArtifacts, response):
        """Applies an X-Updated-CSRF-Token sent back on a successful response."""
        token = response.headers.get(UPDATED_CSRF_HEADER)
        if not token:
            return
        with self._lock.write():
            state = self._state
            if not state.is_authenticated or state.artifacts is not used:
                return
            if state.artifacts.csrf_token is not None and state.artifacts.csrf_token.reveal() == token:
                return
            logger.debug("Controller rotated the CSRF token")
            self._state = AuthState(
                AuthStatus.AUTHENTICATED,
                artifacts=replace(state.artifacts, csrf_token=Secret(token)),
            )

    def close(self):
        with self._lock.write():
            self._state = UNAUTHENTICATED
            self._password.clear()
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    # login internals; caller holds the write lock

    def _fail(self, reason):
        logger.error("Login to %s failed: %s", self.config.controller_url, reason)
        self._state = AuthState(AuthStatus.FAILED, reason=reason)
        raise AuthenticationError(reason)

    def _login_locked(self) -> SessionArtifacts:
        try:
            password = self._password.resolve()
        except AuthenticationError as e:
            self._fail(str(e))

        self._state = AUTHENTICATING
        payload = {"username": self.config.username, "password": password.reveal()}

        candidates = detection_order(self._variant)
        try:
            for variant in candidates:
                login_url = f"{self.config.controller_url}{variant.login_path}"
                logger.info("Logging in to %s as %s", login_url, self.config.username)
                response = self.send("POST", login_url, json=payload)
                if self._variant is None and variant is not candidates[-1] and is_wrong_endpoint(response):
                    logger.info("%s answered %s; trying the next login contract", login_url, response.status_code)
                    continue
                break
        except TransportError:
            self._state = UNAUTHENTICATED
            raise

        artifacts = self._artifacts_from(variant, response)
        if self._variant is None:
            logger.info("Detected %s controller", variant.value)
            self._variant = variant
        self._state = AuthState(AuthStatus.AUTHENTICATED, artifacts=artifacts)
        logger.info("Authenticated with %s", self.config.controller_url)
        return artifacts

    def _artifacts_from(self, variant, response) -> SessionArtifacts:
        if response.status_code in CREDENTIALS_REJECTED_STATUSES:
            self._fail(f"Authentication failed with status code: {response.status_code} {response.reason or ''}".strip())
        if not response.ok:
            # controller trouble, not bad credentials: the next call logs in again
            logger.warning("Login to %s answered %s", self.config.controller_url, response.status_code)
            self._state = UNAUTHENTICATED
            raise ApiError(response.status_code, _login_error_message(response))

        envelope_error = _login_envelope_error(response)
        if envelope_error is not None:
            self._fail(envelope_error)

        cookie = _cookie_header(response)
        if not cookie:
            self._fail("No cookies received from server")

        csrf_token = response.headers.get(CSRF_HEADER) or response.headers.get(UPDATED_CSRF_HEADER)
        if not csrf_token:
            if variant is ControllerVariant.UNIFI_OS:
                csrf_token = csrf_from_token_cookie(response.cookies.get(variant.cookie_name))
            else:
                csrf_token = response.cookies.get(LEGACY_CSRF_COOKIE)

        return SessionArtifacts(
            cookie=Secret(cookie),
            csrf_token=Secret(csrf_token) if csrf_token else None,
            variant=variant,
            authenticated_at=time.time(),
        )
