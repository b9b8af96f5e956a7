# unifi_client/secret.py

import getpass
import hmac
import logging
import threading

from .errors import AuthenticationError

logger = logging.getLogger(__name__)

REDACTED = "******"
PASSWORD_PROMPT = "Enter UniFi controller password: "


class Secret:
    """
    Holds a sensitive string (password, session cookie, CSRF token).
    The value never shows up in repr/str output, so it is safe to pass a Secret
    to a logger or put it inside an exception message by accident.
    """
    __slots__ = ("_value",)

    def __init__(self, value: str):
        if not isinstance(value, str):
            raise TypeError("Secret value must be a string")
        self._value = value

    def reveal(self) -> str:
        if self._value is None:
            raise ValueError("secret has been cleared")
        return self._value

    def clear(self):
        self._value = None

    @property
    def is_cleared(self) -> bool:
        return self._value is None

    def __repr__(self):
        return f"Secret('{REDACTED}')"

    __str__ = __repr__

    def __eq__(self, other):
        if not isinstance(other, Secret) or self._value is None or other._value is None:
            return NotImplemented
        return hmac.compare_digest(self._value.encode(), other._value.encode())

    __hash__ = None

    def __reduce__(self):
        raise TypeError("Secret objects cannot be pickled")


class PasswordSource:
    """
    Where the controller password comes from: a value resolved when the
    configuration was built, or an interactive prompt deferred until the
    first login. A prompted password is kept for the lifetime of the client.
    """
    def __init__(self, secret=None, prompt=None):
        self._secret = secret
        self._prompt = prompt or getpass.getpass
        self._closed = False
        self._lock = threading.Lock()

    @classmethod
    def of(cls, password: str):
        return cls(secret=Secret(password))

    @classmethod
    def deferred(cls, prompt=None):
        return cls(prompt=prompt)

    @property
    def is_deferred(self) -> bool:
        return self._secret is None and not self._closed

    def resolve(self) -> Secret:
        with self._lock:
            if self._closed:
                raise AuthenticationError("Client is closed; password no longer available")
            if self._secret is None:
                logger.info("No password configured; prompting for controller password")
                try:
                    value = self._prompt(PASSWORD_PROMPT)
                except (EOFError, OSError) as e:
                    raise AuthenticationError(f"Failed to read password: {e}") from e
                if not value or not value.strip():
                    raise AuthenticationError("Password is required")
                self._secret = Secret(value)
            return self._secret

    def clear(self):
        """Drops the password for good; later resolve() calls raise instead of prompting."""
        with self._lock:
            self._closed = True
            if self._secret is not None:
                self._secret.clear()
                self._secret = None

    def __repr__(self):
        if self._closed:
            state = "closed"
        else:
            state = "deferred" if self.is_deferred else "resolved"
        return f"PasswordSource({state})"
