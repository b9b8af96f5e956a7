"""Shared fixtures: a fake controller standing in for requests.Session."""

import json as jsonlib
import threading
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Optional
from urllib.parse import urlsplit

import pytest
from requests.cookies import cookiejar_from_dict
from requests.models import Response
from requests.structures import CaseInsensitiveDict

from unifi_client import UnifiClient

CONTROLLER_URL = "https://ctrl.example:8443"
OS_LOGIN = "/api/auth/login"
LEGACY_LOGIN = "/api/login"


def make_response(status=200, body=None, headers=None, cookies=None, url=CONTROLLER_URL):
    """Builds a requests Response by hand, the way a transport adapter would."""
    response = Response()
    response.status_code = status
    response.reason = HTTPStatus(status).phrase
    response.headers = CaseInsensitiveDict(headers or {})
    if body is None:
        response._content = b""
    elif isinstance(body, bytes):
        response._content = body
    elif isinstance(body, str):
        response._content = body.encode()
    else:
        response._content = jsonlib.dumps(body).encode()
        response.headers.setdefault("Content-Type", "application/json")
    response.encoding = "utf-8"
    response.cookies = cookiejar_from_dict(cookies or {})
    response.url = url
    return response


def envelope(data=None, rc="ok", msg=None, status=200):
    meta = {"rc": rc}
    if msg is not None:
        meta["msg"] = msg
    return make_response(status, {"meta": meta, "data": [] if data is None else data})


def os_login(token="test-token", csrf="test-csrf"):
    headers = {"X-CSRF-Token": csrf} if csrf else {}
    return make_response(200, headers=headers, cookies={"TOKEN": token})


def legacy_login(cookie="test-cookie"):
    response = envelope([])
    response.cookies = cookiejar_from_dict({"unifises": cookie})
    return response


@dataclass
class Call:
    method: str
    url: str
    path: str
    headers: dict
    json: Any = None
    params: Optional[dict] = None
    timeout: Optional[float] = None
    verify: Optional[bool] = None
    extra: dict = field(default_factory=dict)


class FakeController:
    """
    Routes (method, path) to queued responses and records every call.
    Each queued item is a Response, an exception to raise, or a callable
    taking the Call. The last item of a queue keeps answering once the
    others are used up. Unknown routes answer 404.
    """
    def __init__(self):
        self.routes = {}
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def request(self, method, url, headers=None, json=None, params=None, timeout=None, verify=None, **kwargs):
        call = Call(method, url, urlsplit(url).path, dict(headers or {}), json, params, timeout, verify, kwargs)
        with self._lock:
            self.calls.append(call)
            queue = self.routes.get((method, call.path))
            if not queue:
                responder = make_response(404, {"meta": {"rc": "error", "msg": "api.err.NotFound"}})
            elif len(queue) > 1:
                responder = queue.pop(0)
            else:
                responder = queue[0]
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(call)
        return responder

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method and c.path == path]

    def close(self):
        self.closed = True


@pytest.fixture
def controller():
    return FakeController()


@pytest.fixture
def make_client(controller):
    def _make(**options):
        options.setdefault("controller_url", CONTROLLER_URL)
        options.setdefault("username", "admin")
        if "password_env" not in options and "prompt" not in options:
            options.setdefault("password", "secret")
        options.setdefault("transport", controller)
        return UnifiClient.from_options(**options)
    return _make


@pytest.fixture
def os_controller(controller):
    """A UniFi OS console that accepts admin/secret."""
    controller.add("POST", OS_LOGIN, os_login())
    return controller


@pytest.fixture
def legacy_controller(controller):
    """A standalone Network application; the OS login path does not exist."""
    controller.add("POST", LEGACY_LOGIN, legacy_login())
    return controller
