import copy
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests

from unifi_client import (
    ApiError,
    AuthenticationError,
    DecodeError,
    InvalidEndpointError,
    TransportError,
    UnifiClient,
)
from unifi_client.config import DEFAULT_USER_AGENT

from conftest import CONTROLLER_URL, LEGACY_LOGIN, OS_LOGIN, envelope, make_response, os_login

GUESTS = "/proxy/network/api/s/default/stat/guest"
AUTHORIZE = "/proxy/network/api/s/default/cmd/stamgr"

GUEST = {
    "_id": "g1",
    "mac": "00:11:22:33:44:55",
    "authorized_by": "api",
    "start": 1700000000,
    "end": 1700003600,
    "site_id": "s1",
}


def test_first_request_logs_in_then_reuses_session(make_client, os_controller):
    os_controller.add("GET", GUESTS, envelope([GUEST]))
    client = make_client()

    guests = client.get_json(client.site_path("stat/guest"))
    assert guests == [GUEST]
    assert [(c.method, c.path) for c in os_controller.calls] == [("POST", OS_LOGIN), ("GET", GUESTS)]

    get = os_controller.calls[1]
    assert get.headers["Cookie"] == "TOKEN=test-token"
    assert get.headers["X-CSRF-Token"] == "test-csrf"
    assert get.headers["User-Agent"] == DEFAULT_USER_AGENT
    assert get.url == f"{CONTROLLER_URL}{GUESTS}"

    client.get_json(client.site_path("stat/guest"))
    assert len(os_controller.calls_to("POST", OS_LOGIN)) == 1
    assert len(os_controller.calls_to("GET", GUESTS)) == 2


def test_session_artifacts_sent_on_every_request(make_client, controller):
    login = make_response(200, headers={"X-CSRF-Token": "tok123"}, cookies={"sid": "abc"})
    controller.add("POST", OS_LOGIN, login)
    controller.add("GET", GUESTS, envelope([]))
    controller.add("POST", AUTHORIZE, envelope([GUEST]))
    client = make_client()

    client.get_json(client.site_path("stat/guest"))
    client.post_json(client.site_path("cmd/stamgr"), {"cmd": "authorize-guest", "mac": "00:11:22:33:44:55"})
    client.execute("GET", client.site_path("stat/guest"))

    requests_sent = [c for c in controller.calls if c.path != OS_LOGIN]
    assert len(requests_sent) == 3
    for call in requests_sent:
        assert call.headers["Cookie"] == "sid=abc"
        assert call.headers["X-CSRF-Token"] == "tok123"


def test_expired_session_relogs_and_retries_once(make_client, controller):
    controller.add("POST", OS_LOGIN, os_login("first-token", "first-csrf"), os_login("second-token", "second-csrf"))
    controller.add("POST", AUTHORIZE, make_response(401), envelope([GUEST]))
    client = make_client()
    client.login()

    body = {"cmd": "authorize-guest", "mac": "00:11:22:33:44:55"}
    response = client.execute("POST", client.site_path("cmd/stamgr"), body)

    assert response.status_code == 200
    assert len(controller.calls_to("POST", OS_LOGIN)) == 2 # initial + one re-login
    first, retry = controller.calls_to("POST", AUTHORIZE)
    assert first.headers["Cookie"] == "TOKEN=first-token"
    assert retry.headers["Cookie"] == "TOKEN=second-token"
    assert retry.headers["X-CSRF-Token"] == "second-csrf"
    assert retry.json == body


def test_forbidden_also_triggers_relogin(make_client, controller):
    controller.add("POST", OS_LOGIN, os_login("first-token"), os_login("second-token"))
    controller.add("GET", GUESTS, make_response(403), envelope([]))
    client = make_client()

    assert client.get_json(client.site_path("stat/guest")) == []
    assert len(controller.calls_to("GET", GUESTS)) == 2


def test_login_required_marker_triggers_relogin(make_client, controller):
    legacy_guests = "/api/s/default/stat/guest"
    expired = envelope(rc="error", msg="api.err.LoginRequired", status=400)
    login = envelope([])
    login.cookies.set("unifises", "cookie")
    controller.add("POST", LEGACY_LOGIN, login)
    controller.add("GET", legacy_guests, expired, envelope([GUEST]))
    client = make_client(variant="legacy")

    assert client.get_json(client.site_path("stat/guest")) == [GUEST]
    assert len(controller.calls_to("POST", LEGACY_LOGIN)) == 2


def test_unauthorized_after_relogin_gives_up(make_client, controller):
    controller.add("POST", OS_LOGIN, os_login("first-token"), os_login("second-token"))
    controller.add("GET", GUESTS, make_response(401))
    client = make_client()

    with pytest.raises(AuthenticationError, match="still unauthorized"):
        client.execute("GET", client.site_path("stat/guest"))

    assert len(controller.calls_to("GET", GUESTS)) == 2
    assert len(controller.calls_to("POST", OS_LOGIN)) == 2


def test_clones_share_reauthentication(make_client, controller):
    controller.add("POST", OS_LOGIN, os_login("first-token"), os_login("second-token"))
    controller.add("GET", GUESTS, make_response(401), envelope([]))
    client = make_client()
    other = client.clone()
    client.login()

    client.get_json(client.site_path("stat/guest"))
    other.get_json(other.site_path("stat/guest"))

    assert client.shares_session_with(other)
    assert copy.copy(client).shares_session_with(client)
    assert len(controller.calls_to("POST", OS_LOGIN)) == 2
    assert controller.calls_to("GET", GUESTS)[-1].headers["Cookie"] == "TOKEN=second-token"


def test_concurrent_expiry_single_relogin(make_client, controller):
    controller.add("POST", OS_LOGIN, os_login("first-token"), os_login("second-token"))

    def guests(call):
        if call.headers["Cookie"] == "TOKEN=first-token":
            return make_response(401)
        return envelope([])

    controller.add("GET", GUESTS, guests)
    client = make_client()
    client.login()

    callers = 8
    barrier = threading.Barrier(callers)

    def call():
        barrier.wait()
        return client.get_json(client.site_path("stat/guest"))

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(lambda _: call(), range(callers)))

    assert results == [[]] * callers
    assert len(controller.calls_to("POST", OS_LOGIN)) == 2


def test_api_error_not_retried(make_client, os_controller):
    os_controller.add("GET", GUESTS, envelope(rc="error", msg="api.err.Invalid", status=500))
    client = make_client()

    with pytest.raises(ApiError) as excinfo:
        client.get_json(client.site_path("stat/guest"))

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "api.err.Invalid"
    assert len(os_controller.calls_to("GET", GUESTS)) == 1
    assert len(os_controller.calls_to("POST", OS_LOGIN)) == 1


def test_api_error_plain_text_body(make_client, os_controller):
    os_controller.add("GET", GUESTS, make_response(502, "Bad Gateway from proxy"))
    client = make_client()

    with pytest.raises(ApiError, match="Bad Gateway from proxy"):
        client.execute("GET", client.site_path("stat/guest"))


def test_error_envelope_on_success_status(make_client, os_controller):
    os_controller.add("GET", GUESTS, envelope(rc="error", msg="api.err.NoSiteContext"))
    client = make_client()

    with pytest.raises(ApiError, match="api.err.NoSiteContext"):
        client.get_json(client.site_path("stat/guest"))


def test_invalid_json_is_decode_error(make_client, os_controller):
    os_controller.add("GET", GUESTS, make_response(200, "<html>not json</html>"))
    client = make_client()

    with pytest.raises(DecodeError):
        client.get_json(client.site_path("stat/guest"))


def test_model_mismatch_is_decode_error(make_client, os_controller):
    os_controller.add("GET", GUESTS, envelope([{"unexpected": True}]))
    client = make_client()

    with pytest.raises(DecodeError, match="Unexpected response shape"):
        client.get_json(client.site_path("stat/guest"), model=lambda item: item["_id"])


def test_plain_json_without_envelope(make_client, os_controller):
    os_controller.add("GET", "/proxy/network/api/self", make_response(200, {"name": "admin"}))
    client = make_client()

    assert client.get_json("/api/self") == {"name": "admin"}


def test_empty_body_returns_none(make_client, os_controller):
    os_controller.add("POST", AUTHORIZE, make_response(204))
    client = make_client()

    assert client.post_json(client.site_path("cmd/stamgr"), {"cmd": "noop"}) is None


def test_timeout_is_transport_error_without_retry(make_client, os_controller):
    os_controller.add("GET", GUESTS, requests.ReadTimeout("read timed out"))
    client = make_client(timeout=2)

    with pytest.raises(TransportError, match="timed out after 2.0s"):
        client.execute("GET", client.site_path("stat/guest"))

    assert len(os_controller.calls_to("GET", GUESTS)) == 1
    assert len(os_controller.calls_to("POST", OS_LOGIN)) == 1
    assert client.is_authenticated


def test_connection_error_is_transport_error(make_client, os_controller):
    os_controller.add("GET", GUESTS, requests.ConnectionError("connection refused"))
    client = make_client()

    with pytest.raises(TransportError, match="connection refused"):
        client.execute("GET", client.site_path("stat/guest"))


@pytest.mark.parametrize("endpoint", ["/api/self?foo=bar", "/api/self#frag", "https://evil.example/api", ""])
def test_invalid_endpoint_rejected(make_client, os_controller, endpoint):
    client = make_client()

    with pytest.raises(InvalidEndpointError):
        client.execute("GET", endpoint)
    assert os_controller.calls == []


def test_params_and_leading_slash(make_client, os_controller):
    os_controller.add("GET", GUESTS, envelope([]))
    client = make_client()

    client.get_json("api/s/default/stat/guest", params={"within": 24})
    assert os_controller.calls_to("GET", GUESTS)[0].params == {"within": 24}


def test_csrf_rotation(make_client, os_controller):
    os_controller.add("GET", GUESTS, make_response(200, headers={"X-Updated-CSRF-Token": "rotated"}), envelope([]))
    client = make_client()

    client.execute("GET", client.site_path("stat/guest"))
    client.execute("GET", client.site_path("stat/guest"))

    first, second = os_controller.calls_to("GET", GUESTS)
    assert first.headers["X-CSRF-Token"] == "test-csrf"
    assert second.headers["X-CSRF-Token"] == "rotated"
    assert second.headers["Cookie"] == "TOKEN=test-token"


def test_legacy_paths_have_no_prefix(make_client, legacy_controller):
    legacy_controller.add("GET", "/api/s/default/stat/guest", envelope([]))
    client = make_client()

    assert client.get_json(client.site_path("stat/guest")) == []
    get = legacy_controller.calls_to("GET", "/api/s/default/stat/guest")[0]
    assert get.headers["Cookie"] == "unifises=test-cookie"
    assert "X-CSRF-Token" not in get.headers


def test_with_site_shares_session(make_client, os_controller):
    os_controller.add("GET", "/proxy/network/api/s/branch/stat/guest", envelope([]))
    client = make_client()
    branch = client.with_site("branch")

    client.login()
    branch.get_json(branch.site_path("stat/guest"))

    assert branch.site == "branch"
    assert client.site == "default"
    assert len(os_controller.calls_to("POST", OS_LOGIN)) == 1


def test_invalid_certs_turn_off_verification(make_client, os_controller):
    client = make_client(accept_invalid_certs=True)
    client.login()

    assert os_controller.calls[0].verify is False


def test_connect_logs_in_immediately(controller):
    controller.add("POST", OS_LOGIN, os_login())
    client = UnifiClient.connect(controller_url=CONTROLLER_URL, username="admin", password="secret", transport=controller)

    assert client.is_authenticated
    assert "secret" not in repr(client)


def test_close_closes_shared_transport(make_client, os_controller):
    with make_client() as client:
        client.login()
    assert os_controller.closed
    assert not client.is_authenticated
