import httpx
import pytest

from topology.health import check_health, health_url
from topology.registry import find_service


def _transport(handler):
    return httpx.MockTransport(handler)


def test_health_url_uses_container_port_and_path():
    svc = find_service("account-service")
    assert health_url("10.0.1.15", svc) == "http://10.0.1.15:3000/health"


def test_check_health_ok():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text="ok")

    ok, msg, latency = check_health("http://task:3000/health", transport=_transport(handler))
    assert ok is True
    assert msg == "Healthy"
    assert latency is not None
    assert seen == ["http://task:3000/health"]


def test_check_health_non_200_is_unhealthy():
    ok, msg, _ = check_health("http://task/health", transport=_transport(lambda r: httpx.Response(503)))
    assert ok is False
    assert msg == "HTTP 503"

    # Redirects are not followed; the default matcher only accepts 200.
    ok, msg, _ = check_health(
        "http://task/health", transport=_transport(lambda r: httpx.Response(302, headers={"location": "/x"}))
    )
    assert ok is False
    assert msg == "HTTP 302"


def test_check_health_no_response():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    ok, msg, latency = check_health("http://task/health", transport=_transport(handler))
    assert ok is False
    assert msg == "No response"
    assert latency is not None


def test_health_url_brackets_ipv6_hosts():
    svc = find_service("frontend-app")
    assert health_url("::1", svc) == "http://[::1]:80/health"
    assert health_url("[fd00::5]", svc) == "http://[fd00::5]:80/health"


def test_check_health_ipv6_target():
    seen = []

    def handler(request):
        seen.append(request.url.host)
        return httpx.Response(200)

    ok, msg, _ = check_health(health_url("::1", find_service("frontend-app")), transport=_transport(handler))
    assert ok is True
    assert seen == ["::1"]


@pytest.mark.parametrize("host", ["h:abc", "[::1", "\x00x"])
def test_check_health_bad_address_is_unhealthy(host):
    reached = []

    def handler(request):
        reached.append(request)
        return httpx.Response(200)

    ok, msg, latency = check_health(health_url(host, find_service("frontend-app")), transport=_transport(handler))
    assert ok is False
    assert msg
    assert latency is not None
    assert reached == []
