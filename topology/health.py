from __future__ import annotations

import time

import httpx

from .registry import ServiceDescriptor


def health_url(host: str, service: ServiceDescriptor) -> str:
    """URL a target-group health check would hit on one task.

    IPv6 literals are bracketed.
    """
    if ":" in host and not (host.startswith("[") and host.endswith("]")):
        host = f"[{host}]"
    return f"http://{host}:{int(service.container_port)}{service.health_check_path}"


def check_health(url: str, timeout_s: float = 2.0, transport: httpx.BaseTransport | None = None) -> tuple[bool, str, float | None]:
    """Probe a target the way the load balancer does.

    Healthy means HTTP 200, the load balancer's default success matcher.
    Returns (is_healthy, message, latency_ms).
    """
    start = time.time()
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False, transport=transport) as client:
            resp = client.get(url)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        if resp.status_code != 200:
            return False, f"HTTP {resp.status_code}", latency_ms
        return True, "Healthy", latency_ms
    except (httpx.ConnectError, httpx.TimeoutException):
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.InvalidURL as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Invalid URL: {e}", latency_ms
    except Exception as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms
