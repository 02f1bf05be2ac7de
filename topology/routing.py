from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from . import plan as p
from .plan import Plan
from .registry import ServiceDescriptor


PUBLIC = "public"
INTERNAL = "internal"

# Logical ids of the two listeners every plan carries.
LISTENER_IDS: dict[str, str] = {
    PUBLIC: "HTTPListenerForWeb",
    INTERNAL: "InternalHttpListener",
}

SERVICE_TAG = "topology:service"


class UnknownListener(ValueError):
    pass


class PriorityConflictError(ValueError):
    def __init__(self, conflicts: list["PriorityConflict"]):
        self.conflicts = conflicts
        detail = "; ".join(
            f"{c.listener} listener priority {c.priority}: {', '.join(c.services)}" for c in conflicts
        )
        super().__init__(f"Duplicate listener rule priorities: {detail}")


@dataclass(frozen=True)
class RoutingRule:
    """Where one service is placed and how traffic reaches it."""

    service: str
    listener: str
    priority: int
    path_pattern: str
    health_check_path: str
    target_port: int

    @property
    def listener_id(self) -> str:
        return LISTENER_IDS[self.listener]

    @property
    def target_group_id(self) -> str:
        return f"{self.service}-TargetGroup"

    @property
    def rule_id(self) -> str:
        return f"{self.service}-ListenerRule"


@dataclass(frozen=True)
class PriorityConflict:
    listener: str
    priority: int
    services: tuple[str, ...]


@dataclass(frozen=True)
class PatternOverlap:
    listener: str
    first: str  # evaluated first (lower priority number)
    second: str
    example_path: str


@dataclass(frozen=True)
class Route:
    listener: str
    priority: int
    path_pattern: str
    service: str
    target_group: str
    health_check_path: str


@dataclass(frozen=True)
class RouteDecision:
    listener: str
    path: str
    route: Route | None
    status_code: int | None = None
    message_body: str | None = None
    # Services whose rules share the winning priority; the provider refuses such a listener.
    tied_with: tuple[str, ...] = ()

    @property
    def ambiguous(self) -> bool:
        return bool(self.tied_with)

    @property
    def matched(self) -> bool:
        return self.route is not None


def select_listener(service: ServiceDescriptor) -> str:
    return PUBLIC if service.internet_facing else INTERNAL


def derive_rule(service: ServiceDescriptor) -> RoutingRule:
    """Placement policy for a single descriptor.

    Health check path and path pattern are carried over verbatim.
    """
    return RoutingRule(
        service=service.name,
        listener=select_listener(service),
        priority=service.priority,
        path_pattern=service.alb_path,
        health_check_path=service.health_check_path,
        target_port=service.container_port,
    )


def listener_id(listener: str) -> str:
    """Accept 'public'/'internal' or a listener logical id."""
    if listener in LISTENER_IDS:
        return LISTENER_IDS[listener]
    if listener in LISTENER_IDS.values():
        return listener
    raise UnknownListener(f"Unknown listener '{listener}'. Use one of: {', '.join(LISTENER_IDS)}.")


def listener_name(logical_id: str) -> str:
    for name, lid in LISTENER_IDS.items():
        if lid == logical_id:
            return name
    raise UnknownListener(f"Unknown listener '{logical_id}'.")


def find_priority_conflicts(registry: Iterable[ServiceDescriptor]) -> list[PriorityConflict]:
    """Priorities shared by two or more services on the same listener."""
    by_key: dict[tuple[str, int], list[str]] = defaultdict(list)
    for s in registry:
        by_key[(select_listener(s), s.priority)].append(s.name)
    return [
        PriorityConflict(listener=lst, priority=prio, services=tuple(names))
        for (lst, prio), names in sorted(by_key.items())
        if len(names) > 1
    ]


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    for ch in pattern:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def path_matches(pattern: str, path: str) -> bool:
    """Load-balancer path-pattern match: case sensitive, '*' any run, '?' one char."""
    return _pattern_regex(pattern).fullmatch(path) is not None


def common_path(a: str, b: str) -> str | None:
    """Return a path matched by both patterns, or None if they are disjoint."""
    memo: dict[tuple[int, int], str | None] = {}

    def walk(i: int, j: int) -> str | None:
        key = (i, j)
        if key in memo:
            return memo[key]
        out: str | None = None
        if i == len(a) and j == len(b):
            out = ""
        elif i < len(a) and a[i] == "*":
            out = walk(i + 1, j)
            if out is None and j < len(b):
                rest = walk(i, j + 1)
                if rest is not None:
                    out = _witness(b[j]) + rest
        elif j < len(b) and b[j] == "*":
            out = walk(i, j + 1)
            if out is None and i < len(a):
                rest = walk(i + 1, j)
                if rest is not None:
                    out = _witness(a[i]) + rest
        elif i < len(a) and j < len(b) and (a[i] == b[j] or "?" in (a[i], b[j])):
            rest = walk(i + 1, j + 1)
            if rest is not None:
                ch = a[i] if a[i] != "?" else b[j]
                out = _witness(ch) + rest
        memo[key] = out
        return out

    return walk(0, 0)


def _witness(ch: str) -> str:
    if ch == "*":
        return ""
    if ch == "?":
        return "x"
    return ch


def find_overlapping_patterns(registry: Iterable[ServiceDescriptor]) -> list[PatternOverlap]:
    """Pairs of services on one listener whose path patterns can match the same path.

    Advisory only: an overlap is fine when the narrower pattern has the lower priority.
    """
    by_listener: dict[str, list[ServiceDescriptor]] = defaultdict(list)
    for s in registry:
        by_listener[select_listener(s)].append(s)

    out: list[PatternOverlap] = []
    for lst in sorted(by_listener):
        services = sorted(by_listener[lst], key=lambda s: (s.priority, s.name))
        for i, first in enumerate(services):
            for second in services[i + 1 :]:
                example = common_path(first.alb_path, second.alb_path)
                if example is not None:
                    out.append(PatternOverlap(lst, first.name, second.name, example))
    return out


def route_table(plan: Plan, listener: str) -> list[Route]:
    """Rules attached to a listener, in evaluation order."""
    lid = listener_id(listener)
    if lid not in plan:
        raise UnknownListener(f"Listener '{lid}' is not part of this plan.")
    name = listener_name(lid)

    routes: list[Route] = []
    for rule in plan.of_type(p.LISTENER_RULE):
        props = rule.properties
        if props["ListenerArn"] != p.ref(lid):
            continue
        tg_id = props["Actions"][0]["TargetGroupArn"]["Ref"]
        tg = plan.get(tg_id).properties
        service = next((t["Value"] for t in tg.get("Tags", []) if t["Key"] == SERVICE_TAG), tg_id)
        for cond in props["Conditions"]:
            if cond["Field"] != "path-pattern":
                continue
            for pattern in cond["PathPatternConfig"]["Values"]:
                routes.append(
                    Route(
                        listener=name,
                        priority=int(props["Priority"]),
                        path_pattern=pattern,
                        service=service,
                        target_group=tg_id,
                        health_check_path=tg["HealthCheckPath"],
                    )
                )
    routes.sort(key=lambda r: r.priority)
    return routes


def resolve(plan: Plan, listener: str, path: str) -> RouteDecision:
    """Evaluate a request path the way the load balancer would.

    Rules are tried in ascending priority; the first match wins. When nothing
    matches, the listener's fixed default response applies. A winning rule
    whose priority is shared with another rule is reported in ``tied_with``.
    """
    lid = listener_id(listener)
    name = listener_name(lid)
    routes = route_table(plan, lid)
    for route in routes:
        if path_matches(route.path_pattern, path):
            tied = tuple(
                r.service for r in routes if r.priority == route.priority and r.service != route.service
            )
            return RouteDecision(listener=name, path=path, route=route, tied_with=tied)

    status: int | None = None
    body: str | None = None
    for action in plan.get(lid).properties.get("DefaultActions", []):
        if action.get("Type") == "fixed-response":
            cfg = action["FixedResponseConfig"]
            status = int(cfg["StatusCode"])
            body = cfg.get("MessageBody")
            break
    return RouteDecision(listener=name, path=path, route=None, status_code=status, message_body=body)
