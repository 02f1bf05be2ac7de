import pytest

from topology.builder import build
from topology.registry import SERVICES
from topology.routing import (
    INTERNAL,
    PUBLIC,
    UnknownListener,
    common_path,
    derive_rule,
    find_overlapping_patterns,
    find_priority_conflicts,
    path_matches,
    resolve,
    route_table,
    select_listener,
)


def test_select_listener_follows_internet_facing(make_service):
    assert select_listener(make_service(internet_facing=True)) == PUBLIC
    assert select_listener(make_service(internet_facing=False)) == INTERNAL


def test_derive_rule_copies_fields(make_service):
    rule = derive_rule(make_service(name="x", priority=9, alb_path="/x*", health_check_path="/hc", container_port=81))
    assert rule.listener == INTERNAL
    assert rule.priority == 9
    assert rule.path_pattern == "/x*"
    assert rule.health_check_path == "/hc"
    assert rule.target_port == 81
    assert rule.target_group_id == "x-TargetGroup"
    assert rule.listener_id == "InternalHttpListener"


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("/accounts*", "/accounts", True),
        ("/accounts*", "/accounts/42", True),
        ("/accounts*", "/Accounts", False),
        ("/accounts*", "/customers", False),
        ("/*", "/", True),
        ("/*", "/anything/at/all", True),
        ("/v?/items", "/v2/items", True),
        ("/v?/items", "/v10/items", False),
        ("/a.b", "/axb", False),
        ("/[x]", "/[x]", True),
    ],
)
def test_path_matches(pattern, path, expected):
    assert path_matches(pattern, path) is expected


def test_route_table_orders_by_priority(make_service):
    services = [
        make_service(name="late", priority=20, alb_path="/*"),
        make_service(name="early", priority=1, alb_path="/api*"),
    ]
    plan = build(services)
    routes = route_table(plan, INTERNAL)
    assert [r.service for r in routes] == ["early", "late"]
    assert [r.priority for r in routes] == [1, 20]
    assert route_table(plan, PUBLIC) == []


def test_resolve_builtin_registry():
    plan = build(SERVICES)

    d = resolve(plan, INTERNAL, "/accounts/1")
    assert d.matched and d.route.service == "account-service"

    d = resolve(plan, INTERNAL, "/customers")
    assert d.route.service == "customer-service"

    d = resolve(plan, PUBLIC, "/index.html")
    assert d.route.service == "frontend-app"
    assert d.route.priority == 4

    # Internal services are not reachable through the public listener's rules.
    d = resolve(plan, PUBLIC, "/accounts/1")
    assert d.route.service == "frontend-app"


def test_resolve_falls_back_to_fixed_response():
    plan = build(SERVICES)
    d = resolve(plan, INTERNAL, "/orders")
    assert not d.matched
    assert d.route is None
    assert d.status_code == 200
    assert d.message_body == "No routes defined"


def test_resolve_first_match_wins(make_service):
    services = [
        make_service(name="catch-all", priority=1, alb_path="/*"),
        make_service(name="api", priority=2, alb_path="/api*"),
    ]
    plan = build(services)
    assert resolve(plan, INTERNAL, "/api/users").route.service == "catch-all"


def test_unknown_listener():
    plan = build(SERVICES)
    with pytest.raises(UnknownListener):
        resolve(plan, "edge", "/")
    assert route_table(plan, "InternalHttpListener")


def test_find_priority_conflicts(make_service):
    services = [
        make_service(name="a", priority=3),
        make_service(name="b", priority=3),
        make_service(name="c", priority=3, internet_facing=True),
        make_service(name="d", priority=4),
    ]
    (conflict,) = find_priority_conflicts(services)
    assert conflict.listener == INTERNAL
    assert conflict.priority == 3
    assert conflict.services == ("a", "b")
    assert find_priority_conflicts(SERVICES) == []


def test_common_path():
    assert common_path("/accounts*", "/customers*") is None
    assert common_path("/*", "/accounts*") == "/accounts"
    assert common_path("/v?/x", "/v1/*") == "/v1/x"
    witness = common_path("/a*z", "/*b*")
    assert witness is not None
    assert path_matches("/a*z", witness) and path_matches("/*b*", witness)


def test_find_overlapping_patterns(make_service):
    assert find_overlapping_patterns(SERVICES) == []

    services = [
        make_service(name="api", priority=2, alb_path="/api*"),
        make_service(name="all", priority=1, alb_path="/*"),
        make_service(name="web", priority=1, alb_path="/*", internet_facing=True),
    ]
    (overlap,) = find_overlapping_patterns(services)
    assert overlap.listener == INTERNAL
    assert overlap.first == "all"
    assert overlap.second == "api"
    assert path_matches("/api*", overlap.example_path)


def test_resolve_reports_tied_priority(make_service):
    services = [
        make_service(name="a", priority=5, alb_path="/a*"),
        make_service(name="b", priority=5, alb_path="/b*"),
        make_service(name="c", priority=6, alb_path="/c*"),
    ]
    plan = build(services)

    d = resolve(plan, INTERNAL, "/b/1")
    assert d.route.service == "b"
    assert d.ambiguous is True
    assert d.tied_with == ("a",)

    d = resolve(plan, INTERNAL, "/c")
    assert d.ambiguous is False
    assert d.tied_with == ()

    assert resolve(plan, INTERNAL, "/zzz").ambiguous is False
