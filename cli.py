from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict

from topology import db
from topology.builder import build
from topology.health import check_health, health_url
from topology.plan import DuplicateResourceError
from topology.registry import SERVICES, RegistryError, find_service, load_registry
from topology.routing import (
    INTERNAL,
    PUBLIC,
    PriorityConflictError,
    UnknownListener,
    find_overlapping_patterns,
    find_priority_conflicts,
    resolve,
    route_table,
)
from topology.settings import settings
from topology.synth import synthesize


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _fail(msg: str) -> int:
    print(f"error: {msg}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Service topology planner")
    p.add_argument("--registry", help="JSON file with service descriptors (default: built-in registry)")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_synth = sub.add_parser("synth", help="Build the deployment plan and print it")
    s_synth.add_argument("--out", help="Write the plan to this file instead of stdout")
    s_synth.add_argument("--strict", action="store_true", help="Refuse duplicate priorities on one listener")
    s_synth.add_argument("--no-store", action="store_true", help="Do not record the plan in the local history")

    sub.add_parser("check", help="Report priority conflicts and overlapping path patterns")

    s_routes = sub.add_parser("routes", help="Show listener rules in evaluation order")
    s_routes.add_argument("--listener", choices=[PUBLIC, INTERNAL], help="Only this listener")

    s_match = sub.add_parser("match", help="Show which service a request path is routed to")
    s_match.add_argument("path")
    s_match.add_argument("--internal", action="store_true", help="Evaluate on the internal listener")

    s_probe = sub.add_parser("probe", help="Run a target health check against one task")
    s_probe.add_argument("service")
    s_probe.add_argument("--host", required=True, help="Task address")
    s_probe.add_argument("--timeout-s", type=float, default=float(settings.health_timeout_s))

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_plans = sub.add_parser("plans", help="List stored plans")
    s_plans.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    try:
        registry = load_registry(args.registry) if args.registry else SERVICES
    except RegistryError as e:
        return _fail(str(e))

    if args.cmd == "synth":
        try:
            result = synthesize(registry, strict=True if args.strict else None, store=not args.no_store)
        except (PriorityConflictError, DuplicateResourceError) as e:
            return _fail(str(e))
        for w in result.warnings:
            print(f"warning: {w}", file=sys.stderr)
        if args.out:
            with open(args.out, "w", encoding="utf-8") as fh:
                fh.write(result.plan.to_json())
                fh.write("\n")
            _print({"fingerprint": result.fingerprint, "resources": len(result.plan), "out": args.out})
        else:
            print(result.plan.to_json())
        return 0

    if args.cmd == "check":
        conflicts = find_priority_conflicts(registry)
        overlaps = find_overlapping_patterns(registry)
        _print(
            {
                "ok": not conflicts,
                "priority_conflicts": [asdict(c) for c in conflicts],
                "pattern_overlaps": [asdict(o) for o in overlaps],
            }
        )
        return 0 if not conflicts else 1

    if args.cmd == "routes":
        try:
            plan = build(registry)
        except (DuplicateResourceError, PriorityConflictError) as e:
            return _fail(str(e))
        listeners = [args.listener] if args.listener else [PUBLIC, INTERNAL]
        _print({lst: [asdict(r) for r in route_table(plan, lst)] for lst in listeners})
        return 0

    if args.cmd == "match":
        try:
            plan = build(registry)
            decision = resolve(plan, INTERNAL if args.internal else PUBLIC, args.path)
        except (DuplicateResourceError, PriorityConflictError, UnknownListener) as e:
            return _fail(str(e))
        out = asdict(decision)
        out["matched"] = decision.matched
        out["ambiguous"] = decision.ambiguous
        _print(out)
        return 0

    if args.cmd == "probe":
        service = find_service(args.service, registry)
        if service is None:
            return _fail(f"Unknown service '{args.service}'.")
        url = health_url(args.host, service)
        ok, msg, latency = check_health(url, timeout_s=args.timeout_s)
        _print({"service": service.name, "url": url, "healthy": ok, "message": msg, "latency_ms": latency})
        return 0 if ok else 1

    if args.cmd == "events":
        _print(db.latest_events(args.limit))
        return 0

    if args.cmd == "plans":
        _print(
            [
                {"fingerprint": r.fingerprint, "resource_count": r.resource_count, "created_at": r.created_at}
                for r in db.list_plans(args.limit)
            ]
        )
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
