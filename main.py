from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request

from topology import db
from topology.api_models import (
    CheckOut,
    PatternOverlapOut,
    PlanSummaryOut,
    PriorityConflictOut,
    RouteDecisionOut,
    RouteOut,
    ServiceDescriptorModel,
)
from topology.builder import build
from topology.plan import DuplicateResourceError, Plan
from topology.registry import SERVICES, Registry
from topology.routing import (
    PUBLIC,
    PriorityConflictError,
    UnknownListener,
    find_overlapping_patterns,
    find_priority_conflicts,
    resolve,
    route_table,
)


app = FastAPI(title="Service Topology Planner")
app.state.registry = SERVICES


def _registry(request: Request) -> Registry:
    return request.app.state.registry


def _plan(request: Request) -> Plan:
    try:
        return build(_registry(request))
    except (DuplicateResourceError, PriorityConflictError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/services", response_model=list[ServiceDescriptorModel])
def list_services(request: Request) -> list[ServiceDescriptorModel]:
    return [s.to_model() for s in _registry(request)]


@app.get("/plan")
def get_plan(request: Request) -> dict[str, Any]:
    plan = _plan(request)
    return {"fingerprint": plan.fingerprint(), **plan.to_dict()}


@app.get("/routes/{listener}", response_model=list[RouteOut])
def get_routes(listener: str, request: Request) -> list[RouteOut]:
    plan = _plan(request)
    try:
        routes = route_table(plan, listener)
    except UnknownListener as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return [RouteOut(**asdict(r)) for r in routes]


@app.get("/match", response_model=RouteDecisionOut)
def match(request: Request, path: str = Query(..., min_length=1), listener: str = PUBLIC) -> RouteDecisionOut:
    plan = _plan(request)
    try:
        d = resolve(plan, listener, path)
    except UnknownListener as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return RouteDecisionOut(
        listener=d.listener,
        path=d.path,
        matched=d.matched,
        service=d.route.service if d.route else None,
        priority=d.route.priority if d.route else None,
        target_group=d.route.target_group if d.route else None,
        status_code=d.status_code,
        message_body=d.message_body,
        ambiguous=d.ambiguous,
        tied_with=list(d.tied_with),
    )


@app.get("/check", response_model=CheckOut)
def check(request: Request) -> CheckOut:
    registry = _registry(request)
    conflicts = find_priority_conflicts(registry)
    return CheckOut(
        ok=not conflicts,
        priority_conflicts=[
            PriorityConflictOut(listener=c.listener, priority=c.priority, services=list(c.services)) for c in conflicts
        ],
        pattern_overlaps=[PatternOverlapOut(**asdict(o)) for o in find_overlapping_patterns(registry)],
    )


@app.get("/events")
def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict[str, Any]]:
    return db.latest_events(limit)


@app.get("/plans", response_model=list[PlanSummaryOut])
def plans(limit: int = Query(20, ge=1, le=200)) -> list[PlanSummaryOut]:
    return [
        PlanSummaryOut(fingerprint=r.fingerprint, resource_count=r.resource_count, created_at=r.created_at)
        for r in db.list_plans(limit)
    ]
