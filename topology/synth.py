from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from . import db
from .builder import TopologyBuilder
from .plan import DuplicateResourceError, Plan
from .registry import SERVICES, ServiceDescriptor
from .routing import PriorityConflictError, find_overlapping_patterns, find_priority_conflicts, select_listener
from .settings import Settings


@dataclass
class SynthResult:
    plan: Plan
    fingerprint: str
    warnings: list[str] = field(default_factory=list)
    stored: bool = False


def synthesize(
    registry: Iterable[ServiceDescriptor] = SERVICES,
    strict: bool | None = None,
    store: bool = True,
    settings: Settings | None = None,
) -> SynthResult:
    """Build a plan, record what happened in the event log, and optionally store it.

    Priority conflicts are reported as warnings unless strict mode is on, in
    which case the build is refused.
    """
    services = tuple(registry)
    builder = TopologyBuilder(settings, strict_priorities=strict)

    warnings: list[str] = []
    for c in find_priority_conflicts(services):
        warnings.append(
            f"Priority {c.priority} is used by {', '.join(c.services)} on the {c.listener} listener; "
            "the provider will reject this plan."
        )
    for o in find_overlapping_patterns(services):
        warnings.append(
            f"{o.first} shadows {o.second} on the {o.listener} listener (both match '{o.example_path}')."
        )

    if store:
        db.log_event("INFO", f"Synthesizing plan for {len(services)} service(s)")
    try:
        plan = builder.build(services)
    except (PriorityConflictError, DuplicateResourceError) as e:
        if store:
            db.log_event("ERROR", f"Plan synthesis failed: {e}")
        raise

    result = SynthResult(plan=plan, fingerprint=plan.fingerprint(), warnings=warnings)
    if not store:
        return result

    for s in services:
        db.log_event(
            "INFO",
            f"Routed {s.alb_path} (priority {s.priority}) on the {select_listener(s)} listener",
            service_name=s.name,
        )
    for w in warnings:
        db.log_event("WARN", w)
    db.save_plan(result.fingerprint, len(plan), plan.to_json())
    db.log_event("INFO", f"Stored plan {result.fingerprint[:12]} with {len(plan)} resources")
    result.stored = True
    return result
