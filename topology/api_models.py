from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServiceDescriptorModel(BaseModel):
    """One registry entry as read from a JSON file or returned by the API.

    Accepts camelCase keys (internetFacing, albPath, ...) as well as snake_case.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Service name; also the image repository name")
    internet_facing: bool = Field(False, alias="internetFacing", description="Attach to the public listener")
    container_port: int = Field(..., alias="containerPort", ge=1, le=65535)
    health_check_path: str = Field("/health", alias="healthCheckPath")
    memory_limit: int = Field(..., alias="memoryLimit", gt=0, description="Task memory (MiB)")
    cpu_limit: int = Field(..., alias="cpuLimit", gt=0, description="Task CPU units")
    desired_count: int = Field(1, alias="desiredCount", ge=0)
    priority: int = Field(..., ge=1, le=50000, description="Listener rule priority, lower first")
    alb_path: str = Field(..., alias="albPath", min_length=1, description="Path pattern, e.g. /accounts*")


class RouteOut(BaseModel):
    listener: str
    priority: int
    path_pattern: str
    service: str
    target_group: str
    health_check_path: str


class RouteDecisionOut(BaseModel):
    listener: str
    path: str
    matched: bool
    service: str | None = None
    priority: int | None = None
    target_group: str | None = None
    status_code: int | None = Field(None, description="Fixed response status when nothing matched")
    message_body: str | None = None
    ambiguous: bool = False
    tied_with: list[str] = Field(default_factory=list, description="Services sharing the winning priority")


class PriorityConflictOut(BaseModel):
    listener: str
    priority: int
    services: list[str]


class PatternOverlapOut(BaseModel):
    listener: str
    first: str
    second: str
    example_path: str


class CheckOut(BaseModel):
    ok: bool
    priority_conflicts: list[PriorityConflictOut]
    pattern_overlaps: list[PatternOverlapOut]


class PlanSummaryOut(BaseModel):
    fingerprint: str
    resource_count: int
    created_at: str
