from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from pydantic import ValidationError

from .api_models import ServiceDescriptorModel


class RegistryError(ValueError):
    pass


@dataclass(frozen=True)
class ServiceDescriptor:
    name: str
    internet_facing: bool
    container_port: int
    health_check_path: str
    memory_limit: int
    cpu_limit: int
    desired_count: int
    priority: int
    alb_path: str

    @classmethod
    def from_model(cls, m: ServiceDescriptorModel) -> "ServiceDescriptor":
        return cls(**m.model_dump())

    def to_model(self) -> ServiceDescriptorModel:
        return ServiceDescriptorModel(**self.__dict__)


Registry = tuple[ServiceDescriptor, ...]


SERVICES: Registry = (
    ServiceDescriptor(
        name="account-service",
        internet_facing=False,
        container_port=3000,
        health_check_path="/health",
        memory_limit=512,
        cpu_limit=256,
        desired_count=1,
        priority=2,
        alb_path="/accounts*",
    ),
    ServiceDescriptor(
        name="customer-service",
        internet_facing=False,
        container_port=3000,
        health_check_path="/health",
        memory_limit=512,
        cpu_limit=256,
        desired_count=1,
        priority=3,
        alb_path="/customers*",
    ),
    ServiceDescriptor(
        name="frontend-app",
        internet_facing=True,
        container_port=80,
        health_check_path="/health",
        memory_limit=512,
        cpu_limit=256,
        desired_count=1,
        priority=4,
        alb_path="/*",
    ),
)


def iter_services(registry: Iterable[ServiceDescriptor] = SERVICES) -> Iterator[ServiceDescriptor]:
    """Enumerate descriptors in registry order."""
    yield from registry


def find_service(name: str, registry: Iterable[ServiceDescriptor] = SERVICES) -> ServiceDescriptor | None:
    for s in registry:
        if s.name == name:
            return s
    return None


def parse_registry(data: Any) -> Registry:
    """Build a registry from decoded JSON.

    Accepts either a list of descriptors or an object with a ``services`` list.
    Only field types and ranges are checked; duplicate names or priorities are not.
    """
    if isinstance(data, dict):
        data = data.get("services")
    if not isinstance(data, list):
        raise RegistryError("Registry must be a list of services or an object with a 'services' list.")

    out: list[ServiceDescriptor] = []
    for i, item in enumerate(data):
        try:
            model = ServiceDescriptorModel.model_validate(item)
        except ValidationError as e:
            raise RegistryError(f"Invalid service at index {i}: {e}") from e
        out.append(ServiceDescriptor.from_model(model))
    return tuple(out)


def load_registry(path: str) -> Registry:
    if not os.path.isfile(path):
        raise RegistryError(f"Registry file not found: {path}")
    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise RegistryError(f"Registry file is not valid JSON: {e}") from e
    return parse_registry(data)
