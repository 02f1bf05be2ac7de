from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Iterator


# Resource type names follow the provider's resource-definition vocabulary.
REPOSITORY = "AWS::ECR::Repository"
VPC = "AWS::EC2::VPC"
SECURITY_GROUP = "AWS::EC2::SecurityGroup"
CLUSTER = "AWS::ECS::Cluster"
LOAD_BALANCER = "AWS::ElasticLoadBalancingV2::LoadBalancer"
LISTENER = "AWS::ElasticLoadBalancingV2::Listener"
TARGET_GROUP = "AWS::ElasticLoadBalancingV2::TargetGroup"
LISTENER_RULE = "AWS::ElasticLoadBalancingV2::ListenerRule"
TASK_DEFINITION = "AWS::ECS::TaskDefinition"
ECS_SERVICE = "AWS::ECS::Service"
HOSTED_ZONE = "AWS::Route53::HostedZone"
RECORD_SET = "AWS::Route53::RecordSet"
LOG_GROUP = "AWS::Logs::LogGroup"


class DuplicateResourceError(ValueError):
    pass


def ref(logical_id: str) -> dict[str, str]:
    """Reference to another resource in the same plan."""
    return {"Ref": logical_id}


def get_att(logical_id: str, attribute: str) -> dict[str, list[str]]:
    return {"GetAtt": [logical_id, attribute]}


@dataclass
class Resource:
    logical_id: str
    type: str
    properties: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Type": self.type, "Properties": self.properties}
        if self.depends_on:
            out["DependsOn"] = list(self.depends_on)
        return out


class Plan:
    """Ordered collection of resources keyed by logical id.

    Insertion order is the order resources were derived in; the provisioning
    engine resolves its own creation order from the references.
    """

    def __init__(self) -> None:
        self._resources: dict[str, Resource] = {}

    def add(self, resource: Resource) -> Resource:
        if resource.logical_id in self._resources:
            raise DuplicateResourceError(
                f"A resource with logical id '{resource.logical_id}' already exists in the plan."
            )
        self._resources[resource.logical_id] = resource
        return resource

    def get(self, logical_id: str) -> Resource:
        return self._resources[logical_id]

    def of_type(self, type_name: str) -> list[Resource]:
        return [r for r in self._resources.values() if r.type == type_name]

    def __contains__(self, logical_id: object) -> bool:
        return logical_id in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Plan):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict[str, Any]:
        return {"Resources": {rid: r.to_dict() for rid, r in self._resources.items()}}

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def fingerprint(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
