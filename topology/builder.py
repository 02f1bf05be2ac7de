from __future__ import annotations

from typing import Iterable

from . import plan as p
from .plan import Plan, Resource, get_att, ref
from .registry import SERVICES, ServiceDescriptor
from .routing import (
    INTERNAL,
    LISTENER_IDS,
    PUBLIC,
    SERVICE_TAG,
    PriorityConflictError,
    derive_rule,
    find_priority_conflicts,
)
from .settings import Settings, settings as default_settings


VPC_ID = "VPC-for-ECS"
CLUSTER_ID = "ECS-Cluster"
PUBLIC_SG_ID = "InternetFacingAlbSG"
PUBLIC_ALB_ID = "InternetFacingAlB"
INTERNAL_SG_ID = "InternalAlbSG"
INTERNAL_ALB_ID = "InternalAlb"
HOSTED_ZONE_ID = "Route53-Private-HostedZone"
ALIAS_RECORD_ID = "AliasRecord"

SUBNET_PUBLIC = "PUBLIC"
SUBNET_PRIVATE = "PRIVATE_WITH_NAT"


def repository_id(name: str) -> str:
    return f"ECR-Repository-{name}"


class TopologyBuilder:
    """Translates a service registry into a deployment plan.

    Steps run in a fixed order: repositories, network, cluster, public
    listener, internal listener, per-service placement, DNS. Each call to
    build() starts from an empty plan, so repeated builds are identical.
    """

    def __init__(self, settings: Settings | None = None, strict_priorities: bool | None = None):
        self.settings = settings or default_settings
        self.strict_priorities = (
            self.settings.strict_priorities if strict_priorities is None else bool(strict_priorities)
        )

    def build(self, registry: Iterable[ServiceDescriptor] = SERVICES) -> Plan:
        services = tuple(registry)
        if self.strict_priorities:
            conflicts = find_priority_conflicts(services)
            if conflicts:
                raise PriorityConflictError(conflicts)

        plan = Plan()
        self._setup_repositories(plan, services)
        self._setup_vpc(plan)
        self._setup_cluster(plan)
        self._setup_internet_facing_alb(plan)
        self._setup_internal_alb(plan)
        for service in services:
            self._setup_service(plan, service)
        self._setup_hosted_zone(plan)
        return plan

    def _setup_repositories(self, plan: Plan, services: tuple[ServiceDescriptor, ...]) -> None:
        for s in services:
            plan.add(Resource(repository_id(s.name), p.REPOSITORY, {"RepositoryName": s.name}))

    def _setup_vpc(self, plan: Plan) -> None:
        # Fixed topology: two AZs, one NAT instance for private egress.
        plan.add(
            Resource(
                VPC_ID,
                p.VPC,
                {
                    "CidrBlock": self.settings.vpc_cidr,
                    "MaxAzs": self.settings.max_azs,
                    "Subnets": [
                        {"Name": "Public", "SubnetType": SUBNET_PUBLIC},
                        {"Name": "Private", "SubnetType": SUBNET_PRIVATE},
                    ],
                    "NatGateways": {
                        "Provider": "instance",
                        "InstanceType": self.settings.nat_instance_type,
                        "Count": 1,
                    },
                },
            )
        )

    def _setup_cluster(self, plan: Plan) -> None:
        plan.add(Resource(CLUSTER_ID, p.CLUSTER, {"Vpc": ref(VPC_ID)}))

    def _setup_internet_facing_alb(self, plan: Plan) -> None:
        self._add_alb(
            plan,
            sg_id=PUBLIC_SG_ID,
            alb_id=PUBLIC_ALB_ID,
            listener_id=LISTENER_IDS[PUBLIC],
            ingress_cidr="0.0.0.0/0",
            ingress_description="HTTP Access",
            internet_facing=True,
        )

    def _setup_internal_alb(self, plan: Plan) -> None:
        self._add_alb(
            plan,
            sg_id=INTERNAL_SG_ID,
            alb_id=INTERNAL_ALB_ID,
            listener_id=LISTENER_IDS[INTERNAL],
            ingress_cidr=self.settings.vpc_cidr,
            ingress_description="Internal HTTP Access",
            internet_facing=False,
        )

    def _add_alb(
        self,
        plan: Plan,
        sg_id: str,
        alb_id: str,
        listener_id: str,
        ingress_cidr: str,
        ingress_description: str,
        internet_facing: bool,
    ) -> None:
        port = self.settings.listener_port
        plan.add(
            Resource(
                sg_id,
                p.SECURITY_GROUP,
                {
                    "VpcId": ref(VPC_ID),
                    "SecurityGroupIngress": [
                        {
                            "CidrIp": ingress_cidr,
                            "IpProtocol": "tcp",
                            "FromPort": port,
                            "ToPort": port,
                            "Description": ingress_description,
                        }
                    ],
                },
            )
        )
        plan.add(
            Resource(
                alb_id,
                p.LOAD_BALANCER,
                {
                    "Type": "application",
                    "Scheme": "internet-facing" if internet_facing else "internal",
                    "Subnets": {
                        "Vpc": ref(VPC_ID),
                        "SubnetType": SUBNET_PUBLIC if internet_facing else SUBNET_PRIVATE,
                    },
                    "SecurityGroups": [ref(sg_id)],
                },
            )
        )
        plan.add(
            Resource(
                listener_id,
                p.LISTENER,
                {
                    "LoadBalancerArn": ref(alb_id),
                    "Port": port,
                    "Protocol": "HTTP",
                    "DefaultActions": [
                        {
                            "Type": "fixed-response",
                            "FixedResponseConfig": {
                                "StatusCode": str(self.settings.default_response_status),
                                "MessageBody": self.settings.default_response_body,
                            },
                        }
                    ],
                },
            )
        )

    def _setup_service(self, plan: Plan, s: ServiceDescriptor) -> None:
        """Task definition, service, target group and listener rule for one descriptor."""
        rule = derive_rule(s)
        container_name = f"{s.name}-Container"
        task_id = f"{s.name}-TaskDefinition"
        log_group_id = f"{s.name}-LogGroup"
        service_id = f"{s.name}-ECS-Service"

        plan.add(Resource(log_group_id, p.LOG_GROUP, {"RetentionInDays": 731}))

        plan.add(
            Resource(
                task_id,
                p.TASK_DEFINITION,
                {
                    "RequiresCompatibilities": ["FARGATE"],
                    "NetworkMode": "awsvpc",
                    "Memory": s.memory_limit,
                    "Cpu": s.cpu_limit,
                    "ContainerDefinitions": [
                        {
                            "Name": container_name,
                            "Image": {"Repository": ref(repository_id(s.name)), "Tag": "latest"},
                            "PortMappings": [{"ContainerPort": s.container_port, "Protocol": "tcp"}],
                            "LogConfiguration": {
                                "LogDriver": "awslogs",
                                "Options": {
                                    "awslogs-group": ref(log_group_id),
                                    "awslogs-stream-prefix": f"{s.name}-Logs",
                                },
                            },
                        }
                    ],
                },
            )
        )

        plan.add(
            Resource(
                rule.target_group_id,
                p.TARGET_GROUP,
                {
                    "VpcId": ref(VPC_ID),
                    "Protocol": "HTTP",
                    "TargetType": "ip",
                    "Port": rule.target_port,
                    "HealthCheckPath": rule.health_check_path,
                    "Tags": [{"Key": SERVICE_TAG, "Value": s.name}],
                },
            )
        )
        plan.add(
            Resource(
                rule.rule_id,
                p.LISTENER_RULE,
                {
                    "ListenerArn": ref(rule.listener_id),
                    "Priority": rule.priority,
                    "Conditions": [
                        {"Field": "path-pattern", "PathPatternConfig": {"Values": [rule.path_pattern]}}
                    ],
                    "Actions": [{"Type": "forward", "TargetGroupArn": ref(rule.target_group_id)}],
                },
            )
        )

        # The service can only register with a target group that is already attached to a listener.
        plan.add(
            Resource(
                service_id,
                p.ECS_SERVICE,
                {
                    "Cluster": ref(CLUSTER_ID),
                    "TaskDefinition": ref(task_id),
                    "LaunchType": "FARGATE",
                    "DesiredCount": s.desired_count,
                    "NetworkConfiguration": {
                        "AwsvpcConfiguration": {
                            "AssignPublicIp": "ENABLED" if s.internet_facing else "DISABLED",
                            "Subnets": {
                                "Vpc": ref(VPC_ID),
                                "SubnetType": SUBNET_PUBLIC if s.internet_facing else SUBNET_PRIVATE,
                            },
                        }
                    },
                    "LoadBalancers": [
                        {
                            "ContainerName": container_name,
                            "ContainerPort": s.container_port,
                            "TargetGroupArn": ref(rule.target_group_id),
                        }
                    ],
                },
                depends_on=[rule.rule_id],
            )
        )

    def _setup_hosted_zone(self, plan: Plan) -> None:
        # Private zone only; public traffic goes through the provider's own DNS for the public ALB.
        plan.add(
            Resource(
                HOSTED_ZONE_ID,
                p.HOSTED_ZONE,
                {"Name": self.settings.zone_name, "VPCs": [{"VPCId": ref(VPC_ID)}]},
            )
        )
        plan.add(
            Resource(
                ALIAS_RECORD_ID,
                p.RECORD_SET,
                {
                    "HostedZoneId": ref(HOSTED_ZONE_ID),
                    "Name": self.settings.zone_name,
                    "Type": "A",
                    "AliasTarget": {
                        "DNSName": get_att(INTERNAL_ALB_ID, "DNSName"),
                        "HostedZoneId": get_att(INTERNAL_ALB_ID, "CanonicalHostedZoneID"),
                    },
                },
            )
        )


def build(
    registry: Iterable[ServiceDescriptor] = SERVICES,
    settings: Settings | None = None,
    strict_priorities: bool | None = None,
) -> Plan:
    return TopologyBuilder(settings, strict_priorities=strict_priorities).build(registry)
