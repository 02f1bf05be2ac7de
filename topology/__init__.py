"""Service Topology Planner.

Turns a static list of service descriptors into a declarative deployment plan:
 - one image repository per service
 - one network (2 AZs, NAT instance egress) and one shared cluster
 - a public and an internal load-balancer listener on port 80
 - one task definition, service and path-routed target group per service
 - a private DNS zone with an alias record for the internal load balancer

Nothing here talks to a cloud API; the plan is handed to an external
provisioning engine.
"""
