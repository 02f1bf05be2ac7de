from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("TOPO_DB_PATH", "topology.db")

    # Network
    vpc_cidr: str = os.getenv("TOPO_VPC_CIDR", "10.0.0.0/16")
    max_azs: int = _env_int("TOPO_MAX_AZS", 2)
    nat_instance_type: str = os.getenv("TOPO_NAT_INSTANCE_TYPE", "t2.micro")

    # Listeners / DNS
    listener_port: int = _env_int("TOPO_LISTENER_PORT", 80)
    default_response_status: int = _env_int("TOPO_DEFAULT_RESPONSE_STATUS", 200)
    default_response_body: str = os.getenv("TOPO_DEFAULT_RESPONSE_BODY", "No routes defined")
    zone_name: str = os.getenv("TOPO_ZONE_NAME", "service.internal")

    # Safety knobs
    # Off by default: duplicate priorities are left for the provider to reject at apply time.
    strict_priorities: bool = _env_bool("TOPO_STRICT_PRIORITIES", False)

    health_timeout_s: int = _env_int("TOPO_HEALTH_TIMEOUT_S", 2)


settings = Settings()
