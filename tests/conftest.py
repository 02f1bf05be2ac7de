import dataclasses
import sys

import pytest

# Ensure project root is importable (so `import cli` / `import main` work without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from topology import db  # noqa: E402
from topology.registry import ServiceDescriptor  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the event log / plan store at a throwaway sqlite file."""
    path = str(tmp_path / "topology.db")
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=path))
    return path


@pytest.fixture
def make_service():
    def _make(name="svc", internet_facing=False, priority=10, alb_path="/svc*", **kw):
        fields = dict(
            name=name,
            internet_facing=internet_facing,
            container_port=8080,
            health_check_path="/health",
            memory_limit=512,
            cpu_limit=256,
            desired_count=1,
            priority=priority,
            alb_path=alb_path,
        )
        fields.update(kw)
        return ServiceDescriptor(**fields)

    return _make
