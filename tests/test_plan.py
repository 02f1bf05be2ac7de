import json

import pytest

from topology.plan import REPOSITORY, DuplicateResourceError, Plan, Resource, get_att, ref


def test_plan_keeps_insertion_order_and_serialises():
    plan = Plan()
    plan.add(Resource("b", REPOSITORY, {"RepositoryName": "b"}))
    plan.add(Resource("a", REPOSITORY, {"RepositoryName": "a"}, depends_on=["b"]))

    assert [r.logical_id for r in plan] == ["b", "a"]
    assert len(plan) == 2
    assert "a" in plan and "zzz" not in plan

    body = json.loads(plan.to_json())
    assert list(body["Resources"]) == ["b", "a"]
    assert body["Resources"]["a"]["DependsOn"] == ["b"]
    assert "DependsOn" not in body["Resources"]["b"]


def test_duplicate_logical_id_rejected():
    plan = Plan()
    plan.add(Resource("x", REPOSITORY))
    with pytest.raises(DuplicateResourceError):
        plan.add(Resource("x", REPOSITORY))


def test_fingerprint_tracks_content():
    a, b = Plan(), Plan()
    a.add(Resource("x", REPOSITORY, {"RepositoryName": "x"}))
    b.add(Resource("x", REPOSITORY, {"RepositoryName": "x"}))
    assert a == b
    assert a.fingerprint() == b.fingerprint()

    b.get("x").properties["RepositoryName"] = "y"
    assert a != b
    assert a.fingerprint() != b.fingerprint()


def test_reference_helpers():
    assert ref("VPC") == {"Ref": "VPC"}
    assert get_att("Alb", "DNSName") == {"GetAtt": ["Alb", "DNSName"]}
