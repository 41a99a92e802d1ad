"""Tests for PolicyLoader and PolicySet."""
from __future__ import annotations

import pathlib

import pytest

from knight_policy.errors import ValidationError
from knight_policy.policy.permission_policy import PolicyEffect
from knight_policy.policy.policy_loader import PolicyConfigError, PolicyLoader, PolicySet
from knight_policy.types.action import ActionPattern
from knight_policy.types.subject import SubjectRef

_USER_ID = "550e8400-e29b-41d4-a716-446655440000"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_VALID_CONFIG: dict[str, object] = {
    "version": "1.0",
    "policies": [
        {
            "id": "pol-001",
            "subject": "role:APPROVER",
            "action": "*.approve",
            "resource": "payment:*",
            "effect": "allow",
            "description": "Approvers may approve payments",
            "profileId": "srv:0001",
        },
        {
            "id": "pol-002",
            "subject": f"user:{_USER_ID}",
            "action": "payments.wire.*",
            "resource": ["payment:wire:1001", "payment:wire:1002"],
            "effect": "deny",
        },
    ],
}

_VALID_YAML = f"""
version: "1"
policies:
  - id: pol-001
    subject: "role:APPROVER"
    action: "*.approve"
    resource: "payment:*"
  - id: pol-002
    subject: "USER:{_USER_ID}"
    action: "payments.wire.*"
    effect: deny
"""


@pytest.fixture()
def loader() -> PolicyLoader:
    return PolicyLoader()


@pytest.fixture()
def strict_loader() -> PolicyLoader:
    return PolicyLoader(strict=True)


# ---------------------------------------------------------------------------
# load_from_dict
# ---------------------------------------------------------------------------

class TestPolicyLoaderFromDict:
    def test_returns_policy_set(self, loader: PolicyLoader) -> None:
        policy_set = loader.load_from_dict(_VALID_CONFIG)
        assert isinstance(policy_set, PolicySet)
        assert len(policy_set) == 2

    def test_policies_in_document_order(self, loader: PolicyLoader) -> None:
        policy_set = loader.load_from_dict(_VALID_CONFIG)
        assert [p.id for p in policy_set] == ["pol-001", "pol-002"]

    def test_resource_list_loaded(self, loader: PolicyLoader) -> None:
        policy_set = loader.load_from_dict(_VALID_CONFIG)
        assert policy_set.policies[1].resource.patterns() == [
            "payment:wire:1001",
            "payment:wire:1002",
        ]
        assert policy_set.policies[1].effect is PolicyEffect.DENY

    def test_missing_policies_key_raises(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="policies"):
            loader.load_from_dict({"version": "1.0"})

    def test_non_list_policies_raises(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="must be a list"):
            loader.load_from_dict({"policies": "role:APPROVER"})

    def test_non_dict_config_raises(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="mapping"):
            loader.load_from_dict([{"subject": "role:A"}])  # type: ignore[arg-type]

    def test_non_dict_policy_raises(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="index 0"):
            loader.load_from_dict({"policies": ["role:APPROVER"]})

    def test_empty_policies_valid(self, loader: PolicyLoader) -> None:
        assert len(loader.load_from_dict({"policies": []})) == 0

    def test_null_policies_valid(self, loader: PolicyLoader) -> None:
        assert len(loader.load_from_dict({"policies": None})) == 0

    def test_unsupported_version_raises(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="version"):
            loader.load_from_dict({**_VALID_CONFIG, "version": "99.0"})

    def test_invalid_policy_reports_index_and_chains(self, loader: PolicyLoader) -> None:
        config = {
            "policies": [
                {"subject": "role:APPROVER", "action": "*.approve"},
                {"subject": "role:approver", "action": "*.approve"},
            ]
        }
        with pytest.raises(PolicyConfigError, match="index 1") as exc_info:
            loader.load_from_dict(config, config_path="inline.yaml")
        assert isinstance(exc_info.value.__cause__, ValidationError)
        assert exc_info.value.config_path == "inline.yaml"
        assert str(exc_info.value).startswith("[inline.yaml]")

    def test_include_system_policies_prepends(self, loader: PolicyLoader) -> None:
        policy_set = loader.load_from_dict({**_VALID_CONFIG, "include_system_policies": True})
        ids = [p.id for p in policy_set]
        assert ids[0] == "system:role:SECURITY_ADMIN:security"
        assert ids[-2:] == ["pol-001", "pol-002"]
        assert len(policy_set) == 7 + 2

    def test_load_many_keeps_one_copy_of_system_policies(
        self, loader: PolicyLoader, tmp_path: pathlib.Path
    ) -> None:
        paths: list[pathlib.Path] = []
        for name in ("a.yaml", "b.yaml"):
            path = tmp_path / name
            path.write_text("include_system_policies: true\npolicies: []\n", encoding="utf-8")
            paths.append(path)
        ids = [p.id for p in loader.load_many(paths)]
        assert len(ids) == 7
        assert len(set(ids)) == 7


class TestPolicyLoaderStrict:
    def test_rejects_unknown_keys(self, strict_loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="unknown_key"):
            strict_loader.load_from_dict({**_VALID_CONFIG, "unknown_key": 1})

    def test_accepts_known_keys(self, strict_loader: PolicyLoader) -> None:
        config = {**_VALID_CONFIG, "metadata": {"owner": "sec"}, "description": "d"}
        assert len(strict_loader.load_from_dict(config)) == 2

    def test_lenient_ignores_unknown_keys(self, loader: PolicyLoader) -> None:
        assert len(loader.load_from_dict({**_VALID_CONFIG, "unknown_key": 1})) == 2


# ---------------------------------------------------------------------------
# YAML sources
# ---------------------------------------------------------------------------

class TestPolicyLoaderYaml:
    def test_load_from_yaml_string(self, loader: PolicyLoader) -> None:
        policy_set = loader.load_from_yaml_string(_VALID_YAML)
        assert [p.id for p in policy_set] == ["pol-001", "pol-002"]
        assert policy_set.policies[1].subject == SubjectRef.user(_USER_ID)

    def test_bad_yaml_string(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="parse YAML"):
            loader.load_from_yaml_string("policies: [unclosed")

    def test_empty_yaml_string(self, loader: PolicyLoader) -> None:
        with pytest.raises(PolicyConfigError, match="policies"):
            loader.load_from_yaml_string("")

    def test_load_file(self, loader: PolicyLoader, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "policies.yaml"
        path.write_text(_VALID_YAML, encoding="utf-8")
        policy_set = loader.load(path)
        assert len(policy_set) == 2
        assert policy_set.source == str(path)

    def test_load_missing_file(self, loader: PolicyLoader, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

    def test_load_directory_raises_config_error(
        self, loader: PolicyLoader, tmp_path: pathlib.Path
    ) -> None:
        with pytest.raises(PolicyConfigError, match="not a file") as exc_info:
            loader.load(tmp_path)
        assert exc_info.value.config_path == str(tmp_path)

    def test_load_bad_file(self, loader: PolicyLoader, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("policies: [unclosed", encoding="utf-8")
        with pytest.raises(PolicyConfigError, match=str(path.name)):
            loader.load(path)

    def test_load_many_concatenates(self, loader: PolicyLoader, tmp_path: pathlib.Path) -> None:
        first = tmp_path / "a.yaml"
        second = tmp_path / "b.yaml"
        first.write_text(_VALID_YAML, encoding="utf-8")
        second.write_text(
            'policies:\n  - {id: pol-003, subject: "role:READER", action: "*.view"}\n',
            encoding="utf-8",
        )
        policy_set = loader.load_many([first, second])
        assert [p.id for p in policy_set] == ["pol-001", "pol-002", "pol-003"]

    def test_load_many_empty(self, loader: PolicyLoader) -> None:
        assert len(loader.load_many([])) == 0


# ---------------------------------------------------------------------------
# PolicySet
# ---------------------------------------------------------------------------

class TestPolicySet:
    @pytest.fixture()
    def policy_set(self, loader: PolicyLoader) -> PolicySet:
        return loader.load_from_dict(_VALID_CONFIG)

    def test_for_subjects(self, policy_set: PolicySet) -> None:
        result = policy_set.for_subjects([SubjectRef.user(_USER_ID)])
        assert [p.id for p in result] == ["pol-002"]

    def test_covering(self, policy_set: PolicySet) -> None:
        subjects = [SubjectRef.user(_USER_ID), SubjectRef.role("APPROVER")]
        wire = policy_set.covering(
            subjects, ActionPattern.parse("payments.wire.approve"), "payment:wire:1001"
        )
        assert [p.id for p in wire] == ["pol-002"]
        transaction = policy_set.covering(
            subjects, ActionPattern.parse("transaction.approve"), "payment:wire:1001"
        )
        assert [p.id for p in transaction] == ["pol-001"]

    def test_merged_keeps_order(self, policy_set: PolicySet) -> None:
        merged = policy_set.merged(policy_set)
        assert len(merged) == 4
        assert merged.source == policy_set.source

    def test_allowed_actions_allow_only(self, policy_set: PolicySet) -> None:
        subjects = [SubjectRef.user(_USER_ID), SubjectRef.role("APPROVER")]
        assert policy_set.allowed_actions(subjects) == {"*.approve"}

    def test_allowed_actions_unknown_subject(self, policy_set: PolicySet) -> None:
        assert policy_set.allowed_actions([SubjectRef.role("READER")]) == set()

    def test_allowed_actions_with_system_policies(self, policy_set: PolicySet) -> None:
        allowed = policy_set.with_system_policies().allowed_actions(
            [SubjectRef.user(_USER_ID), SubjectRef.role("CREATOR"), SubjectRef.role("APPROVER")]
        )
        assert allowed == {"*.create", "*.update", "*.delete", "*.approve"}

    def test_with_system_policies_prepends_once(self, policy_set: PolicySet) -> None:
        once = policy_set.with_system_policies()
        twice = once.with_system_policies()
        assert [p.id for p in twice] == [p.id for p in once]
        assert len(once) == 7 + 2
        assert once.policies[-2:] == policy_set.policies

    def test_merged_drops_repeated_system_policies(self, policy_set: PolicySet) -> None:
        with_system = policy_set.with_system_policies()
        merged = with_system.merged(with_system)
        assert len(merged) == 7 + 2 + 2
        assert sum(p.system_policy for p in merged) == 7
