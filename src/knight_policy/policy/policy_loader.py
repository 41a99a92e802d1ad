"""YAML policy document loader.

PolicyLoader reads policy documents and builds PolicySet instances.

Schema
------
::

    version: "1.0"
    include_system_policies: true
    policies:
      - id: "pol-001"
        subject: "role:APPROVER"
        action: "*.approve"
        resource: "payment:*"
        effect: "allow"
        description: "Approvers may approve payments"
        profileId: "srv:0001"
      - id: "pol-002"
        subject: "user:550e8400-e29b-41d4-a716-446655440000"
        action: "payments.wire.*"
        resource:
          - "payment:wire:1001"
          - "payment:wire:1002"
        effect: "deny"

``include_system_policies`` prepends the in-memory policies of every
predefined role. ``resource`` may be a string or a list of identifiers and
defaults to ``*``.

Example
-------
::

    loader = PolicyLoader()
    policy_set = loader.load("/etc/knight/policies.yaml")
    covering = policy_set.covering(
        [SubjectRef.role("APPROVER")],
        ActionPattern.parse("transaction.approve"),
        "payment:98765",
    )
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import yaml

from knight_policy.errors import ValidationError
from knight_policy.policy.permission_policy import (
    PermissionPolicy,
    PolicyEffect,
    find_covering_policies,
    system_policies_for_role,
)
from knight_policy.types.action import ActionPattern
from knight_policy.types.roles import PredefinedRole
from knight_policy.types.subject import SubjectRef

logger = logging.getLogger(__name__)

_SUPPORTED_VERSIONS: frozenset[str] = frozenset(["1.0", "1"])


class PolicyConfigError(ValueError):
    """Raised when a policy document is malformed or invalid.

    Attributes
    ----------
    config_path:
        The path to the document that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")


@dataclass(frozen=True)
class PolicySet:
    """An immutable, ordered collection of loaded policies."""

    policies: tuple[PermissionPolicy, ...]
    source: str | None = None

    def __iter__(self) -> Iterator[PermissionPolicy]:
        return iter(self.policies)

    def __len__(self) -> int:
        return len(self.policies)

    def merged(self, other: PolicySet) -> PolicySet:
        """Return a set holding this set's policies followed by ``other``'s.

        System policies of ``other`` whose id is already present are dropped.
        """
        present = {p.id for p in self.policies if p.system_policy}
        extra = tuple(
            p for p in other.policies if not (p.system_policy and p.id in present)
        )
        return PolicySet(policies=self.policies + extra, source=self.source)

    def for_subjects(self, subjects: Iterable[SubjectRef]) -> list[PermissionPolicy]:
        subject_list = list(subjects)
        return [p for p in self.policies if p.applies_to_any(subject_list)]

    def allowed_actions(self, subjects: Iterable[SubjectRef]) -> set[str]:
        """Return the action pattern values of the ALLOW policies for ``subjects``.

        DENY policies are left out but do not remove anything; no effects
        are combined.
        """
        return {
            p.action.value
            for p in self.for_subjects(subjects)
            if p.effect is PolicyEffect.ALLOW
        }

    def with_system_policies(self) -> PolicySet:
        """Return a set with every predefined role's system policies prepended.

        System policies already present (by id) are not added again.
        """
        present = {p.id for p in self.policies}
        system = tuple(
            p
            for role in PredefinedRole
            for p in system_policies_for_role(role)
            if p.id not in present
        )
        return PolicySet(policies=system + self.policies, source=self.source)

    def covering(
        self,
        subjects: Iterable[SubjectRef],
        action: ActionPattern,
        resource_id: str | None = None,
    ) -> list[PermissionPolicy]:
        """Return the policies in this set that cover the request."""
        return find_covering_policies(self.policies, subjects, action, resource_id)


class PolicyLoader:
    """Loads PolicySet instances from YAML files, strings, or dicts.

    Parameters
    ----------
    strict:
        When ``True``, unknown top-level keys are treated as an error.
        Default ``False`` (unknown keys are ignored).
    """

    _KNOWN_TOP_KEYS: frozenset[str] = frozenset(
        ["version", "include_system_policies", "policies", "metadata", "description"]
    )

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    def load(self, config_path: str | Path) -> PolicySet:
        """Load a PolicySet from a YAML file on disk.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        PolicyConfigError
            If the path is not a regular file, or the file cannot be parsed
            or is structurally invalid.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Policy document not found: {config_path}")
        if not config_path.is_file():
            raise PolicyConfigError("Policy document path is not a file.", str(config_path))

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise PolicyConfigError(f"Failed to parse YAML: {exc}", str(config_path)) from exc

        return self._build_policy_set(raw, config_path=str(config_path))

    def load_many(self, config_paths: Iterable[str | Path]) -> PolicySet:
        """Load several documents and concatenate them in the given order."""
        combined = PolicySet(policies=())
        for path in config_paths:
            combined = combined.merged(self.load(path))
        return combined

    def load_from_dict(
        self,
        config: dict[str, object],
        config_path: str | None = None,
    ) -> PolicySet:
        return self._build_policy_set(config, config_path=config_path)

    def load_from_yaml_string(
        self,
        yaml_string: str,
        config_path: str | None = None,
    ) -> PolicySet:
        try:
            raw = yaml.safe_load(yaml_string) or {}
        except yaml.YAMLError as exc:
            raise PolicyConfigError(f"Failed to parse YAML string: {exc}", config_path) from exc
        return self._build_policy_set(raw, config_path=config_path)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_policy_set(
        self,
        raw: dict[str, object],
        config_path: str | None = None,
    ) -> PolicySet:
        self._validate_structure(raw, config_path)

        version = str(raw.get("version", "1.0"))
        if version not in _SUPPORTED_VERSIONS:
            raise PolicyConfigError(
                f"Unsupported policy document version {version!r}. "
                f"Supported: {sorted(_SUPPORTED_VERSIONS)}.",
                config_path,
            )

        policies: list[PermissionPolicy] = []
        if raw.get("include_system_policies", False):
            for role in PredefinedRole:
                policies.extend(system_policies_for_role(role))

        for index, raw_policy in enumerate(raw.get("policies") or []):
            if not isinstance(raw_policy, dict):
                raise PolicyConfigError(
                    f"Policy at index {index} must be a mapping; got {type(raw_policy).__name__}.",
                    config_path,
                )
            try:
                policies.append(PermissionPolicy.from_dict(raw_policy))
            except ValidationError as exc:
                raise PolicyConfigError(
                    f"Error in policy at index {index}: {exc}",
                    config_path,
                ) from exc

        logger.info(
            "Loaded %d permission policies from %s",
            len(policies),
            config_path or "<dict>",
        )
        return PolicySet(policies=tuple(policies), source=config_path)

    def _validate_structure(self, raw: object, config_path: str | None) -> None:
        if not isinstance(raw, dict):
            raise PolicyConfigError("Policy document must be a YAML mapping (dict).", config_path)

        if "policies" not in raw:
            raise PolicyConfigError("Policy document must contain a 'policies' list.", config_path)

        if raw["policies"] is not None and not isinstance(raw["policies"], list):
            raise PolicyConfigError("Policy document 'policies' must be a list.", config_path)

        if self._strict:
            unknown_keys = set(raw.keys()) - self._KNOWN_TOP_KEYS
            if unknown_keys:
                raise PolicyConfigError(
                    f"Unknown top-level keys: {sorted(unknown_keys)}. "
                    f"Known keys: {sorted(self._KNOWN_TOP_KEYS)}.",
                    config_path,
                )
