"""Permission policies built on the matching primitives.

Example
-------
::

    from knight_policy.policy import PolicyLoader

    policy_set = PolicyLoader().load("policies.yaml")
"""
from __future__ import annotations

from knight_policy.policy.permission_policy import (
    PermissionPolicy,
    PolicyEffect,
    find_covering_policies,
    subjects_for,
    system_policies_for_role,
    system_policies_for_role_names,
)
from knight_policy.policy.policy_loader import (
    PolicyConfigError,
    PolicyLoader,
    PolicySet,
)

__all__ = [
    "PermissionPolicy",
    "PolicyEffect",
    "find_covering_policies",
    "system_policies_for_role",
    "system_policies_for_role_names",
    "subjects_for",
    "PolicyConfigError",
    "PolicyLoader",
    "PolicySet",
]
