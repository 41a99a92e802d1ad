"""knight-policy-core: permission-matching core for banking administration.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import knight_policy as kp
>>> kp.__version__
'0.1.0'
>>> kp.ActionPattern.parse("*.approve").matches(kp.ActionPattern.parse("transaction.approve"))
True
>>> kp.ResourcePattern.parse("payment:*").matches("payment:98765")
True
>>> kp.SubjectRef.from_urn("role:APPROVER") == kp.SubjectRef.role("APPROVER")
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

from knight_policy.errors import ValidationError

# ---------------------------------------------------------------------------
# Matching primitives
# ---------------------------------------------------------------------------
from knight_policy.types.action import ActionPattern
from knight_policy.types.resource import ResourcePattern
from knight_policy.types.subject import SubjectKind, SubjectRef
from knight_policy.types.roles import PredefinedRole

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from knight_policy.policy.permission_policy import (
    PermissionPolicy,
    PolicyEffect,
    find_covering_policies,
    subjects_for,
    system_policies_for_role,
    system_policies_for_role_names,
)
from knight_policy.policy.policy_loader import PolicyConfigError, PolicyLoader, PolicySet

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from knight_policy.config import ConfigLoader, KnightPolicyConfig, LoggingConfig

__all__ = [
    "__version__",
    "ValidationError",
    # Matching primitives
    "ActionPattern",
    "ResourcePattern",
    "SubjectKind",
    "SubjectRef",
    "PredefinedRole",
    # Policies
    "PermissionPolicy",
    "PolicyEffect",
    "find_covering_policies",
    "system_policies_for_role",
    "system_policies_for_role_names",
    "subjects_for",
    "PolicyConfigError",
    "PolicyLoader",
    "PolicySet",
    # Configuration
    "ConfigLoader",
    "KnightPolicyConfig",
    "LoggingConfig",
]
