"""Matching primitives: action patterns, resource patterns and subjects.

Example
-------
::

    from knight_policy.types import ActionPattern, ResourcePattern, SubjectRef

    assert ActionPattern.parse("*.approve").matches(ActionPattern.parse("transaction.approve"))
    assert ResourcePattern.parse("payment:*").matches("payment:98765")
    assert SubjectRef.from_urn("ROLE:APPROVER") == SubjectRef.role("APPROVER")
"""
from __future__ import annotations

from knight_policy.types.action import ActionPattern
from knight_policy.types.resource import ResourcePattern
from knight_policy.types.roles import PredefinedRole
from knight_policy.types.subject import SubjectKind, SubjectRef

__all__ = [
    "ActionPattern",
    "PredefinedRole",
    "ResourcePattern",
    "SubjectKind",
    "SubjectRef",
]
