"""Predefined system roles and the action patterns they grant.

These roles carry base permissions that exist without any stored policy;
see :func:`knight_policy.policy.permission_policy.system_policies_for_role`.
"""
from __future__ import annotations

from enum import Enum

from knight_policy.errors import ValidationError
from knight_policy.types.action import ActionPattern
from knight_policy.types.subject import SubjectRef


class PredefinedRole(Enum):
    """Built-in roles: ``(role_name, comma-separated action patterns, description)``."""

    SECURITY_ADMIN = ("SECURITY_ADMIN", "security.*", "All security-related actions")
    SERVICE_ADMIN = ("SERVICE_ADMIN", "*", "Full access to all services and settings")
    READER = ("READER", "*.view", "View all resources")
    CREATOR = ("CREATOR", "*.create,*.update,*.delete", "Create, update, and delete resources")
    APPROVER = ("APPROVER", "*.approve", "Approve pending items")

    def __init__(self, role_name: str, action_patterns: str, description: str) -> None:
        self.role_name = role_name
        self._action_patterns = action_patterns
        self.description = description

    @property
    def action_patterns(self) -> tuple[ActionPattern, ...]:
        return tuple(ActionPattern.parse(p) for p in self._action_patterns.split(","))

    @property
    def subject(self) -> SubjectRef:
        """The ``role:{NAME}`` subject this role is granted through."""
        return SubjectRef.role(self.role_name)

    @classmethod
    def from_name(cls, name: str) -> PredefinedRole:
        """Look up a role by its exact (upper-case) name.

        Raises
        ------
        ValidationError
            If ``name`` is not a predefined role.
        """
        for role in cls:
            if role.role_name == name:
                return role
        raise ValidationError(f"Unknown predefined role: {name!r}", name)

    @classmethod
    def is_predefined(cls, name: str) -> bool:
        return any(role.role_name == name for role in cls)
