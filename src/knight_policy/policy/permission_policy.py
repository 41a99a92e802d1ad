"""Permission policies: who may perform which actions on which resources.

A PermissionPolicy binds a SubjectRef, an ActionPattern and a
ResourcePattern to an effect. This module answers "does this policy cover
the request?" for a single policy and filters a policy collection down to
the covering ones. Combining the effects of several covering policies into
a final decision is left to the caller.

Example
-------
::

    policy = PermissionPolicy.create(
        profile_id="srv:0001",
        subject=SubjectRef.role("APPROVER"),
        action=ActionPattern.parse("*.approve"),
        resource=ResourcePattern.parse("payment:*"),
        created_by="admin@bank",
    )
    assert policy.covers(
        [SubjectRef.role("APPROVER")],
        ActionPattern.parse("transaction.approve"),
        "payment:98765",
    )
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from knight_policy.errors import ValidationError
from knight_policy.types.action import ActionPattern
from knight_policy.types.resource import ResourcePattern
from knight_policy.types.roles import PredefinedRole
from knight_policy.types.subject import SubjectRef

logger = logging.getLogger(__name__)

SYSTEM_CREATOR = "SYSTEM"


class PolicyEffect(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"

    @classmethod
    def parse(cls, text: str) -> PolicyEffect:
        """Parse ``allow``/``deny`` in any case."""
        try:
            return cls(str(text).upper())
        except ValueError:
            raise ValidationError(
                f"Unknown policy effect {text!r}; expected 'allow' or 'deny'", text
            ) from None


_FIELD_TYPES: tuple[tuple[str, type], ...] = (
    ("subject", SubjectRef),
    ("action", ActionPattern),
    ("resource", ResourcePattern),
    ("effect", PolicyEffect),
)


def _first_present(data: Mapping[str, object], *keys: str) -> object | None:
    """Return the value of the first key in ``keys`` whose value is not None."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# PermissionPolicy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionPolicy:
    """A single permission policy.

    Attributes
    ----------
    id:
        Policy identifier. System policies use ``system:role:<ROLE>:<suffix>``.
    subject:
        The principal the policy applies to.
    action:
        Action pattern the policy grants or denies.
    resource:
        Resource pattern; defaults to every resource.
    effect:
        ``ALLOW`` (default) or ``DENY``.
    description:
        Human-readable description.
    profile_id:
        Owning profile, or ``None`` for system policies.
    system_policy:
        ``True`` for the in-memory policies of predefined roles.
    created_by:
        Who authored the policy.

    Raises
    ------
    ValidationError
        If ``id`` is blank or a pattern, subject or effect field holds a
        value of the wrong type.
    """

    id: str
    subject: SubjectRef
    action: ActionPattern
    resource: ResourcePattern = field(default_factory=ResourcePattern.wildcard_all)
    effect: PolicyEffect = PolicyEffect.ALLOW
    description: str | None = None
    profile_id: str | None = None
    system_policy: bool = False
    created_by: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValidationError("Policy id cannot be null or blank", self.id)
        for name, expected in _FIELD_TYPES:
            value = getattr(self, name)
            if not isinstance(value, expected):
                raise ValidationError(
                    f"Policy {name} must be a {expected.__name__}, got {type(value).__name__}",
                    value,
                )

    @classmethod
    def create(
        cls,
        profile_id: str,
        subject: SubjectRef,
        action: ActionPattern,
        created_by: str,
        resource: ResourcePattern | None = None,
        effect: PolicyEffect = PolicyEffect.ALLOW,
        description: str | None = None,
    ) -> PermissionPolicy:
        """Create a custom policy owned by a profile, with a fresh id.

        Raises
        ------
        ValidationError
            If ``profile_id`` or ``created_by`` is missing.
        """
        if not profile_id:
            raise ValidationError("profile_id is required for custom policies")
        if not created_by:
            raise ValidationError("created_by is required")
        return cls(
            id=str(uuid.uuid4()),
            subject=subject,
            action=action,
            resource=resource if resource is not None else ResourcePattern.wildcard_all(),
            effect=effect,
            description=description,
            profile_id=profile_id,
            created_by=created_by,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PermissionPolicy:
        """Build a policy from a plain mapping.

        Accepts the DTO field names produced by :meth:`to_dict` as well as
        the short keys ``subject``, ``action`` and ``resource``.

        Raises
        ------
        ValidationError
            If a required key is missing or any value fails validation.
        """
        subject_urn = _first_present(data, "subject", "subjectUrn")
        action_text = _first_present(data, "action", "actionPattern")
        if subject_urn is None:
            raise ValidationError("Policy must define a 'subject'")
        if action_text is None:
            raise ValidationError("Policy must define an 'action'")

        resource_text = _first_present(data, "resource", "resourcePattern")
        if isinstance(resource_text, list):
            resource = ResourcePattern.of_list(str(r) for r in resource_text)
        elif resource_text is None:
            resource = ResourcePattern.wildcard_all()
        else:
            resource = ResourcePattern.parse(str(resource_text))

        effect_raw = data.get("effect")
        description = data.get("description")
        profile_id = _first_present(data, "profileId", "profile_id")
        created_by = _first_present(data, "createdBy", "created_by")

        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            subject=SubjectRef.from_urn(str(subject_urn)),
            action=ActionPattern.parse(str(action_text)),
            resource=resource,
            effect=PolicyEffect.parse(str(effect_raw)) if effect_raw is not None else PolicyEffect.ALLOW,
            description=str(description) if description is not None else None,
            profile_id=str(profile_id) if profile_id is not None else None,
            created_by=str(created_by) if created_by is not None else None,
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def matches(self, action: ActionPattern, resource_id: str) -> bool:
        """Return True if both the action and the resource patterns match."""
        return self.action.matches(action) and self.resource.matches(resource_id)

    def matches_action(self, action: ActionPattern) -> bool:
        return self.action.matches(action)

    def applies_to(self, subject: SubjectRef) -> bool:
        return self.subject == subject

    def applies_to_any(self, subjects: Iterable[SubjectRef]) -> bool:
        return any(self.applies_to(s) for s in subjects)

    def covers(
        self,
        subjects: Iterable[SubjectRef],
        action: ActionPattern,
        resource_id: str | None = None,
    ) -> bool:
        """Return True if the request falls under this policy.

        When ``resource_id`` is ``None`` only the action is checked.
        """
        if not self.applies_to_any(subjects):
            return False
        if resource_id is None:
            return self.matches_action(action)
        return self.matches(action, resource_id)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Return the policy as a plain DTO mapping."""
        return {
            "id": self.id,
            "subjectUrn": self.subject.to_urn(),
            "actionPattern": self.action.value,
            "resourcePattern": self.resource.value,
            "effect": self.effect.value,
            "description": self.description,
            "systemPolicy": self.system_policy,
            "profileId": self.profile_id,
            "createdBy": self.created_by,
        }


# ---------------------------------------------------------------------------
# System policies for predefined roles
# ---------------------------------------------------------------------------

_SYSTEM_POLICY_DESCRIPTIONS: dict[PredefinedRole, tuple[tuple[str, str], ...]] = {
    PredefinedRole.SECURITY_ADMIN: (
        ("security", "Security admin can perform all security-related actions"),
    ),
    PredefinedRole.SERVICE_ADMIN: (
        ("all", "Service admin has full access to all services and settings"),
    ),
    PredefinedRole.READER: (("view", "Reader can view all resources"),),
    PredefinedRole.CREATOR: (
        ("create", "Creator can create resources"),
        ("update", "Creator can update resources"),
        ("delete", "Creator can delete resources"),
    ),
    PredefinedRole.APPROVER: (("approve", "Approver can approve pending items"),),
}


def system_policies_for_role(role: PredefinedRole) -> list[PermissionPolicy]:
    """Return the in-memory ALLOW policies that a predefined role carries.

    One policy is produced per action pattern of the role, in the order the
    role declares them, each over every resource.
    """
    return [
        PermissionPolicy(
            id=f"system:role:{role.role_name}:{suffix}",
            subject=role.subject,
            action=action,
            description=description,
            system_policy=True,
            created_by=SYSTEM_CREATOR,
        )
        for action, (suffix, description) in zip(
            role.action_patterns, _SYSTEM_POLICY_DESCRIPTIONS[role]
        )
    ]


def system_policies_for_role_names(role_names: Iterable[str]) -> list[PermissionPolicy]:
    """Return system policies for every predefined role among ``role_names``.

    Names that are not predefined roles are skipped.
    """
    policies: list[PermissionPolicy] = []
    for name in role_names:
        if not PredefinedRole.is_predefined(name):
            logger.warning("Skipping unknown predefined role: %s", name)
            continue
        policies.extend(system_policies_for_role(PredefinedRole.from_name(name)))
    return policies


def subjects_for(user_id: uuid.UUID | str, role_names: Iterable[str] = ()) -> list[SubjectRef]:
    """Return every principal a user acts as: the user, then each role held.

    Raises
    ------
    ValidationError
        If ``user_id`` is not a UUID or a role name is not a valid role
        identifier.
    """
    subjects = [SubjectRef.user(user_id)]
    subjects.extend(SubjectRef.role(name) for name in role_names)
    return subjects


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------


def find_covering_policies(
    policies: Iterable[PermissionPolicy],
    subjects: Iterable[SubjectRef],
    action: ActionPattern,
    resource_id: str | None = None,
) -> list[PermissionPolicy]:
    """Return the policies that cover a request, in input order.

    Parameters
    ----------
    policies:
        Candidate policies.
    subjects:
        Every principal the actor acts as (its user subject and role
        subjects, typically).
    action:
        The concrete action being attempted.
    resource_id:
        The concrete resource, or ``None`` to match on the action alone.

    Returns
    -------
    list[PermissionPolicy]
        Covering policies of either effect. Deciding between them is the
        caller's responsibility.
    """
    subject_list = list(subjects)
    covering: list[PermissionPolicy] = []
    for policy in policies:
        if policy.covers(subject_list, action, resource_id):
            logger.debug(
                "Policy %s covers action=%s resource=%s (effect=%s)",
                policy.id,
                action,
                resource_id,
                policy.effect.value,
            )
            covering.append(policy)
    return covering
