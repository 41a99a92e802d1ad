"""Subject references: the principal a permission policy applies to.

A subject is a user, a group, or a role, serialised as a URN:

- ``user:{uuid}``
- ``group:{uuid}``
- ``role:{ROLE_NAME}``

The kind prefix is parsed case-insensitively; the identifier is kept
exactly as supplied.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from enum import Enum

from knight_policy.errors import ValidationError

URN_SEPARATOR = ":"

_UUID = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
_ROLE_NAME = re.compile(r"[A-Z][A-Z0-9_]*")


class SubjectKind(str, Enum):
    """The kinds of principal a policy can name."""

    USER = "USER"
    GROUP = "GROUP"
    ROLE = "ROLE"

    @property
    def prefix(self) -> str:
        """URN prefix for this kind (``user``, ``group`` or ``role``)."""
        return self.value.lower()

    def validate_identifier(self, identifier: str) -> None:
        """Raise ValidationError if ``identifier`` is not valid for this kind."""
        if self is SubjectKind.ROLE:
            if _ROLE_NAME.fullmatch(identifier) is None:
                raise ValidationError(f"Invalid role name: {identifier!r}", identifier)
        elif _UUID.fullmatch(identifier) is None:
            raise ValidationError(f"Invalid UUID for {self.value}: {identifier!r}", identifier)

    @classmethod
    def from_prefix(cls, prefix: str) -> SubjectKind:
        """Resolve a URN prefix, ignoring case."""
        for kind in cls:
            if kind.prefix == prefix.lower():
                return kind
        raise ValidationError(f"Unknown subject type: {prefix!r}", prefix)


@dataclass(frozen=True)
class SubjectRef:
    """An immutable, typed reference to a user, group or role.

    Two references are equal when both ``kind`` and ``identifier`` are equal.

    Attributes
    ----------
    kind:
        The principal kind.
    identifier:
        A UUID string for users and groups, an upper-case role name for
        roles.

    Raises
    ------
    ValidationError
        If ``kind`` is missing or ``identifier`` is blank or malformed for
        the kind.
    """

    kind: SubjectKind
    identifier: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, SubjectKind):
            raise ValidationError("Subject type cannot be null", self.kind)
        if not isinstance(self.identifier, str) or not self.identifier.strip():
            raise ValidationError("Subject identifier cannot be null or blank", self.identifier)
        self.kind.validate_identifier(self.identifier)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def user(cls, user_id: uuid.UUID | str) -> SubjectRef:
        return cls(SubjectKind.USER, _uuid_text(user_id))

    @classmethod
    def group(cls, group_id: uuid.UUID | str) -> SubjectRef:
        return cls(SubjectKind.GROUP, _uuid_text(group_id))

    @classmethod
    def role(cls, role_name: str) -> SubjectRef:
        return cls(SubjectKind.ROLE, role_name)

    @classmethod
    def from_urn(cls, urn: str) -> SubjectRef:
        """Parse ``user:{uuid}``, ``group:{uuid}`` or ``role:{NAME}``.

        Only the kind prefix is case-insensitive; the identifier is not
        normalised.

        Raises
        ------
        ValidationError
            If ``urn`` is missing, has no ``:``, names an unknown kind, or
            carries an identifier that is invalid for the kind.
        """
        if not isinstance(urn, str) or URN_SEPARATOR not in urn:
            raise ValidationError(f"Invalid subject URN: {urn!r}", urn)
        prefix, identifier = urn.split(URN_SEPARATOR, 1)
        return cls(SubjectKind.from_prefix(prefix), identifier)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_urn(self) -> str:
        return f"{self.kind.prefix}{URN_SEPARATOR}{self.identifier}"

    @property
    def urn(self) -> str:
        return self.to_urn()

    def __str__(self) -> str:
        return self.to_urn()


def _uuid_text(value: uuid.UUID | str) -> str:
    if isinstance(value, uuid.UUID):
        return str(value)
    return value
