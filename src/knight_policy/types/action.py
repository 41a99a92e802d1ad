"""Hierarchical action patterns for permission policies.

An action is a dot-separated sequence of lowercase tokens, for example
``payments.wire.approve`` or ``security.admin.users.create``. Patterns may
replace the first or last token with ``*``:

- ``*``              : every action, whatever its depth
- ``*.approve``      : any single leading segment followed by ``approve``
- ``payments.*``     : anything below ``payments``, at any depth

Example
-------
::

    pattern = ActionPattern.parse("payments.*")
    assert pattern.matches(ActionPattern.parse("payments.wire.approve"))
    assert not pattern.matches(ActionPattern.parse("security.admin"))
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from knight_policy.errors import ValidationError

WILDCARD = "*"
SEPARATOR = "."

_TOKEN = re.compile(r"[a-z][a-z0-9-]*")


@dataclass(frozen=True)
class ActionPattern:
    """An immutable, validated action pattern.

    Attributes
    ----------
    value:
        The raw pattern text, exactly as supplied.

    Raises
    ------
    ValidationError
        If ``value`` is not a string, is blank, or contains a token that is
        neither ``*`` nor ``[a-z][a-z0-9-]*``.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationError("Action cannot be null or blank", self.value)
        for token in self.value.split(SEPARATOR):
            if token != WILDCARD and _TOKEN.fullmatch(token) is None:
                raise ValidationError(f"Invalid action format: {self.value!r}", self.value)

    @classmethod
    def parse(cls, text: str) -> ActionPattern:
        """Parse and validate an action pattern."""
        return cls(text)

    @classmethod
    def wildcard_all(cls) -> ActionPattern:
        """Return the pattern that matches every action."""
        return cls(WILDCARD)

    @property
    def tokens(self) -> tuple[str, ...]:
        return tuple(self.value.split(SEPARATOR))

    @property
    def is_wildcard(self) -> bool:
        """Return True if any token of this pattern is ``*``."""
        return WILDCARD in self.tokens

    def matches(self, concrete: ActionPattern | str) -> bool:
        """Return True if the concrete action is covered by this pattern.

        The concrete action is assumed to be well-formed and wildcard-free;
        no validation happens here.

        Parameters
        ----------
        concrete:
            A parsed action, or its raw string form.

        Returns
        -------
        bool
        """
        if self.value == WILDCARD:
            return True

        candidate = concrete.value if isinstance(concrete, ActionPattern) else concrete
        pattern_parts = self.value.split(SEPARATOR)
        candidate_parts = candidate.split(SEPARATOR)

        # *.tail: drop exactly one leading segment, the rest must be identical
        if pattern_parts[0] == WILDCARD:
            if len(candidate_parts) < 2:
                return False
            return candidate_parts[1:] == pattern_parts[1:]

        # head.*: everything below the prefix, however deep
        if pattern_parts[-1] == WILDCARD:
            head = pattern_parts[:-1]
            if len(candidate_parts) < len(pattern_parts):
                return False
            return candidate_parts[: len(head)] == head

        if WILDCARD in pattern_parts:
            return False

        return self.value == candidate

    def __str__(self) -> str:
        return self.value
