"""Resource patterns: glob strings and comma-separated glob lists.

Resources are usually written as ``{system}:{type}:{identifier}`` but no
structure is enforced. A pattern is either one glob or a comma-separated
list of globs; a candidate matches when any glob in the list matches.

Within a glob, ``*`` stands for zero or more arbitrary characters and
every other character is literal. Matching is anchored at both ends and
case-sensitive.

Example
-------
::

    pattern = ResourcePattern.parse("payment:*, account:chq:*")
    assert pattern.matches("payment:98765")
    assert pattern.matches("account:chq:001")
    assert not pattern.matches("Payment:98765")
"""
from __future__ import annotations

import functools
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from knight_policy.errors import ValidationError

WILDCARD = "*"
LIST_SEPARATOR = ","


@functools.lru_cache(maxsize=1024)
def _compile_glob(glob: str) -> re.Pattern[str]:
    """Translate a glob into an anchored regex; only ``*`` is special."""
    regex = ".*".join(re.escape(chunk) for chunk in glob.split(WILDCARD))
    return re.compile(regex, re.DOTALL)


def glob_matches(glob: str, candidate: str) -> bool:
    """Return True if ``candidate`` matches the single glob ``glob``."""
    if glob == WILDCARD:
        return True
    return _compile_glob(glob).fullmatch(candidate) is not None


@dataclass(frozen=True)
class ResourcePattern:
    """An immutable resource pattern.

    Attributes
    ----------
    value:
        The raw pattern text, exactly as supplied.
    sub_patterns:
        The trimmed individual globs, in the order written. Duplicates are
        kept.

    Raises
    ------
    ValidationError
        If ``value`` is not a string or is blank.
    """

    value: str
    sub_patterns: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationError("Resource cannot be null or blank", self.value)
        object.__setattr__(
            self,
            "sub_patterns",
            tuple(part.strip() for part in self.value.split(LIST_SEPARATOR)),
        )

    @classmethod
    def parse(cls, text: str) -> ResourcePattern:
        """Parse a single glob or a comma-separated list of globs."""
        return cls(text)

    @classmethod
    def wildcard_all(cls) -> ResourcePattern:
        """Return the pattern that matches every resource."""
        return cls(WILDCARD)

    @classmethod
    def of_list(cls, identifiers: Iterable[str]) -> ResourcePattern:
        """Build a list pattern from individual resource identifiers.

        Raises
        ------
        ValidationError
            If ``identifiers`` is empty.
        """
        return cls(", ".join(identifiers))

    def patterns(self) -> list[str]:
        """Return the individual globs for display or audit."""
        return list(self.sub_patterns)

    def matches(self, candidate: str) -> bool:
        """Return True if any sub-pattern matches ``candidate``."""
        if self.value == WILDCARD:
            return True
        return any(glob_matches(glob, candidate) for glob in self.sub_patterns)

    def __str__(self) -> str:
        return self.value
