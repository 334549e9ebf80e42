"""Token matchers used by transition rules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class Matcher(Protocol):
    """Decides whether a rule applies to a token."""

    def accepts(self, token: Any) -> bool:
        ...


@dataclass(frozen=True)
class ExactValue:
    """Accepts tokens equal to ``value``."""

    value: Any

    def accepts(self, token: Any) -> bool:
        return token == self.value

    def __repr__(self) -> str:
        return repr(self.value)


class Wildcard:
    """Accepts every token. Use the ``ANY`` singleton."""

    _instance: "Wildcard | None" = None

    def __new__(cls) -> "Wildcard":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def accepts(self, token: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return "ANY"


ANY = Wildcard()


@dataclass(frozen=True)
class Predicate:
    """Delegates to a user-supplied boolean function of the token."""

    fn: Callable[[Any], Any]

    def accepts(self, token: Any) -> bool:
        return bool(self.fn(token))

    def __repr__(self) -> str:
        name = getattr(self.fn, "__qualname__", None) or repr(self.fn)
        return f"Predicate({name})"


@dataclass(frozen=True)
class Pattern:
    """Accepts string tokens fully matching a regular expression."""

    regex: re.Pattern

    def accepts(self, token: Any) -> bool:
        return isinstance(token, str) and self.regex.fullmatch(token) is not None

    def __repr__(self) -> str:
        return f"Pattern({self.regex.pattern!r})"


def as_matcher(value: Any) -> Matcher:
    """
    Coerce a declaration value into a matcher.

    ``None`` and ``ANY`` give the wildcard, compiled regexes give a
    ``Pattern``, objects with an ``accepts`` method are used as matchers
    and anything else is compared by equality. Plain callables are treated
    as values; wrap them in ``Predicate`` to match with them.
    """
    if value is None or value is ANY:
        return ANY
    if isinstance(value, Matcher):
        return value
    if isinstance(value, re.Pattern):
        return Pattern(value)
    return ExactValue(value)
