"""Exceptions raised by the transition table and the runner."""

from __future__ import annotations

from typing import Any


class MealyError(Exception):
    """Base class for all machine errors."""


class UnmatchedTokenError(MealyError):
    """No rule of the current state accepts the token read."""

    def __init__(self, state: Any, token: Any) -> None:
        self.state = state
        self.token = token
        super().__init__(
            f"no transition from state {state!r} on token {token!r}"
        )


class MalformedTableError(MealyError):
    """A transition table was declared inconsistently."""


class EmissionScopeError(MealyError):
    """A value was emitted outside of the action invocation that owned the emitter."""


class RunnerStateError(MealyError):
    """The runner was driven out of order (step before start, step after failure, ...)."""
