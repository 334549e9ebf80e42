"""Mealy machine runner.

A runner walks one transition table over one input sequence:

    start()         -> initial action, state <- initial state
    step(token) * n -> first matching rule fires, state <- rule target
    finish()        -> finish action, result <- its return value

Each action runs inside its own emission scope. The runner is configured
with an invoker that either collects what actions emit (emitting mode) or
drops it (plain mode); the matching and state advancement code is the same
for both.
"""

from __future__ import annotations

from enum import Enum, auto
from types import SimpleNamespace
from typing import Any, Callable, Iterable, Iterator, Optional

from mealy.machine.errors import (
    EmissionScopeError,
    RunnerStateError,
    UnmatchedTokenError,
)
from mealy.machine.table import Rule, TransitionTable
from mealy.utils.logging import get_logger, new_run_id

logger = get_logger("machine.engine")


class RunPhase(Enum):
    """Lifecycle of a runner."""

    NEW = auto()
    RUNNING = auto()
    FINISHED = auto()
    FAILED = auto()


class Emitter:
    """Collects the values emitted by one action invocation."""

    def __init__(self) -> None:
        self._values: list[Any] = []
        self._closed = False

    def emit(self, value: Any) -> None:
        """
        Append a value to the output of the current step.

        Raises:
            EmissionScopeError: If the owning action already returned
        """
        if self._closed:
            raise EmissionScopeError(
                f"cannot emit {value!r}: the action owning this emitter has returned"
            )
        self._record(value)

    def _record(self, value: Any) -> None:
        self._values.append(value)

    def close(self) -> list[Any]:
        """Close the scope and return the emitted values in order."""
        self._closed = True
        return self._values


class DiscardingEmitter(Emitter):
    """Emitter for plain runs: values are dropped."""

    def _record(self, value: Any) -> None:
        logger.debug("emission_discarded", value=value)


class ActionContext:
    """
    What an action sees of the run.

    Attributes:
        user: The shared user-state object of the run
    """

    __slots__ = ("user", "_emitter")

    def __init__(self, user: Any, emitter: Emitter) -> None:
        self.user = user
        self._emitter = emitter

    def emit(self, value: Any) -> None:
        self._emitter.emit(value)

    def emit_all(self, values: Iterable[Any]) -> None:
        for value in values:
            self._emitter.emit(value)


class ActionInvoker:
    """Runs an action inside a fresh emission scope."""

    emitter_class: type[Emitter] = Emitter

    def invoke(
        self,
        action: Callable[..., Any],
        user: Any,
        *args: Any,
    ) -> tuple[Any, list[Any]]:
        """
        Call ``action(ctx, *args)``.

        Returns:
            The action's return value and the values it emitted
        """
        emitter = self.emitter_class()
        try:
            result = action(ActionContext(user, emitter), *args)
        finally:
            values = emitter.close()
        return result, values


class CollectingInvoker(ActionInvoker):
    """Keeps emitted values (emitting mode)."""

    emitter_class = Emitter


class DiscardingInvoker(ActionInvoker):
    """Drops emitted values (plain mode)."""

    emitter_class = DiscardingEmitter


class MealyRunner:
    """
    One execution of a transition table.

    The runner owns the current state and the shared user-state object for
    the whole run. Tables are never modified, so one table can back any
    number of runners.
    """

    def __init__(
        self,
        table: TransitionTable,
        user_state: Any = None,
        *,
        emitting: bool = False,
        trace: bool = False,
        invoker: Optional[ActionInvoker] = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            table: Transition table to execute
            user_state: Object shared by all actions (fresh namespace if None)
            emitting: Collect emitted values
            trace: Log every transition at debug level
            invoker: Override the invoker selected by ``emitting``
        """
        self.table = table
        self.user_state = SimpleNamespace() if user_state is None else user_state
        self.emitting = emitting
        self.trace = trace

        if invoker is None:
            invoker = CollectingInvoker() if emitting else DiscardingInvoker()
        self.invoker = invoker

        self.run_id = new_run_id()
        self._log = logger.bind(run_id=self.run_id)

        self._phase = RunPhase.NEW
        self._state: Any = None
        self._steps = 0
        self._emissions: list[Any] = []
        self._result: Any = None

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def state(self) -> Any:
        """Current state (None before start)."""
        return self._state

    @property
    def steps(self) -> int:
        """Number of tokens accepted so far."""
        return self._steps

    @property
    def emissions(self) -> list[Any]:
        """Every value collected so far, in emission order."""
        return list(self._emissions)

    @property
    def result(self) -> Any:
        """Finish action's return value, or the user state without one."""
        if self._phase is not RunPhase.FINISHED:
            raise RunnerStateError(f"run has no result while {self._phase.name}")
        return self._result

    def start(self) -> list[Any]:
        """
        Enter the initial state and run its action.

        Returns:
            Values emitted by the initial action
        """
        self._require(RunPhase.NEW, "start")

        state, action = self.table.initial()
        self._state = state
        self._phase = RunPhase.RUNNING
        self._log.debug("run_started", initial_state=state)

        _, values = self._invoke(action)
        return values

    def step(self, token: Any) -> list[Any]:
        """
        Consume one token.

        Returns:
            Values emitted by the fired rule's action

        Raises:
            UnmatchedTokenError: If no rule of the current state accepts the token
        """
        self._require(RunPhase.RUNNING, "step")

        rule = self._lookup(token)
        from_state = self._state
        to_state = rule.target
        self._state = to_state
        self._steps += 1

        if self.trace:
            self._log.debug(
                "transition",
                step=self._steps,
                token=token,
                from_state=from_state,
                to_state=to_state,
            )

        _, values = self._invoke(rule.action, token, from_state, to_state)
        return values

    def finish(self) -> list[Any]:
        """
        Run the finish action once the input is exhausted.

        Returns:
            Values emitted by the finish action
        """
        self._require(RunPhase.RUNNING, "finish")

        action = self.table.finish_action()
        result, values = self._invoke(action)
        self._result = self.user_state if action is None else result
        self._phase = RunPhase.FINISHED

        self._log.debug(
            "run_finished",
            final_state=self._state,
            steps=self._steps,
            emissions=len(self._emissions),
        )
        return values

    def iter_run(self, tokens: Iterable[Any]) -> Iterator[Any]:
        """Run over ``tokens``, yielding emitted values as they are produced."""
        yield from self.start()
        for token in tokens:
            yield from self.step(token)
        yield from self.finish()

    def run(self, tokens: Iterable[Any]) -> Any:
        """
        Run over ``tokens`` to completion.

        Returns:
            All emitted values in emitting mode, otherwise ``result``
        """
        for _ in self.iter_run(tokens):
            pass
        return self.emissions if self.emitting else self._result

    def _lookup(self, token: Any) -> Rule:
        """Find the first rule of the current state accepting ``token``."""
        try:
            for rule in self.table.rules_for(self._state):
                if rule.accepts(token):
                    return rule
        except Exception:
            # A raising predicate ends the run like a raising action
            self._phase = RunPhase.FAILED
            raise

        self._phase = RunPhase.FAILED
        self._log.info(
            "unmatched_token",
            state=self._state,
            token=token,
            step=self._steps + 1,
        )
        raise UnmatchedTokenError(self._state, token)

    def _invoke(self, action: Optional[Callable[..., Any]], *args: Any) -> tuple[Any, list[Any]]:
        if action is None:
            return None, []

        try:
            result, values = self.invoker.invoke(action, self.user_state, *args)
        except Exception:
            self._phase = RunPhase.FAILED
            raise

        self._emissions.extend(values)
        return result, values

    def _require(self, phase: RunPhase, operation: str) -> None:
        if self._phase is not phase:
            raise RunnerStateError(
                f"cannot {operation} a run that is {self._phase.name}"
            )


def run(
    table: TransitionTable,
    tokens: Iterable[Any],
    user_state: Any = None,
    *,
    trace: bool = False,
) -> Any:
    """
    Run a table without collecting emissions.

    Returns:
        The finish action's return value, or the user-state object when the
        table declares no finish action

    Raises:
        UnmatchedTokenError: If a token is not accepted in its state
    """
    return MealyRunner(table, user_state, trace=trace).run(tokens)


def run_emitting(
    table: TransitionTable,
    tokens: Iterable[Any],
    user_state: Any = None,
    *,
    trace: bool = False,
) -> list[Any]:
    """
    Run a table and return every emitted value in order.

    Raises:
        UnmatchedTokenError: If a token is not accepted in its state
    """
    return MealyRunner(table, user_state, emitting=True, trace=trace).run(tokens)


def iter_emissions(
    table: TransitionTable,
    tokens: Iterable[Any],
    user_state: Any = None,
    *,
    trace: bool = False,
) -> Iterator[Any]:
    """
    Lazily run a table, yielding values as they are emitted.

    Values emitted before a failing token are yielded before the error is
    raised from the iterator.
    """
    runner = MealyRunner(table, user_state, emitting=True, trace=trace)
    return runner.iter_run(tokens)
