"""Transition table definitions and the builder that declares them."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional

from mealy.machine.errors import MalformedTableError
from mealy.machine.matchers import ANY, Matcher, as_matcher

if TYPE_CHECKING:
    from mealy.machine.engine import ActionContext

# initial/finish: action(ctx); transition: action(ctx, token, from_state, to_state)
StateAction = Callable[["ActionContext"], Any]
TransitionAction = Callable[["ActionContext", Any, Any, Any], Any]


@dataclass(frozen=True)
class Rule:
    """One transition out of a state."""

    matcher: Matcher
    target: Any
    action: Optional[TransitionAction] = None

    def accepts(self, token: Any) -> bool:
        return self.matcher.accepts(token)


class TransitionTable:
    """
    Immutable declaration of a Mealy machine.

    Maps each state to its ordered rules. Rule order is significant: the
    first rule whose matcher accepts a token is the one that fires, so
    wildcard rules belong after the specific ones.
    """

    def __init__(
        self,
        initial_state: Any,
        rules: Mapping[Any, Iterable[Rule]],
        initial_action: Optional[StateAction] = None,
        finish_action: Optional[StateAction] = None,
    ) -> None:
        self._initial_state = initial_state
        self._initial_action = initial_action
        self._finish_action = finish_action
        self._rules: Mapping[Any, tuple[Rule, ...]] = MappingProxyType(
            {state: tuple(state_rules) for state, state_rules in rules.items()}
        )

    def rules_for(self, state: Any) -> tuple[Rule, ...]:
        """Get the ordered rules of a state (empty for dead-end states)."""
        return self._rules.get(state, ())

    def initial(self) -> tuple[Any, Optional[StateAction]]:
        """Get the initial state and its action."""
        return self._initial_state, self._initial_action

    def finish_action(self) -> Optional[StateAction]:
        return self._finish_action

    def states(self) -> frozenset:
        """All states named as initial state, rule origin or rule target."""
        found = {self._initial_state}
        for state, state_rules in self._rules.items():
            found.add(state)
            found.update(rule.target for rule in state_rules)
        return frozenset(found)

    def __repr__(self) -> str:
        count = sum(len(state_rules) for state_rules in self._rules.values())
        return (
            f"TransitionTable(initial={self._initial_state!r}, "
            f"states={len(self.states())}, rules={count})"
        )


_UNSET = object()


class TableBuilder:
    """
    Fluent declaration of a transition table.

    Example:
        builder = TableBuilder()
        builder.initial_state("start", lambda ctx: setattr(ctx.user, "count", 0))
        builder.read("start", on=1, action=increment)
        builder.transition("start", "end", on=0)
        builder.read("end")
        table = builder.build()
    """

    def __init__(self) -> None:
        self._initial_state: Any = _UNSET
        self._initial_action: Optional[StateAction] = None
        self._finish_action: Optional[StateAction] = None
        self._has_finish = False
        self._rules: dict[Any, list[Rule]] = {}

    def initial_state(
        self,
        state: Any,
        action: Optional[StateAction] = None,
    ) -> "TableBuilder":
        """
        Declare the initial state.

        Raises:
            MalformedTableError: If an initial state was already declared
        """
        if self._initial_state is not _UNSET:
            raise MalformedTableError(
                f"initial state already set to {self._initial_state!r}"
            )
        self._initial_state = state
        self._initial_action = action
        return self

    def transition(
        self,
        from_: Any,
        to: Any,
        on: Any = ANY,
        action: Optional[TransitionAction] = None,
    ) -> "TableBuilder":
        """
        Declare a transition.

        Args:
            from_: Origin state, or a list of origin states
            to: Target state
            on: Token value, regex, matcher, or ANY (default)
            action: Called as action(ctx, token, from_state, to_state)
        """
        origins = from_ if isinstance(from_, list) else [from_]
        matcher = as_matcher(on)
        for origin in origins:
            self._rules.setdefault(origin, []).append(
                Rule(matcher=matcher, target=to, action=action)
            )
        return self

    def read(
        self,
        state: Any,
        on: Any = ANY,
        action: Optional[TransitionAction] = None,
    ) -> "TableBuilder":
        """Declare a self-loop: consume a token and stay in ``state``."""
        return self.transition(state, state, on=on, action=action)

    def finish(self, action: StateAction) -> "TableBuilder":
        """
        Declare the action run once the input is exhausted.

        Raises:
            MalformedTableError: If a finish action was already declared
        """
        if self._has_finish:
            raise MalformedTableError("finish action already declared")
        self._finish_action = action
        self._has_finish = True
        return self

    def build(self) -> TransitionTable:
        """
        Snapshot the declarations into a table.

        Raises:
            MalformedTableError: If no initial state was declared
        """
        if self._initial_state is _UNSET:
            raise MalformedTableError("no initial state declared")

        return TransitionTable(
            initial_state=self._initial_state,
            rules=self._rules,
            initial_action=self._initial_action,
            finish_action=self._finish_action,
        )
