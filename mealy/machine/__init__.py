"""Mealy machine execution.

A transition table maps each state to an ordered list of rules
(matcher, target state, action). A runner walks the table over an input
sequence:

    initial action -> rule action per token -> finish action

The first rule whose matcher accepts a token fires, so a wildcard (ANY)
rule must come after the specific rules of its state. A token that no
rule accepts ends the run with UnmatchedTokenError.

Actions receive an ActionContext carrying the run's shared user-state
object; in emitting mode the values they emit are collected in order.
"""

from mealy.machine.engine import (
    ActionContext,
    ActionInvoker,
    CollectingInvoker,
    DiscardingInvoker,
    Emitter,
    MealyRunner,
    RunPhase,
    iter_emissions,
    run,
    run_emitting,
)
from mealy.machine.errors import (
    EmissionScopeError,
    MalformedTableError,
    MealyError,
    RunnerStateError,
    UnmatchedTokenError,
)
from mealy.machine.loader import load_table, table_from_dict
from mealy.machine.matchers import (
    ANY,
    ExactValue,
    Matcher,
    Pattern,
    Predicate,
    Wildcard,
    as_matcher,
)
from mealy.machine.table import Rule, TableBuilder, TransitionTable

__all__ = [
    # Matchers
    "ANY",
    "Matcher",
    "ExactValue",
    "Wildcard",
    "Predicate",
    "Pattern",
    "as_matcher",
    # Table
    "Rule",
    "TransitionTable",
    "TableBuilder",
    "load_table",
    "table_from_dict",
    # Engine
    "MealyRunner",
    "RunPhase",
    "ActionContext",
    "ActionInvoker",
    "CollectingInvoker",
    "DiscardingInvoker",
    "Emitter",
    "run",
    "run_emitting",
    "iter_emissions",
    # Errors
    "MealyError",
    "UnmatchedTokenError",
    "MalformedTableError",
    "EmissionScopeError",
    "RunnerStateError",
]
