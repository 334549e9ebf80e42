"""Declarative transition tables loaded from YAML.

Format:

    initial: start
    on_start:
      emit: [begin]
    on_finish:
      emit: [end]
    transitions:
      - from: start          # a state, or a list of states
        to: digits           # omitted: stay in the same state (null is an error)
        match: "[0-9]"       # regex on string tokens
      - from: digits
        token: "."           # exact value; neither token nor match: any token
        to: fraction
        emit: [dot]
        emit_token: true

Actions declared this way can only emit: the literal ``emit`` values
first, then the token itself when ``emit_token`` is set. The key for exact
tokens is ``token`` because YAML reads a bare ``on`` key as a boolean.
"""

from __future__ import annotations

import re
from collections.abc import Hashable
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from mealy.machine.matchers import ANY, ExactValue, Pattern
from mealy.machine.table import TableBuilder, TransitionTable
from mealy.utils.logging import get_logger
from mealy.utils.result import Err, Ok, Result, TableError

logger = get_logger("machine.loader")

ROOT_KEYS = {"initial", "on_start", "on_finish", "transitions"}
TRANSITION_KEYS = {"from", "to", "token", "match", "emit", "emit_token"}
HOOK_KEYS = {"emit"}


def load_table(path: Path) -> Result[TransitionTable, TableError]:
    """
    Load a transition table from a YAML file.

    Args:
        path: Path to the YAML table

    Returns:
        Result with the table or the first error found
    """
    path = Path(path)

    if not path.exists():
        return Err(TableError(
            location=str(path),
            message="table file not found",
        ))

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return Err(TableError(
            location=str(path),
            message=f"failed to parse YAML: {e}",
        ))
    except OSError as e:
        return Err(TableError(
            location=str(path),
            message=f"failed to read table file: {e}",
        ))

    result = table_from_dict(data)
    if result.is_ok():
        logger.debug("table_loaded", path=str(path), table=repr(result.unwrap()))
    return result


def table_from_dict(data: Any) -> Result[TransitionTable, TableError]:
    """
    Build a transition table from parsed YAML data.

    Returns:
        Result with the table or the first error found
    """
    if not isinstance(data, dict):
        return Err(TableError("<root>", "table must be a mapping"))

    unknown = set(data) - ROOT_KEYS
    if unknown:
        return Err(TableError("<root>", f"unknown keys: {_names(unknown)}"))

    if "initial" not in data:
        return Err(TableError("initial", "initial state is required"))
    if not isinstance(data["initial"], Hashable):
        return Err(TableError("initial", "state must be a scalar"))

    builder = TableBuilder()

    start_action = _hook_action(data.get("on_start"), "on_start")
    if start_action.is_err():
        return start_action
    builder.initial_state(data["initial"], start_action.unwrap())

    finish_action = _hook_action(data.get("on_finish"), "on_finish")
    if finish_action.is_err():
        return finish_action
    if finish_action.unwrap() is not None:
        builder.finish(finish_action.unwrap())

    transitions = data.get("transitions")
    if transitions is None:
        transitions = []
    if not isinstance(transitions, list):
        return Err(TableError("transitions", "must be a list"))

    for index, entry in enumerate(transitions):
        added = _add_transition(builder, entry, f"transitions[{index}]")
        if added.is_err():
            return added

    return Ok(builder.build())


def _add_transition(
    builder: TableBuilder,
    entry: Any,
    location: str,
) -> Result[None, TableError]:
    if not isinstance(entry, dict):
        return Err(TableError(location, "transition must be a mapping"))

    unknown = set(entry) - TRANSITION_KEYS
    if unknown:
        return Err(TableError(location, f"unknown keys: {_names(unknown)}"))

    if "from" not in entry:
        return Err(TableError(f"{location}.from", "origin state is required"))

    if "token" in entry and "match" in entry:
        return Err(TableError(location, "'token' and 'match' are exclusive"))

    origins = entry["from"] if isinstance(entry["from"], list) else [entry["from"]]
    if not origins:
        return Err(TableError(f"{location}.from", "must name at least one state"))
    if not all(isinstance(state, Hashable) for state in origins):
        return Err(TableError(f"{location}.from", "states must be scalars"))
    if "to" in entry:
        if entry["to"] is None:
            return Err(TableError(f"{location}.to", "omit 'to' for a self-loop instead of null"))
        if not isinstance(entry["to"], Hashable):
            return Err(TableError(f"{location}.to", "state must be a scalar"))

    matcher: Any = ANY
    if "token" in entry:
        matcher = ExactValue(entry["token"])
    elif "match" in entry:
        if not isinstance(entry["match"], str):
            return Err(TableError(f"{location}.match", "must be a string"))
        try:
            matcher = Pattern(re.compile(entry["match"]))
        except re.error as e:
            return Err(TableError(f"{location}.match", f"invalid regex: {e}"))

    values = entry.get("emit", [])
    if not isinstance(values, list):
        return Err(TableError(f"{location}.emit", "must be a list"))

    emit_token = entry.get("emit_token", False)
    if not isinstance(emit_token, bool):
        return Err(TableError(f"{location}.emit_token", "must be true or false"))

    action = None
    if values or emit_token:
        action = _transition_emitter(values, emit_token)

    # One declaration per origin keeps self-loops on the right state
    for state in origins:
        builder.transition(state, entry.get("to", state), on=matcher, action=action)

    return Ok(None)


def _hook_action(
    hook: Any,
    location: str,
) -> Result[Optional[Callable[..., Any]], TableError]:
    if hook is None:
        return Ok(None)

    if not isinstance(hook, dict):
        return Err(TableError(location, "must be a mapping"))

    unknown = set(hook) - HOOK_KEYS
    if unknown:
        return Err(TableError(location, f"unknown keys: {_names(unknown)}"))

    values = hook.get("emit", [])
    if not isinstance(values, list):
        return Err(TableError(f"{location}.emit", "must be a list"))

    literals = tuple(values)

    def hook_action(ctx: Any) -> None:
        ctx.emit_all(literals)

    return Ok(hook_action)


def _transition_emitter(values: list[Any], emit_token: bool) -> Callable[..., None]:
    literals = tuple(values)

    def transition_action(ctx: Any, token: Any, from_state: Any, to_state: Any) -> None:
        ctx.emit_all(literals)
        if emit_token:
            ctx.emit(token)

    return transition_action


def _names(keys: set) -> str:
    return ", ".join(sorted(str(key) for key in keys))
