from __future__ import annotations

from typing import Any

import pytest

from mealy.machine import TableBuilder, TransitionTable
from mealy.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    yield
    # CLI tests point the loggers at streams that are closed afterwards
    configure_logging()


def _start_counter(ctx) -> None:
    ctx.user.counter = 0


def _increment(ctx, token, from_state, to_state) -> None:
    ctx.user.counter += 1


def _emit_counter(ctx) -> int:
    ctx.emit(ctx.user.counter)
    return ctx.user.counter


@pytest.fixture
def counter_table() -> TransitionTable:
    """Counts ones until a zero, then swallows the rest of the input."""
    builder = TableBuilder()
    builder.initial_state("start", _start_counter)
    builder.read("start", on=1, action=_increment)
    builder.transition("start", "end", on=0)
    builder.read("end")
    builder.finish(_emit_counter)
    return builder.build()
