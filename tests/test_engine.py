from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest

from mealy.machine import (
    ExactValue,
    MealyRunner,
    Predicate,
    RunnerStateError,
    RunPhase,
    TableBuilder,
    UnmatchedTokenError,
    run,
)


def _record(name):
    def action(ctx, *args) -> None:
        ctx.user.calls.append((name, *args))

    return action


def _recording_state() -> SimpleNamespace:
    return SimpleNamespace(calls=[])


def test_self_loop_counting(counter_table) -> None:
    runner = MealyRunner(counter_table)
    result = runner.run([1, 1, 1, 1, 0])

    assert result == 4
    assert runner.user_state.counter == 4
    assert runner.state == "end"
    assert runner.steps == 5


def test_dead_end_absorbs_input_with_wildcard_self_loop(counter_table) -> None:
    assert run(counter_table, [1, 1, 1, 1, 0, 1, 0, 0]) == 4


def test_first_match_wins() -> None:
    builder = TableBuilder().initial_state("s")
    builder.transition("s", "specific", on="a", action=_record("specific"))
    builder.transition("s", "fallback", action=_record("fallback"))
    table = builder.build()

    runner = MealyRunner(table, _recording_state())
    runner.run(["a"])
    assert runner.state == "specific"
    assert runner.user_state.calls == [("specific", "a", "s", "specific")]

    runner = MealyRunner(table, _recording_state())
    runner.run(["b"])
    assert runner.state == "fallback"
    assert runner.user_state.calls == [("fallback", "b", "s", "fallback")]


def test_duplicate_rules_first_declared_wins() -> None:
    builder = TableBuilder().initial_state("s")
    builder.transition("s", "first", on=1)
    builder.transition("s", "second", on=1)

    runner = MealyRunner(builder.build())
    runner.run([1])
    assert runner.state == "first"


def test_unmatched_token_carries_state_and_token() -> None:
    builder = TableBuilder().initial_state("start")
    builder.transition("start", "end", on=1)
    table = builder.build()

    with pytest.raises(UnmatchedTokenError) as exc_info:
        run(table, [2])

    assert exc_info.value.state == "start"
    assert exc_info.value.token == 2
    assert "'start'" in str(exc_info.value)


def test_unmatched_token_in_later_state() -> None:
    builder = TableBuilder().initial_state("start")
    builder.transition("start", "mid", on=1)
    builder.transition("mid", "end", on=2)

    with pytest.raises(UnmatchedTokenError) as exc_info:
        run(builder.build(), [1, 1])

    assert exc_info.value.state == "mid"
    assert exc_info.value.token == 1


def test_dead_end_state_rejects_tokens() -> None:
    builder = TableBuilder().initial_state("start")
    builder.transition("start", "end", on=1)

    with pytest.raises(UnmatchedTokenError) as exc_info:
        run(builder.build(), [1, 1])

    assert exc_info.value.state == "end"


def test_input_ending_early_is_not_an_error() -> None:
    builder = TableBuilder().initial_state("start")
    builder.transition("start", "mid", on=1)
    builder.transition("mid", "end", on=2)

    runner = MealyRunner(builder.build())
    runner.run([1])
    assert runner.state == "mid"


def test_unmatched_token_skips_finish_action() -> None:
    state = _recording_state()
    builder = TableBuilder().initial_state("start", _record("initial"))
    builder.transition("start", "end", on=1, action=_record("step"))
    builder.finish(_record("finish"))

    runner = MealyRunner(builder.build(), state)
    with pytest.raises(UnmatchedTokenError):
        runner.run([1, 1])

    assert state.calls == [("initial",), ("step", 1, "start", "end")]
    assert runner.phase is RunPhase.FAILED
    assert runner.state == "end"


def test_empty_input_runs_initial_then_finish() -> None:
    state = _recording_state()
    builder = TableBuilder().initial_state("start", _record("initial"))
    builder.transition("start", "end", action=_record("step"))
    builder.finish(_record("finish"))

    run(builder.build(), [], state)
    assert state.calls == [("initial",), ("finish",)]


def test_transition_action_receives_token_origin_and_target() -> None:
    def remember(ctx, token, from_state, to_state) -> None:
        ctx.user.seen = (token, from_state, to_state)

    table = TableBuilder().initial_state("start").transition(
        "start", "end", on=1, action=remember
    ).build()

    state = run(table, [1])
    assert state.seen == (1, "start", "end")


def test_run_returns_user_state_without_finish_action() -> None:
    table = TableBuilder().initial_state("s").build()
    state = _recording_state()
    assert run(table, [], state) is state


def test_run_returns_finish_value() -> None:
    table = TableBuilder().initial_state("s").finish(lambda ctx: "something").build()
    assert run(table, []) == "something"


def test_initial_action_shares_user_state_with_later_actions() -> None:
    def define(ctx) -> None:
        ctx.user.something = "defined"

    def read_back(ctx) -> str:
        return ctx.user.something

    table = TableBuilder().initial_state("s", define).finish(read_back).build()
    assert run(table, []) == "defined"


def test_self_loop_fires_on_each_token() -> None:
    state = _recording_state()
    table = TableBuilder().initial_state("s").read("s", on=1, action=_record("loop")).build()

    run(table, [1] * 10, state)
    assert len(state.calls) == 10


def test_action_errors_propagate_unwrapped() -> None:
    def explode(ctx, token, from_state, to_state) -> None:
        raise ValueError("boom")

    table = TableBuilder().initial_state("s").read("s", action=explode).build()
    runner = MealyRunner(table)

    with pytest.raises(ValueError, match="boom"):
        runner.run(["x"])
    assert runner.phase is RunPhase.FAILED


def test_determinism_and_table_reuse(counter_table) -> None:
    first = MealyRunner(counter_table)
    second = MealyRunner(counter_table)

    assert first.run([1, 1, 0, 1]) == 2
    assert second.run([1, 1, 1, 0]) == 3
    assert MealyRunner(counter_table).run([1, 1, 0, 1]) == 2
    assert first.user_state is not second.user_state


def test_concurrent_runs_share_one_table(counter_table) -> None:
    inputs = [[1] * n + [0, 1, 1] for n in range(20)]

    def count(tokens) -> tuple[int, SimpleNamespace]:
        runner = MealyRunner(counter_table)
        return runner.run(tokens), runner.user_state

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(count, inputs))

    assert [value for value, _ in results] == list(range(20))
    assert [state.counter for _, state in results] == list(range(20))
    assert len({id(state) for _, state in results}) == 20


def test_raising_predicate_fails_the_run() -> None:
    def fussy(token) -> bool:
        if token == "bad":
            raise ValueError("cannot judge token")
        return True

    builder = TableBuilder().initial_state("s")
    builder.read("s", on=Predicate(fussy))
    builder.finish(lambda ctx: "done")
    runner = MealyRunner(builder.build())
    runner.start()

    with pytest.raises(ValueError, match="cannot judge"):
        runner.step("bad")
    assert runner.phase is RunPhase.FAILED
    assert runner.steps == 0

    with pytest.raises(RunnerStateError, match="FAILED"):
        runner.step("ok")
    with pytest.raises(RunnerStateError):
        runner.finish()
    with pytest.raises(RunnerStateError):
        runner.result


def test_none_token_needs_explicit_exact_value() -> None:
    builder = TableBuilder().initial_state("s")
    builder.transition("s", "none", on=ExactValue(None))
    builder.transition("s", "other", on=None)
    table = builder.build()

    runner = MealyRunner(table)
    runner.run([None])
    assert runner.state == "none"

    for token in (0, "", False, []):
        runner = MealyRunner(table)
        runner.run([token])
        assert runner.state == "other"


def test_tokens_are_consumed_once_from_iterators(counter_table) -> None:
    tokens = iter([1, 1, 0])
    assert run(counter_table, tokens) == 2
    assert list(tokens) == []


def test_runner_lifecycle_is_enforced(counter_table) -> None:
    runner = MealyRunner(counter_table)

    with pytest.raises(RunnerStateError):
        runner.step(1)
    with pytest.raises(RunnerStateError):
        runner.result

    runner.start()
    with pytest.raises(RunnerStateError):
        runner.start()

    runner.step(1)
    runner.finish()
    assert runner.phase is RunPhase.FINISHED
    assert runner.result == 1

    with pytest.raises(RunnerStateError):
        runner.step(1)
    with pytest.raises(RunnerStateError):
        runner.finish()


def test_no_steps_after_unmatched_token() -> None:
    table = TableBuilder().initial_state("s").transition("s", "t", on=1).build()
    runner = MealyRunner(table)
    runner.start()

    with pytest.raises(UnmatchedTokenError):
        runner.step(2)
    with pytest.raises(RunnerStateError, match="FAILED"):
        runner.step(1)


def test_state_is_none_before_start(counter_table) -> None:
    runner = MealyRunner(counter_table)
    assert runner.state is None
    assert runner.phase is RunPhase.NEW
    runner.start()
    assert runner.state == "start"


def test_trace_logs_transitions(counter_table, capsys) -> None:
    from mealy.utils.logging import configure_logging

    configure_logging(level="debug", format_type="json")
    MealyRunner(counter_table, trace=True).run([1, 0])

    err = capsys.readouterr().err
    assert '"event": "transition"' in err
    assert '"to_state": "end"' in err
