"""CLI entry point for mealy."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from mealy import __version__
from mealy.config import MealyConfig, load_config
from mealy.utils.logging import configure_logging, get_logger
from mealy.utils.result import ExitCode


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config: MealyConfig) -> None:
        self.config = config
        self.logger = get_logger("cli")


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def fail(data: dict, code: int) -> None:
    """Output an error document and exit with ``code``."""
    output_json({"status": "error", **data})
    sys.exit(code)


def parse_token(text: str) -> Any:
    """Read a command-line token as a YAML scalar ('1' -> 1, 'a' -> 'a')."""
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError:
        return text
    if isinstance(value, (dict, list)) or value is None:
        return text
    return value


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: ./mealy.yaml if present)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (overrides config)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (overrides config)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    Mealy machine runner.

    Runs transition tables declared in YAML over a sequence of tokens and
    prints the values emitted along the way.
    """
    result = load_config(config_path)
    if result.is_err():
        fail({"message": str(result.unwrap_err())}, ExitCode.INVALID_CONFIG)
    config = result.unwrap()

    if log_level:
        config.logging.level = log_level
    if log_format:
        config.logging.format = log_format

    configure_logging(level=config.logging.level, format_type=config.logging.format)

    ctx.obj = Context(config=config)


@cli.command()
@click.argument("table_path", type=click.Path(exists=False, path_type=Path))
@click.argument("tokens", nargs=-1)
@click.option(
    "--chars",
    type=str,
    default=None,
    help="Use the characters of this string as tokens",
)
@click.option(
    "--raw",
    is_flag=True,
    default=False,
    help="Keep tokens as strings instead of reading them as YAML scalars",
)
@click.option(
    "--trace/--no-trace",
    default=None,
    help="Log every transition (overrides config)",
)
@click.option(
    "--emit/--no-emit",
    "emitting",
    default=None,
    help="Collect emitted values (overrides config)",
)
@pass_context
def run(
    ctx: Context,
    table_path: Path,
    tokens: tuple[str, ...],
    chars: Optional[str],
    raw: bool,
    trace: Optional[bool],
    emitting: Optional[bool],
) -> None:
    """Run the table at TABLE_PATH over TOKENS."""
    from mealy.machine import MealyRunner, UnmatchedTokenError, load_table

    if chars is not None and tokens:
        fail(
            {"message": "Pass tokens either as arguments or with --chars, not both"},
            ExitCode.GENERAL_ERROR,
        )

    loaded = load_table(table_path)
    if loaded.is_err():
        fail({"message": str(loaded.unwrap_err())}, ExitCode.INVALID_TABLE)
    table = loaded.unwrap()

    if chars is not None:
        inputs: list[Any] = list(chars)
    elif raw:
        inputs = list(tokens)
    else:
        inputs = [parse_token(token) for token in tokens]

    engine = ctx.config.engine
    runner = MealyRunner(
        table,
        emitting=engine.emitting if emitting is None else emitting,
        trace=engine.trace if trace is None else trace,
    )

    ctx.logger.info(
        "run_started",
        table=str(table_path),
        tokens=len(inputs),
        run_id=runner.run_id,
    )

    try:
        runner.run(inputs)
    except UnmatchedTokenError as e:
        ctx.logger.error("run_failed", error=str(e), run_id=runner.run_id)
        fail(
            {
                "message": str(e),
                "state": e.state,
                "token": e.token,
                "steps": runner.steps,
            },
            ExitCode.UNMATCHED_TOKEN,
        )

    output = {
        "status": "success",
        "state": runner.state,
        "steps": runner.steps,
    }
    if runner.emitting:
        output["emissions"] = runner.emissions
    output_json(output)


@cli.command()
@click.argument("table_path", type=click.Path(exists=False, path_type=Path))
@pass_context
def check(ctx: Context, table_path: Path) -> None:
    """Load the table at TABLE_PATH and summarize it."""
    from mealy.machine import load_table

    loaded = load_table(table_path)
    if loaded.is_err():
        ctx.logger.error("table_invalid", error=str(loaded.unwrap_err()))
        fail({"message": str(loaded.unwrap_err())}, ExitCode.INVALID_TABLE)
    table = loaded.unwrap()

    initial, _ = table.initial()
    states = sorted(table.states(), key=repr)
    dead_ends = [state for state in states if not table.rules_for(state)]

    output_json({
        "status": "success",
        "initial": initial,
        "states": states,
        "dead_ends": dead_ends,
        "rules": sum(len(table.rules_for(state)) for state in states),
        "finish": table.finish_action() is not None,
    })


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
