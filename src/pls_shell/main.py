"""CLI entrypoint for pls."""

import logging
import os
from pathlib import Path

import rich_click as click

from pls_shell import __version__
from pls_shell.session import AskCommand, ConfigSetCommand, RunTasksCommand, SessionController
from pls_shell.userconfig.store import ConfigError

click.rich_click.USE_MARKDOWN = True
SESSION_CONTROLLER = SessionController()

_CONFIG_PATH_OPTION = click.option(
    "--config-path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="User config JSON file (default: `~/.pls.json`).",
)
_TIMEOUT_OPTION = click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Per-command timeout in seconds; `0` disables it.",
)


@click.group()
@click.version_option(version=__version__, prog_name="pls")
@click.option("--verbose", "-v", is_flag=True, help="Log debug details to stderr.")
def pls(verbose: bool) -> None:
    """Plan, confirm and run shell tasks described in plain language."""

    debug = verbose or os.getenv("PLS_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@pls.command("ask")
@click.argument("request", nargs=-1, required=True)
@_CONFIG_PATH_OPTION
@_TIMEOUT_OPTION
def ask(request: tuple[str, ...], config_path: Path | None, timeout_seconds: float | None) -> None:
    """Plan a free-text **REQUEST** with the language model and run it."""

    try:
        exit_code = SESSION_CONTROLLER.ask(
            AskCommand(
                request=" ".join(request),
                config_path=config_path,
                timeout_seconds=timeout_seconds,
            ),
        )
    except (ValueError, ConfigError) as error:
        raise click.ClickException(str(error)) from error
    raise SystemExit(exit_code)


@pls.command("run")
@click.argument("tasks_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@_CONFIG_PATH_OPTION
@_TIMEOUT_OPTION
def run(tasks_file: Path, config_path: Path | None, timeout_seconds: float | None) -> None:
    """Run a saved task list (JSON array, or an object with `message` and `tasks`)."""

    try:
        exit_code = SESSION_CONTROLLER.run_tasks(
            RunTasksCommand(
                tasks_file=tasks_file,
                config_path=config_path,
                timeout_seconds=timeout_seconds,
            ),
        )
    except (ValueError, ConfigError) as error:
        raise click.ClickException(str(error)) from error
    raise SystemExit(exit_code)


@pls.group()
def config() -> None:
    """Inspect and update values used by `{placeholders}` in commands."""


@config.command("show")
@_CONFIG_PATH_OPTION
def config_show(config_path: Path | None) -> None:
    """Print every stored value as `dotted.key = value`."""

    try:
        _emit_lines(SESSION_CONTROLLER.show_config(config_path))
    except (ValueError, ConfigError) as error:
        raise click.ClickException(str(error)) from error


@config.command("set")
@click.argument("key")
@click.argument("value")
@_CONFIG_PATH_OPTION
def config_set(key: str, value: str, config_path: Path | None) -> None:
    """Store **VALUE** under the dotted **KEY**."""

    try:
        _emit_lines(
            SESSION_CONTROLLER.set_config(
                ConfigSetCommand(key=key, value=value, config_path=config_path),
            ),
        )
    except (ValueError, ConfigError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    pls()
