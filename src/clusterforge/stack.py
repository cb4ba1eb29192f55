from collections.abc import Callable
from typing import Any

from pulumi import automation as auto
from tenacity import retry

from .core import RETRY_CONFIG
from .logger import logger
from .program import pulumi_program

DEFAULT_STACK_PROJECT = "clusterforge"
COMMANDS = ["preview", "up", "destroy", "outputs"]


def parse_settings(pairs: list[str] | None) -> dict[str, str]:
    """
    Parses repeated ``--set KEY=VALUE`` flags.
    Namespaced keys (``gcp:project``) are kept as-is; bare keys land in the
    project namespace.
    """
    settings: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        settings[key.strip()] = value
    return settings


def open_stack(
    stack_name: str,
    project_name: str = DEFAULT_STACK_PROJECT,
    work_dir: str | None = None,
    settings: dict[str, str] | None = None,
) -> auto.Stack:
    """Creates or selects the stack backed by the inline cluster program."""
    opts = auto.LocalWorkspaceOptions(work_dir=work_dir) if work_dir else None
    stack = auto.create_or_select_stack(
        stack_name=stack_name,
        project_name=project_name,
        program=pulumi_program,
        opts=opts,
    )

    if settings:
        # Values are not logged: they may include subscription ids
        logger.info(f"Setting {len(settings)} config value(s) on {stack_name}")
        stack.set_all_config(
            {key: auto.ConfigValue(value=value) for key, value in settings.items()}
        )

    return stack


@retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
def run_operation(
    stack: auto.Stack, command: str, on_output: Callable[[str], Any] | None = None
) -> Any:
    """
    Runs one stack operation. A stack locked by a concurrent update is
    retried; every other engine error propagates unchanged.
    """
    logger.debug(f"Running {command} on stack {stack.name}")

    if command == "preview":
        return stack.preview(on_output=on_output)
    elif command == "up":
        return stack.up(on_output=on_output)
    elif command == "destroy":
        return stack.destroy(on_output=on_output)
    elif command == "outputs":
        return stack.outputs()
    else:
        raise ValueError(f"Unknown command: {command}")
