import json
from typing import Any

from pulumi import automation as auto
from rich.table import Table
from rich.text import Text

SECRET_MASK = "[secret]"


def _display_value(output: auto.OutputValue, show_secrets: bool) -> Any:
    if output.secret and not show_secrets:
        return SECRET_MASK
    return output.value


def outputs_table(
    outputs: dict[str, auto.OutputValue], show_secrets: bool = False
) -> Table:
    """Renders stack outputs; secret values (the kubeconfig) stay masked by default."""
    table = Table(title="Cluster Outputs")
    table.add_column("Output", style="cyan")
    table.add_column("Value", style="green", overflow="fold")

    for key in sorted(outputs):
        value = _display_value(outputs[key], show_secrets)
        # Text() keeps values such as "[secret]" from being read as markup
        table.add_row(key, Text(value if isinstance(value, str) else json.dumps(value)))

    return table


def outputs_json(
    outputs: dict[str, auto.OutputValue], show_secrets: bool = False
) -> str:
    return json.dumps(
        {key: _display_value(outputs[key], show_secrets) for key in sorted(outputs)},
        indent=2,
    )
