import argparse
import sys
from importlib.metadata import version

from rich.console import Console

from .errors import ClusterForgeError
from .logger import logger, set_verbose
from .reporter import outputs_json, outputs_table
from .stack import COMMANDS, DEFAULT_STACK_PROJECT, open_stack, parse_settings, run_operation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clusterforge",
        description="ClusterForge: one config, a managed Kubernetes cluster on AWS, GCP or Azure",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview an EKS cluster in us-east-1
  clusterforge preview --stack dev --set cloudProvider=aws \\
      --set environment=dev --set region=us-east-1

  # Deploy a GKE cluster (zonal by default)
  clusterforge up --stack dev --set cloudProvider=gcp --set environment=dev \\
      --set region=europe-west1 --set gcp:project=my-project

  # Show outputs including the kubeconfig
  clusterforge outputs --stack dev --show-secrets --json
""",
    )
    try:
        ver = version("clusterforge")
    except Exception:
        ver = "unknown"
    parser.add_argument("--version", action="version", version=f"ClusterForge v{ver}")

    parser.add_argument("command", choices=COMMANDS, help="Stack operation to run")
    parser.add_argument("--stack", required=True, help="Pulumi stack name (e.g. dev)")
    parser.add_argument(
        "--project-name",
        default=DEFAULT_STACK_PROJECT,
        help=f"Pulumi project name (default: {DEFAULT_STACK_PROJECT})",
    )
    parser.add_argument("--work-dir", help="Pulumi workspace directory")
    parser.add_argument(
        "--set",
        dest="settings",
        action="append",
        metavar="KEY=VALUE",
        help="Stack config value, repeatable (e.g. region=us-east-1, gcp:project=p)",
    )
    parser.add_argument(
        "--show-secrets", action="store_true", help="Reveal secret outputs (kubeconfig)"
    )
    parser.add_argument("--json", action="store_true", help="Output stack outputs as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def run(args: argparse.Namespace, log_console: Console, out_console: Console) -> None:
    """Opens the stack, runs the command and prints the resulting outputs."""
    settings = parse_settings(args.settings)
    stack = open_stack(
        args.stack,
        project_name=args.project_name,
        work_dir=args.work_dir,
        settings=settings,
    )

    log_console.print(
        f"Running [bold cyan]{args.command}[/bold cyan] on stack "
        f"[bold]{args.stack}[/bold]..."
    )

    if args.command == "outputs":
        outputs = run_operation(stack, "outputs")
    else:
        # Engine lines already end with a newline and may contain brackets
        result = run_operation(
            stack, args.command, on_output=lambda line: log_console.out(line, end="")
        )
        log_console.print(f"[green]{args.command} complete.[/green]")
        if args.command != "up":
            return
        outputs = result.outputs

    if args.json:
        out_console.print_json(outputs_json(outputs, args.show_secrets))
    else:
        out_console.print(outputs_table(outputs, args.show_secrets))


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    set_verbose(args.verbose)

    # Use stderr for logs/progress if stdout is piped for JSON
    log_console = Console(stderr=True)
    out_console = Console()

    try:
        run(args, log_console, out_console)
    except (ClusterForgeError, ValueError) as e:
        logger.error(f"Invalid arguments: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"{args.command.capitalize()} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[bold red]Operation cancelled by user.[/bold red]")
        sys.exit(130)
