import argparse
import logging
import sys

from rich.markup import escape
from rich.prompt import Confirm

from .app import TextualUI
from .config import Settings, setup_logging
from .console import console, error_console
from .context import AppContext
from .controller import SessionController
from .errors import LlamaTalkError, ServerNotRunning
from .utils import get_version, print_header

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llamatalk",
        description="Chat with the models served by a local Ollama server.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    subparsers = parser.add_subparsers(dest="command")
    stop_parser = subparsers.add_parser("stop", help="Stop the running Ollama server")
    stop_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask before stopping Ollama processes by name",
    )
    return parser


def run_session(context: AppContext) -> int:
    """Default command: the full interactive session."""
    print_header(context.settings.base_url)
    controller = SessionController(context, TextualUI(context))
    try:
        controller.run()
    except ServerNotRunning as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return 0
    except LlamaTalkError as e:
        logger.error("Run failed: %s", e)
        error_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    return 0


def run_stop(context: AppContext, assume_yes: bool = False) -> int:
    """`llamatalk stop`: stop a reachable server whoever started it."""
    server = context.server
    if not server.is_running():
        console.print("Ollama server is not running.")
        return 0

    # This process never started the server, so there is no handle to
    # terminate; the only way is by name, which hits every Ollama process.
    if not assume_yes and not Confirm.ask(
        "This stops every running Ollama process, including ones llamatalk did not start. "
        "Continue?",
        console=console,
        default=False,
    ):
        console.print("Leaving the Ollama server running.")
        return 0

    console.print("Stopping Ollama server...")
    try:
        server.stop_server(by_name=True)
    except LlamaTalkError as e:
        error_console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    console.print("[green]Ollama server stopped successfully.[/green]")
    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    context = AppContext.from_settings(settings)

    try:
        if args.command == "stop":
            code = run_stop(context, assume_yes=args.yes)
        else:
            code = run_session(context)
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Interrupted. Goodbye![/yellow]")
        code = 0
    except Exception as e:
        logger.exception("Unhandled error")
        error_console.print(f"[red]Error: {escape(str(e))}[/red]")
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
