"""
Utility functions for llamatalk.

  - Version lookup
  - Token estimates for the stats bar
  - The welcome header printed before the first screen
"""

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

import tiktoken
from rich import box
from rich.panel import Panel

from .config import DEFAULT_CONFIG, EXIT_COMMAND
from .console import console


def get_version() -> str:
    """Installed package version, or "dev" when running from a source tree."""
    try:
        return version("llamatalk")
    except PackageNotFoundError:
        return "dev"


@lru_cache(maxsize=4)
def get_encoding(encoding_name: str):
    try:
        return tiktoken.get_encoding(encoding_name)
    except ValueError:
        return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str, encoding_name: str = DEFAULT_CONFIG["TIKTOKEN_ENCODING"]) -> int:
    """Estimate the token count of `text`.

    Ollama models each ship their own tokenizer, so this is an approximation
    used only for the tokens/second readout, never for anything the server
    sees.
    """
    if not text:
        return 0
    return len(get_encoding(encoding_name).encode(text))


def format_stats(tokens: int | None, duration: float) -> str:
    if tokens is None:
        return f" {duration:.1f}s "
    tps = tokens / duration if duration > 0 else 0.0
    return f" {tokens} tokens | {duration:.1f}s | {tps:.1f} tok/s "


def print_header(base_url: str):
    """Print the welcome banner with the server address."""
    logo = """[bold magenta]
  _ _                       _        _ _
 | | | __ _ _ __ ___   __ _| |_ __ _| | | __
 | | |/ _` | '_ ` _ \\ / _` | __/ _` | | |/ /
 | | | (_| | | | | | | (_| | || (_| | |   <
 |_|_|\\__,_|_| |_| |_|\\__,_|\\__\\__,_|_|_|\\_\\
[/bold magenta]
   [dim italic]chat with the models on your own machine[/dim italic]
"""

    header_text = f"""[dim]llamatalk v{get_version()}[/dim]
[dim]Server: {base_url}[/dim]

[bold]In chat:[/bold]
  [green]{EXIT_COMMAND}[/green]   - Back to model selection
  [green]/help[/green]   - Show commands
  [green]Ctrl+Q[/green]  - Quit"""

    console.print(logo)
    console.print(Panel(header_text, box=box.ROUNDED, expand=False))
