import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .console import console

# Load environment variables from .env file
load_dotenv()

# Configuration Defaults
DEFAULT_CONFIG = {
    "OLLAMA_BASE_URL": "http://localhost:11434",
    "OLLAMA_BINARY": "ollama",
    "PROBE_TIMEOUT": "2.0",
    "START_ATTEMPTS": "10",
    "START_INTERVAL": "1.0",
    "REQUEST_TIMEOUT": "300.0",
    "STREAM": "true",
    "TIKTOKEN_ENCODING": "cl100k_base",
    "LOG_LEVEL": "WARNING",
}

# In-band chat command that ends the session and returns to model selection.
EXIT_COMMAND = "/exit"

# File Paths
LLAMATALK_DIR = Path(os.getenv("LLAMATALK_DIR", str(Path.home() / ".llamatalk")))
CONFIG_FILE = Path(os.getenv("LLAMATALK_CONFIG_FILE", str(LLAMATALK_DIR / "config.json")))
LOG_FILE = Path(os.getenv("LLAMATALK_LOG_FILE", str(LLAMATALK_DIR / "llamatalk.log")))


def ensure_llamatalk_dir():
    """Ensure the llamatalk storage directory exists"""
    if not LLAMATALK_DIR.exists():
        try:
            LLAMATALK_DIR.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            console.print(
                f"[yellow]Warning: Could not create directory {LLAMATALK_DIR}: {e}[/yellow]"
            )


def load_config() -> dict[str, Any]:
    """Load configuration from file"""
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                config: dict[str, Any] = json.load(f)
                return config
        except Exception as e:
            console.print(f"[yellow]Warning: Could not load config file: {e}[/yellow]")
    return {}


def get_setting(key: str, default: str) -> str:
    """Get setting with priority: Env Var > Config File > Default"""
    # 1. Environment Variable
    env_val = os.getenv(key)
    if env_val:
        return env_val

    # 2. Config File
    config = load_config()
    if key in config:
        return str(config[key])

    # 3. Default
    return default


def get_int_setting(key: str, default: int) -> int:
    """Get integer setting with priority: Env Var > Config File > Default"""
    value = get_setting(key, str(default))
    try:
        return int(value)
    except ValueError:
        console.print(
            f"[yellow]Warning: Invalid integer value for {key}: {value}, using default {default}[/yellow]"
        )
        return default


def get_float_setting(key: str, default: float) -> float:
    """Get float setting with priority: Env Var > Config File > Default"""
    value = get_setting(key, str(default))
    try:
        return float(value)
    except ValueError:
        console.print(
            f"[yellow]Warning: Invalid float value for {key}: {value}, using default {default}[/yellow]"
        )
        return default


def get_bool_setting(key: str, default: bool) -> bool:
    """Get boolean setting with priority: Env Var > Config File > Default"""
    value = get_setting(key, str(default).lower())
    return value.lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """A snapshot of every tunable value, taken once per run.

    Components receive a Settings instance instead of reading module globals,
    so tests can build one with whatever values they need.
    """

    base_url: str = DEFAULT_CONFIG["OLLAMA_BASE_URL"]
    binary: str = DEFAULT_CONFIG["OLLAMA_BINARY"]
    probe_timeout: float = 2.0
    start_attempts: int = 10
    start_interval: float = 1.0
    request_timeout: float = 300.0
    stream: bool = True
    tiktoken_encoding: str = DEFAULT_CONFIG["TIKTOKEN_ENCODING"]
    log_level: str = DEFAULT_CONFIG["LOG_LEVEL"]

    @classmethod
    def from_env(cls) -> "Settings":
        """Resolve every setting through get_setting and friends."""
        return cls(
            base_url=get_setting("OLLAMA_BASE_URL", DEFAULT_CONFIG["OLLAMA_BASE_URL"])
            .strip()
            .rstrip("/"),
            binary=get_setting("OLLAMA_BINARY", DEFAULT_CONFIG["OLLAMA_BINARY"]),
            probe_timeout=get_float_setting("PROBE_TIMEOUT", 2.0),
            start_attempts=get_int_setting("START_ATTEMPTS", 10),
            start_interval=get_float_setting("START_INTERVAL", 1.0),
            request_timeout=get_float_setting("REQUEST_TIMEOUT", 300.0),
            stream=get_bool_setting("STREAM", True),
            tiktoken_encoding=get_setting(
                "TIKTOKEN_ENCODING", DEFAULT_CONFIG["TIKTOKEN_ENCODING"]
            ),
            log_level=get_setting("LOG_LEVEL", DEFAULT_CONFIG["LOG_LEVEL"]).upper(),
        )


def setup_logging(level: str = "WARNING", log_file: Path = LOG_FILE) -> None:
    """Send diagnostic logs to a file so they never draw over the Textual screen."""
    ensure_llamatalk_dir()
    handlers: list[logging.Handler] = []
    try:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    except OSError as e:
        console.print(f"[yellow]Warning: Could not open log file {log_file}: {e}[/yellow]")
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )
