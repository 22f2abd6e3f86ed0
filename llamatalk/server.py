"""
Lifecycle management for the local Ollama server.

ServerLifecycleManager answers four questions for the controller: is the
binary installed, is the server answering, can we start it, and can we stop
the one we started.

Ownership:
  `owned_by_us` is True only between a confirmed healthy start and the next
  stop attempt. A stop clears it whether or not termination worked, so the
  shutdown path can never get stuck retrying a stop forever.

Stopping:
  The process handle returned by Popen at start time is the only thing we
  terminate by default. Killing by process name (`pkill ollama`) would also
  hit servers the user started themselves, so it is only done when the caller
  passes `by_name=True`, which the CLI does after asking the user.

Everything that touches the OS (Popen, subprocess.run, sleep, PATH lookup,
the HTTP transport) is injectable so tests can run without a real server.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import time
from pathlib import Path
from typing import Callable

import httpx

from .config import DEFAULT_CONFIG
from .console import console
from .errors import (
    NoTrackedServer,
    ServerStartFailed,
    ServerStartTimeout,
    ServerStopFailed,
    UnsupportedPlatform,
)

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://ollama.com/install.sh"
DOWNLOAD_PAGE_URL = "https://ollama.com/download"


class ServerLifecycleManager:
    """Detects, starts and stops the inference server."""

    def __init__(
        self,
        base_url: str = DEFAULT_CONFIG["OLLAMA_BASE_URL"],
        binary: str = DEFAULT_CONFIG["OLLAMA_BINARY"],
        *,
        probe_timeout: float = 2.0,
        start_attempts: int = 10,
        start_interval: float = 1.0,
        stop_timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
        which: Callable[[str], str | None] = shutil.which,
        system: Callable[[], str] = platform.system,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.binary = binary
        self.probe_timeout = probe_timeout
        self.start_attempts = start_attempts
        self.start_interval = start_interval
        self.stop_timeout = stop_timeout
        self.owned_by_us = False
        self._process: subprocess.Popen | None = None
        self._transport = transport
        self._popen = popen
        self._run = run
        self._sleep = sleep
        self._which = which
        self._system = system

    @property
    def process(self) -> subprocess.Popen | None:
        """The handle of the server this run spawned, if any."""
        return self._process

    # -------------------------------------------------------------------
    # Installation
    # -------------------------------------------------------------------

    def check_installed(self) -> bool:
        return self._which(self.binary) is not None

    def request_install(self) -> None:
        """Print install instructions for this platform. Never installs anything."""
        system = self._system()
        if system in ("Darwin", "Linux"):
            console.print("To install Ollama, run the following command in your terminal:")
            console.print(f"  [bold]curl -fsSL {INSTALL_SCRIPT_URL} | sh[/bold]")
        elif system == "Windows":
            console.print(
                f"To install Ollama on Windows, download the installer from {DOWNLOAD_PAGE_URL}"
            )
        else:
            raise UnsupportedPlatform(f"Unsupported operating system: {system or 'unknown'}")

    # -------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------

    def is_running(self) -> bool:
        """Probe the server root URL. Any HTTP response at all means it is up."""
        try:
            with httpx.Client(transport=self._transport, timeout=self.probe_timeout) as client:
                response = client.get(f"{self.base_url}/")
        except httpx.HTTPError as e:
            logger.debug("Health probe to %s failed: %s", self.base_url, e)
            return False
        logger.debug("Health probe to %s answered %s", self.base_url, response.status_code)
        return True

    # -------------------------------------------------------------------
    # Start / stop
    # -------------------------------------------------------------------

    def _spawn_kwargs(self) -> dict:
        kwargs: dict = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
        }
        if self._system() == "Windows":
            kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
                subprocess, "CREATE_NEW_PROCESS_GROUP", 0
            )
        else:
            kwargs["start_new_session"] = True
        return kwargs

    def start_server(self) -> None:
        """Spawn `<binary> serve` and wait for the health probe to pass.

        Raises ServerStartFailed if the process cannot be spawned or exits
        early, ServerStartTimeout if it never becomes healthy.
        """
        cmd = [self.binary, "serve"]
        logger.info("Starting server: %s", " ".join(cmd))
        try:
            process = self._popen(cmd, **self._spawn_kwargs())
        except OSError as e:
            raise ServerStartFailed(f"Failed to start Ollama server: {e}") from e

        for attempt in range(self.start_attempts):
            if self.is_running():
                self._process = process
                self.owned_by_us = True
                logger.info("Server healthy after %d probe(s), pid %s", attempt + 1, process.pid)
                return
            returncode = process.poll()
            if returncode is not None:
                raise ServerStartFailed(
                    f"Ollama server exited during startup with code {returncode}"
                )
            if attempt < self.start_attempts - 1:
                self._sleep(self.start_interval)

        # Nobody owns a server that never answered; don't leave it behind.
        try:
            self._terminate(process)
        except ServerStopFailed as e:
            logger.warning("Could not clean up unresponsive server pid %s: %s", process.pid, e)
        raise ServerStartTimeout("Ollama server did not start within the expected time")

    def stop_server(self, by_name: bool = False) -> None:
        """Stop the server this run started.

        With no tracked handle, raises NoTrackedServer unless `by_name` is
        set, in which case every process named like the binary is killed.
        `owned_by_us` is cleared in every case.
        """
        process = self._process
        try:
            if process is not None:
                logger.info("Stopping tracked server, pid %s", process.pid)
                self._terminate(process)
            elif by_name:
                self._kill_by_name()
            else:
                raise NoTrackedServer(
                    "No server started by llamatalk is being tracked; "
                    "stopping by name would affect any running Ollama process"
                )
        finally:
            self.owned_by_us = False
            self._process = None

    def _terminate(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        try:
            process.terminate()
            try:
                process.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Server pid %s ignored SIGTERM, killing", process.pid)
                process.kill()
                process.wait(timeout=self.stop_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise ServerStopFailed(f"Failed to stop Ollama server: {e}") from e

    def _kill_by_name(self) -> None:
        name = Path(self.binary).name
        if self._system() == "Windows":
            image = name if name.lower().endswith(".exe") else f"{name}.exe"
            cmd = ["taskkill", "/F", "/IM", image]
        else:
            cmd = ["pkill", name]
        logger.info("Stopping server by name: %s", " ".join(cmd))
        try:
            self._run(cmd, check=True, capture_output=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ServerStopFailed(f"Failed to stop Ollama server: {e}") from e
