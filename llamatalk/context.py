"""
The explicitly constructed application context.

Rather than a module-level manager shared by everything, one AppContext is
built per run and handed to the controller and the UI. Tests build their own
with stub transports, so several can exist side by side.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .catalog import ModelCatalogClient
from .config import Settings
from .llm import GenerationClient
from .server import ServerLifecycleManager


@dataclass
class AppContext:
    settings: Settings
    server: ServerLifecycleManager
    catalog: ModelCatalogClient
    generator: GenerationClient
    last_model: str | None = field(default=None)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(
            settings=settings,
            server=ServerLifecycleManager(
                settings.base_url,
                settings.binary,
                probe_timeout=settings.probe_timeout,
                start_attempts=settings.start_attempts,
                start_interval=settings.start_interval,
            ),
            catalog=ModelCatalogClient(settings.base_url),
            generator=GenerationClient(
                settings.base_url,
                stream=settings.stream,
                request_timeout=settings.request_timeout,
            ),
        )
