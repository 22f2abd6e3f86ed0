"""Model catalog: which models the server can chat with right now."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .config import DEFAULT_CONFIG
from .errors import CatalogUnavailable

logger = logging.getLogger(__name__)

TAGS_PATH = "/api/tags"


@dataclass(frozen=True)
class ModelDescriptor:
    name: str


class ModelCatalogClient:
    """Fetches the model list from `GET /api/tags`."""

    def __init__(
        self,
        base_url: str = DEFAULT_CONFIG["OLLAMA_BASE_URL"],
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def list_models(self) -> list[ModelDescriptor]:
        """Return the served models in server order.

        An empty list means the server has no models pulled; any failure to
        fetch or understand the payload raises CatalogUnavailable instead.
        """
        try:
            with httpx.Client(transport=self._transport, timeout=self.timeout) as client:
                response = client.get(f"{self.base_url}{TAGS_PATH}")
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise CatalogUnavailable(f"Failed to get available models: {e}") from e
        except ValueError as e:
            raise CatalogUnavailable(f"Failed to parse model list: {e}") from e

        models = parse_models(payload)
        logger.info("Catalog returned %d model(s)", len(models))
        return models


def parse_models(payload: object) -> list[ModelDescriptor]:
    """Validate a `/api/tags` payload. Unknown fields are ignored."""
    if not isinstance(payload, dict) or "models" not in payload:
        raise CatalogUnavailable("Failed to parse model list: missing 'models'")

    entries = payload["models"]
    # Ollama reports an empty registry as null on some versions
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise CatalogUnavailable("Failed to parse model list: 'models' is not a list")

    models = []
    for entry in entries:
        name = entry.get("name") if isinstance(entry, dict) else None
        if not isinstance(name, str) or not name:
            raise CatalogUnavailable(f"Failed to parse model list: bad entry {entry!r}")
        models.append(ModelDescriptor(name=name))
    return models
