"""
Generation requests against Ollama's `/api/generate` endpoint.

Ollama answers a generate call in one of two framings:

  - `"stream": false`: one JSON object, `{"response": "...", "done": true, ...}`
  - `"stream": true` (the server default): newline-delimited JSON, one object
    per chunk, each carrying a fragment of the text in `response`, with the
    last one marked `"done": true`.

We always send `stream` explicitly, and the parser accepts NDJSON in either
mode, so a server that streams regardless still produces the full text.
When streaming, `on_chunk` receives the accumulated text after every chunk
so the UI can show progress; the session itself only ever sees the final
text.

The whole exchange runs under a single deadline (`request_timeout`). httpx's
own timeouts are per operation, so a server that trickles one token a minute
would never trip them; `asyncio.wait_for` bounds the total.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable

import httpx

from .config import DEFAULT_CONFIG
from .errors import MalformedResponse, RequestFailed

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"


class ResponseAccumulator:
    """Collects `response` fragments from generate objects until `done`."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.objects = 0
        self.done = False

    @property
    def text(self) -> str:
        return "".join(self.parts)

    def feed_object(self, obj: object) -> bool:
        """Add one decoded object. Returns True if it carried new text."""
        if not isinstance(obj, dict):
            raise MalformedResponse(f"Unexpected response object: {obj!r}")
        if "error" in obj:
            raise RequestFailed(str(obj["error"]))

        self.objects += 1
        if obj.get("done"):
            self.done = True

        fragment = obj.get("response")
        if fragment is None:
            if self.done:
                return False
            raise MalformedResponse("Response object has no 'response' field")
        if not isinstance(fragment, str):
            raise MalformedResponse("'response' field is not a string")
        if not fragment:
            return False
        self.parts.append(fragment)
        return True

    def feed_line(self, line: str) -> bool:
        line = line.strip()
        if not line:
            return False
        try:
            obj = json.loads(line)
        except ValueError as e:
            raise MalformedResponse(f"Failed to parse response: {e}") from e
        return self.feed_object(obj)

    def finish(self) -> str:
        if self.objects == 0:
            raise MalformedResponse("Empty response from server")
        return self.text


def parse_generate_body(body: str) -> str:
    """Parse a complete generate body, single object or NDJSON."""
    accumulator = ResponseAccumulator()
    try:
        obj = json.loads(body)
    except ValueError:
        for line in body.splitlines():
            accumulator.feed_line(line)
    else:
        accumulator.feed_object(obj)
    return accumulator.finish()


def _error_message(response: httpx.Response) -> str:
    detail = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and "error" in payload:
        detail = str(payload["error"])
    return f"Server returned {response.status_code}: {detail or response.reason_phrase}"


class GenerationClient:
    """Sends prompts to one Ollama server."""

    def __init__(
        self,
        base_url: str = DEFAULT_CONFIG["OLLAMA_BASE_URL"],
        *,
        stream: bool = True,
        request_timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.stream = stream
        self.request_timeout = request_timeout
        self._transport = transport

    async def generate(
        self,
        model: str,
        prompt: str,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """Return the model's full reply to `prompt`.

        Raises RequestFailed (or MalformedResponse) on any failure, including
        the request deadline expiring.
        """
        try:
            return await asyncio.wait_for(
                self._generate(model, prompt, on_chunk), timeout=self.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise RequestFailed(
                f"No response from {model} within {self.request_timeout:g}s"
            ) from e

    async def _generate(
        self,
        model: str,
        prompt: str,
        on_chunk: Callable[[str], None] | None,
    ) -> str:
        url = f"{self.base_url}{GENERATE_PATH}"
        body = {"model": model, "prompt": prompt, "stream": self.stream}
        logger.info("Generate request: model=%s stream=%s chars=%d", model, self.stream, len(prompt))

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.request_timeout
            ) as client:
                if not self.stream:
                    response = await client.post(url, json=body)
                    if response.is_error:
                        raise RequestFailed(_error_message(response))
                    return parse_generate_body(response.text)

                async with client.stream("POST", url, json=body) as response:
                    if response.is_error:
                        await response.aread()
                        raise RequestFailed(_error_message(response))
                    accumulator = ResponseAccumulator()
                    async for line in response.aiter_lines():
                        if accumulator.feed_line(line) and on_chunk is not None:
                            on_chunk(accumulator.text)
                        if accumulator.done:
                            break
                    return accumulator.finish()
        except httpx.HTTPError as e:
            raise RequestFailed(f"Failed to send message: {e}") from e
