"""
UI-side command channels.

A channel sends one typed request to the backend and returns a
``ChannelResult``: either the decoded result value or a typed
``CommandFailure``. Channels never raise for backend or transport failures;
the editor session recovers from every failure kind locally.

Two implementations share the same contract:

- ``HttpCommandChannel`` talks to the backend process over ``POST /api/commands``
- ``LocalCommandChannel`` dispatches in-process against a ``CanonicalStore``
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from api.commands import CommandFailure, CommandResponse, dispatch, result_adapter
from api.shared.errors import ErrorKind
from api.shared.logger import get_logger
from api.store import CanonicalStore

logger = get_logger(__name__)

COMMANDS_PATH = "/api/commands"


@dataclass
class ChannelResult:
    """Outcome of one command: a decoded value or a typed failure."""

    ok: bool
    value: Any = None
    error: Optional[CommandFailure] = None

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ChannelResult":
        return cls(ok=False, error=CommandFailure(kind=kind, message=message))


def decode_response(request: BaseModel, response: CommandResponse) -> ChannelResult:
    """Validate a raw response against the result type declared by ``request``."""
    if not response.ok:
        error = response.error or CommandFailure(kind=ErrorKind.IO_ERROR, message="Command failed")
        return ChannelResult(ok=False, error=error)

    adapter = result_adapter(type(request))
    if adapter is None:
        return ChannelResult(ok=True)
    try:
        value = adapter.validate_python(response.result)
    except ValidationError as e:
        logger.error("Malformed result for %s: %s", request.command, e)
        return ChannelResult.failure(ErrorKind.IO_ERROR, f"Malformed result for {request.command}")
    return ChannelResult(ok=True, value=value)


class CommandChannel:
    """Asynchronous request/response transport to the canonical store."""

    async def send(self, request: BaseModel) -> ChannelResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class LocalCommandChannel(CommandChannel):
    """Runs commands against an in-process store on the default executor."""

    def __init__(self, store: Optional[CanonicalStore] = None):
        self.store = store if store is not None else CanonicalStore()

    async def send(self, request: BaseModel) -> ChannelResult:
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, dispatch, request, self.store)
        # Same wire shape as the HTTP path so both decode identically
        return decode_response(request, CommandResponse.model_validate(response.model_dump(mode="json")))


class HttpCommandChannel(CommandChannel):
    """Sends commands to the backend process over HTTP.

    Args:
        base_url: Backend root, e.g. ``http://127.0.0.1:8000``.
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass one with an
            ``ASGITransport``). A client passed in is not closed by ``aclose``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def send(self, request: BaseModel) -> ChannelResult:
        body = {"request": request.model_dump(mode="json")}
        try:
            response = await self.client.post(COMMANDS_PATH, json=body)
        except httpx.HTTPError as e:
            logger.warning("Command %s did not reach the backend: %s", request.command, e)
            return ChannelResult.failure(ErrorKind.IO_ERROR, f"Backend unreachable: {e}")

        if response.status_code == 422:
            return ChannelResult.failure(
                ErrorKind.VALIDATION_ERROR, f"Request rejected by backend: {response.text}"
            )
        if response.status_code != 200:
            logger.warning("Command %s returned HTTP %d", request.command, response.status_code)
            return ChannelResult.failure(
                ErrorKind.IO_ERROR, f"Backend returned HTTP {response.status_code}"
            )

        try:
            decoded = CommandResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Unreadable response for %s: %s", request.command, e)
            return ChannelResult.failure(ErrorKind.IO_ERROR, "Unreadable backend response")
        return decode_response(request, decoded)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
