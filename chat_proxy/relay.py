"""Streaming relay between the caller and an upstream provider."""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from typing import Any

import httpx
from loguru import logger

from .config import Settings
from .events import CompleteEvent, ContentEvent, ErrorEvent, StreamEvent
from .exceptions import PersistenceError, StreamTimeout, StreamTransportError, UpstreamProviderError
from .reconciler import ReconcileResult
from .routing import Route
from .session import RelayState, StreamSession
from .sse import DONE_SENTINEL, MalformedEventError, extract_data_payload, parse_event

CompletionHook = Callable[[StreamSession], Awaitable[ReconcileResult]]


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared upstream client; the relay enforces its own idle timeout on reads."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=settings.upstream_connect_timeout_seconds,
            read=settings.stream_timeout_seconds,
            write=settings.upstream_connect_timeout_seconds,
            pool=settings.upstream_connect_timeout_seconds,
        ),
        limits=httpx.Limits(
            max_connections=settings.upstream_max_connections,
            max_keepalive_connections=settings.upstream_max_keepalive_connections,
        ),
    )


def _error_detail(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace")
    return text[:600]


class StreamingRelay:
    """Relays one upstream stream as normalized events.

    Every session ends with exactly one terminal event (``complete`` or
    ``error``), emitted after all of its ``content`` events. Partial output is
    never handed to ``on_complete``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        on_complete: CompletionHook,
        idle_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._on_complete = on_complete
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._pending: set[asyncio.Task[Any]] = set()

    @staticmethod
    def _headers(route: Route) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {route.credential}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def run(self, session: StreamSession, body: dict[str, Any]) -> AsyncIterator[StreamEvent]:
        """Open the upstream stream and yield events until the terminal one."""
        session.advance(RelayState.CONNECTING)
        try:
            async with aclosing(self._upstream_events(session, body)) as events:
                async for event in events:
                    yield event
        except StreamTimeout as e:
            yield self._terminate(session, RelayState.TIMEOUT, ErrorEvent(e.message))
            return
        except StreamTransportError as e:
            yield self._terminate(session, RelayState.ERROR, ErrorEvent(e.message, e.details))
            return
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected relay failure")
            yield self._terminate(session, RelayState.ERROR, ErrorEvent("Streaming error occurred"))
            return

        session.advance(RelayState.COMPLETING)
        try:
            result = await self._complete(session)
        except PersistenceError as e:
            yield self._terminate(session, RelayState.ERROR, ErrorEvent(e.message))
            return
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected failure while saving response")
            yield self._terminate(session, RelayState.ERROR, ErrorEvent("Failed to save response."))
            return

        yield self._terminate(
            session, RelayState.SUCCESS, CompleteEvent(result.conversation_id, result.message_id)
        )

    async def _upstream_events(
        self, session: StreamSession, body: dict[str, Any]
    ) -> AsyncIterator[ContentEvent]:
        route = session.route
        logger.debug(f"Opening upstream stream: provider={route.provider_kind} model={route.wire_model_id}")
        try:
            async with self._client.stream(
                "POST", route.endpoint, json=body, headers=self._headers(route)
            ) as response:
                if response.status_code >= 400:
                    detail = _error_detail(await response.aread())
                    logger.warning(f"Upstream rejected request: status={response.status_code}")
                    raise StreamTransportError("Failed to connect to AI provider", details=detail)

                async with aclosing(self._lines(response, session)) as lines:
                    async for line in lines:
                        payload = extract_data_payload(line)
                        if not payload:
                            continue
                        if payload == DONE_SENTINEL:
                            return
                        try:
                            chunk = parse_event(payload)
                        except MalformedEventError as e:
                            logger.warning(f"Skipping malformed upstream event: {e}")
                            continue

                        if chunk.error is not None:
                            raise UpstreamProviderError("Provider returned an error", details=chunk.error)
                        if chunk.usage:
                            session.usage = chunk.usage
                        if chunk.text:
                            session.append(chunk.text)
                            yield ContentEvent(chunk.text)
        except (httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            raise StreamTransportError("Failed to connect to AI provider", details=str(e)) from e
        except (TimeoutError, httpx.ReadTimeout, httpx.WriteTimeout) as e:
            raise StreamTimeout(f"Stream timeout after {self.idle_timeout:g} seconds") from e
        except httpx.HTTPError as e:
            if session.state is RelayState.CONNECTING:
                raise StreamTransportError("Failed to connect to AI provider", details=str(e)) from e
            raise StreamTransportError("Streaming error occurred", details=str(e)) from e

    async def _lines(self, response: httpx.Response, session: StreamSession) -> AsyncIterator[str]:
        """Split the body into lines; the idle timer restarts on every received chunk."""
        chunks = response.aiter_text()
        buffer = ""
        while True:
            try:
                async with asyncio.timeout(self.idle_timeout):
                    chunk = await anext(chunks)
            except StopAsyncIteration:
                break

            session.touch(self._clock())
            if session.state is RelayState.CONNECTING:
                session.advance(RelayState.STREAMING)

            buffer += chunk
            *complete, buffer = buffer.split("\n")
            for line in complete:
                yield line
        if buffer:
            yield buffer

    async def _complete(self, session: StreamSession) -> ReconcileResult:
        # Shielded so that a caller disconnect cannot interrupt a started save.
        task = asyncio.ensure_future(self._on_complete(session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    def _terminate(self, session: StreamSession, state: RelayState, event: StreamEvent) -> StreamEvent:
        session.advance(state)
        if state is RelayState.SUCCESS:
            logger.info(f"Stream completed ({len(session.content)} chars)")
        else:
            detail = f": {event.details}" if isinstance(event, ErrorEvent) and event.details else ""
            logger.warning(f"Stream ended with {state.value}: {getattr(event, 'error', '')}{detail}")
        return event
