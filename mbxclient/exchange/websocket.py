"""WebSocket dialer and the single-subscription stream runner."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import WebSocketException

from ..utils.exceptions import StreamDecodeError, WebSocketError
from ..utils.logger import get_logger

HANDSHAKE_TIMEOUT = 45.0
CLOSE_TIMEOUT = 10.0
READ_LIMIT = 655350
DEFAULT_KEEPALIVE_TIMEOUT = 60.0

Frame = Union[str, bytes]
Decoder = Callable[[Frame], Any]
Handler = Callable[[Any], Optional[Awaitable[None]]]
ErrHandler = Callable[[BaseException], Optional[Awaitable[None]]]

logger = get_logger(__name__)


@dataclass(frozen=True)
class WsConfig:
    """Connection settings for one stream endpoint."""

    endpoint: str
    proxy_url: Optional[str] = None
    handshake_timeout: float = HANDSHAKE_TIMEOUT
    read_limit: int = READ_LIMIT
    compression: bool = True
    keepalive: bool = False
    keepalive_timeout: float = DEFAULT_KEEPALIVE_TIMEOUT


async def dial(config: WsConfig) -> ClientConnection:
    """Open a connection for ``config``.

    Server pings are answered by the protocol layer with a pong carrying the
    same payload. Client pings are only sent when ``keepalive`` is enabled.
    """
    ping_interval = config.keepalive_timeout if config.keepalive else None
    try:
        return await websockets.connect(
            config.endpoint,
            open_timeout=config.handshake_timeout,
            max_size=config.read_limit,
            compression="deflate" if config.compression else None,
            ping_interval=ping_interval,
            ping_timeout=ping_interval,
            close_timeout=CLOSE_TIMEOUT,
            proxy=config.proxy_url,
        )
    except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
        raise WebSocketError(f"cannot connect to {config.endpoint}: {exc}") from exc


async def _invoke(callback: Callable[[Any], Any], argument: Any) -> None:
    result = callback(argument)
    if inspect.isawaitable(result):
        await result


class WsStream:
    """A running subscription.

    Frames are decoded and handed to the handler in arrival order, one at a
    time. :attr:`done` is set exactly once, after the last handler call,
    whether the stream ended on a read error or because :meth:`stop` was
    called. Errors raised after a stop request are not reported.
    """

    def __init__(
        self,
        connection: ClientConnection,
        config: WsConfig,
        decoder: Optional[Decoder],
        handler: Handler,
        err_handler: Optional[ErrHandler],
    ) -> None:
        self._connection = connection
        self._config = config
        self._decoder = decoder
        self._handler = handler
        self._err_handler = err_handler
        self._stop_requested = asyncio.Event()
        self._silent = False
        self._reader: Optional[asyncio.Task] = None
        self._watcher: Optional[asyncio.Task] = None
        self.done = asyncio.Event()

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    @property
    def stopped(self) -> bool:
        return self._stop_requested.is_set()

    def start(self) -> "WsStream":
        if self._reader is not None:
            return self
        self._reader = asyncio.create_task(self._read_loop(), name=f"ws-reader:{self.endpoint}")
        self._watcher = asyncio.create_task(self._watch(), name=f"ws-watcher:{self.endpoint}")
        return self

    def stop(self) -> None:
        """Request shutdown. Safe to call any number of times."""
        if not self._stop_requested.is_set():
            logger.debug("stop requested for %s", self.endpoint)
        self._stop_requested.set()

    async def wait(self) -> None:
        """Wait until the stream has terminated and the connection is closed.

        Must not be awaited from inside the handler.
        """
        await self.done.wait()
        tasks = [task for task in (self._reader, self._watcher) if task is not None]
        if tasks:
            await asyncio.wait(tasks)

    async def close(self) -> None:
        self.stop()
        await self.wait()

    async def __aenter__(self) -> "WsStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _watch(self) -> None:
        stop_wait = asyncio.ensure_future(self._stop_requested.wait())
        done_wait = asyncio.ensure_future(self.done.wait())
        try:
            await asyncio.wait({stop_wait, done_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
            done_wait.cancel()
        if self._stop_requested.is_set():
            self._silent = True
        await self._connection.close()

    async def _read_loop(self) -> None:
        logger.debug("stream started: %s", self.endpoint)
        try:
            while True:
                try:
                    message = await self._connection.recv()
                except (WebSocketException, OSError) as exc:
                    if self._silent or self._stop_requested.is_set():
                        logger.debug("stream closed after stop: %s", self.endpoint)
                    else:
                        logger.debug("stream terminated: %s (%s)", self.endpoint, exc)
                        await self._report(exc)
                    return
                # frames still buffered behind a stop request are dropped
                if self._silent or self._stop_requested.is_set():
                    logger.debug("stream closed after stop: %s", self.endpoint)
                    return
                await self._dispatch(message)
        finally:
            self.done.set()

    async def _dispatch(self, message: Frame) -> None:
        try:
            event = self._decoder(message) if self._decoder is not None else message
        except Exception as exc:
            if isinstance(exc, StreamDecodeError):
                error = exc
            else:
                error = StreamDecodeError(f"cannot decode frame: {exc}", frame=message)
                error.__cause__ = exc
            logger.warning("dropping undecodable frame from %s: %s", self.endpoint, error)
            await self._report(error)
            return
        try:
            await _invoke(self._handler, event)
        except Exception as exc:
            logger.warning("handler failed for %s: %s", self.endpoint, exc)
            await self._report(exc)

    async def _report(self, error: BaseException) -> None:
        if self._err_handler is None:
            logger.warning("unhandled stream error on %s: %s", self.endpoint, error)
            return
        try:
            await _invoke(self._err_handler, error)
        except Exception:
            logger.exception("error handler failed for %s", self.endpoint)


async def serve(
    config: WsConfig,
    decoder: Optional[Decoder],
    handler: Handler,
    err_handler: Optional[ErrHandler],
) -> WsStream:
    """Dial ``config.endpoint`` and start delivering decoded frames.

    Dial failures raise :class:`WebSocketError` and no tasks are started.
    Handlers may be plain functions or coroutine functions.
    """
    connection = await dial(config)
    return WsStream(connection, config, decoder, handler, err_handler).start()


__all__ = [
    "CLOSE_TIMEOUT",
    "DEFAULT_KEEPALIVE_TIMEOUT",
    "HANDSHAKE_TIMEOUT",
    "READ_LIMIT",
    "WsConfig",
    "WsStream",
    "dial",
    "serve",
]
