"""
Realtime connection manager: the runtime shell around the pure reducer.

Responsibilities:
- Own the connection context (one per manager, never shared)
- Call the pure reducer
- Execute commands with side effects (transport, retry timer, consumer)
- Funnel every transport and timer event through one ordered queue
- Release transport and retry timer on every exit path

Non-responsibilities:
- Retry/terminal decisions (reducer + classifier)
- Payload semantics (consumer)
- Credential persistence (credential store)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from observability.logger import log_event

from realtime.close_classifier import CloseSignal
from realtime.commands import (
    CancelRetry,
    CloseTransport,
    Command,
    DeliverPayload,
    LogEvent,
    OpenTransport,
    ScheduleRetry,
    SendHandshake,
)
from realtime.context import ConnectionContext, ConnectionStatus
from realtime.dispatcher import Consumer, MessageDispatcher
from realtime.enums.state import ConnectionState
from realtime.events import (
    ConnectRequested,
    DisconnectRequested,
    Event,
    EventType,
    RetryReady,
    TransportClosed,
    TransportOpened,
)
from realtime.handshake import build_auth_frame
from realtime.reducer import reduce
from realtime.transport import (
    Transport,
    TransportFactory,
    TransportOpenError,
    build_stream_url,
    websocket_factory,
)
from constants import CLOSE_ABNORMAL

if TYPE_CHECKING:
    from config import AppConfig
    from realtime.collaborators import CredentialStore, StatusObserver


SleepFn = Callable[[float], Awaitable[None]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------
# Internal queue items / handles
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class _RawFrame:
    """Undecoded frame; routed by the dispatcher when dequeued."""
    transport_id: int
    raw: str | bytes


@dataclass
class _TransportHandle:
    """The single outstanding transport (opening or open)."""
    transport_id: int
    token: str
    task: asyncio.Task[None] | None = None
    send_task: asyncio.Task[None] | None = None
    transport: Transport | None = None


class ConnectionManager:
    """
    One manager == one realtime stream for one owning component.

    Lifecycle:
        async with ConnectionManager(...) as manager:   # connect()
            ...
        # disconnect() + all tasks released

    Guarantees:
    - Reducer is called exactly once per event, in queue order
    - Context is swapped in before any command executes
    - At most one transport handle and one retry timer exist
    - After disconnect() returns no state change and no consumer call
      happens until the next explicit connect()
    """

    def __init__(
        self,
        *,
        url: str,
        credentials: CredentialStore,
        on_message: Consumer,
        on_status: StatusObserver | None = None,
        transport_factory: TransportFactory | None = None,
        sleep: SleepFn = asyncio.sleep,
        name: str = "stream",
    ) -> None:
        self._url = url
        self._credentials = credentials
        self._dispatcher = MessageDispatcher(on_message)
        self._on_status = on_status
        self._open_transport = transport_factory or websocket_factory()
        self._sleep = sleep
        self._name = name

        self._context = ConnectionContext()
        self._last_status = ConnectionStatus.from_context(self._context)

        self._events: asyncio.Queue[Event | _RawFrame] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._transport: _TransportHandle | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._closing: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        credentials: CredentialStore,
        on_message: Consumer,
        on_status: StatusObserver | None = None,
        path: str | None = None,
    ) -> ConnectionManager:
        """Build a websockets-backed manager for config.stream_path (or path)."""
        stream_path = path or config.stream_path
        return cls(
            url=build_stream_url(config.base_url, stream_path),
            credentials=credentials,
            on_message=on_message,
            on_status=on_status,
            transport_factory=websocket_factory(origin=config.origin),
            name=stream_path,
        )

    # ------------------------------------------------------------------
    # Observer projection
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return ConnectionStatus.from_context(self._context)

    @property
    def state(self) -> ConnectionState:
        return self._context.state

    @property
    def last_error(self) -> str | None:
        return self._context.last_error

    @property
    def attempt(self) -> int:
        return self._context.attempt

    @property
    def url(self) -> str:
        return self._url

    # ------------------------------------------------------------------
    # Owner API
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Start (or restart) the stream. Returns immediately.

        No-op when a transport is already open or the credential store
        is empty. Must be called from inside the running event loop.
        """
        token = self._credentials.get_token()
        if token is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "connect_skipped",
                "stream": self._name,
                "reason": "no_credential",
            }, level="debug")
            return

        self._ensure_pump()
        self._handle_event(
            ConnectRequested(
                event_type=EventType.CONNECT_REQUESTED,
                ts_ms=_now_ms(),
                token=token,
            )
        )

    def disconnect(self) -> None:
        """
        Tear down deterministically.

        Cancels the retry timer and the transport tasks before returning.
        Never treated as an error; never followed by an automatic retry.
        """
        self._handle_event(
            DisconnectRequested(
                event_type=EventType.DISCONNECT_REQUESTED,
                ts_ms=_now_ms(),
            )
        )

    async def aclose(self) -> None:
        """
        disconnect() plus release of every background task.

        Called on owner teardown.
        """
        self.disconnect()

        pump = self._pump_task
        self._pump_task = None
        self._events = None
        if pump is not None and not pump.done():
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)

        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    async def __aenter__(self) -> ConnectionManager:
        self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Event pipeline
    # ------------------------------------------------------------------

    def _ensure_pump(self) -> None:
        if self._pump_task is not None and not self._pump_task.done():
            return
        self._events = asyncio.Queue()
        self._pump_task = asyncio.create_task(self._pump())

    def _enqueue(self, item: Event | _RawFrame) -> None:
        if self._events is not None:
            self._events.put_nowait(item)

    async def _pump(self) -> None:
        """
        Single consumer of the event queue.

        Raw frames are routed by the dispatcher here, so parse order
        equals arrival order.
        """
        events = self._events
        assert events is not None

        while True:
            item = await events.get()
            try:
                if isinstance(item, _RawFrame):
                    event = self._dispatcher.route(
                        transport_id=item.transport_id,
                        raw=item.raw,
                        ts_ms=_now_ms(),
                    )
                    if event is None:
                        continue
                else:
                    event = item

                self._handle_event(event)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "pump_error",
                    "stream": self._name,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                }, level="error")

    def _handle_event(self, event: Event) -> None:
        """
        Process a single event through the reducer.

        1. Reduce
        2. Swap in the new context
        3. Execute commands in emitted order
        4. Notify the status observer if the projection changed
        """
        new_context, commands = reduce(self._context, event)
        self._context = new_context

        for cmd in commands:
            self._execute_command(cmd)

        self._notify_status()

    def _notify_status(self) -> None:
        status = ConnectionStatus.from_context(self._context)
        if status == self._last_status:
            return
        self._last_status = status

        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "observer_error",
                "stream": self._name,
                "exception": type(exc).__name__,
                "message": str(exc),
            }, level="warning")

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command. Never awaits: long work runs in tasks."""
        if isinstance(cmd, LogEvent):
            log_event({**cmd.event, "stream": self._name}, level=cmd.level)

        elif isinstance(cmd, OpenTransport):
            # Cancel-before-assign keeps the single-handle invariant
            self._release_transport()
            handle = _TransportHandle(transport_id=cmd.transport_id, token=cmd.token)
            handle.task = asyncio.create_task(self._run_transport(handle))
            self._transport = handle

        elif isinstance(cmd, SendHandshake):
            handle = self._transport
            if (
                handle is None
                or handle.transport_id != cmd.transport_id
                or handle.transport is None
            ):
                return
            handle.send_task = asyncio.create_task(self._send_handshake(handle))

        elif isinstance(cmd, CloseTransport):
            if self._transport is not None and self._transport.transport_id == cmd.transport_id:
                self._release_transport()

        elif isinstance(cmd, ScheduleRetry):
            self._arm_retry(cmd.delay_ms)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "retry_scheduled",
                "stream": self._name,
                "delay_ms": cmd.delay_ms,
                "attempt": cmd.attempt,
            }, level="debug")

        elif isinstance(cmd, CancelRetry):
            self._cancel_retry()

        elif isinstance(cmd, DeliverPayload):
            self._dispatcher.deliver(cmd.payload)

        else:
            raise ValueError(f"Unknown command: {type(cmd).__name__}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _run_transport(self, handle: _TransportHandle) -> None:
        """
        Open, read until termination, report termination.

        Every outcome except cancellation ends with exactly one
        TransportClosed for handle.transport_id.
        """
        transport_id = handle.transport_id

        try:
            transport = await self._open_transport(self._url)
        except TransportOpenError as e:
            self._report_open_failure(transport_id, e.code, e.reason)
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._report_open_failure(transport_id, CLOSE_ABNORMAL, f"{type(e).__name__}: {e}")
            return

        handle.transport = transport
        self._enqueue(
            TransportOpened(
                event_type=EventType.TRANSPORT_OPENED,
                ts_ms=_now_ms(),
                transport_id=transport_id,
            )
        )

        try:
            async for raw in transport.frames():
                self._enqueue(_RawFrame(transport_id=transport_id, raw=raw))
            signal = transport.close_signal()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "transport_read_failed",
                "stream": self._name,
                "transport_id": transport_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            }, level="warning")
            signal = CloseSignal(code=CLOSE_ABNORMAL, reason=f"{type(exc).__name__}: {exc}")

        self._enqueue(
            TransportClosed(
                event_type=EventType.TRANSPORT_CLOSED,
                ts_ms=_now_ms(),
                transport_id=transport_id,
                code=signal.code,
                reason=signal.reason,
            )
        )

    def _report_open_failure(self, transport_id: int, code: int, reason: str) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "transport_open_failed",
            "stream": self._name,
            "transport_id": transport_id,
            "code": code,
            "reason": reason,
        }, level="warning")
        self._enqueue(
            TransportClosed(
                event_type=EventType.TRANSPORT_CLOSED,
                ts_ms=_now_ms(),
                transport_id=transport_id,
                code=code,
                reason=reason,
            )
        )

    async def _send_handshake(self, handle: _TransportHandle) -> None:
        transport = handle.transport
        assert transport is not None
        try:
            await transport.send(build_auth_frame(handle.token))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # The reader observes the closure and reports it
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "handshake_send_failed",
                "stream": self._name,
                "transport_id": handle.transport_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            }, level="warning")

    def _release_transport(self) -> None:
        """
        Drop the current handle synchronously.

        Reader/sender tasks are cancelled now, so nothing more is
        enqueued for this transport. The close handshake itself runs
        in a tracked task awaited by aclose().
        """
        handle = self._transport
        self._transport = None
        if handle is None:
            return

        for task in (handle.send_task, handle.task):
            if task is not None and not task.done():
                task.cancel()

        if handle.transport is not None:
            closer = asyncio.create_task(self._close_quietly(handle.transport))
            self._closing.add(closer)
            closer.add_done_callback(self._closing.discard)

    async def _close_quietly(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "transport_close_failed",
                "stream": self._name,
                "exception": type(exc).__name__,
                "message": str(exc),
            }, level="debug")

    # ------------------------------------------------------------------
    # Retry timer
    # ------------------------------------------------------------------

    def _arm_retry(self, delay_ms: int) -> None:
        """
        Start the retry timer, replacing any armed one.

        On expiry the credential is re-read and RetryReady enters the
        queue like any transport event.
        """
        self._cancel_retry()

        async def _retry_task() -> None:
            try:
                await self._sleep(delay_ms / 1000.0)
            except asyncio.CancelledError:
                return

            self._enqueue(
                RetryReady(
                    event_type=EventType.RETRY_READY,
                    ts_ms=_now_ms(),
                    token=self._credentials.get_token(),
                )
            )

        self._retry_task = asyncio.create_task(_retry_task())

    def _cancel_retry(self) -> None:
        """Idempotent: safe to call even if no timer is armed."""
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done():
            task.cancel()
