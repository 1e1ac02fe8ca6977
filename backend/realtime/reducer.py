"""
Pure connection reducer.

(context, event) -> (new_context, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from realtime.backoff import retry_delay_ms
from realtime.close_classifier import (
    AUTH_REJECTED,
    CloseSignal,
    classify_close,
)
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
from realtime.context import ConnectionContext
from realtime.enums.state import TERMINAL_STATES, ConnectionState
from realtime.events import (
    AuthRejected,
    ConnectRequested,
    DisconnectRequested,
    Event,
    PayloadReceived,
    RetryReady,
    TransportClosed,
    TransportEvent,
    TransportOpened,
)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    context: ConnectionContext,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    level: str = "info",
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": context.state.value,
            "attempt": context.attempt,
            "transport_id": context.transport_id,
            "event_type": event.event_type.value,
            "decision": decision,
            "details": details or {},
        },
        level=level,
    )


def _state_changed(
    prev: ConnectionContext,
    new: ConnectionContext,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    if prev.state is new.state:
        return ()
    return (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": prev.state.value,
                "to_state": new.state.value,
                "source": source,
            },
        ),
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    context: ConnectionContext, event: Event, reason: str
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    return context, (_log(context, event, "ignore", {"reason": reason}, level="debug"),)


def _is_stale(context: ConnectionContext, event: TransportEvent) -> bool:
    return (
        not context.transport_active
        or event.transport_id != context.transport_id
    )


# =============================================================================
# Handlers
# =============================================================================

def _on_connect(
    context: ConnectionContext, event: ConnectRequested
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    if context.transport_active:
        return _ignore(context, event, "transport_already_open")

    # Explicit connect always starts a fresh cycle
    new_context = replace(
        context,
        state=ConnectionState.CONNECTING,
        attempt=0,
        last_error=None,
        manual_close=False,
        transport_id=context.transport_id + 1,
        transport_active=True,
    )
    return new_context, _logs_last((
        CancelRetry(),
        OpenTransport(transport_id=new_context.transport_id, token=event.token),
        _log(new_context, event, "open_transport", {"source": "connect"}),
    ) + _state_changed(context, new_context, event, "connect"))


def _on_disconnect(
    context: ConnectionContext, event: DisconnectRequested
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    if context.state is ConnectionState.DISCONNECTED and not context.transport_active:
        return _ignore(context, event, "already_disconnected")

    cmds: tuple[Command, ...] = (CancelRetry(),)
    if context.transport_active:
        cmds += (CloseTransport(transport_id=context.transport_id),)

    new_context = replace(
        context,
        state=ConnectionState.DISCONNECTED,
        manual_close=True,
        transport_active=False,
    )
    return new_context, _logs_last(
        cmds
        + (_log(new_context, event, "disconnect"),)
        + _state_changed(context, new_context, event, "disconnect")
    )


def _on_retry_ready(
    context: ConnectionContext, event: RetryReady
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    if context.state is not ConnectionState.RECONNECTING:
        return _ignore(context, event, "not_reconnecting")

    if context.transport_active:
        return _ignore(context, event, "transport_already_open")

    if event.token is None:
        # Stays RECONNECTING with no timer armed until an explicit connect()
        return context, (
            _log(context, event, "ignore", {"reason": "no_credential"}, level="warning"),
        )

    new_context = replace(
        context,
        transport_id=context.transport_id + 1,
        transport_active=True,
    )
    return new_context, _logs_last((
        OpenTransport(transport_id=new_context.transport_id, token=event.token),
        _log(new_context, event, "open_transport", {"source": "retry"}),
    ))


def _on_payload(
    context: ConnectionContext, event: PayloadReceived
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    if context.state is ConnectionState.CONNECTED:
        return context, (DeliverPayload(payload=event.payload),)

    # First accepted payload on this transport = authenticated
    new_context = replace(
        context,
        state=ConnectionState.CONNECTED,
        attempt=0,
        last_error=None,
    )
    return new_context, _logs_last((
        DeliverPayload(payload=event.payload),
        _log(new_context, event, "connected", {"first_payload_type": event.payload.get("type")}),
    ) + _state_changed(context, new_context, event, "first_payload"))


def _on_auth_rejected(
    context: ConnectionContext, event: AuthRejected
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    new_context = replace(
        context,
        state=ConnectionState.ERROR,
        last_error=AUTH_REJECTED.message,
        transport_active=False,
    )
    return new_context, _logs_last((
        CancelRetry(),
        CloseTransport(transport_id=event.transport_id),
        _log(
            new_context,
            event,
            "terminal",
            {"cause": AUTH_REJECTED.cause.value, "reason": event.reason},
            level="error",
        ),
    ) + _state_changed(context, new_context, event, "auth_rejected"))


def _on_transport_closed(
    context: ConnectionContext, event: TransportClosed
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    disposition = classify_close(
        CloseSignal(code=event.code, reason=event.reason),
        state=context.state,
        attempt=context.attempt,
    )
    details: dict[str, Any] = {
        "code": event.code,
        "reason": event.reason,
        "cause": disposition.cause.value,
    }

    if not disposition.retryable:
        new_context = replace(
            context,
            state=ConnectionState.ERROR,
            last_error=disposition.message,
            transport_active=False,
        )
        return new_context, _logs_last((
            CancelRetry(),
            CloseTransport(transport_id=event.transport_id),
            _log(new_context, event, "terminal", details, level="error"),
        ) + _state_changed(context, new_context, event, "transport_closed"))

    # Delay uses the pre-increment counter: first retry waits the base delay
    delay_ms = retry_delay_ms(context.attempt)
    new_context = replace(
        context,
        state=ConnectionState.RECONNECTING,
        attempt=context.attempt + 1,
        last_error=disposition.message,
        transport_active=False,
    )
    return new_context, _logs_last((
        CloseTransport(transport_id=event.transport_id),
        ScheduleRetry(delay_ms=delay_ms, attempt=new_context.attempt),
        _log(
            new_context,
            event,
            "schedule_retry",
            {**details, "delay_ms": delay_ms},
            level="warning" if disposition.message else "info",
        ),
    ) + _state_changed(context, new_context, event, "transport_closed"))


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    context: ConnectionContext, event: Event
) -> tuple[ConnectionContext, tuple[Command, ...]]:
    """
    Pure reducer for the connection state machine.

    Given the current context and a single event, returns:
    - the next context
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events from stale transports
    """
    # ------------------------------------------------------------------
    # Owner requests (valid in every state)
    # ------------------------------------------------------------------
    if isinstance(event, DisconnectRequested):
        return _on_disconnect(context, event)

    if isinstance(event, ConnectRequested):
        return _on_connect(context, event)

    # ------------------------------------------------------------------
    # Terminal gating: nothing automatic happens after ERROR/DISCONNECTED
    # ------------------------------------------------------------------
    if context.state in TERMINAL_STATES:
        return _ignore(context, event, "terminal_state")

    if isinstance(event, RetryReady):
        return _on_retry_ready(context, event)

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------
    if isinstance(event, TransportEvent) and _is_stale(context, event):
        return _ignore(context, event, "stale_transport")

    if isinstance(event, TransportOpened):
        return context, (
            SendHandshake(transport_id=event.transport_id),
            _log(context, event, "send_handshake", level="debug"),
        )

    if isinstance(event, PayloadReceived):
        return _on_payload(context, event)

    if isinstance(event, AuthRejected):
        return _on_auth_rejected(context, event)

    if isinstance(event, TransportClosed):
        return _on_transport_closed(context, event)

    return _ignore(context, event, "unhandled_event")
