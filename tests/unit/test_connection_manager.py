# pylint: disable=missing-module-docstring,missing-function-docstring
from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

from config import AppConfig
from constants import CLOSE_ABNORMAL, CLOSE_GOING_AWAY, CLOSE_POLICY_VIOLATION
from realtime.close_classifier import (
    CloseSignal,
    MSG_AUTH_REJECTED,
    MSG_POLICY_REJECTED,
    MSG_UNREACHABLE,
)
from realtime.collaborators import MemoryCredentialStore, StaticCredentialStore
from realtime.context import ConnectionStatus
from realtime.enums.state import ConnectionState
from realtime.handshake import build_auth_frame
from realtime.manager import ConnectionManager
from realtime.transport import TransportOpenError


URL = "ws://fleet.test/api/v1/ws/dashboard"


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeTransport:
    """Server side is driven through push()/drop()."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._signal = CloseSignal(code=CLOSE_ABNORMAL)

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def frames(self) -> AsyncIterator[str | bytes]:
        while True:
            item = await self._inbox.get()
            if isinstance(item, CloseSignal):
                self._signal = item
                return
            yield item

    def close_signal(self) -> CloseSignal:
        return self._signal

    async def close(self) -> None:
        self.closed = True

    def push(self, frame: dict[str, Any] | str) -> None:
        self._inbox.put_nowait(json.dumps(frame) if isinstance(frame, dict) else frame)

    def drop(self, code: int = CLOSE_ABNORMAL, reason: str | None = None) -> None:
        self._inbox.put_nowait(CloseSignal(code=code, reason=reason))


class BrokenReaderTransport(FakeTransport):
    """Reader raises instead of ending cleanly when the server drops."""

    async def frames(self) -> AsyncIterator[str | bytes]:
        async for raw in super().frames():
            yield raw
        raise RuntimeError("reader crashed")


class FakeFactory:
    """Fails with the queued close codes first, then opens FakeTransports."""

    def __init__(
        self,
        failures: list[int] | None = None,
        transport_cls: type[FakeTransport] = FakeTransport,
    ) -> None:
        self.failures = list(failures or [])
        self.transport_cls = transport_cls
        self.urls: list[str] = []
        self.opened: list[FakeTransport] = []

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)
        if self.failures:
            raise TransportOpenError(self.failures.pop(0), "refused")
        transport = self.transport_cls()
        self.opened.append(transport)
        return transport

    @property
    def current(self) -> FakeTransport:
        return self.opened[-1]


class RecordingSleep:
    """Records requested delays; blocks until cancelled when block=True."""

    def __init__(self, block: bool = False) -> None:
        self.block = block
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.block:
            await asyncio.Event().wait()


class Recorder:
    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []
        self.statuses: list[ConnectionStatus] = []

    def on_message(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)

    def on_status(self, status: ConnectionStatus) -> None:
        self.statuses.append(status)

    @property
    def states(self) -> list[ConnectionState]:
        return [s.state for s in self.statuses]


async def settle(rounds: int = 200) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def build(
    recorder: Recorder,
    factory: FakeFactory,
    sleep: RecordingSleep,
    credentials: Any = None,
) -> ConnectionManager:
    return ConnectionManager(
        url=URL,
        credentials=credentials or StaticCredentialStore("tok"),
        on_message=recorder.on_message,
        on_status=recorder.on_status,
        transport_factory=factory,
        sleep=sleep,
    )


DASHBOARD = {"type": "dashboard", "hosts": [], "host_metrics": {}, "version_comparisons": []}


# ---------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------

def test_connect_handshake_and_first_payload():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            assert factory.urls == [URL]
            assert factory.current.sent == [build_auth_frame("tok")]
            assert manager.state is ConnectionState.CONNECTING

            factory.current.push(DASHBOARD)
            await settle()

            assert manager.state is ConnectionState.CONNECTED
            assert recorder.payloads == [DASHBOARD]
            assert recorder.statuses == [
                ConnectionStatus(state=ConnectionState.CONNECTED, last_error=None, attempt=0)
            ]

    asyncio.run(scenario())


def test_payloads_reach_consumer_in_arrival_order():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep):
            await settle()
            for kind in ("dashboard", "docker", "network", "host_detail"):
                factory.current.push({"type": kind})
            await settle()

        assert [p["type"] for p in recorder.payloads] == [
            "dashboard", "docker", "network", "host_detail",
        ]

    asyncio.run(scenario())


def test_connect_is_idempotent_while_opening():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            manager.connect()
            await settle()
            manager.connect()
            await settle()

            assert factory.urls == [URL]

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Reconnection
# ---------------------------------------------------------------------

def test_drop_while_connected_reconnects_after_base_delay():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            first = factory.current
            first.push(DASHBOARD)
            await settle()

            first.drop(CLOSE_GOING_AWAY)
            await settle()

            assert first.closed
            assert sleep.delays == [2.0]
            assert len(factory.opened) == 2
            assert factory.current.sent == [build_auth_frame("tok")]

            factory.current.push(DASHBOARD)
            await settle()

            assert manager.state is ConnectionState.CONNECTED
            assert manager.attempt == 0

        assert recorder.states[:3] == [
            ConnectionState.CONNECTED,
            ConnectionState.RECONNECTING,
            ConnectionState.CONNECTED,
        ]
        assert recorder.statuses[1].attempt == 1
        assert recorder.statuses[1].last_error is None

    asyncio.run(scenario())


def test_reader_failure_is_treated_as_abnormal_close():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(transport_cls=BrokenReaderTransport)
        sleep = RecordingSleep(block=True)
        async with build(recorder, factory, sleep) as manager:
            await settle()
            factory.current.push(DASHBOARD)
            await settle()
            assert manager.state is ConnectionState.CONNECTED

            factory.current.drop(CLOSE_ABNORMAL)
            await settle()

            assert manager.state is ConnectionState.RECONNECTING
            assert manager.attempt == 1
            assert sleep.delays == [2.0]
            assert factory.current.closed

    asyncio.run(scenario())


def test_backoff_doubles_and_caps_across_failures():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(failures=[CLOSE_ABNORMAL] * 10)
        sleep = RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle(2000)

            assert sleep.delays == [2.0, 4.0, 8.0, 16.0] + [30.0] * 6
            assert len(factory.urls) == 11

            factory.current.push(DASHBOARD)
            await settle()

            assert manager.state is ConnectionState.CONNECTED
            assert manager.attempt == 0

    asyncio.run(scenario())


def test_first_attempt_failure_is_retryable_but_explained():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(failures=[CLOSE_ABNORMAL])
        sleep = RecordingSleep(block=True)
        async with build(recorder, factory, sleep) as manager:
            await settle()

            assert manager.state is ConnectionState.RECONNECTING
            assert manager.last_error == MSG_UNREACHABLE
            assert sleep.delays == [2.0]

    asyncio.run(scenario())


def test_retry_without_credential_waits_for_explicit_connect():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        credentials = MemoryCredentialStore("tok")
        async with build(recorder, factory, sleep, credentials) as manager:
            await settle()
            factory.current.push(DASHBOARD)
            await settle()

            credentials.clear()
            factory.current.drop()
            await settle()

            assert manager.state is ConnectionState.RECONNECTING
            assert len(factory.urls) == 1

            credentials.set_token("fresh")
            manager.connect()
            await settle()

            assert len(factory.urls) == 2
            assert factory.current.sent == [build_auth_frame("fresh")]

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Terminal failures
# ---------------------------------------------------------------------

def test_auth_rejection_is_terminal():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            factory.current.push({"type": "auth_error", "error": "unauthorized"})
            await settle()

            assert manager.state is ConnectionState.ERROR
            assert manager.last_error == MSG_AUTH_REJECTED
            assert factory.current.closed
            assert sleep.delays == []
            assert len(factory.urls) == 1
            assert recorder.payloads == []

    asyncio.run(scenario())


def test_policy_rejection_on_open_is_terminal():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(failures=[CLOSE_POLICY_VIOLATION])
        sleep = RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()

            assert manager.state is ConnectionState.ERROR
            assert manager.last_error == MSG_POLICY_REJECTED
            assert sleep.delays == []
            assert len(factory.urls) == 1

    asyncio.run(scenario())


def test_connect_after_error_starts_fresh_cycle():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(failures=[CLOSE_POLICY_VIOLATION])
        sleep = RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            assert manager.state is ConnectionState.ERROR

            manager.connect()
            await settle()

            assert manager.state is ConnectionState.CONNECTING
            assert manager.last_error is None
            assert manager.attempt == 0
            assert len(factory.urls) == 2

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Disconnect
# ---------------------------------------------------------------------

def test_disconnect_stops_delivery_and_closes_transport():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        manager = build(recorder, factory, sleep)
        manager.connect()
        await settle()
        transport = factory.current
        transport.push(DASHBOARD)
        await settle()

        manager.disconnect()
        assert manager.state is ConnectionState.DISCONNECTED
        delivered = len(recorder.payloads)
        notified = len(recorder.statuses)

        transport.push(DASHBOARD)
        transport.drop()
        await settle()

        assert transport.closed
        assert len(recorder.payloads) == delivered
        assert len(recorder.statuses) == notified
        assert sleep.delays == []
        await manager.aclose()

    asyncio.run(scenario())


def test_disconnect_during_backoff_cancels_retry():
    async def scenario() -> None:
        recorder = Recorder()
        factory = FakeFactory(failures=[CLOSE_ABNORMAL])
        sleep = RecordingSleep(block=True)
        async with build(recorder, factory, sleep) as manager:
            await settle()
            assert manager.state is ConnectionState.RECONNECTING

            manager.disconnect()
            await settle()

            assert manager.state is ConnectionState.DISCONNECTED
            assert len(factory.urls) == 1

    asyncio.run(scenario())


def test_context_exit_disconnects():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            factory.current.push(DASHBOARD)
            await settle()

        assert manager.state is ConnectionState.DISCONNECTED
        assert factory.current.closed
        assert recorder.states[-1] is ConnectionState.DISCONNECTED

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------

def test_missing_credential_makes_connect_a_noop():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        manager = build(recorder, factory, sleep, MemoryCredentialStore())
        manager.connect()
        await settle()

        assert factory.urls == []
        assert manager.state is ConnectionState.CONNECTING
        assert recorder.statuses == []
        await manager.aclose()

    asyncio.run(scenario())


def test_malformed_frames_are_dropped():
    async def scenario() -> None:
        recorder, factory, sleep = Recorder(), FakeFactory(), RecordingSleep()
        async with build(recorder, factory, sleep) as manager:
            await settle()
            factory.current.push("{not json")
            factory.current.push('{"hosts": []}')
            await settle()
            assert manager.state is ConnectionState.CONNECTING

            factory.current.push(DASHBOARD)
            await settle()

            assert recorder.payloads == [DASHBOARD]
            assert manager.state is ConnectionState.CONNECTED

    asyncio.run(scenario())


def test_consumer_exception_does_not_break_stream():
    async def scenario() -> None:
        factory, sleep = FakeFactory(), RecordingSleep()
        seen: list[str] = []

        def flaky(payload: dict[str, Any]) -> None:
            seen.append(payload["type"])
            if payload["type"] == "dashboard":
                raise RuntimeError("render failed")

        manager = ConnectionManager(
            url=URL,
            credentials=StaticCredentialStore("tok"),
            on_message=flaky,
            transport_factory=factory,
            sleep=sleep,
        )
        async with manager:
            await settle()
            factory.current.push(DASHBOARD)
            factory.current.push({"type": "docker"})
            await settle()

            assert seen == ["dashboard", "docker"]
            assert manager.state is ConnectionState.CONNECTED

    asyncio.run(scenario())


def test_observer_exception_does_not_break_stream():
    async def scenario() -> None:
        factory, sleep = FakeFactory(), RecordingSleep()
        payloads: list[dict[str, Any]] = []

        def broken_observer(status: ConnectionStatus) -> None:
            raise RuntimeError("observer failed")

        manager = ConnectionManager(
            url=URL,
            credentials=StaticCredentialStore("tok"),
            on_message=payloads.append,
            on_status=broken_observer,
            transport_factory=factory,
            sleep=sleep,
        )
        async with manager:
            await settle()
            factory.current.push(DASHBOARD)
            factory.current.push(DASHBOARD)
            await settle()

            assert len(payloads) == 2
            assert manager.state is ConnectionState.CONNECTED

    asyncio.run(scenario())


def test_consumer_may_disconnect_from_inside_callback():
    async def scenario() -> None:
        factory, sleep = FakeFactory(), RecordingSleep()
        received: list[dict[str, Any]] = []
        holder: dict[str, ConnectionManager] = {}

        def consumer(payload: dict[str, Any]) -> None:
            received.append(payload)
            holder["manager"].disconnect()

        manager = ConnectionManager(
            url=URL,
            credentials=StaticCredentialStore("tok"),
            on_message=consumer,
            transport_factory=factory,
            sleep=sleep,
        )
        holder["manager"] = manager
        async with manager:
            await settle()
            factory.current.push(DASHBOARD)
            factory.current.push(DASHBOARD)
            await settle()

            assert len(received) == 1
            assert manager.state is ConnectionState.DISCONNECTED

    asyncio.run(scenario())


def test_from_config_builds_websocket_url():
    config = AppConfig(base_url="https://fleet.example.com")

    manager = ConnectionManager.from_config(
        config,
        credentials=StaticCredentialStore("tok"),
        on_message=lambda payload: None,
        path="/api/v1/ws/hosts/h1",
    )

    assert manager.url == "wss://fleet.example.com/api/v1/ws/hosts/h1"
    assert manager.status == ConnectionStatus(
        state=ConnectionState.CONNECTING, last_error=None, attempt=0
    )
