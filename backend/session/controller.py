"""
Live session controller.

Responsibilities:
- Own the SessionState machine and the single open Transport
- Drain transport events from one queue (the only mutator of session state
  besides direct caller calls)
- Wire transcription, answer assembly, history, heartbeat and reconnection
- Convert every failure into a SessionResult (nothing raises across the
  public API)

Non-responsibilities:
- No vendor wire formats (transports)
- No UI transport (the sink and gateway)
- No timer internals (HeartbeatMonitor / ReconnectionManager)

State machine:
    IDLE         --initialize ok-->          CONNECTED
    IDLE         --initialize fail-->        ERROR
    CONNECTED    --drop / error (non-auth)-> RECONNECTING
    CONNECTED    --auth error-->             ERROR
    CONNECTED    --close()-->                CLOSED
    RECONNECTING --retry ok-->               CONNECTED
    RECONNECTING --auth failure on retry-->  ERROR
    RECONNECTING --retries exhausted-->      CLOSED
    ERROR/CLOSED --initialize()-->           INITIALIZING --> CONNECTED | ERROR

Generations:
- Every connection attempt gets a new generation number. Transport callbacks
  are bound to the generation they were opened with; events carrying an
  older generation are dropped. close() bumps the generation first, so
  nothing scheduled before it can act afterwards.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

from adapters.llm.prompts import verbosity_directive, verbosity_reinforcement
from adapters.transport.base import (
    AudioChunk,
    Directive,
    ImageFrame,
    KeepAlive,
    Payload,
    ServerMessage,
    TextInput,
    Transport,
    UnsupportedPayloadError,
)
from adapters.transport.factory import build_transport
from audio.pcm import analyze_pcm16, coerce_bytes
from constants import (
    AUDIO_DIAGNOSTIC_EVERY_N_CHUNKS,
    HEARTBEAT_INTERVAL_MS,
    RECONNECT_DELAY_MS,
    RECONNECT_MAX_ATTEMPTS,
)
from context.conversation import ConversationHistory
from context.replay import build_replay_message
from observability.logger import EventLogger
from orchestrator.assembler import MessageAssembler
from orchestrator.events import (
    Event,
    HeartbeatFailed,
    ServerMessageReceived,
    TransportClosed,
    TransportFailed,
    TransportOpened,
)
from orchestrator.heartbeat import HeartbeatMonitor
from orchestrator.reconnection import ReconnectionManager
from orchestrator.transcription import TranscriptionAggregator
from services.settings_store import SettingsStore
from session.errors import (
    AuthError,
    InitInProgressError,
    InvalidInputError,
    NotConnectedError,
    ReplayError,
    SessionError,
    TransportError,
    classify_failure,
)
from session.session_config import ProviderKind, SessionConfig, Verbosity
from session.session_state import SessionState
from session.ui_sink import STATUS, UiSink


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# ---------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class SessionResult:
    """
    Outcome of a public SessionController call.

    state:
        Session state after the call returned.
    error:
        None on success.
    """
    ok: bool
    state: SessionState
    error: SessionError | None = None

    @property
    def reason(self) -> str | None:
        return self.error.reason if self.error is not None else None


# ---------------------------------------------------------------------
# Callback binding
# ---------------------------------------------------------------------

class _QueuedCallbacks:
    """
    TransportCallbacks that only enqueue.

    Bound to one generation; never touches controller state directly.
    """

    def __init__(self, queue: asyncio.Queue[Event], generation: int) -> None:
        self._queue = queue
        self._generation = generation

    def on_open(self) -> None:
        self._queue.put_nowait(TransportOpened(generation=self._generation))

    def on_message(self, message: ServerMessage) -> None:
        self._queue.put_nowait(
            ServerMessageReceived(generation=self._generation, message=message)
        )

    def on_error(self, message: str) -> None:
        self._queue.put_nowait(
            TransportFailed(generation=self._generation, message=message)
        )

    def on_close(self, reason: str | None) -> None:
        self._queue.put_nowait(
            TransportClosed(generation=self._generation, reason=reason)
        )


# ---------------------------------------------------------------------
# SessionController
# ---------------------------------------------------------------------

class SessionController:
    """
    One controller == one live session per process.

    All collaborators are constructed here once; the transport is rebuilt
    for every connection attempt through transport_factory.
    """

    def __init__(
        self,
        *,
        sink: UiSink,
        transport_factory: Callable[[ProviderKind], Transport] = build_transport,
        settings_store: SettingsStore | None = None,
        heartbeat_interval_ms: int = HEARTBEAT_INTERVAL_MS,
        reconnect_delay_ms: int = RECONNECT_DELAY_MS,
        max_reconnect_attempts: int = RECONNECT_MAX_ATTEMPTS,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._sink = sink
        self._transport_factory = transport_factory
        self._settings_store = settings_store
        self._clock_ms = clock_ms

        self._session_id = _new_session_id()
        self._log = EventLogger("session", session_id=self._session_id)

        self._state = SessionState.IDLE
        self._transport: Transport | None = None
        self._last_config: SessionConfig | None = None
        self._generation = 0
        self._busy = False
        self._audio_chunks = 0

        self._events: asyncio.Queue[Event] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None

        self._history = ConversationHistory()
        self._transcription = TranscriptionAggregator(emit=self._emit)
        self._assembler = MessageAssembler(
            emit=self._emit,
            transcription=self._transcription,
            history=self._history,
        )
        self._heartbeat = HeartbeatMonitor(
            send_keepalive=self._send_keepalive,
            on_failure=self._on_heartbeat_failure,
            interval_ms=heartbeat_interval_ms,
            clock_ms=clock_ms,
        )
        self._reconnection = ReconnectionManager(
            connect=self._reconnect_once,
            on_reconnected=self._replay_context,
            on_exhausted=self._on_reconnect_exhausted,
            max_attempts=max_reconnect_attempts,
            delay_ms=reconnect_delay_ms,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def history(self) -> ConversationHistory:
        return self._history

    @property
    def reconnection(self) -> ReconnectionManager:
        return self._reconnection

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def config(self) -> SessionConfig | None:
        """Config staged for the next connection attempt."""
        return self._last_config

    # ------------------------------------------------------------------
    # Public API: lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, config: SessionConfig) -> SessionResult:
        """
        Open a fresh connection with config.

        Never retries; a failure leaves the session in ERROR.
        """
        if self._busy:
            error = InitInProgressError("initialization already in progress")
            self._log.log("initialize_rejected", reason=error.reason)
            return SessionResult(ok=False, state=self._state, error=error)

        # A caller-driven connect supersedes any automatic one.
        self._reconnection.cancel()
        self._log.log("initialize_requested", config=config.redacted())
        return await self._connect(config, reconnecting=False)

    async def close(self) -> SessionResult:
        """
        Deliberate shutdown.

        Timers are stopped before the first await, so nothing they scheduled
        can run after this call starts. History is kept.
        """
        self._generation += 1
        self._heartbeat.stop()
        self._reconnection.cancel()
        self._transcription.reset()
        self._assembler.reset()
        self._set_state(SessionState.CLOSED)

        await self._teardown_transport()
        self._emit(STATUS, {"status": "closed"})
        self._log.log("session_closed")
        return SessionResult(ok=True, state=self._state)

    def start_new_session(self) -> str:
        """Begin a new logical session (fresh id, empty history)."""
        self._session_id = _new_session_id()
        self._log.bind(session_id=self._session_id)
        self._history.clear()
        self._transcription.reset()
        self._assembler.reset()
        self._log.log("session_started")
        return self._session_id

    def session_data(self) -> dict[str, Any]:
        return {
            "sessionId": self._session_id,
            "history": [t.to_dict() for t in self._history.snapshot()],
        }

    def stored_config(self) -> dict[str, Any]:
        if self._settings_store is None:
            return {}
        return self._settings_store.load()

    async def flush(self) -> None:
        """Wait until every queued transport event has been handled."""
        if self._pump_task is None or self._pump_task.done():
            return
        await self._events.join()

    # ------------------------------------------------------------------
    # Public API: sends
    # ------------------------------------------------------------------

    async def send_text(self, text: str) -> SessionResult:
        """
        Send typed user input.

        Typed input opens its own turn and is preceded by the reply-length
        reinforcement, matching what the voice path's system prompt asks for.
        """
        if not self._connected():
            return self._not_connected("send_text")

        cleaned = (text or "").strip()
        if not cleaned:
            return self._rejected(InvalidInputError("text is empty"))

        assert self._last_config is not None
        self._transcription.start_typed_turn(cleaned, self._clock_ms())
        return await self._send(
            Directive(verbosity_reinforcement(self._last_config.verbosity)),
            TextInput(cleaned),
        )

    async def send_audio(self, chunk: bytes | str) -> SessionResult:
        """Forward one gated PCM16 chunk verbatim (bytes or base64)."""
        if not self._connected():
            return self._not_connected("send_audio")

        try:
            data = coerce_bytes(chunk)
        except ValueError as e:
            return self._rejected(InvalidInputError(str(e)))

        self._audio_chunks += 1
        if self._audio_chunks % AUDIO_DIAGNOSTIC_EVERY_N_CHUNKS == 0:
            self._log.log(
                "audio_levels",
                chunks=self._audio_chunks,
                **analyze_pcm16(data).to_dict(),
            )

        return await self._send(AudioChunk(data))

    async def send_image(self, data: bytes | str) -> SessionResult:
        """Best-effort screenshot (JPEG bytes or base64)."""
        if not self._connected():
            return self._not_connected("send_image")

        try:
            image = coerce_bytes(data)
        except ValueError as e:
            return self._rejected(InvalidInputError(str(e)))

        return await self._send(ImageFrame(image))

    async def set_verbosity(self, level: Verbosity | str) -> SessionResult:
        """
        Stage a new reply length for future connections and, when connected,
        tell the backend in-band. The visible transcript is not touched.
        """
        try:
            verbosity = Verbosity(level)
        except ValueError:
            return self._rejected(InvalidInputError(f"unknown verbosity: {level!r}"))

        if self._last_config is not None:
            self._last_config = self._last_config.with_verbosity(verbosity)
        self._log.log("verbosity_staged", verbosity=verbosity.value)

        if not self._connected():
            return SessionResult(ok=True, state=self._state)

        return await self._send(Directive(verbosity_directive(verbosity)))

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def _connect(self, config: SessionConfig, *, reconnecting: bool) -> SessionResult:
        """
        One connection attempt.

        reconnecting:
            True when driven by ReconnectionManager. State stays RECONNECTING
            on failure and no per-attempt status is emitted.
        """
        self._busy = True
        try:
            if not reconnecting:
                self._set_state(SessionState.INITIALIZING)
                self._emit(STATUS, {"status": "initializing"})

            # Claim the generation before the first await so a close() that
            # lands during teardown or open() supersedes this attempt.
            self._heartbeat.stop()
            self._generation += 1
            generation = self._generation

            await self._teardown_transport()
            if generation != self._generation:
                return self._superseded(generation)

            self._ensure_pump()
            self._last_config = config

            transport = self._transport_factory(config.provider)
            try:
                await transport.open(config, _QueuedCallbacks(self._events, generation))
            except asyncio.CancelledError:
                await self._close_transport(transport)
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                await self._close_transport(transport)
                if generation != self._generation:
                    return self._superseded(generation)
                return self._connect_failed(classify_failure(str(e)), reconnecting=reconnecting)

            if generation != self._generation:
                # close() or another initialize() won the race
                await self._close_transport(transport)
                return self._superseded(generation)

            self._transport = transport
            self._set_state(SessionState.CONNECTED)
            self._reconnection.reset()
            self._heartbeat.start()
            self._emit(STATUS, {"status": "connected"})
            self._persist_settings(config)
            return SessionResult(ok=True, state=self._state)
        finally:
            self._busy = False

    def _connect_failed(self, error: SessionError, *, reconnecting: bool) -> SessionResult:
        self._log.log(
            "connect_failed",
            error=error.reason,
            fatal=error.fatal,
            reconnecting=reconnecting,
        )
        if not reconnecting:
            self._set_state(SessionState.ERROR)
            self._emit(STATUS, {"status": "error", "error": error.reason})
        return SessionResult(ok=False, state=self._state, error=error)

    def _superseded(self, generation: int) -> SessionResult:
        self._log.log("connect_superseded", generation=generation, current=self._generation)
        return SessionResult(
            ok=False,
            state=self._state,
            error=TransportError("connection attempt superseded"),
        )

    async def _teardown_transport(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is not None:
            await self._close_transport(transport)

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log.log("transport_close_failed", error=repr(e))

    def _persist_settings(self, config: SessionConfig) -> None:
        if self._settings_store is None:
            return
        try:
            self._settings_store.save(config.to_settings())
        except OSError as e:
            self._log.log("settings_persist_failed", error=repr(e))

    # ------------------------------------------------------------------
    # Event pump
    # ------------------------------------------------------------------

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._handle(event)
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log.log(
                    "event_handler_failed",
                    event=event.type.value,
                    error=repr(e),
                )
            finally:
                self._events.task_done()

    async def _handle(self, event: Event) -> None:
        if event.generation != self._generation:
            self._log.log(
                "stale_event_ignored",
                event=event.type.value,
                generation=event.generation,
                current=self._generation,
            )
            return

        # Any inbound transport event counts as liveness.
        self._heartbeat.touch()

        if isinstance(event, TransportOpened):
            self._log.log("transport_open_confirmed", generation=event.generation)
            return

        if isinstance(event, ServerMessageReceived):
            self._on_server_message(event.message)
            return

        if isinstance(event, TransportFailed):
            await self._on_transport_failure(event.message)
            return

        if isinstance(event, TransportClosed):
            await self._on_transport_failure(event.reason or "connection closed")
            return

        if isinstance(event, HeartbeatFailed):
            await self._on_transport_failure(event.message)
            return

    def _on_server_message(self, message: ServerMessage) -> None:
        if message.input_transcription:
            self._transcription.on_fragment(message.input_transcription, self._clock_ms())

        for fragment in message.answer_fragments:
            self._assembler.on_fragment(fragment)

        # generationComplete closes the turn; a bare turnComplete only does so
        # when an answer is still open (interrupted generation).
        if message.generation_complete or (
            message.turn_complete and self._assembler.has_pending
        ):
            self._assembler.on_turn_complete()

    async def _on_transport_failure(self, message: str) -> None:
        error = classify_failure(message)

        if isinstance(error, AuthError):
            await self._enter_error(error)
            return

        if self._state is not SessionState.CONNECTED:
            self._log.log("transport_failure_ignored", error=error.reason, state=self._state.value)
            return

        self._log.log("connection_lost", error=error.reason)
        self._generation += 1
        self._heartbeat.stop()
        # A run may still be replaying context on the transport that just died.
        self._reconnection.cancel()
        self._set_state(SessionState.RECONNECTING)
        await self._teardown_transport()
        self._reconnection.start()

    async def _enter_error(self, error: SessionError) -> None:
        """Terminal failure: no reconnection, UI told verbatim."""
        self._generation += 1
        self._heartbeat.stop()
        self._reconnection.cancel()
        self._transcription.reset()
        self._assembler.reset()
        self._set_state(SessionState.ERROR)
        await self._teardown_transport()
        self._emit(STATUS, {"status": "error", "error": error.reason})

    # ------------------------------------------------------------------
    # Heartbeat hooks
    # ------------------------------------------------------------------

    async def _send_keepalive(self) -> None:
        transport = self._transport
        if transport is None:
            raise ConnectionError("no active transport")
        await transport.send(KeepAlive())

    def _on_heartbeat_failure(self, message: str) -> None:
        self._events.put_nowait(
            HeartbeatFailed(generation=self._generation, message=message)
        )

    # ------------------------------------------------------------------
    # Reconnection hooks
    # ------------------------------------------------------------------

    async def _reconnect_once(self) -> SessionResult:
        if self._last_config is None:
            # Nothing to reconnect with; let the run exhaust into CLOSED.
            return self._rejected(NotConnectedError("no configuration to reconnect with"))
        result = await self._connect(self._last_config, reconnecting=True)
        if not result.ok and result.error is not None and result.error.fatal:
            await self._enter_error(result.error)
        return result

    async def _replay_context(self) -> None:
        """Send the prior questions once through the fresh transport."""
        message = build_replay_message(self._history)
        if message is None:
            return

        transport = self._transport
        if transport is None:
            self._log.log("replay_failed", error=ReplayError("no active transport").reason)
            return

        try:
            await transport.send(TextInput(message))
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log.log("replay_failed", error=ReplayError(repr(e)).reason)
            return

        self._log.log("context_replayed", turns=len(self._history))

    async def _on_reconnect_exhausted(self) -> None:
        self._generation += 1
        self._heartbeat.stop()
        self._transcription.reset()
        self._assembler.reset()
        self._set_state(SessionState.CLOSED)
        await self._teardown_transport()
        self._emit(STATUS, {"status": "closed"})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _connected(self) -> bool:
        return self._state is SessionState.CONNECTED and self._transport is not None

    async def _send(self, *payloads: Payload) -> SessionResult:
        transport = self._transport
        assert transport is not None
        try:
            for payload in payloads:
                await transport.send(payload)
        except UnsupportedPayloadError as e:
            return self._rejected(InvalidInputError(str(e)))
        except Exception as e:  # pylint: disable=broad-exception-caught
            error = TransportError(f"send failed: {e!r}")
            self._log.log("send_failed", error=error.reason)
            return SessionResult(ok=False, state=self._state, error=error)
        return SessionResult(ok=True, state=self._state)

    def _not_connected(self, operation: str) -> SessionResult:
        return self._rejected(NotConnectedError(f"{operation}: not connected"))

    def _rejected(self, error: SessionError) -> SessionResult:
        self._log.log("request_rejected", error=error.reason, error_type=type(error).__name__)
        return SessionResult(ok=False, state=self._state, error=error)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._log.log("state_changed", prev=self._state.value, next=state.value)
        self._state = state

    def _emit(self, channel: str, payload: dict[str, Any]) -> None:
        try:
            self._sink.emit(channel, payload)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log.log("sink_emit_failed", channel=channel, error=repr(e))
