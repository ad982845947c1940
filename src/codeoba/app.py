"""CodeobaApp: wires the realtime session, tool pipeline and companion together."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from codeoba.audio.base import AudioCaptureService
from codeoba.companion.base import (
    CompanionCommand,
    CompanionNotification,
    CompanionProxy,
    ConnectRequest,
    LoggingCompanionProxy,
    MicToggleRequest,
    ShowError,
    ShowRepoEvent,
)
from codeoba.core.broadcast import EventStream, Subscription
from codeoba.mcp.client import McpClient
from codeoba.mcp.results import McpFailure, McpResult, McpSuccess
from codeoba.models.enums import EventLogKind
from codeoba.realtime.base import (
    ConnectedEvent,
    ConnectionState,
    DisconnectedEvent,
    ErrorEvent,
    RealtimeConfig,
    RealtimeEvent,
    ToolCallEvent,
    TranscriptEvent,
)
from codeoba.realtime.client import RealtimeClient, TransportRealtimeClient
from codeoba.realtime.items import MessageItem

logger = logging.getLogger("codeoba.app")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class EventLogEntry:
    """One line of the session's event log."""

    kind: EventLogKind
    message: str
    tool_name: str | None = None
    success: bool | None = None
    is_final: bool = True
    timestamp: datetime = field(default_factory=_utcnow, compare=False)

    @classmethod
    def transcript(cls, text: str, is_final: bool) -> EventLogEntry:
        return cls(EventLogKind.TRANSCRIPT, text, is_final=is_final)

    @classmethod
    def tool_call(cls, name: str, arguments_json: str) -> EventLogEntry:
        return cls(EventLogKind.TOOL_CALL, arguments_json, tool_name=name)

    @classmethod
    def tool_result(cls, name: str, result: str, success: bool) -> EventLogEntry:
        return cls(EventLogKind.TOOL_RESULT, result, tool_name=name, success=success)

    @classmethod
    def info(cls, message: str) -> EventLogEntry:
        return cls(EventLogKind.INFO, message)

    @classmethod
    def error(cls, message: str) -> EventLogEntry:
        return cls(EventLogKind.ERROR, message)

    @classmethod
    def from_event(cls, event: RealtimeEvent) -> EventLogEntry:
        match event:
            case TranscriptEvent(text=text, is_final=is_final):
                return cls.transcript(text, is_final)
            case ToolCallEvent(name=name, arguments_json=arguments_json):
                return cls.tool_call(name, arguments_json)
            case ErrorEvent(message=message):
                return cls.error(message)
            case ConnectedEvent():
                return cls.info("Connected to Realtime API")
            case DisconnectedEvent():
                return cls.info("Disconnected from Realtime API")
        raise TypeError(f"Unsupported realtime event: {event!r}")


class CodeobaApp:
    """Coordinates a realtime voice session with the GitHub tool pipeline.

    Every realtime event is appended to :attr:`event_log` and broadcast on
    :attr:`log_updates`. Tool calls run in their own tasks so a slow tool
    (or one waiting on approval) does not hold up transcripts. Results go to
    the companion and, when the model gave a ``call_id``, back to the model
    as a ``function_call_output`` followed by ``response.create``.

    Example:
        app = CodeobaApp(realtime_client, LocalMcpClient(github))
        await app.start()
        await app.connect(RealtimeConfig(api_key=key))
        await app.send_text_message("Open github.com/octocat/hello-world")
        ...
        await app.close()
    """

    def __init__(
        self,
        realtime_client: RealtimeClient,
        mcp_client: McpClient,
        companion: CompanionProxy | None = None,
        *,
        audio_capture: AudioCaptureService | None = None,
        submit_tool_results: bool = True,
        max_log_entries: int = 1000,
    ) -> None:
        self._realtime = realtime_client
        self._mcp = mcp_client
        self._companion = companion or LoggingCompanionProxy()
        self._audio = audio_capture
        self._submit_tool_results = submit_tool_results
        self._max_log_entries = max_log_entries
        self._event_log: list[EventLogEntry] = []
        self.log_updates: EventStream[EventLogEntry] = EventStream("app.log")
        self._config: RealtimeConfig | None = None
        self._subscriptions: list[Subscription[Any]] = []
        self._scheduled_tasks: set[asyncio.Task[Any]] = set()
        self._started = False

    @property
    def realtime_client(self) -> RealtimeClient:
        return self._realtime

    @property
    def connection_state(self) -> ConnectionState:
        return self._realtime.connection_state

    @property
    def event_log(self) -> list[EventLogEntry]:
        """Snapshot of the log, oldest first."""
        return list(self._event_log)

    @property
    def is_capturing(self) -> bool:
        return self._audio is not None and self._audio.is_capturing

    # -- Lifecycle --

    async def start(self) -> None:
        """Prepare the tool client and start consuming events."""
        if self._started:
            return
        self._started = True

        try:
            await self._mcp.connect()
        except Exception as exc:
            logger.exception("MCP client failed to start")
            self._record(EventLogEntry.error(f"Tool client unavailable: {exc}"))
        if isinstance(self._realtime, TransportRealtimeClient):
            self._realtime.set_tools(self._mcp.realtime_tools())

        events = self._realtime.events.subscribe()
        self._subscriptions.append(events)
        self._track_task(self._consume_events(events), name="codeoba-events")

        notifications = self._companion.notifications.subscribe()
        self._subscriptions.append(notifications)
        self._track_task(self._consume_notifications(notifications), name="codeoba-companion")

        if self._audio is not None:
            frames = self._audio.frames.subscribe()
            self._subscriptions.append(frames)
            self._track_task(self._forward_audio(frames), name="codeoba-audio")

        logger.info("Codeoba app started")

    async def close(self) -> None:
        """Cancel background work and close every collaborator."""
        tasks = list(self._scheduled_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._scheduled_tasks.clear()

        for sub in self._subscriptions:
            sub.close()
        self._subscriptions.clear()

        closers: list[tuple[str, Any]] = [
            ("realtime client", self._realtime),
            ("MCP client", self._mcp),
            ("companion", self._companion),
        ]
        if self._audio is not None:
            closers.insert(0, ("audio capture", self._audio))
        for label, resource in closers:
            try:
                await resource.close()
            except Exception:
                logger.exception("Error closing %s", label)

        self.log_updates.close()
        self._started = False
        logger.info("Codeoba app closed")

    async def __aenter__(self) -> CodeobaApp:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Session control --

    async def connect(self, config: RealtimeConfig) -> None:
        self._config = config
        self._record(EventLogEntry.info(f"Connecting to {config.endpoint}..."))
        try:
            await self._realtime.connect(config)
        except Exception as exc:
            logger.exception("Realtime connect raised")
            self._record(EventLogEntry.error(f"Network error: {exc}"))

    async def disconnect(self) -> None:
        await self._realtime.disconnect()
        if self.is_capturing:
            await self.stop_microphone()

    async def start_microphone(self) -> bool:
        if self._audio is None:
            self._record(EventLogEntry.error("No audio capture service configured"))
            return False
        self._record(EventLogEntry.info("Enabling microphone..."))
        try:
            await self._audio.start()
        except PermissionError:
            self._record(
                EventLogEntry.error("Permission denied: Please grant microphone permission")
            )
            return False
        except Exception as exc:
            logger.exception("Microphone start failed")
            self._record(EventLogEntry.error(f"Failed to enable microphone: {exc}"))
            return False
        self._record(EventLogEntry.info("Microphone enabled"))
        return True

    async def stop_microphone(self) -> None:
        if self._audio is None:
            return
        self._record(EventLogEntry.info("Disabling microphone..."))
        await self._audio.stop()

    async def toggle_microphone(self) -> None:
        if self.is_capturing:
            await self.stop_microphone()
        else:
            await self.start_microphone()

    async def send_text_message(self, text: str) -> bool:
        """Send a typed user message and ask the model to respond."""
        self._record(EventLogEntry.info(f"Sending text message: {text}"))
        item = MessageItem.user_text(text)
        if not await self._realtime.data_send_conversation_item_create(item):
            self._record(EventLogEntry.error("Failed to send text message"))
            return False
        self._record(EventLogEntry.transcript(text, True))
        if not await self._realtime.data_send_response_create():
            self._record(EventLogEntry.error("Failed to request AI response"))
            return False
        return True

    # -- Event handling --

    def _record(self, entry: EventLogEntry) -> None:
        self._event_log.append(entry)
        overflow = len(self._event_log) - self._max_log_entries
        if overflow > 0:
            del self._event_log[:overflow]
        self.log_updates.publish(entry)

    async def _consume_events(self, events: Subscription[RealtimeEvent]) -> None:
        async for event in events:
            self._record(EventLogEntry.from_event(event))
            if isinstance(event, ToolCallEvent):
                self._track_task(self._handle_tool_call(event), name=f"tool-{event.name}")

    async def _handle_tool_call(self, event: ToolCallEvent) -> None:
        name = event.name
        try:
            result: McpResult = await self._mcp.handle_tool_call(name, event.arguments_json)
        except Exception as exc:
            logger.exception("Tool client raised for %s", name)
            result = McpFailure(f"Tool execution error: {exc}")

        command: CompanionCommand
        match result:
            case McpSuccess(summary=summary):
                self._record(EventLogEntry.tool_result(name, summary, True))
                command = ShowRepoEvent(summary)
                output = {"success": True, "result": summary}
            case McpFailure(message=message):
                self._record(EventLogEntry.tool_result(name, message, False))
                command = ShowError(message)
                output = {"success": False, "error": message}

        await self._send_companion(command)

        if not self._submit_tool_results or event.call_id is None:
            return
        if self._mcp.is_notify_only(name):
            logger.debug("Tool %s is notify-only; no output submitted", name)
            return
        if not await self._realtime.data_send_function_call_output(
            event.call_id, json.dumps(output)
        ):
            self._record(EventLogEntry.error(f"Failed to submit result for {name}"))

    async def _send_companion(self, command: CompanionCommand) -> None:
        try:
            await self._companion.send_command(command)
        except Exception:
            logger.exception("Companion command %r failed", command)

    async def _consume_notifications(
        self, notifications: Subscription[CompanionNotification]
    ) -> None:
        async for notification in notifications:
            match notification:
                case MicToggleRequest(from_device_id=device):
                    logger.info("Mic toggle requested by %s", device)
                    await self.toggle_microphone()
                case ConnectRequest(from_device_id=device):
                    logger.info("Connect requested by %s", device)
                    if self._config is None:
                        self._record(EventLogEntry.error("No realtime configuration to connect"))
                    else:
                        await self.connect(self._config)

    async def _forward_audio(self, frames: Subscription[bytes]) -> None:
        async for frame in frames:
            if self._realtime.connection_state.is_connected:
                await self._realtime.send_audio_frame(frame)

    # -- Task tracking --

    def _track_task(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._scheduled_tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._scheduled_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Unhandled exception in task %s: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )
