"""Mock audio capture for testing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from codeoba.audio.base import AudioCaptureService


@dataclass
class MockAudioCall:
    """Record of a call made to MockAudioCaptureService."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


class MockAudioCaptureService(AudioCaptureService):
    """Capture service driven by the test.

    Example:
        capture = MockAudioCaptureService()
        await capture.start()
        capture.simulate_frame(b"\\x00\\x01" * 160)
        assert capture.calls[0].method == "start"
    """

    def __init__(self, *, sample_rate: int = 24000, fail_start: bool = False) -> None:
        super().__init__(sample_rate=sample_rate)
        self.calls: list[MockAudioCall] = []
        self._capturing = False
        self._fail_start = fail_start

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    async def start(self) -> None:
        self.calls.append(MockAudioCall("start"))
        if self._fail_start:
            raise RuntimeError("Microphone unavailable")
        self._capturing = True

    async def stop(self) -> None:
        self.calls.append(MockAudioCall("stop"))
        self._capturing = False

    def simulate_frame(self, frame: bytes) -> int:
        """Publish a frame; frames produced while stopped are discarded."""
        if not self._capturing:
            return 0
        return self.frames.publish(frame)
