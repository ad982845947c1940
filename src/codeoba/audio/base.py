"""Audio capture contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from codeoba.core.broadcast import EventStream


class AudioCaptureService(ABC):
    """Produces microphone audio as PCM16 mono frames.

    Frames are published on :attr:`frames`; the app forwards them to the
    realtime session while it is connected. Capture, resampling and device
    routing are left to implementations.
    """

    def __init__(self, *, sample_rate: int = 24000, max_queue_size: int = 256) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.frames: EventStream[bytes] = EventStream("audio-capture", max_queue_size)

    @property
    @abstractmethod
    def is_capturing(self) -> bool: ...

    @abstractmethod
    async def start(self) -> None:
        """Begin publishing frames. Calling it while capturing is a no-op."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop publishing frames."""
        ...

    async def close(self) -> None:
        await self.stop()
        self.frames.close()
