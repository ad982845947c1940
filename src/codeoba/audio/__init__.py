"""Microphone capture contract and test double."""

from codeoba.audio.base import AudioCaptureService
from codeoba.audio.mock import MockAudioCaptureService

__all__ = ["AudioCaptureService", "MockAudioCaptureService"]
