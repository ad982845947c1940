"""Mock companion proxy for testing."""

from __future__ import annotations

from codeoba.companion.base import (
    CompanionCommand,
    CompanionProxy,
    ConnectRequest,
    MicToggleRequest,
)


class MockCompanionProxy(CompanionProxy):
    """Records sent commands and lets tests push device requests.

    Example:
        companion = MockCompanionProxy()
        await companion.send_command(ShowStatus("Listening"))
        assert companion.commands == [ShowStatus("Listening")]
    """

    def __init__(self, *, fail_send: bool = False) -> None:
        super().__init__()
        self.commands: list[CompanionCommand] = []
        self._fail_send = fail_send

    async def send_command(self, command: CompanionCommand) -> None:
        self.commands.append(command)
        if self._fail_send:
            raise ConnectionError("Companion unreachable")

    def simulate_mic_toggle(self, device_id: str = "watch-1") -> None:
        self.notifications.publish(MicToggleRequest(device_id))

    def simulate_connect_request(self, device_id: str = "watch-1") -> None:
        self.notifications.publish(ConnectRequest(device_id))
