"""Fixed wire bytes and delays of the K-line slow-init wake-up."""

from __future__ import annotations

from dataclasses import dataclass

WAKEUP_SEQUENCE = bytes([0xFE, 0x04, 0x72, 0x8C])
INIT_SEQUENCE = bytes([0x72, 0x05, 0x00, 0xF0, 0x99])


@dataclass(frozen=True)
class HandshakeTimings:
    """Delays between handshake steps, in seconds."""

    reopen_settle: float = 0.100
    break_idle: float = 0.100
    break_assert: float = 0.070
    break_release: float = 0.150
    after_wakeup: float = 0.030
    after_init: float = 0.030
    disconnect_settle: float = 1.000

    @property
    def connect_total(self) -> float:
        """Sum of the delays of a connect that started on an open port."""
        return (
            self.reopen_settle
            + self.break_idle
            + self.break_assert
            + self.break_release
            + self.after_wakeup
            + self.after_init
        )

    def scaled(self, factor: float) -> "HandshakeTimings":
        return HandshakeTimings(
            reopen_settle=self.reopen_settle * factor,
            break_idle=self.break_idle * factor,
            break_assert=self.break_assert * factor,
            break_release=self.break_release * factor,
            after_wakeup=self.after_wakeup * factor,
            after_init=self.after_init * factor,
            disconnect_settle=self.disconnect_settle * factor,
        )


DEFAULT_TIMINGS = HandshakeTimings()
