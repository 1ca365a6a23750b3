"""K-line slow-init handshake sequencing."""

from .constants import DEFAULT_TIMINGS, INIT_SEQUENCE, WAKEUP_SEQUENCE, HandshakeTimings
from .outcome import Outcome, OutcomeKind
from .sequencer import NOTHING_TO_DISCONNECT, ConnectionSequencer, SequencerState

__all__ = [
    "ConnectionSequencer",
    "DEFAULT_TIMINGS",
    "HandshakeTimings",
    "INIT_SEQUENCE",
    "NOTHING_TO_DISCONNECT",
    "Outcome",
    "OutcomeKind",
    "SequencerState",
    "WAKEUP_SEQUENCE",
]
