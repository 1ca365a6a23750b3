import asyncio
import threading
import time
import unittest
from unittest import mock

import serial

from ecuwake.cancellation import CancelToken
from ecuwake.config import PortConfiguration
from ecuwake.errors import InvalidStateError, LinkIOError, LinkTimeoutError
from ecuwake.handshake import (
    DEFAULT_TIMINGS,
    INIT_SEQUENCE,
    NOTHING_TO_DISCONNECT,
    WAKEUP_SEQUENCE,
    ConnectionSequencer,
    OutcomeKind,
    SequencerState,
)
from ecuwake.transport import LinkHandle, LinkState
from tests.fakes import RecordingToken, SerialFactory

HANDSHAKE_DELAYS = [0.1, 0.07, 0.15, 0.03, 0.03]


class SequencerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.factory = SerialFactory()
        patcher = mock.patch("ecuwake.transport.link.serial.Serial", self.factory)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.link = LinkHandle(PortConfiguration("COM4"))
        self.blocking_sleep = mock.Mock()
        self.sequencer = ConnectionSequencer(blocking_sleep=self.blocking_sleep)


class ConnectTests(SequencerTestCase):
    async def test_connect_sends_break_pulse_then_exact_bytes(self) -> None:
        token = RecordingToken()

        outcome = await self.sequencer.connect(self.link, token)

        self.assertEqual(outcome.kind, OutcomeKind.SUCCEEDED)
        self.assertEqual(self.sequencer.state, SequencerState.CONNECTED)
        self.assertEqual(self.link.state, LinkState.OPEN)
        self.assertEqual(
            self.factory.events,
            [
                ("open", "COM4"),
                ("break", False),
                ("break", True),
                ("break", False),
                ("write", bytes([0xFE, 0x04, 0x72, 0x8C])),
                ("write", bytes([0x72, 0x05, 0x00, 0xF0, 0x99])),
                ("discard_output",),
                ("discard_input",),
            ],
        )
        self.assertEqual(self.factory.writes, [WAKEUP_SEQUENCE, INIT_SEQUENCE])
        self.assertEqual(token.sleeps, HANDSHAKE_DELAYS)

    async def test_open_handle_is_closed_and_settled_before_handshake(self) -> None:
        self.link.open()
        token = RecordingToken()

        outcome = await self.sequencer.connect(self.link, token)

        self.assertTrue(outcome.ok)
        self.assertEqual(self.factory.events[:3], [("open", "COM4"), ("close",), ("open", "COM4")])
        self.assertEqual(token.sleeps, [0.1] + HANDSHAKE_DELAYS)
        self.assertAlmostEqual(sum(token.sleeps), 0.48)
        self.assertAlmostEqual(DEFAULT_TIMINGS.connect_total, 0.48)

    async def test_cancel_at_any_delay_closes_link(self) -> None:
        for call in range(1, 7):
            with self.subTest(delay=call):
                self.factory.events.clear()
                self.link.open()
                token = RecordingToken(fire_on_call=call)

                outcome = await self.sequencer.connect(self.link, token)

                self.assertEqual(outcome.kind, OutcomeKind.CANCELLED)
                self.assertEqual(self.link.state, LinkState.CLOSED)
                self.assertEqual(self.sequencer.state, SequencerState.IDLE)
                self.assertFalse(self.sequencer.busy)

    async def test_cancel_during_break_assert_sends_no_bytes(self) -> None:
        token = RecordingToken(fire_on_call=2)

        outcome = await self.sequencer.connect(self.link, token)

        self.assertTrue(outcome.is_cancelled)
        self.assertEqual(token.sleeps, [0.1, 0.07])
        self.assertEqual(self.factory.writes, [])
        self.assertEqual(self.link.state, LinkState.CLOSED)

    async def test_open_failure_reports_failed(self) -> None:
        self.factory.open_error = serial.SerialException("Access is denied")
        token = RecordingToken()

        outcome = await self.sequencer.connect(self.link, token)

        self.assertTrue(outcome.is_failed)
        self.assertIsInstance(outcome.error, LinkIOError)
        self.assertIn("Access is denied", outcome.reason)
        self.assertEqual(token.sleeps, [])
        self.assertEqual(self.sequencer.state, SequencerState.IDLE)

    async def test_write_failure_force_closes_link(self) -> None:
        self.factory.write_error = serial.SerialTimeoutException("Write timeout")

        outcome = await self.sequencer.connect(self.link, RecordingToken())

        self.assertTrue(outcome.is_failed)
        self.assertIsInstance(outcome.error, LinkTimeoutError)
        self.assertEqual(self.link.state, LinkState.CLOSED)
        self.assertEqual(self.factory.events[-1], ("close",))

    async def test_fired_token_is_refused_without_io(self) -> None:
        token = CancelToken()
        token.cancel()

        outcome = await self.sequencer.connect(self.link, token)

        self.assertTrue(outcome.is_failed)
        self.assertIsInstance(outcome.error, InvalidStateError)
        self.assertEqual(self.factory.events, [])

    async def test_second_operation_while_in_flight_is_refused(self) -> None:
        token = CancelToken()
        first = asyncio.ensure_future(self.sequencer.connect(self.link, token))
        await asyncio.sleep(0.02)

        second = await self.sequencer.connect(self.link, CancelToken())
        third = await self.sequencer.disconnect(self.link, CancelToken())
        token.cancel()
        outcome = await first

        self.assertIsInstance(second.error, InvalidStateError)
        self.assertIsInstance(third.error, InvalidStateError)
        self.assertTrue(outcome.is_cancelled)
        self.assertEqual(len(self.factory.created), 1)

    async def test_thread_cancel_during_break_assert(self) -> None:
        token = CancelToken()
        timer = threading.Timer(0.135, token.cancel)
        timer.start()
        self.addCleanup(timer.cancel)

        outcome = await self.sequencer.connect(self.link, token)

        self.assertTrue(outcome.is_cancelled)
        self.assertEqual(self.factory.writes, [])
        self.assertEqual(self.link.state, LinkState.CLOSED)

    async def test_connect_takes_at_least_the_fixed_delays(self) -> None:
        self.link.open()
        started = time.monotonic()

        outcome = await self.sequencer.connect(self.link, CancelToken())

        self.assertTrue(outcome.ok)
        self.assertGreaterEqual(time.monotonic() - started, 0.47)

    async def test_task_cancellation_cleans_up_and_propagates(self) -> None:
        task = asyncio.ensure_future(self.sequencer.connect(self.link, CancelToken()))
        await asyncio.sleep(0.05)
        task.cancel()

        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(self.link.state, LinkState.CLOSED)
        self.assertFalse(self.sequencer.busy)


class DisconnectTests(SequencerTestCase):
    async def test_disconnect_on_closed_link_does_no_io(self) -> None:
        outcome = await self.sequencer.disconnect(self.link, RecordingToken())

        self.assertTrue(outcome.is_failed)
        self.assertEqual(outcome.reason, NOTHING_TO_DISCONNECT)
        self.assertEqual(self.factory.events, [])

    async def test_connect_then_disconnect(self) -> None:
        connected = await self.sequencer.connect(self.link, RecordingToken())
        token = RecordingToken()
        self.factory.events.clear()

        disconnected = await self.sequencer.disconnect(self.link, token)

        self.assertTrue(connected.ok)
        self.assertTrue(disconnected.ok)
        self.assertEqual(self.link.state, LinkState.CLOSED)
        self.assertEqual(self.sequencer.state, SequencerState.IDLE)
        self.assertEqual(
            self.factory.events,
            [("discard_input",), ("discard_output",), ("close",)],
        )
        self.assertEqual(token.sleeps, [1.0])

    async def test_cancel_during_settle_keeps_port_closed(self) -> None:
        self.link.open()

        outcome = await self.sequencer.disconnect(self.link, RecordingToken(fire_on_call=1))

        self.assertTrue(outcome.is_cancelled)
        self.assertEqual(self.link.state, LinkState.CLOSED)

    async def test_disconnect_io_failure_reports_failed(self) -> None:
        self.link.open()
        ser = self.factory.created[0]

        with mock.patch.object(
            ser, "reset_input_buffer", side_effect=serial.SerialException("gone")
        ):
            outcome = await self.sequencer.disconnect(self.link, RecordingToken())

        self.assertTrue(outcome.is_failed)
        self.assertIsInstance(outcome.error, LinkIOError)
        self.assertEqual(self.link.state, LinkState.CLOSED)

    async def test_failed_close_is_retried_during_cleanup(self) -> None:
        self.link.open()
        ser = self.factory.created[0]
        ser.close_errors.append(serial.SerialException("transient"))

        outcome = await self.sequencer.disconnect(self.link, RecordingToken())
        self.link.dispose()

        self.assertTrue(outcome.is_failed)
        self.assertIn("transient", outcome.reason)
        self.assertFalse(ser.is_open)
        self.assertEqual(ser.close_calls, 2)


class BlockingDisconnectTests(SequencerTestCase):
    def test_blocking_disconnect_sleeps_on_calling_thread(self) -> None:
        self.link.open()

        outcome = self.sequencer.disconnect_blocking(self.link)

        self.assertTrue(outcome.ok)
        self.blocking_sleep.assert_called_once_with(1.0)
        self.assertEqual(self.link.state, LinkState.CLOSED)

    def test_blocking_disconnect_on_closed_link(self) -> None:
        outcome = self.sequencer.disconnect_blocking(self.link)

        self.assertTrue(outcome.is_failed)
        self.blocking_sleep.assert_not_called()
        self.assertEqual(self.factory.events, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
