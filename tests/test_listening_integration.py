"""
Integration tests for the listening subsystem.

Tests the capture loop, listening mode transitions and half-duplex speech
coordination against mock audio collaborators.
"""

import asyncio
import unittest

from cosmo_nav.core.clock import ManualClock
from cosmo_nav.core.errors import PermissionDenied, RecordingConflict, TranscriptionFailure
from cosmo_nav.core.state_manager import ListeningMode, StateManager
from cosmo_nav.hardware.mock_hardware import MockAudioRecorder, MockSpeechOutput, MockTranscriber
from cosmo_nav.speech.capture_loop import AudioCaptureLoop
from cosmo_nav.speech.listening_mode import ListeningModeController
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator

CLIP = 0.01


async def wait_until(predicate, timeout=1.0):
    """Poll until predicate() is true or the timeout passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.005)
    return True


class TestAudioCaptureLoop(unittest.IsolatedAsyncioTestCase):
    """Test clip cycling and error policies."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.recorder = MockAudioRecorder()
        self.transcriber = MockTranscriber()
        self.transcripts = []
        self.errors = []

        async def on_transcript(text):
            self.transcripts.append(text)

        async def on_error(error):
            self.errors.append(error)

        self.loop = AudioCaptureLoop(
            self.recorder, self.transcriber, on_transcript, on_error,
            clip_duration_sec=CLIP, conflict_backoff_sec=0.005, error_backoff_sec=0.005
        )

    async def asyncTearDown(self):
        await self.loop.shutdown()

    async def test_delivers_transcripts(self):
        """Test that clips are transcribed and handed on."""
        self.transcriber.responses = ["hey cosmo", "", "coffee"]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: len(self.transcripts) == 2))
        self.assertEqual(self.transcripts, ["hey cosmo", "coffee"])

    async def test_single_recording_open(self):
        """Test that at most one recording is open at a time."""
        self.loop.start()
        self.assertTrue(await wait_until(lambda: self.loop.cycles >= 5))
        await self.loop.stop()

        self.assertEqual(self.recorder.max_open, 1)
        self.assertEqual(self.recorder.open_count, 0)
        self.assertFalse(self.loop.is_running)

    async def test_recording_conflict_skips_cycle(self):
        """Test that a conflict is retried silently."""
        self.recorder.failures = [RecordingConflict("busy"), RecordingConflict("busy")]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: self.loop.cycles >= 1))
        self.assertGreaterEqual(self.recorder.start_calls, 3)
        self.assertEqual(self.errors, [])

    async def test_permission_denied_is_fatal(self):
        """Test that a refused microphone stops the loop."""
        self.recorder.failures = [PermissionDenied("microphone")]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: not self.loop.is_running))
        self.assertTrue(await wait_until(lambda: len(self.errors) == 1))
        self.assertIsInstance(self.errors[0], PermissionDenied)
        self.assertEqual(self.recorder.start_calls, 1)

    async def test_error_handler_may_stop_capture(self):
        """Test that the error handler can stop the loop that failed."""
        async def on_error(error):
            self.errors.append(error)
            await self.loop.shutdown()

        self.loop.on_error = on_error
        self.recorder.failures = [PermissionDenied("microphone")]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: len(self.errors) == 1))
        self.assertFalse(self.loop.is_running)

    async def test_cancelled_stop_propagates(self):
        """Test that cancelling a caller of stop() cancels the caller only."""
        self.recorder.start_delay = 0.05
        self.loop.start()
        await asyncio.sleep(0)

        stopper = asyncio.create_task(self.loop.stop())
        await asyncio.sleep(0.01)
        stopper.cancel()

        with self.assertRaises(asyncio.CancelledError):
            await stopper
        self.assertTrue(await wait_until(lambda: not self.loop.is_running))
        self.assertEqual(self.recorder.start_calls, 1)
        self.assertEqual(self.recorder.open_count, 0)

    async def test_other_errors_back_off_and_continue(self):
        """Test that an unexpected cycle error is not fatal."""
        self.recorder.failures = [RuntimeError("device hiccup")]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: self.loop.cycles >= 1))
        self.assertTrue(self.loop.is_running)

    async def test_transcription_failure_is_contained(self):
        """Test that a failed transcription does not stop capture."""
        self.transcriber.responses = [TranscriptionFailure("bad clip"), "coffee"]
        self.loop.start()

        self.assertTrue(await wait_until(lambda: self.transcripts == ["coffee"]))
        self.assertTrue(self.loop.is_running)

    async def test_shutdown_discards_in_flight_transcripts(self):
        """Test that transcripts finishing after shutdown are dropped."""
        self.transcriber.responses = ["late words"]
        self.transcriber.delay = 0.05
        self.loop.start()
        self.assertTrue(await wait_until(lambda: len(self.transcriber.calls) >= 1))

        await self.loop.shutdown()
        await asyncio.sleep(0.1)
        self.assertEqual(self.transcripts, [])

    async def test_stop_keeps_in_flight_transcripts(self):
        """Test that a temporary stop still delivers pending transcripts."""
        self.transcriber.responses = ["still here"]
        self.transcriber.delay = 0.05
        self.loop.start()
        self.assertTrue(await wait_until(lambda: len(self.transcriber.calls) >= 1))

        await self.loop.stop()
        self.assertTrue(await wait_until(lambda: self.transcripts == ["still here"]))


class TestListeningModes(unittest.IsolatedAsyncioTestCase):
    """Test listening mode transitions."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.clock = ManualClock()
        self.state = StateManager()
        self.recorder = MockAudioRecorder()

        async def on_transcript(text):
            pass

        self.capture = AudioCaptureLoop(
            self.recorder, MockTranscriber(), on_transcript, clip_duration_sec=CLIP
        )
        self.listening = ListeningModeController(
            self.state, self.capture, active_window_sec=30.0, clock=self.clock
        )

    async def asyncTearDown(self):
        await self.listening.stop()

    async def test_starts_idle(self):
        """Test the initial mode."""
        self.assertEqual(self.listening.mode, ListeningMode.IDLE)
        self.assertTrue(self.listening.requires_wake_phrase)
        self.assertFalse(self.listening.is_listening)

    async def test_enter_passive(self):
        """Test passive listening."""
        await self.listening.enter_passive()

        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)
        self.assertTrue(self.listening.requires_wake_phrase)
        self.assertTrue(self.listening.is_listening)

    async def test_active_window_expires(self):
        """Test that active mode reverts to passive at expiry."""
        await self.listening.enter_passive()
        await self.listening.enter_active()

        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertFalse(self.listening.requires_wake_phrase)
        self.assertEqual(self.state.listening.active_mode_expiry, self.clock() + 30.0)

        self.clock.advance(29.0)
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)

        self.clock.advance(1.0)
        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)
        self.assertIsNone(self.state.listening.active_mode_expiry)

    async def test_end_active(self):
        """Test explicit return to passive."""
        await self.listening.enter_active()
        self.listening.end_active()

        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)
        self.assertIsNone(self.state.listening.active_mode_expiry)

    async def test_suspend_and_resume_restores_mode(self):
        """Test that resume restores the mode held before suspension."""
        await self.listening.enter_active()
        await self.listening.suspend()

        self.assertEqual(self.listening.mode, ListeningMode.SUSPENDED)
        self.assertFalse(self.listening.is_listening)
        self.assertEqual(self.recorder.open_count, 0)

        await self.listening.resume()
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertTrue(self.listening.is_listening)

    async def test_expired_active_resumes_as_passive(self):
        """Test resuming after the active window ran out."""
        await self.listening.enter_active()
        await self.listening.suspend()
        self.clock.advance(31.0)

        await self.listening.resume()
        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)

    async def test_enter_active_while_suspended_is_deferred(self):
        """Test that a mode change during playback applies on resume."""
        await self.listening.enter_passive()
        await self.listening.suspend()
        await self.listening.enter_active()

        self.assertEqual(self.listening.mode, ListeningMode.SUSPENDED)
        self.assertFalse(self.listening.is_listening)

        await self.listening.resume()
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)

    async def test_suspend_from_idle_stays_idle(self):
        """Test that resuming a suspension begun from idle does not start capture."""
        await self.listening.suspend()
        await self.listening.resume()

        self.assertEqual(self.listening.mode, ListeningMode.IDLE)
        self.assertFalse(self.listening.is_listening)

    async def test_stop(self):
        """Test teardown to idle."""
        await self.listening.enter_active()
        await self.listening.stop()

        self.assertEqual(self.listening.mode, ListeningMode.IDLE)
        self.assertIsNone(self.state.listening.active_mode_expiry)
        self.assertFalse(self.listening.is_listening)


class TestSpeechOutputCoordinator(unittest.IsolatedAsyncioTestCase):
    """Test half-duplex speech coordination."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.state = StateManager()
        self.recorder = MockAudioRecorder()
        self.tts = MockSpeechOutput(recorder=self.recorder)

        async def on_transcript(text):
            pass

        self.capture = AudioCaptureLoop(
            self.recorder, MockTranscriber(), on_transcript, clip_duration_sec=CLIP
        )
        self.listening = ListeningModeController(self.state, self.capture)
        self.speech = SpeechOutputCoordinator(self.tts, self.state, restart_delay_sec=0)
        self.speech.attach_listening(self.listening)

    async def asyncTearDown(self):
        await self.listening.stop()

    async def test_microphone_closed_while_speaking(self):
        """Test that playback never overlaps an open recording."""
        await self.listening.enter_passive()
        await wait_until(lambda: self.recorder.open_count == 1)

        ok = await self.speech.speak("Found 3 results.")

        self.assertTrue(ok)
        self.assertEqual(self.tts.spoken, ["Found 3 results."])
        self.assertEqual(self.tts.mic_overlaps, 0)
        self.assertEqual(self.listening.mode, ListeningMode.PASSIVE)
        self.assertTrue(self.listening.is_listening)

    async def test_announcements_serialized(self):
        """Test that concurrent announcements never overlap."""
        self.tts.delay = 0.01
        await self.listening.enter_passive()

        await asyncio.gather(
            self.speech.speak("one"),
            self.speech.speak_brief("two"),
            self.speech.speak("three"),
        )

        self.assertEqual(self.tts.max_concurrent, 1)
        self.assertEqual(self.tts.mic_overlaps, 0)
        self.assertEqual(len(self.tts.spoken), 3)

    async def test_no_restart(self):
        """Test leaving listening stopped after playback."""
        await self.listening.enter_passive()

        await self.speech.speak("Yes? How can I help?", restart_listening=False)
        self.assertFalse(self.listening.is_listening)

        await self.listening.enter_active()
        self.assertEqual(self.listening.mode, ListeningMode.ACTIVE)
        self.assertTrue(self.listening.is_listening)

    async def test_playback_error_is_completion(self):
        """Test that a playback failure still resumes listening and runs on_done."""
        self.tts.fail_all = True
        done = []
        await self.listening.enter_passive()

        ok = await self.speech.speak("hello", on_done=lambda: done.append(True))

        self.assertFalse(ok)
        self.assertEqual(done, [True])
        self.assertTrue(self.listening.is_listening)

    async def test_speak_brief_restores_only_running_capture(self):
        """Test that a brief alert does not start capture that was off."""
        await self.speech.speak_brief("Caution: Crosswalk ahead in 20 meters")
        self.assertFalse(self.listening.is_listening)

        await self.listening.enter_passive()
        self.tts.fail_all = True
        await self.speech.speak_brief("Continue")
        self.assertTrue(self.listening.is_listening)

    async def test_announcement_history_and_listeners(self):
        """Test the spoken announcement stream."""
        heard = []
        self.speech.add_listener(heard.append)

        await self.speech.speak("Navigation stopped")

        self.assertEqual(heard, ["Navigation stopped"])
        self.assertEqual(list(self.state.interaction.announcements), ["Navigation stopped"])

    async def test_interrupt(self):
        """Test interrupting playback."""
        await self.speech.interrupt()
        self.assertEqual(self.tts.stop_calls, 1)


if __name__ == '__main__':
    unittest.main()
