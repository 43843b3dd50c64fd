"""
Speech subsystem for Cosmo.

Provides the capture loop, listening mode state machine, speech output
coordination and one-shot command recording. Engine adapters live in
``cosmo_nav.speech.providers``.
"""

from cosmo_nav.speech.capture_loop import AudioCaptureLoop
from cosmo_nav.speech.command_recorder import CommandRecorder, PauseDetector
from cosmo_nav.speech.listening_mode import ListeningModeController
from cosmo_nav.speech.output_coordinator import SpeechOutputCoordinator
from cosmo_nav.speech.wake_phrase import WakePhraseMatcher

__all__ = [
    'AudioCaptureLoop',
    'CommandRecorder',
    'PauseDetector',
    'ListeningModeController',
    'SpeechOutputCoordinator',
    'WakePhraseMatcher',
]
