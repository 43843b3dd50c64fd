"""
Collaborator interfaces and mock implementations for Cosmo.
"""

from cosmo_nav.hardware.interfaces import (
    IAudioRecorder, IRecording, ITranscriber, ISpeechOutput, ILocationProvider,
    IPlaceSearch, IRouter, IHazardSource, IWeatherService, ILLMProvider
)
from cosmo_nav.hardware.mock_hardware import (
    MockAudioRecorder, MockTranscriber, MockSpeechOutput, MockLocationProvider,
    MockPlaceSearch, MockRouter, MockHazardSource, MockWeatherService, MockLLMProvider
)

__all__ = [
    'IAudioRecorder',
    'IRecording',
    'ITranscriber',
    'ISpeechOutput',
    'ILocationProvider',
    'IPlaceSearch',
    'IRouter',
    'IHazardSource',
    'IWeatherService',
    'ILLMProvider',
    'MockAudioRecorder',
    'MockTranscriber',
    'MockSpeechOutput',
    'MockLocationProvider',
    'MockPlaceSearch',
    'MockRouter',
    'MockHazardSource',
    'MockWeatherService',
    'MockLLMProvider',
]
