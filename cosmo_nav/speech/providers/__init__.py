"""
Speech providers for recording, STT and TTS.

Includes sounddevice microphone capture, AssemblyAI and Vosk transcription,
and OpenAI TTS. Each module guards its optional dependency, so import the
provider modules directly.
"""
