"""
Cosmo Navigation Configuration Settings.

This module centralizes all tunable constants for the voice state machine,
the navigation monitor and the external service adapters.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class WakeWordConfig:
    """Wake phrase configuration."""

    # Longest variants first so "hey cosmo" is stripped before "cosmo"
    wake_words: List[str] = field(default_factory=lambda: [
        "hey cosmo", "cosmos", "cosimo", "cosmo", "kosmo"
    ])

    filler_pattern: str = r"^(?:(?:can you|could you|please)\b|[,.])\s*"


@dataclass
class ListeningConfig:
    """Audio capture and listening mode timing."""

    clip_duration_sec: float = 1.5
    active_window_sec: float = 30.0
    restart_delay_sec: float = 0.5

    # Capture loop back-off
    conflict_backoff_sec: float = 0.1
    error_backoff_sec: float = 0.2

    # Voice command recording with pause detection
    command_max_sec: float = 15.0
    calibration_sec: float = 1.0
    level_check_interval_sec: float = 0.5
    default_baseline_db: float = -30.0
    speech_margin_db: float = 10.0
    pause_margin_db: float = 5.0
    pause_checks_required: int = 6  # 6 x 0.5s = 3 seconds


@dataclass
class NavigationConfig:
    """Navigation monitor thresholds."""

    sample_interval_sec: float = 2.0
    max_pending_ticks: int = 3

    step_advance_m: float = 10.0
    off_route_m: float = 30.0

    # Hazards
    hazard_query_radius_m: float = 30.0
    hazard_window_min_m: float = 15.0
    hazard_window_max_m: float = 30.0
    hazard_ttl_sec: float = 60.0

    # Wrong-way detection
    wrong_way_angle_deg: float = 90.0
    wrong_way_min_remaining_m: float = 20.0
    wrong_way_min_travel_m: float = 10.0
    wrong_way_cooldown_sec: float = 10.0

    # Search
    max_candidates: int = 50
    announced_candidates: int = 3
    listed_candidates: int = 5

    default_travel_mode: str = "walking"


@dataclass
class LLMConfig:
    """LLM configuration."""

    model: str = "gpt-4o-mini"
    timeout_sec: int = 15
    max_tokens: int = 300
    temperature: float = 0.3

    # Outbound call pacing and retry
    min_call_interval_sec: float = 2.0
    max_attempts: int = 3
    backoff_base_sec: float = 2.0

    max_history: int = 10


@dataclass
class SpeechConfig:
    """Speech synthesis and recognition settings."""

    tts_voice: str = "nova"
    tts_model: str = "tts-1"
    tts_speed: float = 1.0
    tts_volume: float = 1.5

    stt_backend: str = "assemblyai"  # "assemblyai" or "vosk"
    vosk_model_path: str = "models/vosk-model-small-en-us-0.15"
    sample_rate: int = 16000

    clip_dir: Optional[str] = None


@dataclass
class ServicesConfig:
    """External service endpoints and credentials."""

    google_maps_api_key: str = ""
    assemblyai_api_key: str = ""
    openai_api_key: str = ""

    directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    places_nearby_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
    places_text_url: str = "https://maps.googleapis.com/maps/api/place/textsearch/json"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    assemblyai_url: str = "https://api.assemblyai.com/v2"
    weather_url: str = "https://wttr.in"

    request_timeout_sec: float = 10.0
    transcript_poll_interval_sec: float = 1.0
    transcript_max_polls: int = 30


@dataclass
class CosmoConfig:
    """
    Main Cosmo configuration container.

    Aggregates all sub-configurations into a single object that can be
    easily passed around and tested.
    """

    wake_words: WakeWordConfig = field(default_factory=WakeWordConfig)
    listening: ListeningConfig = field(default_factory=ListeningConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    services: ServicesConfig = field(default_factory=ServicesConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> 'CosmoConfig':
        """
        Load configuration from environment variables.

        Environment variables can override default values:
        - GOOGLE_MAPS_API_KEY, ASSEMBLYAI_API_KEY, OPENAI_API_KEY: service credentials
        - COSMO_TRAVEL_MODE: default travel mode ("walking" or "transit")
        - COSMO_LLM_MODEL: LLM model to use
        - COSMO_STT_BACKEND: "assemblyai" or "vosk"
        - COSMO_VOSK_MODEL: path to the Vosk model directory
        - COSMO_LOG_LEVEL: logging level name

        Returns:
            CosmoConfig: Configuration object with environment overrides applied

        Example:
            >>> os.environ['COSMO_TRAVEL_MODE'] = 'transit'
            >>> config = CosmoConfig.from_env()
            >>> assert config.navigation.default_travel_mode == 'transit'
        """
        config = cls()

        # Credentials
        config.services.google_maps_api_key = os.environ.get('GOOGLE_MAPS_API_KEY', '')
        config.services.assemblyai_api_key = os.environ.get('ASSEMBLYAI_API_KEY', '')
        config.services.openai_api_key = os.environ.get('OPENAI_API_KEY', '')

        if 'COSMO_TRAVEL_MODE' in os.environ:
            mode = os.environ['COSMO_TRAVEL_MODE'].lower()
            if mode in ("walking", "transit"):
                config.navigation.default_travel_mode = mode

        if 'COSMO_LLM_MODEL' in os.environ:
            config.llm.model = os.environ['COSMO_LLM_MODEL']

        if 'COSMO_STT_BACKEND' in os.environ:
            backend = os.environ['COSMO_STT_BACKEND'].lower()
            if backend in ("assemblyai", "vosk"):
                config.speech.stt_backend = backend

        if 'COSMO_VOSK_MODEL' in os.environ:
            config.speech.vosk_model_path = os.environ['COSMO_VOSK_MODEL']

        if 'COSMO_LOG_LEVEL' in os.environ:
            config.log_level = os.environ['COSMO_LOG_LEVEL'].upper()

        return config


# Default configuration instance
default_config = CosmoConfig()
