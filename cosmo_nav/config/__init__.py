"""
Configuration for Cosmo.
"""

from cosmo_nav.config.settings import (
    CosmoConfig,
    WakeWordConfig,
    ListeningConfig,
    NavigationConfig,
    LLMConfig,
    SpeechConfig,
    ServicesConfig,
    default_config,
)

__all__ = [
    'CosmoConfig',
    'WakeWordConfig',
    'ListeningConfig',
    'NavigationConfig',
    'LLMConfig',
    'SpeechConfig',
    'ServicesConfig',
    'default_config',
]
