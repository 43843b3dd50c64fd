"""
Core state, errors and time sources for Cosmo.
"""

from cosmo_nav.core.state_manager import (
    StateManager,
    ListeningMode,
    ListeningSession,
    NavigationRunState,
)
from cosmo_nav.core.clock import ManualClock

__all__ = [
    'StateManager',
    'ListeningMode',
    'ListeningSession',
    'NavigationRunState',
    'ManualClock',
]
