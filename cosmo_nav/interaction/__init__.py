"""
Interaction subsystem for Cosmo.

Transcript routing, option parsing, direct command handlers and the command
dispatcher that executes routing decisions.
"""

from cosmo_nav.interaction.command_dispatcher import CommandDispatcher
from cosmo_nav.interaction.command_processor import CommandProcessor, create_default_processor
from cosmo_nav.interaction.option_parser import OptionSelection, extract_option
from cosmo_nav.interaction.transcript_router import (
    Intent, RouteDecision, RoutingContext, TranscriptRouter
)

__all__ = [
    'CommandDispatcher',
    'CommandProcessor',
    'create_default_processor',
    'OptionSelection',
    'extract_option',
    'Intent',
    'RouteDecision',
    'RoutingContext',
    'TranscriptRouter',
]
