"""
Command handlers for direct free-form commands.
"""

from cosmo_nav.interaction.command_handlers.help_commands import HelpCommandHandler
from cosmo_nav.interaction.command_handlers.navigation_commands import NavigationCommandHandler
from cosmo_nav.interaction.command_handlers.options_commands import OptionsCommandHandler

__all__ = [
    'HelpCommandHandler',
    'NavigationCommandHandler',
    'OptionsCommandHandler',
]
