"""
Command Processor.

Direct free-form command pipeline. Pattern handlers get the first look at a
free-form request; anything no handler claims goes to the AI fallback chain
in the command dispatcher.
"""

import logging
from typing import Any, Dict, List

from cosmo_nav.core.state_manager import StateManager
from cosmo_nav.interaction.command_handlers import (
    HelpCommandHandler, NavigationCommandHandler, OptionsCommandHandler
)

logger = logging.getLogger(__name__)


class CommandProcessor:
    """
    Main command processor.

    Coordinates multiple command handlers using pattern matching. Each
    handler exposes ``can_handle(command)`` and an async ``handle(command)``
    returning a result dict.
    """

    def __init__(self, state: StateManager):
        """
        Initialize command processor.

        Args:
            state: State manager
        """
        self.state = state
        self.handlers: List[Any] = []

    def add_handler(self, handler):
        """
        Add a command handler.

        Args:
            handler: Command handler instance with can_handle() and handle() methods
        """
        self.handlers.append(handler)

    async def process_command(self, command: str) -> Dict[str, Any]:
        """
        Process a free-form command.

        Args:
            command: Command text

        Returns:
            Dict with keys:
                - success (bool): Whether a handler processed the command
                - action (str): Action that was taken
                - message (str): Response message
                - handler (str): Which handler processed the command
                - spoken (bool): True if the handler already announced the result
        """
        if not command or not command.strip():
            return {
                "success": False,
                "action": "empty",
                "message": "No command received",
                "handler": "none"
            }

        command = command.strip()

        for handler in self.handlers:
            if handler.can_handle(command):
                try:
                    result = await handler.handle(command)
                except Exception as e:
                    logger.error(f"Handler error in {handler.__class__.__name__}: {e}")
                    continue
                result["handler"] = handler.__class__.__name__
                return result

        # No handler matched, caller falls back to the AI chain
        return {
            "success": False,
            "action": "unknown",
            "message": "No pattern handler matched",
            "handler": "none"
        }

    def get_status(self) -> Dict[str, Any]:
        """
        Get command processor status.

        Returns:
            Dict with status information
        """
        return {
            "handlers": [h.__class__.__name__ for h in self.handlers],
            "last_transcript": self.state.interaction.last_transcript,
            "last_transcript_time": self.state.interaction.last_transcript_time
        }


def create_default_processor(state: StateManager, dispatcher) -> CommandProcessor:
    """
    Build a processor with the standard handlers.

    Args:
        state: State manager
        dispatcher: CommandDispatcher the handlers act through

    Returns:
        CommandProcessor: Processor with help, navigation and options handlers
    """
    processor = CommandProcessor(state)
    processor.add_handler(HelpCommandHandler())
    processor.add_handler(NavigationCommandHandler(state, dispatcher))
    processor.add_handler(OptionsCommandHandler(state, dispatcher))
    return processor
