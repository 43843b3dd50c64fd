"""
Navigation Command Handler.

Handles spelled-out start and stop requests that reach the free-form path,
such as "please end the route" or "begin navigation now".
"""

import re
from typing import Dict, Any

STOP_PATTERN = re.compile(r"\b(stop|end|cancel)\b.*\b(navigation|navigating|route)\b")
START_PATTERN = re.compile(r"\b(start|begin|go)\b.*\b(navigation|navigate|route)\b")


class NavigationCommandHandler:
    """
    Handles navigation start/stop commands.

    Commands:
    - stop / end / cancel + navigation / route
    - start / begin / go + navigation / route
    """

    def __init__(self, state, dispatcher):
        """
        Initialize navigation command handler.

        Args:
            state: StateManager instance
            dispatcher: CommandDispatcher that performs the action
        """
        self.state = state
        self.dispatcher = dispatcher

    def can_handle(self, command: str, **kwargs) -> bool:
        """
        Check if this handler can process the command.

        Args:
            command: Command text
            **kwargs: Additional context

        Returns:
            bool: True if can handle
        """
        cmd_lower = command.lower().strip()
        return bool(STOP_PATTERN.search(cmd_lower) or START_PATTERN.search(cmd_lower))

    async def handle(self, command: str, **kwargs) -> Dict[str, Any]:
        """
        Execute the command.

        Args:
            command: Command text
            **kwargs: Additional context

        Returns:
            dict: Result with success, action, message, spoken and handler
        """
        cmd_lower = command.lower().strip()
        nav = self.state.navigation

        if STOP_PATTERN.search(cmd_lower):
            if not nav.navigating:
                return {
                    "success": True,
                    "action": "stop_navigation",
                    "message": "Navigation is not active",
                    "spoken": False,
                    "handler": "NavigationCommandHandler"
                }
            await self.dispatcher.stop_navigation()
            return {
                "success": True,
                "action": "stop_navigation",
                "message": "Navigation stopped",
                "spoken": True,
                "handler": "NavigationCommandHandler"
            }

        if nav.navigating:
            message = "Navigation is already active"
        elif nav.route is None or not nav.route.has_steps:
            message = "Please select a destination first"
        else:
            await self.dispatcher.start_navigation()
            return {
                "success": True,
                "action": "start_navigation",
                "message": "Starting navigation",
                "spoken": True,
                "handler": "NavigationCommandHandler"
            }

        return {
            "success": True,
            "action": "start_navigation",
            "message": message,
            "spoken": False,
            "handler": "NavigationCommandHandler"
        }
