"""
Options Command Handler.

Re-reads the current search results ("repeat options", "list the results").
"""

import re
from typing import Dict, Any

OPTIONS_PATTERN = re.compile(r"\b(repeat|list|what are)\b.*\b(options?|results?|choices?)\b")


class OptionsCommandHandler:
    """Handles requests to hear the search results again."""

    def __init__(self, state, dispatcher):
        """
        Initialize options command handler.

        Args:
            state: StateManager instance
            dispatcher: CommandDispatcher that reads the options
        """
        self.state = state
        self.dispatcher = dispatcher

    def can_handle(self, command: str, **kwargs) -> bool:
        return bool(OPTIONS_PATTERN.search(command.lower().strip()))

    async def handle(self, command: str, **kwargs) -> Dict[str, Any]:
        count = len(self.state.search.candidates)
        await self.dispatcher.repeat_options()
        return {
            "success": count > 0,
            "action": "repeat_options",
            "message": f"Listed {count} options",
            "spoken": True,
            "handler": "OptionsCommandHandler"
        }
