"""
Help Command Handler.

Answers "help" and "what can you do" with a spoken overview of the voice
commands.
"""

from typing import Dict, Any

HELP_TEXT = (
    "Here are the voice commands you can use: "
    "Say, Find the nearest coffee shop, to search for places. "
    "Say, Choose option 1, to select from search results. "
    "To change travel modes, say Switch to transit mode, or Switch to walking mode. "
    "You can also just say, Use the bus, or Use transit. "
    "Say, Start navigation, to begin your route. "
    "Say, Stop navigation, to end your route. "
    "Say, Repeat, to hear the current instruction again during navigation. "
    "Say, Repeat options, to hear the search results again. "
    "You can also ask me about the weather or general questions. "
    "I will warn you about crosswalks and hazards during navigation."
)


class HelpCommandHandler:
    """Handles help requests."""

    HELP_PATTERNS = [
        "help", "what can you do", "what can i say", "voice commands", "list commands"
    ]

    def can_handle(self, command: str, **kwargs) -> bool:
        cmd_lower = command.lower().strip()
        return any(pattern in cmd_lower for pattern in self.HELP_PATTERNS)

    async def handle(self, command: str, **kwargs) -> Dict[str, Any]:
        return {
            "success": True,
            "action": "help",
            "message": HELP_TEXT,
            "spoken": False,
            "handler": "HelpCommandHandler"
        }
