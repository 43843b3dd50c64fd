"""
Wake phrase matching.

Whole-word detection of the wake phrase (with common mis-transcriptions) and
extraction of the command that follows it.
"""

import re
from typing import List, Optional

from cosmo_nav.config.settings import WakeWordConfig


class WakePhraseMatcher:
    """
    Detects and strips wake phrases.

    Example:
        >>> matcher = WakePhraseMatcher()
        >>> matcher.extract_command("Hey Cosmo, can you find coffee")
        'find coffee'
    """

    def __init__(self, config: Optional[WakeWordConfig] = None):
        """
        Initialize matcher.

        Args:
            config: Wake word configuration (defaults used if None)
        """
        config = config or WakeWordConfig()
        # Longest first so "hey cosmo" wins over "cosmo"
        self.wake_words: List[str] = sorted(
            (w.lower() for w in config.wake_words), key=len, reverse=True
        )
        alternatives = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in self.wake_words)
        self._pattern = re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)
        self._filler = re.compile(config.filler_pattern, re.IGNORECASE)

    def extract_command(self, text: str) -> Optional[str]:
        """
        Return the command following the wake phrase.

        Everything up to and including the first wake phrase is dropped,
        followed by leading filler ("can you", "please", punctuation).

        Args:
            text: Transcript

        Returns:
            Optional[str]: Lower-cased command (may be empty), or None if no
            wake phrase is present
        """
        if not text:
            return None
        match = self._pattern.search(text)
        if match is None:
            return None
        return self.strip_filler(text[match.end():])

    def strip_wake_phrase(self, text: str) -> str:
        """
        Remove a wake phrase if present, otherwise just normalize the text.

        Args:
            text: Transcript

        Returns:
            str: Lower-cased command text
        """
        command = self.extract_command(text)
        if command is None:
            return self.strip_filler(text)
        return command

    def strip_filler(self, text: str) -> str:
        """Lower-case, trim and drop repeated leading filler words."""
        remainder = text.lower().strip()
        while True:
            stripped = self._filler.sub("", remainder, count=1).strip()
            if stripped == remainder:
                return remainder
            remainder = stripped
