"""
Option number parsing.

Extracts a spoken option number ("two", "the second one", "option 3",
"4th") from a transcript as a 0-based index.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

NUMBER_WORDS = {
    'one': 0, 'first': 0, '1st': 0,
    'two': 1, 'second': 1, '2nd': 1,
    'three': 2, 'third': 2, '3rd': 2,
    'four': 3, 'fourth': 3, '4th': 3,
    'five': 4, 'fifth': 4, '5th': 4,
    'six': 5, 'sixth': 5, '6th': 5,
    'seven': 6, 'seventh': 6, '7th': 6,
    'eight': 7, 'eighth': 7, '8th': 7,
    'nine': 8, 'ninth': 8, '9th': 8,
    'ten': 9, 'tenth': 9, '10th': 9,
}

SELECTION_KEYWORDS = [
    'option', 'options', 'choice', 'choices', 'number', 'numbers',
    'pick', 'select', 'navigate', 'go to', 'take'
]

DIGIT_PATTERN = re.compile(r"\b(\d{1,2})\b")
TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

AMBIGUOUS_MESSAGE = "I heard more than one number. Please say just one option number."


@dataclass(frozen=True)
class OptionSelection:
    """
    Result of option extraction.

    ``index`` is 0-based and may be out of range (e.g. "option 0" gives -1);
    bounds are checked against the candidate list by the caller.
    """

    index: Optional[int] = None
    ambiguous: bool = False

    @property
    def found(self) -> bool:
        return self.index is not None or self.ambiguous


def _word_indices(tokens: List[str]) -> List[Tuple[int, int]]:
    """(token position, index) pairs for number words and ordinals."""
    found = []
    for pos, token in enumerate(tokens):
        if token not in NUMBER_WORDS:
            continue
        # "the second one": trailing "one" is a pronoun, not a number
        if token == 'one' and pos > 0 and (tokens[pos - 1] in NUMBER_WORDS or tokens[pos - 1].isdigit()):
            continue
        found.append((pos, NUMBER_WORDS[token]))
    return found


def extract_option(text: str) -> OptionSelection:
    """
    Extract a spoken option number.

    A one- or two-digit number takes precedence over number words. Two
    different numbers in one utterance are reported as ambiguous.

    Args:
        text: Transcript or command text

    Returns:
        OptionSelection: Extraction result (empty if no number was spoken)

    Example:
        >>> extract_option("option 2").index
        1
        >>> extract_option("the third one").index
        2
    """
    if not text:
        return OptionSelection()
    normalized = text.lower()

    digits = [int(m) - 1 for m in DIGIT_PATTERN.findall(normalized)]
    if digits:
        if len(set(digits)) > 1:
            return OptionSelection(ambiguous=True)
        return OptionSelection(index=digits[0])

    words = {index for _, index in _word_indices(TOKEN_PATTERN.findall(normalized))}
    if len(words) > 1:
        return OptionSelection(ambiguous=True)
    if words:
        return OptionSelection(index=words.pop())
    return OptionSelection()


def is_simple_selection(text: str) -> bool:
    """True if the utterance is just a number ("2", "two", "second")."""
    if not text:
        return False
    normalized = text.lower().strip().rstrip('.!?')
    if re.fullmatch(r"\d{1,2}", normalized):
        return True
    return normalized in NUMBER_WORDS


def has_selection_keyword(text: str) -> bool:
    """True if the utterance names an option explicitly ("option 2", "pick three")."""
    if not text:
        return False
    normalized = text.lower()
    return any(re.search(rf"\b{re.escape(kw)}\b", normalized) for kw in SELECTION_KEYWORDS)
