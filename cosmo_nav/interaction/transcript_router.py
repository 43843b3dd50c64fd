"""
Transcript Router.

Resolves each transcript to an intent using an ordered table of
(name, predicate, builder) rules evaluated against an immutable snapshot of
the session. The first matching rule wins, which makes precedence explicit:
the stop keyword beats everything while navigating, the wake phrase gates
Passive mode, and free-form text falls through to the AI.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from cosmo_nav.core.state_manager import ListeningMode, StateManager
from cosmo_nav.interaction.option_parser import (
    extract_option, has_selection_keyword, is_simple_selection
)
from cosmo_nav.navigation.models import TravelMode
from cosmo_nav.speech.wake_phrase import WakePhraseMatcher

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """Outcomes of transcript routing."""

    STOP_NAVIGATION = "stop_navigation"
    REPEAT_INSTRUCTION = "repeat_instruction"
    START_NAVIGATION = "start_navigation"
    SELECT_OPTION = "select_option"
    SWITCH_TRAVEL_MODE = "switch_travel_mode"
    NEEDS_AI = "needs_ai"
    PROMPT = "prompt"
    IGNORE = "ignore"
    CONTINUE_LISTENING = "continue_listening"


STOP_WORDS = ['stop']
REPEAT_WORDS = ['repeat', 'again', 'what']
START_PHRASES = [
    'start navigation', 'begin navigation', 'start navigating', 'begin navigating',
    'navigate', "let's navigate", "let's go", 'start the navigation',
    'begin the navigation', 'start', 'begin', 'go'
]
WALKING_PHRASES = [
    'walking mode', 'walk mode', 'use walking', 'switch to walking',
    'change to walking', 'enable walking', 'activate walking',
    'pedestrian mode', 'on foot', 'by foot'
]
TRANSIT_PHRASES = [
    'transit mode', 'use transit', 'switch to transit', 'change to transit',
    'enable transit', 'activate transit', 'public transit',
    'use bus', 'use train', 'use subway', 'use metro',
    'take the bus', 'take the train', 'take the subway', 'take transit',
    'bus mode', 'train mode', 'subway mode'
]


def contains_phrase(text: str, phrases: List[str]) -> bool:
    """Whole-word (or whole-phrase) containment test."""
    return any(re.search(rf"\b{re.escape(p)}\b", text) for p in phrases)


@dataclass(frozen=True)
class RoutingContext:
    """Immutable snapshot of the session used for one routing decision."""

    mode: ListeningMode
    navigating: bool = False
    has_route: bool = False
    candidate_count: int = 0

    @classmethod
    def from_state(cls, state: StateManager, mode: ListeningMode) -> 'RoutingContext':
        nav = state.navigation
        return cls(
            mode=mode,
            navigating=nav.navigating,
            has_route=nav.route is not None and nav.route.has_steps,
            candidate_count=len(state.search.candidates),
        )


@dataclass(frozen=True)
class Utterance:
    """
    A transcript prepared for routing.

    ``command`` is the text after the wake phrase (or the whole transcript in
    Active mode), or None when the wake phrase was required but absent.
    """

    text: str
    command: Optional[str]


@dataclass(frozen=True)
class RouteDecision:
    """Routing result handed to the command dispatcher."""

    intent: Intent
    command: str = ""
    option_index: Optional[int] = None
    ambiguous: bool = False
    travel_mode: Optional[TravelMode] = None
    rule: str = ""


Predicate = Callable[[RoutingContext, Utterance], bool]
Builder = Callable[[RoutingContext, Utterance], RouteDecision]


def _travel_mode_of(command: str) -> Optional[TravelMode]:
    walking = contains_phrase(command, WALKING_PHRASES)
    transit = contains_phrase(command, TRANSIT_PHRASES)
    if walking and not transit:
        return TravelMode.WALKING
    if transit and not walking:
        return TravelMode.TRANSIT
    return None


def _wants_selection(ctx: RoutingContext, u: Utterance) -> bool:
    if ctx.candidate_count == 0 or not extract_option(u.command).found:
        return False
    if ctx.mode is ListeningMode.ACTIVE:
        return True
    return has_selection_keyword(u.command) or is_simple_selection(u.command)


def _select(ctx: RoutingContext, u: Utterance) -> RouteDecision:
    selection = extract_option(u.command)
    return RouteDecision(Intent.SELECT_OPTION, u.command, option_index=selection.index,
                         ambiguous=selection.ambiguous)


RULES: List[Tuple[str, Predicate, Builder]] = [
    ("stop_while_navigating",
     lambda ctx, u: ctx.navigating and contains_phrase(u.text, STOP_WORDS),
     lambda ctx, u: RouteDecision(Intent.STOP_NAVIGATION, u.text)),
    ("missing_wake_phrase",
     lambda ctx, u: u.command is None,
     lambda ctx, u: RouteDecision(Intent.IGNORE, u.text)),
    ("active_silence",
     lambda ctx, u: ctx.mode is ListeningMode.ACTIVE and not u.command,
     lambda ctx, u: RouteDecision(Intent.CONTINUE_LISTENING)),
    ("wake_phrase_only",
     lambda ctx, u: not u.command,
     lambda ctx, u: RouteDecision(Intent.PROMPT)),
    ("repeat_instruction",
     lambda ctx, u: ctx.navigating and contains_phrase(u.command, REPEAT_WORDS),
     lambda ctx, u: RouteDecision(Intent.REPEAT_INSTRUCTION, u.command)),
    ("start_navigation",
     lambda ctx, u: ctx.has_route and not ctx.navigating and contains_phrase(u.command, START_PHRASES),
     lambda ctx, u: RouteDecision(Intent.START_NAVIGATION, u.command)),
    ("select_option", _wants_selection, _select),
    ("switch_travel_mode",
     lambda ctx, u: _travel_mode_of(u.command) is not None,
     lambda ctx, u: RouteDecision(Intent.SWITCH_TRAVEL_MODE, u.command,
                                  travel_mode=_travel_mode_of(u.command))),
    ("free_form",
     lambda ctx, u: True,
     lambda ctx, u: RouteDecision(Intent.NEEDS_AI, u.command)),
]


class TranscriptRouter:
    """
    Transcript-to-intent router.

    ``decide`` is pure; ``handle_transcript`` snapshots the session, decides
    and forwards the decision to the dispatcher.

    Example:
        >>> router = TranscriptRouter(WakePhraseMatcher())
        >>> ctx = RoutingContext(mode=ListeningMode.PASSIVE)
        >>> router.decide("hey cosmo coffee shop", ctx).intent
        <Intent.NEEDS_AI: 'needs_ai'>
    """

    def __init__(
        self,
        matcher: Optional[WakePhraseMatcher] = None,
        state: Optional[StateManager] = None,
        listening=None,
        dispatcher=None
    ):
        """
        Initialize router.

        Args:
            matcher: Wake phrase matcher
            state: State manager (needed for handle_transcript)
            listening: ListeningModeController providing the current mode
            dispatcher: CommandDispatcher receiving decisions
        """
        self.matcher = matcher or WakePhraseMatcher()
        self.state = state
        self.listening = listening
        self.dispatcher = dispatcher
        self.rules = RULES

    def prepare(self, text: str, ctx: RoutingContext) -> Utterance:
        lowered = text.lower().strip()
        if ctx.mode is ListeningMode.ACTIVE:
            return Utterance(lowered, self.matcher.strip_wake_phrase(lowered))
        return Utterance(lowered, self.matcher.extract_command(lowered))

    def decide(self, text: str, ctx: RoutingContext) -> RouteDecision:
        """
        Route a transcript.

        Args:
            text: Transcript
            ctx: Session snapshot

        Returns:
            RouteDecision: First matching rule's decision
        """
        utterance = self.prepare(text, ctx)
        for name, predicate, build in self.rules:
            if predicate(ctx, utterance):
                decision = build(ctx, utterance)
                return RouteDecision(
                    decision.intent, decision.command, decision.option_index,
                    decision.ambiguous, decision.travel_mode, rule=name
                )
        raise RuntimeError("No routing rule matched")

    async def handle_transcript(self, text: str) -> RouteDecision:
        """
        Route a live transcript and dispatch the result.

        Args:
            text: Transcript from the capture loop

        Returns:
            RouteDecision: The decision that was dispatched
        """
        self.state.interaction.record_transcript(text)
        ctx = RoutingContext.from_state(self.state, self.listening.mode)
        decision = self.decide(text, ctx)
        if decision.intent is Intent.IGNORE:
            logger.debug(f"Passive mode: no wake phrase in {text!r}")
        else:
            logger.info(f"Transcript {text!r} -> {decision.intent.value} ({decision.rule})")
        await self.dispatcher.dispatch(decision)
        return decision
