"""
Cosmo State Manager.

Single owned session state shared by every component. Async callbacks always
read the current values from here rather than from captured copies, so a
completion that arrives late sees the state as it is now.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set

from cosmo_nav.navigation.models import Candidate, Coord, Route, Step, TravelMode


class ListeningMode(str, Enum):
    """Listening state machine states."""

    IDLE = "idle"
    PASSIVE = "passive"
    ACTIVE = "active"
    SUSPENDED = "suspended"


@dataclass
class ListeningSession:
    """
    Listening mode bookkeeping.

    Mutated only by ListeningModeController. ``resume_mode`` is the mode to
    restore when a suspension ends.
    """

    mode: ListeningMode = ListeningMode.IDLE
    active_mode_expiry: Optional[float] = None
    resume_mode: Optional[ListeningMode] = None

    def reset(self):
        self.mode = ListeningMode.IDLE
        self.active_mode_expiry = None
        self.resume_mode = None


@dataclass
class NavigationRunState:
    """
    Per-run navigation monitor state.

    Created on navigation start, mutated every position sample, dropped on
    stop. ``current_step_index`` only moves forward within a run.
    """

    run_id: int = 0
    current_step_index: int = 0
    spoken_step_indices: Set[int] = field(default_factory=set)
    announced_hazards: Dict[str, float] = field(default_factory=dict)  # id -> expiry
    wrong_way_anchor: Optional[Coord] = None
    last_wrong_way_alert: Optional[float] = None
    destination: Optional[Candidate] = None

    def advance_to(self, index: int) -> bool:
        """
        Move the step index forward.

        Args:
            index: New step index

        Returns:
            bool: True if the index changed (backward moves are ignored)
        """
        if index <= self.current_step_index:
            return False
        self.current_step_index = index
        return True


@dataclass
class SearchState:
    """Current search candidates."""

    candidates: List[Candidate] = field(default_factory=list)
    last_query: str = ""

    def clear(self):
        self.candidates = []


@dataclass
class NavigationState:
    """
    Route and run state.

    ``navigating`` is the idempotency guard for stopping; ``rerouting`` keeps
    an off-route recalculation from being triggered twice.
    """

    route: Optional[Route] = None
    destination: Optional[Candidate] = None
    travel_mode: TravelMode = TravelMode.WALKING
    navigating: bool = False
    rerouting: bool = False
    run: Optional[NavigationRunState] = None
    next_run_id: int = 1

    @property
    def current_step(self) -> Optional[Step]:
        if not self.navigating or self.route is None or self.run is None:
            return None
        idx = self.run.current_step_index
        if 0 <= idx < len(self.route.steps):
            return self.route.steps[idx]
        return None

    def new_run(self, destination: Optional[Candidate]) -> NavigationRunState:
        """Create a fresh run state with a new id."""
        self.run = NavigationRunState(run_id=self.next_run_id, destination=destination)
        self.next_run_id += 1
        return self.run


@dataclass
class InteractionState:
    """
    Voice interaction history.

    Records transcripts, spoken announcements and the short chat history used
    for question answering.
    """

    last_transcript: Optional[str] = None
    last_transcript_time: float = 0.0
    announcements: Deque[str] = field(default_factory=lambda: deque(maxlen=50))
    chat_history: List[Dict[str, str]] = field(default_factory=list)
    max_chat_history: int = 10

    def record_transcript(self, text: str):
        """
        Record an incoming transcript.

        Args:
            text: Transcribed text
        """
        self.last_transcript = text
        self.last_transcript_time = time.time()

    def record_announcement(self, text: str):
        self.announcements.append(text)

    def add_chat_turn(self, role: str, text: str):
        """
        Append a chat turn, keeping only the most recent entries.

        Args:
            role: "user" or "assistant"
            text: Message text
        """
        self.chat_history.append({"role": role, "content": text})
        if len(self.chat_history) > self.max_chat_history:
            self.chat_history = self.chat_history[-self.max_chat_history:]


class StateManager:
    """
    Central state manager for Cosmo.

    Aggregates the listening session, search candidates, navigation state and
    interaction history into one object passed to every component.

    Example:
        >>> state = StateManager()
        >>> state.navigation.navigating
        False
    """

    def __init__(self, travel_mode: TravelMode = TravelMode.WALKING):
        """
        Initialize state manager.

        Args:
            travel_mode: Initial travel mode
        """
        self.listening = ListeningSession()
        self.search = SearchState()
        self.navigation = NavigationState(travel_mode=TravelMode(travel_mode))
        self.interaction = InteractionState()

    def clear_navigation(self):
        """Drop route, run state, destination and candidates."""
        self.navigation.navigating = False
        self.navigation.rerouting = False
        self.navigation.run = None
        self.navigation.route = None
        self.navigation.destination = None
        self.search.clear()

    def get_state_summary(self) -> Dict[str, Any]:
        """
        Get summary of current state for debugging and observers.

        Returns:
            Dict with key state information
        """
        run = self.navigation.run
        step = self.navigation.current_step
        return {
            "mode": self.listening.mode.value,
            "active_mode_expiry": self.listening.active_mode_expiry,
            "navigating": self.navigation.navigating,
            "rerouting": self.navigation.rerouting,
            "travel_mode": self.navigation.travel_mode.value,
            "has_route": self.navigation.route is not None,
            "candidates": len(self.search.candidates),
            "current_step_index": run.current_step_index if run else None,
            "current_instruction": step.instruction if step else None,
            "last_transcript": self.interaction.last_transcript,
            "last_announcement": self.interaction.announcements[-1] if self.interaction.announcements else None,
        }
