"""
Generation Sessions
Per-client generation state: the current prompt, whether a generation is in
flight, the latest specification and the client's loaded saved calculators.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from calcforge.errors import GenerationInProgressError
from calcforge.models import Calculator, CalculatorSpec

MAX_SESSIONS = 1000
MAX_SAVED_CALCULATORS = 50


class GenerationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"


@dataclass
class GenerationSession:
    prompt: str = ""
    state: GenerationState = GenerationState.IDLE
    spec: Optional[CalculatorSpec] = None
    saved_calculators: List[Calculator] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def generating(self) -> bool:
        return self.state is GenerationState.GENERATING

    def begin(self, prompt: str) -> None:
        """Move idle -> generating, or raise if a generation is already running."""
        with self._lock:
            if self.state is GenerationState.GENERATING:
                raise GenerationInProgressError("A calculator is already being generated")
            self.prompt = prompt
            self.state = GenerationState.GENERATING

    def complete(self, spec: CalculatorSpec) -> None:
        with self._lock:
            self.spec = spec
            self.state = GenerationState.IDLE

    def fail(self) -> None:
        with self._lock:
            self.state = GenerationState.IDLE

    def reset(self) -> None:
        with self._lock:
            self.prompt = ""
            self.spec = None
            self.state = GenerationState.IDLE

    def remember(self, calculator: Calculator) -> None:
        """Track a calculator saved in this session, keeping only the most recent."""
        with self._lock:
            self.saved_calculators = [c for c in self.saved_calculators if c.id != calculator.id]
            self.saved_calculators.append(calculator)
            del self.saved_calculators[:-MAX_SAVED_CALCULATORS]

    def forget(self, calculator_id: str) -> None:
        with self._lock:
            self.saved_calculators = [c for c in self.saved_calculators if c.id != calculator_id]


def run_generation(session: GenerationSession, generator, prompt: str):
    """
    Run one generation inside ``session``.

    Raises GenerationInProgressError if the session is busy; otherwise
    returns the generator's GenerationResult.
    """
    session.begin(prompt)
    try:
        result = generator.generate(prompt)
    except BaseException:
        session.fail()
        raise
    session.complete(result.spec)
    return result


class SessionRegistry:
    """
    Sessions keyed by a client-supplied session id.

    At most ``max_sessions`` are kept; when a new session would exceed that,
    the least recently used idle sessions are dropped.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, GenerationSession]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> GenerationSession:
        """Return the session for ``session_id``, creating it if needed."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._sessions[session_id] = GenerationSession()
                self._evict()
            else:
                self._sessions.move_to_end(session_id)
            return session

    def find(self, session_id: str) -> Optional[GenerationSession]:
        """Return the existing session for ``session_id`` or None."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def _evict(self) -> None:
        # the newest session and sessions with a generation in flight are kept
        for session_id in list(self._sessions)[:-1]:
            if len(self._sessions) <= self.max_sessions:
                break
            if not self._sessions[session_id].generating:
                del self._sessions[session_id]

    def __len__(self) -> int:
        return len(self._sessions)
