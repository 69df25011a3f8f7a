"""Lesson session bookkeeping: agenda position and conversation history."""

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import logging
import threading
import time

from backend.errors import InvalidSession
from backend.persistence import LessonSession, MessageEntry, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_COURSE = "web-development"
DEFAULT_AGENDA = [
    "Introduction to the Web",
    "Client–Server Communication",
    "HTML, CSS, JavaScript Mental Models",
    "Invention Phase",
]

WELCOME_TEXT = (
    "Welcome to InventaLab. Before we dive into tools, let's research the fundamental idea itself.\n\n"
    "**What do you want to explore today?**\n\n"
    "You can say things like:\n"
    "- 'I want to start with an intro because I'm a beginner'\n"
    "- 'Let's explore client-server communication'\n"
    "- Or ask any question about web development"
)
WELCOME_QUESTIONS = [
    "What is the web actually?",
    "Is the web the same as the internet?",
    "I want to start with an introduction",
]


class TimestampIds:
    """Issues ``sess_<epoch ms>`` ids, strictly increasing within the process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return f"sess_{self._last}"


class SessionTracker:
    """
    Tracks each learner's position in a fixed, linear agenda.

    The step index only moves forward and stops at the last topic; once
    there, the tracker keeps returning that topic rather than signalling
    completion.
    """

    def __init__(
        self,
        store: SessionStore,
        id_factory: Optional[Callable[[], str]] = None,
        agenda: Optional[List[str]] = None,
        course: str = DEFAULT_COURSE,
    ):
        self.store = store
        self.id_factory = id_factory or TimestampIds()
        self.agenda = list(agenda or DEFAULT_AGENDA)
        self.course = course
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def start_session(self) -> Tuple[LessonSession, Dict[str, object]]:
        """Create a session at step 0 and return it with the hardcoded greeting."""
        session = LessonSession(id=self.id_factory(), course=self.course, agenda=list(self.agenda))
        self.store.put(session)
        logger.info("Started session %s", session.id)
        greeting = {"text": WELCOME_TEXT, "microQuestions": list(WELCOME_QUESTIONS)}
        return session, greeting

    def get(self, session_id: Optional[str]) -> LessonSession:
        session = self.store.get(session_id) if session_id else None
        if session is None:
            raise InvalidSession(f"Unknown session: {session_id!r}")
        return session

    @staticmethod
    def resolve_topic(session: LessonSession) -> str:
        return session.agenda[min(session.step, session.last_step)]

    def advance_step(self, session: LessonSession) -> int:
        """Move to the next topic; no-op once the last topic is reached."""
        if session.step < session.last_step:
            session.step += 1
            self.store.put(session)
        return session.step

    def append_history(self, session: LessonSession, user_message: str, assistant_message: str) -> None:
        session.history.append(MessageEntry("user", user_message))
        session.history.append(MessageEntry("assistant", assistant_message))
        self.store.put(session)

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """Serialize work on one session id; other sessions proceed freely."""
        with self._locks_guard:
            session_lock = self._locks.setdefault(session_id, threading.Lock())
        with session_lock:
            yield
