from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
import logging
import threading

from backend import db
from backend.db import LessonSessionRow, MessageRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageEntry:
    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LessonSession:
    id: str
    course: str
    agenda: List[str]
    step: int = 0
    history: List[MessageEntry] = field(default_factory=list)

    @property
    def last_step(self) -> int:
        return len(self.agenda) - 1


class SessionStore:
    """Storage interface for lesson sessions."""

    def init(self) -> None:
        """Prepare backing storage; called once at application startup."""

    def get(self, session_id: str) -> Optional[LessonSession]:
        raise NotImplementedError

    def put(self, session: LessonSession) -> None:
        raise NotImplementedError

    def delete(self, session_id: str) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-lifetime dict of sessions guarded by a lock."""

    def __init__(self):
        self._sessions: Dict[str, LessonSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[LessonSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            # Callers get a copy; changes land only through put()
            return replace(session, agenda=list(session.agenda), history=list(session.history)) if session else None

    def put(self, session: LessonSession) -> None:
        with self._lock:
            self._sessions[session.id] = replace(
                session, agenda=list(session.agenda), history=list(session.history)
            )

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class SqlSessionStore(SessionStore):
    """SQLAlchemy-backed store; in-memory SQLite unless DATABASE_URL says otherwise."""

    def __init__(self, database_url: str = db.DATABASE_URL):
        self.engine = db.make_engine(database_url)
        self.SessionLocal = db.make_session_factory(self.engine)
        # In-memory SQLite shares one connection across threads
        self._lock = threading.Lock()

    def init(self) -> None:
        db.init_db(self.engine)

    def get(self, session_id: str) -> Optional[LessonSession]:
        with self._lock, self.SessionLocal() as db_session:
            row = db_session.get(LessonSessionRow, session_id)
            if row is None:
                return None
            return LessonSession(
                id=row.id,
                course=row.course,
                agenda=list(row.agenda),
                step=row.step,
                history=[MessageEntry(m.role, m.content) for m in row.messages],
            )

    def put(self, session: LessonSession) -> None:
        with self._lock, self.SessionLocal() as db_session:
            row = db_session.get(LessonSessionRow, session.id)
            if row is None:
                row = LessonSessionRow(id=session.id, course=session.course, agenda=list(session.agenda))
                db_session.add(row)
            row.step = session.step
            # History is append-only, so only the new tail needs inserting
            for position in range(len(row.messages), len(session.history)):
                entry = session.history[position]
                row.messages.append(MessageRow(position=position, role=entry.role, content=entry.content))
            db_session.commit()

    def delete(self, session_id: str) -> None:
        with self._lock, self.SessionLocal() as db_session:
            row = db_session.get(LessonSessionRow, session_id)
            if row is not None:
                db_session.delete(row)
                db_session.commit()


def make_store(kind: str = "memory", database_url: Optional[str] = None) -> SessionStore:
    if kind == "sql":
        logger.info("Using SQL session store")
        return SqlSessionStore(database_url or db.DATABASE_URL)
    if kind != "memory":
        raise ValueError(f"Unknown session store: {kind}")
    return InMemorySessionStore()
