from sqlalchemy import create_engine, Column, Integer, String, ForeignKey, JSON, DateTime, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, relationship
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone
import os

# Defaults to in-memory SQLite: lesson sessions live as long as the process
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")

Base = declarative_base()


def make_engine(url: str = DATABASE_URL):
    if not url.startswith("sqlite"):
        return create_engine(url)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every thread sees the same in-memory database
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


class LessonSessionRow(Base):
    __tablename__ = "lesson_sessions"

    id = Column(String, primary_key=True)
    course = Column(String, nullable=False)
    agenda = Column(JSON, nullable=False)  # Ordered list of topic titles
    step = Column(Integer, default=0)
    started_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    messages = relationship(
        "MessageRow",
        back_populates="session",
        order_by="MessageRow.position",
        cascade="all, delete-orphan",
    )


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(String, ForeignKey("lesson_sessions.id"))
    position = Column(Integer, nullable=False)
    role = Column(String, nullable=False)  # "user" or "assistant"
    content = Column(Text, nullable=False)

    session = relationship("LessonSessionRow", back_populates="messages")


# Create all tables
def init_db(engine):
    Base.metadata.create_all(bind=engine)
