import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base
from .timing import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Participant(Base):
    __tablename__ = "participant"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255))
    class_name: Mapped[str] = mapped_column(String(50))
    school: Mapped[str] = mapped_column(String(255))
    phone: Mapped[str] = mapped_column(String(12), unique=True, index=True)  # digits only
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Question(Base):
    __tablename__ = "question"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AnswerOption(Base):
    __tablename__ = "answer_option"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("question.id"), index=True)
    text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)  # read by scoring only
    position: Mapped[int] = mapped_column(Integer, default=0)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempt"
    # at most one open attempt per participant, enforced by the store
    __table_args__ = (
        Index(
            "uq_quiz_attempt_open_per_participant",
            "participant_id",
            unique=True,
            sqlite_where=text("submitted_at IS NULL"),
            postgresql_where=text("submitted_at IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    participant_id: Mapped[str] = mapped_column(String(36), ForeignKey("participant.id"), index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    duration_seconds: Mapped[int] = mapped_column(Integer)

    # frozen at creation: [question_id, ...] and {question_id: [option_id, ...]}
    question_order: Mapped[list] = mapped_column(JSON)
    option_orders: Mapped[dict] = mapped_column(JSON)

    violation_count: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None


class AttemptAnswer(Base):
    __tablename__ = "attempt_answer"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_attempt_answer_attempt_question"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    attempt_id: Mapped[str] = mapped_column(String(36), ForeignKey("quiz_attempt.id"), index=True)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("question.id"), index=True)
    selected_option_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("answer_option.id"), nullable=True)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ViolationEvent(Base):
    __tablename__ = "violation_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[str] = mapped_column(String(36), ForeignKey("quiz_attempt.id"), index=True)
    kind: Mapped[str] = mapped_column(String(20))  # tab_switch | fullscreen_exit | page_blur
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
