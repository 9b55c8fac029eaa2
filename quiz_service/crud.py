import logging
from datetime import datetime

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreFailure
from .models import (
    AnswerOption, AttemptAnswer, Participant, Question, QuizAttempt, ViolationEvent, new_id,
)

logger = logging.getLogger(__name__)


def commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store failure while %s: %s", what, e)
        raise StoreFailure(f"Failed to {what}") from e


# ---- reference data ----

def create_question(db: Session, text: str) -> Question:
    q = Question(text=text)
    db.add(q)
    commit(db, "create question")
    return q


def add_option(db: Session, question_id: str, text: str, is_correct: bool, position: int = 0) -> AnswerOption:
    opt = AnswerOption(question_id=question_id, text=text, is_correct=is_correct, position=position)
    db.add(opt)
    commit(db, "add option")
    return opt


def list_question_ids(db: Session) -> list[str]:
    rows = db.execute(select(Question.id).order_by(Question.created_at.asc(), Question.id.asc())).scalars()
    return list(rows)


def list_option_ids(db: Session, question_id: str) -> list[str]:
    rows = db.execute(
        select(AnswerOption.id)
        .where(AnswerOption.question_id == question_id)
        .order_by(AnswerOption.position.asc(), AnswerOption.id.asc())
    ).scalars()
    return list(rows)


def get_questions(db: Session, question_ids: list[str]) -> dict[str, Question]:
    if not question_ids:
        return {}
    rows = db.query(Question).filter(Question.id.in_(question_ids)).all()
    return {q.id: q for q in rows}


def get_options_content(db: Session, option_ids: list[str]) -> dict[str, dict]:
    """Option content for display. Never selects the correctness flag."""
    if not option_ids:
        return {}
    rows = db.execute(
        select(AnswerOption.id, AnswerOption.question_id, AnswerOption.text)
        .where(AnswerOption.id.in_(option_ids))
    ).all()
    return {r.id: {"id": r.id, "question_id": r.question_id, "text": r.text} for r in rows}


# ---- participants ----

def get_participant(db: Session, participant_id: str) -> Participant | None:
    return db.query(Participant).filter(Participant.id == participant_id).first()


def get_participant_by_phone(db: Session, phone: str) -> Participant | None:
    return db.query(Participant).filter(Participant.phone == phone).first()


def create_participant(db: Session, payload: dict) -> Participant:
    p = Participant(**payload)
    db.add(p)
    commit(db, "create participant")
    return p


# ---- attempts ----

def get_attempt(db: Session, attempt_id: str) -> QuizAttempt | None:
    return db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).populate_existing().first()


def is_submitted(db: Session, attempt_id: str) -> bool:
    submitted_at = db.execute(
        select(QuizAttempt.submitted_at).where(QuizAttempt.id == attempt_id)
    ).scalar_one_or_none()
    return submitted_at is not None


def lock_attempt(db: Session, attempt_id: str) -> QuizAttempt | None:
    # FOR UPDATE is dropped on SQLite, where writers are already serialized
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.id == attempt_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def find_active_attempt(db: Session, participant_id: str, attempt_id: str | None = None) -> QuizAttempt | None:
    q = db.query(QuizAttempt).filter(
        QuizAttempt.participant_id == participant_id,
        QuizAttempt.submitted_at.is_(None),
    )
    if attempt_id:
        q = q.filter(QuizAttempt.id == attempt_id)
    return q.order_by(QuizAttempt.started_at.desc()).first()


def create_attempt(
    db: Session,
    participant_id: str,
    question_order: list[str],
    option_orders: dict[str, list[str]],
    started_at: datetime,
    duration_seconds: int,
) -> QuizAttempt:
    a = QuizAttempt(
        participant_id=participant_id,
        started_at=started_at,
        duration_seconds=duration_seconds,
        question_order=question_order,
        option_orders=option_orders,
        violation_count=0,
    )
    db.add(a)
    try:
        commit(db, "create quiz attempt")
    except StoreFailure:
        # a concurrent start won the one-open-attempt index; join its attempt
        existing = find_active_attempt(db, participant_id)
        if existing is None:
            raise
        return existing
    return a


def has_submitted_attempt(db: Session, participant_id: str) -> bool:
    found = db.execute(
        select(QuizAttempt.id)
        .where(QuizAttempt.participant_id == participant_id, QuizAttempt.submitted_at.is_not(None))
        .limit(1)
    ).first()
    return found is not None


def finalize_attempt(db: Session, attempt_id: str, submitted_at: datetime) -> bool:
    """
    Compare-and-set terminal transition: score and submitted_at are written by
    one statement, and only if the attempt was still open. Does not commit.
    Returns True if this call performed the transition.
    """
    correct = (
        select(func.count(AttemptAnswer.id))
        .join(
            AnswerOption,
            and_(
                AnswerOption.id == AttemptAnswer.selected_option_id,
                AnswerOption.question_id == AttemptAnswer.question_id,
            ),
        )
        .where(AttemptAnswer.attempt_id == attempt_id, AnswerOption.is_correct.is_(True))
        .scalar_subquery()
    )
    result = db.execute(
        update(QuizAttempt)
        .where(QuizAttempt.id == attempt_id, QuizAttempt.submitted_at.is_(None))
        .values(score=correct, submitted_at=submitted_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---- answers ----

def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise StoreFailure(f"Atomic upsert is not supported on {dialect}")
    return insert


def upsert_answer(
    db: Session,
    attempt_id: str,
    question_id: str,
    selected_option_id: str | None,
    answered_at: datetime,
) -> None:
    """
    Atomic insert-or-update on (attempt_id, question_id). An older write never
    replaces a newer one. Does not commit.
    """
    insert = _dialect_insert(db)
    stmt = insert(AttemptAnswer).values(
        id=new_id(),
        attempt_id=attempt_id,
        question_id=question_id,
        selected_option_id=selected_option_id,
        answered_at=answered_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["attempt_id", "question_id"],
        set_={
            "selected_option_id": stmt.excluded.selected_option_id,
            "answered_at": stmt.excluded.answered_at,
        },
        where=AttemptAnswer.answered_at <= stmt.excluded.answered_at,
    )
    db.execute(stmt)


def list_answers(db: Session, attempt_id: str) -> list[AttemptAnswer]:
    return (
        db.query(AttemptAnswer)
        .filter(AttemptAnswer.attempt_id == attempt_id)
        .populate_existing()
        .all()
    )


def answer_map(db: Session, attempt_id: str) -> dict[str, str]:
    rows = db.execute(
        select(AttemptAnswer.question_id, AttemptAnswer.selected_option_id)
        .where(AttemptAnswer.attempt_id == attempt_id, AttemptAnswer.selected_option_id.is_not(None))
    ).all()
    return {r.question_id: r.selected_option_id for r in rows}


# ---- violations ----

def append_violation(db: Session, attempt_id: str, kind: str, occurred_at: datetime) -> int | None:
    """
    Increments the counter in the database (no read-modify-write) and appends
    the event in the same transaction. Returns the new count, or None when the
    attempt is already terminal. Commits.
    """
    result = db.execute(
        update(QuizAttempt)
        .where(QuizAttempt.id == attempt_id, QuizAttempt.submitted_at.is_(None))
        .values(violation_count=QuizAttempt.violation_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        return None

    db.add(ViolationEvent(attempt_id=attempt_id, kind=kind, occurred_at=occurred_at))
    db.flush()
    count = db.execute(select(QuizAttempt.violation_count).where(QuizAttempt.id == attempt_id)).scalar_one()
    commit(db, "log violation")
    return count


def list_violations(db: Session, attempt_id: str) -> list[ViolationEvent]:
    return (
        db.query(ViolationEvent)
        .filter(ViolationEvent.attempt_id == attempt_id)
        .order_by(ViolationEvent.id.asc())
        .all()
    )
