import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from . import crud
from .answers import check_answer_target
from .errors import InvalidInput, NotFound, QuizError
from .models import QuizAttempt
from .timing import as_utc, remaining_seconds, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    score: int
    total_questions: int
    submitted_at: datetime


def _result(attempt: QuizAttempt) -> SubmitResult:
    # the denominator is the frozen order, not the number of answer rows
    return SubmitResult(
        score=attempt.score or 0,
        total_questions=len(attempt.question_order or []),
        submitted_at=as_utc(attempt.submitted_at),
    )


def submit(
    db: Session,
    attempt_id: str,
    final_answers: dict[str, str | None] | None = None,
    now: datetime | None = None,
    *,
    grace_seconds: int = 0,
) -> SubmitResult:
    """
    Active -> Submitted, exactly once. A repeated call returns the stored
    result without scoring again.

    Buffered final answers are written only while the deadline, stretched by
    `grace_seconds` for in-flight requests, has not passed. A late submit
    still closes the attempt but scores only what was saved in time.
    """
    now = now or utcnow()
    if not attempt_id:
        raise InvalidInput("Attempt ID required", {"attempt_id": "This field is required"})

    attempt = crud.lock_attempt(db, attempt_id)
    if not attempt:
        raise NotFound("Attempt not found")
    if attempt.submitted_at is not None:
        return _result(attempt)

    if final_answers:
        if remaining_seconds(attempt.started_at, attempt.duration_seconds + grace_seconds, now) > 0:
            _flush_final_answers(db, attempt, final_answers, now)
        else:
            logger.warning(
                "Dropping %d final answers for attempt %s: submitted after the deadline",
                len(final_answers),
                attempt_id,
            )

    won = crud.finalize_attempt(db, attempt_id, now)
    if won:
        crud.commit(db, "submit quiz")
    else:
        # another submit got there first; its result stands
        db.rollback()

    db.refresh(attempt)
    result = _result(attempt)
    if won:
        logger.info("Attempt %s submitted: %d/%d", attempt_id, result.score, result.total_questions)
    return result


def _flush_final_answers(db: Session, attempt: QuizAttempt, final_answers: dict, now: datetime) -> None:
    # best effort flush of answers the client buffered but never saved
    for question_id, option_id in final_answers.items():
        try:
            check_answer_target(attempt, question_id, option_id)
        except QuizError as e:
            logger.warning("Skipping final answer for attempt %s: %s", attempt.id, e.message)
            continue
        crud.upsert_answer(db, attempt.id, question_id, option_id, now)
