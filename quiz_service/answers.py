import logging
from datetime import datetime

from sqlalchemy.orm import Session

from . import crud
from .engine import ensure_mutable
from .errors import AlreadySubmitted, InvalidInput, NotFound
from .models import QuizAttempt
from .timing import utcnow

logger = logging.getLogger(__name__)


def check_answer_target(attempt: QuizAttempt, question_id: str, selected_option_id: str | None) -> None:
    """The question must be part of the frozen order, and the option one of that question's options."""
    if question_id not in (attempt.question_order or []):
        raise NotFound("Question not found in this attempt")
    if selected_option_id is None:
        return
    if selected_option_id not in (attempt.option_orders or {}).get(question_id, []):
        raise InvalidInput(
            "Option does not belong to this question",
            {"selected_option_id": "Unknown option for this question"},
        )


def save_answer(
    db: Session,
    attempt_id: str,
    question_id: str,
    selected_option_id: str | None,
    now: datetime | None = None,
) -> None:
    """
    Writes or overwrites the single answer row for (attempt, question).
    A None selection is stored as an explicit de-selection.
    """
    now = now or utcnow()
    if not attempt_id or not question_id:
        raise InvalidInput(
            "Attempt ID and Question ID required",
            {k: "This field is required" for k, v in (("attempt_id", attempt_id), ("question_id", question_id)) if not v},
        )

    attempt = crud.lock_attempt(db, attempt_id)
    if not attempt:
        raise NotFound("Attempt not found")
    ensure_mutable(db, attempt, now)
    check_answer_target(attempt, question_id, selected_option_id)

    crud.upsert_answer(db, attempt_id, question_id, selected_option_id, now)

    # a submission may have landed between the guard and the write
    if crud.is_submitted(db, attempt_id):
        db.rollback()
        logger.warning("Discarded answer for attempt %s submitted concurrently", attempt_id)
        raise AlreadySubmitted()

    crud.commit(db, "save answer")
